"""
Diagnostics channel and exceptions for the stat engine.

The engine never fails on bad character data: malformed bonuses, unknown
benefit types and unroutable targets are dropped. Every drop is logged and,
when the caller passes a ``Diagnostics`` instance, recorded as a structured
``Diagnostic`` so tests and content tooling can assert that nothing was lost.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger("candlekeep-stats")


class StatEngineError(Exception):
    """Base class for errors raised by candlekeep-stats."""


class StrictModeError(StatEngineError):
    """Raised by a strict ``Diagnostics`` channel when anything is dropped."""

    def __init__(self, diagnostic: "Diagnostic") -> None:
        super().__init__(diagnostic.message)
        self.diagnostic = diagnostic


class DiagnosticKind(str, Enum):
    """Why an input was dropped."""
    MALFORMED_BONUS = "malformed_bonus"
    MALFORMED_ENTRY = "malformed_entry"
    MALFORMED_BENEFIT = "malformed_benefit"
    UNKNOWN_BENEFIT = "unknown_benefit"
    HANDLER_ERROR = "handler_error"
    UNKNOWN_TARGET = "unknown_target"
    UNKNOWN_NAME = "unknown_name"
    INVALID_IMPROVEMENT = "invalid_improvement"


# Unknown benefit types point at missing content support, so they are louder
_LOG_LEVELS: dict[DiagnosticKind, int] = {
    DiagnosticKind.UNKNOWN_BENEFIT: logging.WARNING,
    DiagnosticKind.HANDLER_ERROR: logging.ERROR,
}


class Diagnostic(BaseModel):
    """A single dropped input."""
    kind: DiagnosticKind
    message: str
    source_label: str | None = Field(default=None, description="Label of the item/feature the input came from")
    payload: Any = Field(default=None, description="The offending raw input, for inspection")


class Diagnostics:
    """Collects diagnostics for one or more engine passes.

    Args:
        strict: Raise ``StrictModeError`` on the first recorded diagnostic.
        unknown_benefit_level: Log level used for unknown benefit types.
    """

    def __init__(self, strict: bool = False, unknown_benefit_level: int | None = None) -> None:
        self.strict = strict
        self.entries: list[Diagnostic] = []
        self._levels = dict(_LOG_LEVELS)
        if unknown_benefit_level is not None:
            self._levels[DiagnosticKind.UNKNOWN_BENEFIT] = unknown_benefit_level

    def record(
        self,
        kind: DiagnosticKind,
        message: str,
        *,
        source_label: str | None = None,
        payload: Any = None,
    ) -> Diagnostic:
        diagnostic = Diagnostic(kind=kind, message=message, source_label=source_label, payload=payload)
        _log(diagnostic, self._levels.get(kind, logging.DEBUG))
        self.entries.append(diagnostic)
        if self.strict:
            raise StrictModeError(diagnostic)
        return diagnostic

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self.entries if d.kind == kind]

    def clear(self) -> None:
        self.entries.clear()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __bool__(self) -> bool:
        # An empty channel is still a channel
        return True


def _log(diagnostic: Diagnostic, level: int) -> None:
    where = f" [{diagnostic.source_label}]" if diagnostic.source_label else ""
    logger.log(level, f"{diagnostic.kind.value}{where}: {diagnostic.message}")


def report(
    diagnostics: Diagnostics | None,
    kind: DiagnosticKind,
    message: str,
    *,
    source_label: str | None = None,
    payload: Any = None,
) -> None:
    """Record into ``diagnostics`` when given, otherwise just log."""
    if diagnostics is not None:
        diagnostics.record(kind, message, source_label=source_label, payload=payload)
        return
    _log(
        Diagnostic(kind=kind, message=message, source_label=source_label, payload=payload),
        _LOG_LEVELS.get(kind, logging.DEBUG),
    )

"""
Bonus normalization: shape one raw bonus entry into a canonical Bonus.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from .diagnostics import DiagnosticKind, Diagnostics, report
from .models import Bonus, BonusSource

UNKNOWN_SOURCE = BonusSource(label="Unknown")


def _as_source(value: Any) -> BonusSource | None:
    """Coerce a source given as a BonusSource, a mapping or a bare label."""
    if isinstance(value, BonusSource):
        return value
    if isinstance(value, str):
        return BonusSource(label=value)
    if isinstance(value, Mapping):
        label = value.get("label")
        return BonusSource(
            type=value.get("type") if isinstance(value.get("type"), str) else None,
            id=value.get("id"),
            label=label if isinstance(label, str) and label else "Unknown",
        )
    return None


def normalize_bonus(
    raw: Any,
    fallback_source: BonusSource | Mapping | None = None,
    diagnostics: Diagnostics | None = None,
) -> Bonus | None:
    """Validate and shape one raw bonus entry.

    Returns None, without raising, when ``raw`` is not a mapping, has no string
    ``target`` or has no finite numeric ``value``.

    Source resolution: ``fallback_source`` > ``raw["source"]`` > "Unknown".
    Type resolution: ``raw["type"]`` > "untyped".
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()

    source = _as_source(fallback_source) if fallback_source is not None else None
    label = source.label if source else None

    if not isinstance(raw, Mapping):
        report(diagnostics, DiagnosticKind.MALFORMED_BONUS, f"bonus is not an object: {raw!r}",
               source_label=label, payload=raw)
        return None

    target = raw.get("target")
    value = raw.get("value")
    if not isinstance(target, str) or not target:
        report(diagnostics, DiagnosticKind.MALFORMED_BONUS, "bonus has no string target",
               source_label=label, payload=dict(raw))
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        report(diagnostics, DiagnosticKind.MALFORMED_BONUS, f"bonus for '{target}' has no numeric value",
               source_label=label, payload=dict(raw))
        return None

    if source is None:
        source = _as_source(raw.get("source")) or UNKNOWN_SOURCE

    bonus_type = raw.get("type")
    try:
        return Bonus(
            target=target,
            value=value,
            type=bonus_type if isinstance(bonus_type, str) and bonus_type else "untyped",
            source=source,
        )
    except ValidationError as e:
        report(diagnostics, DiagnosticKind.MALFORMED_BONUS, f"bonus for '{target}' rejected: {e}",
               source_label=source.label, payload=dict(raw))
        return None

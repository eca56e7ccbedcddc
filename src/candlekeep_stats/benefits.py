"""
Benefit handler registry.

A benefit is a structured effect descriptor attached to an item or feature,
for example::

    {"type": "skill_modifier_bonus", "skills": ["religion", "history"],
     "bonus_source": "charisma_modifier"}

The registry maps each benefit type to a handler that expands the benefit
into zero or more canonical bonuses. Symbolic references such as
``charisma_modifier`` are always resolved against the *base* attributes so a
bonus can never depend on its own result.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from pydantic import ValidationError

from .diagnostics import DiagnosticKind, Diagnostics, StrictModeError, report
from .models import BaseAttributes, Benefit, Bonus, BonusSource, Number
from .rules import ABILITIES, ability_modifier

logger = logging.getLogger("candlekeep-stats.benefits")

BenefitHandler = Callable[[Benefit, BaseAttributes, BonusSource], list[Bonus]]

_MODIFIER_REFERENCE = re.compile(
    r"^(?P<ability>" + "|".join(ABILITIES) + r")_modifier(?:_(?P<scale>doubled|halved))?$"
)


def resolve_modifier_value(ref: Any, base: BaseAttributes) -> Number:
    """Resolve a symbolic bonus reference against base attributes.

    Recognized references:
        - ``proficiency_bonus``
        - ``<ability>_modifier``, optionally suffixed ``_doubled`` or ``_halved``
          (halving rounds down)

    Anything else, or an ability the base record does not carry, resolves to 0.
    """
    if not isinstance(ref, str):
        return 0
    if ref == "proficiency_bonus":
        return base.proficiency

    match = _MODIFIER_REFERENCE.match(ref)
    if not match:
        return 0
    score = base.score(match.group("ability"))
    if score is None:
        return 0

    modifier = ability_modifier(score)
    if match.group("scale") == "doubled":
        return modifier * 2
    if match.group("scale") == "halved":
        return modifier // 2
    return modifier


def _benefit_value(benefit: Benefit, base: BaseAttributes) -> Number:
    """A literal numeric ``value`` wins over a ``bonus_source`` reference."""
    value = benefit.get("value")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return resolve_modifier_value(benefit.get("bonus_source"), base)


def _bonus_type(benefit: Benefit) -> str:
    bonus_type = benefit.get("bonus_type")
    return bonus_type if isinstance(bonus_type, str) and bonus_type else "untyped"


def _names(benefit: Benefit, field: str) -> list[str]:
    names = benefit.get(field)
    if not isinstance(names, (list, tuple)):
        return []
    return [n for n in names if isinstance(n, str) and n]


def _fan_out(prefix: str, field: str) -> BenefitHandler:
    """Build a handler emitting one ``<prefix>.<name>`` bonus per listed name."""

    def handler(benefit: Benefit, base: BaseAttributes, source: BonusSource) -> list[Bonus]:
        value = _benefit_value(benefit, base)
        if value == 0:
            return []
        return [
            Bonus(target=f"{prefix}.{name}", value=value, type=_bonus_type(benefit), source=source)
            for name in _names(benefit, field)
        ]

    handler.__name__ = f"{prefix}_modifier_bonus"
    return handler


skill_modifier_bonus = _fan_out("skill", "skills")
ability_modifier_bonus = _fan_out("ability", "abilities")
save_modifier_bonus = _fan_out("save", "saves")


def ac_bonus(benefit: Benefit, base: BaseAttributes, source: BonusSource) -> list[Bonus]:
    """Single armor class bonus, e.g. ``{"type": "ac_bonus", "value": 1, "bonus_type": "shield"}``."""
    value = _benefit_value(benefit, base)
    if value == 0:
        return []
    return [Bonus(target="ac", value=value, type=_bonus_type(benefit), source=source)]


def inert(benefit: Benefit, base: BaseAttributes, source: BonusSource) -> list[Bonus]:
    """Recognized benefit that produces no numeric bonus at this layer.

    Skill proficiency style benefits depend on sheet-level proficiency state
    and are interpreted by ``candlekeep_stats.sheet``.
    """
    return []


BUILTIN_HANDLERS: dict[str, BenefitHandler] = {
    "skill_modifier_bonus": skill_modifier_bonus,
    "ability_modifier_bonus": ability_modifier_bonus,
    "save_modifier_bonus": save_modifier_bonus,
    "ac_bonus": ac_bonus,
    "skill_proficiency": inert,
    "skill_dual_ability": inert,
    "skill_half_proficiency": inert,
}


def coerce_benefit(raw: Any) -> Benefit | None:
    """Return ``raw`` as a Benefit, or None when it has no string ``type``."""
    if isinstance(raw, Benefit):
        return raw
    if not isinstance(raw, Mapping) or not isinstance(raw.get("type"), str):
        return None
    try:
        return Benefit.model_validate(dict(raw))
    except ValidationError:
        return None


class BenefitRegistry:
    """Mutable mapping of benefit type → handler.

    Build one at startup (``default_registry()``), extend it with
    ``register_handler`` and hand it to the collector. Registration while a
    derivation pass is running is not supported.
    """

    def __init__(self, handlers: Mapping[str, BenefitHandler] | None = None) -> None:
        self._handlers: dict[str, BenefitHandler] = dict(handlers or {})

    def register_handler(self, benefit_type: str, handler: BenefitHandler) -> None:
        """Add or replace the handler for a benefit type."""
        if not isinstance(benefit_type, str) or not benefit_type:
            raise ValueError("Benefit type must be a non-empty string")
        if not callable(handler):
            raise TypeError(f"Handler for '{benefit_type}' is not callable")
        if benefit_type in BUILTIN_HANDLERS and self._handlers.get(benefit_type) is BUILTIN_HANDLERS[benefit_type]:
            logger.info(f"Replacing built-in benefit handler '{benefit_type}'")
        self._handlers[benefit_type] = handler

    def unregister_handler(self, benefit_type: str) -> BenefitHandler | None:
        return self._handlers.pop(benefit_type, None)

    def get(self, benefit_type: str) -> BenefitHandler | None:
        return self._handlers.get(benefit_type)

    def types(self) -> list[str]:
        return sorted(self._handlers)

    def copy(self) -> "BenefitRegistry":
        return BenefitRegistry(self._handlers)

    def __contains__(self, benefit_type: object) -> bool:
        return benefit_type in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def dispatch(
        self,
        benefit: Any,
        base: BaseAttributes,
        source: BonusSource,
        diagnostics: Diagnostics | None = None,
    ) -> list[Bonus]:
        """Expand one benefit into bonuses.

        Unknown types and malformed benefits yield ``[]`` and a diagnostic.
        A handler that raises is logged and treated the same way.
        """
        parsed = coerce_benefit(benefit)
        if parsed is None:
            report(diagnostics, DiagnosticKind.MALFORMED_BENEFIT, "benefit has no string type",
                   source_label=source.label, payload=benefit)
            return []

        handler = self._handlers.get(parsed.type)
        if handler is None:
            report(diagnostics, DiagnosticKind.UNKNOWN_BENEFIT, f"unknown benefit type '{parsed.type}'",
                   source_label=source.label, payload=parsed.model_dump())
            return []

        try:
            bonuses = list(handler(parsed, base, source) or [])
        except StrictModeError:
            raise
        except Exception as e:
            logger.exception(f"Benefit handler '{parsed.type}' failed for {source.label}")
            report(diagnostics, DiagnosticKind.HANDLER_ERROR, f"handler '{parsed.type}' raised: {e}",
                   source_label=source.label, payload=parsed.model_dump())
            return []

        return bonuses


def default_registry() -> BenefitRegistry:
    """A fresh registry holding the built-in handlers."""
    return BenefitRegistry(BUILTIN_HANDLERS)

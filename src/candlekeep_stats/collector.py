"""
Bonus collection.

Walks the character's source records (equipped items, features, ability score
improvements and manual overrides) and flattens them into one ordered list of
canonical bonuses tagged with their provenance.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel

from .benefits import BenefitRegistry, default_registry
from .diagnostics import DiagnosticKind, Diagnostics, report
from .models import AbilityScoreImprovement, BaseAttributes, Bonus, BonusSource
from .normalizer import normalize_bonus
from .rules import ABILITY_ABBREVIATIONS

logger = logging.getLogger("candlekeep-stats")

OVERRIDE_SOURCE = BonusSource(type="override", label="Override")
IMPROVEMENT_SOURCE_TYPE = "ability-score-improvement"

# Leading integer, the way "CHA: 2" or "WIS: +1" is written on a sheet
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def as_record(entry: Any) -> Mapping | None:
    if isinstance(entry, BaseModel):
        return entry.model_dump()
    if isinstance(entry, Mapping):
        return entry
    return None


def _entry_label(record: Mapping) -> str:
    for key in ("name", "label", "title"):
        value = record.get(key)
        if isinstance(value, str) and value:
            return value
    return "Unknown"


def _improvement_record(raw: Any, diagnostics: Diagnostics | None) -> AbilityScoreImprovement | None:
    """Shape one improvement record, dropping only the entries that are unusable."""
    if isinstance(raw, AbilityScoreImprovement):
        return raw
    record = as_record(raw)
    if record is None:
        report(diagnostics, DiagnosticKind.INVALID_IMPROVEMENT, f"improvement is not an object: {raw!r}",
               payload=raw)
        return None

    source = record.get("source")
    source_type = record.get("sourceType", record.get("source_type"))
    improvement = AbilityScoreImprovement(
        source=source if isinstance(source, str) and source else "Unknown",
        source_type=source_type if isinstance(source_type, str) and source_type else None,
    )

    abilities = record.get("abilities")
    if not isinstance(abilities, (list, tuple)):
        report(diagnostics, DiagnosticKind.INVALID_IMPROVEMENT, "improvement has no abilities list",
               source_label=improvement.label, payload=raw)
        return None
    for entry in abilities:
        if isinstance(entry, str):
            improvement.abilities.append(entry)
        else:
            report(diagnostics, DiagnosticKind.INVALID_IMPROVEMENT,
                   f"cannot parse ability improvement {entry!r}",
                   source_label=improvement.label, payload=entry)
    return improvement


def convert_ability_improvements(
    improvements: Iterable[Any],
    diagnostics: Diagnostics | None = None,
) -> list[Bonus]:
    """Convert ability score improvement records into ``ability.<name>`` bonuses.

    Each record looks like ``{"source": "Background", "sourceType": "Hermit",
    "abilities": ["CHA: 2", "WIS: 1"]}``. Entries with an unknown abbreviation
    or an unparseable value are dropped one by one; the rest of the record
    still applies.
    """
    bonuses: list[Bonus] = []
    for raw in improvements or ():
        if raw is None:
            continue
        improvement = _improvement_record(raw, diagnostics)
        if improvement is None:
            continue

        source = BonusSource(type=IMPROVEMENT_SOURCE_TYPE, label=improvement.label)
        for ability_str in improvement.abilities:
            abbr, _, value_str = ability_str.partition(":")
            ability = ABILITY_ABBREVIATIONS.get(abbr.strip().upper())
            match = _LEADING_INT.match(value_str)
            if ability is None or match is None:
                report(diagnostics, DiagnosticKind.INVALID_IMPROVEMENT,
                       f"cannot parse ability improvement '{ability_str}'",
                       source_label=source.label, payload=ability_str)
                continue
            bonuses.append(Bonus(target=f"ability.{ability}", value=int(match.group(1)), source=source))
    return bonuses


class BonusCollector:
    """Flattens source records into canonical bonuses.

    The collector holds no state between calls apart from the benefit
    registry it was built with.
    """

    def __init__(self, registry: BenefitRegistry | None = None) -> None:
        self.registry = registry if registry is not None else default_registry()

    def collect(
        self,
        items: Iterable[Any] = (),
        features: Iterable[Any] = (),
        overrides: Iterable[Any] = (),
        base_attributes: Any = None,
        ability_improvements: Iterable[Any] = (),
        diagnostics: Diagnostics | None = None,
    ) -> list[Bonus]:
        """Collect every bonus granted by the given records.

        Order of the result: items, features, ability score improvements,
        overrides; within each list, record order. Benefits are resolved
        against ``base_attributes``.
        """
        base = BaseAttributes.coerce(base_attributes)
        collected: list[Bonus] = []

        collected.extend(self._collect_entries(items, "item", base, diagnostics))
        collected.extend(self._collect_entries(features, "feature", base, diagnostics))
        collected.extend(convert_ability_improvements(ability_improvements, diagnostics))

        if isinstance(overrides, Iterable) and not isinstance(overrides, (str, bytes, Mapping)):
            for raw in overrides:
                bonus = normalize_bonus(raw, OVERRIDE_SOURCE, diagnostics)
                if bonus is not None:
                    collected.append(bonus)

        logger.debug(f"Collected {len(collected)} bonuses")
        return collected

    def _collect_entries(
        self,
        entries: Iterable[Any],
        source_type: str,
        base: BaseAttributes,
        diagnostics: Diagnostics | None,
    ) -> list[Bonus]:
        collected: list[Bonus] = []
        if not isinstance(entries, Iterable) or isinstance(entries, (str, bytes, Mapping)):
            return collected

        for entry in entries:
            if entry is None:
                continue
            record = as_record(entry)
            if record is None:
                report(diagnostics, DiagnosticKind.MALFORMED_ENTRY, f"{source_type} is not an object: {entry!r}",
                       payload=entry)
                continue

            source = BonusSource(type=source_type, id=record.get("id"), label=_entry_label(record))

            raw_bonuses = record.get("bonuses")
            if isinstance(raw_bonuses, (list, tuple)):
                candidates = list(raw_bonuses)
            elif record.get("bonus"):
                candidates = [record["bonus"]]
            else:
                candidates = []

            benefits = record.get("benefits")
            if isinstance(benefits, (list, tuple)):
                for benefit in benefits:
                    candidates.extend(self.registry.dispatch(benefit, base, source, diagnostics))

            for raw in candidates:
                bonus = normalize_bonus(raw, source, diagnostics)
                if bonus is not None:
                    collected.append(bonus)
        return collected


def collect_bonuses(
    items: Iterable[Any] = (),
    features: Iterable[Any] = (),
    overrides: Iterable[Any] = (),
    base_attributes: Any = None,
    ability_improvements: Iterable[Any] = (),
    registry: BenefitRegistry | None = None,
    diagnostics: Diagnostics | None = None,
) -> list[Bonus]:
    """One-shot ``BonusCollector(registry).collect(...)``."""
    return BonusCollector(registry).collect(
        items=items,
        features=features,
        overrides=overrides,
        base_attributes=base_attributes,
        ability_improvements=ability_improvements,
        diagnostics=diagnostics,
    )

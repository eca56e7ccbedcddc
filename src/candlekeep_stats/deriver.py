"""
Stat derivation.

``derive_stats`` folds a flat bonus list into per-bucket totals and applies
them to the base attributes. Every bucket sums its bonuses except senses,
which keep the largest bonus and are then maxed (not added) against the
base range: a magical sense grants "at least N ft", it does not stack.

The function is pure and total. Bonuses it cannot route are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from .diagnostics import DiagnosticKind, Diagnostics, report
from .models import (
    BaseAttributes,
    Bonus,
    BonusSources,
    BonusTotals,
    DerivationResult,
    DerivedStats,
    Number,
    Sense,
)
from .normalizer import normalize_bonus
from .rules import ABILITIES, ability_modifier
from .targets import TargetKind, parse_target

logger = logging.getLogger("candlekeep-stats")

# Scalar buckets: TargetKind → BonusTotals / BonusSources field
_SCALAR_FIELDS: dict[TargetKind, str] = {
    TargetKind.MAX_HP: "max_hp",
    TargetKind.AC: "ac",
    TargetKind.INITIATIVE: "initiative",
    TargetKind.PASSIVE_PERCEPTION: "passive_perception",
}

# Named buckets: TargetKind → BonusTotals / BonusSources field
_NAMED_FIELDS: dict[TargetKind, str] = {
    TargetKind.SKILL: "skills",
    TargetKind.SAVE: "saves",
    TargetKind.SPEED: "speeds",
    TargetKind.SENSE: "senses",
}


def _base_sense_map(senses: list[Sense]) -> dict[str, Number]:
    """Reduce base senses to type → range; duplicate types keep the longest range."""
    ranges: dict[str, Number] = {}
    for sense in senses:
        key = sense.sense_type.lower()
        ranges[key] = max(ranges.get(key, 0), sense.range)
    return ranges


def base_speed_map(speeds: dict[str, Number]) -> dict[str, Number]:
    """Lower-case base speed types; types differing only by case keep the fastest."""
    merged: dict[str, Number] = {}
    for speed_type, distance in speeds.items():
        key = speed_type.lower()
        merged[key] = max(merged[key], distance) if key in merged else distance
    return merged


def _as_bonus(raw: Any, diagnostics: Diagnostics | None) -> Bonus | None:
    if isinstance(raw, Bonus):
        return raw
    if raw is None:
        return None
    return normalize_bonus(raw, diagnostics=diagnostics)


def derive_stats(
    base: BaseAttributes | Any,
    bonuses: Iterable[Any] = (),
    diagnostics: Diagnostics | None = None,
) -> DerivationResult:
    """Apply collected bonuses to base attributes.

    Args:
        base: Base attributes, or a plain record accepted by ``BaseAttributes.coerce``.
        bonuses: Canonical bonuses, usually from ``BonusCollector.collect``.
        diagnostics: Optional channel receiving every dropped bonus.

    Returns:
        DerivationResult with ``derived`` (final values), ``totals`` (bonus
        sums before the base is added) and ``sources`` (contributing bonuses
        per bucket, in input order).
    """
    base = BaseAttributes.coerce(base)
    totals = BonusTotals()
    sources = BonusSources()

    for raw in bonuses or ():
        bonus = _as_bonus(raw, diagnostics)
        if bonus is None:
            continue
        target = parse_target(bonus.target)

        if target.kind is TargetKind.ABILITY:
            if target.name not in totals.abilities:
                report(diagnostics, DiagnosticKind.UNKNOWN_NAME, f"unknown ability in target '{bonus.target}'",
                       source_label=bonus.source.label, payload=bonus.model_dump())
                continue
            totals.abilities[target.name] += bonus.value
            sources.abilities[target.name].append(bonus)

        elif target.kind in _SCALAR_FIELDS:
            field = _SCALAR_FIELDS[target.kind]
            setattr(totals, field, getattr(totals, field) + bonus.value)
            getattr(sources, field).append(bonus)

        elif target.kind in _NAMED_FIELDS:
            field = _NAMED_FIELDS[target.kind]
            bucket: dict[str, Number] = getattr(totals, field)
            if target.kind is TargetKind.SENSE:
                bucket[target.name] = max(bucket.get(target.name, 0), bonus.value)
            else:
                bucket[target.name] = bucket.get(target.name, 0) + bonus.value
            getattr(sources, field).setdefault(target.name, []).append(bonus)

        else:
            report(diagnostics, DiagnosticKind.UNKNOWN_TARGET, f"unroutable target '{bonus.target}'",
                   source_label=bonus.source.label, payload=bonus.model_dump())

    abilities = {a: base.abilities.get(a, 0) + totals.abilities[a] for a in ABILITIES}

    sense_ranges = _base_sense_map(base.senses)
    base_sense_ranges = dict(sense_ranges)
    for sense_type, bonus_range in totals.senses.items():
        sense_ranges[sense_type] = max(base_sense_ranges.get(sense_type, 0), bonus_range)

    speeds = base_speed_map(base.speeds)
    for speed_type, bonus_distance in totals.speeds.items():
        speeds[speed_type] = speeds.get(speed_type, 0) + bonus_distance

    derived = DerivedStats(
        abilities=abilities,
        modifiers={a: ability_modifier(score) for a, score in abilities.items()},
        max_hp=base.max_hp + totals.max_hp,
        proficiency=base.proficiency,
        ac=base.ac_base + totals.ac,
        initiative=base.initiative_base + totals.initiative,
        passive_perception=base.passive_perception_base + totals.passive_perception,
        senses=[Sense(sense_type=t, range=r) for t, r in sense_ranges.items() if r > 0],
        speeds=speeds,
    )
    return DerivationResult(derived=derived, totals=totals, sources=sources)

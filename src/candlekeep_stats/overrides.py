"""
Override layer: user-entered adjustments on top of derived stats.

For one attribute key ``k`` with computed value ``v``::

    final(k) = override[k] if override[k] is not None
               else v + sum(custom_modifier.value for custom_modifier in custom_modifiers[k])

An override replaces everything else. Ability modifiers are always
recomputed from the final score, never carried over from before the
override.

Attribute keys are the bonus target paths: ``ability.strength``, ``ac``,
``initiative``, ``maxHP``, ``passivePerception``, ``skill.history``,
``save.dexterity``, ``speed.fly``, ``sense.darkvision``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from .deriver import base_speed_map
from .models import BaseAttributes, Bonus, CustomModifier, DerivationResult, Number
from .rules import ability_modifier, normalize_skill_name
from .targets import TargetKind, parse_target, target_key


def _modifier_value(modifier: Any) -> Number:
    if isinstance(modifier, CustomModifier):
        return modifier.value
    if isinstance(modifier, Mapping):
        value = modifier.get("value")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
    return 0


def custom_modifier_total(custom_modifiers: Iterable[Any] | None) -> Number:
    return sum(_modifier_value(m) for m in custom_modifiers or ())


def final_value(
    computed: Number,
    custom_modifiers: Iterable[Any] | None = None,
    override: Number | None = None,
) -> Number:
    """Apply custom modifiers and an optional override to a computed value."""
    if override is not None:
        return override
    return computed + custom_modifier_total(custom_modifiers)


class FinalAbility(BaseModel):
    """Displayed ability score and the modifier derived from it."""
    score: Number
    modifier: int


def final_ability(
    computed_score: Number,
    custom_modifiers: Iterable[Any] | None = None,
    override: Number | None = None,
) -> FinalAbility:
    score = final_value(computed_score, custom_modifiers, override)
    return FinalAbility(score=score, modifier=ability_modifier(score))


class AttributeAdjustments(BaseModel):
    """Custom modifiers and overrides for one character, keyed by attribute.

    Owned and persisted by the caller. The mutators return a new instance
    and leave this one untouched.
    """
    custom_modifiers: dict[str, list[CustomModifier]] = Field(default_factory=dict)
    overrides: dict[str, Number | None] = Field(default_factory=dict)

    def modifiers_for(self, key: str) -> list[CustomModifier]:
        return list(self.custom_modifiers.get(key, []))

    def override_for(self, key: str) -> Number | None:
        return self.overrides.get(key)

    def resolve(self, key: str, computed: Number) -> Number:
        """Final value for ``key`` given its computed value."""
        return final_value(computed, self.custom_modifiers.get(key), self.overrides.get(key))

    def add_custom_modifier(self, key: str, source: str, value: Number) -> "AttributeAdjustments":
        updated = self.model_copy(deep=True)
        updated.custom_modifiers.setdefault(key, []).append(CustomModifier(source=source, value=value))
        return updated

    def remove_custom_modifier(self, key: str, modifier_id: str) -> "AttributeAdjustments":
        updated = self.model_copy(deep=True)
        remaining = [m for m in updated.custom_modifiers.get(key, []) if m.id != modifier_id]
        if remaining:
            updated.custom_modifiers[key] = remaining
        else:
            updated.custom_modifiers.pop(key, None)
        return updated

    def set_override(self, key: str, value: Number | None) -> "AttributeAdjustments":
        """Set an override, or clear it with ``None``."""
        updated = self.model_copy(deep=True)
        if value is None:
            updated.overrides.pop(key, None)
        else:
            updated.overrides[key] = value
        return updated


class SourceGroup(BaseModel):
    """Bonuses sharing one source label."""
    label: str
    total: Number
    bonuses: list[Bonus]


class StatBreakdown(BaseModel):
    """Everything an inspector needs to explain one displayed value."""
    key: str
    base_value: Number
    bonus_total: Number
    custom_modifier_total: Number
    computed_value: Number
    override: Number | None = None
    final_value: Number
    groups: list[SourceGroup] = Field(default_factory=list)
    custom_modifiers: list[CustomModifier] = Field(default_factory=list)
    modifier: int | None = Field(default=None, description="Ability modifier, for ability keys only")


def group_by_source(bonuses: Iterable[Bonus]) -> list[SourceGroup]:
    """Group bonuses by source label, keeping first-appearance order."""
    grouped: dict[str, list[Bonus]] = {}
    for bonus in bonuses:
        grouped.setdefault(bonus.source.label, []).append(bonus)
    return [
        SourceGroup(label=label, total=sum(b.value for b in group), bonuses=group)
        for label, group in grouped.items()
    ]


def breakdown(
    key: str,
    base_value: Number,
    bonuses: Iterable[Bonus] = (),
    custom_modifiers: Iterable[CustomModifier] = (),
    override: Number | None = None,
    computed: Number | None = None,
) -> StatBreakdown:
    """Explain a value: base, grouped bonuses, custom modifiers and override.

    ``computed`` replaces ``base_value + bonus_total`` for buckets that do not
    simply add, such as senses.
    """
    bonuses = list(bonuses)
    custom_modifiers = list(custom_modifiers)
    bonus_total = sum(b.value for b in bonuses)
    custom_total = custom_modifier_total(custom_modifiers)
    engine_value = computed if computed is not None else base_value + bonus_total
    final = final_value(engine_value, custom_modifiers, override)

    return StatBreakdown(
        key=key,
        base_value=base_value,
        bonus_total=bonus_total,
        custom_modifier_total=custom_total,
        computed_value=engine_value + custom_total,
        override=override,
        final_value=final,
        groups=group_by_source(bonuses),
        custom_modifiers=custom_modifiers,
        modifier=ability_modifier(final) if parse_target(key).kind is TargetKind.ABILITY else None,
    )


def inspect_attribute(
    key: str,
    base: BaseAttributes | Any,
    result: DerivationResult,
    adjustments: AttributeAdjustments | None = None,
    computed: Number | None = None,
) -> StatBreakdown:
    """Breakdown for one attribute key of a derivation pass.

    Skill and save keys have no base value at this layer. Pass the sheet's
    pre-adjustment value as ``computed`` (see ``SheetBuilder.computed_value``);
    the base is then whatever ability modifier and proficiency contributed.
    """
    base = BaseAttributes.coerce(base)
    adjustments = adjustments or AttributeAdjustments()
    target = parse_target(key)
    sources = result.sources
    key = target.key

    if target.kind is TargetKind.ABILITY:
        base_value = base.abilities.get(target.name, 0)
        bonuses = sources.abilities.get(target.name, [])
    elif target.kind is TargetKind.MAX_HP:
        base_value, bonuses = base.max_hp, sources.max_hp
    elif target.kind is TargetKind.AC:
        base_value, bonuses = base.ac_base, sources.ac
    elif target.kind is TargetKind.INITIATIVE:
        base_value, bonuses = base.initiative_base, sources.initiative
    elif target.kind is TargetKind.PASSIVE_PERCEPTION:
        base_value, bonuses = base.passive_perception_base, sources.passive_perception
    elif target.kind is TargetKind.SKILL:
        # Matched the way the sheet matches: "skill.Sleight of Hand" is sleight_of_hand
        name = normalize_skill_name(target.name)
        key = target_key(TargetKind.SKILL, name)
        base_value = 0
        bonuses = [
            b for k, group in sources.skills.items() if normalize_skill_name(k) == name for b in group
        ]
    elif target.kind is TargetKind.SAVE:
        name = target.name.lower()
        key = target_key(TargetKind.SAVE, name)
        base_value = 0
        bonuses = [b for k, group in sources.saves.items() if k.lower() == name for b in group]
    elif target.kind is TargetKind.SPEED:
        base_value = base_speed_map(base.speeds).get(target.name, 0)
        bonuses = sources.speeds.get(target.name, [])
    elif target.kind is TargetKind.SENSE:
        base_value = max(
            (s.range for s in base.senses if s.sense_type.lower() == target.name), default=0
        )
        bonuses = sources.senses.get(target.name, [])
        if computed is None:
            computed = result.derived.sense_range(target.name)
    else:
        base_value, bonuses = 0, []

    if computed is not None and target.kind in (TargetKind.SKILL, TargetKind.SAVE):
        base_value = computed - sum(b.value for b in bonuses)

    return breakdown(
        key,
        base_value,
        bonuses,
        adjustments.modifiers_for(key),
        adjustments.override_for(key),
        computed=computed,
    )

"""
Character sheet view.

Combines a derivation pass with sheet-level state the numeric engine does
not know about: skill and saving throw proficiencies, expertise, and the
proficiency-style benefits (``skill_proficiency``, ``skill_half_proficiency``,
``skill_dual_ability``) that the benefit registry deliberately leaves inert.
Every displayed value goes through the override layer.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .benefits import BenefitRegistry, coerce_benefit
from .collector import as_record
from .models import Benefit, DerivationResult, Number, Sense
from .overrides import AttributeAdjustments, FinalAbility, final_ability
from .rules import ABILITIES, ABILITY_ABBREVIATIONS, SKILLS, normalize_skill_name
from .targets import TargetKind, parse_target, target_key


class ProficiencyLevel(str, Enum):
    NONE = "none"
    HALF = "half"
    PROFICIENT = "proficient"
    EXPERTISE = "expertise"


class ProficiencyState(BaseModel):
    """Skill and saving throw proficiencies from the character record."""
    skills: list[str] = Field(default_factory=list)
    expertise: list[str] = Field(default_factory=list)
    saving_throws: list[str] = Field(default_factory=list)


class SkillLine(BaseModel):
    name: str
    ability: str
    proficiency: ProficiencyLevel = ProficiencyLevel.NONE
    value: Number


class SavingThrowLine(BaseModel):
    ability: str
    proficient: bool = False
    value: Number


class CharacterSheetView(BaseModel):
    """Final displayed values, overrides applied."""
    abilities: dict[str, FinalAbility]
    proficiency: Number
    ac: Number
    initiative: Number
    max_hp: Number
    passive_perception: Number
    saving_throws: dict[str, SavingThrowLine]
    skills: dict[str, SkillLine]
    speeds: dict[str, Number]
    senses: list[Sense]


def collect_benefits(
    *record_lists: Iterable[Any],
    registry: BenefitRegistry | None = None,
) -> list[Benefit]:
    """Gather the structured benefits of item and feature records.

    With a ``registry``, benefits whose type it does not handle are left out,
    so a type disabled for the numeric pass is disabled on the sheet too.
    """
    benefits: list[Benefit] = []
    for records in record_lists:
        for entry in records or ():
            record = as_record(entry) if entry is not None else None
            if record is None or not isinstance(record.get("benefits"), (list, tuple)):
                continue
            for raw in record["benefits"]:
                benefit = coerce_benefit(raw)
                if benefit is None:
                    continue
                if registry is not None and benefit.type not in registry:
                    continue
                benefits.append(benefit)
    return benefits


def _ability_name(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    name = ABILITY_ABBREVIATIONS.get(value.strip().upper(), value.strip().lower())
    return name if name in ABILITIES else None


def _benefit_skills(benefit: Benefit) -> list[str]:
    skills = benefit.get("skills")
    if not isinstance(skills, (list, tuple)):
        return []
    return [normalize_skill_name(s) for s in skills if isinstance(s, str) and s]


class SheetBuilder:
    """Build a ``CharacterSheetView`` from one derivation pass."""

    def __init__(
        self,
        result: DerivationResult,
        adjustments: AttributeAdjustments | None = None,
        proficiencies: ProficiencyState | None = None,
        benefits: Iterable[Benefit] = (),
    ) -> None:
        self.result = result
        self.adjustments = adjustments or AttributeAdjustments()
        self.proficiencies = proficiencies or ProficiencyState()
        self.benefits = list(benefits)

    def build(self) -> CharacterSheetView:
        derived = self.result.derived
        abilities = self.final_abilities()
        proficiency = self.final_proficiency()

        return CharacterSheetView(
            abilities=abilities,
            proficiency=proficiency,
            ac=self._resolve(TargetKind.AC, derived.ac),
            initiative=self._resolve(TargetKind.INITIATIVE, derived.initiative),
            max_hp=self._resolve(TargetKind.MAX_HP, derived.max_hp),
            passive_perception=self._resolve(TargetKind.PASSIVE_PERCEPTION, derived.passive_perception),
            saving_throws=self.saving_throws(abilities, proficiency),
            skills=self.skills(abilities, proficiency),
            speeds={
                speed_type: self._resolve(TargetKind.SPEED, distance, speed_type)
                for speed_type, distance in derived.speeds.items()
            },
            senses=[
                Sense(sense_type=s.sense_type, range=self._resolve(TargetKind.SENSE, s.range, s.sense_type))
                for s in derived.senses
            ],
        )

    def final_abilities(self) -> dict[str, FinalAbility]:
        return {
            ability: final_ability(
                self.result.derived.abilities.get(ability, 0),
                self.adjustments.custom_modifiers.get(target_key(TargetKind.ABILITY, ability)),
                self.adjustments.override_for(target_key(TargetKind.ABILITY, ability)),
            )
            for ability in ABILITIES
        }

    def final_proficiency(self) -> Number:
        return self.adjustments.resolve("proficiency", self.result.derived.proficiency)

    def computed_value(self, key: str) -> Number | None:
        """Value of a skill or save key before custom modifiers and overrides.

        This is the number the sheet feeds into the override layer, so an
        inspector given it agrees with the sheet. Other keys return None.
        """
        target = parse_target(key)
        if target.kind is TargetKind.SKILL:
            rows = self._skill_rows(self.final_abilities(), self.final_proficiency())
            row = rows.get(normalize_skill_name(target.name))
            return row[2] if row else None
        if target.kind is TargetKind.SAVE:
            rows = self._save_rows(self.final_abilities(), self.final_proficiency())
            row = rows.get(target.name.lower())
            return row[1] if row else None
        return None

    def saving_throws(
        self, abilities: dict[str, FinalAbility], proficiency: Number
    ) -> dict[str, SavingThrowLine]:
        return {
            ability: SavingThrowLine(
                ability=ability,
                proficient=proficient,
                value=self._resolve(TargetKind.SAVE, computed, ability),
            )
            for ability, (proficient, computed) in self._save_rows(abilities, proficiency).items()
        }

    def skills(self, abilities: dict[str, FinalAbility], proficiency: Number) -> dict[str, SkillLine]:
        return {
            skill: SkillLine(
                name=skill,
                ability=ability,
                proficiency=level,
                value=self._resolve(TargetKind.SKILL, computed, skill),
            )
            for skill, (ability, level, computed) in self._skill_rows(abilities, proficiency).items()
        }

    def _save_rows(
        self, abilities: dict[str, FinalAbility], proficiency: Number
    ) -> dict[str, tuple[bool, Number]]:
        """ability → (proficient, computed value)."""
        proficient = {_ability_name(a) for a in self.proficiencies.saving_throws}
        rows: dict[str, tuple[bool, Number]] = {}
        for ability in ABILITIES:
            engine_bonus = sum(
                v for k, v in self.result.totals.saves.items() if k.lower() == ability
            )
            computed = (
                abilities[ability].modifier
                + (proficiency if ability in proficient else 0)
                + engine_bonus
            )
            rows[ability] = (ability in proficient, computed)
        return rows

    def _skill_rows(
        self, abilities: dict[str, FinalAbility], proficiency: Number
    ) -> dict[str, tuple[str, ProficiencyLevel, Number]]:
        """skill → (ability used, proficiency level, computed value)."""
        proficient = {normalize_skill_name(s) for s in self.proficiencies.skills}
        expertise = {normalize_skill_name(s) for s in self.proficiencies.expertise}
        half_all = False
        half: set[str] = set()
        alternate_abilities: dict[str, set[str]] = {}

        for benefit in self.benefits:
            if benefit.type == "skill_proficiency":
                target = expertise if benefit.get("expertise") is True else proficient
                target.update(_benefit_skills(benefit))
            elif benefit.type == "skill_half_proficiency":
                listed = _benefit_skills(benefit)
                half.update(listed)
                half_all = half_all or not listed
            elif benefit.type == "skill_dual_ability":
                extra = {
                    name for name in map(_ability_name, benefit.get("abilities") or []) if name
                }
                for skill in _benefit_skills(benefit):
                    alternate_abilities.setdefault(skill, set()).update(extra)

        rows: dict[str, tuple[str, ProficiencyLevel, Number]] = {}
        for skill, default_ability in SKILLS.items():
            candidates = {default_ability} | alternate_abilities.get(skill, set())
            # Highest modifier wins; ties keep the skill's own ability
            ability = max(
                sorted(candidates),
                key=lambda a: (abilities[a].modifier, a == default_ability),
            )

            if skill in expertise:
                level, prof_term = ProficiencyLevel.EXPERTISE, proficiency * 2
            elif skill in proficient:
                level, prof_term = ProficiencyLevel.PROFICIENT, proficiency
            elif half_all or skill in half:
                level, prof_term = ProficiencyLevel.HALF, proficiency // 2
            else:
                level, prof_term = ProficiencyLevel.NONE, 0

            engine_bonus = sum(
                v for k, v in self.result.totals.skills.items() if normalize_skill_name(k) == skill
            )
            rows[skill] = (ability, level, abilities[ability].modifier + prof_term + engine_bonus)
        return rows

    def _resolve(self, kind: TargetKind, computed: Number, name: str | None = None) -> Number:
        return self.adjustments.resolve(target_key(kind, name), computed)

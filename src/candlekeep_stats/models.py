"""
Data models for the character stat engine.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from shortuuid import random

from .rules import ABILITIES

Number = int | float


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid stat value
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# (field name, record alias) of the scalar numeric base values
_NUMERIC_BASE_FIELDS: tuple[tuple[str, ...], ...] = (
    ("max_hp", "maxHP"),
    ("proficiency",),
    ("ac_base", "acBase"),
    ("initiative_base", "initiativeBase"),
    ("passive_perception_base", "passivePerceptionBase"),
)


class Sense(BaseModel):
    """A special sense such as darkvision, with its range in feet."""
    model_config = ConfigDict(populate_by_name=True)

    sense_type: str = Field(alias="type")
    range: Number = 0


class BaseAttributes(BaseModel):
    """The character's attribute values before any bonus is applied.

    Construction is lenient: non-numeric values are dropped, so a partially
    corrupt character record still produces a usable snapshot. Ability scores
    may be given nested (``{"abilities": {"charisma": 16}}``) or flat
    (``{"charisma": 16}``); abilities that are not supplied stay absent.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    abilities: dict[str, Number] = Field(default_factory=dict)
    max_hp: Number = Field(default=0, alias="maxHP")
    proficiency: Number = 0
    ac_base: Number = Field(default=0, alias="acBase")
    initiative_base: Number = Field(default=0, alias="initiativeBase")
    passive_perception_base: Number = Field(default=0, alias="passivePerceptionBase")
    senses: list[Sense] = Field(default_factory=list)
    speeds: dict[str, Number] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _clean_record(cls, data: Any) -> Any:
        """Strip values that would fail validation instead of rejecting the record."""
        if not isinstance(data, Mapping):
            return {}
        data = dict(data)

        abilities = data.get("abilities")
        if not isinstance(abilities, Mapping):
            abilities = {name: data[name] for name in ABILITIES if name in data}
        data["abilities"] = {
            str(name): score for name, score in abilities.items() if _is_number(score)
        }

        for keys in _NUMERIC_BASE_FIELDS:
            for key in keys:
                if key in data and not _is_number(data[key]):
                    data.pop(key)

        senses = data.get("senses")
        cleaned_senses = []
        if isinstance(senses, (list, tuple)):
            for sense in senses:
                if isinstance(sense, Sense):
                    cleaned_senses.append(sense)
                    continue
                if not isinstance(sense, Mapping):
                    continue
                sense_type = sense.get("sense_type") or sense.get("type")
                if not isinstance(sense_type, str) or not sense_type:
                    continue
                sense_range = sense.get("range")
                cleaned_senses.append(
                    {"sense_type": sense_type, "range": sense_range if _is_number(sense_range) else 0}
                )
        data["senses"] = cleaned_senses

        speeds = data.get("speeds")
        data["speeds"] = (
            {str(k): v for k, v in speeds.items() if _is_number(v)}
            if isinstance(speeds, Mapping)
            else {}
        )
        return data

    @classmethod
    def coerce(cls, value: Any) -> "BaseAttributes":
        """Return ``value`` as BaseAttributes, building one from a plain record if needed."""
        if isinstance(value, cls):
            return value
        if isinstance(value, BaseModel):
            value = value.model_dump(by_alias=False)
        return cls.model_validate(value if isinstance(value, Mapping) else {})

    def score(self, ability: str) -> Number | None:
        """Base score for an ability, or None when the record does not carry it."""
        return self.abilities.get(ability)


class BonusSource(BaseModel):
    """Provenance of a bonus: what kind of record granted it and its display label."""
    model_config = ConfigDict(frozen=True)

    type: str | None = None
    id: Any = None
    label: str = "Unknown"


class Bonus(BaseModel):
    """A canonical, normalized modifier routed to one derived attribute.

    Attributes:
        target: Dotted target path, e.g. "ability.strength", "ac", "skill.history".
        value: Numeric contribution. Negative values are penalties.
        type: Stacking category label ("untyped", "enhancement", ...).
        source: Where the bonus came from.
    """
    model_config = ConfigDict(frozen=True)

    target: str
    value: Number
    type: str = "untyped"
    source: BonusSource = Field(default_factory=BonusSource)


class Benefit(BaseModel):
    """Structured effect descriptor attached to an item or feature.

    Only ``type`` is fixed; every other field is type-specific and kept as an
    extra attribute, e.g. ``skills`` and ``bonus_source`` for a
    ``skill_modifier_bonus``.
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    type: str

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a type-specific field."""
        return (self.model_extra or {}).get(name, default)


class SourceEntity(BaseModel):
    """An item or feature record as supplied by the data-access layer."""
    model_config = ConfigDict(extra="allow")

    id: Any = None
    name: str | None = None
    label: str | None = None
    title: str | None = None
    bonuses: list[Any] | None = None
    bonus: Any = None
    benefits: list[Any] | None = None

    @property
    def display_label(self) -> str:
        return self.name or self.label or self.title or "Unknown"


class AbilityScoreImprovement(BaseModel):
    """An ability score increase record, e.g. ``{"source": "Background", "abilities": ["CHA: 2"]}``."""
    model_config = ConfigDict(populate_by_name=True)

    source: str = "Unknown"
    source_type: str | None = Field(default=None, alias="sourceType")
    abilities: list[str] = Field(default_factory=list)

    @property
    def label(self) -> str:
        if self.source_type:
            return f"{self.source} - {self.source_type}"
        return self.source


class CustomModifier(BaseModel):
    """User-entered additive adjustment for one attribute."""
    id: str = Field(default_factory=lambda: random(length=8))
    source: str
    value: Number


class BonusTotals(BaseModel):
    """Bonus sums per bucket, before they are added to the base values."""
    model_config = ConfigDict(populate_by_name=True)

    abilities: dict[str, Number] = Field(default_factory=lambda: {a: 0 for a in ABILITIES})
    max_hp: Number = Field(default=0, alias="maxHP")
    ac: Number = 0
    initiative: Number = 0
    passive_perception: Number = Field(default=0, alias="passivePerception")
    skills: dict[str, Number] = Field(default_factory=dict)
    saves: dict[str, Number] = Field(default_factory=dict)
    speeds: dict[str, Number] = Field(default_factory=dict)
    senses: dict[str, Number] = Field(default_factory=dict)


class BonusSources(BaseModel):
    """Contributing bonuses per bucket, in collection order."""
    model_config = ConfigDict(populate_by_name=True)

    abilities: dict[str, list[Bonus]] = Field(default_factory=lambda: {a: [] for a in ABILITIES})
    max_hp: list[Bonus] = Field(default_factory=list, alias="maxHP")
    ac: list[Bonus] = Field(default_factory=list)
    initiative: list[Bonus] = Field(default_factory=list)
    passive_perception: list[Bonus] = Field(default_factory=list, alias="passivePerception")
    skills: dict[str, list[Bonus]] = Field(default_factory=dict)
    saves: dict[str, list[Bonus]] = Field(default_factory=dict)
    speeds: dict[str, list[Bonus]] = Field(default_factory=dict)
    senses: dict[str, list[Bonus]] = Field(default_factory=dict)


class DerivedStats(BaseModel):
    """Final attribute values after all collected bonuses are applied."""
    model_config = ConfigDict(populate_by_name=True)

    abilities: dict[str, Number] = Field(default_factory=dict)
    modifiers: dict[str, int] = Field(default_factory=dict)
    max_hp: Number = Field(default=0, alias="maxHP")
    proficiency: Number = 0
    ac: Number = 0
    initiative: Number = 0
    passive_perception: Number = Field(default=0, alias="passivePerception")
    senses: list[Sense] = Field(default_factory=list)
    speeds: dict[str, Number] = Field(default_factory=dict)

    def sense_range(self, sense_type: str) -> Number:
        for sense in self.senses:
            if sense.sense_type == sense_type:
                return sense.range
        return 0


class DerivationResult(BaseModel):
    """Output of one derivation pass."""
    derived: DerivedStats
    totals: BonusTotals
    sources: BonusSources


__all__ = [
    "Number",
    "Sense",
    "BaseAttributes",
    "BonusSource",
    "Bonus",
    "Benefit",
    "SourceEntity",
    "AbilityScoreImprovement",
    "CustomModifier",
    "BonusTotals",
    "BonusSources",
    "DerivedStats",
    "DerivationResult",
]

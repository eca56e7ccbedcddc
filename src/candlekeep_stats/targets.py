"""
Target path parsing.

A bonus target is a dotted string such as ``ability.strength``, ``ac`` or
``sense.darkvision``. Each string is parsed once into a ``Target`` and every
consumer routes on ``Target.kind`` instead of re-checking string prefixes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class TargetKind(str, Enum):
    """Aggregation buckets a bonus can be routed to."""
    ABILITY = "ability"
    SKILL = "skill"
    SAVE = "save"
    SPEED = "speed"
    SENSE = "sense"
    AC = "ac"
    INITIATIVE = "initiative"
    MAX_HP = "maxHP"
    PASSIVE_PERCEPTION = "passivePerception"
    UNKNOWN = "unknown"

    @property
    def is_named(self) -> bool:
        """Whether targets of this kind carry a name after the dot."""
        return self in _NAMED_KINDS


_NAMED_KINDS = frozenset(
    {TargetKind.ABILITY, TargetKind.SKILL, TargetKind.SAVE, TargetKind.SPEED, TargetKind.SENSE}
)

_SCALAR_TARGETS: dict[str, TargetKind] = {
    "maxHP": TargetKind.MAX_HP,
    "ac": TargetKind.AC,
    "initiative": TargetKind.INITIATIVE,
    "passivePerception": TargetKind.PASSIVE_PERCEPTION,
}

# Speed and sense types are case-insensitive; skill and save names are kept verbatim
_LOWERCASED_KINDS = frozenset({TargetKind.SPEED, TargetKind.SENSE})


@dataclass(frozen=True)
class Target:
    """A parsed target path."""
    kind: TargetKind
    name: str | None = None
    raw: str = ""

    @property
    def key(self) -> str:
        """Canonical attribute key, e.g. ``speed.fly`` for a raw ``speed.Fly``."""
        if self.kind is TargetKind.UNKNOWN:
            return self.raw
        if self.kind.is_named:
            return f"{self.kind.value}.{self.name}"
        return self.kind.value


def parse_target(target: Any) -> Target:
    """Parse a raw target string.

    Anything that is not a string, or does not match a known shape, parses
    to ``TargetKind.UNKNOWN``. A prefixed target with an empty name
    (``"skill."``) is also unknown.
    """
    if not isinstance(target, str):
        return Target(TargetKind.UNKNOWN, raw=repr(target))

    scalar = _SCALAR_TARGETS.get(target)
    if scalar is not None:
        return Target(scalar, raw=target)

    prefix, dot, name = target.partition(".")
    if not dot:
        return Target(TargetKind.UNKNOWN, raw=target)

    try:
        kind = TargetKind(prefix)
    except ValueError:
        return Target(TargetKind.UNKNOWN, raw=target)
    if not kind.is_named:
        return Target(TargetKind.UNKNOWN, raw=target)

    if kind in _LOWERCASED_KINDS:
        name = name.lower()
    if not name:
        return Target(TargetKind.UNKNOWN, raw=target)
    return Target(kind, name=name, raw=target)


def target_key(kind: TargetKind, name: str | None = None) -> str:
    """Build an attribute key from its parts (``target_key(TargetKind.SKILL, "history")``)."""
    return Target(kind, name=name).key

"""
Fixed D&D 5e rule catalog used by the stat engine.

Ability names, abbreviations and the skill list live here so every other
module agrees on one spelling.
"""

from __future__ import annotations

import math

# Ability order matches the character sheet layout
ABILITIES: tuple[str, ...] = (
    "strength",
    "dexterity",
    "constitution",
    "intelligence",
    "wisdom",
    "charisma",
)

# Ability abbreviation → full name
ABILITY_ABBREVIATIONS: dict[str, str] = {
    "STR": "strength",
    "DEX": "dexterity",
    "CON": "constitution",
    "INT": "intelligence",
    "WIS": "wisdom",
    "CHA": "charisma",
}

# SRD skill → governing ability
SKILLS: dict[str, str] = {
    "acrobatics": "dexterity",
    "animal_handling": "wisdom",
    "arcana": "intelligence",
    "athletics": "strength",
    "deception": "charisma",
    "history": "intelligence",
    "insight": "wisdom",
    "intimidation": "charisma",
    "investigation": "intelligence",
    "medicine": "wisdom",
    "nature": "intelligence",
    "perception": "wisdom",
    "performance": "charisma",
    "persuasion": "charisma",
    "religion": "intelligence",
    "sleight_of_hand": "dexterity",
    "stealth": "dexterity",
    "survival": "wisdom",
}


def ability_modifier(score: int | float) -> int:
    """Calculate the ability modifier for a score."""
    return math.floor((score - 10) / 2)


def proficiency_bonus_for_level(level: int) -> int:
    """Proficiency bonus by total character level (+2 at 1-4, +3 at 5-8, ...)."""
    return math.ceil(max(level, 1) / 4) + 1


def normalize_skill_name(name: str) -> str:
    """Normalize a skill label ("Sleight of Hand", "animal-handling") to a SKILLS key."""
    return name.strip().lower().replace("-", "_").replace(" ", "_")

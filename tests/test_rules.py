"""
Tests for the rule catalog and target path parsing.
"""

import pytest

from candlekeep_stats.rules import (
    ABILITIES,
    ABILITY_ABBREVIATIONS,
    SKILLS,
    ability_modifier,
    normalize_skill_name,
    proficiency_bonus_for_level,
)
from candlekeep_stats.targets import TargetKind, parse_target, target_key


class TestAbilityModifier:

    @pytest.mark.parametrize("score,expected", [
        (1, -5), (8, -1), (9, -1), (10, 0), (11, 0), (14, 2), (18, 4), (20, 5), (30, 10),
    ])
    def test_modifier_table(self, score, expected):
        assert ability_modifier(score) == expected

    def test_fractional_score_rounds_down(self):
        assert ability_modifier(13.5) == 1


class TestProficiencyBonus:

    @pytest.mark.parametrize("level,expected", [(1, 2), (4, 2), (5, 3), (9, 4), (13, 5), (17, 6), (20, 6)])
    def test_progression(self, level, expected):
        assert proficiency_bonus_for_level(level) == expected

    def test_level_zero_treated_as_one(self):
        assert proficiency_bonus_for_level(0) == 2


class TestCatalog:

    def test_abbreviations_cover_every_ability(self):
        assert set(ABILITY_ABBREVIATIONS.values()) == set(ABILITIES)

    def test_skills_use_known_abilities(self):
        assert len(SKILLS) == 18
        assert set(SKILLS.values()) <= set(ABILITIES)

    def test_normalize_skill_name(self):
        assert normalize_skill_name("Sleight of Hand") == "sleight_of_hand"
        assert normalize_skill_name(" animal-handling ") == "animal_handling"


class TestParseTarget:

    def test_scalar_targets(self):
        assert parse_target("ac").kind is TargetKind.AC
        assert parse_target("maxHP").kind is TargetKind.MAX_HP
        assert parse_target("initiative").kind is TargetKind.INITIATIVE
        assert parse_target("passivePerception").kind is TargetKind.PASSIVE_PERCEPTION

    def test_named_target(self):
        target = parse_target("ability.strength")
        assert target.kind is TargetKind.ABILITY
        assert target.name == "strength"
        assert target.key == "ability.strength"

    def test_speed_and_sense_names_lowercased(self):
        assert parse_target("speed.Fly").key == "speed.fly"
        assert parse_target("sense.DarkVision").name == "darkvision"

    def test_skill_names_kept_verbatim(self):
        assert parse_target("skill.Religion").name == "Religion"

    @pytest.mark.parametrize("raw", ["hp", "skill.", "ac.bonus", "foo.bar", "", "maxhp"])
    def test_unknown_shapes(self, raw):
        assert parse_target(raw).kind is TargetKind.UNKNOWN

    def test_non_string_is_unknown(self):
        assert parse_target(42).kind is TargetKind.UNKNOWN

    def test_target_key(self):
        assert target_key(TargetKind.SKILL, "history") == "skill.history"
        assert target_key(TargetKind.MAX_HP) == "maxHP"

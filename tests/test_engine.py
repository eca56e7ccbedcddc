"""
Tests for the StatEngine facade.
"""

import pytest

from candlekeep_stats.benefits import default_registry
from candlekeep_stats.config import EngineConfig
from candlekeep_stats.diagnostics import DiagnosticKind, StrictModeError
from candlekeep_stats.engine import StatEngine
from candlekeep_stats.models import Bonus
from candlekeep_stats.overrides import AttributeAdjustments
from candlekeep_stats.sheet import ProficiencyLevel, ProficiencyState


@pytest.fixture
def engine() -> StatEngine:
    return StatEngine()


@pytest.fixture
def gear() -> list[dict]:
    return [
        {"id": 1, "name": "Shield", "benefits": [{"type": "ac_bonus", "value": 2, "bonus_type": "shield"}]},
        {"id": 2, "name": "Boots of Striding", "bonuses": [{"target": "speed.walk", "value": 10}]},
        {"id": 3, "name": "Goggles of Night", "bonuses": [{"target": "sense.darkvision", "value": 60}]},
    ]


class TestEvaluate:

    def test_full_pass(self, engine, cleric_base, scholar_of_yore, gear):
        evaluation = engine.evaluate(
            cleric_base,
            items=gear,
            features=[scholar_of_yore],
            overrides=[{"target": "initiative", "value": 1}],
            ability_improvements=[{"source": "Background", "sourceType": "Acolyte", "abilities": ["WIS: 1"]}],
        )
        derived = evaluation.result.derived

        assert derived.ac == 18
        assert derived.speeds == {"walk": 40}
        assert derived.sense_range("darkvision") == 60
        assert derived.initiative == 2
        assert derived.abilities["wisdom"] == 17
        assert evaluation.result.totals.skills == {"religion": 3, "history": 3}
        assert evaluation.diagnostics == []

    def test_ability_improvement_not_seen_by_benefits(self, engine, scholar_of_yore):
        evaluation = engine.evaluate(
            {"charisma": 16},
            features=[scholar_of_yore],
            ability_improvements=[{"source": "Feat", "abilities": ["CHA: 2"]}],
        )
        assert evaluation.result.derived.abilities["charisma"] == 18
        assert evaluation.result.totals.skills["religion"] == 3

    def test_diagnostics_reported(self, engine, cleric_base):
        evaluation = engine.evaluate(
            cleric_base,
            items=[{"name": "Odd", "bonuses": [{"target": "luck", "value": 1}], "benefits": [{"type": "wish"}]}],
        )
        assert [d.kind for d in evaluation.diagnostics] == [
            DiagnosticKind.UNKNOWN_BENEFIT,
            DiagnosticKind.UNKNOWN_TARGET,
        ]

    def test_evaluations_are_independent(self, engine, cleric_base, gear):
        first = engine.evaluate(cleric_base, items=gear)
        second = engine.evaluate(cleric_base, items=gear)
        assert first == second

    def test_generator_inputs(self, engine, cleric_base, gear):
        evaluation = engine.evaluate(cleric_base, items=(g for g in gear))
        assert evaluation.result.derived.ac == 18
        assert [b.type for b in evaluation.benefits] == ["ac_bonus"]

    def test_bonuses_in_collection_order(self, engine, cleric_base, gear):
        evaluation = engine.evaluate(cleric_base, items=gear)
        assert evaluation.bonuses == [
            Bonus(target="ac", value=2, type="shield", source={"type": "item", "id": 1, "label": "Shield"}),
            Bonus(target="speed.walk", value=10, source={"type": "item", "id": 2, "label": "Boots of Striding"}),
            Bonus(target="sense.darkvision", value=60, source={"type": "item", "id": 3, "label": "Goggles of Night"}),
        ]


class TestConfiguration:

    def test_strict_raises(self, cleric_base):
        engine = StatEngine(config=EngineConfig(strict=True))
        with pytest.raises(StrictModeError) as exc:
            engine.evaluate(cleric_base, items=[{"name": "Odd", "benefits": [{"type": "wish"}]}])
        assert exc.value.diagnostic.kind is DiagnosticKind.UNKNOWN_BENEFIT

    def test_strict_clean_input_passes(self, cleric_base, gear):
        engine = StatEngine(config=EngineConfig(strict=True))
        assert engine.evaluate(cleric_base, items=gear).result.derived.ac == 18

    def test_disabled_benefit_type(self, cleric_base, gear):
        registry = default_registry()
        engine = StatEngine(registry=registry, config=EngineConfig(disabled_benefit_types=["ac_bonus"]))

        evaluation = engine.evaluate(cleric_base, items=gear)
        assert evaluation.result.derived.ac == 16
        assert evaluation.diagnostics[0].kind is DiagnosticKind.UNKNOWN_BENEFIT
        assert "ac_bonus" in registry

    def test_disabled_benefit_type_skipped_on_sheet(self, cleric_base):
        engine = StatEngine(config=EngineConfig(disabled_benefit_types=["skill_proficiency"]))
        feature = {"name": "Skilled", "benefits": [{"type": "skill_proficiency", "skills": ["arcana"]}]}

        evaluation = engine.evaluate(cleric_base, features=[feature])
        sheet = engine.sheet(evaluation)

        assert [d.kind for d in evaluation.diagnostics] == [DiagnosticKind.UNKNOWN_BENEFIT]
        assert evaluation.benefits == []
        assert sheet.skills["arcana"].proficiency is ProficiencyLevel.NONE
        assert sheet.skills["arcana"].value == 1

    def test_custom_registry(self, cleric_base):
        registry = default_registry()
        registry.register_handler(
            "initiative_bonus",
            lambda benefit, base, source: [Bonus(target="initiative", value=benefit.get("value"), source=source)],
        )
        evaluation = StatEngine(registry).evaluate(
            cleric_base, features=[{"name": "Alert", "benefits": [{"type": "initiative_bonus", "value": 5}]}]
        )
        assert evaluation.result.derived.initiative == 6

    def test_from_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CANDLEKEEP_STATS_STRICT", raising=False)
        path = tmp_path / "engine.yaml"
        path.write_text("strict: true\n")
        assert StatEngine.from_config(path).config.strict is True


class TestSheetAndInspect:

    def test_sheet(self, engine, cleric_base, scholar_of_yore, gear):
        evaluation = engine.evaluate(cleric_base, items=gear, features=[scholar_of_yore])
        adjustments = AttributeAdjustments().add_custom_modifier("ac", "Shield of Faith", 2)

        sheet = engine.sheet(evaluation, adjustments, ProficiencyState(skills=["religion"]))
        assert sheet.ac == 20
        assert sheet.skills["religion"].value == 1 + 3 + 3

    def test_inspect(self, engine, cleric_base, gear):
        evaluation = engine.evaluate(cleric_base, items=gear)
        view = engine.inspect(evaluation, "ac")
        assert view.base_value == 16
        assert [(g.label, g.total) for g in view.groups] == [("Shield", 2)]
        assert view.final_value == 18

    def test_inspect_skill_matches_sheet(self, engine, cleric_base, scholar_of_yore):
        evaluation = engine.evaluate(cleric_base, features=[scholar_of_yore])
        adjustments = AttributeAdjustments().add_custom_modifier("skill.religion", "Library access", 1)
        proficiencies = ProficiencyState(skills=["religion"])

        sheet = engine.sheet(evaluation, adjustments, proficiencies)
        view = engine.inspect(evaluation, "skill.Religion", adjustments, proficiencies)

        assert sheet.skills["religion"].value == 8
        assert view.key == "skill.religion"
        assert view.final_value == sheet.skills["religion"].value
        assert view.base_value == 4
        assert view.bonus_total == 3
        assert view.custom_modifier_total == 1
        assert [g.label for g in view.groups] == ["Scholar of Yore"]

    def test_inspect_save_matches_sheet(self, engine, cleric_base):
        evaluation = engine.evaluate(
            cleric_base, items=[{"name": "Cloak of Protection", "bonuses": [{"target": "save.wisdom", "value": 1}]}]
        )
        proficiencies = ProficiencyState(saving_throws=["WIS"])

        sheet = engine.sheet(evaluation, proficiencies=proficiencies)
        view = engine.inspect(evaluation, "save.wisdom", proficiencies=proficiencies)

        assert sheet.saving_throws["wisdom"].value == 7
        assert view.final_value == 7
        assert view.base_value == 6

    def test_inspect_skill_override_matches_sheet(self, engine, cleric_base):
        evaluation = engine.evaluate(cleric_base)
        adjustments = AttributeAdjustments().set_override("skill.stealth", 10)

        view = engine.inspect(evaluation, "skill.stealth", adjustments)
        assert view.computed_value == 1
        assert view.final_value == engine.sheet(evaluation, adjustments).skills["stealth"].value == 10

"""
StatEngine: the entry point a character sheet calls once per render.

Runs collect → derive on fresh inputs every time; nothing is cached between
calls, so the result is always consistent with the records passed in.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from .benefits import BenefitRegistry, default_registry
from .collector import BonusCollector
from .config import EngineConfig, load_config
from .deriver import derive_stats
from .diagnostics import Diagnostic, Diagnostics
from .models import BaseAttributes, Benefit, Bonus, DerivationResult
from .overrides import AttributeAdjustments, StatBreakdown, inspect_attribute
from .sheet import CharacterSheetView, ProficiencyState, SheetBuilder, collect_benefits

logger = logging.getLogger("candlekeep-stats")


class EngineResult(BaseModel):
    """Everything one evaluation produced."""
    base: BaseAttributes
    bonuses: list[Bonus]
    result: DerivationResult
    benefits: list[Benefit] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class StatEngine:
    """Collects bonuses from a character's records and derives final stats.

    Args:
        registry: Benefit registry. Defaults to the built-in handlers.
        config: Engine settings. Defaults to ``EngineConfig()``.
    """

    def __init__(
        self,
        registry: BenefitRegistry | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.registry = registry if registry is not None else default_registry()
        if self.config.disabled_benefit_types:
            # Leave the caller's registry untouched
            self.registry = self.registry.copy()
        for benefit_type in self.config.disabled_benefit_types:
            if self.registry.unregister_handler(benefit_type) is not None:
                logger.info(f"Benefit type '{benefit_type}' disabled by configuration")
        self.collector = BonusCollector(self.registry)

    @classmethod
    def from_config(cls, path: Path | str | None = None, registry: BenefitRegistry | None = None) -> "StatEngine":
        return cls(registry=registry, config=load_config(path))

    def new_diagnostics(self) -> Diagnostics:
        return Diagnostics(
            strict=self.config.strict,
            unknown_benefit_level=self.config.unknown_benefit_level,
        )

    def evaluate(
        self,
        base: BaseAttributes | Any,
        items: Iterable[Any] = (),
        features: Iterable[Any] = (),
        overrides: Iterable[Any] = (),
        ability_improvements: Iterable[Any] = (),
    ) -> EngineResult:
        """Collect and derive in one pass.

        Raises:
            StrictModeError: Only when the engine is configured strict and an
                input had to be dropped.
        """
        base = BaseAttributes.coerce(base)
        items = list(items or ())
        features = list(features or ())
        diagnostics = self.new_diagnostics()

        bonuses = self.collector.collect(
            items=items,
            features=features,
            overrides=overrides,
            base_attributes=base,
            ability_improvements=ability_improvements,
            diagnostics=diagnostics,
        )
        result = derive_stats(base, bonuses, diagnostics)

        if diagnostics.entries:
            logger.debug(f"Evaluation dropped {len(diagnostics)} inputs")
        return EngineResult(
            base=base,
            bonuses=bonuses,
            result=result,
            benefits=collect_benefits(items, features, registry=self.registry),
            diagnostics=list(diagnostics.entries),
        )

    @staticmethod
    def sheet(
        evaluation: EngineResult,
        adjustments: AttributeAdjustments | None = None,
        proficiencies: ProficiencyState | None = None,
    ) -> CharacterSheetView:
        """Final displayed values for an evaluation, overrides applied."""
        return SheetBuilder(
            evaluation.result,
            adjustments=adjustments,
            proficiencies=proficiencies,
            benefits=evaluation.benefits,
        ).build()

    @staticmethod
    def inspect(
        evaluation: EngineResult,
        key: str,
        adjustments: AttributeAdjustments | None = None,
        proficiencies: ProficiencyState | None = None,
    ) -> StatBreakdown:
        """Per-source breakdown of one attribute, for inspector views.

        Skill and save keys are computed the way the sheet computes them, so
        the inspector and the sheet show the same final value.
        """
        builder = SheetBuilder(
            evaluation.result,
            adjustments=adjustments,
            proficiencies=proficiencies,
            benefits=evaluation.benefits,
        )
        return inspect_attribute(
            key,
            evaluation.base,
            evaluation.result,
            adjustments,
            computed=builder.computed_value(key),
        )

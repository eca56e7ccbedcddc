"""
candlekeep-stats - derives a D&D character's final attributes from base
values, equipped items, features and manual adjustments.
"""

from .benefits import BenefitRegistry, default_registry, resolve_modifier_value
from .collector import BonusCollector, collect_bonuses, convert_ability_improvements
from .config import ConfigError, EngineConfig, load_config
from .deriver import derive_stats
from .diagnostics import Diagnostic, DiagnosticKind, Diagnostics, StatEngineError, StrictModeError
from .engine import EngineResult, StatEngine
from .models import *
from .normalizer import normalize_bonus
from .overrides import AttributeAdjustments, StatBreakdown, final_value, inspect_attribute
from .sheet import CharacterSheetView, ProficiencyState, SheetBuilder

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("candlekeep-stats")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable
__all__ = [
    "StatEngine",
    "EngineResult",
    "BenefitRegistry",
    "BonusCollector",
    "derive_stats",
    "normalize_bonus",
    "collect_bonuses",
]

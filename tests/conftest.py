"""
Pytest configuration and fixtures for candlekeep-stats tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path to allow importing candlekeep_stats
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from candlekeep_stats.models import BaseAttributes


@pytest.fixture
def cleric_base() -> BaseAttributes:
    """A level 5 cleric with darkvision and a walking speed."""
    return BaseAttributes(
        abilities={
            "strength": 10,
            "dexterity": 12,
            "constitution": 14,
            "intelligence": 13,
            "wisdom": 16,
            "charisma": 16,
        },
        max_hp=38,
        proficiency=3,
        ac_base=16,
        initiative_base=1,
        passive_perception_base=13,
        senses=[{"type": "darkvision", "range": 60}],
        speeds={"walk": 30},
    )


@pytest.fixture
def scholar_of_yore() -> dict:
    """Feature granting the charisma modifier to Religion and History checks."""
    return {
        "id": "feat-scholar",
        "name": "Scholar of Yore",
        "benefits": [
            {
                "type": "skill_modifier_bonus",
                "skills": ["religion", "history"],
                "bonus_source": "charisma_modifier",
            }
        ],
    }

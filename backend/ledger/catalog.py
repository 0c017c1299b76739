"""
Category catalog.

Categories are only ever added. The reward multiplier is a fixed mapping
on the category name; any existing category not listed below earns x1.
"""

from typing import Dict

DEFAULT_CATEGORIES = ("research", "market_analysis", "technical_review")

CATEGORY_MULTIPLIERS: Dict[str, int] = {
    "technical_review": 2,
    "market_analysis": 3,
}

DEFAULT_MULTIPLIER = 1


def reward_multiplier(name: str) -> int:
    """Multiplier applied to the base reward for a category."""
    return CATEGORY_MULTIPLIERS.get(name, DEFAULT_MULTIPLIER)


def compute_reward(base_reward: int, category: str) -> int:
    return base_reward * reward_multiplier(category)

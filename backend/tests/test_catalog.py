"""
Category catalog unit tests.
"""

from ledger.catalog import (
    DEFAULT_CATEGORIES,
    compute_reward,
    reward_multiplier,
)


class TestRewardMultiplier:

    def test_special_cased_categories(self):
        assert reward_multiplier("technical_review") == 2
        assert reward_multiplier("market_analysis") == 3

    def test_research_uses_default(self):
        assert reward_multiplier("research") == 1

    def test_unlisted_category_uses_default(self):
        assert reward_multiplier("satellite_imagery") == 1

    def test_compute_reward(self):
        assert compute_reward(100, "research") == 100
        assert compute_reward(100, "technical_review") == 200
        assert compute_reward(100, "market_analysis") == 300

    def test_seeded_categories(self):
        assert set(DEFAULT_CATEGORIES) == {"research", "market_analysis", "technical_review"}

"""Tests for the fit decision policy"""
from fitmatch.recommendation.models import RecommendationItem
from fitmatch.recommendation.scoring import (
    FIT_REASON_LOW_FIT,
    FIT_REASON_NO_CANDIDATES,
    FIT_REASON_SOFTWARE_FIT,
    decide_fit_decision,
)


def _item(score, solvable=True, name="Tool"):
    return RecommendationItem(
        software_id=name.lower(),
        name=name,
        why_recommended="fits",
        solvable=solvable,
        score=score,
    )


class TestDecideFitDecision:
    """Tests for decide_fit_decision"""

    def test_no_items_means_custom_build(self):
        result = decide_fit_decision([])
        assert result.fit_decision == "custom_build"
        assert result.fit_reason == FIT_REASON_NO_CANDIDATES

    def test_top_score_below_threshold(self):
        result = decide_fit_decision([_item(39), _item(30)])
        assert result.fit_decision == "custom_build"
        assert result.fit_reason == FIT_REASON_LOW_FIT

    def test_top_score_at_threshold(self):
        result = decide_fit_decision([_item(40)])
        assert result.fit_decision == "software_fit"
        assert result.fit_reason == FIT_REASON_SOFTWARE_FIT

    def test_high_score_but_nothing_solvable(self):
        result = decide_fit_decision([_item(70, solvable=False), _item(50, solvable=False)])
        assert result.fit_decision == "custom_build"
        assert result.fit_reason == FIT_REASON_LOW_FIT

    def test_one_solvable_item_is_enough(self):
        result = decide_fit_decision([_item(70, solvable=False), _item(20, solvable=True)])
        assert result.fit_decision == "software_fit"

    def test_uses_first_item_as_top(self):
        """Items arrive ranked; only the first score is compared"""
        result = decide_fit_decision([_item(10), _item(90)])
        assert result.fit_decision == "custom_build"

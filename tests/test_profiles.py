"""Tests for profile intake validation"""
import pytest
from pydantic import ValidationError

from fitmatch.profiles import ProfileDraft, ProfileInput

from conftest import make_profile


class TestProfileInput:
    """Tests for completed profiles"""

    def test_strips_text_and_list_entries(self):
        profile = make_profile(full_name="  Kim  ", pain_points=["  late invoices ", "", "   "])
        assert profile.full_name == "Kim"
        assert profile.pain_points == ["late invoices"]

    def test_blank_main_pain_detail_becomes_none(self):
        assert make_profile(main_pain_detail="   ").main_pain_detail is None
        assert make_profile(main_pain_detail=" late payroll ").main_pain_detail == "late payroll"

    def test_requires_a_pain_point(self):
        with pytest.raises(ValidationError):
            make_profile(pain_points=[])

    def test_requires_a_goal(self):
        with pytest.raises(ValidationError):
            make_profile(goals=["   "])

    def test_list_size_limit(self):
        with pytest.raises(ValidationError):
            make_profile(current_tools=[f"tool {i}" for i in range(21)])

    def test_team_size_bounds(self):
        with pytest.raises(ValidationError):
            make_profile(team_size=0)
        with pytest.raises(ValidationError):
            make_profile(team_size=10001)

    def test_main_pain_detail_length_limit(self):
        with pytest.raises(ValidationError):
            make_profile(main_pain_detail="x" * 2001)

    def test_short_text_fields_rejected(self):
        with pytest.raises(ValidationError):
            make_profile(job_title=" a ")

    def test_snapshot_is_plain_json(self):
        snapshot = make_profile().to_snapshot()
        assert snapshot["team_size"] == 10
        assert snapshot["goals"] == ["faster close"]
        assert ProfileInput.model_validate(snapshot) == make_profile()


class TestProfileDraft:
    """Tests for drafts saved mid-onboarding"""

    def test_draft_allows_empty_lists(self):
        draft = ProfileDraft(
            full_name="Kim",
            job_title="Accountant",
            industry="Education",
            team_size=3,
            budget_preference="paid plan",
            deadline_preference="next quarter",
        )
        assert draft.pain_points == []
        assert draft.goals == []

    def test_draft_cannot_become_input_without_goals(self):
        draft = ProfileDraft(
            full_name="Kim",
            job_title="Accountant",
            industry="Education",
            team_size=3,
            pain_points=["late invoices"],
            budget_preference="paid plan",
            deadline_preference="next quarter",
        )
        with pytest.raises(ValidationError):
            ProfileInput.model_validate(draft.to_snapshot())

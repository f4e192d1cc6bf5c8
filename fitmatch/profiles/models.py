"""Profile intake models

A profile arrives from the onboarding form. Drafts may be saved with empty
pain point / goal lists; a completed profile needs at least one of each.
"""
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

MAX_LIST_ITEMS = 20
MAX_MAIN_PAIN_DETAIL = 2000


def _clean_list(values: List[str]) -> List[str]:
    cleaned = [value.strip() for value in values if value and value.strip()]
    if len(cleaned) > MAX_LIST_ITEMS:
        raise ValueError(f"at most {MAX_LIST_ITEMS} entries allowed")
    return cleaned


class ProfileDraft(BaseModel):
    """Onboarding intake as saved mid-flow"""
    full_name: str = Field(..., min_length=2, description="User's full name")
    job_title: str = Field(..., min_length=2, description="Job title, free text or an onboarding option")
    industry: str = Field(..., min_length=2, description="Industry, free text or an onboarding option")
    team_size: int = Field(..., ge=1, le=10000, description="Number of people on the team")
    pain_points: List[str] = Field(default_factory=list, description="Ordered short pain phrases")
    main_pain_detail: Optional[str] = Field(
        None, max_length=MAX_MAIN_PAIN_DETAIL, description="Free-text description of the main pain"
    )
    goals: List[str] = Field(default_factory=list, description="Goals the user wants to reach")
    current_tools: List[str] = Field(default_factory=list, description="Tools already in use")
    budget_preference: str = Field(..., min_length=2, description="Budget bucket label")
    deadline_preference: str = Field(..., min_length=2, description="Deadline bucket label")

    @field_validator(
        "full_name", "job_title", "industry", "budget_preference", "deadline_preference",
        mode="before",
    )
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("main_pain_detail", mode="before")
    @classmethod
    def blank_detail_is_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("pain_points", "goals", "current_tools")
    @classmethod
    def clean_lists(cls, values: List[str]) -> List[str]:
        return _clean_list(values)

    def to_snapshot(self) -> dict:
        """JSON-ready dict used for fingerprints and stored snapshots"""
        return self.model_dump(mode="json")


class ProfileInput(ProfileDraft):
    """Completed onboarding profile, the input of a recommendation run"""

    @model_validator(mode="after")
    def require_pains_and_goals(self):
        if not self.pain_points:
            raise ValueError("at least one pain point is required")
        if not self.goals:
            raise ValueError("at least one goal is required")
        return self

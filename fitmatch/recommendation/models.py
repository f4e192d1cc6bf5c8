"""Recommendation models"""
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

FitDecision = Literal["software_fit", "custom_build"]
ConfidenceLevel = Literal["low", "medium", "high"]
NeedLevel = Literal["high", "medium", "low"]
ProblemTypeCode = Literal["A", "B", "C", "D", "E"]


class SoftwareCatalogItem(BaseModel):
    """Catalog entry owned by the catalog management process"""
    id: str
    name: str
    category: str
    target_roles: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    description: str = ""
    pricing_model: Optional[str] = None
    website_url: Optional[str] = None
    key_features: List[str] = Field(default_factory=list)
    pros_template: List[str] = Field(default_factory=list)
    cons_template: List[str] = Field(default_factory=list)
    is_active: bool = True


class ScoredCandidate(BaseModel):
    """Catalog item paired with its score for one profile"""
    item: SoftwareCatalogItem
    score: int = Field(..., ge=0)
    reasons: List[str] = Field(default_factory=list, description="Scoring contributions in order")
    detail_match_count: int = Field(0, ge=0, description="Main pain detail signals found in the item")


class RecommendationItem(BaseModel):
    """Single ranked recommendation shown to the user"""
    software_id: str
    name: str
    why_recommended: str
    key_features: List[str] = Field(default_factory=list)
    pros: List[str] = Field(default_factory=list)
    cautions: List[str] = Field(default_factory=list)
    solvable: bool
    score: int = Field(..., ge=0)


class FitDecisionResult(BaseModel):
    """Outcome of the fit decision policy"""
    fit_decision: FitDecision
    fit_reason: str


class PainAnalysis(BaseModel):
    """Diagnosis of one pain point"""
    pain: str
    analysis: str
    impact: str


class GoalRefinement(BaseModel):
    """A goal restated as something measurable"""
    goal: str
    refined_goal: str
    success_metric: str


class ProblemType(BaseModel):
    """Problem category A-E with the rule that put it there"""
    code: ProblemTypeCode
    title: str
    rationale: str


class CapabilityGap(BaseModel):
    """One requirement and how much of it the top items cover"""
    item: str
    need_level: NeedLevel
    software_coverage: int = Field(..., ge=0, le=100)
    gap: int = Field(..., ge=0, le=100)


class StructuralCheck(BaseModel):
    question: str
    yes: bool
    reason: str


class StructuralConstraintTest(BaseModel):
    checks: List[StructuralCheck] = Field(default_factory=list)
    yes_count: int = 0
    has_structural_limit: bool = False


class RoiEstimate(BaseModel):
    """Time lost to the problem against a rough custom build price"""
    weekly_hours_wasted: float
    monthly_hours_wasted: float
    hourly_value_krw: int
    monthly_loss_krw: int
    estimated_custom_build_cost_krw: int
    payback_months: float
    roi_turns_within_6_months: bool


class FrameworkDecision(BaseModel):
    custom_build: bool
    reason: str


class CustomBuildFramework(BaseModel):
    """Build-vs-buy worksheet; informational, the fit decision stays with the scores"""
    problem_typing: List[ProblemType] = Field(default_factory=list)
    capability_gap_matrix: List[CapabilityGap] = Field(default_factory=list)
    gap_average: float = 0.0
    structural_constraint_test: StructuralConstraintTest = Field(default_factory=StructuralConstraintTest)
    roi_estimate: RoiEstimate
    final_decision: FrameworkDecision


class FeatureProposal(BaseModel):
    name: str
    description: str
    why_needed: str


class ProactiveInsight(BaseModel):
    """A likely problem the user did not mention"""
    problem: str
    reasoning: str
    sw_solution: str


class FitAnalysis(BaseModel):
    """Narrative analysis stored next to the fit decision"""
    user_identity: str
    pain_analysis: List[PainAnalysis] = Field(default_factory=list)
    goal_refinements: List[GoalRefinement] = Field(default_factory=list)
    recommendation: str
    confidence_level: ConfidenceLevel = "low"
    custom_build_framework: Optional[CustomBuildFramework] = None
    recommended_features: List[str] = Field(default_factory=list)
    structured_features: List[FeatureProposal] = Field(default_factory=list)
    proactive_insights: List[ProactiveInsight] = Field(default_factory=list)
    ai_enhanced: bool = False


class RecommendationResult(BaseModel):
    """Complete recommendation output"""
    recommendation_id: Optional[str] = None
    profile_fingerprint: str
    candidate_ids: List[str] = Field(default_factory=list)
    items: List[RecommendationItem] = Field(default_factory=list)
    fit_decision: FitDecision
    fit_reason: str
    fit_analysis: Optional[FitAnalysis] = None
    cached: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RecommendationRecord(BaseModel):
    """Persisted recommendation row"""
    id: str
    user_id: str
    profile_fingerprint: str
    profile_snapshot: dict
    candidate_ids: List[str] = Field(default_factory=list)
    items: List[RecommendationItem] = Field(default_factory=list)
    fit_decision: FitDecision
    fit_reason: str = ""
    fit_analysis: Optional[FitAnalysis] = None
    ai_enhanced: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_result(self, cached: bool = False) -> RecommendationResult:
        return RecommendationResult(
            recommendation_id=self.id,
            profile_fingerprint=self.profile_fingerprint,
            candidate_ids=self.candidate_ids,
            items=self.items,
            fit_decision=self.fit_decision,
            fit_reason=self.fit_reason,
            fit_analysis=self.fit_analysis,
            cached=cached,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

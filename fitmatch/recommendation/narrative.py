"""Narrative enrichment for ranked candidates

Turns the top scored candidates into user-facing prose. The live generator
asks a chat model for JSON and validates it; anything short of a valid
answer is replaced by the template generator's output. Scores and ranking
always come from the scorer, never from the model.
"""
import json
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from .analysis import build_deterministic_analysis
from .models import (
    FitAnalysis,
    FitDecision,
    GoalRefinement,
    PainAnalysis,
    RecommendationItem,
    ScoredCandidate,
)
from .scoring import SOLVABLE_SCORE_THRESHOLD
from .terms import normalize, split_tokens, tokenize, unique
from ..profiles.models import ProfileInput
from ..utils import config, logger

TOP_ITEM_COUNT = 3
DEFAULT_PRO = "도입이 빠르고 초기 운영 리스크가 낮습니다."
DEFAULT_CAUTION = "세부 업무 흐름에 따라 추가 설정이나 프로세스 정리가 필요할 수 있습니다."

# Filler words ignored when checking prose against the main pain
PAIN_GUARD_STOPWORDS = frozenset([
    "업무", "관리", "문제", "불편", "어려움", "현재", "사용", "필요", "처리", "작업",
    "기능", "도구", "서비스", "시스템", "회사", "팀", "상황", "방식", "도입", "운영",
])


# --- LLM Output Schema ---

class AiRecommendationItem(BaseModel):
    """Model output for one candidate"""
    softwareId: Optional[str] = None
    name: Optional[str] = None
    whyRecommended: str
    keyFeatures: List[str] = Field(..., min_length=3, max_length=5)
    pros: List[str] = Field(..., min_length=1, max_length=5)
    cautions: List[str] = Field(..., min_length=1, max_length=5)
    solvable: bool


class AiRecommendationResponse(BaseModel):
    items: List[AiRecommendationItem]


class AiPainAnalysis(BaseModel):
    pain: str
    analysis: str
    impact: str


class AiGoalRefinement(BaseModel):
    goal: str
    refinedGoal: str
    successMetric: str


class AiFitAnalysis(BaseModel):
    """Model output for the fit analysis document"""
    userIdentity: str
    painAnalysis: List[AiPainAnalysis] = Field(default_factory=list)
    goalRefinements: List[AiGoalRefinement] = Field(default_factory=list)
    recommendation: str


# --- Prompts ---

ITEMS_SYSTEM_PROMPT = """당신은 이 특정 사용자만을 위한 1:1 소프트웨어 어드바이저입니다.
누구에게나 적용되는 일반적 설명 대신, 이 사람의 직무/불편사항/현재 도구를 직접 참조한 설명만 작성하세요.
핵심 불편 상세가 주어지면 그것을 최우선 제약으로 삼아 관련성이 약한 후보는 좋게 포장하지 마세요.
맥락이 맞지 않는 후보는 solvable=false로 처리하고 왜 부적합한지 분명히 적으세요.
JSON만 반환하세요. softwareId/name은 입력과 동일하게 유지하세요."""

ITEMS_HUMAN_PROMPT = """상위 후보에 대한 추천 설명을 한국어로 생성하고 JSON만 반환하세요.

이 사용자의 구체적 상황:
- 불편사항: {pain_points}
- 목표: {goals}
- 현재 도구: {current_tools}
- 직무: {job_title}, 업종: {industry}, 팀 규모: {team_size}명
- 핵심 불편 상세: {main_pain_detail}

작성 규칙:
- whyRecommended: 불편사항 중 최소 1개를 직접 언급하며 이 도구가 어떻게 해결하는지 설명
- keyFeatures 3~5개, pros 1~5개, cautions 1~5개
- cautions: 현재 도구에서 전환할 때 실제로 겪을 수 있는 주의점
- 근거 없는 수치/비용/기간 단정 금지

Output shape:
{{"items": [{{"softwareId": "...", "name": "...", "whyRecommended": "...", "keyFeatures": ["..."], "pros": ["..."], "cautions": ["..."], "solvable": true}}]}}

Candidate data:
{candidates}"""

ANALYSIS_SYSTEM_PROMPT = """당신은 시니어 상담형 제품 전략가입니다.
사용자 맥락을 근거로 불편사항을 진단하고 목표를 측정 가능하게 다듬으세요. JSON만 반환하세요."""

ANALYSIS_HUMAN_PROMPT = """다음 사용자의 불편사항과 목표를 분석하세요.

- 이름: {full_name}
- 직무: {job_title}, 업종: {industry}, 팀 규모: {team_size}명
- 불편사항: {pain_points}
- 핵심 불편 상세: {main_pain_detail}
- 목표: {goals}
- 현재 도구: {current_tools}
- 판정: {fit_decision}
- 상위 후보: {top_items}

painAnalysis는 불편사항마다 1개, goalRefinements는 목표마다 1개 작성하세요.

Output shape:
{{"userIdentity": "...", "painAnalysis": [{{"pain": "...", "analysis": "...", "impact": "..."}}], "goalRefinements": [{{"goal": "...", "refinedGoal": "...", "successMetric": "..."}}], "recommendation": "..."}}"""

ITEMS_PROMPT = ChatPromptTemplate.from_messages([
    ("system", ITEMS_SYSTEM_PROMPT),
    ("human", ITEMS_HUMAN_PROMPT),
])

ANALYSIS_PROMPT = ChatPromptTemplate.from_messages([
    ("system", ANALYSIS_SYSTEM_PROMPT),
    ("human", ANALYSIS_HUMAN_PROMPT),
])


# --- Template fallback ---

def _joined_or_none(values: Sequence[str]) -> str:
    return ", ".join(values) or "(없음)"


def build_fallback_why(candidate: ScoredCandidate, profile: ProfileInput) -> str:
    """Point at the pain point that overlaps most with the candidate's own catalog text."""
    item = candidate.item
    job = profile.job_title or "실무자"
    candidate_text = normalize(f"{' '.join(item.tags)} {' '.join(item.key_features)} {item.description or ''}")

    matched_pain = None
    best = 0
    for pain in profile.pain_points:
        hits = sum(1 for token in tokenize(pain) if token in candidate_text)
        if hits > best:
            best = hits
            matched_pain = pain
    if matched_pain is None and profile.pain_points:
        matched_pain = profile.pain_points[0]

    features = "·".join(item.key_features[:2]) or item.category
    tools = [tool for tool in profile.current_tools if tool != "없음"]
    tools_note = f"현재 {', '.join(tools[:2])} 환경에서 전환하거나 연결해 사용할 수 있습니다." if tools else ""

    if matched_pain:
        why = f'{job} 업무에서 "{matched_pain}"를 개선하는 데 {item.name}의 {features} 기능이 직접 활용될 수 있습니다. {tools_note}'
    else:
        why = f"{job} 직무의 {item.category} 업무에서 {item.name}의 {features} 기능을 활용할 수 있습니다. {tools_note}"
    return why.strip()


def fallback_narrative(candidate: ScoredCandidate, profile: Optional[ProfileInput] = None) -> RecommendationItem:
    item = candidate.item
    if profile is not None:
        why = build_fallback_why(candidate, profile)
    else:
        why = f"프로필과 매칭 신호({', '.join(candidate.reasons)})를 기준으로 우선 검토할 가치가 있습니다."

    return RecommendationItem(
        software_id=item.id,
        name=item.name,
        why_recommended=why,
        key_features=item.key_features[:5],
        pros=item.pros_template[:3] or [DEFAULT_PRO],
        cautions=item.cons_template[:3] or [DEFAULT_CAUTION],
        solvable=candidate.score >= SOLVABLE_SCORE_THRESHOLD,
        score=candidate.score,
    )


# --- Alignment ---

def align_ai_items(
    candidates: Sequence[ScoredCandidate],
    ai_items: Sequence[AiRecommendationItem],
) -> List[Optional[AiRecommendationItem]]:
    """Map model items onto candidates by id, then name, then position. First match wins."""
    aligned: List[Optional[AiRecommendationItem]] = [None] * len(candidates)

    for ai_index, ai_item in enumerate(ai_items):
        index = -1
        if ai_item.softwareId:
            index = next((i for i, c in enumerate(candidates) if c.item.id == ai_item.softwareId), -1)
        if index == -1 and ai_item.name:
            index = next(
                (i for i, c in enumerate(candidates) if normalize(c.item.name) == normalize(ai_item.name)),
                -1,
            )
        if index == -1 and ai_index < len(candidates):
            index = ai_index
        if index != -1 and aligned[index] is None:
            aligned[index] = ai_item

    return aligned


def critical_pain_tokens(profile: ProfileInput) -> List[str]:
    base = " ".join([profile.main_pain_detail or "", *profile.pain_points])
    return unique(token for token in split_tokens(base) if token not in PAIN_GUARD_STOPWORDS)


def is_likely_off_topic(
    profile: ProfileInput,
    candidate: ScoredCandidate,
    ai_item: Optional[AiRecommendationItem],
) -> bool:
    """True when neither the catalog entry nor the model's prose touches the main pain."""
    if not (profile.main_pain_detail or "").strip():
        return False

    tokens = critical_pain_tokens(profile)
    if len(tokens) < 3:
        return False

    item = candidate.item
    ai_text = ""
    if ai_item is not None:
        ai_text = " ".join([ai_item.whyRecommended, *ai_item.keyFeatures, *ai_item.pros, *ai_item.cautions])
    candidate_text = " ".join([
        item.name, item.category, *item.tags, *item.key_features, item.description or "",
    ])
    reference = normalize(f"{candidate_text} {ai_text}")
    hits = sum(1 for token in tokens if token in reference)

    return hits == 0 or (len(tokens) >= 6 and hits <= 1)


def merge_ai_with_candidates(
    candidates: Sequence[ScoredCandidate],
    ai_items: Sequence[AiRecommendationItem],
    profile: ProfileInput,
) -> List[RecommendationItem]:
    top = list(candidates[:TOP_ITEM_COUNT])
    aligned = align_ai_items(top, ai_items)
    merged: List[RecommendationItem] = []

    for candidate, ai_item in zip(top, aligned):
        off_topic = ai_item is not None and is_likely_off_topic(profile, candidate, ai_item)
        if ai_item is None or off_topic:
            fallback = fallback_narrative(candidate, profile)
            detail = (profile.main_pain_detail or "").strip()
            if detail and off_topic:
                excerpt = detail[:40] + ("..." if len(detail) > 40 else "")
                fallback = fallback.model_copy(update={
                    "solvable": False,
                    "cautions": [
                        f'핵심 불편 상세("{excerpt}")와 직접 연결되는 기능 근거가 부족합니다.',
                        *fallback.cautions,
                    ][:4],
                })
            merged.append(fallback)
            continue

        merged.append(RecommendationItem(
            software_id=candidate.item.id,
            name=candidate.item.name,
            why_recommended=ai_item.whyRecommended,
            key_features=ai_item.keyFeatures,
            pros=ai_item.pros,
            cautions=ai_item.cautions,
            solvable=ai_item.solvable,
            score=candidate.score,
        ))

    return merged


# --- Generators ---

class NarrativeGenerator(ABC):
    """Produces recommendation prose for ranked candidates"""

    @abstractmethod
    def generate_items(
        self,
        profile: ProfileInput,
        candidates: Sequence[ScoredCandidate],
    ) -> List[RecommendationItem]:
        """Return up to three enriched items, one per top candidate, in rank order."""

    @abstractmethod
    def generate_fit_analysis(
        self,
        profile: ProfileInput,
        fit_decision: FitDecision,
        items: Sequence[RecommendationItem],
        candidates: Sequence[ScoredCandidate],
    ) -> FitAnalysis:
        """Return the pain / goal / summary document."""


class TemplateFallbackGenerator(NarrativeGenerator):
    """Deterministic generator built from catalog fields and scores"""

    def generate_items(self, profile, candidates):
        return [fallback_narrative(c, profile) for c in candidates[:TOP_ITEM_COUNT]]

    def generate_fit_analysis(self, profile, fit_decision, items, candidates):
        return build_deterministic_analysis(profile, fit_decision, items)


class LiveGenerator(NarrativeGenerator):
    """Chat-model generator that degrades to templates on any failure"""

    def __init__(
        self,
        llm: Optional[Runnable] = None,
        fallback: Optional[NarrativeGenerator] = None,
    ):
        if llm is None:
            llm = ChatOpenAI(
                model=config.llm_model,
                api_key=config.openai_api_key,
                temperature=0,
                timeout=config.llm_timeout,
                max_retries=0,
            ).bind(response_format={"type": "json_object"})
        self.fallback = fallback or TemplateFallbackGenerator()
        self.items_chain = ITEMS_PROMPT | llm | JsonOutputParser()
        self.analysis_chain = ANALYSIS_PROMPT | llm | JsonOutputParser()

    @staticmethod
    def _profile_vars(profile: ProfileInput) -> dict:
        return {
            "full_name": profile.full_name,
            "job_title": profile.job_title,
            "industry": profile.industry,
            "team_size": profile.team_size,
            "pain_points": _joined_or_none(profile.pain_points),
            "goals": _joined_or_none(profile.goals),
            "current_tools": _joined_or_none(profile.current_tools),
            "main_pain_detail": profile.main_pain_detail or "(미입력)",
        }

    def generate_items(self, profile, candidates):
        top = list(candidates[:TOP_ITEM_COUNT])
        if not top:
            return []

        payload = [
            {
                "softwareId": c.item.id,
                "name": c.item.name,
                "category": c.item.category,
                "pricingModel": c.item.pricing_model,
                "tags": c.item.tags,
                "description": c.item.description,
                "keyFeatures": c.item.key_features,
                "score": c.score,
                "reasons": c.reasons,
            }
            for c in top
        ]

        try:
            raw = self.items_chain.invoke({
                **self._profile_vars(profile),
                "candidates": json.dumps(payload, ensure_ascii=False),
            })
            response = AiRecommendationResponse.model_validate(raw)
        except Exception as e:
            logger.error(f"Recommendation narrative failed, using templates: {e}")
            return self.fallback.generate_items(profile, candidates)

        if not response.items:
            logger.warning("Recommendation narrative returned no items, using templates")
            return self.fallback.generate_items(profile, candidates)

        return merge_ai_with_candidates(top, response.items, profile)

    def generate_fit_analysis(self, profile, fit_decision, items, candidates):
        fallback = self.fallback.generate_fit_analysis(profile, fit_decision, items, candidates)
        top_items = "; ".join(f"{item.name}({item.score}점, solvable={item.solvable})" for item in items)

        try:
            raw = self.analysis_chain.invoke({
                **self._profile_vars(profile),
                "fit_decision": fit_decision,
                "top_items": top_items or "(없음)",
            })
            parsed = AiFitAnalysis.model_validate(raw)
        except Exception as e:
            logger.error(f"Fit analysis failed, using templates: {e}")
            return fallback

        return fallback.model_copy(update={
            "user_identity": parsed.userIdentity or fallback.user_identity,
            "pain_analysis": [
                PainAnalysis(pain=p.pain, analysis=p.analysis, impact=p.impact) for p in parsed.painAnalysis
            ] or fallback.pain_analysis,
            "goal_refinements": [
                GoalRefinement(goal=g.goal, refined_goal=g.refinedGoal, success_metric=g.successMetric)
                for g in parsed.goalRefinements
            ] or fallback.goal_refinements,
            "recommendation": parsed.recommendation or fallback.recommendation,
            "ai_enhanced": True,
        })


def build_narrative_generator(llm: Optional[Runnable] = None) -> NarrativeGenerator:
    """Live generator when credentials are configured (or a model is given), else templates."""
    if llm is not None:
        return LiveGenerator(llm=llm)
    if config.narrative_enabled:
        return LiveGenerator()
    logger.info("OPENAI_API_KEY not configured, narrative uses templates")
    return TemplateFallbackGenerator()

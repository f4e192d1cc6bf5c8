"""Candidate scoring, fit decision and profile fingerprinting

Scores are additive integer bonuses minus penalties, floored at 0. Term
matching is substring based on purpose: "workflow automation" in the profile
matches a catalog item mentioning "workflow automation tools".
"""
import hashlib
import json
from typing import List, Sequence

from .models import (
    FitDecisionResult,
    RecommendationItem,
    ScoredCandidate,
    SoftwareCatalogItem,
)
from .terms import (
    INDUSTRY_TERMS,
    ROLE_TERMS,
    TAG_TERMS,
    expand_mapped_signals,
    expand_mapped_signals_from_list,
    mapped_terms,
    normalize,
    split_tokens,
    tokenize,
    unique,
)
from ..profiles.models import ProfileInput

SOLVABLE_SCORE_THRESHOLD = 40
STRICT_MODE_MIN_SIGNALS = 4
MIN_STRONGLY_ALIGNED = 3
SMALL_TEAM_TAGS = ("kanban", "no-code", "scheduling")

FIT_REASON_NO_CANDIDATES = "매칭 가능한 소프트웨어 후보가 없어 맞춤 개발이 더 적합합니다."
FIT_REASON_LOW_FIT = "요구사항 대비 기존 소프트웨어 적합도가 낮아 맞춤 개발을 권장합니다."
FIT_REASON_SOFTWARE_FIT = "상위 후보가 핵심 요구를 충족하여 기존 소프트웨어 도입이 가능합니다."


def _item_text(item: SoftwareCatalogItem) -> str:
    return " ".join([
        item.name,
        item.category,
        item.description or "",
        " ".join(item.target_roles),
        " ".join(item.tags),
        " ".join(item.key_features),
    ]).lower()


def main_pain_signals(profile: ProfileInput) -> List[str]:
    """Tokens and mapped tags of the main pain detail, deduplicated."""
    detail = (profile.main_pain_detail or "").strip()
    if not detail:
        return []
    signals = tokenize(detail) + mapped_terms(detail, TAG_TERMS)
    return unique(signal for signal in signals if len(signal) > 1)


def _profile_tokens(profile: ProfileInput) -> List[str]:
    parts = [
        profile.job_title,
        profile.industry,
        *profile.goals,
        *profile.pain_points,
        *profile.current_tools,
        *expand_mapped_signals(profile.job_title, ROLE_TERMS),
        *expand_mapped_signals(profile.industry, INDUSTRY_TERMS),
        *expand_mapped_signals_from_list(profile.goals, TAG_TERMS),
        *expand_mapped_signals_from_list(profile.pain_points, TAG_TERMS),
    ]
    return split_tokens(" ".join(parts))


def _sort_key(candidate: ScoredCandidate):
    return (-candidate.score, -len(candidate.reasons), candidate.item.name)


def select_ranking_pool(scored: Sequence[ScoredCandidate], strict_mode: bool) -> List[ScoredCandidate]:
    """Rank only strongly aligned items when there are enough of them."""
    if strict_mode:
        strongly_aligned = [c for c in scored if c.detail_match_count >= 1]
        if len(strongly_aligned) >= MIN_STRONGLY_ALIGNED:
            return list(strongly_aligned)
    return list(scored)


def score_catalog_candidates(
    profile: ProfileInput,
    catalog: Sequence[SoftwareCatalogItem],
) -> List[ScoredCandidate]:
    """Score every catalog item for a profile and return the ranked pool.

    Args:
        profile: Completed onboarding profile
        catalog: Active catalog snapshot

    Returns:
        Candidates sorted by score desc, reason count desc, then name asc
    """
    role_signals = [s for s in expand_mapped_signals(profile.job_title, ROLE_TERMS) if s]
    industry_signals = [s for s in expand_mapped_signals(profile.industry, INDUSTRY_TERMS) if s]
    detail_signals = main_pain_signals(profile)
    semantic_signals = unique([
        *expand_mapped_signals_from_list(profile.goals, TAG_TERMS),
        *expand_mapped_signals_from_list(profile.pain_points, TAG_TERMS),
        *detail_signals,
    ])
    profile_tokens = _profile_tokens(profile)
    budget = profile.budget_preference.lower()
    has_detail = bool((profile.main_pain_detail or "").strip())
    strict_mode = len(detail_signals) >= STRICT_MODE_MIN_SIGNALS

    scored: List[ScoredCandidate] = []
    for item in catalog:
        score = 0
        reasons: List[str] = []
        text = _item_text(item)
        tags = [normalize(tag) for tag in item.tags]

        # role
        role_matches = [
            role for role in item.target_roles
            if any(
                token in signal or signal in token
                for token in role.lower().split()
                for signal in role_signals
            )
        ]
        if role_matches:
            role_score = min(30, 12 + 8 * len(role_matches))
            score += role_score
            reasons.append(f"직무 적합성 {role_score}점")

        # goals, pain points and main pain detail
        semantic_count = sum(1 for signal in semantic_signals if signal in text)
        if semantic_count > 0:
            semantic_score = min(40, 8 + 4 * semantic_count)
            score += semantic_score
            reasons.append(f"목표·불편 신호 매칭 {semantic_score}점")

        category = item.category.lower()
        if any(token in category for token in profile_tokens):
            score += 8
            reasons.append("카테고리 매칭 8점")

        industry_hit = any(signal in text for signal in industry_signals)
        if industry_hit:
            score += 8
            reasons.append("업종 매칭 8점")

        pricing = (item.pricing_model or "").lower()
        if ("무료" in budget or "free" in budget) and "free" in pricing:
            score += 7
            reasons.append("예산 적합 7점")
        if ("50" in budget or "외주" in budget or "개발" in budget) and "enterprise" in pricing:
            score += 6
            reasons.append("고급 플랜 적합 6점")

        if profile.team_size >= 20 and any("collaboration" in tag for tag in tags):
            score += 5
            reasons.append("팀 협업 확장성 5점")
        if profile.team_size <= 3 and any(tag in SMALL_TEAM_TAGS for tag in tags):
            score += 4
            reasons.append("소규모 팀 적합 4점")

        detail_match_count = 0
        if has_detail:
            detail_match_count = sum(1 for signal in detail_signals if signal in text)
            if detail_match_count > 0:
                detail_score = min(26, 6 * detail_match_count)
                score += detail_score
                reasons.append(f"핵심 불편 상세 매칭 {detail_score}점")
            else:
                penalty = 32 if strict_mode else 18
                score -= penalty
                reasons.append(f"핵심 불편 상세 불일치 -{penalty}점")
            if strict_mode and detail_match_count <= 1:
                score -= 10
                reasons.append("핵심 불편 근거 부족 -10점")
            if strict_mode and not industry_hit:
                score -= 12
                reasons.append("업종 불일치 -12점")

        scored.append(ScoredCandidate(
            item=item,
            score=int(round(max(0, score))),
            reasons=reasons,
            detail_match_count=detail_match_count,
        ))

    pool = select_ranking_pool(scored, strict_mode)
    return sorted(pool, key=_sort_key)


def decide_fit_decision(items: Sequence[RecommendationItem]) -> FitDecisionResult:
    """Choose between existing software and custom development."""
    if not items:
        return FitDecisionResult(fit_decision="custom_build", fit_reason=FIT_REASON_NO_CANDIDATES)

    highest_score = items[0].score
    solvable_count = sum(1 for item in items if item.solvable)

    if highest_score < SOLVABLE_SCORE_THRESHOLD or solvable_count == 0:
        return FitDecisionResult(fit_decision="custom_build", fit_reason=FIT_REASON_LOW_FIT)

    return FitDecisionResult(fit_decision="software_fit", fit_reason=FIT_REASON_SOFTWARE_FIT)


def create_profile_fingerprint(profile: ProfileInput) -> str:
    """sha256 of the profile with list fields sorted, so list order is irrelevant."""
    snapshot = profile.to_snapshot()
    for key in ("pain_points", "goals", "current_tools"):
        snapshot[key] = sorted(snapshot[key])
    normalized = json.dumps(snapshot, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

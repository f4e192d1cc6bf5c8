"""Deterministic fit analysis

Builds the pain / goal / summary document and the custom build worksheet
without any model call. The live
generator starts from this document and only replaces it when the model
returns something valid.
"""
from typing import List, Sequence

from .models import (
    FitAnalysis,
    FitDecision,
    GoalRefinement,
    PainAnalysis,
    RecommendationItem,
)
from .framework import (
    build_feature_narratives,
    build_proactive_insights,
    build_structured_features,
    evaluate_custom_build_framework,
)
from .terms import contains_any
from ..profiles.models import ProfileInput

NO_TOOLS_MARKER = "없음"

_PAIN_BUCKETS = (
    (
        ("수작업", "반복", "수동", "일일이", "하나씩", "매번", "manual", "repetitive"),
        '"{pain}" 문제는 {job} 업무에서 자주 나타나는 운영 비효율입니다. {tools} 환경에서는 입력·정리·확인이 '
        "모두 사람 손을 거쳐야 해서 실수가 쌓이고, 같은 작업을 반복하는 시간이 점점 늘어납니다.",
        '이 반복 작업이 줄어들지 않으면 "{goal}" 달성에 투입해야 할 시간과 에너지가 계속 소모됩니다.',
    ),
    (
        ("비용", "예산", "돈", "절약", "가격", "수익", "cost", "budget"),
        '"{pain}" 이슈는 {job} 업무에서 수익성과 직결됩니다. {tools} 기반에서는 비용 발생 시점과 규모를 '
        "실시간으로 파악하기 어려워 의사결정이 지연되는 경향이 있습니다.",
        '비용 가시성이 낮으면 불필요한 지출이 쌓이고, "{goal}" 목표를 위한 예산 배분도 어려워집니다.',
    ),
    (
        ("협업", "공유", "전달", "소통", "커뮤니케이션", "팀", "collaboration", "communication"),
        '"{pain}"은 팀 전체의 실행 속도를 좌우하는 문제입니다. {tools}를 사용하는 {job} 환경에서는 정보 전달 '
        "경로가 분산되어 같은 내용을 여러 번 확인하는 일이 많습니다.",
        '이 문제가 해소되지 않으면 확인 회의와 중복 작업이 반복되고, "{goal}" 달성 속도가 느려집니다.',
    ),
    (
        ("학생", "수업", "교육", "강의", "student", "class"),
        '{job}에게 "{pain}" 문제는 교육 성과와 직결되는 핵심 과제입니다. {tools} 환경에서는 학생 상태를 '
        "실시간으로 파악하기 어려워 수업 흐름을 즉각 조정하기가 까다롭습니다.",
        '이 문제가 지속되면 학습 효과가 낮아지고, "{goal}"을 위한 개선 방향도 잡기 어려워집니다.',
    ),
)

_GENERIC_PAIN_TEMPLATES = (
    (
        '"{pain}"은 {job} 업무 흐름에서 실행을 막는 병목으로 작동합니다. {tools} 환경에서 이 문제가 반복되면 '
        "처리 시간이 길어지고 다른 업무로의 전환도 늦어집니다.",
        '이 병목이 쌓이면 "{goal}" 달성에 투입할 집중 시간이 줄어들고 운영 비용 누수로 이어집니다.',
    ),
    (
        '{job} 관점에서 "{pain}"은 단순 불편을 넘어 실행 속도를 방해하는 구조적 마찰입니다. 현재 {tools}로는 '
        "이 마찰을 줄이는 자동화나 구조화가 충분하지 않을 가능성이 있습니다.",
        '이 마찰이 해소되지 않으면 같은 문제가 반복되고 "{goal}" 목표를 향한 실행 밀도가 낮아집니다.',
    ),
    (
        '"{pain}"은 {job} 업무에서 시간과 집중력을 조금씩 잠식하는 문제입니다. {tools} 중심 환경에서는 '
        "수동 처리에 의존하는 구간이 남아 있을 가능성이 있습니다.",
        '수동 처리 의존이 계속되면 실수율이 높아지고 "{goal}" 같은 중요 목표에 쓸 에너지가 소모됩니다.',
    ),
)

RECOMMENDATION_SOFTWARE_FIT = (
    "{job} 업무 기준으로 {top}부터 도입해 보시길 권합니다. 상위 후보가 핵심 불편을 기존 기능으로 해결할 수 있습니다."
)
RECOMMENDATION_CUSTOM_BUILD = (
    "{job} 업무의 핵심 불편을 기존 소프트웨어로 충분히 해결하기 어려워, 검증된 메이커에게 맞춤 개발을 의뢰하는 것을 권합니다."
)


def tools_text(profile: ProfileInput) -> str:
    tools = [tool for tool in profile.current_tools if tool != NO_TOOLS_MARKER]
    return ", ".join(tools) if tools else "수작업 중심 운영"


def build_pain_analysis(pain: str, index: int, profile: ProfileInput) -> PainAnalysis:
    """Pick a keyword bucket for the pain, else rotate through generic templates."""
    values = {
        "pain": pain,
        "job": profile.job_title or "실무자",
        "tools": tools_text(profile),
        "goal": (profile.goals[index] if index < len(profile.goals) else None)
        or (profile.goals[0] if profile.goals else "업무 안정화"),
    }
    for keywords, analysis, impact in _PAIN_BUCKETS:
        if contains_any(pain, keywords):
            return PainAnalysis(pain=pain, analysis=analysis.format(**values), impact=impact.format(**values))

    analysis, impact = _GENERIC_PAIN_TEMPLATES[index % len(_GENERIC_PAIN_TEMPLATES)]
    return PainAnalysis(pain=pain, analysis=analysis.format(**values), impact=impact.format(**values))


def build_goal_refinement(goal: str, profile: ProfileInput) -> GoalRefinement:
    return GoalRefinement(
        goal=goal,
        refined_goal=f"{profile.team_size}명 팀 기준으로 \"{goal}\"을(를) 측정 가능한 목표로 구체화",
        success_metric=f"도입 후 4주 내 \"{goal}\" 관련 처리 시간 또는 누락 건수 비교",
    )


def confidence_level(profile: ProfileInput, items: Sequence[RecommendationItem]) -> str:
    evidence = len(profile.pain_points) + len(profile.goals) + len(items)
    if evidence >= 8:
        return "high"
    if evidence >= 4:
        return "medium"
    return "low"


def build_deterministic_analysis(
    profile: ProfileInput,
    fit_decision: FitDecision,
    items: Sequence[RecommendationItem],
) -> FitAnalysis:
    """One pain entry per pain point, one refinement per goal, decision-dependent summary."""
    identity: List[str] = [
        profile.full_name,
        f"{profile.job_title} 업무 담당" if profile.job_title else "",
        f"{profile.industry} 업종" if profile.industry else "",
        f"팀 {profile.team_size}명",
    ]
    job = profile.job_title or "실무자"
    if fit_decision == "software_fit" and items:
        recommendation = RECOMMENDATION_SOFTWARE_FIT.format(job=job, top=items[0].name)
    else:
        recommendation = RECOMMENDATION_CUSTOM_BUILD.format(job=job)

    framework = evaluate_custom_build_framework(profile, items)

    return FitAnalysis(
        user_identity=", ".join(part for part in identity if part),
        pain_analysis=[build_pain_analysis(pain, i, profile) for i, pain in enumerate(profile.pain_points)],
        goal_refinements=[build_goal_refinement(goal, profile) for goal in profile.goals],
        recommendation=recommendation,
        confidence_level=confidence_level(profile, items),
        custom_build_framework=framework,
        recommended_features=build_feature_narratives(profile, framework),
        structured_features=build_structured_features(profile),
        proactive_insights=build_proactive_insights(profile),
        ai_enhanced=False,
    )

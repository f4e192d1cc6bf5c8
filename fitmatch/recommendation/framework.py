"""Custom build framework

A deterministic build-vs-buy worksheet attached to every fit analysis:
problem typing (A-E), capability gap matrix, five structural checks, a
payback estimate, feature proposals and insights the user did not ask for.
The worksheet carries its own custom_build verdict for display only; the
recommendation's fit decision comes from the scoring policy.
"""
import math
from typing import List, NamedTuple, Sequence

import numpy as np

from .models import (
    CapabilityGap,
    CustomBuildFramework,
    FeatureProposal,
    FrameworkDecision,
    NeedLevel,
    ProactiveInsight,
    ProblemType,
    RecommendationItem,
    RoiEstimate,
    StructuralCheck,
    StructuralConstraintTest,
)
from .terms import contains_any, normalize, split_tokens, unique
from ..profiles.models import ProfileInput

HOURLY_VALUE_KRW = 30000
STRUCTURAL_LIMIT_YES_COUNT = 3
CUSTOM_BUILD_GAP_AVERAGE = 50
PAYBACK_MONTHS_LIMIT = 6
NO_PAYBACK_MONTHS = 12

HIGH_NEED_SIGNALS = ("자동", "연동", "api", "보안", "내부", "정산", "데이터", "승인")
LOW_NEED_SIGNALS = ("보고", "리포트", "조회", "알림")
LEVEL_PENALTY = {"high": 10, "medium": 5, "low": 0}

WORKFLOW_SIGNALS = ("흐름", "프로세스", "승인", "핸드오프", "협업", "단계")
MANUAL_SIGNALS = ("수작업", "반복", "누락", "복붙", "정리", "수동")
SECURITY_SIGNALS = ("보안", "개인정보", "내부", "권한", "감사", "금융", "의료", "법률", "공공")
INTEGRATION_SIGNALS = ("api", "연동", "통합", "크로스", "플랫폼")
DATA_SIGNALS = ("데이터", "정산", "재고", "리포트", "출처", "통합", "분석")
AUTOMATION_SIGNALS = ("자동", "연동", "api", "플랫폼", "크로스")
NO_TOOL_VALUES = ("없음", "none")


class RequirementSeed(NamedTuple):
    item: str
    need_level: NeedLevel
    context: str


DEFAULT_SEEDS = (
    RequirementSeed("반복 업무 자동화 기능", "high", "반복 업무"),
    RequirementSeed("업무 상태 가시화 기능", "medium", "진행 상태 추적"),
    RequirementSeed("데이터 통합 리포트 기능", "medium", "보고 자동화"),
)

PROBLEM_TITLES = {
    "A": "단순 기능 부족",
    "B": "워크플로우 불일치",
    "C": "데이터 구조 특수성",
    "D": "자동화 수준 요구 높음",
    "E": "보안/내부화 요구",
}

PROBLEM_RATIONALES = {
    "A": "{job} 업무에 필요한 기능은 시중 도구에 있지만, 설정과 활용 방식이 부족해 효과를 충분히 내지 못하고 있습니다.",
    "B": "현재 업무 흐름과 도구의 기본 구조가 맞지 않아 절차를 바꾸거나 우회 작업을 하고 있습니다.",
    "C": "데이터 출처와 연결 방식이 표준 템플릿과 달라 단일 SaaS로는 누락 없이 관리하기 어렵습니다.",
    "D": "반복 작업을 줄이려면 API나 도구 간 연동 수준의 자동화가 필요해 단순 설정으로는 목표에 닿기 어렵습니다.",
    "E": "보안과 내부 통제 요구가 있어 외부 SaaS 의존을 줄이거나 권한·감사 추적을 강화해야 합니다.",
}

EXTRA_FEATURE_LINE = (
    "추가로 사용자별 리포트와 이상 징후 알림 기능을 함께 넣으면, 업무가 늘어날 때 관리 비용을 크게 줄일 수 있습니다."
)

# (keywords, name, description, why_needed); why_needed takes pain, job and team_size
_FEATURE_TEMPLATES = (
    (
        ("수작업", "반복", "수동", "일일이", "매번", "정리"),
        "업무 자동화 도구",
        "반복 작업을 조건에 따라 자동으로 처리하는 기능입니다. Zapier, Make 같은 서비스로 코딩 없이 앱을 연결해 "
        "입력·알림·보고서 생성을 사람 손 없이 실행합니다.",
        '현재 "{pain}"에 매일 시간을 쓰고 있다면, 자동화를 한 번 설정해 두는 것만으로 {job}이 핵심 업무에 집중할 수 있습니다.',
    ),
    (
        ("집중", "집중도", "참여", "산만", "수업", "강의"),
        "학습 참여 관리 도구",
        "수업 중 학생 반응을 실시간으로 확인하고 참여를 이끄는 기능입니다. Kahoot!, Mentimeter, Google Forms로 "
        "이해도를 바로 파악하고 수업 흐름을 조정할 수 있습니다.",
        '"{pain}" 문제는 강사 혼자 전체를 관찰하기 어려울 때 생깁니다. 참여 상태를 자동으로 모아 {job}이 빠르게 대응할 수 있습니다.',
    ),
    (
        ("비용", "예산", "수익", "정산", "돈", "매출"),
        "비용·수익 자동 추적 기능",
        "수입과 지출을 자동으로 기록하고 항목별로 집계하는 기능입니다. 카드 내역 연동이나 간단한 입력만으로 "
        "월별 추이와 예산 초과 알림이 만들어집니다.",
        '"{pain}" 문제는 비용 현황이 실시간으로 보이지 않아서 생깁니다. {job}이 수동 계산 없이 바로 판단할 수 있습니다.',
    ),
    (
        ("학생", "교육", "과제", "채점", "출석", "성적"),
        "학습 관리 시스템 (LMS)",
        "과제 제출, 채점, 출석과 성적을 한 곳에서 관리하는 기능입니다. Google Classroom, Class123 같은 서비스로 "
        "강사와 학생, 학부모가 학습 현황을 함께 봅니다.",
        '{job} 업무에서 "{pain}"으로 관리 부담이 크다면, 학생별 기록이 자동으로 쌓여 반복 확인이 크게 줄어듭니다.',
    ),
    (
        ("협업", "공유", "소통", "전달", "팀", "커뮤니케이션"),
        "팀 협업·정보 공유 플랫폼",
        "팀원이 같은 문서와 일정, 업무를 실시간으로 보고 수정하는 기능입니다. Notion, Slack 같은 플랫폼으로 "
        "이메일 대신 업무 정보를 체계적으로 관리합니다.",
        '"{pain}" 문제는 정보가 여러 채널에 흩어질 때 생깁니다. {team_size}명 팀이 같은 정보를 보면 확인 요청이 줄어듭니다.',
    ),
    (
        ("관리", "추적", "기록", "이력"),
        "데이터 통합 관리 기능",
        "스프레드시트, 메모, 메신저에 흩어진 정보를 하나의 데이터베이스로 모으는 기능입니다. Notion, Airtable로 "
        "한 곳에서 관리하고 검색합니다.",
        '"{pain}" 문제를 줄이려면 정보가 한 곳에 있어야 합니다. {job} 업무의 중복 입력과 분산 관리를 없앨 수 있습니다.',
    ),
)

_FALLBACK_FEATURE_TEMPLATES = (
    (
        "업무 현황 대시보드",
        "진행 중인 업무와 완료 항목, 남은 일을 한 화면에서 보여주는 기능입니다. 매번 직접 확인하지 않아도 상황을 바로 파악할 수 있습니다.",
        '"{pain}" 상황을 체계적으로 관리하려면 {job}이 언제든 현황을 볼 수 있는 구조가 필요합니다.',
    ),
    (
        "자동 알림·리마인더 기능",
        "마감이나 확인이 필요한 항목이 생기면 정해진 조건에 따라 자동으로 알림을 보내는 기능입니다.",
        '"{pain}" 상황에서 중요한 일을 놓치지 않으려면 자동 알림이 {job}을 대신해 제때 알려줘야 합니다.',
    ),
    (
        "업무 자동화 도구",
        "반복 작업을 코딩 없이 연결하는 기능입니다. Zapier, Make로 조건이 맞으면 알림, 데이터 이동, 보고서 생성이 실행됩니다.",
        '"{pain}" 문제를 줄이고 {job} 업무의 핵심 활동에 집중하려면 반복 작업 자동화가 필요합니다.',
    ),
)


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _clamp(value, low, high):
    return min(high, max(low, value))


def infer_need_level(text: str) -> NeedLevel:
    if contains_any(text, HIGH_NEED_SIGNALS):
        return "high"
    if contains_any(text, LOW_NEED_SIGNALS):
        return "low"
    return "medium"


def build_requirement_seeds(profile: ProfileInput) -> List[RequirementSeed]:
    """Up to four requirements: first three pains, first two goals, defaults when short."""
    seeds = [RequirementSeed(f"{pain} 해결 기능", infer_need_level(pain), pain) for pain in profile.pain_points[:3]]
    seeds += [RequirementSeed(f"{goal} 달성 기능", infer_need_level(goal), goal) for goal in profile.goals[:2]]
    if len(seeds) < 3:
        seeds.extend(DEFAULT_SEEDS)

    seen = set()
    deduped = []
    for seed in seeds:
        key = normalize(seed.item)
        if key not in seen:
            seen.add(key)
            deduped.append(seed)
    return deduped[:4]


def estimate_coverage(seed: RequirementSeed, items: Sequence[RecommendationItem]) -> int:
    """Best coverage any item gives the requirement, 5-95; 10 when nothing was recommended."""
    if not items:
        return 10

    tokens = split_tokens(seed.item)
    coverages = []
    for item in items:
        item_text = normalize(" ".join([
            item.why_recommended,
            " ".join(item.key_features),
            " ".join(item.pros),
            " ".join(item.cautions),
        ]))
        token_match = sum(1 for token in tokens if token in item_text)
        base = item.score * 0.65 + (18 if item.solvable else 6) + token_match * 10
        coverages.append(_clamp(int(_round_half_up(base - LEVEL_PENALTY[seed.need_level])), 5, 95))
    return max(coverages)


def build_capability_gap_matrix(
    profile: ProfileInput,
    items: Sequence[RecommendationItem],
) -> List[CapabilityGap]:
    matrix = []
    for seed in build_requirement_seeds(profile):
        coverage = estimate_coverage(seed, items)
        matrix.append(CapabilityGap(
            item=seed.item,
            need_level=seed.need_level,
            software_coverage=coverage,
            gap=_clamp(100 - coverage, 0, 100),
        ))
    return matrix


def estimate_custom_build_cost(profile: ProfileInput, gap_average: float) -> int:
    """Budget bracket price in KRW, rounded to 100k"""
    budget = normalize(profile.budget_preference or "")
    if "무료" in budget or "무예산" in budget or "10만원 이하" in budget:
        base = 900000
    elif "10~50" in budget:
        base = 1800000
    elif "50" in budget or "외주" in budget or "개발" in budget:
        base = 3000000
    else:
        base = 1500000

    if gap_average >= 65:
        base += 600000
    return int(_round_half_up(base / 100000)) * 100000


def _profile_text(profile: ProfileInput) -> str:
    return " ".join([profile.job_title, profile.industry, " ".join(profile.pain_points), " ".join(profile.goals)])


def build_problem_typing(
    profile: ProfileInput,
    gap_average: float,
    workflow_change: bool,
    manual_remaining: bool,
    no_code_hard: bool,
    api_limit: bool,
    has_security_need: bool,
) -> List[ProblemType]:
    """Up to three problem types, highest score first; A when nothing scores."""
    pains_and_goals = " ".join([*profile.pain_points, *profile.goals])
    scores = dict.fromkeys("ABCDE", 0)

    if gap_average < 45 and not workflow_change and not no_code_hard:
        scores["A"] += 2
    if workflow_change or manual_remaining:
        scores["B"] += 3
    if contains_any(f"{profile.industry} {pains_and_goals}", DATA_SIGNALS):
        scores["C"] += 2
    if contains_any(pains_and_goals, AUTOMATION_SIGNALS) or no_code_hard or api_limit:
        scores["D"] += 3
    if has_security_need:
        scores["E"] += 3

    codes = [code for code in sorted(scores, key=lambda c: -scores[c]) if scores[code] > 0][:3] or ["A"]
    job = profile.job_title or "사용자"
    return [
        ProblemType(code=code, title=PROBLEM_TITLES[code], rationale=PROBLEM_RATIONALES[code].format(job=job))
        for code in codes
    ]


def _decision_reason(gap_average: float, yes_count: int, payback_months: float, custom_build: bool) -> str:
    if custom_build:
        return (
            f"기능 Gap 평균 {gap_average:g}%, 구조적 제약 YES {yes_count}개, ROI 회수 예상 {payback_months:g}개월입니다. "
            "Gap>50% 또는 제약 YES>=3 또는 회수<6개월 기준을 충족해 맞춤 개발을 검토할 만합니다."
        )
    return (
        f"기능 Gap 평균 {gap_average:g}%, 구조적 제약 YES {yes_count}개, ROI 회수 예상 {payback_months:g}개월입니다. "
        "기준을 넘지 않아 기존 소프트웨어를 먼저 도입하고 부족한 부분을 보완하는 접근이 적합합니다."
    )


def evaluate_custom_build_framework(
    profile: ProfileInput,
    items: Sequence[RecommendationItem],
) -> CustomBuildFramework:
    """Gap matrix, structural checks, problem typing and payback for one profile.

    Args:
        profile: Completed onboarding profile
        items: Ranked recommendation items (coverage is estimated from these)

    Returns:
        The worksheet; its final_decision does not feed the fit decision
    """
    matrix = build_capability_gap_matrix(profile, items)
    gaps = [row.gap for row in matrix]
    gap_average = _round_half_up(float(np.mean(gaps)), 1) if gaps else 0.0
    profile_text = _profile_text(profile)
    active_tools = [tool for tool in profile.current_tools if normalize(tool) not in NO_TOOL_VALUES]

    workflow_change = gap_average >= 45 or contains_any(profile_text, WORKFLOW_SIGNALS)
    manual_remaining = contains_any(profile_text, MANUAL_SIGNALS) or any(gap >= 55 for gap in gaps)
    multi_tool_wiring = len(active_tools) >= 2
    no_code_hard = (
        any(row.need_level == "high" and row.gap >= 60 for row in matrix)
        or (multi_tool_wiring and gap_average >= 50)
    )
    has_security_need = contains_any(profile_text, SECURITY_SIGNALS)
    api_limit = contains_any(profile_text, INTEGRATION_SIGNALS) and any(gap >= 50 for gap in gaps)

    checks = [
        StructuralCheck(
            question="기존 SW를 쓰려면 워크플로우를 바꿔야 하는가?",
            yes=workflow_change,
            reason="현재 업무 흐름을 도구 기본 구조에 맞추는 비용이 큽니다." if workflow_change
            else "기존 도구의 기본 흐름과 현재 업무가 크게 충돌하지 않습니다.",
        ),
        StructuralCheck(
            question="수작업이 계속 남는가?",
            yes=manual_remaining,
            reason="반복·정리·확인 작업 중 자동화되지 않는 구간이 남습니다." if manual_remaining
            else "주요 작업은 자동화나 템플릿으로 처리할 수 있습니다.",
        ),
        StructuralCheck(
            question="2개 이상 툴을 이어붙여야 하는가?",
            yes=multi_tool_wiring,
            reason=f"현재 사용 도구({', '.join(active_tools)}) 사이의 연결과 동기화가 필요합니다." if multi_tool_wiring
            else "단일 도구나 단순한 조합으로 운영할 수 있습니다.",
        ),
        StructuralCheck(
            question="Zapier/노코드로도 해결이 어려운가?",
            yes=no_code_hard,
            reason="요구 기능의 Gap이 커서 노코드 연결만으로는 안정적으로 해결하기 어렵습니다." if no_code_hard
            else "노코드 구성으로 1차 완화가 가능한 영역이 있습니다.",
        ),
        StructuralCheck(
            question="핵심 기능이 API에 없거나 제한적인가?",
            yes=api_limit,
            reason="핵심 연동 구간에서 API가 없거나 제한적일 가능성이 높습니다." if api_limit
            else "API 연동으로 해결할 여지가 있습니다.",
        ),
    ]
    yes_count = sum(1 for check in checks if check.yes)

    weekly = _round_half_up(_clamp(2 + len(profile.pain_points) * 1.2 + yes_count * 0.8 + gap_average / 25, 2, 24), 1)
    monthly = _round_half_up(weekly * 4, 1)
    monthly_loss = int(_round_half_up(monthly * HOURLY_VALUE_KRW))
    cost = estimate_custom_build_cost(profile, gap_average)
    payback = _round_half_up(cost / monthly_loss, 2) if monthly_loss > 0 else float(NO_PAYBACK_MONTHS)

    custom_build = (
        gap_average > CUSTOM_BUILD_GAP_AVERAGE
        or yes_count >= STRUCTURAL_LIMIT_YES_COUNT
        or payback < PAYBACK_MONTHS_LIMIT
    )

    return CustomBuildFramework(
        problem_typing=build_problem_typing(
            profile, gap_average, workflow_change, manual_remaining, no_code_hard, api_limit, has_security_need
        ),
        capability_gap_matrix=matrix,
        gap_average=gap_average,
        structural_constraint_test=StructuralConstraintTest(
            checks=checks,
            yes_count=yes_count,
            has_structural_limit=yes_count >= STRUCTURAL_LIMIT_YES_COUNT,
        ),
        roi_estimate=RoiEstimate(
            weekly_hours_wasted=weekly,
            monthly_hours_wasted=monthly,
            hourly_value_krw=HOURLY_VALUE_KRW,
            monthly_loss_krw=monthly_loss,
            estimated_custom_build_cost_krw=cost,
            payback_months=payback,
            roi_turns_within_6_months=payback < PAYBACK_MONTHS_LIMIT,
        ),
        final_decision=FrameworkDecision(
            custom_build=custom_build,
            reason=_decision_reason(gap_average, yes_count, payback, custom_build),
        ),
    )


def build_feature_narratives(profile: ProfileInput, framework: CustomBuildFramework) -> List[str]:
    """One line per largest gap (at most three) plus a reporting/alerting suggestion."""
    top_gaps = sorted(framework.capability_gap_matrix, key=lambda row: -row.gap)[:3]
    job = profile.job_title or "실무"
    lines = []
    for index, row in enumerate(top_gaps):
        goal = profile.goals[index] if index < len(profile.goals) else (profile.goals[0] if profile.goals else "업무 안정화")
        pain = (
            profile.pain_points[index] if index < len(profile.pain_points)
            else (profile.pain_points[0] if profile.pain_points else "반복적인 운영 부담")
        )
        lines.append(
            f'{row.item}이 필요합니다. "{pain}" 문제를 줄이려면 {job} 흐름에 맞춘 처리 규칙과 자동화를 넣어야 하고, '
            f'그러면 "{goal}" 목표에 더 빨리 닿을 수 있습니다.'
        )
    return unique([*lines, EXTRA_FEATURE_LINE])[:5]


def _feature_for_pain(pain: str, index: int, job: str, team_size: int) -> FeatureProposal:
    values = {"pain": pain, "job": job, "team_size": team_size}
    for keywords, name, description, why_needed in _FEATURE_TEMPLATES:
        if contains_any(pain, keywords):
            return FeatureProposal(name=name, description=description, why_needed=why_needed.format(**values))

    name, description, why_needed = _FALLBACK_FEATURE_TEMPLATES[index % len(_FALLBACK_FEATURE_TEMPLATES)]
    return FeatureProposal(name=name, description=description, why_needed=why_needed.format(**values))


def build_structured_features(profile: ProfileInput) -> List[FeatureProposal]:
    """At most three distinct features, one per leading pain point."""
    pains = profile.pain_points[:3] or ["업무 효율화"]
    job = profile.job_title or "담당자"
    features: List[FeatureProposal] = []
    for index, pain in enumerate(pains):
        feature = _feature_for_pain(pain, index, job, profile.team_size)
        if all(existing.name != feature.name for existing in features):
            features.append(feature)
    return features[:3]


def build_proactive_insights(profile: ProfileInput) -> List[ProactiveInsight]:
    """Problems the profile suggests but the stated pains do not mention, at most three."""
    stated = normalize(" ".join(profile.pain_points))
    job = profile.job_title
    insights: List[ProactiveInsight] = []

    if "자동" not in stated and "반복" not in stated:
        insights.append(ProactiveInsight(
            problem="반복 업무 자동화 공백",
            reasoning=f"{job or '실무자'} 업무에는 보고서 취합, 데이터 정리, 알림 발송 같은 주기적 반복 작업이 많습니다. "
                      f"현재 도구({', '.join(profile.current_tools) or '기존 도구'})만으로는 이 흐름이 수동으로 남아 있을 수 있습니다.",
            sw_solution="Zapier, Make 같은 자동화 도구를 연결하면 반복 업무를 트리거 기반으로 처리할 수 있습니다.",
        ))

    if "데이터" not in stated and "흩어" not in stated and len(profile.current_tools) >= 2:
        insights.append(ProactiveInsight(
            problem="여러 도구 간 데이터 파편화",
            reasoning=f"{', '.join(profile.current_tools)}를 함께 쓰면 정보가 앱마다 흩어져 한 곳에서 현황을 보기 어렵습니다.",
            sw_solution="Notion이나 Airtable 같은 데이터베이스형 도구를 허브로 두면 흩어진 정보를 한 곳에서 관리할 수 있습니다.",
        ))

    if profile.team_size >= 3 and not any(word in stated for word in ("협업", "커뮤니케이션", "누락")):
        insights.append(ProactiveInsight(
            problem="팀 내 업무 현황 가시성 부족",
            reasoning=f"{profile.team_size}명 팀에서는 누가 무엇을 언제 했는지 추적하기 어려워 확인용 메신저와 회의가 반복됩니다.",
            sw_solution="Notion, Jira, Asana 같은 업무 관리 도구로 현황을 실시간 공유하면 상태 확인이 줄어듭니다.",
        ))

    if (
        contains_any(_profile_text(profile), ("영업", "마케터", "이커머스", "고객", "crm"))
        and "고객" not in stated
        and "crm" not in stated
    ):
        insights.append(ProactiveInsight(
            problem="고객 정보 및 히스토리 관리 체계 부재",
            reasoning=f"{job or '업무'} 특성상 고객 접점이 많습니다. 고객별 상태와 연락 이력, 팔로업 일정이 정리되지 않으면 기회를 놓칩니다.",
            sw_solution="HubSpot Free나 Notion CRM 템플릿으로 고객 정보를 모으면 팔로업 누락을 막을 수 있습니다.",
        ))

    return insights[:3]

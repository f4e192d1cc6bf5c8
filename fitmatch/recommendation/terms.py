"""Bilingual term expansion tables and tokenizer

Onboarding answers are mostly Korean phrases while catalog entries are tagged
in English. The tables below map a phrase to the English tags, roles or
industries it implies. A key matches when it is a substring of the
normalized input, so "식당 관리" picks up the "식당" entry.
"""
import re
from types import MappingProxyType
from typing import Iterable, List, Mapping, Sequence, Tuple

TermTable = Mapping[str, Tuple[str, ...]]

_TOKEN_SPLIT = re.compile(r"[^a-z0-9가-힣]+")

STOPWORDS = frozenset([
    "업무", "관리", "문제", "불편", "현재", "사용", "필요", "처리", "작업", "시스템",
    "도구", "기능", "서비스", "회사", "팀", "담당", "운영", "개선", "효율", "데이터",
])

# Pain points, goals and main pain detail -> catalog tags
TAG_TERMS: TermTable = MappingProxyType({
    # goals
    "반복 작업 자동화": ("automation", "workflow"),
    "업무 자동화": ("automation", "workflow"),
    "고객 응답 속도 개선": ("support", "live-chat", "crm"),
    "응답시간 단축": ("support", "live-chat"),
    "매출/전환율 높이기": ("crm", "pipeline", "email-marketing", "retention"),
    "매출 전환율 개선": ("crm", "pipeline", "email-marketing"),
    "팀 협업 개선": ("collaboration", "tasks"),
    "팀 협업": ("collaboration",),
    "데이터 한눈에 보기": ("analytics", "dashboard", "bi", "database"),
    "데이터 분석 강화": ("analytics", "product-analytics", "bi"),
    "비용 절감": ("automation", "finance", "accounting"),
    # pain points
    "수작업이 너무 많아요": ("automation", "workflow", "no-code"),
    "고객 문의 대응 느림": ("support", "live-chat", "helpdesk", "ticketing"),
    "협업·커뮤니케이션 누락": ("collaboration", "tasks"),
    "협업/커뮤니케이션 누락": ("collaboration", "tasks"),
    "데이터가 흩어져 있어요": ("database", "analytics", "bi", "no-code"),
    "보고서 작성 번거로움": ("dashboard", "bi", "analytics"),
    "비용 추적 어려움": ("finance", "accounting", "invoicing"),
    "채용/인사 관리 복잡": ("ats", "hiring", "recruiting"),
    "일정 조율이 힘들어요": ("scheduling", "calendar"),
    # domain keywords that show up in free text
    "장부": ("accounting", "bookkeeping", "finance", "invoicing", "receipt"),
    "정산": ("settlement", "accounting", "finance"),
    "회계": ("accounting", "bookkeeping", "finance"),
    "세금계산서": ("invoicing", "tax", "accounting"),
    "영수증": ("receipt", "expense", "accounting"),
    "급여": ("payroll", "hr", "finance"),
    "재고": ("inventory", "stock", "pos"),
    "주문": ("order", "pos", "ecommerce"),
    "예약": ("booking", "scheduling", "calendar"),
    "포스": ("pos",),
    "매장": ("pos", "retail"),
    "견적": ("quote", "invoicing", "crm"),
    "고객 관리": ("crm", "customer"),
    "상담": ("support", "helpdesk", "live-chat"),
    "설문": ("survey", "forms"),
    "출퇴근": ("attendance", "hr", "scheduling"),
    "ledger": ("accounting", "bookkeeping", "finance"),
    "payroll": ("payroll", "hr", "finance"),
})

# Job title -> catalog target roles
ROLE_TERMS: TermTable = MappingProxyType({
    "마케터": ("marketer", "marketing", "growth marketer", "ecommerce marketer"),
    "개발자": ("developer", "engineering manager", "startup founder"),
    "창업자/대표": ("founder", "startup founder", "smb sales"),
    "대표": ("founder", "owner", "ceo"),
    "사장": ("owner", "founder"),
    "운영/기획": ("operations", "pm", "product manager", "ops"),
    "디자이너": ("designer", "product manager"),
    "영업": ("sales", "smb sales"),
    "인사": ("hr", "recruiter", "people ops"),
    "회계": ("accountant", "finance"),
    "기타": (),
})

# Industry -> catalog industry keywords
INDUSTRY_TERMS: TermTable = MappingProxyType({
    "이커머스": ("ecommerce", "ecommerce marketer", "retention"),
    "교육": ("education",),
    "saas (구독형 서비스)": ("saas", "product manager", "growth"),
    "saas": ("saas", "product manager"),
    "제조": ("manufacturing", "operations"),
    "유통/물류": ("operations", "logistics"),
    "금융": ("finance", "accounting"),
    "헬스케어": ("healthcare", "operations"),
    "식당": ("restaurant", "food", "pos"),
    "요식업": ("restaurant", "food", "pos"),
    "카페": ("cafe", "restaurant", "pos"),
    "부동산": ("real estate", "crm"),
    "미디어": ("media", "content"),
})


def normalize(value: str) -> str:
    return value.strip().lower()


def split_tokens(text: str) -> List[str]:
    """Lower-cased tokens longer than one character; stopwords are kept."""
    return [token for token in _TOKEN_SPLIT.split(text.lower()) if len(token) > 1]


def tokenize(text: str) -> List[str]:
    """Split free text into lower-cased tokens, dropping stopwords and 1-char tokens."""
    return [token for token in split_tokens(text) if token not in STOPWORDS]


def contains_any(text: str, keywords: Sequence[str]) -> bool:
    """True when any keyword is a substring of the normalized text."""
    normalized = normalize(text)
    return any(normalize(keyword) in normalized for keyword in keywords)


def unique(values: Iterable[str]) -> List[str]:
    """Deduplicate while keeping first-seen order; empty strings are dropped."""
    seen = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def mapped_terms(value: str, mapping: TermTable) -> List[str]:
    """Terms of every mapping key contained in the normalized value."""
    normalized = normalize(value)
    terms: List[str] = []
    for key, targets in mapping.items():
        if normalize(key) in normalized:
            terms.extend(normalize(target) for target in targets)
    return terms


def expand_mapped_signals(value: str, mapping: TermTable) -> List[str]:
    return [normalize(value), *mapped_terms(value, mapping)]


def expand_mapped_signals_from_list(values: Sequence[str], mapping: TermTable) -> List[str]:
    expanded: List[str] = []
    for value in values:
        expanded.extend(expand_mapped_signals(value, mapping))
    return expanded

"""Tests for narrative enrichment and its template fallback"""
import json

import pytest
from langchain_core.language_models import FakeListChatModel
from langchain_core.runnables import RunnableLambda

from fitmatch.recommendation.analysis import build_deterministic_analysis
from fitmatch.recommendation.models import ScoredCandidate
from fitmatch.recommendation.narrative import (
    DEFAULT_CAUTION,
    DEFAULT_PRO,
    AiRecommendationItem,
    LiveGenerator,
    TemplateFallbackGenerator,
    align_ai_items,
    build_narrative_generator,
    critical_pain_tokens,
    fallback_narrative,
    is_likely_off_topic,
)

from conftest import make_item, make_profile


def _candidate(item_id, name, score, **overrides):
    return ScoredCandidate(item=make_item(id=item_id, name=name, **overrides), score=score, reasons=["r"])


def _ai_item(software_id=None, name=None, why="AI prose", solvable=True):
    return {
        "softwareId": software_id,
        "name": name,
        "whyRecommended": why,
        "keyFeatures": ["f1", "f2", "f3"],
        "pros": ["p1"],
        "cautions": ["c1"],
        "solvable": solvable,
    }


def _raise_timeout(_):
    raise TimeoutError("model timed out")


@pytest.fixture
def candidates():
    return [
        _candidate("1", "CRM Alpha", 51, key_features=["pipeline", "automation", "dashboard"]),
        _candidate("3", "Automation Hub", 39, key_features=["automation", "integrations"]),
        _candidate("2", "Design Tool", 0, key_features=["prototype"]),
        _candidate("4", "Extra", 0),
    ]


class TestFallbackNarrative:
    """Tests for the template narrative"""

    def test_solvable_follows_threshold(self):
        profile = make_profile()
        assert fallback_narrative(_candidate("a", "A", 40), profile).solvable is True
        assert fallback_narrative(_candidate("b", "B", 39), profile).solvable is False

    def test_defaults_when_templates_missing(self):
        item = fallback_narrative(_candidate("a", "A", 10), make_profile())
        assert item.pros == [DEFAULT_PRO]
        assert item.cautions == [DEFAULT_CAUTION]

    def test_templates_are_capped(self):
        candidate = _candidate(
            "a", "A", 10,
            pros_template=["p1", "p2", "p3", "p4"],
            cons_template=["c1"],
            key_features=[f"f{i}" for i in range(7)],
        )
        item = fallback_narrative(candidate, make_profile())
        assert item.pros == ["p1", "p2", "p3"]
        assert item.cautions == ["c1"]
        assert len(item.key_features) == 5

    def test_why_names_the_best_matching_pain(self):
        profile = make_profile(
            job_title="Operations Manager",
            pain_points=["lead leak", "manual reporting"],
            current_tools=["excel"],
        )
        candidate = _candidate("a", "Report Bot", 45, tags=["reporting"], key_features=["scheduled reporting"])

        why = fallback_narrative(candidate, profile).why_recommended

        assert '"manual reporting"' in why
        assert "Report Bot" in why
        assert "excel" in why

    def test_without_profile_uses_reasons(self):
        item = fallback_narrative(_candidate("a", "A", 10))
        assert "r" in item.why_recommended

    def test_template_generator_takes_top_three(self, candidates):
        items = TemplateFallbackGenerator().generate_items(make_profile(), candidates)
        assert [i.software_id for i in items] == ["1", "3", "2"]
        assert [i.score for i in items] == [51, 39, 0]

    def test_template_generator_with_no_candidates(self):
        assert TemplateFallbackGenerator().generate_items(make_profile(), []) == []


class TestAlignment:
    """Tests for align_ai_items"""

    def test_by_id(self, candidates):
        top = candidates[:3]
        ai_items = [AiRecommendationItem(**_ai_item(software_id="2", why="design"))]
        aligned = align_ai_items(top, ai_items)
        assert aligned[0] is None
        assert aligned[2].whyRecommended == "design"

    def test_by_name_case_insensitive(self, candidates):
        top = candidates[:3]
        ai_items = [AiRecommendationItem(**_ai_item(name="automation hub", why="hub"))]
        aligned = align_ai_items(top, ai_items)
        assert aligned[1].whyRecommended == "hub"

    def test_by_position(self, candidates):
        top = candidates[:3]
        ai_items = [
            AiRecommendationItem(**_ai_item(why="first")),
            AiRecommendationItem(**_ai_item(why="second")),
        ]
        aligned = align_ai_items(top, ai_items)
        assert [a.whyRecommended if a else None for a in aligned] == ["first", "second", None]

    def test_first_match_wins(self, candidates):
        top = candidates[:3]
        ai_items = [
            AiRecommendationItem(**_ai_item(software_id="1", why="first")),
            AiRecommendationItem(**_ai_item(software_id="1", why="duplicate")),
        ]
        aligned = align_ai_items(top, ai_items)
        assert aligned[0].whyRecommended == "first"
        assert aligned[1] is None

    def test_unknown_item_past_candidates_is_dropped(self, candidates):
        top = candidates[:1]
        ai_items = [
            AiRecommendationItem(**_ai_item(software_id="1")),
            AiRecommendationItem(**_ai_item(software_id="zzz", name="Unknown")),
        ]
        aligned = align_ai_items(top, ai_items)
        assert len(aligned) == 1
        assert aligned[0].softwareId == "1"


class TestLiveGenerator:
    """Tests for LiveGenerator with fake chat models"""

    def test_uses_model_prose_and_scorer_scores(self, candidates):
        response = {"items": [
            _ai_item(software_id="1", why="CRM for lead leak"),
            _ai_item(software_id="3", why="Automates reporting", solvable=False),
            _ai_item(software_id="2", why="Not a fit"),
        ]}
        llm = FakeListChatModel(responses=[json.dumps(response)])

        items = LiveGenerator(llm=llm).generate_items(make_profile(), candidates)

        assert [i.software_id for i in items] == ["1", "3", "2"]
        assert [i.why_recommended for i in items] == ["CRM for lead leak", "Automates reporting", "Not a fit"]
        assert [i.score for i in items] == [51, 39, 0]
        assert items[1].solvable is False

    def test_missing_model_item_falls_back_for_that_candidate(self, candidates):
        response = {"items": [_ai_item(software_id="1", why="model")]}
        llm = FakeListChatModel(responses=[json.dumps(response)])
        profile = make_profile()

        items = LiveGenerator(llm=llm).generate_items(profile, candidates)

        assert items[0].why_recommended == "model"
        assert items[1] == fallback_narrative(candidates[1], profile)

    @pytest.mark.parametrize("raw", [
        "this is not json",
        json.dumps({"items": [{"softwareId": "1", "whyRecommended": "x", "keyFeatures": ["a", "b"],
                               "pros": ["p"], "cautions": ["c"], "solvable": True}]}),
        json.dumps({"items": []}),
        json.dumps({"unexpected": True}),
    ])
    def test_invalid_output_uses_templates(self, candidates, raw):
        profile = make_profile()
        llm = FakeListChatModel(responses=[raw])

        items = LiveGenerator(llm=llm).generate_items(profile, candidates)

        assert items == TemplateFallbackGenerator().generate_items(profile, candidates)

    def test_model_error_uses_templates(self, candidates):
        profile = make_profile()
        generator = LiveGenerator(llm=RunnableLambda(_raise_timeout))

        items = generator.generate_items(profile, candidates)
        analysis = generator.generate_fit_analysis(profile, "software_fit", items, candidates)

        assert items == TemplateFallbackGenerator().generate_items(profile, candidates)
        assert analysis == build_deterministic_analysis(profile, "software_fit", items)
        assert analysis.ai_enhanced is False

    def test_no_candidates_skips_the_model(self):
        generator = LiveGenerator(llm=RunnableLambda(_raise_timeout))
        assert generator.generate_items(make_profile(), []) == []

    def test_fit_analysis_from_model(self, candidates):
        profile = make_profile()
        response = {
            "userIdentity": "정산을 맡은 회계 담당자",
            "painAnalysis": [{"pain": "late invoices", "analysis": "분석", "impact": "영향"}],
            "goalRefinements": [{"goal": "faster close", "refinedGoal": "3일 내 마감", "successMetric": "마감 일수"}],
            "recommendation": "CRM Alpha 도입",
        }
        llm = FakeListChatModel(responses=[json.dumps(response, ensure_ascii=False)])
        items = TemplateFallbackGenerator().generate_items(profile, candidates)

        analysis = LiveGenerator(llm=llm).generate_fit_analysis(profile, "software_fit", items, candidates)

        assert analysis.ai_enhanced is True
        assert analysis.user_identity == "정산을 맡은 회계 담당자"
        assert analysis.goal_refinements[0].refined_goal == "3일 내 마감"
        assert analysis.confidence_level == build_deterministic_analysis(profile, "software_fit", items).confidence_level

    def test_fit_analysis_from_model_keeps_framework(self, candidates):
        """Model prose never replaces the computed build-vs-buy worksheet."""
        profile = make_profile()
        response = {"userIdentity": "담당자", "painAnalysis": [], "goalRefinements": [], "recommendation": "도입"}
        llm = FakeListChatModel(responses=[json.dumps(response, ensure_ascii=False)])
        items = TemplateFallbackGenerator().generate_items(profile, candidates)
        expected = build_deterministic_analysis(profile, "software_fit", items)

        analysis = LiveGenerator(llm=llm).generate_fit_analysis(profile, "software_fit", items, candidates)

        assert analysis.ai_enhanced is True
        assert analysis.custom_build_framework == expected.custom_build_framework
        assert analysis.recommended_features == expected.recommended_features
        assert analysis.structured_features == expected.structured_features
        assert analysis.proactive_insights == expected.proactive_insights

    def test_fit_analysis_empty_lists_use_templates(self, candidates):
        profile = make_profile()
        response = {"userIdentity": "담당자", "painAnalysis": [], "goalRefinements": [], "recommendation": "도입"}
        llm = FakeListChatModel(responses=[json.dumps(response, ensure_ascii=False)])

        analysis = LiveGenerator(llm=llm).generate_fit_analysis(profile, "custom_build", [], candidates)

        assert len(analysis.pain_analysis) == len(profile.pain_points)
        assert len(analysis.goal_refinements) == len(profile.goals)
        assert analysis.recommendation == "도입"


class TestOffTopicGuard:
    """Tests for rejecting model prose unrelated to the main pain"""

    @pytest.fixture
    def payroll_profile(self):
        return make_profile(
            pain_points=["manual payroll"],
            main_pain_detail="payroll calculation errors delay monthly salary transfers",
        )

    def test_unrelated_candidate_and_prose_is_off_topic(self, payroll_profile):
        candidate = _candidate("s", "Sketchpad", 45, category="Design", tags=["wireframe"])
        ai_item = AiRecommendationItem(**_ai_item(why="Beautiful mockups for your brand"))
        assert is_likely_off_topic(payroll_profile, candidate, ai_item) is True

    def test_related_prose_is_on_topic(self, payroll_profile):
        candidate = _candidate("s", "Sketchpad", 45, category="Design", tags=["wireframe"])
        ai_item = AiRecommendationItem(**_ai_item(why="Automates payroll calculation and salary transfers"))
        assert is_likely_off_topic(payroll_profile, candidate, ai_item) is False

    def test_no_detail_never_off_topic(self):
        candidate = _candidate("s", "Sketchpad", 45, category="Design")
        ai_item = AiRecommendationItem(**_ai_item(why="Beautiful mockups"))
        assert is_likely_off_topic(make_profile(), candidate, ai_item) is False

    def test_guard_keeps_domain_words(self):
        """Words like 데이터 and 개선 count as evidence for the main pain."""
        profile = make_profile(main_pain_detail="데이터 개선 효율 담당")

        tokens = critical_pain_tokens(profile)

        assert tokens == ["데이터", "개선", "효율", "담당", "late", "invoices"]

    def test_guard_drops_filler_words(self):
        profile = make_profile(main_pain_detail="도입 방식 상황 어려움 정산 누락")
        assert critical_pain_tokens(profile) == ["정산", "누락", "late", "invoices"]

    def test_data_prose_is_on_topic_for_data_pain(self):
        profile = make_profile(pain_points=["데이터 정리"], main_pain_detail="데이터 개선 효율 담당 업무가 밀림")
        candidate = _candidate("s", "Sketchpad", 45, category="Design", tags=["wireframe"])
        ai_item = AiRecommendationItem(**_ai_item(why="데이터 개선 효율을 높여 줍니다"))
        assert is_likely_off_topic(profile, candidate, ai_item) is False

    def test_off_topic_item_is_replaced_and_marked_unsolvable(self, payroll_profile):
        candidate = _candidate("s", "Sketchpad", 45, category="Design", tags=["wireframe"])
        response = {"items": [_ai_item(software_id="s", why="Beautiful mockups for your brand")]}
        llm = FakeListChatModel(responses=[json.dumps(response)])

        items = LiveGenerator(llm=llm).generate_items(payroll_profile, [candidate])

        assert items[0].solvable is False
        assert items[0].why_recommended != "Beautiful mockups for your brand"
        detail = payroll_profile.main_pain_detail
        assert f'"{detail[:40]}..."' in items[0].cautions[0]
        assert items[0].cautions[1:] == [DEFAULT_CAUTION]
        assert items[0].score == 45


class TestBuildNarrativeGenerator:
    """Tests for generator selection"""

    def test_templates_without_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert isinstance(build_narrative_generator(), TemplateFallbackGenerator)

    def test_placeholder_key_is_not_configured(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "your-openai-api-key")
        assert isinstance(build_narrative_generator(), TemplateFallbackGenerator)

    def test_explicit_model_is_used(self):
        generator = build_narrative_generator(llm=FakeListChatModel(responses=["{}"]))
        assert isinstance(generator, LiveGenerator)


class TestDeterministicAnalysis:
    """Tests for the template fit analysis"""

    def test_one_entry_per_pain_and_goal(self, operations_profile, candidates):
        items = TemplateFallbackGenerator().generate_items(operations_profile, candidates)
        analysis = build_deterministic_analysis(operations_profile, "software_fit", items)

        assert [p.pain for p in analysis.pain_analysis] == operations_profile.pain_points
        assert [g.goal for g in analysis.goal_refinements] == operations_profile.goals
        assert "CRM Alpha" in analysis.recommendation
        assert analysis.confidence_level == "medium"
        assert analysis.ai_enhanced is False

    def test_custom_build_summary(self, operations_profile):
        analysis = build_deterministic_analysis(operations_profile, "custom_build", [])
        assert "맞춤 개발" in analysis.recommendation
        assert analysis.confidence_level == "medium"

    def test_confidence_grows_with_evidence(self):
        sparse = make_profile()
        rich = make_profile(
            pain_points=["late invoices", "manual entry", "lost receipts", "slow approvals"],
            goals=["faster close", "fewer errors", "audit trail", "cost visibility"],
        )
        assert build_deterministic_analysis(sparse, "custom_build", []).confidence_level == "low"
        assert build_deterministic_analysis(rich, "custom_build", []).confidence_level == "high"

    def test_manual_pain_uses_matching_bucket(self, operations_profile):
        analysis = build_deterministic_analysis(operations_profile, "custom_build", [])
        assert "반복" in analysis.pain_analysis[0].analysis

"""Recommendation pipeline with LangGraph

lookup -> (cache hit) refresh
       -> (miss) score -> enrich -> decide -> analyze -> persist
"""
from typing import Dict, List, Optional
from typing_extensions import TypedDict

from langgraph.graph import StateGraph, END

from .database import RecommendationNotFoundError, RecommendationStore
from .models import (
    FitAnalysis,
    FitDecisionResult,
    RecommendationItem,
    RecommendationRecord,
    RecommendationResult,
    ScoredCandidate,
)
from .narrative import NarrativeGenerator, TemplateFallbackGenerator, build_narrative_generator
from .scoring import create_profile_fingerprint, decide_fit_decision, score_catalog_candidates
from ..profiles.models import ProfileInput
from ..utils import config, logger, monitor


# --- State Definition ---

class RecommendationState(TypedDict):
    """State for the recommendation graph"""
    user_id: str
    profile: ProfileInput
    skip_ai: bool
    force: bool
    fingerprint: str
    existing: Optional[RecommendationRecord]
    candidates: List[ScoredCandidate]
    items: List[RecommendationItem]
    fit: Optional[FitDecisionResult]
    fit_analysis: Optional[FitAnalysis]
    result: Optional[RecommendationResult]


# --- Public API ---

class RecommendationService:
    """Recommendation API: cached scoring, enrichment and fit decision"""

    def __init__(
        self,
        store: Optional[RecommendationStore] = None,
        generator: Optional[NarrativeGenerator] = None,
        candidate_pool_size: Optional[int] = None,
    ):
        self.store = store or RecommendationStore()
        self.generator = generator or build_narrative_generator()
        self.fallback_generator = TemplateFallbackGenerator()
        self.candidate_pool_size = candidate_pool_size or config.candidate_pool_size
        self.graph = self._build_graph()

    # --- Nodes ---

    def _lookup_node(self, state: RecommendationState) -> Dict:
        fingerprint = create_profile_fingerprint(state["profile"])
        existing = self.store.find_recommendation(state["user_id"], fingerprint)
        logger.info(
            f"Fingerprint {fingerprint[:12]} for {state['user_id']}: "
            f"{'cached' if existing else 'new'}{' (forced)' if state['force'] else ''}"
        )
        return {"fingerprint": fingerprint, "existing": existing}

    def _route_after_lookup(self, state: RecommendationState) -> str:
        if state.get("existing") is not None and not state["force"]:
            return "refresh"
        return "score"

    def _refresh_node(self, state: RecommendationState) -> Dict:
        record = self.store.touch_recommendation(state["existing"].id)
        return {"result": record.to_result(cached=True)}

    def _score_node(self, state: RecommendationState) -> Dict:
        with monitor.stage("score"):
            catalog = self.store.fetch_active_catalog()
            candidates = score_catalog_candidates(state["profile"], catalog)
        logger.info(
            f"Scored {len(catalog)} catalog items, {len(candidates)} ranked. "
            f"Top score: {candidates[0].score if candidates else 0}"
        )
        return {"candidates": candidates[:self.candidate_pool_size]}

    def _generator_for(self, state: RecommendationState) -> NarrativeGenerator:
        return self.fallback_generator if state["skip_ai"] else self.generator

    def _enrich_node(self, state: RecommendationState) -> Dict:
        with monitor.stage("enrich"):
            items = self._generator_for(state).generate_items(state["profile"], state["candidates"])
        return {"items": items}

    def _decide_node(self, state: RecommendationState) -> Dict:
        fit = decide_fit_decision(state["items"])
        logger.info(f"Fit decision: {fit.fit_decision} ({len(state['items'])} items)")
        return {"fit": fit}

    def _analyze_node(self, state: RecommendationState) -> Dict:
        with monitor.stage("analyze"):
            analysis = self._generator_for(state).generate_fit_analysis(
                state["profile"], state["fit"].fit_decision, state["items"], state["candidates"]
            )
        return {"fit_analysis": analysis}

    def _persist_node(self, state: RecommendationState) -> Dict:
        candidate_ids = [c.item.id for c in state["candidates"]]
        fit = state["fit"]
        existing = state.get("existing")

        if existing is not None:
            record = self.store.update_recommendation(
                existing.id,
                items=state["items"],
                fit_decision=fit.fit_decision,
                fit_reason=fit.fit_reason,
                fit_analysis=state["fit_analysis"],
                ai_enhanced=state["fit_analysis"].ai_enhanced,
                candidate_ids=candidate_ids,
            )
            return {"result": record.to_result()}

        record, created = self.store.insert_recommendation(
            user_id=state["user_id"],
            fingerprint=state["fingerprint"],
            profile_snapshot=state["profile"].to_snapshot(),
            candidate_ids=candidate_ids,
            items=state["items"],
            fit_decision=fit.fit_decision,
            fit_reason=fit.fit_reason,
            fit_analysis=state["fit_analysis"],
            ai_enhanced=state["fit_analysis"].ai_enhanced,
        )
        return {"result": record.to_result(cached=not created)}

    # --- Graph Construction ---

    def _build_graph(self):
        workflow = StateGraph(RecommendationState)

        workflow.add_node("lookup", self._lookup_node)
        workflow.add_node("refresh", self._refresh_node)
        workflow.add_node("score", self._score_node)
        workflow.add_node("enrich", self._enrich_node)
        workflow.add_node("decide", self._decide_node)
        workflow.add_node("analyze", self._analyze_node)
        workflow.add_node("persist", self._persist_node)

        workflow.set_entry_point("lookup")
        workflow.add_conditional_edges(
            "lookup",
            self._route_after_lookup,
            {
                "refresh": "refresh",
                "score": "score"
            }
        )
        workflow.add_edge("refresh", END)
        workflow.add_edge("score", "enrich")
        workflow.add_edge("enrich", "decide")
        workflow.add_edge("decide", "analyze")
        workflow.add_edge("analyze", "persist")
        workflow.add_edge("persist", END)

        return workflow.compile()

    @monitor.measure
    def run(
        self,
        user_id: str,
        profile: ProfileInput,
        skip_ai: bool = False,
        force: bool = False,
    ) -> RecommendationResult:
        """
        Recommend software for a profile, reusing a stored run for the same fingerprint

        Args:
            user_id: Owner of the recommendation
            profile: Completed onboarding profile
            skip_ai: Store the template result now and leave narrative to enhance()
            force: Recompute even when the fingerprint is cached

        Returns:
            RecommendationResult, with cached=True when a stored run was reused

        Raises:
            CatalogError: catalog could not be read
            RecommendationInsertError: result could not be stored
        """
        initial_state = {
            "user_id": user_id,
            "profile": profile,
            "skip_ai": skip_ai,
            "force": force,
            "fingerprint": "",
            "existing": None,
            "candidates": [],
            "items": [],
            "fit": None,
            "fit_analysis": None,
            "result": None,
        }

        final_state = self.graph.invoke(initial_state)
        return final_state["result"]

    def enhance(self, recommendation_id: str, user_id: str) -> RecommendationResult:
        """Replace a template-only recommendation with live narrative.

        Raises:
            RecommendationNotFoundError: no such recommendation for the user
        """
        record = self.store.get_recommendation(recommendation_id, user_id)
        if record is None:
            raise RecommendationNotFoundError(recommendation_id)
        if record.ai_enhanced:
            logger.info(f"Recommendation {recommendation_id} already enhanced")
            return record.to_result(cached=True)

        profile = ProfileInput.model_validate(record.profile_snapshot)
        with monitor.stage("enhance"):
            catalog = self.store.fetch_active_catalog()
            candidates = score_catalog_candidates(profile, catalog)[:self.candidate_pool_size]
            items = self.generator.generate_items(profile, candidates)
            fit = decide_fit_decision(items)
            analysis = self.generator.generate_fit_analysis(profile, fit.fit_decision, items, candidates)

        updated = self.store.update_recommendation(
            record.id,
            items=items,
            fit_decision=fit.fit_decision,
            fit_reason=fit.fit_reason,
            fit_analysis=analysis,
            ai_enhanced=analysis.ai_enhanced,
            candidate_ids=[c.item.id for c in candidates],
        )
        if analysis.ai_enhanced:
            logger.info(f"Enhanced recommendation {recommendation_id}: {fit.fit_decision}")
        else:
            logger.warning(f"Recommendation {recommendation_id} refreshed from templates; narrative unavailable")
        return updated.to_result()

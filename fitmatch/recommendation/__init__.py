"""Recommendation package"""
from .database import (
    CatalogError,
    RecommendationInsertError,
    RecommendationNotFoundError,
    RecommendationStore,
)
from .models import (
    RecommendationItem,
    RecommendationResult,
    ScoredCandidate,
    SoftwareCatalogItem,
)
from .narrative import LiveGenerator, NarrativeGenerator, TemplateFallbackGenerator
from .scoring import create_profile_fingerprint, decide_fit_decision, score_catalog_candidates
from .service import RecommendationService

__all__ = [
    "CatalogError",
    "RecommendationInsertError",
    "RecommendationNotFoundError",
    "RecommendationStore",
    "RecommendationItem",
    "RecommendationResult",
    "ScoredCandidate",
    "SoftwareCatalogItem",
    "LiveGenerator",
    "NarrativeGenerator",
    "TemplateFallbackGenerator",
    "create_profile_fingerprint",
    "decide_fit_decision",
    "score_catalog_candidates",
    "RecommendationService",
]

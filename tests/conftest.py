"""Shared fixtures: in-memory store, sample catalog and profiles, fake chat models."""
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fitmatch.profiles.models import ProfileInput
from fitmatch.recommendation.database import RecommendationStore
from fitmatch.recommendation.models import SoftwareCatalogItem
from fitmatch.recommendation.narrative import TemplateFallbackGenerator


def make_item(**overrides) -> SoftwareCatalogItem:
    data = {
        "id": "item",
        "name": "Item",
        "category": "Misc",
        "target_roles": [],
        "tags": [],
        "description": "",
        "pricing_model": None,
        "website_url": None,
        "key_features": [],
        "pros_template": [],
        "cons_template": [],
        "is_active": True,
    }
    data.update(overrides)
    return SoftwareCatalogItem(**data)


def make_profile(**overrides) -> ProfileInput:
    data = {
        "full_name": "Tester",
        "job_title": "Accountant",
        "industry": "Education",
        "team_size": 10,
        "pain_points": ["late invoices"],
        "main_pain_detail": None,
        "goals": ["faster close"],
        "current_tools": [],
        "budget_preference": "paid plan",
        "deadline_preference": "next quarter",
    }
    data.update(overrides)
    return ProfileInput(**data)


class CountingGenerator(TemplateFallbackGenerator):
    """Template generator that records how often it is used."""

    def __init__(self):
        self.item_calls = 0
        self.analysis_calls = 0

    def generate_items(self, profile, candidates):
        self.item_calls += 1
        return super().generate_items(profile, candidates)

    def generate_fit_analysis(self, profile, fit_decision, items, candidates):
        self.analysis_calls += 1
        return super().generate_fit_analysis(profile, fit_decision, items, candidates)


@pytest.fixture
def base_catalog():
    return [
        make_item(
            id="1",
            name="CRM Alpha",
            category="CRM",
            target_roles=["operations manager", "sales"],
            tags=["crm", "workflow automation", "collaboration"],
            description="Sales and operations workflow automation with customer pipeline.",
            pricing_model="Free + Paid",
            key_features=["pipeline", "automation", "dashboard"],
        ),
        make_item(
            id="2",
            name="Design Tool",
            category="Design",
            target_roles=["designer"],
            tags=["prototyping"],
            description="Design and prototyping tool.",
            pricing_model="Paid",
            key_features=["prototype", "asset"],
        ),
        make_item(
            id="3",
            name="Automation Hub",
            category="Internal Tooling",
            target_roles=["operations"],
            tags=["workflow automation", "collaboration"],
            description="Automation and integrations for repeated operations work.",
            pricing_model="Free",
            key_features=["automation", "integrations"],
        ),
    ]


@pytest.fixture
def operations_profile():
    return make_profile(
        full_name="Tester",
        job_title="Operations Manager",
        industry="SaaS",
        team_size=18,
        pain_points=["manual reporting", "lead leak"],
        goals=["workflow automation", "crm"],
        current_tools=["excel", "slack"],
        budget_preference="free first",
        deadline_preference="within 4 weeks",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    store = RecommendationStore(engine)
    store.create_tables()
    return store


@pytest.fixture
def seeded_store(store, base_catalog):
    store.add_catalog_items(base_catalog)
    return store


@pytest.fixture
def counting_generator():
    return CountingGenerator()

#!/usr/bin/env python3
"""Initialize database with the sample software catalog"""
import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from fitmatch.recommendation.database import Base, RecommendationStore
from fitmatch.recommendation.models import SoftwareCatalogItem
from fitmatch.utils import logger


def load_catalog(path: str):
    """Load catalog items from a JSON file"""
    with open(path, "r", encoding="utf-8") as f:
        return [SoftwareCatalogItem.model_validate(row) for row in json.load(f)]


def main():
    parser = argparse.ArgumentParser(description="Create tables and seed the software catalog")
    parser.add_argument("--catalog", default="data/sample_catalog.json", help="Catalog JSON file")
    parser.add_argument("--reset", action="store_true", help="Drop existing tables first")
    args = parser.parse_args()

    store = RecommendationStore()

    if args.reset:
        logger.info("Dropping existing tables...")
        Base.metadata.drop_all(store.engine)

    store.create_tables()
    logger.info("✓ Tables ready")

    items = load_catalog(args.catalog)
    store.add_catalog_items(items)
    active = sum(1 for item in items if item.is_active)
    logger.info(f"✓ Seeded {len(items)} catalog items ({active} active)")


if __name__ == "__main__":
    main()

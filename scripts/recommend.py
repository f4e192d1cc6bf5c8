#!/usr/bin/env python3
"""Generate a software recommendation for one profile"""
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError

from fitmatch.batch_processor import load_profile
from fitmatch.recommendation import CatalogError, RecommendationInsertError, RecommendationService
from fitmatch.utils import logger, monitor


def main():
    parser = argparse.ArgumentParser(description="Generate a software recommendation")
    parser.add_argument("--profile", required=True, help="Path to profile JSON")
    parser.add_argument("--user-id", required=True, help="User ID")
    parser.add_argument("--skip-ai", action="store_true", help="Template narrative only")
    parser.add_argument("--force", action="store_true", help="Ignore cached result for this profile")
    parser.add_argument("--output", help="Output JSON file")
    args = parser.parse_args()

    try:
        profile = load_profile(args.profile)
    except ValidationError as e:
        logger.error(f"Invalid profile: {e}")
        sys.exit(1)

    service = RecommendationService()
    try:
        result = service.run(args.user_id, profile, skip_ai=args.skip_ai, force=args.force)
    except (CatalogError, RecommendationInsertError) as e:
        logger.error(f"Recommendation failed: {e}")
        sys.exit(1)

    output = result.model_dump_json(indent=2)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output)
        logger.info(f"✓ Saved recommendation to {args.output}")
    else:
        print(output)

    logger.info(f"Performance: {monitor.get_report()}")


if __name__ == "__main__":
    main()

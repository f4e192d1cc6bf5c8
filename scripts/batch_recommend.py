#!/usr/bin/env python3
"""Batch recommendation run over a directory of profile files"""
import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fitmatch.batch_processor import BatchRecommendationProcessor
from fitmatch.recommendation import RecommendationService
from fitmatch.utils import config, logger, monitor


def main():
    parser = argparse.ArgumentParser(description="Recommend software for many profiles")
    parser.add_argument("--profiles-dir", default="data/profiles", help="Directory with profile JSON files")
    parser.add_argument("--workers", type=int, default=config.batch_workers, help="Concurrent workers")
    parser.add_argument("--skip-ai", action="store_true", help="Template narrative only")
    parser.add_argument("--output", default="output/batch_summary.json", help="Summary JSON file")
    args = parser.parse_args()

    profile_files = sorted(Path(args.profiles_dir).glob("*.json"))
    if not profile_files:
        logger.warning(f"No profile files found in {args.profiles_dir}")
        return

    logger.info(f"Batch configuration:")
    logger.info(f"  Profiles: {len(profile_files)}")
    logger.info(f"  Concurrent workers: {args.workers}")

    monitor.reset()
    processor = BatchRecommendationProcessor(RecommendationService(), max_workers=args.workers)
    summary = processor.process_batch(
        [str(p) for p in profile_files],
        skip_ai=args.skip_ai or not config.narrative_enabled,
        summary_path=args.output,
    )

    print("\n" + "=" * 80)
    print("BATCH RECOMMENDATION REPORT")
    print("=" * 80)
    print(f"  Processed: {summary['successful']}/{summary['total_profiles']}")
    print(f"  Cache hits: {summary['cache_hits']}")
    print(f"  Total time: {summary['total_time_seconds']:.2f}s")
    print(f"  Avg latency: {summary['avg_latency_seconds']:.3f}s")
    print(f"  Pipeline: {monitor.get_report()}")
    print(f"\nSummary saved to: {args.output}")


if __name__ == "__main__":
    main()

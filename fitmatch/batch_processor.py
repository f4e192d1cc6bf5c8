"""Batch recommendation runs with concurrency"""
import json
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from .profiles.models import ProfileInput
from .recommendation.service import RecommendationService
from .utils import config, logger


@dataclass
class ProcessingResult:
    """Result of one recommendation run"""
    user_id: str
    success: bool
    latency: float
    cached: bool = False
    fit_decision: Optional[str] = None
    num_items: int = 0
    error: Optional[str] = None


def load_profile(path: str) -> ProfileInput:
    """Read and validate a profile JSON file"""
    with open(path, "r", encoding="utf-8") as f:
        return ProfileInput.model_validate(json.load(f))


class BatchRecommendationProcessor:
    """Run recommendations for many profiles concurrently"""

    def __init__(self, service: RecommendationService, max_workers: Optional[int] = None):
        self.service = service
        self.max_workers = max_workers or config.batch_workers

    def process_single(self, user_id: str, profile_path: str, skip_ai: bool = False) -> ProcessingResult:
        """Validate one profile file and run the pipeline for it"""
        start = time.time()
        try:
            profile = load_profile(profile_path)
            result = self.service.run(user_id, profile, skip_ai=skip_ai)
            return ProcessingResult(
                user_id=user_id,
                success=True,
                latency=time.time() - start,
                cached=result.cached,
                fit_decision=result.fit_decision,
                num_items=len(result.items),
            )
        except (ValidationError, OSError, json.JSONDecodeError) as e:
            logger.error(f"Invalid profile {profile_path}: {e}")
            return ProcessingResult(user_id=user_id, success=False, latency=time.time() - start, error=str(e))
        except Exception as e:
            logger.error(f"Error processing {user_id}: {e}")
            return ProcessingResult(user_id=user_id, success=False, latency=time.time() - start, error=str(e))

    def process_batch(
        self,
        profile_paths: Sequence[str],
        skip_ai: bool = False,
        summary_path: Optional[str] = None,
    ) -> Dict:
        """Process profile files concurrently; the file stem is the user id"""
        logger.info(f"Processing {len(profile_paths)} profiles with {self.max_workers} workers")

        start_time = time.time()
        results: List[ProcessingResult] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_path = {
                executor.submit(self.process_single, Path(path).stem, path, skip_ai): path
                for path in profile_paths
            }

            for future in as_completed(future_to_path):
                result = future.result()
                results.append(result)
                if result.success:
                    logger.info(f"✓ {result.user_id}: {result.fit_decision}, "
                                f"items={result.num_items}, cached={result.cached}, "
                                f"{result.latency:.2f}s")
                else:
                    logger.error(f"✗ {result.user_id}: {result.error}")

        total_time = time.time() - start_time
        results.sort(key=lambda r: r.user_id)
        successful = [r for r in results if r.success]

        summary = {
            "total_profiles": len(profile_paths),
            "successful": len(successful),
            "failed": len(results) - len(successful),
            "cache_hits": sum(1 for r in successful if r.cached),
            "total_time_seconds": round(total_time, 2),
            "avg_latency_seconds": round(
                sum(r.latency for r in successful) / len(successful), 3
            ) if successful else 0,
            "results": [
                {
                    "user_id": r.user_id,
                    "success": r.success,
                    "cached": r.cached,
                    "fit_decision": r.fit_decision,
                    "num_items": r.num_items,
                    "latency": round(r.latency, 3),
                    "error": r.error
                }
                for r in results
            ]
        }

        if summary_path:
            Path(summary_path).parent.mkdir(parents=True, exist_ok=True)
            with open(summary_path, "w", encoding="utf-8") as f:
                json.dump(summary, f, indent=2, ensure_ascii=False)

        logger.info(f"Batch complete: {summary['successful']}/{len(profile_paths)} succeeded "
                    f"in {total_time:.2f}s")
        return summary

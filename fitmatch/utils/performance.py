"""Performance monitoring for recommendation runs"""
import asyncio
import threading
import time
from collections import Counter, defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import wraps
from typing import Dict, List

import numpy as np


@dataclass
class SystemMetrics:
    """Recommendation run metrics"""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cache_hits: int = 0
    latencies: List[float] = field(default_factory=list)
    decisions: Counter = field(default_factory=Counter)
    stage_latencies: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    @property
    def avg_latency(self) -> float:
        return float(np.mean(self.latencies)) if self.latencies else 0.0

    @property
    def p95_latency(self) -> float:
        return float(np.percentile(self.latencies, 95)) if self.latencies else 0.0

    @property
    def throughput(self) -> float:
        total_time = sum(self.latencies)
        return (self.successful_requests / total_time * 60) if total_time > 0 else 0.0

    @property
    def cache_hit_rate(self) -> float:
        return self.cache_hits / self.successful_requests if self.successful_requests else 0.0

    def add_request(self, latency: float, success: bool = True, cached: bool = False, decision: str = None):
        """Record a request"""
        self.total_requests += 1
        self.latencies.append(latency)
        if not success:
            self.failed_requests += 1
            return
        self.successful_requests += 1
        if cached:
            self.cache_hits += 1
        if decision:
            self.decisions[decision] += 1


class PerformanceMonitor:
    """Latency, cache and decision counters for the recommendation pipeline.

    `measure` wraps a whole run; `stage` times one pipeline step. Both are
    safe to use from the batch processor's worker threads.
    """

    def __init__(self):
        self.metrics = SystemMetrics()
        self._lock = threading.Lock()

    def _record(self, start: float, success: bool, result=None):
        with self._lock:
            self.metrics.add_request(
                time.time() - start,
                success,
                cached=bool(getattr(result, "cached", False)),
                decision=getattr(result, "fit_decision", None),
            )

    def measure(self, func):
        """Decorator to measure execution time"""
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start = time.time()
            try:
                result = await func(*args, **kwargs)
            except Exception:
                self._record(start, False)
                raise
            self._record(start, True, result)
            return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception:
                self._record(start, False)
                raise
            self._record(start, True, result)
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    @contextmanager
    def stage(self, name: str):
        """Time one pipeline stage, failed stages included"""
        start = time.time()
        try:
            yield
        finally:
            with self._lock:
                self.metrics.stage_latencies[name].append(time.time() - start)

    def reset(self):
        with self._lock:
            self.metrics = SystemMetrics()

    def get_report(self) -> dict:
        """Generate performance report"""
        with self._lock:
            metrics = self.metrics
            return {
                "total_requests": metrics.total_requests,
                "successful_requests": metrics.successful_requests,
                "failed_requests": metrics.failed_requests,
                "cache_hits": metrics.cache_hits,
                "cache_hit_rate": round(metrics.cache_hit_rate, 3),
                "fit_decisions": dict(metrics.decisions),
                "avg_latency_sec": round(metrics.avg_latency, 4),
                "p95_latency_sec": round(metrics.p95_latency, 4),
                "throughput_per_min": round(metrics.throughput, 0),
                "stages_avg_sec": {
                    name: round(float(np.mean(values)), 4)
                    for name, values in sorted(metrics.stage_latencies.items())
                },
            }


# Global monitor instance
monitor = PerformanceMonitor()

"""
Import Metrics
Phase timings, per-kind row counters, failure reasons and resolution misses
"""
from typing import Dict, List, Any, Optional
import logging
import time
from datetime import datetime
from collections import defaultdict, deque
from dataclasses import dataclass, field
import statistics
import threading
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


@dataclass
class PhaseMetric:
    """Metrics for a single import phase"""
    phase_name: str
    start_time: float
    end_time: float = 0
    duration_ms: float = 0
    success: bool = False
    error_message: Optional[str] = None


@dataclass
class RunMetrics:
    """Metrics for one import run"""
    run_id: str
    kind: str
    start_time: float
    end_time: float = 0
    total_duration_ms: float = 0
    phases: List[PhaseMetric] = field(default_factory=list)
    imported: int = 0
    failed: int = 0
    skipped: int = 0
    success: bool = False


class ImportMetricsCollector:
    """Collects and aggregates import metrics in memory"""

    def __init__(self):
        self.active_runs: Dict[str, RunMetrics] = {}
        self.historical_runs = deque(maxlen=500)
        self.phase_timings = defaultdict(list)  # phase_name -> [duration_ms]
        self.failure_reasons = defaultdict(int)  # "kind:ErrorClass" -> count
        self.resolution_misses = defaultdict(int)  # "product" / "category" -> count
        self.counters = defaultdict(lambda: {"runs": 0, "imported": 0, "failed": 0, "skipped": 0})

        # Thread-safe lock
        self._lock = threading.Lock()

    def start_run(self, run_id: str, kind: str) -> None:
        with self._lock:
            self.active_runs[run_id] = RunMetrics(run_id=run_id, kind=kind, start_time=time.time())
            self.counters[kind]["runs"] += 1
        logger.debug(f"Started import metrics for run: {run_id} kind={kind}")

    @asynccontextmanager
    async def phase_timer(self, run_id: str, phase_name: str):
        """Context manager for timing import phases"""
        phase = PhaseMetric(phase_name=phase_name, start_time=time.time())
        try:
            yield phase
            phase.success = True
        except Exception as e:
            phase.error_message = str(e)
            logger.error(f"Phase {phase_name} failed for run {run_id}: {e}")
            raise
        finally:
            phase.end_time = time.time()
            phase.duration_ms = (phase.end_time - phase.start_time) * 1000
            with self._lock:
                if run_id in self.active_runs:
                    self.active_runs[run_id].phases.append(phase)
                self.phase_timings[phase_name].append(phase.duration_ms)

    def record_failure(self, kind: str, error: BaseException) -> None:
        with self._lock:
            self.failure_reasons[f"{kind}:{type(error).__name__}"] += 1

    def record_resolution_misses(self, entity: str, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self.resolution_misses[entity] += count

    def finish_run(self, run_id: str, imported: int, failed: int, skipped: int, success: bool) -> Dict[str, Any]:
        """Finish tracking a run and return its metrics"""
        with self._lock:
            run = self.active_runs.pop(run_id, None)
            if run is None:
                logger.warning(f"No import metrics found for run: {run_id}")
                return {}
            run.end_time = time.time()
            run.total_duration_ms = (run.end_time - run.start_time) * 1000
            run.imported, run.failed, run.skipped = imported, failed, skipped
            run.success = success

            counters = self.counters[run.kind]
            counters["imported"] += imported
            counters["failed"] += failed
            counters["skipped"] += skipped
            self.historical_runs.append(run)

            return {
                "run_id": run.run_id,
                "kind": run.kind,
                "success": run.success,
                "total_duration_ms": round(run.total_duration_ms, 2),
                "phases": {p.phase_name: round(p.duration_ms, 2) for p in run.phases},
                "imported": imported,
                "failed": failed,
                "skipped": skipped,
            }

    def get_summary(self) -> Dict[str, Any]:
        """Snapshot of every counter for dashboards and the metrics endpoint"""
        with self._lock:
            durations = [r.total_duration_ms for r in self.historical_runs]
            return {
                "timestamp": datetime.now().isoformat(),
                "active_runs": len(self.active_runs),
                "counters": {kind: dict(values) for kind, values in self.counters.items()},
                "failure_reasons": dict(sorted(self.failure_reasons.items(), key=lambda kv: kv[1], reverse=True)),
                "resolution_misses": dict(self.resolution_misses),
                "phases": {
                    name: self._calculate_phase_stats(timings)
                    for name, timings in self.phase_timings.items() if timings
                },
                "runs": {
                    "completed": len(durations),
                    "avg_duration_ms": round(statistics.mean(durations), 2) if durations else 0,
                    "max_duration_ms": round(max(durations), 2) if durations else 0,
                },
            }

    def reset(self) -> None:
        with self._lock:
            self.active_runs.clear()
            self.historical_runs.clear()
            self.phase_timings.clear()
            self.failure_reasons.clear()
            self.resolution_misses.clear()
            self.counters.clear()

    def _calculate_phase_stats(self, timings: List[float]) -> Dict[str, Any]:
        return {
            "count": len(timings),
            "avg_ms": round(statistics.mean(timings), 2),
            "median_ms": round(statistics.median(timings), 2),
            "p95_ms": round(self._percentile(timings, 95), 2),
            "max_ms": round(max(timings), 2),
        }

    def _percentile(self, data: List[float], percentile: float) -> float:
        """Calculate percentile of data"""
        if not data:
            return 0
        sorted_data = sorted(data)
        index = (percentile / 100) * (len(sorted_data) - 1)
        if index.is_integer():
            return sorted_data[int(index)]
        lower = sorted_data[int(index)]
        upper = sorted_data[int(index) + 1]
        return lower + (upper - lower) * (index - int(index))


# Global metrics collector
metrics_collector = ImportMetricsCollector()

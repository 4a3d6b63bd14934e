"""Metrics collection for polling and provider probes."""

import time
from collections import defaultdict, deque
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)


@dataclass
class MetricSnapshot:
    """A point-in-time snapshot of a metric."""
    timestamp: float
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class OperationMetrics:
    """Outcome and timing counters for one kind of operation."""
    count: int = 0
    error_count: int = 0
    total_duration: float = 0.0
    min_duration: float = float('inf')
    max_duration: float = 0.0
    durations: deque = field(default_factory=lambda: deque(maxlen=1000))  # Last 1000 operations

    @property
    def avg_duration(self) -> float:
        """Calculate average duration."""
        if self.count == 0:
            return 0.0
        return self.total_duration / self.count

    @property
    def error_rate(self) -> float:
        """Calculate error rate as percentage."""
        if self.count == 0:
            return 0.0
        return (self.error_count / self.count) * 100

    @property
    def p95_duration(self) -> float:
        """Calculate 95th percentile duration."""
        if not self.durations:
            return 0.0
        sorted_times = sorted(self.durations)
        p95_index = int(len(sorted_times) * 0.95)
        return sorted_times[p95_index] if p95_index < len(sorted_times) else sorted_times[-1]


class MetricsCollector:
    """Centralized metrics collection system."""

    def __init__(self, history_size: int = 10000):
        self.history_size = history_size
        self._metrics_history: Dict[str, deque] = defaultdict(lambda: deque(maxlen=history_size))
        self._operations: Dict[str, OperationMetrics] = defaultdict(OperationMetrics)
        self._start_time = time.time()

        # Counter metrics
        self._counters: Dict[str, float] = defaultdict(float)

        # Gauge metrics (current values)
        self._gauges: Dict[str, float] = defaultdict(float)

    def record_operation(self, operation: str, duration: float, success: bool):
        """Record one timed operation (a status poll, a provider probe)."""
        perf = self._operations[operation]
        perf.count += 1
        perf.total_duration += duration
        perf.min_duration = min(perf.min_duration, duration)
        perf.max_duration = max(perf.max_duration, duration)
        perf.durations.append(duration)

        if not success:
            perf.error_count += 1

        self._counters[f"{operation}_total"] += 1
        if not success:
            self._counters[f"{operation}_errors_total"] += 1

        self._metrics_history[f"{operation}_duration"].append(
            MetricSnapshot(time.time(), duration, {"success": str(success).lower()})
        )

        logger.debug(f"Recorded {operation}: success={success} in {duration:.3f}s")

    def record_poll(self, duration: float, success: bool):
        """Record a status fetch."""
        self.record_operation("polls", duration, success)

    def record_probe(self, provider_id: str, status: str, duration: float):
        """Record a provider probe and its resulting status."""
        self.record_operation("probes", duration, status in ("healthy", "degraded"))
        self._counters[f"probe_status_{status}"] += 1
        self.set_gauge(f"provider_healthy_{provider_id}", 1.0 if status == "healthy" else 0.0)

    def set_gauge(self, name: str, value: float):
        """Set a gauge metric value."""
        self._gauges[name] = value
        self._metrics_history[name].append(MetricSnapshot(time.time(), value))

    def increment_counter(self, name: str, value: float = 1.0):
        """Increment a counter metric."""
        self._counters[name] += value

    def get_counter(self, name: str) -> float:
        return self._counters.get(name, 0.0)

    def get_gauge(self, name: str) -> float:
        return self._gauges.get(name, 0.0)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of operation metrics."""
        summary = {
            "uptime_seconds": time.time() - self._start_time,
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "operations": {},
        }

        for name, perf in self._operations.items():
            summary["operations"][name] = {
                "count": perf.count,
                "error_count": perf.error_count,
                "error_rate_percent": perf.error_rate,
                "avg_duration": perf.avg_duration,
                "min_duration": perf.min_duration if perf.min_duration != float('inf') else 0,
                "max_duration": perf.max_duration,
                "p95_duration": perf.p95_duration,
            }

        return summary

    def get_prometheus_metrics(self) -> str:
        """Generate Prometheus-formatted metrics."""
        lines = []

        lines.append("# HELP jobwatch_uptime_seconds Time since the collector started")
        lines.append("# TYPE jobwatch_uptime_seconds gauge")
        lines.append(f"jobwatch_uptime_seconds {time.time() - self._start_time}")
        lines.append("")

        lines.append("# HELP jobwatch_events_total Polling and probe event counters")
        lines.append("# TYPE jobwatch_events_total counter")
        for name, value in sorted(self._counters.items()):
            lines.append(f'jobwatch_events_total{{event="{name}"}} {value}')
        lines.append("")

        lines.append("# HELP jobwatch_operation_duration_seconds Average operation duration")
        lines.append("# TYPE jobwatch_operation_duration_seconds gauge")
        for name, perf in sorted(self._operations.items()):
            lines.append(f'jobwatch_operation_duration_seconds{{operation="{name}"}} {perf.avg_duration}')
        lines.append("")

        lines.append("# HELP jobwatch_gauge Current gauge values")
        lines.append("# TYPE jobwatch_gauge gauge")
        for name, value in sorted(self._gauges.items()):
            lines.append(f'jobwatch_gauge{{name="{name}"}} {value}')

        return "\n".join(lines)

    def get_recent_metrics(self, metric_name: str, seconds: int = 300) -> List[MetricSnapshot]:
        """Get recent metrics for a specific metric within the last N seconds."""
        cutoff_time = time.time() - seconds
        recent_metrics = []

        if metric_name in self._metrics_history:
            for snapshot in self._metrics_history[metric_name]:
                if snapshot.timestamp >= cutoff_time:
                    recent_metrics.append(snapshot)

        return recent_metrics


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics_collector() -> MetricsCollector:
    """Replace the global collector with a fresh one (useful for testing)."""
    global _metrics_collector
    _metrics_collector = MetricsCollector()
    return _metrics_collector


# Convenience functions
def set_gauge(name: str, value: float):
    """Set a gauge metric."""
    get_metrics_collector().set_gauge(name, value)


def increment_counter(name: str, value: float = 1.0):
    """Increment a counter metric."""
    get_metrics_collector().increment_counter(name, value)

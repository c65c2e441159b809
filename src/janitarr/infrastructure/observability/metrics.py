"""Automation metrics in Prometheus text exposition format.

Hey future me - this is what GET /metrics returns. Two kinds of numbers live here:

- Counters and the cycle duration histogram are pushed by AutomationService after every
  non-dry-run cycle (record_cycle / record_cycle_aborted). They only ever go up.
- Gauges (scheduler state, database up, server counts, log rows) are point-in-time values.
  The metrics router sets them right before rendering, so a scrape always sees fresh state.

Label values are the wire names: server type "radarr"/"sonarr", category "missing"/"cutoff".

Example output:
    # HELP janitarr_cycles_total Automation cycles executed
    # TYPE janitarr_cycles_total counter
    janitarr_cycles_total{origin="scheduled"} 12
"""

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any

from janitarr.domain.entities import CycleResult, ServerCategory, utc_now

logger = logging.getLogger(__name__)

PREFIX = "janitarr"


@dataclass(frozen=True)
class MetricDefinition:
    """Name, type and help text of one metric family."""

    name: str
    type: str  # "counter", "gauge", "histogram"
    help: str


DEFINITIONS: dict[str, MetricDefinition] = {
    definition.name: definition
    for definition in (
        MetricDefinition("cycles_total", "counter", "Automation cycles executed"),
        MetricDefinition("cycles_failed_total", "counter", "Automation cycles with failures"),
        MetricDefinition("searches_total", "counter", "Searches triggered"),
        MetricDefinition("searches_failed_total", "counter", "Search triggers that failed"),
        MetricDefinition(
            "detection_failures_total", "counter", "Servers whose detection failed"
        ),
        MetricDefinition(
            "cycle_duration_seconds", "histogram", "Duration of automation cycles"
        ),
        MetricDefinition("scheduler_enabled", "gauge", "Whether the schedule is enabled"),
        MetricDefinition("scheduler_running", "gauge", "Whether the scheduler timer is armed"),
        MetricDefinition(
            "scheduler_cycle_active", "gauge", "Whether an automation cycle is running"
        ),
        MetricDefinition(
            "scheduler_next_run_timestamp", "gauge", "Unix time of the next scheduled cycle"
        ),
        MetricDefinition("database_connected", "gauge", "Database connection status"),
        MetricDefinition("servers_configured", "gauge", "Configured servers by type"),
        MetricDefinition("servers_enabled", "gauge", "Enabled servers by type"),
        MetricDefinition("logs_total", "gauge", "Activity log entries in the database"),
        MetricDefinition("uptime_seconds", "gauge", "Seconds since the metrics were created"),
    )
}

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted((labels or {}).items()))


def _format_labels(key: LabelKey) -> str:
    if not key:
        return ""
    return "{" + ",".join(f'{name}="{value}"' for name, value in key) + "}"


def _format_value(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.6f}"


@dataclass
class _Histogram:
    count: int = 0
    total: float = 0.0


class AutomationMetrics:
    """Process-wide metrics collector.

    Usage:
        metrics = AutomationMetrics()
        metrics.record_cycle(result)
        metrics.set_gauge("database_connected", 1)
        text = metrics.to_prometheus_format()
    """

    def __init__(self, version: str | None = None) -> None:
        self._lock = Lock()
        self._version = version
        self._started_at = utc_now()
        self._counters: dict[str, dict[LabelKey, float]] = {}
        self._gauges: dict[str, dict[LabelKey, float]] = {}
        self._histograms: dict[str, dict[LabelKey, _Histogram]] = {}

    # ==========================================================================
    # RECORDING
    # ==========================================================================

    def inc(self, name: str, labels: dict[str, str] | None = None, amount: float = 1) -> None:
        """Add to a counter."""
        self._require(name, "counter")
        with self._lock:
            values = self._counters.setdefault(name, {})
            key = _label_key(labels)
            values[key] = values.get(key, 0) + amount

    def set_gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """Set a gauge to a point-in-time value."""
        self._require(name, "gauge")
        with self._lock:
            self._gauges.setdefault(name, {})[_label_key(labels)] = float(value)

    def observe(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """Record one histogram observation."""
        self._require(name, "histogram")
        with self._lock:
            series = self._histograms.setdefault(name, {})
            histogram = series.setdefault(_label_key(labels), _Histogram())
            histogram.count += 1
            histogram.total += value

    # Listen up, a cycle counts as failed when it had ANY failure (detection or search),
    # same as result.success. Per-server detection failures are labelled by server type,
    # search counts and failures by (server type, category).
    def record_cycle(self, result: CycleResult) -> None:
        """Fold one finished cycle into the counters."""
        origin = {"origin": result.origin.value}
        self.inc("cycles_total", origin)
        if not result.success:
            self.inc("cycles_failed_total", origin)
        self.observe("cycle_duration_seconds", result.duration_seconds)

        for detection in result.detection.results:
            if detection.failed:
                self.inc("detection_failures_total", {"type": detection.server_category.value})

        for outcome in result.searches.outcomes:
            labels = {
                "type": outcome.server_category.value,
                "category": outcome.search_category.value,
            }
            if outcome.triggered_count:
                self.inc("searches_total", labels, outcome.triggered_count)
            if outcome.failures:
                self.inc("searches_failed_total", labels, len(outcome.failures))

    def record_cycle_aborted(self, result: CycleResult) -> None:
        """Count a cycle that stopped before finishing."""
        origin = {"origin": result.origin.value}
        self.inc("cycles_total", origin)
        self.inc("cycles_failed_total", origin)

    def set_server_counts(
        self, configured: dict[ServerCategory, int], enabled: dict[ServerCategory, int]
    ) -> None:
        """Set the per-type server gauges; every type is always reported."""
        for category in ServerCategory:
            labels = {"type": category.value}
            self.set_gauge("servers_configured", configured.get(category, 0), labels)
            self.set_gauge("servers_enabled", enabled.get(category, 0), labels)

    # ==========================================================================
    # READING
    # ==========================================================================

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self._counters.get(name, {}).get(_label_key(labels), 0)

    def get_gauge(self, name: str, labels: dict[str, str] | None = None) -> float | None:
        with self._lock:
            return self._gauges.get(name, {}).get(_label_key(labels))

    def to_prometheus_format(self) -> str:
        """Render every recorded metric in Prometheus text exposition format."""
        self.set_gauge(
            "uptime_seconds", round((utc_now() - self._started_at).total_seconds())
        )
        lines: list[str] = []
        if self._version:
            lines.append(f"# HELP {PREFIX}_info Application version information")
            lines.append(f"# TYPE {PREFIX}_info gauge")
            lines.append(f'{PREFIX}_info{{version="{self._version}"}} 1')

        with self._lock:
            for series in (self._counters, self._gauges):
                for name, values in series.items():
                    lines.extend(self._header(name))
                    for key, value in sorted(values.items()):
                        rendered = _format_value(value)
                        lines.append(f"{PREFIX}_{name}{_format_labels(key)} {rendered}")

            # Only _count and _sum; there are no bucket boundaries worth choosing for cycles.
            for name, histograms in self._histograms.items():
                lines.extend(self._header(name))
                for key, histogram in sorted(histograms.items()):
                    labels = _format_labels(key)
                    lines.append(f"{PREFIX}_{name}_count{labels} {histogram.count}")
                    lines.append(f"{PREFIX}_{name}_sum{labels} {histogram.total:.6f}")

        return "\n".join(lines) + "\n"

    def get_summary(self) -> dict[str, Any]:
        """JSON-friendly view of the counters and gauges."""
        with self._lock:
            return {
                "counters": {
                    name: {_format_labels(k): v for k, v in values.items()}
                    for name, values in self._counters.items()
                },
                "gauges": {
                    name: {_format_labels(k): v for k, v in values.items()}
                    for name, values in self._gauges.items()
                },
            }

    @staticmethod
    def _header(name: str) -> list[str]:
        definition = DEFINITIONS[name]
        return [
            f"# HELP {PREFIX}_{name} {definition.help}",
            f"# TYPE {PREFIX}_{name} {definition.type}",
        ]

    @staticmethod
    def _require(name: str, metric_type: str) -> None:
        definition = DEFINITIONS.get(name)
        if definition is None or definition.type != metric_type:
            raise ValueError(f"Unknown {metric_type} metric: {name}")

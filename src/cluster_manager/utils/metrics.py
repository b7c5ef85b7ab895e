"""Prometheus metrics for the control plane."""

from __future__ import annotations

import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server


@dataclass
class MetricPoint:
    """A single metric data point."""
    timestamp: float
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


class ControlPlaneMetrics:
    """Collects operation, backend and autoscaler metrics."""

    def __init__(self, port: int = 9100, registry: CollectorRegistry | None = None) -> None:
        self.port = port
        self.registry = registry or CollectorRegistry(auto_describe=True)
        self._metrics: Dict[str, Deque[MetricPoint]] = defaultdict(lambda: deque(maxlen=1000))

        self._operations = Counter(
            "cluster_manager_operations_total",
            "Operations reaching a state, by kind",
            ["kind", "state"],
            registry=self.registry,
        )
        self._backend_attempts = Counter(
            "cluster_manager_backend_attempts_total",
            "Infrastructure backend calls, by outcome",
            ["action", "outcome"],
            registry=self.registry,
        )
        self._active_operations = Gauge(
            "cluster_manager_active_operations",
            "Operations not yet in a terminal state",
            registry=self.registry,
        )
        self._autoscaler_decisions = Counter(
            "cluster_manager_autoscaler_decisions_total",
            "Autoscaler evaluations, by decision",
            ["decision"],
            registry=self.registry,
        )

    def start_server(self) -> None:
        """Start the Prometheus HTTP server."""
        start_http_server(self.port, registry=self.registry)

    def record_operation(self, kind: str, state: str) -> None:
        self._operations.labels(kind=kind, state=state).inc()
        self._append("operations", 1.0, kind=kind, state=state)

    def record_backend_attempt(self, action: str, outcome: str) -> None:
        self._backend_attempts.labels(action=action, outcome=outcome).inc()
        self._append("backend_attempts", 1.0, action=action, outcome=outcome)

    def set_active_operations(self, count: int) -> None:
        self._active_operations.set(count)
        self._append("active_operations", float(count))

    def record_autoscaler_decision(self, decision: str) -> None:
        self._autoscaler_decisions.labels(decision=decision).inc()
        self._append("autoscaler_decisions", 1.0, decision=decision)

    def get_metrics(
        self,
        metric_name: str,
        since: float | None = None,
    ) -> List[MetricPoint]:
        """Get recorded points for a metric name."""
        points = list(self._metrics.get(metric_name, []))

        if since is not None:
            points = [p for p in points if p.timestamp >= since]

        return points

    def _append(self, metric_name: str, value: float, **labels: str) -> None:
        self._metrics[metric_name].append(
            MetricPoint(timestamp=time.time(), value=value, labels=labels)
        )

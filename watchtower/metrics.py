"""
Prometheus metrics for the watchtower duties.

  - cycles_total{task,outcome}   : completed/failed cycles per task
  - cycle_seconds{task}          : wall time per cycle
  - submissions_total{outcome}   : price transactions sent
  - last_checkpoint              : last checkpoint this node submitted for
  - challenges_active            : 1 while a challenge against the node is open

Label vocabularies are small and fixed; no per-checkpoint labels.

Usage
-----
    from watchtower.metrics import METRICS

    with METRICS.cycle_timer("submit-price"):
        ...
    METRICS.record_cycle("submit-price", "skipped")

Tests build their own `Metrics(registry=CollectorRegistry())`.
"""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter
from typing import Iterable, Iterator

from prometheus_client import REGISTRY, Counter, Gauge, Histogram, start_http_server


_CYCLE_OUTCOMES = (
    "submitted",    # gate open, value fetched, transaction accepted
    "skipped",      # gate closed; normal on most cycles
    "responded",    # challenge duty reacted to an open challenge
    "failed",       # cycle aborted with an error
)

_SUBMISSION_OUTCOMES = (
    "accepted",
    "failed",
)

_CYCLE_BUCKETS = (
    0.05, 0.1, 0.25, 0.5,
    1.0, 2.5, 5.0, 10.0,
    30.0, 60.0, 120.0,
)


class Metrics:
    def __init__(
        self,
        *,
        namespace: str = "animica",
        subsystem: str = "watchtower",
        registry=REGISTRY,
        cycle_buckets: Iterable[float] = _CYCLE_BUCKETS,
    ) -> None:
        self.registry = registry
        self.cycles_total = Counter(
            "cycles_total",
            "Number of task cycles, labeled by task and outcome.",
            labelnames=("task", "outcome"),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.submissions_total = Counter(
            "submissions_total",
            "Number of price submission transactions, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.cycle_seconds = Histogram(
            "cycle_seconds",
            "Wall time of one task cycle (seconds).",
            labelnames=("task",),
            buckets=tuple(cycle_buckets),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.last_checkpoint = Gauge(
            "last_checkpoint",
            "Last checkpoint this node submitted a price for.",
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.challenges_active = Gauge(
            "challenges_active",
            "1 while a challenge against this node is open, else 0.",
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )

    def record_cycle(self, task: str, outcome: str) -> None:
        if outcome not in _CYCLE_OUTCOMES:
            outcome = "failed"
        self.cycles_total.labels(task=task, outcome=outcome).inc()

    def record_submission(self, outcome: str, checkpoint: int | None = None) -> None:
        if outcome not in _SUBMISSION_OUTCOMES:
            outcome = "failed"
        self.submissions_total.labels(outcome=outcome).inc()
        if outcome == "accepted" and checkpoint is not None:
            self.last_checkpoint.set(checkpoint)

    def set_challenged(self, active: bool) -> None:
        self.challenges_active.set(1 if active else 0)

    @contextmanager
    def cycle_timer(self, task: str) -> Iterator[None]:
        start = perf_counter()
        try:
            yield
        finally:
            self.cycle_seconds.labels(task=task).observe(perf_counter() - start)

    def serve(self, host: str = "0.0.0.0", port: int = 9105) -> None:
        """Expose /metrics on a background thread."""
        start_http_server(port, addr=host, registry=self.registry)


METRICS = Metrics()

__all__ = ["Metrics", "METRICS"]

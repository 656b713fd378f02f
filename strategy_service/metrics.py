"""Prometheus metrics for the strategy service.

This module centralises counters and histograms so that the value engine,
the replay path and the HTTP handlers can record lightweight telemetry
without each caller having to manage its own metric instances.
"""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram


EVALUATION_REQUESTS: Final[Counter] = Counter(
    "strategy_evaluations_total",
    "Total score-map evaluations, labeled by outcome (computed, cached).",
    labelnames=("outcome",),
)

EVALUATION_LATENCY: Final[Histogram] = Histogram(
    "strategy_evaluation_latency_seconds",
    "Wall time of a full score-map evaluation in seconds.",
    # One evaluation is up to nine small ODE solves.
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
    ),
)

SOLVER_FAILURES: Final[Counter] = Counter(
    "strategy_solver_failures_total",
    "Per-cell integrations that failed and were scored 0, labeled by reason.",
    labelnames=("reason",),
)

STALE_EVALUATIONS: Final[Counter] = Counter(
    "strategy_stale_evaluations_total",
    "Evaluations discarded because a newer position was requested meanwhile.",
)

REPLAYED_MOVES: Final[Counter] = Counter(
    "strategy_replayed_moves_total",
    "Moves re-applied to a fresh backend instance while reverting.",
)

REVERTS: Final[Counter] = Counter(
    "strategy_reverts_total",
    "Revert attempts, labeled by outcome (success, inconsistent).",
    labelnames=("outcome",),
)

"""Prometheus metrics for analysis runs and enrichment."""

from __future__ import annotations

from services.prometheus_helpers import build_counter, build_histogram

_ANALYSIS_RUNS = build_counter(
    "contract_analysis_runs_total",
    "Analysis runs grouped by service and outcome.",
    ("service", "outcome"),
)
_BREAKING_CHANGES = build_counter(
    "contract_breaking_changes_detected_total",
    "Breaking changes detected grouped by service and change type.",
    ("service", "change_type"),
)
_ENRICHMENT_FAILURES = build_counter(
    "contract_enrichment_failures_total",
    "Per-change enrichment failures grouped by service.",
    ("service",),
)
_ANALYSIS_DURATION = build_histogram(
    "contract_analysis_duration_seconds",
    "Wall-clock duration of a single service analysis run.",
    ("service",),
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)


def observe_analysis_run(service: str, outcome: str, duration_seconds: float) -> None:
    """Record one finished run; ``outcome`` is success/baseline/unavailable/failed."""

    if _ANALYSIS_RUNS is not None:
        _ANALYSIS_RUNS.labels(service=service or "unknown", outcome=outcome or "unknown").inc()
    if _ANALYSIS_DURATION is not None and duration_seconds >= 0:
        _ANALYSIS_DURATION.labels(service=service or "unknown").observe(duration_seconds)


def observe_breaking_change(service: str, change_type: str) -> None:
    if _BREAKING_CHANGES is None:
        return
    _BREAKING_CHANGES.labels(service=service or "unknown", change_type=change_type or "unknown").inc()


def observe_enrichment_failure(service: str) -> None:
    if _ENRICHMENT_FAILURES is None:
        return
    _ENRICHMENT_FAILURES.labels(service=service or "unknown").inc()


__all__ = [
    "observe_analysis_run",
    "observe_breaking_change",
    "observe_enrichment_failure",
]

"""Utilities for creating Prometheus collectors that survive re-registration."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from prometheus_client import REGISTRY, Counter, Histogram

from core.logging import get_logger

logger = get_logger(__name__)


def _lookup_collector(name: str):
    existing = getattr(REGISTRY, "_names_to_collectors", None)
    if isinstance(existing, dict):
        return existing.get(name)
    return None


def build_counter(name: str, documentation: str, labelnames: Sequence[str] | None = None) -> Optional[Counter]:
    """Create a Counter while tolerating duplicate registrations (module reloads in tests)."""

    labels = tuple(labelnames or ())
    try:
        return Counter(name, documentation, labels)
    except ValueError:
        collector = _lookup_collector(name)
        if collector is None:
            logger.debug("Counter %s already registered but not found in registry.", name)
        return collector


def build_histogram(
    name: str,
    documentation: str,
    labelnames: Sequence[str] | None = None,
    buckets: Iterable[float] | None = None,
) -> Optional[Histogram]:
    """Create a Histogram while tolerating duplicate registrations."""

    labels = tuple(labelnames or ())
    kwargs = {"buckets": tuple(buckets)} if buckets is not None else {}
    try:
        return Histogram(name, documentation, labels, **kwargs)
    except ValueError:
        collector = _lookup_collector(name)
        if collector is None:
            logger.debug("Histogram %s already registered but not found in registry.", name)
        return collector


__all__ = ["build_counter", "build_histogram"]

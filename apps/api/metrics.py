"""Prometheus collectors shared by the API."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from prometheus_client import REGISTRY, Counter

from apps.api.services.errors import CatalogError


def _counter(name: str, documentation: str, labelnames: tuple[str, ...]) -> Counter:
    # module reloads in tests must not register the same collector twice
    existing: Any = REGISTRY._names_to_collectors.get(name)
    if isinstance(existing, Counter):
        return existing
    return Counter(name, documentation, labelnames=labelnames)


REQUEST_COUNTER = _counter(
    "api_requests_total",
    "Total number of API requests",
    ("path", "method", "status"),
)
CATALOG_OPERATIONS = _counter(
    "catalog_operations_total",
    "Catalog operations by outcome",
    ("operation", "outcome"),
)


@contextmanager
def track_operation(operation: str) -> Iterator[None]:
    """Count the outcome of a catalog operation under ``operation``."""

    try:
        yield
    except CatalogError as exc:
        CATALOG_OPERATIONS.labels(operation=operation, outcome=type(exc).__name__).inc()
        raise
    CATALOG_OPERATIONS.labels(operation=operation, outcome="success").inc()


__all__ = ["CATALOG_OPERATIONS", "REQUEST_COUNTER", "track_operation"]

"""
Prometheus metrics for monitoring storage operations.

Provides counters, histograms, and gauges for tracking:
- Store operations and their outcome
- Operation latency
- Bytes uploaded and objects deleted
- The active default adapter
"""

import time
from functools import wraps
from typing import Callable

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Create a global registry
REGISTRY = CollectorRegistry()

_enabled = True

# ========== Counters ==========

storage_operations_total = Counter(
    "storage_operations_total",
    "Total number of storage operations",
    ["operation", "status"],  # upload/download/..., success/failure
    registry=REGISTRY,
)

storage_uploaded_bytes_total = Counter(
    "storage_uploaded_bytes_total",
    "Total number of bytes declared by successful uploads",
    registry=REGISTRY,
)

storage_deleted_objects_total = Counter(
    "storage_deleted_objects_total",
    "Total number of objects passed to successful deletes",
    registry=REGISTRY,
)

# ========== Histograms ==========

storage_operation_duration_seconds = Histogram(
    "storage_operation_duration_seconds",
    "Time spent in a storage operation",
    ["operation"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

# ========== Gauges ==========

storage_adapter_info = Gauge(
    "storage_adapter_info",
    "Adapter type backing the default store (1 = active)",
    ["adapter_type"],
    registry=REGISTRY,
)


def set_metrics_enabled(enabled: bool) -> None:
    """Turn metric collection on or off."""
    global _enabled
    _enabled = enabled


def metrics_enabled() -> bool:
    return _enabled


def record_active_adapter(adapter_type: str) -> None:
    """Mark `adapter_type` as the one backing the default store."""
    if not _enabled:
        return
    storage_adapter_info.clear()
    storage_adapter_info.labels(adapter_type=adapter_type or "unknown").set(1)


def record_upload_bytes(size: int) -> None:
    if _enabled and size > 0:
        storage_uploaded_bytes_total.inc(size)


def record_deleted_objects(count: int) -> None:
    if _enabled and count > 0:
        storage_deleted_objects_total.inc(count)


# ========== Metric Decorators ==========

def track_storage_operation(operation: str):
    """
    Decorator to track storage operation latency and outcome.

    Args:
        operation: Operation name (upload/download/delete/...)
    """
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not _enabled:
                return func(*args, **kwargs)
            start_time = time.time()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                duration = time.time() - start_time
                storage_operation_duration_seconds.labels(
                    operation=operation).observe(duration)
                storage_operations_total.labels(
                    operation=operation, status=status).inc()

        return wrapper
    return decorator


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics as bytes
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get content type for metrics response."""
    return CONTENT_TYPE_LATEST

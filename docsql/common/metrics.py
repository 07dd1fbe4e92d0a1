"""
Prometheus metrics for monitoring and observability.

Provides counters, histograms, and gauges for tracking:
- Document transformation
- Per-table write queues
- COPY flushes against the sink
"""

import time
from typing import Callable
from functools import wraps
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
)

# Create a global registry
REGISTRY = CollectorRegistry()

# ========== Counters ==========

documents_transformed_total = Counter(
    "documents_transformed_total",
    "Total number of documents converted into rows",
    ["status"],  # success/failure/unmapped
    registry=REGISTRY,
)

rows_enqueued_total = Counter(
    "rows_enqueued_total",
    "Total number of rows appended to a write queue",
    ["table"],
    registry=REGISTRY,
)

flushes_total = Counter(
    "flushes_total",
    "Total number of write queue flushes",
    ["table", "status"],  # success/failure
    registry=REGISTRY,
)

# ========== Histograms ==========

flush_duration_seconds = Histogram(
    "flush_duration_seconds",
    "Time to bulk load one batch of rows",
    ["table"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=REGISTRY,
)

# ========== Gauges ==========

queue_depth = Gauge(
    "queue_depth",
    "Number of rows waiting in a write queue",
    ["table"],
    registry=REGISTRY,
)


# ========== Metric Decorators ==========

def track_flush(table: str):
    """
    Decorator to track flush duration and outcome for a table.

    Args:
        table: Destination table name
    """
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                duration = time.time() - start_time
                flush_duration_seconds.labels(table=table).observe(duration)
                flushes_total.labels(table=table, status=status).inc()

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

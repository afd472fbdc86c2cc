"""Prometheus metrics definitions for bucketfs.

All metrics use the ``bucketfs_`` prefix. They are registered in the global
``prometheus_client`` registry only after ``init_metrics()``; until then the
module-level references stay ``None`` and recording helpers are no-ops.
"""

from __future__ import annotations

from prometheus_client import Counter

_initialized: bool = False

# ---------------------------------------------------------------------------
# Operation counter  (labels: operation, status)
# ---------------------------------------------------------------------------
operations_total: Counter | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_uploaded_total: Counter | None = None
bytes_downloaded_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics (idempotent)."""
    global _initialized
    global operations_total, bytes_uploaded_total, bytes_downloaded_total

    if _initialized:
        return

    operations_total = Counter(
        "bucketfs_operations_total",
        "Total filesystem operations by type and outcome",
        ["operation", "status"],
    )

    bytes_uploaded_total = Counter(
        "bucketfs_bytes_uploaded_total",
        "Total uncompressed bytes written by callers",
    )

    bytes_downloaded_total = Counter(
        "bucketfs_bytes_downloaded_total",
        "Total bytes delivered to callers by read streams",
    )

    _initialized = True


def record_operation(operation: str, status: str) -> None:
    if operations_total is not None:
        operations_total.labels(operation=operation, status=status).inc()


def record_uploaded(size: int) -> None:
    if size > 0 and bytes_uploaded_total is not None:
        bytes_uploaded_total.inc(size)


def record_downloaded(size: int) -> None:
    if size > 0 and bytes_downloaded_total is not None:
        bytes_downloaded_total.inc(size)

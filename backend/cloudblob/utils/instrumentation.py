"""
Instrumentation for storage operations.

Every storage verb runs inside `instrument(...)`, which records Prometheus
metrics and emits a structured log event for the outcome.
"""
import logging
import time
from contextlib import contextmanager
from typing import Iterator

from cloudblob.utils.logging import log_storage_failure, log_storage_operation
from cloudblob.utils.metrics import (
    storage_operations_total,
    storage_operation_failures_total,
    storage_operation_duration_seconds
)

logger = logging.getLogger(__name__)


@contextmanager
def instrument(operation: str, **payload) -> Iterator[None]:
    """
    Track a storage operation.

    Args:
        operation: Operation name (upload, download, streaming_download, ...)
        **payload: Fields describing the call (key, prefix, checksum)

    Raises:
        Whatever the wrapped block raises; failures are recorded first.
    """
    start_time = time.time()

    storage_operations_total.labels(operation=operation).inc()

    try:
        yield
    except Exception as e:
        duration = time.time() - start_time
        storage_operation_failures_total.labels(operation=operation).inc()
        storage_operation_duration_seconds.labels(operation=operation).observe(duration)
        log_storage_failure(
            logger,
            operation,
            error=str(e),
            duration_ms=duration * 1000,
            include_traceback=True,
            **payload
        )
        raise

    duration = time.time() - start_time
    storage_operation_duration_seconds.labels(operation=operation).observe(duration)
    log_storage_operation(
        logger,
        operation,
        duration_ms=duration * 1000,
        **payload
    )

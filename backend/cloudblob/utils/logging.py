"""
Structured JSON logging for the storage service.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Optional fields (included when applicable):
- operation
- key / prefix
- duration_ms

Usage:
    from cloudblob.utils.logging import configure_logging, log_storage_operation

    configure_logging('cloudblob', 'INFO')
    log_storage_operation(logger, 'upload', key='avatars/1', duration_ms=45.2)
"""
import logging
import sys
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger


class StructuredLogger:
    """Structured JSON logger with mandatory fields."""

    # Package logger the handler is attached to; the root logger is left alone
    LOGGER_NAME = "cloudblob"

    _service_name = None
    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        """
        Configure structured JSON logging for the `cloudblob` loggers.

        Records still propagate to the root logger, so an application
        keeps its own handlers.

        Args:
            service_name: Service identifier attached to every record
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        if cls._configured:
            return

        cls._service_name = service_name

        package_logger = logging.getLogger(cls.LOGGER_NAME)

        formatter = jsonlogger.JsonFormatter(
            '%(timestamp)s %(levelname)s %(name)s %(message)s',
            timestamp=True,
            json_ensure_ascii=False
        )

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)

        package_logger.addHandler(handler)
        package_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        class ServiceFilter(logging.Filter):
            def filter(self, record):
                record.service = cls._service_name
                return True

        handler.addFilter(ServiceFilter())
        cls._configured = True


def _build_log_extra(
    event: str,
    key: Optional[str] = None,
    prefix: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        key: Optional storage key
        prefix: Optional key prefix
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields

    Returns:
        Dictionary of extra fields
    """
    extra = {
        "event": event,
        **{k: v for k, v in kwargs.items() if v is not None}
    }

    if key:
        extra["key"] = key
    if prefix:
        extra["prefix"] = prefix
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


def log_storage_operation(
    logger: logging.Logger,
    operation: str,
    duration_ms: Optional[float] = None,
    key: Optional[str] = None,
    prefix: Optional[str] = None,
    **kwargs
):
    """
    Log a completed storage operation.

    Args:
        logger: Logger instance
        operation: Storage verb (upload, download, delete, ...)
        duration_ms: Optional duration in milliseconds
        key: Optional storage key
        prefix: Optional key prefix (delete_prefixed)
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="storage_operation",
        key=key,
        prefix=prefix,
        duration_ms=duration_ms,
        operation=operation,
        **kwargs
    )

    logger.info(f"Storage operation: {operation} {key or prefix or ''}".rstrip(), extra=extra)


def log_storage_failure(
    logger: logging.Logger,
    operation: str,
    error: str,
    duration_ms: Optional[float] = None,
    key: Optional[str] = None,
    prefix: Optional[str] = None,
    include_traceback: bool = False,
    **kwargs
):
    """
    Log a failed storage operation.

    Args:
        logger: Logger instance
        operation: Storage verb (required)
        error: Error message (required)
        duration_ms: Optional duration in milliseconds
        key: Optional storage key
        prefix: Optional key prefix
        include_traceback: Whether to include the active stack trace
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="storage_failure",
        key=key,
        prefix=prefix,
        duration_ms=duration_ms,
        operation=operation,
        error=str(error),
        **kwargs
    )

    message = f"Storage failure: {operation} - {error}"

    if include_traceback:
        exc_info = sys.exc_info()
        if exc_info[0] is not None:
            logger.error(message, extra=extra, exc_info=exc_info)
            return
    logger.error(message, extra=extra)


def log_chunk_fetched(
    logger: logging.Logger,
    url: str,
    lower: int,
    upper: int,
    size: int,
    duration_ms: Optional[float] = None
):
    """
    Log one ranged GET issued by the range downloader.

    Args:
        logger: Logger instance
        url: Resource URL
        lower: Inclusive lower bound requested
        upper: Inclusive upper bound requested
        size: Number of bytes the server returned
        duration_ms: Optional duration in milliseconds
    """
    extra = _build_log_extra(
        event="chunk_fetched",
        duration_ms=duration_ms,
        url=url,
        range_lower=lower,
        range_upper=upper,
        size=size,
    )

    logger.debug(f"Fetched bytes {lower}-{upper} ({size} bytes) from {url}", extra=extra)


def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)

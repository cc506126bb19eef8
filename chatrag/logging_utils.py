"""
Centralized logging and error handling utilities for ChatRAG.

This module provides helper functions to standardize logging
and error reporting across the proxy and the stream consumer.

Features:
- Structured logging with contextual information
- Error classification into HTTP status codes and categories
- JSON error bodies for the proxy boundary
- Timing for long-running operations
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from chatrag.exceptions import ChatRAGError, ConfigurationError, UpstreamError

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

HTTP_INTERNAL_ERROR = 500

logger = structlog.get_logger(__name__)


def configure_logging(logging_config: dict[str, Any] | None = None) -> None:
    """Configure the stdlib root logger that structlog renders through."""
    logging_config = logging_config or {}
    level_name = str(logging_config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level '{level_name}'")

    logging.basicConfig(level=level, format="%(message)s")


class ErrorHandler:
    """Centralized error classification with structured logging."""

    @staticmethod
    def classify_error(error: Exception) -> tuple[int, str]:
        """
        Classify an error and return an HTTP status code and error category.

        Args:
            error: The exception to classify

        Returns:
            Tuple of (http_status_code, error_category)
        """
        if isinstance(error, ConfigurationError):
            return HTTP_INTERNAL_ERROR, "configuration_error"
        if isinstance(error, UpstreamError):
            return error.status_code, "upstream_error"
        if isinstance(error, ChatRAGError):
            return error.status_code or HTTP_INTERNAL_ERROR, "chatrag_error"
        if isinstance(error, ValidationError):
            return HTTP_INTERNAL_ERROR, "validation_error"
        if isinstance(error, TimeoutError | httpx.TimeoutException):
            return HTTP_INTERNAL_ERROR, "timeout_error"
        if isinstance(error, ConnectionError | OSError | httpx.TransportError):
            return HTTP_INTERNAL_ERROR, "connection_error"
        if isinstance(error, ValueError | TypeError):
            return HTTP_INTERNAL_ERROR, "parameter_error"
        return HTTP_INTERNAL_ERROR, "unknown_error"

    @staticmethod
    def create_error_body(
        error: Exception,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> tuple[int, dict[str, Any]]:
        """
        Build the JSON error body for an exception and log it with context.

        Args:
            error: Original exception
            operation: Description of the operation that failed
            context: Additional context for logging

        Returns:
            Tuple of (http_status_code, {"error": ..., "details"?: ...})
        """
        status_code, error_category = ErrorHandler.classify_error(error)
        context = context or {}

        if isinstance(error, ChatRAGError):
            message = error.message
        else:
            message = str(error) or "An unexpected error occurred"

        logger.error(
            "Operation failed",
            operation=operation,
            error_type=type(error).__name__,
            error_category=error_category,
            status_code=status_code,
            error_message=message,
            **context,
        )

        body: dict[str, Any] = {"error": message}
        if isinstance(error, ChatRAGError) and error.details is not None:
            body["details"] = error.details

        return status_code, body


@asynccontextmanager
async def operation_context(operation: str, **context: Any):
    """
    Log the start, end and duration of a long-running step.

    A failure inside the block is logged once here and re-raised.
    """
    operation_logger = logger.bind(operation=operation, **context)
    operation_logger.info("Operation started")
    start_time = time.perf_counter()

    try:
        yield operation_logger
    except Exception as e:
        operation_logger.error(
            "Operation failed",
            error_type=type(e).__name__,
            error_message=str(e),
            duration_ms=_elapsed_ms(start_time),
        )
        raise

    operation_logger.info(
        "Operation completed successfully", duration_ms=_elapsed_ms(start_time)
    )


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)

"""
Centralized logging and error handling utilities for the workshop client.

This module provides decorators and helper functions to standardize logging
and error reporting across the workshop stages.

Features:
- Structured logging with contextual information
- Classification of client failures into retryable categories
- Performance timing of stage operations
- Context-aware error messages
"""

from __future__ import annotations

import functools
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import structlog
from pydantic import ValidationError

from facilitator.history.repositories.base import RepositoryError
from facilitator.llm.exceptions import (
    ResponseFormatError,
    ResultExtractionMiss,
    StreamCancelled,
    TransportFailure,
    WorkshopClientError,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=False),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)

# Categories a user may simply retry
RETRYABLE_CATEGORIES = frozenset({
    "extraction_miss",
    "transport_error",
    "timeout_error",
    "connection_error",
    "format_error",
    "storage_error",
})


class WorkshopErrorHandler:
    """Centralized classification and logging of workshop client failures."""

    @staticmethod
    def classify_error(error: Exception) -> tuple[str, bool]:
        """
        Classify an error into a category and whether a retry may help.

        Args:
            error: The exception to classify

        Returns:
            Tuple of (error_category, retryable)
        """
        if isinstance(error, StreamCancelled):
            category = "cancelled"
        elif isinstance(error, ResultExtractionMiss):
            category = "extraction_miss"
        elif isinstance(error, ResponseFormatError):
            category = "format_error"
        elif isinstance(error, TransportFailure):
            category = "transport_error"
        elif isinstance(error, RepositoryError):
            category = "storage_error"
        elif isinstance(error, ValidationError):
            category = "validation_error"
        elif isinstance(error, TimeoutError):
            category = "timeout_error"
        elif isinstance(error, ConnectionError | OSError):
            category = "connection_error"
        elif isinstance(error, ValueError | TypeError):
            category = "parameter_error"
        else:
            category = "unknown_error"
        return category, category in RETRYABLE_CATEGORIES

    @staticmethod
    def report(
        error: Exception,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Log a failed operation and return its structured description.

        Cancellation is logged at info level since it is a user action.

        Args:
            error: Original exception
            operation: Description of the operation that failed
            context: Additional context for logging

        Returns:
            Dict with the operation, category, retryable flag and message
        """
        category, retryable = WorkshopErrorHandler.classify_error(error)
        details: dict[str, Any] = {
            "operation": operation,
            "error_category": category,
            "retryable": retryable,
            "error_type": type(error).__name__,
            "error_message": str(error),
            **(context or {}),
        }
        if isinstance(error, WorkshopClientError):
            details["endpoint"] = error.endpoint
            if error.status_code is not None:
                details["status_code"] = error.status_code

        if category == "cancelled":
            logger.info("Operation cancelled", **details)
        else:
            logger.warning("Operation failed", **details)
        return details


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def _failure_fields(error: Exception, start: float | None) -> dict[str, Any]:
    category, retryable = WorkshopErrorHandler.classify_error(error)
    fields: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "error_category": category,
        "retryable": retryable,
    }
    if start is not None:
        fields["duration_ms"] = _elapsed_ms(start)
    return fields


def log_operation(
    operation: str,
    *,
    log_args: bool = False,
    log_result: bool = False,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Wrap a coroutine function with start/finish logging.

    Failures are logged with their category and retryable flag and then
    re-raised unchanged.

    Args:
        operation: Name recorded as the ``operation`` field
        log_args: Include positional (minus ``self``) and keyword arguments
        log_result: Include the return value in the completion entry
        log_timing: Include ``duration_ms``
        context: Extra fields bound to every entry
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            bound = logger.bind(
                operation=operation, function=func.__name__, **(context or {})
            )
            if log_args:
                bound.info("Operation started", args=args[1:], kwargs=kwargs)
            else:
                bound.info("Operation started")

            start = time.perf_counter() if log_timing else None
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                bound.error("Operation failed", **_failure_fields(e, start))
                raise

            fields: dict[str, Any] = {}
            if start is not None:
                fields["duration_ms"] = _elapsed_ms(start)
            if log_result:
                fields["result"] = result
            bound.info("Operation completed successfully", **fields)
            return result

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
):
    """
    Log entry to and exit from a block of workshop work.

    Yields a structlog logger bound with ``operation`` and ``context`` so the
    block can add its own entries under the same fields.
    """
    bound = logger.bind(operation=operation, **(context or {}))
    bound.info("Operation started")
    start = time.perf_counter() if log_timing else None

    try:
        yield bound
    except Exception as e:
        bound.error("Operation failed", **_failure_fields(e, start))
        raise

    if start is not None:
        bound.info("Operation completed successfully", duration_ms=_elapsed_ms(start))
    else:
        bound.info("Operation completed successfully")


class ContextualLogger:
    """structlog logger carrying workshop-wide fields such as the stage."""

    def __init__(self, base_context: dict[str, Any] | None = None):
        self.base_context = base_context or {}
        self._logger = logger.bind(**self.base_context)

    def bind(self, **context: Any) -> ContextualLogger:
        return ContextualLogger({**self.base_context, **context})

    def debug(self, message: str, **context: Any) -> None:
        self._logger.debug(message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._logger.info(message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._logger.warning(message, **context)

    def error(self, message: str, **context: Any) -> None:
        self._logger.error(message, **context)

"""
Centralized logging and error handling utilities for the LM Studio bridge.

This module provides decorators and helper functions to standardize logging
and error reporting across the codebase.

Features:
- Structured logging with contextual information
- Error classification into the query failure taxonomy
- Single-line human-readable failure messages
- Performance timing for async operations
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import httpx
import structlog

from .llm.exceptions import ErrorKind, LLMError
from .llm.models import QueryFailure

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

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and thus structlog) to stderr at ``level``."""
    logging.basicConfig(format="%(message)s", level=level.upper(), force=True)


class ErrorHandler:
    """Maps exceptions onto the query failure taxonomy."""

    @staticmethod
    def classify_error(error: Exception) -> ErrorKind:
        """
        Classify an error into an ErrorKind.

        Args:
            error: The exception to classify

        Returns:
            The matching ErrorKind, ``UNKNOWN`` if nothing matches
        """
        if isinstance(error, LLMError):
            return error.kind
        if isinstance(error, httpx.HTTPError | httpx.StreamError):
            return ErrorKind.TRANSPORT
        if isinstance(error, TimeoutError | ConnectionError | OSError):
            return ErrorKind.TRANSPORT
        return ErrorKind.UNKNOWN

    @staticmethod
    def describe_failure(error: Exception) -> str:
        """Build the single human-readable message shown to users."""
        status = getattr(error, "status_code", None)
        detail = str(error) or type(error).__name__
        if status is not None and f"{status}" not in detail:
            detail = f"HTTP {status}: {detail}"
        return f"LM Studio Error: {detail}"

    @staticmethod
    def to_query_failure(
        error: Exception,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> QueryFailure:
        """
        Log an error with context and convert it to a QueryFailure.

        Args:
            error: Original exception
            operation: Description of the operation that failed
            context: Additional context for logging

        Returns:
            QueryFailure carrying the error kind and user-facing message
        """
        kind = ErrorHandler.classify_error(error)
        message = ErrorHandler.describe_failure(error)

        logger.error(
            "Operation failed",
            operation=operation,
            error_type=type(error).__name__,
            error_kind=kind.value,
            error_message=str(error),
            **(context or {}),
        )

        return QueryFailure(
            kind=kind,
            message=message,
            status_code=getattr(error, "status_code", None),
        )


def log_operation(
    operation: str,
    *,
    log_args: bool = False,
    log_result: bool = False,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator for logging async operations with structured context.

    Args:
        operation: Description of the operation being performed
        log_args: Whether to log function arguments
        log_result: Whether to log function result
        log_timing: Whether to log execution timing
        context: Additional context to include in logs

    Returns:
        Decorated function with logging
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = logger.bind(
                operation=operation,
                function=func.__name__,
                **(context or {}),
            )

            log_data = {}
            if log_args:
                log_data.update({
                    "args": args[1:] if args else [],  # Skip 'self' if present
                    "kwargs": kwargs,
                })

            operation_logger.info("Operation started", **log_data)

            start_time = time.perf_counter() if log_timing else None

            try:
                result = await func(*args, **kwargs)

                end_log_data: dict[str, Any] = {}
                if log_timing and start_time is not None:
                    duration = round((time.perf_counter() - start_time) * 1000, 2)
                    end_log_data["duration_ms"] = duration
                if log_result:
                    end_log_data["result"] = result

                operation_logger.info(
                    "Operation completed successfully", **end_log_data
                )
                return result

            except Exception as e:
                error_log_data: dict[str, Any] = {
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                }
                if log_timing and start_time is not None:
                    duration = round((time.perf_counter() - start_time) * 1000, 2)
                    error_log_data["duration_ms"] = duration

                operation_logger.error("Operation failed", **error_log_data)
                raise

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
    Async context manager for operation logging.

    Args:
        operation: Description of the operation
        context: Additional context for logging
        log_timing: Whether to log operation timing

    Yields:
        Bound logger for the operation
    """
    operation_logger = logger.bind(
        operation=operation,
        **(context or {}),
    )

    operation_logger.info("Operation started")
    start_time = time.perf_counter() if log_timing else None

    try:
        yield operation_logger

        log_data: dict[str, Any] = {}
        if log_timing and start_time is not None:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            log_data["duration_ms"] = duration

        operation_logger.info("Operation completed successfully", **log_data)

    except Exception as e:
        error_log_data: dict[str, Any] = {
            "error_type": type(e).__name__,
            "error_message": str(e),
        }
        if log_timing and start_time is not None:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            error_log_data["duration_ms"] = duration

        operation_logger.error("Operation failed", **error_log_data)
        raise


class ContextualLogger:
    """Logger that maintains context across related operations."""

    def __init__(self, base_context: dict[str, Any] | None = None):
        self.base_context = base_context or {}
        self._logger = logger.bind(**self.base_context)

    def bind(self, **context: Any) -> ContextualLogger:
        """Create a new logger with additional context."""
        merged_context = {**self.base_context, **context}
        return ContextualLogger(merged_context)

    def info(self, message: str, **context: Any) -> None:
        self._logger.info(message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._logger.warning(message, **context)

    def error(self, message: str, **context: Any) -> None:
        self._logger.error(message, **context)

    def debug(self, message: str, **context: Any) -> None:
        self._logger.debug(message, **context)

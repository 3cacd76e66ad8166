"""
Error handling utilities for review and summarization operations.

This module provides the exception taxonomy shared by every stage and a decorator
that adds request tracking and timing to pipeline entry points.
"""
import asyncio
import logging
import time
import uuid
from typing import Callable, TypeVar, ParamSpec, Optional, Tuple, TYPE_CHECKING
from functools import wraps
from contextvars import ContextVar, Token

if TYPE_CHECKING:
    from peptalk_review.models.compliance_models import ComplianceResult

logger = logging.getLogger(__name__)

# Context variable for request ID tracking across async contexts
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

# Type variables for generic function signatures
P = ParamSpec('P')
T = TypeVar('T')


# ============================================================================
# Custom Exceptions
# ============================================================================

class ReviewPipelineError(Exception):
    """Base exception for review pipeline errors."""
    pass


class RecordValidationError(ReviewPipelineError, ValueError):
    """Record is malformed (missing or empty required fields)."""
    pass


class ClientConfigurationError(ReviewPipelineError):
    """Client not properly configured."""
    pass


class CompletionServiceError(ReviewPipelineError):
    """The completion service could not produce a usable answer.

    Distinct from a failing ComplianceResult: this means the review could not run.
    """

    retryable: bool = True

    def __init__(self, message: str, *, retryable: Optional[bool] = None):
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable


class CompletionAuthenticationError(CompletionServiceError):
    """Credentials were rejected by the completion service."""
    retryable = False


class CompletionRateLimitError(CompletionServiceError):
    """The completion service is throttling requests."""
    retryable = True


class CompletionTimeoutError(CompletionServiceError):
    """A single completion call exceeded its timeout."""
    retryable = True


class MalformedCompletionError(CompletionServiceError):
    """The completion service returned non-JSON or non-conforming output."""
    retryable = False


class ComplianceRejectedError(ReviewPipelineError):
    """Content failed compliance review and must not be published."""

    def __init__(self, result: "ComplianceResult"):
        self.result = result
        critical = [issue.description for issue in result.critical_issues]
        super().__init__(
            f"Compliance validation failed (score {result.score}/100, "
            f"{len(critical)} critical issue(s)): {'; '.join(critical)}"
        )


# ============================================================================
# Operation Tracking Decorator
# ============================================================================

def _log_completion(name: str, request_id: str, elapsed: float) -> None:
    from peptalk_review.core.config import settings
    threshold_ms = settings.RESPONSE_TIME_WARNING_THRESHOLD_MS
    elapsed_ms = elapsed * 1000
    if elapsed_ms > threshold_ms:
        logger.warning(
            f"[{request_id}] SLOW OPERATION: {name} took {elapsed:.2f}s "
            f"({elapsed_ms:.0f}ms > {threshold_ms}ms threshold)"
        )
    else:
        logger.info(f"[{request_id}] Completed {name} in {elapsed:.2f}s")


def _log_failure(name: str, request_id: str, elapsed: float, error: BaseException) -> None:
    if isinstance(error, CompletionServiceError):
        kind = "retryable" if error.retryable else "non-retryable"
        logger.error(f"[{request_id}] {name} - completion service error ({kind}) after {elapsed:.2f}s: {error}")
    elif isinstance(error, RecordValidationError):
        logger.error(f"[{request_id}] {name} - invalid record after {elapsed:.2f}s: {error}")
    elif isinstance(error, ReviewPipelineError):
        logger.error(f"[{request_id}] {name} - pipeline error after {elapsed:.2f}s: {error}")
    else:
        logger.exception(f"[{request_id}] {name} - unexpected error after {elapsed:.2f}s: {error}")


def _begin_request() -> Tuple[str, Optional[Token]]:
    """Return the active request id, creating one (and its reset token) if none is set."""
    request_id = request_id_var.get()
    if request_id:
        return request_id, None
    request_id = str(uuid.uuid4())
    return request_id, request_id_var.set(request_id)


def track_operation(name: Optional[str] = None) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator that adds request tracking, timing and failure logging to an operation.

    Errors are logged and re-raised unchanged so callers can still tell
    "content failed review" from "review could not run". Works with both sync
    and async functions.

    An outermost tracked call gets a fresh request id that is cleared again when
    it returns; nested calls and callers that set request_id_var themselves keep
    their id.

    Args:
        name: Operation name for log lines (defaults to the function name)

    Returns:
        Decorated function

    Example:
        @track_operation("semantic review")
        async def validate_deep(record, config) -> ComplianceResult:
            ...
    """
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        op_name = name or func.__name__

        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            request_id, token = _begin_request()
            start_time = time.time()
            logger.info(f"[{request_id}] Starting {op_name}")
            try:
                result = await func(*args, **kwargs)
            except asyncio.CancelledError:
                logger.warning(f"[{request_id}] {op_name} cancelled after {time.time() - start_time:.2f}s")
                raise
            except Exception as e:
                _log_failure(op_name, request_id, time.time() - start_time, e)
                raise
            else:
                _log_completion(op_name, request_id, time.time() - start_time)
                return result
            finally:
                if token is not None:
                    request_id_var.reset(token)

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            request_id, token = _begin_request()
            start_time = time.time()
            logger.debug(f"[{request_id}] Starting {op_name}")
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_failure(op_name, request_id, time.time() - start_time, e)
                raise
            else:
                _log_completion(op_name, request_id, time.time() - start_time)
                return result
            finally:
                if token is not None:
                    request_id_var.reset(token)

        # Return appropriate wrapper based on function type
        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        else:
            return sync_wrapper  # type: ignore

    return decorator

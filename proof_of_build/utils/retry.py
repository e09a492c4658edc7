"""Exponential-backoff retry wrapper for unreliable provider calls.

The wrapper is generic over the wrapped operation: it receives a zero-argument
coroutine factory, classifies each failure, and retries only transient ones.

Retry Schedule:
    delay = base_delay * 2 ** retry_number
    Defaults: base_delay = 1.0s, max_retries = 3 (4 total attempts)
    -> sleeps of 1s, 2s, 4s before giving up

Retryable (transient):
    - HTTP 429 (rate limit) and 5xx (server error)
    - httpx timeouts and network errors, TimeoutError, ConnectionError
    - Messages mentioning 429/500/502/503/504, "rate limit", "timeout", "network"

Non-retryable (fatal, propagate immediately without delay):
    - Any other HTTP 4xx (401, 403, 400, ...)
    - Validation errors, empty-input errors, missing configuration

Exhausting the retries re-raises the last error unchanged.

Usage:
    from proof_of_build.utils.retry import RetryPolicy, retry_with_backoff

    audio = await retry_with_backoff(
        lambda: client.synthesize(text),
        RetryPolicy(max_retries=3, base_delay=1.0),
    )
"""

import asyncio
import functools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
import pydantic
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from proof_of_build.config import get_retry_base_delay, get_retry_max_retries
from proof_of_build.exceptions import (
    ConfigurationError,
    EmptyNarrationError,
    InvalidStageError,
    ManifestValidationError,
    StateValidationError,
)
from proof_of_build.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_MESSAGE_MARKERS = ("429", "rate limit", "500", "502", "503", "504", "timeout", "network")

_NON_RETRYABLE_TYPES: tuple[type[BaseException], ...] = (
    ConfigurationError,
    EmptyNarrationError,
    InvalidStageError,
    ManifestValidationError,
    StateValidationError,
    pydantic.ValidationError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry bounds for the backoff wrapper.

    Attributes:
        max_retries: Retries after the first attempt (3 -> 4 total attempts)
        base_delay: Base delay in seconds for the exponential schedule
    """

    max_retries: int = 3
    base_delay: float = 1.0

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        """Build a policy from RETRY_MAX_RETRIES / RETRY_BASE_DELAY_SECONDS."""
        return cls(max_retries=get_retry_max_retries(), base_delay=get_retry_base_delay())

    def delay_for(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (0-based)."""
        return self.base_delay * (2**retry_number)


def _status_code_of(exception: BaseException) -> int | None:
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code
    status = getattr(exception, "status_code", None)
    if status is None:
        status = getattr(exception, "status", None)
    return status if isinstance(status, int) else None


def is_retryable_error(exception: BaseException) -> bool:
    """Classify an exception as transient (retry) or fatal (propagate).

    Args:
        exception: Exception raised by the wrapped operation

    Returns:
        True if the failure is transient and eligible for retry

    Example:
        >>> is_retryable_error(AudioGenerationError("Service Unavailable", status_code=503))
        True
        >>> is_retryable_error(AudioGenerationError("Unauthorized", status_code=401))
        False
    """
    if isinstance(exception, _NON_RETRYABLE_TYPES):
        return False

    status = _status_code_of(exception)
    if status is not None:
        return status == 429 or 500 <= status <= 599

    if isinstance(
        exception,
        httpx.TimeoutException | httpx.NetworkError | TimeoutError | ConnectionError,
    ):
        return True

    message = str(exception).lower()
    return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)


def _log_before_sleep(operation_name: str) -> Callable[[RetryCallState], None]:
    def _before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        log.warning(
            "operation_retry_scheduled",
            operation=operation_name,
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
            error=str(error) if error else None,
            error_type=type(error).__name__ if error else None,
        )

    return _before_sleep


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    operation_name: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Execute ``operation`` with exponential-backoff retries on transient errors.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        policy: Retry bounds (default: RetryPolicy() -> 3 retries, 1s base)
        operation_name: Name used in retry log events
        sleep: Awaitable sleep used between attempts (injectable for tests)

    Returns:
        The operation's result from the first successful attempt

    Raises:
        Exception: The first non-retryable error, or the last error once
            retries are exhausted, unchanged
    """
    policy = policy or RetryPolicy()
    retrying = AsyncRetrying(
        retry=retry_if_exception(is_retryable_error),
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait_exponential(multiplier=policy.base_delay, exp_base=2, min=0),
        before_sleep=_log_before_sleep(operation_name),
        reraise=True,
        sleep=sleep,
    )

    result: Any = None
    async for attempt in retrying:
        with attempt:
            result = await operation()
    return result


def with_backoff(
    policy: RetryPolicy | None = None,
    *,
    operation_name: str | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator form of :func:`retry_with_backoff` for async functions.

    Example:
        >>> @with_backoff(RetryPolicy(max_retries=2, base_delay=0.5))
        ... async def fetch_voice(client, voice_id):
        ...     return await client.get_voice(voice_id)
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        name = operation_name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_with_backoff(
                lambda: func(*args, **kwargs),
                policy,
                operation_name=name,
            )

        return wrapper

    return decorator

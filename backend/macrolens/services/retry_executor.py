"""Retry Executor: bounded retry with linear backoff around async operations.

Invariants:
    - Attempts are numbered from 1; at most max_attempts attempts per invocation
    - Backoff after failed attempt n is base_delay * n (linear); none after the last attempt
    - Success resets the operation key's attempt counter to 0
    - Exhaustion reports the LAST observed error, classified into an ErrorRecord
    - Non-retryable classifications end the invocation on the attempt that produced them
    - Cancellation is checked before each attempt and before/during each backoff;
      an in-flight operation is never interrupted
    - The attempt-count map is the only shared mutable state, guarded by one asyncio.Lock

State machine (per invocation):
    IDLE -> ATTEMPTING -> SUCCEEDED
                       -> BACKOFF -> ATTEMPTING
                       -> EXHAUSTED | FAILED | CANCELLED

Design Decisions:
    - Outcomes are values (RetrySucceeded / RetryFailed / RetryCancelled), not raised
    - sleep is injectable so backoff timing is testable without wall-clock waits
    - An operation fails by raising, or by returning a Rejected / ErrorRecord value,
      so "call LLM then validate" can be wrapped without exception plumbing
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from macrolens.core.domain_types import RetryPhase
from macrolens.core.error_classifier import ErrorClassifier
from macrolens.core.errors import ErrorRecord
from macrolens.core.response_validator import Rejected

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_S = 1.0


# ─── Cancellation ────────────────────────────────────────────────

class CancellationToken:
    """Cooperative cancellation signal shared between a caller and the executor."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


# ─── Outcomes ────────────────────────────────────────────────────

@dataclass(frozen=True)
class RetrySucceeded(Generic[T]):
    value: T
    attempts: int

    @property
    def phase(self) -> RetryPhase:
        return RetryPhase.SUCCEEDED


@dataclass(frozen=True)
class RetryFailed:
    error: ErrorRecord
    attempts: int
    exhausted: bool

    @property
    def phase(self) -> RetryPhase:
        return RetryPhase.EXHAUSTED if self.exhausted else RetryPhase.FAILED


@dataclass(frozen=True)
class RetryCancelled:
    attempts: int

    @property
    def phase(self) -> RetryPhase:
        return RetryPhase.CANCELLED


RetryOutcome = RetrySucceeded | RetryFailed | RetryCancelled


# ─── Attempt Tracking ────────────────────────────────────────────

class AttemptTracker:
    """Operation key -> failed attempt count.

    Lives as long as its owning RetryExecutor. Entries are created lazily,
    reset to 0 on success, and never removed (the set of keys is small and fixed).
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def record_failure(self, key: str) -> int:
        async with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1
            return self._counts[key]

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._counts[key] = 0

    async def get(self, key: str) -> int:
        async with self._lock:
            return self._counts.get(key, 0)


# ─── Executor ────────────────────────────────────────────────────

class RetryExecutor:
    """Runs async operations with bounded, linearly backed-off retries."""

    def __init__(
        self,
        classifier: ErrorClassifier,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_s: float = DEFAULT_BASE_DELAY_S,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        _check_policy(max_attempts, base_delay_s)
        self.classifier = classifier
        self.max_attempts = max_attempts
        self.base_delay_s = base_delay_s
        self._sleep = sleep
        self._tracker = AttemptTracker()

    async def run_with_retry(
        self,
        operation_key: str,
        operation: Callable[[], Awaitable[T]],
        *,
        max_attempts: int | None = None,
        base_delay_s: float | None = None,
        cancel_token: CancellationToken | None = None,
        context: str | None = None,
    ) -> RetryOutcome:
        """Run operation until it succeeds, fails terminally, or is cancelled."""
        max_attempts = self.max_attempts if max_attempts is None else max_attempts
        base_delay_s = self.base_delay_s if base_delay_s is None else base_delay_s
        _check_policy(max_attempts, base_delay_s)
        context = context if context is not None else operation_key

        attempts = 0
        for attempt in range(1, max_attempts + 1):
            if _is_cancelled(cancel_token):
                return self._cancelled(operation_key, attempts)

            attempts = attempt
            _enter(operation_key, RetryPhase.ATTEMPTING, attempt)
            result = await self._attempt(operation)
            if not isinstance(result, _Failure):
                await self._tracker.reset(operation_key)
                logger.info(
                    f"Operation {operation_key} succeeded",
                    extra={"operation_key": operation_key, "attempt": attempt},
                )
                return RetrySucceeded(result, attempt)

            error = self.classifier.classify(result.cause, context)
            await self._tracker.record_failure(operation_key)
            self._log_failure(operation_key, attempt, max_attempts, error)

            if not error.retryable:
                return RetryFailed(error, attempt, exhausted=False)
            if attempt == max_attempts:
                logger.error(
                    f"Operation {operation_key} exhausted {max_attempts} attempts",
                    extra=_error_extra(operation_key, attempt, error),
                )
                return RetryFailed(error, attempt, exhausted=True)

            if _is_cancelled(cancel_token):
                return self._cancelled(operation_key, attempts)
            _enter(operation_key, RetryPhase.BACKOFF, attempt)
            if await self._backoff(base_delay_s * attempt, cancel_token):
                return self._cancelled(operation_key, attempts)

        # range(1, max_attempts + 1) is never empty once _check_policy passed
        raise AssertionError("retry loop exited without an outcome")

    async def attempts(self, operation_key: str) -> int:
        """Failed attempts recorded for operation_key since its last reset."""
        return await self._tracker.get(operation_key)

    async def can_retry(
        self, operation_key: str, max_attempts: int | None = None,
    ) -> bool:
        limit = self.max_attempts if max_attempts is None else max_attempts
        return await self._tracker.get(operation_key) < limit

    async def reset(self, operation_key: str) -> None:
        await self._tracker.reset(operation_key)

    async def _attempt(self, operation: Callable[[], Awaitable[T]]):
        """Await the operation once. Returns its value or a _Failure wrapper."""
        try:
            result = await operation()
        except Exception as e:
            return _Failure(e)
        if isinstance(result, (Rejected, ErrorRecord)):
            return _Failure(result)
        return result

    async def _backoff(
        self, delay_s: float, cancel_token: CancellationToken | None,
    ) -> bool:
        """Wait delay_s. Returns True if cancellation arrived first."""
        if cancel_token is None:
            await self._sleep(delay_s)
            return False

        sleeper = asyncio.ensure_future(self._sleep(delay_s))
        canceller = asyncio.ensure_future(cancel_token.wait())
        try:
            await asyncio.wait(
                {sleeper, canceller}, return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (sleeper, canceller):
                task.cancel()
            await asyncio.gather(sleeper, canceller, return_exceptions=True)
        return cancel_token.cancelled

    def _cancelled(self, operation_key: str, attempts: int) -> RetryCancelled:
        logger.info(
            f"Operation {operation_key} cancelled after {attempts} attempt(s)",
            extra={"operation_key": operation_key, "attempt": attempts},
        )
        return RetryCancelled(attempts)

    def _log_failure(
        self, operation_key: str, attempt: int, max_attempts: int,
        error: ErrorRecord,
    ) -> None:
        logger.warning(
            f"Operation {operation_key} failed "
            f"(attempt {attempt}/{max_attempts}): {error.title}",
            extra=_error_extra(operation_key, attempt, error),
        )


@dataclass(frozen=True)
class _Failure:
    cause: object


def _enter(operation_key: str, phase: RetryPhase, attempt: int) -> None:
    logger.debug(
        f"Operation {operation_key} -> {phase.value}",
        extra={"operation_key": operation_key, "attempt": attempt},
    )


def _is_cancelled(token: CancellationToken | None) -> bool:
    return token is not None and token.cancelled


def _check_policy(max_attempts: int, base_delay_s: float) -> None:
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
    if base_delay_s < 0:
        raise ValueError(f"base_delay_s must be >= 0, got {base_delay_s}")


def _error_extra(operation_key: str, attempt: int, error: ErrorRecord) -> dict:
    return {
        "operation_key": operation_key,
        "attempt": attempt,
        "error_kind": error.kind.value,
        "severity": error.severity.value,
        "retryable": error.retryable,
        "context": error.context,
    }

"""Throttling-aware retry orchestrator.

Wraps a remote call that reports its result as a ``CallOutcome``:

- ``Success``: the value is returned.
- ``Fatal``: the error propagates immediately.
- ``Throttled``: the call is retried after a wait. A server-supplied hint
  is honoured. Without a hint, an exponentially doubling delay is used,
  capped and jittered. Once more than ``max_attempts`` throttles have been
  seen, the original error is re-raised unchanged.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt
from tenacity.wait import wait_base

from corpusflow.config.settings import RetrySettings, get_retry_settings
from corpusflow.llm.outcomes import CallOutcome, Fatal, Success, Throttled
from corpusflow.types import WaitCallback

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff tunables (seconds)."""

    max_attempts: int = 6
    base_delay: float = 1.5
    max_delay: float = 60.0
    jitter: float = 0.25

    @classmethod
    def from_settings(cls, settings: Optional[RetrySettings] = None) -> "RetryPolicy":
        settings = settings or get_retry_settings()
        return cls(
            max_attempts=settings.max_retries,
            base_delay=settings.base_delay_ms / 1000.0,
            max_delay=settings.max_delay_ms / 1000.0,
            jitter=settings.jitter_ms / 1000.0,
        )


@dataclass
class RetryState:
    """Per-call retry bookkeeping; a fresh one is made for every call."""

    attempt: int
    delay: float


class ThrottleWait(wait_base):
    """tenacity wait strategy for throttled outcomes.

    The fallback delay only doubles when it was actually used, so a
    server-supplied hint leaves the exponential sequence untouched.
    """

    def __init__(self, policy: RetryPolicy, rng: random.Random) -> None:
        self.policy = policy
        self.rng = rng
        self.state = RetryState(attempt=0, delay=policy.base_delay)

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome.result()
        self.state.attempt = retry_state.attempt_number
        jitter = self.policy.jitter

        if isinstance(outcome, Throttled) and outcome.wait_hint is not None:
            return outcome.wait_hint + self.rng.uniform(0.0, jitter)

        delay = min(self.state.delay, self.policy.max_delay)
        self.state.delay = min(self.state.delay * 2, self.policy.max_delay)
        return max(0.0, delay + self.rng.uniform(-jitter, jitter))


def _is_throttled(outcome: Any) -> bool:
    return isinstance(outcome, Throttled)


class RetryOrchestrator:
    """Runs remote calls with throttle detection and bounded retry.

    Example:
        ```python
        orchestrator = RetryOrchestrator(RetryPolicy(max_attempts=3))
        vector = await orchestrator.execute(
            guard(lambda: client.embed(text)),
            on_wait=lambda s, n, op: print(f"waiting {s:.0f}s ({op} {n})"),
            operation_name="embed",
        )
        ```
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            policy: Backoff tunables (defaults from RETRY_* settings)
            sleep: Coroutine used to wait between attempts
            rng: Random source for jitter
        """
        self.policy = policy or RetryPolicy.from_settings()
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def execute(
        self,
        operation: Callable[[], Awaitable[CallOutcome[T]]],
        on_wait: Optional[WaitCallback] = None,
        operation_name: str = "call",
        max_attempts: Optional[int] = None,
    ) -> T:
        """Execute ``operation`` until it succeeds, fails fatally, or retries run out.

        Args:
            operation: Zero-argument coroutine function returning a CallOutcome
            on_wait: Called with (seconds, attempt, operation_name) before each wait
            operation_name: Name used in logs and wait notifications
            max_attempts: Override for the policy's retry limit

        Returns:
            The value of the successful outcome

        Raises:
            Exception: The original error of a Fatal outcome or of the last
                Throttled outcome once retries are exhausted
        """
        limit = self.policy.max_attempts if max_attempts is None else max_attempts
        waiter = ThrottleWait(self.policy, self._rng)

        def before_sleep(retry_state: RetryCallState) -> None:
            seconds = retry_state.next_action.sleep
            throttled = retry_state.outcome.result()
            logger.warning(
                "throttled_waiting",
                operation=operation_name,
                attempt=retry_state.attempt_number,
                max_attempts=limit,
                wait_seconds=round(seconds, 3),
                server_hint=throttled.wait_hint,
                **throttled.rate_info,
            )
            if on_wait is not None:
                on_wait(seconds, retry_state.attempt_number, operation_name)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(limit + 1),
            wait=waiter,
            retry=retry_if_result(_is_throttled),
            before_sleep=before_sleep,
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
            sleep=self._sleep,
        )

        outcome = await retrying(operation)

        if isinstance(outcome, Success):
            return outcome.value

        if isinstance(outcome, Throttled):
            logger.error(
                "throttle_retries_exhausted",
                operation=operation_name,
                attempts=waiter.state.attempt + 1,
                error=str(outcome.error),
            )
            raise outcome.error

        if isinstance(outcome, Fatal):
            logger.error(
                "remote_call_failed",
                operation=operation_name,
                error=str(outcome.error),
            )
            raise outcome.error

        raise TypeError(f"Operation returned {type(outcome).__name__}, not a CallOutcome")


async def execute_with_retry(
    operation: Callable[[], Awaitable[CallOutcome[T]]],
    on_wait: Optional[WaitCallback] = None,
    max_attempts: Optional[int] = None,
    operation_name: str = "call",
    policy: Optional[RetryPolicy] = None,
) -> T:
    """Run ``operation`` through a one-off RetryOrchestrator."""
    orchestrator = RetryOrchestrator(policy)
    return await orchestrator.execute(
        operation,
        on_wait=on_wait,
        operation_name=operation_name,
        max_attempts=max_attempts,
    )

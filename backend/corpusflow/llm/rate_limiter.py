"""Per-minute token budget limiter for LLM API calls."""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional

import structlog

from corpusflow.config.settings import get_chunking_settings

logger = structlog.get_logger()

WINDOW_SECONDS = 60.0


class TokenRateLimiter:
    """Sliding one-minute counter of tokens consumed.

    A request that would push the window past its budget waits until the
    window resets. Each limiter owns its counter and lock, so separate
    pipelines never share a budget.
    """

    def __init__(
        self,
        tokens_per_minute: int,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the limiter.

        Args:
            tokens_per_minute: Token budget per one-minute window
            enabled: Whether limiting is applied at all
            clock: Monotonic clock in seconds
            sleep: Coroutine used to wait for the window to reset
        """
        if tokens_per_minute <= 0:
            raise ValueError("tokens_per_minute must be positive")

        self.tokens_per_minute = tokens_per_minute
        self.enabled = enabled
        self._clock = clock
        self._sleep = sleep

        self._used = 0
        self._window_start = clock()
        self._lock = asyncio.Lock()

        logger.info(
            "rate_limiter_initialized",
            tpm=tokens_per_minute,
            enabled=enabled,
        )

    async def acquire(self, tokens: int) -> float:
        """Reserve ``tokens`` from the current window, waiting if necessary.

        Args:
            tokens: Estimated size of the upcoming request

        Returns:
            Seconds spent waiting (0 if the request fit)
        """
        if not self.enabled:
            return 0.0

        async with self._lock:
            now = self._clock()
            if now - self._window_start >= WINDOW_SECONDS:
                self._reset(now)

            waited = 0.0
            if self._used > 0 and self._used + tokens > self.tokens_per_minute:
                waited = max(0.0, self._window_start + WINDOW_SECONDS - now)
                logger.info(
                    "rate_limit_wait",
                    used=self._used,
                    requested=tokens,
                    tpm=self.tokens_per_minute,
                    wait_seconds=round(waited, 3),
                )
                if waited > 0:
                    await self._sleep(waited)
                self._reset(self._clock())

            self._used += tokens
            return waited

    def get_wait_time(self, tokens: int) -> float:
        """Estimate how long a request of ``tokens`` would wait right now."""
        if not self.enabled:
            return 0.0

        now = self._clock()
        if now - self._window_start >= WINDOW_SECONDS:
            return 0.0
        if self._used > 0 and self._used + tokens > self.tokens_per_minute:
            return max(0.0, self._window_start + WINDOW_SECONDS - now)
        return 0.0

    def snapshot(self) -> Dict[str, float]:
        """Current window usage."""
        elapsed = self._clock() - self._window_start
        return {
            "used_tokens": float(self._used),
            "tokens_per_minute": float(self.tokens_per_minute),
            "window_elapsed_seconds": min(elapsed, WINDOW_SECONDS),
            "usage_percentage": self._used / self.tokens_per_minute,
        }

    def _reset(self, now: float) -> None:
        self._used = 0
        self._window_start = now


def create_rate_limiter(
    tokens_per_minute: Optional[int] = None, enabled: bool = True
) -> TokenRateLimiter:
    """Build a limiter from chunking settings."""
    tpm = tokens_per_minute or get_chunking_settings().tpm
    return TokenRateLimiter(tpm, enabled=enabled)

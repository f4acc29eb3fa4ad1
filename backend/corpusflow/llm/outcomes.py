"""Typed outcomes for remote calls.

Remote calls are turned into ``Success | Throttled | Fatal`` values so the
retry orchestrator can branch on data instead of exception types.
"""

import re
import time
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Dict, Generic, Mapping, Optional, TypeVar, Union

T = TypeVar("T")

THROTTLE_STATUS_CODES = frozenset({429, 503})

# "6m0s", "1.5s", "250ms", "2h"
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_MESSAGE_HINT = re.compile(r"retry after (\d+(?:\.\d+)?) (second|millisecond)", re.IGNORECASE)


@dataclass(frozen=True)
class Success(Generic[T]):
    """The call returned a value."""

    value: T


@dataclass(frozen=True)
class Throttled:
    """The call was rejected by a rate limit or an unavailable service."""

    error: Exception
    wait_hint: Optional[float] = None
    rate_info: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Fatal:
    """The call failed in a way retrying will not fix."""

    error: Exception


CallOutcome = Union[Success[T], Throttled, Fatal]


def parse_duration(value: str) -> Optional[float]:
    """Parse a duration header value into seconds.

    Accepts plain seconds ("30", "1.5") and compound forms ("1m30s", "250ms").
    """
    value = value.strip().lower()
    if not value:
        return None

    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    parts = _DURATION_PART.findall(value)
    if not parts or "".join(n + u for n, u in parts) != value:
        return None

    scale = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
    return sum(float(n) * scale[u] for n, u in parts)


def _parse_retry_after(value: str) -> Optional[float]:
    seconds = parse_duration(value)
    if seconds is not None:
        return seconds

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, when.timestamp() - time.time())


def _lower_headers(headers: Any) -> Dict[str, str]:
    if not headers:
        return {}
    try:
        items = headers.items()
    except AttributeError:
        return {}
    return {str(k).lower(): str(v) for k, v in items}


def _extract_headers(exc: Exception) -> Dict[str, str]:
    headers = _lower_headers(getattr(exc, "headers", None))
    if headers:
        return headers

    # litellm keeps the provider headers on the exception
    headers = _lower_headers(getattr(exc, "litellm_response_headers", None))
    if headers:
        return headers

    response = getattr(exc, "response", None)
    return _lower_headers(getattr(response, "headers", None))


def wait_hint_from_headers(headers: Mapping[str, str]) -> Optional[float]:
    """Get the server-supplied wait in seconds, if any."""
    if "retry-after-ms" in headers:
        raw = headers["retry-after-ms"].strip()
        try:
            return max(0.0, float(raw)) / 1000.0
        except ValueError:
            # Values with a unit suffix are already converted to seconds
            seconds = parse_duration(raw)
            if seconds is not None:
                return seconds

    if "retry-after" in headers:
        seconds = _parse_retry_after(headers["retry-after"])
        if seconds is not None:
            return seconds

    resets = [
        parse_duration(headers[name])
        for name in ("x-ratelimit-reset-tokens", "x-ratelimit-reset-requests")
        if name in headers
    ]
    resets = [r for r in resets if r is not None]
    return max(resets) if resets else None


def _wait_hint_from_message(message: str) -> Optional[float]:
    match = _MESSAGE_HINT.search(message)
    if not match:
        return None
    amount = float(match.group(1))
    return amount / 1000.0 if match.group(2).lower().startswith("milli") else amount


def _status_code(exc: Exception) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _is_throttle_type(exc: Exception) -> bool:
    import litellm

    return isinstance(exc, (litellm.RateLimitError, litellm.ServiceUnavailableError))


def classify_exception(exc: Exception) -> Union[Throttled, Fatal]:
    """Classify a failed remote call.

    Args:
        exc: Exception raised by the call

    Returns:
        Throttled for rate-limit / service-unavailable errors, Fatal otherwise
    """
    status = _status_code(exc)
    if status not in THROTTLE_STATUS_CODES and not _is_throttle_type(exc):
        return Fatal(error=exc)

    headers = _extract_headers(exc)
    hint = wait_hint_from_headers(headers)
    if hint is None:
        hint = _wait_hint_from_message(str(exc))

    rate_info = {k: v for k, v in headers.items() if k.startswith("x-ratelimit-")}
    return Throttled(error=exc, wait_hint=hint, rate_info=rate_info)


def guard(fn: Callable[[], Awaitable[T]]) -> Callable[[], Awaitable[CallOutcome[T]]]:
    """Wrap a remote call so failures come back as outcomes.

    Cancellation is not an ``Exception`` and is never converted.
    """

    async def run() -> CallOutcome[T]:
        try:
            return Success(await fn())
        except Exception as exc:
            return classify_exception(exc)

    return run

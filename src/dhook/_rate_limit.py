"""
Rate limiting components for the dhook client.

Discord enforces several rate limits on webhooks at the same time. This module
provides the building blocks used by `Webhook.execute()` to respect all of them
before a request is sent:

- SlidingWindowLimiter: Fixed "N requests per period" limit (sliding log).
    Used for the global limit (shared by all webhooks of a client)
    and for the undocumented per-webhook limit.
- DynamicHeaderLimiter: Limit learned from the "X-RateLimit-*" response headers.
- CooldownState: Sticky flag set after the server answered with HTTP 429.

Example:
    >>> from dhook._rate_limit import SlidingWindowLimiter
    >>> limiter = SlidingWindowLimiter(max_requests=30, time_window=60.0, name="webhook")
    >>> limiter.wait()  # blocks only when 30 requests were sent in the last 60s
"""

import logging
import re
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, replace

from requests.structures import CaseInsensitiveDict

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class RateLimitHeaderError(ValueError):
    """
    Raised when the "X-RateLimit-*" response headers are complete but malformed.

    A missing header is not an error (the server simply did not send rate limit
    information). This exception means all headers were present, but at least
    one of them could not be parsed into its expected numeric type.

    Attributes:
        headers: The headers that failed to parse.
    """

    def __init__(self, message: str, headers: Mapping[str, str]):
        self.headers = headers
        super().__init__(message)


# =============================================================================
# Helpers
# =============================================================================


_NANOS_PER_SECOND = 1_000_000_000

# Optional sign followed by ASCII digits only
_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def parse_int(value: str) -> int:
    """
    Parse a header value as a base 10 integer.

    Stricter than `int()`: surrounding whitespace, underscores and non-ASCII
    digits are rejected.

    Raises:
        ValueError: If the value is not an integer.
    """
    if not _INTEGER_PATTERN.fullmatch(value):
        raise ValueError(f"invalid integer: {value!r}")
    return int(value)


def round_up_duration(d: float, m: float) -> float:
    """
    Round a duration up to the next multiple of `m`.

    The duration is first rounded to the nearest multiple (halfway values
    round away from zero). If that rounded it down, one more `m` is added,
    so the result is never shorter than `d`.

    Args:
        d: Duration in seconds.
        m: Multiple (tick) in seconds. Must be greater than 0.

    Returns:
        The rounded duration in seconds.

    Example:
        >>> round_up_duration(1.1, 1.0)
        2.0
        >>> round_up_duration(1.0, 1.0)
        1.0
    """
    assert m > 0, "m must be greater than 0."

    # Whole nanoseconds, so exact multiples stay exact
    dn = round(d * _NANOS_PER_SECOND)
    mn = max(1, round(m * _NANOS_PER_SECOND))

    r = abs(dn) % mn
    x = abs(dn) - r if r + r < mn else abs(dn) + mn - r
    if dn < 0:
        x = -x
    if x < dn:
        x += mn
    return x / _NANOS_PER_SECOND


# =============================================================================
# Sliding Window Limiter
# =============================================================================


class SlidingWindowLimiter:
    """
    Rate limiter implementing the sliding log algorithm.

    Admits at most `max_requests` events in any trailing window of
    `time_window` seconds. The timestamps of the last `max_requests` admitted
    events are kept in a ring buffer: the slot under the cursor always holds
    the oldest one, and a new event is admitted only after it left the window.

    Waits are rounded up to the next regular admission tick
    (`time_window / max_requests`, e.g. 100ms for 10 req/s), so queued
    callers are released one tick apart instead of all at once.

    This class is thread-safe. The lock is held while sleeping, so concurrent
    callers are admitted strictly one after another.

    Example:
        >>> limiter = SlidingWindowLimiter(max_requests=50, time_window=1.0, name="global")
        >>> for _ in range(51):
        ...     limiter.wait()  # the 51st call waits about one second

    Args:
        max_requests: Maximum number of events admitted per time window.
        time_window: Length of the window in seconds.
        name: Name of this limiter, used in log messages.
    """

    def __init__(self, max_requests: int, time_window: float, name: str = ""):
        assert max_requests is not None, "max_requests cannot be None."
        assert max_requests > 0, "max_requests must be greater than 0."
        assert time_window is not None, "time_window cannot be None."
        assert time_window > 0, "time_window must be greater than 0."

        self.max_requests = max_requests
        self.time_window = time_window
        self.name = name

        # Seeded in the past so that the first `max_requests` calls never wait
        before = time.monotonic() - 2 * time_window
        self._entries: list[float] = [before] * max_requests
        self._index = 0
        self._lock = threading.Lock()

    @property
    def tick(self) -> float:
        """Regular distance in seconds between two admissions at full rate."""
        return self.time_window / self.max_requests

    def wait(self) -> None:
        """
        Register a new event, blocking until the window has room for it.

        The wait duration is rounded up to the next rate tick.
        """
        with self._lock:
            oldest = self._entries[self._index]
            next_slot = oldest + self.time_window
            now = time.monotonic()
            if now < next_slot:
                retry_after = round_up_duration(next_slot - now, self.tick)
                logger.info(
                    f"{self.name or '-'} | Limiter | "
                    f"⏳ Rate limit exhausted. Waiting {retry_after:.3f}s for reset..."
                )
                time.sleep(retry_after)

            self._entries[self._index] = time.monotonic()
            self._index = (self._index + 1) % self.max_requests


# =============================================================================
# Dynamic Header Limiter
# =============================================================================


# Response headers carrying the rate limit of the current bucket
HEADER_LIMIT = "X-RateLimit-Limit"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET = "X-RateLimit-Reset"
HEADER_RESET_AFTER = "X-RateLimit-Reset-After"
HEADER_BUCKET = "X-RateLimit-Bucket"


@dataclass(frozen=True)
class RateLimitInfo:
    """
    Rate limit of a bucket as communicated by the server in response headers.

    Attributes:
        limit: Number of requests allowed in the current window.
        remaining: Number of requests left in the current window.
        reset_at: Epoch time (seconds) when the window resets.
        reset_after: Seconds until the window resets, as reported by the server.
        bucket: Opaque identifier of the rate limit bucket.
        observed_at: Epoch time when the headers were read. None means unset.
    """
    limit: int = 0
    remaining: int = 0
    reset_at: float = 0.0
    reset_after: float = 0.0
    bucket: str = ""
    observed_at: float | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "RateLimitInfo | None":
        """
        Create a RateLimitInfo from response headers.

        Args:
            headers: Response headers (looked up case-insensitively).

        Returns:
            The parsed info, or None when any of the headers is missing or empty.

        Raises:
            RateLimitHeaderError: If all headers are present but one is malformed.
        """
        h = CaseInsensitiveDict(headers)
        names = (HEADER_LIMIT, HEADER_REMAINING, HEADER_RESET, HEADER_RESET_AFTER, HEADER_BUCKET)
        values = [h.get(name) for name in names]
        if not all(values):
            return None

        limit, remaining, reset, reset_after, bucket = values
        try:
            return cls(
                limit=parse_int(limit),
                remaining=parse_int(remaining),
                reset_at=float(parse_int(reset)),
                reset_after=float(reset_after),
                bucket=bucket,
                observed_at=time.time(),
            )
        except (TypeError, ValueError) as e:
            raise RateLimitHeaderError(
                f"Invalid rate limit headers {dict(h)}: {e}", headers=headers
            ) from e

    def is_set(self) -> bool:
        """Return True if this info was read from a response."""
        return self.observed_at is not None

    def limit_exceeded(self, now: float) -> bool:
        """
        Report whether the next request would exceed the limit.

        Args:
            now: Current epoch time in seconds.
        """
        if not self.is_set():
            return False
        if self.remaining > 0:
            return False
        if self.reset_at < now:
            return False
        return True

    def __str__(self) -> str:
        return (
            f"limit:{self.limit} remaining:{self.remaining} "
            f"reset_at:{self.reset_at:.0f} reset_in:{self.reset_at - time.time():.3f}s "
            f"bucket:{self.bucket}"
        )


class DynamicHeaderLimiter:
    """
    Rate limiter driven by the "X-RateLimit-*" headers of previous responses.

    The budget of this limiter is not known in advance. After each response,
    `update_from_headers()` stores what the server reported, and `wait()`
    blocks before the next request when no budget is left until the window
    resets. Without any information the limiter never blocks.

    Each request optimistically consumes one unit of the known budget, so
    requests sent before the server answered do not all count on the same
    remaining slot. A reading of the same window (same bucket and reset time)
    is ignored, since it is already accounted for locally.

    Example:
        >>> limiter = DynamicHeaderLimiter(name="webhook")
        >>> limiter.wait()
        False
        >>> limiter.update_from_headers(response.headers)

    Args:
        name: Name of this limiter, used in log messages.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._info = RateLimitInfo()
        self._lock = threading.Lock()

    @property
    def info(self) -> RateLimitInfo:
        """Current rate limit information."""
        return self._info

    def wait(self) -> bool:
        """
        Wait until the rate limit resets, if it is exhausted.

        The wait is rounded up to whole seconds.

        Returns:
            True if this call waited, False otherwise.
        """
        info = self._info
        logger.debug(f"{self.name or '-'} | Limiter | API rate limit: {info}")
        if not info.limit_exceeded(time.time()):
            return False

        retry_after = round_up_duration(info.reset_at - time.time(), 1.0)
        logger.info(
            f"{self.name or '-'} | Limiter | "
            f"⏳ API rate limit exhausted. Waiting {retry_after:.0f}s for reset..."
        )
        time.sleep(max(0.0, retry_after))
        return True

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """
        Update the limiter from the headers of a response.

        Args:
            headers: Response headers.

        Raises:
            RateLimitHeaderError: If the rate limit headers are present but malformed.
        """
        with self._lock:
            if self._info.remaining > 0:
                self._info = replace(self._info, remaining=self._info.remaining - 1)

            new_info = RateLimitInfo.from_headers(headers)
            if new_info is None:
                return
            if new_info.bucket == self._info.bucket and new_info.reset_at == self._info.reset_at:
                return
            self._info = new_info


# =============================================================================
# Cooldown
# =============================================================================


class CooldownState:
    """
    Sticky "rate limited until T" flag.

    Set after the server rejected a request with HTTP 429. While active, no
    request should be sent. Reading an expired cooldown clears it.

    This class is thread-safe.

    Example:
        >>> cooldown = CooldownState()
        >>> cooldown.set(3.0)
        >>> cooldown.get_or_reset()
        (True, 2.99...)
    """

    def __init__(self) -> None:
        self._reset_at: float | None = None
        self._lock = threading.Lock()

    def set(self, retry_after: float) -> None:
        """
        Activate the cooldown for the given duration.

        Args:
            retry_after: Seconds until the cooldown expires.
        """
        with self._lock:
            self._reset_at = time.monotonic() + retry_after

    def get_or_reset(self) -> tuple[bool, float]:
        """
        Report whether the cooldown is active, clearing it when expired.

        Returns:
            A tuple (active, remaining seconds). Inactive cooldowns report 0.0.
        """
        with self._lock:
            if self._reset_at is None:
                return False, 0.0
            remaining = self._reset_at - time.monotonic()
            if remaining < 0:
                self._reset_at = None
                return False, 0.0
            return True, remaining

"""Tests for rate limiting components."""

import threading
import time
from unittest.mock import patch

import pytest

from dhook import (
    CooldownState,
    DynamicHeaderLimiter,
    RateLimitHeaderError,
    RateLimitInfo,
    SlidingWindowLimiter,
)
from dhook._rate_limit import parse_int, round_up_duration


def rate_limit_headers(
    limit="5",
    remaining="4",
    reset=None,
    reset_after="1.0",
    bucket="abcd1234",
) -> dict[str, str]:
    """Build a complete set of X-RateLimit-* headers."""
    if reset is None:
        reset = str(int(time.time()) + 60)
    return {
        "X-RateLimit-Limit": limit,
        "X-RateLimit-Remaining": remaining,
        "X-RateLimit-Reset": reset,
        "X-RateLimit-Reset-After": reset_after,
        "X-RateLimit-Bucket": bucket,
    }


# =============================================================================
# round_up_duration Tests
# =============================================================================


class TestRoundUpDuration:
    """Tests for round_up_duration()."""

    def test_rounds_up_when_nearest_multiple_is_below(self):
        """Should add one tick when rounding went down."""
        assert round_up_duration(1.1, 1.0) == 2.0

    def test_rounds_to_nearest_multiple_when_above(self):
        """Should round to the nearest multiple when that is above."""
        assert round_up_duration(1.9, 1.0) == 2.0

    def test_keeps_exact_multiples(self):
        """Should keep exact multiples unchanged."""
        assert round_up_duration(1.0, 1.0) == 1.0
        assert round_up_duration(0.5, 0.25) == 0.5

    def test_keeps_exact_multiples_of_inexact_ticks(self):
        """Should keep exact multiples of ticks that are not exact in binary."""
        assert round_up_duration(0.9, 0.3) == 0.9
        assert round_up_duration(0.7, 0.1) == 0.7
        assert round_up_duration(0.3, 0.1) == 0.3

    def test_adds_one_tick_to_inexact_ticks(self):
        """Should round up to the next inexact tick when just above a multiple."""
        assert round_up_duration(0.9001, 0.3) == 1.2
        assert round_up_duration(0.71, 0.1) == 0.8

    def test_halfway_value_rounds_away_from_zero(self):
        """Should round halfway values away from zero."""
        assert round_up_duration(1.5, 1.0) == 2.0

    def test_small_duration_rounds_up_to_one_tick(self):
        """Should round a tiny duration up to one tick."""
        assert round_up_duration(0.001, 0.1) == pytest.approx(0.1)

    def test_zero_stays_zero(self):
        """Should keep a zero duration at zero."""
        assert round_up_duration(0.0, 1.0) == 0.0

    def test_result_is_never_shorter_than_duration(self):
        """Should never return less than the duration."""
        for d in (0.01, 0.26, 0.49, 0.51, 0.74, 0.99, 2.33):
            assert round_up_duration(d, 0.25) >= d

    def test_rejects_non_positive_multiple(self):
        """Should fail the sanity check for a zero multiple."""
        with pytest.raises(AssertionError, match="m must be greater than 0"):
            round_up_duration(1.0, 0.0)


# =============================================================================
# parse_int Tests
# =============================================================================


class TestParseInt:
    """Tests for parse_int()."""

    def test_parses_digits_with_optional_sign(self):
        """Should parse plain, negative and explicitly positive integers."""
        assert parse_int("42") == 42
        assert parse_int("-3") == -3
        assert parse_int("+7") == 7

    def test_rejects_what_int_would_accept(self):
        """Should reject underscores, whitespace and non-ASCII digits."""
        for value in ("1_0", " 5", "5\n", "５", ""):
            with pytest.raises(ValueError, match="invalid integer"):
                parse_int(value)

    def test_rejects_fractions(self):
        """Should reject fractional numbers."""
        with pytest.raises(ValueError):
            parse_int("1.5")


# =============================================================================
# SlidingWindowLimiter Tests
# =============================================================================


class TestSlidingWindowLimiterInit:
    """Tests for SlidingWindowLimiter constructor validation."""

    def test_rejects_zero_max_requests(self):
        """Should fail the sanity check for zero max_requests."""
        with pytest.raises(AssertionError, match="max_requests must be greater than 0"):
            SlidingWindowLimiter(max_requests=0, time_window=1.0)

    def test_rejects_zero_time_window(self):
        """Should fail the sanity check for a zero time window."""
        with pytest.raises(AssertionError, match="time_window must be greater than 0"):
            SlidingWindowLimiter(max_requests=10, time_window=0)

    def test_tick_is_window_divided_by_max_requests(self):
        """Should space admissions by time_window / max_requests."""
        limiter = SlidingWindowLimiter(max_requests=10, time_window=0.1)

        assert limiter.tick == pytest.approx(0.01)


class TestSlidingWindowLimiterWait:
    """Tests for SlidingWindowLimiter.wait()."""

    def test_first_max_requests_calls_do_not_wait(self):
        """Should admit the first max_requests calls immediately."""
        limiter = SlidingWindowLimiter(max_requests=10, time_window=0.1)

        start = time.monotonic()
        for _ in range(10):
            limiter.wait()
        elapsed = time.monotonic() - start

        assert elapsed < 0.05

    def test_call_beyond_max_requests_waits_for_window(self):
        """Should make the call after max_requests wait about one window."""
        limiter = SlidingWindowLimiter(max_requests=10, time_window=0.1)

        start = time.monotonic()
        for _ in range(11):
            limiter.wait()
        elapsed = time.monotonic() - start

        assert 0.09 <= elapsed < 0.3

    def test_does_not_wait_after_window_elapsed(self):
        """Should admit immediately once the window has passed."""
        limiter = SlidingWindowLimiter(max_requests=2, time_window=0.05)
        limiter.wait()
        limiter.wait()

        time.sleep(0.06)
        start = time.monotonic()
        limiter.wait()

        assert time.monotonic() - start < 0.02

    def test_waits_are_rounded_up_to_tick(self):
        """Should sleep a whole number of ticks."""
        limiter = SlidingWindowLimiter(max_requests=4, time_window=2.0)
        for _ in range(4):
            limiter.wait()

        with patch("dhook._rate_limit.time.sleep") as mock_sleep:
            limiter.wait()

        mock_sleep.assert_called_once()
        waited = mock_sleep.call_args[0][0]
        assert waited == pytest.approx(2.0)
        assert waited % limiter.tick == pytest.approx(0.0, abs=1e-9)

    def test_logs_when_waiting(self, caplog):
        """Should log the wait with the limiter name."""
        limiter = SlidingWindowLimiter(max_requests=1, time_window=1.0, name="global")
        limiter.wait()

        with patch("dhook._rate_limit.time.sleep"), caplog.at_level("INFO", logger="dhook._rate_limit"):
            limiter.wait()

        assert "global | Limiter" in caplog.text
        assert "Rate limit exhausted" in caplog.text

    def test_concurrent_callers_never_exceed_limit(self):
        """Should keep the limit across concurrent threads."""
        limiter = SlidingWindowLimiter(max_requests=5, time_window=0.1)
        timestamps: list[float] = []
        lock = threading.Lock()

        def worker():
            for _ in range(3):
                limiter.wait()
                with lock:
                    timestamps.append(time.monotonic())

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        timestamps.sort()
        assert len(timestamps) == 15
        # Any 6 consecutive admissions must span at least one window
        for i in range(len(timestamps) - 5):
            assert timestamps[i + 5] - timestamps[i] >= 0.08


# =============================================================================
# RateLimitInfo Tests
# =============================================================================


class TestRateLimitInfoFromHeaders:
    """Tests for RateLimitInfo.from_headers()."""

    def test_parses_complete_headers(self):
        """Should parse all five rate limit headers."""
        headers = rate_limit_headers(
            limit="5", remaining="1", reset="1470173023", reset_after="1", bucket="abcd1234"
        )

        info = RateLimitInfo.from_headers(headers)

        assert info is not None
        assert info.limit == 5
        assert info.remaining == 1
        assert info.reset_at == 1470173023.0
        assert info.reset_after == 1.0
        assert info.bucket == "abcd1234"
        assert info.is_set()

    def test_header_names_are_case_insensitive(self):
        """Should find headers regardless of case."""
        headers = {k.lower(): v for k, v in rate_limit_headers().items()}

        info = RateLimitInfo.from_headers(headers)

        assert info is not None
        assert info.bucket == "abcd1234"

    def test_returns_none_when_a_header_is_missing(self):
        """Should return None when one header is missing."""
        headers = rate_limit_headers()
        del headers["X-RateLimit-Bucket"]

        assert RateLimitInfo.from_headers(headers) is None

    def test_returns_none_when_a_header_is_empty(self):
        """Should return None when one header is empty."""
        headers = rate_limit_headers(remaining="")

        assert RateLimitInfo.from_headers(headers) is None

    def test_returns_none_without_headers(self):
        """Should return None without any rate limit headers."""
        assert RateLimitInfo.from_headers({}) is None

    def test_raises_on_malformed_number(self):
        """Should raise RateLimitHeaderError for a non-numeric limit."""
        headers = rate_limit_headers(limit="five")

        with pytest.raises(RateLimitHeaderError) as exc_info:
            RateLimitInfo.from_headers(headers)

        assert exc_info.value.headers is headers

    def test_raises_on_fractional_reset(self):
        """Should raise RateLimitHeaderError for a fractional reset time."""
        headers = rate_limit_headers(reset="1470173023.5")

        with pytest.raises(RateLimitHeaderError):
            RateLimitInfo.from_headers(headers)

    def test_raises_on_underscore_in_number(self):
        """Should raise RateLimitHeaderError for digit separators."""
        headers = rate_limit_headers(remaining="1_0")

        with pytest.raises(RateLimitHeaderError):
            RateLimitInfo.from_headers(headers)

    def test_raises_on_padded_number(self):
        """Should raise RateLimitHeaderError for whitespace around a number."""
        headers = rate_limit_headers(limit=" 5 ")

        with pytest.raises(RateLimitHeaderError):
            RateLimitInfo.from_headers(headers)

    def test_header_error_is_value_error(self):
        """RateLimitHeaderError should extend ValueError."""
        assert issubclass(RateLimitHeaderError, ValueError)


class TestRateLimitInfoLimitExceeded:
    """Tests for RateLimitInfo.limit_exceeded()."""

    def test_unset_info_is_never_exceeded(self):
        """Should never report an unset info as exceeded."""
        assert not RateLimitInfo().limit_exceeded(time.time())

    def test_not_exceeded_with_remaining_budget(self):
        """Should not be exceeded while requests remain."""
        now = time.time()
        info = RateLimitInfo(limit=5, remaining=1, reset_at=now + 10, observed_at=now)

        assert not info.limit_exceeded(now)

    def test_exceeded_without_remaining_budget_before_reset(self):
        """Should be exceeded with no requests left before the reset."""
        now = time.time()
        info = RateLimitInfo(limit=5, remaining=0, reset_at=now + 10, observed_at=now)

        assert info.limit_exceeded(now)

    def test_not_exceeded_after_reset(self):
        """Should not be exceeded once the reset time has passed."""
        now = time.time()
        info = RateLimitInfo(limit=5, remaining=0, reset_at=now - 1, observed_at=now - 2)

        assert not info.limit_exceeded(now)


# =============================================================================
# DynamicHeaderLimiter Tests
# =============================================================================


class TestDynamicHeaderLimiterUpdate:
    """Tests for DynamicHeaderLimiter.update_from_headers()."""

    def test_first_update_stores_headers(self):
        """Should store the first reading."""
        limiter = DynamicHeaderLimiter()

        limiter.update_from_headers(rate_limit_headers(remaining="4"))

        assert limiter.info.remaining == 4
        assert limiter.info.is_set()

    def test_same_window_keeps_local_decrement(self):
        """Should keep the local decrement when the same window is reported again."""
        limiter = DynamicHeaderLimiter()
        headers = rate_limit_headers(remaining="2")
        limiter.update_from_headers(headers)

        # Server reports the same window again, e.g. a stale reading
        limiter.update_from_headers(headers)

        assert limiter.info.remaining == 1

    def test_new_reset_time_replaces_state(self):
        """Should replace the state when the reset time changes."""
        limiter = DynamicHeaderLimiter()
        reset = int(time.time()) + 60
        limiter.update_from_headers(rate_limit_headers(remaining="0", reset=str(reset)))

        limiter.update_from_headers(rate_limit_headers(remaining="4", reset=str(reset + 1)))

        assert limiter.info.remaining == 4
        assert limiter.info.reset_at == float(reset + 1)

    def test_new_bucket_replaces_state(self):
        """Should replace the state when the bucket changes."""
        limiter = DynamicHeaderLimiter()
        reset = str(int(time.time()) + 60)
        limiter.update_from_headers(rate_limit_headers(remaining="0", reset=reset, bucket="a"))

        limiter.update_from_headers(rate_limit_headers(remaining="3", reset=reset, bucket="b"))

        assert limiter.info.remaining == 3
        assert limiter.info.bucket == "b"

    def test_missing_headers_only_decrement(self):
        """Should only decrement remaining when headers are missing."""
        limiter = DynamicHeaderLimiter()
        limiter.update_from_headers(rate_limit_headers(remaining="3"))

        limiter.update_from_headers({})

        assert limiter.info.remaining == 2

    def test_remaining_never_goes_below_zero(self):
        """Should not decrement remaining below zero."""
        limiter = DynamicHeaderLimiter()
        limiter.update_from_headers(rate_limit_headers(remaining="0"))

        limiter.update_from_headers({})

        assert limiter.info.remaining == 0

    def test_missing_headers_on_unset_limiter_keep_it_unset(self):
        """Should stay unset when no rate limit headers arrive."""
        limiter = DynamicHeaderLimiter()

        limiter.update_from_headers({"Content-Type": "application/json"})

        assert not limiter.info.is_set()

    def test_malformed_headers_raise(self):
        """Should propagate RateLimitHeaderError to the caller."""
        limiter = DynamicHeaderLimiter()

        with pytest.raises(RateLimitHeaderError):
            limiter.update_from_headers(rate_limit_headers(remaining="many"))


class TestDynamicHeaderLimiterWait:
    """Tests for DynamicHeaderLimiter.wait()."""

    def test_unset_limiter_never_waits(self):
        """Should never wait without rate limit information."""
        limiter = DynamicHeaderLimiter()

        with patch("dhook._rate_limit.time.sleep") as mock_sleep:
            waited = limiter.wait()

        assert waited is False
        mock_sleep.assert_not_called()

    def test_does_not_wait_with_remaining_budget(self):
        """Should not wait while requests remain."""
        limiter = DynamicHeaderLimiter()
        limiter.update_from_headers(rate_limit_headers(remaining="3"))

        with patch("dhook._rate_limit.time.sleep") as mock_sleep:
            waited = limiter.wait()

        assert waited is False
        mock_sleep.assert_not_called()

    def test_waits_whole_seconds_until_reset(self):
        """Should sleep whole seconds until the reset."""
        limiter = DynamicHeaderLimiter()
        reset = int(time.time()) + 2
        limiter.update_from_headers(rate_limit_headers(remaining="0", reset=str(reset)))

        with patch("dhook._rate_limit.time.sleep") as mock_sleep:
            waited = limiter.wait()

        assert waited is True
        mock_sleep.assert_called_once_with(2.0)

    def test_does_not_wait_after_reset_passed(self):
        """Should not wait once the reset time has passed."""
        limiter = DynamicHeaderLimiter()
        reset = int(time.time()) - 5
        limiter.update_from_headers(rate_limit_headers(remaining="0", reset=str(reset)))

        with patch("dhook._rate_limit.time.sleep") as mock_sleep:
            waited = limiter.wait()

        assert waited is False
        mock_sleep.assert_not_called()


# =============================================================================
# CooldownState Tests
# =============================================================================


class TestCooldownState:
    """Tests for CooldownState."""

    def test_inactive_by_default(self):
        """Should start inactive."""
        cooldown = CooldownState()

        assert cooldown.get_or_reset() == (False, 0.0)

    def test_active_after_set(self):
        """Should report the remaining time after set()."""
        cooldown = CooldownState()

        cooldown.set(3.0)
        is_active, retry_after = cooldown.get_or_reset()

        assert is_active is True
        assert 2.9 < retry_after <= 3.0

    def test_stays_active_across_reads(self):
        """Should stay active when read before expiring."""
        cooldown = CooldownState()
        cooldown.set(3.0)

        cooldown.get_or_reset()
        is_active, _ = cooldown.get_or_reset()

        assert is_active is True

    def test_expired_cooldown_is_cleared(self):
        """Should clear itself once expired."""
        cooldown = CooldownState()
        cooldown.set(0.01)

        time.sleep(0.02)

        assert cooldown.get_or_reset() == (False, 0.0)
        assert cooldown.get_or_reset() == (False, 0.0)

    def test_negative_duration_is_already_expired(self):
        """Should treat a negative duration as already expired."""
        cooldown = CooldownState()

        cooldown.set(-1.0)

        assert cooldown.get_or_reset() == (False, 0.0)
        assert cooldown.get_or_reset() == (False, 0.0)

    def test_set_replaces_previous_cooldown(self):
        """Should replace a previous cooldown."""
        cooldown = CooldownState()
        cooldown.set(10.0)

        cooldown.set(1.0)
        _, retry_after = cooldown.get_or_reset()

        assert retry_after <= 1.0

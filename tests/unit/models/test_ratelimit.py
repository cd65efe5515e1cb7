"""Test rate limit models."""

from datetime import datetime, timedelta, timezone

import pytest

from gengate.models.ratelimit import QuotaState, RateLimitInfo, WindowConfig

NOW = datetime(2024, 1, 1, 12, 0, 30, tzinfo=timezone.utc)


class TestWindowConfig:
    """Test fixed window arithmetic."""

    def test_should_align_window_to_epoch(self):
        """Test window start is a multiple of the window length."""
        window = WindowConfig.per_minute(10)
        assert window.window_start(NOW) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert window.reset_at(NOW) == datetime(2024, 1, 1, 12, 1, tzinfo=timezone.utc)

    def test_should_align_daily_window(self):
        """Test daily window starts at midnight UTC."""
        window = WindowConfig.per_day(100)
        assert window.window_start(NOW) == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_should_build_distinct_keys_per_window(self):
        """Test keys roll over with the window."""
        window = WindowConfig.per_minute(10)
        first = window.counter_key("user-1", NOW)
        second = window.counter_key("user-1", NOW + timedelta(seconds=60))

        assert first.startswith("counter:rate:user-1:")
        assert first != second
        assert window.counter_key("user-2", NOW) != first


class TestQuotaState:
    """Test window usage state."""

    def test_should_report_remaining_and_exceeded(self):
        """Test remaining never goes negative."""
        state = QuotaState(
            subject_id="u", window_usage=12, window_limit=10, window_reset_at=NOW
        )
        assert state.remaining == 0
        assert state.is_exceeded

    def test_should_round_seconds_until_reset_up(self):
        """Test partial seconds round up."""
        state = QuotaState(
            subject_id="u",
            window_usage=1,
            window_limit=10,
            window_reset_at=NOW + timedelta(seconds=29, milliseconds=500),
        )
        assert state.seconds_until_reset(NOW) == 30
        assert state.seconds_until_reset(NOW + timedelta(minutes=1)) == 0


class TestRateLimitInfo:
    """Test response header info."""

    def test_should_reject_remaining_above_limit(self):
        """Test validator."""
        with pytest.raises(ValueError):
            RateLimitInfo(limit=5, remaining=6, reset_at=NOW)

    def test_should_build_headers(self):
        """Test X-RateLimit headers."""
        state = QuotaState(
            subject_id="u",
            window_usage=10,
            window_limit=10,
            window_reset_at=NOW + timedelta(seconds=30),
        )
        headers = RateLimitInfo.from_state(state, NOW).to_headers()

        assert headers["X-RateLimit-Limit"] == "10"
        assert headers["X-RateLimit-Remaining"] == "0"
        assert headers["Retry-After"] == "30"

    def test_should_omit_retry_after_when_not_exceeded(self):
        """Test Retry-After only when blocked."""
        info = RateLimitInfo(limit=10, remaining=4, reset_at=NOW)
        assert "Retry-After" not in info.to_headers()

"""
Unit tests for the fixed window rate limiter.
"""

import pytest
from unittest.mock import MagicMock, patch
from fastapi import FastAPI
from fastapi.testclient import TestClient
from limits.storage import MemoryStorage

from service_posts.app.ratelimit.fixed_window import FixedWindowRateLimiter, RateLimitMiddleware


@pytest.fixture
def frozen_time(clock):
    """Route wall-clock reads, including the limit storage's, through the fake clock."""
    with patch("time.time", clock):
        yield clock


class TestFixedWindowRateLimiter:
    """Test cases for FixedWindowRateLimiter."""

    @pytest.fixture
    def rate_limiter(self, frozen_time):
        """Create a limiter allowing 3 requests per 60 seconds."""
        return FixedWindowRateLimiter(3, 60)

    def test_requests_up_to_limit_are_allowed(self, rate_limiter):
        """Test that the Nth request is accepted."""
        results = [rate_limiter.check_rate_limit("10.0.0.1") for _ in range(3)]

        assert all(result.allowed for result in results)
        assert [result.remaining for result in results] == [2, 1, 0]

    def test_request_over_limit_is_rejected(self, rate_limiter):
        """Test that the N+1th request is rejected."""
        for _ in range(3):
            rate_limiter.check_rate_limit("10.0.0.1")

        result = rate_limiter.check_rate_limit("10.0.0.1")

        assert result.allowed is False
        assert result.remaining == 0
        assert result.retry_after == 60

    def test_rejected_requests_still_count(self, rate_limiter, frozen_time):
        """Test that hammering past the limit does not shorten the wait."""
        for _ in range(10):
            rate_limiter.check_rate_limit("10.0.0.1")

        frozen_time.advance(30)

        result = rate_limiter.check_rate_limit("10.0.0.1")
        assert result.allowed is False
        assert result.reset_in_seconds == 30

    def test_clients_are_counted_separately(self, rate_limiter):
        """Test per-address budgets."""
        for _ in range(3):
            rate_limiter.check_rate_limit("10.0.0.1")

        assert rate_limiter.check_rate_limit("10.0.0.2").allowed is True
        assert rate_limiter.check_rate_limit("10.0.0.1").allowed is False

    def test_window_end_resets_count(self, rate_limiter, frozen_time):
        """Test that the count starts over once the window lapses."""
        for _ in range(4):
            rate_limiter.check_rate_limit("10.0.0.1")

        frozen_time.advance(60)

        result = rate_limiter.check_rate_limit("10.0.0.1")
        assert result.allowed is True
        assert result.remaining == 2

    def test_reset_counts_down_within_window(self, rate_limiter, frozen_time):
        """Test that the reset hint shrinks as the window elapses."""
        rate_limiter.check_rate_limit("10.0.0.1")
        frozen_time.advance(45.5)

        result = rate_limiter.check_rate_limit("10.0.0.1")

        assert result.reset_in_seconds == 15

    def test_reset_is_at_least_one_second(self, rate_limiter, frozen_time):
        rate_limiter.check_rate_limit("10.0.0.1")
        frozen_time.advance(59.99)

        assert rate_limiter.check_rate_limit("10.0.0.1").reset_in_seconds == 1

    def test_injected_storage_is_used(self, frozen_time):
        storage = MemoryStorage()
        rate_limiter = FixedWindowRateLimiter(1, 60, storage=storage)

        rate_limiter.check_rate_limit("10.0.0.1")

        assert rate_limiter.storage is storage
        assert storage.get(rate_limiter.limit.key_for("10.0.0.1")) == 1

    @pytest.mark.parametrize("max_requests, window_seconds", [(0, 60), (10, 0)])
    def test_invalid_configuration(self, max_requests, window_seconds):
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(max_requests, window_seconds)


class TestRateLimitMiddleware:
    """Test cases for RateLimitMiddleware."""

    def _client(self, rate_limiter, **options) -> TestClient:
        app = FastAPI()

        @app.get("/ping")
        async def ping():
            return {"pong": True}

        @app.get("/health")
        async def health():
            return {"status": "ok"}

        app.add_middleware(RateLimitMiddleware, rate_limiter=rate_limiter, exempt_paths={"/health"}, **options)
        return TestClient(app)

    def test_headers_on_allowed_response(self, frozen_time):
        """Test that rate limit metadata is attached to responses."""
        client = self._client(FixedWindowRateLimiter(2, 60))

        response = client.get("/ping")

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "2"
        assert response.headers["X-RateLimit-Remaining"] == "1"
        assert response.headers["X-RateLimit-Reset"] == "60"

    def test_rejects_over_limit_with_retry_after(self, frozen_time):
        """Test the 429 response shape."""
        metrics = MagicMock()
        client = self._client(FixedWindowRateLimiter(2, 60), metrics=metrics)

        assert client.get("/ping").status_code == 200
        assert client.get("/ping").status_code == 200
        response = client.get("/ping")

        assert response.status_code == 429
        assert response.json() == {"error": "Too many requests, please try again later."}
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        metrics.record_rate_limit_rejection.assert_called_once()

    def test_headers_can_be_disabled(self):
        client = self._client(FixedWindowRateLimiter(2, 60), headers_enabled=False)

        response = client.get("/ping")

        assert "X-RateLimit-Limit" not in response.headers

    def test_exempt_paths_are_not_counted(self):
        rate_limiter = FixedWindowRateLimiter(1, 60)
        client = self._client(rate_limiter)

        for _ in range(3):
            assert client.get("/health").status_code == 200

        assert client.get("/ping").status_code == 200

    def test_forwarded_for_ignored_by_default(self):
        """Test that clients cannot pick their own address."""
        client = self._client(FixedWindowRateLimiter(1, 60))

        assert client.get("/ping", headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 200
        assert client.get("/ping", headers={"X-Forwarded-For": "2.2.2.2"}).status_code == 429

    def test_forwarded_for_trusted_when_enabled(self):
        client = self._client(FixedWindowRateLimiter(1, 60), trust_forwarded_for=True)

        assert client.get("/ping", headers={"X-Forwarded-For": "1.1.1.1, 10.0.0.1"}).status_code == 200
        assert client.get("/ping", headers={"X-Forwarded-For": "2.2.2.2"}).status_code == 200
        assert client.get("/ping", headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 429

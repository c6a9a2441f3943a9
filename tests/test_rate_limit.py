"""Tests for the Redis-backed rate limiter."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from vendorhub.core.security import create_access_token
from vendorhub.middleware.rate_limit import RateLimitMiddleware


class TestSlidingWindow:
    """Test the Lua sliding window call."""

    @pytest.mark.asyncio
    async def test_allowed_request(self, mock_redis):
        """Test a request under the limit is allowed."""
        mock_script = AsyncMock(return_value=[1, 0])
        mock_redis.register_script = MagicMock(return_value=mock_script)
        middleware = RateLimitMiddleware(MagicMock(), user_limit=5, ip_limit=50)

        allowed, retry_after = await middleware._check_rate_limit_lua(
            mock_redis, "ratelimit:user:vendor-1", 5
        )

        assert allowed is True
        assert retry_after == 0
        _, kwargs = mock_script.call_args
        assert kwargs["keys"] == ["ratelimit:user:vendor-1"]
        assert kwargs["args"][1:3] == [1, 5]

    @pytest.mark.asyncio
    async def test_rejected_request_reports_retry_after(self, mock_redis):
        """Test a request over the limit is rejected with a wait time."""
        mock_redis.register_script = MagicMock(return_value=AsyncMock(return_value=[0, 2]))
        middleware = RateLimitMiddleware(MagicMock(), user_limit=5, ip_limit=50)

        allowed, retry_after = await middleware._check_rate_limit_lua(
            mock_redis, "ratelimit:ip:10.0.0.1", 50
        )

        assert allowed is False
        assert retry_after == 2

    @pytest.mark.asyncio
    async def test_script_registered_once(self, mock_redis):
        mock_redis.register_script = MagicMock(return_value=AsyncMock(return_value=[1, 0]))
        middleware = RateLimitMiddleware(MagicMock())

        for _ in range(3):
            await middleware._check_rate_limit_lua(mock_redis, "ratelimit:ip:x", 10)

        mock_redis.register_script.assert_called_once()


class TestActorExtraction:
    """Test reading the actor from the Authorization header."""

    def test_bearer_token(self):
        token = create_access_token("vendor-7")

        assert RateLimitMiddleware._actor_from_header(f"Bearer {token}") == "vendor-7"

    def test_missing_or_invalid_header(self):
        assert RateLimitMiddleware._actor_from_header("") is None
        assert RateLimitMiddleware._actor_from_header("Basic abc") is None
        assert RateLimitMiddleware._actor_from_header("Bearer not-a-jwt") is None

    def test_too_many_response(self):
        response = RateLimitMiddleware._too_many("Too many requests", 3)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "3"

"""Tests for upstream limits utilities."""

import anyio
import pytest

from newsrelay.application.upstream_limits import enforce_timeout
from newsrelay.domain.exceptions import UpstreamUnavailableError


class TestEnforceTimeout:
    """Test enforce_timeout context manager."""

    @pytest.mark.anyio
    async def test_successful_execution_within_timeout(self):
        """Test that operations completing within timeout succeed."""
        result = []

        async with enforce_timeout(1):
            await anyio.sleep(0.01)
            result.append("completed")

        assert result == ["completed"]

    @pytest.mark.anyio
    async def test_timeout_exceeded_raises_error(self):
        """Test that exceeding the timeout surfaces as an upstream failure."""
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            async with enforce_timeout(0.05, provider_name="guardian", request_id="req-1"):
                await anyio.sleep(1.0)

        error = exc_info.value
        assert error.timeout_seconds == 0.05
        assert error.provider_name == "guardian"
        assert error.request_id == "req-1"
        assert isinstance(error.__cause__, TimeoutError)

    @pytest.mark.anyio
    async def test_other_exceptions_propagate(self):
        """Test that errors raised inside the block are not rewritten."""
        with pytest.raises(ValueError):
            async with enforce_timeout(1):
                raise ValueError("boom")

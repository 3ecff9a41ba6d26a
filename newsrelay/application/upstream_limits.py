"""Utilities enforcing upstream call duration."""

from __future__ import annotations

import anyio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from ..domain.exceptions import UpstreamUnavailableError


@asynccontextmanager
async def enforce_timeout(
    seconds: float,
    provider_name: Optional[str] = None,
    request_id: Optional[str] = None,
) -> AsyncGenerator[None, None]:
    """Enforce a timeout on an upstream provider call.

    The enclosed block is cancelled once ``seconds`` elapse and the timeout
    surfaces as :class:`UpstreamUnavailableError`, which the orchestrator
    treats like any other provider failure.

    Args:
        seconds: Maximum allowed duration for the upstream call in seconds
        provider_name: Provider being called, attached to the error
        request_id: Request correlator, attached to the error

    Yields:
        None: Enters the context block where the upstream call should be made

    Raises:
        UpstreamUnavailableError: When the timeout is exceeded

    Example:
        async with enforce_timeout(20, provider_name="guardian"):
            result = await provider.fetch_articles(query)
    """
    try:
        with anyio.fail_after(seconds):
            yield
    except TimeoutError as exc:
        raise UpstreamUnavailableError(
            f"Upstream call timed out after {seconds}s",
            timeout_seconds=seconds,
            provider_name=provider_name,
            request_id=request_id,
        ) from exc

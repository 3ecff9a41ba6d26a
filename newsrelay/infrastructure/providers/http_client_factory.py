"""
HTTP client factory for provider implementations.
Handles configuration and initialization of pooled upstream HTTP clients.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from openai import DefaultAsyncHttpxClient

from ...config import Settings


@dataclass
class ConnectionLimits:
    """Connection pool configuration."""

    max_keepalive: int
    max_connections: int
    keepalive_expiry: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionLimits":
        return cls(
            max_keepalive=settings.pool_max_keepalive_connections,
            max_connections=settings.pool_max_connections,
            keepalive_expiry=settings.pool_keepalive_expiry,
        )


class HttpClientFactory:
    """Factory for creating configured HTTP clients for the news and AI providers."""

    @staticmethod
    def build_httpx_config(settings: Settings) -> Dict[str, Any]:
        """Build httpx client configuration shared by every upstream client."""
        limits = ConnectionLimits.from_settings(settings)
        return {
            "limits": httpx.Limits(
                max_keepalive_connections=limits.max_keepalive,
                max_connections=limits.max_connections,
                keepalive_expiry=limits.keepalive_expiry,
            ),
            "timeout": httpx.Timeout(
                connect=settings.http_connect_timeout,
                read=settings.http_read_timeout,
                write=settings.http_write_timeout,
                pool=settings.http_pool_timeout,
            ),
            "verify": os.getenv("SSL_CERT_FILE", True),
            "follow_redirects": True,
        }

    @staticmethod
    def create_client(
        settings: Settings, base_url: str, headers: Optional[Dict[str, str]] = None
    ) -> httpx.AsyncClient:
        """
        Create a pooled httpx client bound to one provider's base URL.

        Args:
            settings: Application settings
            base_url: Provider base URL
            headers: Extra default headers (for example the API key header)

        Returns:
            Configured httpx client; transport-level retries stay disabled
        """
        return httpx.AsyncClient(
            base_url=base_url,
            headers={**HttpClientFactory.get_default_headers(settings), **(headers or {})},
            **HttpClientFactory.build_httpx_config(settings),
        )

    @staticmethod
    def create_sdk_client(settings: Settings) -> DefaultAsyncHttpxClient:
        """Create the httpx client handed to the OpenAI SDK for Gemini calls."""
        return DefaultAsyncHttpxClient(**HttpClientFactory.build_httpx_config(settings))

    @staticmethod
    async def close_client(client: Optional[httpx.AsyncClient]) -> None:
        """
        Properly close an HTTP client to avoid resource leaks.

        Args:
            client: HTTP client to close
        """
        if not client:
            return

        try:
            await client.aclose()
        except (httpx.HTTPError, RuntimeError) as e:
            logging.warning(f"Error closing HTTP client: {e}")

    @staticmethod
    def get_default_headers(settings: Settings) -> Dict[str, str]:
        return {
            "User-Agent": f"{settings.app_name}/{settings.app_version}",
            "Accept": "application/json",
            "Accept-Charset": "utf-8",
        }

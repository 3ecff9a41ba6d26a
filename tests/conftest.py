from datetime import datetime, timedelta, timezone
from typing import Iterator

from unittest.mock import MagicMock, patch
import pytest


# Configure anyio to only use asyncio backend
@pytest.fixture
def anyio_backend() -> str:
    """Force tests to use asyncio backend only."""
    return "asyncio"


@pytest.fixture(autouse=True, scope="session")
def mock_logger() -> Iterator[MagicMock]:
    with patch("newsrelay.logging._logger", MagicMock()) as mock_logger:
        mock_logger.log.return_value = None
        yield mock_logger


class FakeClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings_factory():
    """Build Settings without touching log files or a local .env."""
    from newsrelay.config import Settings

    def build(**overrides) -> Settings:
        values = {
            "news_api_key": "news-key",
            "guardian_api_key": "guardian-key",
            "gemini_api_key": "gemini-key",
            "log_file_path": None,
            "error_log_file_path": None,
            "mongodb_uri": None,
            "_env_file": None,
        }
        values.update(overrides)
        return Settings(**values)

    return build

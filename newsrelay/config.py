import sys
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, field_validator
from typing import Optional, List, Union, Any

from urllib.parse import urlparse

from newsrelay.constants import (
    BULLETIN_ITEM_COUNT,
    BULLETIN_SOURCE_ARTICLES,
    DEFAULT_BULLETIN_CACHE_TTL_SECONDS,
    DEFAULT_CACHE_HARD_TTL_SECONDS,
    DEFAULT_CACHE_SWEEP_EVERY_READS,
    DEFAULT_CARDS_CACHE_TTL_SECONDS,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_NEWS_CACHE_TTL_SECONDS,
    DEFAULT_PROVIDER_TIMEOUT_SECONDS,
    DEFAULT_QUOTA_DAILY_MAX,
    DEFAULT_QUOTA_WINDOW_MAX,
    DEFAULT_QUOTA_WINDOW_SECONDS,
    DEFAULT_SUMMARY_CACHE_TTL_SECONDS,
    GEMINI_OPENAI_BASE_URL,
    GUARDIAN_BASE_URL,
    MAX_ARTICLES,
    NEWSAPI_BASE_URL,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Provider credentials; a provider without a key is not registered
    news_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("NEWS_API_KEY", "NEWSAPI_KEY")
    )
    guardian_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GUARDIAN_API_KEY", "GUARDIAN_KEY"),
    )
    gemini_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GEMINI_API_KEY")
    )
    gemini_model: str = Field(
        default=DEFAULT_GEMINI_MODEL, validation_alias=AliasChoices("GEMINI_MODEL")
    )

    news_api_base_url: str = Field(
        default=NEWSAPI_BASE_URL, validation_alias=AliasChoices("NEWS_API_BASE_URL")
    )
    guardian_base_url: str = Field(
        default=GUARDIAN_BASE_URL, validation_alias=AliasChoices("GUARDIAN_BASE_URL")
    )
    gemini_base_url: str = Field(
        default=GEMINI_OPENAI_BASE_URL,
        validation_alias=AliasChoices("GEMINI_BASE_URL"),
    )

    # Optional with defaults
    app_name: str = "NewsRelay"
    app_version: str = "1.0.0"
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    log_file_path: Optional[str] = "log.jsonl"
    error_log_file_path: Optional[str] = Field(
        default="error.jsonl", validation_alias=AliasChoices("ERROR_LOG_FILE_PATH")
    )
    log_pretty_console: bool = Field(
        default=False, validation_alias=AliasChoices("LOG_PRETTY_CONSOLE")
    )
    host: str = "127.0.0.1"
    port: int = Field(default=5000, validation_alias=AliasChoices("PORT"))
    reload: bool = True

    identity_header: str = Field(
        default="X-User-Id", validation_alias=AliasChoices("IDENTITY_HEADER")
    )

    enable_cors: bool = Field(
        default=False, validation_alias=AliasChoices("ENABLE_CORS")
    )
    cors_allow_origins: Union[List[str], str] = Field(
        default_factory=list, validation_alias=AliasChoices("CORS_ALLOW_ORIGINS")
    )
    cors_allow_methods: Union[List[str], str] = Field(
        default_factory=lambda: ["GET", "POST", "OPTIONS"],
        validation_alias=AliasChoices("CORS_ALLOW_METHODS"),
    )
    cors_allow_headers: Union[List[str], str] = Field(
        default_factory=lambda: ["Authorization", "Content-Type", "X-User-Id"],
        validation_alias=AliasChoices("CORS_ALLOW_HEADERS"),
    )

    restrict_base_url: bool = Field(
        default=True, validation_alias=AliasChoices("RESTRICT_BASE_URL")
    )
    allowed_base_url_hosts: Union[List[str], str] = Field(
        default_factory=lambda: [
            "newsapi.org",
            "content.guardianapis.com",
            "generativelanguage.googleapis.com",
        ],
        validation_alias=AliasChoices("ALLOWED_BASE_URL_HOSTS"),
    )

    redact_log_fields: Union[List[str], str] = Field(
        default_factory=lambda: [
            "news_api_key",
            "guardian_api_key",
            "gemini_api_key",
            "api-key",
            "x-api-key",
            "authorization",
        ],
        validation_alias=AliasChoices("REDACT_LOG_FIELDS"),
    )

    # Storage; in-memory when no URI is configured
    mongodb_uri: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MONGODB_URI", "MONGO_URI")
    )
    mongodb_database: str = Field(
        default="newsrelay", validation_alias=AliasChoices("MONGODB_DATABASE")
    )
    mongodb_cache_collection: str = Field(
        default="cache_entries",
        validation_alias=AliasChoices("MONGODB_CACHE_COLLECTION"),
    )
    mongodb_quota_collection: str = Field(
        default="quota_counters",
        validation_alias=AliasChoices("MONGODB_QUOTA_COLLECTION"),
    )

    # Cache TTLs (seconds)
    news_cache_ttl_s: int = Field(
        default=DEFAULT_NEWS_CACHE_TTL_SECONDS,
        validation_alias=AliasChoices("NEWS_CACHE_TTL_S"),
    )
    bulletin_cache_ttl_s: int = Field(
        default=DEFAULT_BULLETIN_CACHE_TTL_SECONDS,
        validation_alias=AliasChoices("BULLETIN_CACHE_TTL_S"),
    )
    cards_cache_ttl_s: int = Field(
        default=DEFAULT_CARDS_CACHE_TTL_SECONDS,
        validation_alias=AliasChoices("CARDS_CACHE_TTL_S"),
    )
    summary_cache_ttl_s: int = Field(
        default=DEFAULT_SUMMARY_CACHE_TTL_SECONDS,
        validation_alias=AliasChoices("SUMMARY_CACHE_TTL_S"),
    )
    cache_hard_ttl_s: int = Field(
        default=DEFAULT_CACHE_HARD_TTL_SECONDS,
        validation_alias=AliasChoices("CACHE_HARD_TTL_S"),
    )
    cache_sweep_every: int = Field(
        default=DEFAULT_CACHE_SWEEP_EVERY_READS,
        validation_alias=AliasChoices("CACHE_SWEEP_EVERY"),
    )

    # Per-identity quota
    quota_window_seconds: int = Field(
        default=DEFAULT_QUOTA_WINDOW_SECONDS,
        validation_alias=AliasChoices("QUOTA_WINDOW_SECONDS"),
    )
    quota_window_max: int = Field(
        default=DEFAULT_QUOTA_WINDOW_MAX,
        validation_alias=AliasChoices("QUOTA_WINDOW_MAX"),
    )
    quota_daily_max: int = Field(
        default=DEFAULT_QUOTA_DAILY_MAX,
        validation_alias=AliasChoices("QUOTA_DAILY_MAX"),
    )
    quota_timezone: str = Field(
        default="UTC", validation_alias=AliasChoices("QUOTA_TIMEZONE")
    )

    provider_timeout_s: float = Field(
        default=DEFAULT_PROVIDER_TIMEOUT_SECONDS,
        validation_alias=AliasChoices("PROVIDER_TIMEOUT_S"),
    )

    bulletin_item_count: int = Field(
        default=BULLETIN_ITEM_COUNT, validation_alias=AliasChoices("BULLETIN_ITEM_COUNT")
    )
    bulletin_source_articles: int = Field(
        default=BULLETIN_SOURCE_ARTICLES,
        validation_alias=AliasChoices("BULLETIN_SOURCE_ARTICLES"),
    )
    max_articles: int = Field(
        default=MAX_ARTICLES, validation_alias=AliasChoices("MAX_ARTICLES")
    )

    # Connection pool configuration
    pool_max_keepalive_connections: int = Field(
        default=20, validation_alias=AliasChoices("POOL_MAX_KEEPALIVE_CONNECTIONS")
    )
    pool_max_connections: int = Field(
        default=100, validation_alias=AliasChoices("POOL_MAX_CONNECTIONS")
    )
    pool_keepalive_expiry: int = Field(
        default=60, validation_alias=AliasChoices("POOL_KEEPALIVE_EXPIRY")
    )

    # HTTP timeout configuration
    http_connect_timeout: float = Field(
        default=5.0, validation_alias=AliasChoices("HTTP_CONNECT_TIMEOUT")
    )
    http_read_timeout: float = Field(
        default=15.0, validation_alias=AliasChoices("HTTP_READ_TIMEOUT")
    )
    http_write_timeout: float = Field(
        default=10.0, validation_alias=AliasChoices("HTTP_WRITE_TIMEOUT")
    )
    http_pool_timeout: float = Field(
        default=5.0, validation_alias=AliasChoices("HTTP_POOL_TIMEOUT")
    )

    @field_validator(
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        "allowed_base_url_hosts",
        "redact_log_fields",
    )
    @classmethod
    def parse_comma_separated(cls, v: Union[List[str], str]) -> List[str]:
        """Parse comma-separated string values into lists for configuration fields.

        Handles both string inputs (splitting by commas) and already-list inputs.
        Empty strings are converted to empty lists.

        Args:
            v: Input value which can be a string or list

        Returns:
            List of stripped, non-empty items
        """
        if isinstance(v, str):
            if v.strip() == "":
                return []
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    def __init__(self, **kwargs: Any) -> None:
        """Initialize settings object and perform validation.

        Calls parent constructor with provided keyword arguments, then validates
        cache lifetimes, quota limits and upstream URLs.

        Args:
            **kwargs: Keyword arguments for settings initialization

        Raises:
            SystemExit: If TTLs or limits are inconsistent or a base URL is rejected
        """
        super().__init__(**kwargs)
        self._validate_cache_and_quota()
        self._validate_security()

    def _validate_cache_and_quota(self) -> None:
        """Validate that TTLs and quota limits are usable."""
        errors = []

        soft_ttls = {
            "NEWS_CACHE_TTL_S": self.news_cache_ttl_s,
            "BULLETIN_CACHE_TTL_S": self.bulletin_cache_ttl_s,
            "CARDS_CACHE_TTL_S": self.cards_cache_ttl_s,
            "SUMMARY_CACHE_TTL_S": self.summary_cache_ttl_s,
        }
        for name, value in soft_ttls.items():
            if value <= 0:
                errors.append(f"{name} must be greater than zero.")
            elif value > self.cache_hard_ttl_s:
                errors.append(f"{name} must not exceed CACHE_HARD_TTL_S.")

        if self.quota_window_max < 1 or self.quota_daily_max < 1:
            errors.append("QUOTA_WINDOW_MAX and QUOTA_DAILY_MAX must be at least 1.")
        if self.quota_window_seconds <= 0:
            errors.append("QUOTA_WINDOW_SECONDS must be greater than zero.")
        if self.provider_timeout_s <= 0:
            errors.append("PROVIDER_TIMEOUT_S must be greater than zero.")

        if errors:
            error_message = "\n".join(errors)
            # Use logging instead of print to ensure proper error handling
            import logging

            logging.error(f"Configuration Error:\n{error_message}\n")
            sys.exit(1)

    def _validate_security(self) -> None:
        """Validates upstream base URLs when RESTRICT_BASE_URL is enabled.

        Checks that every provider base URL uses HTTPS and its host is in
        ALLOWED_BASE_URL_HOSTS. Exits with error message if validation fails.
        """
        errors = []
        if self.restrict_base_url:
            for name, url in (
                ("NEWS_API_BASE_URL", self.news_api_base_url),
                ("GUARDIAN_BASE_URL", self.guardian_base_url),
                ("GEMINI_BASE_URL", self.gemini_base_url),
            ):
                try:
                    parsed = urlparse(url)
                    if parsed.scheme.lower() != "https":
                        errors.append(
                            f"{name} must use https when RESTRICT_BASE_URL is enabled."
                        )
                    host = parsed.hostname or ""
                    if host not in set(self.allowed_base_url_hosts or []):
                        errors.append(f"{name} host is not in ALLOWED_BASE_URL_HOSTS.")
                except ValueError:
                    errors.append(f"{name} is invalid.")
        if errors:
            error_message = "\n".join(errors)
            # Use logging instead of print to ensure proper error handling
            import logging

            logging.error(f"Security Configuration Error:\n{error_message}\n")
            sys.exit(1)

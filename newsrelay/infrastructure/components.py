"""
Factory for wiring storage, providers and services from settings.
Shared by the HTTP app and the bulletin pre-generation script.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pymongo import AsyncMongoClient

from ..application.bulletins import BulletinService
from ..application.cache import CacheStore, InMemoryCacheStore
from ..application.chat import ChatService
from ..application.orchestrator import FetchOrchestrator
from ..application.quota import InMemoryQuotaTracker, QuotaLimits, QuotaTracker
from ..application.summaries import SummaryService
from ..config import Settings
from ..enums import ProviderName
from .persistence.mongo import MongoCacheStore, MongoQuotaTracker, create_client
from .providers import GeminiProvider, GuardianProvider, NewsAPIProvider
from .providers.base import ArticleProvider
from .providers.http_article_provider import HttpArticleProvider
from .providers.http_client_factory import HttpClientFactory


@dataclass
class StorageComponents:
    """Cache store and quota tracker, plus the Mongo client when one is used."""

    cache: CacheStore
    quota: QuotaTracker
    mongo_client: Optional[AsyncMongoClient] = None

    @property
    def backend(self) -> str:
        return "mongodb" if self.mongo_client is not None else "memory"


@dataclass
class ProviderComponents:
    """Configured upstream adapters; a provider without a key is absent."""

    articles: Dict[ProviderName, ArticleProvider] = field(default_factory=dict)
    generator: Optional[GeminiProvider] = None

    @property
    def names(self) -> List[str]:
        names = [p.value for p in self.articles]
        if self.generator is not None:
            names.append(self.generator.name.value)
        return names


@dataclass
class Components:
    storage: StorageComponents
    providers: ProviderComponents
    orchestrator: FetchOrchestrator
    bulletins: Optional[BulletinService] = None
    summaries: Optional[SummaryService] = None
    chat: Optional[ChatService] = None

    async def startup(self) -> None:
        if isinstance(self.storage.cache, MongoCacheStore):
            await self.storage.cache.ensure_indexes()

    async def aclose(self) -> None:
        for provider in self.providers.articles.values():
            if isinstance(provider, HttpArticleProvider):
                await provider.aclose()
        if self.providers.generator is not None:
            await self.providers.generator.aclose()
        if self.storage.mongo_client is not None:
            await self.storage.mongo_client.close()


class ComponentsFactory:
    """Factory for building the component graph from settings."""

    @staticmethod
    def create_storage(settings: Settings) -> StorageComponents:
        """
        Create the cache store and quota tracker.

        Uses MongoDB when ``MONGODB_URI`` is set, in-memory stores otherwise.
        In-memory stores are per process; run a single worker without Mongo.
        """
        if settings.mongodb_uri:
            client = create_client(settings)
            database = client[settings.mongodb_database]
            logging.info(f"Using MongoDB storage (database: {settings.mongodb_database})")
            return StorageComponents(
                cache=MongoCacheStore(
                    database[settings.mongodb_cache_collection],
                    hard_ttl_seconds=settings.cache_hard_ttl_s,
                ),
                quota=MongoQuotaTracker(
                    database[settings.mongodb_quota_collection],
                    window_seconds=settings.quota_window_seconds,
                    tz_name=settings.quota_timezone,
                ),
                mongo_client=client,
            )

        logging.info("Using in-memory storage")
        return StorageComponents(
            cache=InMemoryCacheStore(
                hard_ttl_seconds=settings.cache_hard_ttl_s,
                sweep_every=settings.cache_sweep_every,
            ),
            quota=InMemoryQuotaTracker(
                window_seconds=settings.quota_window_seconds,
                tz_name=settings.quota_timezone,
            ),
        )

    @staticmethod
    def create_providers(settings: Settings) -> ProviderComponents:
        providers = ProviderComponents()
        if settings.news_api_key:
            providers.articles[ProviderName.NEWSAPI] = NewsAPIProvider(
                HttpClientFactory.create_client(settings, settings.news_api_base_url),
                settings.news_api_key,
                max_articles=settings.max_articles,
            )
        if settings.guardian_api_key:
            providers.articles[ProviderName.GUARDIAN] = GuardianProvider(
                HttpClientFactory.create_client(settings, settings.guardian_base_url),
                settings.guardian_api_key,
                max_articles=settings.max_articles,
            )
        if settings.gemini_api_key:
            providers.generator = GeminiProvider.from_settings(settings)

        missing = [
            name
            for name, key in (
                ("NEWS_API_KEY", settings.news_api_key),
                ("GUARDIAN_API_KEY", settings.guardian_api_key),
                ("GEMINI_API_KEY", settings.gemini_api_key),
            )
            if not key
        ]
        if missing:
            logging.warning(f"Providers disabled, missing keys: {', '.join(missing)}")
        return providers

    @classmethod
    def create(
        cls,
        settings: Settings,
        storage: Optional[StorageComponents] = None,
        providers: Optional[ProviderComponents] = None,
    ) -> Components:
        if storage is None:
            storage = cls.create_storage(settings)
        if providers is None:
            providers = cls.create_providers(settings)

        orchestrator = FetchOrchestrator(
            cache=storage.cache,
            quota=storage.quota,
            limits=QuotaLimits(
                window_max=settings.quota_window_max,
                daily_max=settings.quota_daily_max,
            ),
            article_providers=providers.articles,
            provider_timeout_seconds=settings.provider_timeout_s,
            news_ttl_seconds=settings.news_cache_ttl_s,
        )
        components = Components(
            storage=storage, providers=providers, orchestrator=orchestrator
        )

        generator = providers.generator
        if generator is None:
            return components

        guardian = providers.articles.get(ProviderName.GUARDIAN)
        if guardian is not None:
            components.bulletins = BulletinService(
                orchestrator,
                guardian,
                generator,
                bulletin_ttl_seconds=settings.bulletin_cache_ttl_s,
                cards_ttl_seconds=settings.cards_cache_ttl_s,
                item_count=settings.bulletin_item_count,
                source_articles=settings.bulletin_source_articles,
                provider_timeout_seconds=settings.provider_timeout_s,
            )
        components.summaries = SummaryService(
            orchestrator, generator, ttl_seconds=settings.summary_cache_ttl_s
        )
        components.chat = ChatService(
            orchestrator, generator, model_name=getattr(generator, "model", None)
        )
        return components

from unittest.mock import MagicMock, patch

import pytest

from newsrelay.application.bulletins import BulletinService
from newsrelay.application.cache import InMemoryCacheStore
from newsrelay.application.chat import ChatService
from newsrelay.application.quota import InMemoryQuotaTracker
from newsrelay.application.summaries import SummaryService
from newsrelay.enums import ProviderName
from newsrelay.infrastructure.components import ComponentsFactory, ProviderComponents
from newsrelay.infrastructure.persistence.mongo import MongoCacheStore, MongoQuotaTracker
from newsrelay.infrastructure.providers import (
    GeminiProvider,
    GuardianProvider,
    NewsAPIProvider,
)


def test_create_storage_in_memory(settings_factory):
    storage = ComponentsFactory.create_storage(settings_factory())

    assert isinstance(storage.cache, InMemoryCacheStore)
    assert isinstance(storage.quota, InMemoryQuotaTracker)
    assert storage.backend == "memory"


def test_create_storage_mongodb(settings_factory):
    client = MagicMock()
    with patch(
        "newsrelay.infrastructure.components.create_client", return_value=client
    ):
        storage = ComponentsFactory.create_storage(
            settings_factory(mongodb_uri="mongodb://localhost:27017")
        )

    assert isinstance(storage.cache, MongoCacheStore)
    assert isinstance(storage.quota, MongoQuotaTracker)
    assert storage.backend == "mongodb"
    client.__getitem__.assert_called_once_with("newsrelay")


def test_create_providers_all_keys(settings_factory):
    providers = ComponentsFactory.create_providers(settings_factory())

    assert isinstance(providers.articles[ProviderName.NEWSAPI], NewsAPIProvider)
    assert isinstance(providers.articles[ProviderName.GUARDIAN], GuardianProvider)
    assert isinstance(providers.generator, GeminiProvider)
    assert providers.names == ["newsapi", "guardian", "gemini"]


def test_create_providers_skips_missing_keys(settings_factory):
    providers = ComponentsFactory.create_providers(
        settings_factory(news_api_key=None, gemini_api_key=None)
    )

    assert list(providers.articles) == [ProviderName.GUARDIAN]
    assert providers.generator is None


@pytest.mark.parametrize(
    "articles, bulletins",
    [({ProviderName.GUARDIAN: MagicMock()}, True), ({ProviderName.NEWSAPI: MagicMock()}, False)],
)
def test_services_follow_configured_providers(settings_factory, articles, bulletins):
    generator = MagicMock(model="gemini-test")
    components = ComponentsFactory.create(
        settings_factory(),
        storage=ComponentsFactory.create_storage(settings_factory()),
        providers=ProviderComponents(articles=articles, generator=generator),
    )

    assert isinstance(components.summaries, SummaryService)
    assert isinstance(components.chat, ChatService)
    assert isinstance(components.bulletins, BulletinService) is bulletins


def test_no_generator_means_no_generated_services(settings_factory):
    components = ComponentsFactory.create(
        settings_factory(),
        storage=ComponentsFactory.create_storage(settings_factory()),
        providers=ProviderComponents(articles={}),
    )

    assert components.bulletins is None
    assert components.summaries is None
    assert components.chat is None
    assert components.orchestrator.limits.window_max >= 1

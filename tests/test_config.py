"""Tests for settings parsing and validation."""

import pytest


class TestSettings:
    def test_comma_separated_lists(self, settings_factory):
        settings = settings_factory(cors_allow_origins="https://a.example, https://b.example,")
        assert settings.cors_allow_origins == ["https://a.example", "https://b.example"]

    def test_empty_list_string(self, settings_factory):
        assert settings_factory(cors_allow_origins="  ").cors_allow_origins == []

    def test_environment_aliases(self, monkeypatch, settings_factory):
        monkeypatch.setenv("QUOTA_WINDOW_MAX", "7")
        monkeypatch.setenv("IDENTITY_HEADER", "X-Auth-Subject")
        settings = settings_factory()
        assert settings.quota_window_max == 7
        assert settings.identity_header == "X-Auth-Subject"

    def test_soft_ttl_above_hard_ttl_exits(self, settings_factory):
        with pytest.raises(SystemExit):
            settings_factory(news_cache_ttl_s=7200, cache_hard_ttl_s=3600)

    @pytest.mark.parametrize(
        "overrides",
        [{"quota_window_max": 0}, {"quota_window_seconds": 0}, {"provider_timeout_s": 0}],
    )
    def test_invalid_limits_exit(self, settings_factory, overrides):
        with pytest.raises(SystemExit):
            settings_factory(**overrides)

    def test_plain_http_base_url_rejected(self, settings_factory):
        with pytest.raises(SystemExit):
            settings_factory(news_api_base_url="http://newsapi.org/v2")

    def test_unknown_host_rejected(self, settings_factory):
        with pytest.raises(SystemExit):
            settings_factory(guardian_base_url="https://guardian.example.com")

    def test_restriction_can_be_disabled(self, settings_factory):
        settings = settings_factory(
            restrict_base_url=False, news_api_base_url="http://localhost:8080/v2"
        )
        assert settings.news_api_base_url == "http://localhost:8080/v2"

"""Tests for settings defaults and environment overrides."""

from coin_proxy.config import Settings


class TestSettings:
    def test_defaults_match_service_constants(self, monkeypatch):
        monkeypatch.delenv("PORT", raising=False)
        settings = Settings(_env_file=None)

        assert settings.port == 5000
        assert settings.cache_ttl_seconds == 300
        assert settings.pacing_delay_seconds == 1.0
        assert settings.retry_base_delay_seconds == 3.0
        assert settings.max_attempts == 3
        assert settings.client_rate_limit == 10
        assert settings.client_rate_window_seconds == 60
        assert settings.upstream_base_url == "https://api.coingecko.com/api/v3"

    def test_port_from_environment(self, monkeypatch):
        monkeypatch.setenv("PORT", "8081")

        assert Settings(_env_file=None).port == 8081

    def test_cors_origins_parsing(self):
        assert Settings(_env_file=None, cors_origins_raw="*").cors_origins == ["*"]
        assert Settings(_env_file=None, cors_origins_raw="http://a, http://b").cors_origins == [
            "http://a",
            "http://b",
        ]
        assert Settings(_env_file=None, cors_origins_raw="http://a|http://b").cors_origins == [
            "http://a",
            "http://b",
        ]
        assert Settings(_env_file=None, cors_origins_raw='["http://a"]').cors_origins == ["http://a"]

import pytest

from nicecommerce.config import Settings


class TestSettingsFromEnv:
    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "KAFKA_ENABLED", "CORS_ALLOWED_ORIGINS", "LOG_LEVEL",
                     "PAYMENT_MAX_ATTEMPTS", "IDEMPOTENCY_TTL_SECONDS"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.database_url.endswith("/nicecommerce")
        assert settings.kafka_enabled is True
        assert settings.cors_allowed_origins == ["http://localhost:3000"]
        assert settings.idempotency_ttl_seconds == 86400
        assert settings.payment.max_attempts == 3
        assert settings.payment.breaker_fail_max == 5

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("KAFKA_ENABLED", "false")
        monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://shop.example.com, https://admin.example.com")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("PAYMENT_TIMEOUT_SECONDS", "2.5")

        settings = Settings.from_env()

        assert settings.kafka_enabled is False
        assert settings.cors_allowed_origins == ["https://shop.example.com", "https://admin.example.com"]
        assert settings.log_level == "DEBUG"
        assert settings.payment.timeout_seconds == 2.5

    def test_bad_number_fails_fast(self, monkeypatch):
        monkeypatch.setenv("DB_POOL_MAX_SIZE", "lots")
        with pytest.raises(ValueError):
            Settings.from_env()

"""Tests for configuration loading."""

from config import DEFAULT_JWT_SECRET, Settings


class TestSettingsFromEnv:
    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "DATABASE_NAME", "JWT_SECRET", "JWT_ALG",
                     "ACCESS_TOKEN_EXPIRE_MINUTES", "CORS_ORIGINS", "LOG_LEVEL", "PORT"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert settings.jwt_secret == DEFAULT_JWT_SECRET
        assert settings.cors_origins == ["*"]
        assert settings.port == 8000

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "mongodb://db:27017")
        monkeypatch.setenv("DATABASE_NAME", "journal")
        monkeypatch.setenv("JWT_SECRET", "s3cret")
        monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")
        monkeypatch.setenv("PORT", "9000")
        settings = Settings.from_env()
        assert settings.database_url == "mongodb://db:27017"
        assert settings.database_name == "journal"
        assert settings.jwt_secret == "s3cret"
        assert settings.access_token_expire_minutes == 30
        assert settings.cors_origins == ["https://a.example", "https://b.example"]
        assert settings.port == 9000

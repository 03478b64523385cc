from telecare.core.config import Settings


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("CHAT_CACHE_TTL_SECONDS", raising=False)

    settings = Settings(_env_file=None)

    assert settings.redis_url is None
    assert settings.chat_cache_ttl_seconds == 300
    assert settings.call_room_prefix == "vc-"


def test_cors_origins_accept_comma_separated_env(monkeypatch):
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://clinic.example, https://portal.example")

    settings = Settings(_env_file=None)

    assert settings.cors_allow_origins == ["https://clinic.example", "https://portal.example"]

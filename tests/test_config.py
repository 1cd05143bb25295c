from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from marketcall.config import AppConfig, load_config

CONFIG_VARS = (
    "DATABASE_URL",
    "AUTH_SECRET_KEY",
    "AUTH_TOKEN_EXPIRY_HOURS",
    "INTERNAL_API_TOKEN",
    "QUOTE_TIMEOUT_SECONDS",
    "QUOTE_CACHE_TTL_SECONDS",
    "RANKING_LIMIT",
    "AUTO_CONFIRM_ON_RANKING",
    "CORS_ORIGINS",
)


def _clean_env(**overrides: str) -> dict[str, str]:
    env = {k: v for k, v in os.environ.items() if k not in CONFIG_VARS}
    env.update(overrides)
    return env


class TestLoadConfig:
    def test_loads_from_env(self) -> None:
        env = _clean_env(
            DATABASE_URL="postgresql://u:p@host:5432/db",
            AUTH_SECRET_KEY="s3cret",
            AUTH_TOKEN_EXPIRY_HOURS="24",
            QUOTE_TIMEOUT_SECONDS="2.5",
            QUOTE_CACHE_TTL_SECONDS="10",
            RANKING_LIMIT="20",
            AUTO_CONFIRM_ON_RANKING="false",
            CORS_ORIGINS="https://a.example, https://b.example",
        )
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config()

        assert cfg.db_dsn == "postgresql://u:p@host:5432/db"
        assert cfg.auth_secret_key == "s3cret"
        assert cfg.auth_token_expiry_hours == 24
        assert cfg.quote_timeout_seconds == 2.5
        assert cfg.quote_cache_ttl_seconds == 10
        assert cfg.ranking_limit == 20
        assert cfg.auto_confirm_on_ranking is False
        assert cfg.cors_origins == ("https://a.example", "https://b.example")

    def test_defaults(self) -> None:
        with patch.dict(os.environ, _clean_env(), clear=True):
            cfg = load_config()

        assert cfg.db_dsn == ""
        assert cfg.auth_secret_key == ""
        assert cfg.auth_token_expiry_hours == 168
        assert cfg.quote_timeout_seconds == 30.0
        assert cfg.quote_cache_ttl_seconds == 60
        assert cfg.ranking_limit == 50
        assert cfg.auto_confirm_on_ranking is True
        assert cfg.cors_origins == ("http://localhost:3000",)

    def test_app_config_frozen(self) -> None:
        cfg = AppConfig(db_dsn="")
        with pytest.raises(AttributeError):
            cfg.db_dsn = "x"  # type: ignore[misc]

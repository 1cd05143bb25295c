from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class AppConfig:
    db_dsn: str
    auth_secret_key: str = ""
    auth_token_expiry_hours: int = 168
    internal_api_token: str = ""
    quote_timeout_seconds: float = 30.0
    quote_cache_ttl_seconds: int = 60
    ranking_limit: int = 50
    auto_confirm_on_ranking: bool = True
    cors_origins: tuple[str, ...] = ("http://localhost:3000",)


def load_config() -> AppConfig:
    """Load application config from environment variables.

    Loads .env file if present in the current directory.
    """
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    origins = os.environ.get("CORS_ORIGINS", "http://localhost:3000")

    return AppConfig(
        db_dsn=os.environ.get("DATABASE_URL", ""),
        auth_secret_key=os.environ.get("AUTH_SECRET_KEY", ""),
        auth_token_expiry_hours=int(os.environ.get("AUTH_TOKEN_EXPIRY_HOURS", "168")),
        internal_api_token=os.environ.get("INTERNAL_API_TOKEN", ""),
        quote_timeout_seconds=float(os.environ.get("QUOTE_TIMEOUT_SECONDS", "30")),
        quote_cache_ttl_seconds=int(os.environ.get("QUOTE_CACHE_TTL_SECONDS", "60")),
        ranking_limit=int(os.environ.get("RANKING_LIMIT", "50")),
        auto_confirm_on_ranking=_env_bool("AUTO_CONFIRM_ON_RANKING", "true"),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )

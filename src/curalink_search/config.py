"""
Environment-driven settings.

Environment Variables:
    CURALINK_DATABASE_URL: Local store URL (default: sqlite:///curalink.db)
    AACT_DATABASE_URL: AACT PostgreSQL URL; unset disables the registry fallback
    NCBI_EMAIL: Email sent to NCBI E-utilities
    NCBI_API_KEY: Optional NCBI key (10 req/s instead of 3)
    SERPAPI_KEY: SerpAPI key; unset leaves Google Scholar unavailable
    CURALINK_SOURCE_TIMEOUT: Per-source timeout in seconds (default: 8)
    CURALINK_CACHE_MAX_ENTRIES: Response cache capacity (default: 2048)
    CURALINK_HOST: Server host (default: 0.0.0.0)
    CURALINK_PORT: Server port (default: 8000)
    CURALINK_LOG_LEVEL: Logging level (default: INFO)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from curalink_search.shared.exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///curalink.db"
DEFAULT_EMAIL = "curalink-search@example.com"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _optional(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name, "").strip()
    return value or None


def _number(env: Mapping[str, str], name: str, default: float, cast: type) -> Any:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    aact_database_url: str | None = None
    ncbi_email: str = DEFAULT_EMAIL
    ncbi_api_key: str | None = None
    serpapi_key: str | None = None
    source_timeout: float = 8.0
    cache_max_entries: int = 2048
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """
        Read settings from the environment.

        Raises:
            ConfigurationError: A variable is set to an unusable value
        """
        env = os.environ if env is None else env

        log_level = env.get("CURALINK_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        if log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"CURALINK_LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")

        return cls(
            database_url=_optional(env, "CURALINK_DATABASE_URL") or DEFAULT_DATABASE_URL,
            aact_database_url=_optional(env, "AACT_DATABASE_URL"),
            ncbi_email=_optional(env, "NCBI_EMAIL") or DEFAULT_EMAIL,
            ncbi_api_key=_optional(env, "NCBI_API_KEY"),
            serpapi_key=_optional(env, "SERPAPI_KEY"),
            source_timeout=_number(env, "CURALINK_SOURCE_TIMEOUT", 8.0, float),
            cache_max_entries=_number(env, "CURALINK_CACHE_MAX_ENTRIES", 2048, int),
            host=_optional(env, "CURALINK_HOST") or "0.0.0.0",
            port=_number(env, "CURALINK_PORT", 8000, int),
            log_level=log_level,
        )

    def to_config(self) -> dict[str, Any]:
        """Plain dict for ``ApplicationContainer.config.from_dict``."""
        return asdict(self)

    def log_summary(self, logger: logging.Logger) -> None:
        logger.info(f"  Local store: {self.database_url}")
        logger.info(f"  AACT fallback: {'Set' if self.aact_database_url else 'Not set'}")
        logger.info(f"  NCBI API Key: {'Set' if self.ncbi_api_key else 'Not set'}")
        logger.info(f"  SerpAPI Key: {'Set' if self.serpapi_key else 'Not set'}")
        logger.info(f"  Source timeout: {self.source_timeout}s")

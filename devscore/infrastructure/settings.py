"""Environment-driven configuration.

Entry scripts load ``.env`` (or ``env``) with python-dotenv before calling
``Settings.from_env()``.
"""
import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Settings:
    github_token: Optional[str] = None
    github_api_base_url: str = "https://api.github.com"
    github_graphql_url: str = "https://api.github.com/graphql"
    github_api_version: str = "2022-11-28"
    request_timeout: float = 30.0
    max_rate_limit_wait: float = 3600.0
    redis_url: str = "redis://localhost:6379/0"
    cache_prefix: str = "devscore"
    cache_default_ttl: int = 300
    cache_error_log_interval: float = 30.0
    publish_max_attempts: int = 3
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> 'Settings':
        """Build settings from environment variables, falling back to defaults."""
        return cls(
            github_token=os.getenv("GITHUB_TOKEN") or None,
            github_api_base_url=os.getenv("GITHUB_API_BASE_URL", cls.github_api_base_url).rstrip("/"),
            github_graphql_url=os.getenv("GITHUB_GRAPHQL_URL", cls.github_graphql_url),
            github_api_version=os.getenv("GITHUB_API_VERSION", cls.github_api_version),
            request_timeout=float(os.getenv("GITHUB_REQUEST_TIMEOUT", cls.request_timeout)),
            max_rate_limit_wait=float(os.getenv("GITHUB_MAX_RATE_LIMIT_WAIT", cls.max_rate_limit_wait)),
            redis_url=os.getenv("REDIS_URL", cls.redis_url),
            cache_prefix=os.getenv("CACHE_PREFIX", cls.cache_prefix),
            cache_default_ttl=int(os.getenv("CACHE_TTL", cls.cache_default_ttl)),
            cache_error_log_interval=float(
                os.getenv("CACHE_ERROR_LOG_INTERVAL", cls.cache_error_log_interval)
            ),
            publish_max_attempts=int(os.getenv("PUBLISH_MAX_ATTEMPTS", cls.publish_max_attempts)),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper()
        )

"""Service configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings


class DtekConfig(BaseSettings):
    """DTEK client configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Upstream identity (DTEK pages sit behind Incapsula, a plain client UA gets challenged)
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36"
        ),
        description="User-Agent sent with every upstream request",
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for a single upstream HTTP call",
    )

    # Cache lifetimes
    session_ttl_seconds: float = Field(
        default=3600.0,
        description="How long a parsed directory + cookies + CSRF token stay valid",
    )
    status_cache_ttl_seconds: float = Field(
        default=600.0,
        description="How long a (location, street) status answer is reused",
    )
    status_cache_max_entries: int = Field(
        default=1024,
        description="Upper bound on cached status answers per region",
    )

    # Boundary retry
    retry_delays: list[float] = Field(
        default=[0.5, 1.0, 2.0],
        description="Sleep before each retry in seconds; length is the retry count",
    )

    # Optional read-through store populated by scripts/refresh_region_data.py
    redis_url: str | None = Field(
        default=None,
        description="Redis URL (redis:// or rediss://) holding precomputed region data",
    )
    kv_cache_ttl_seconds: int = Field(
        default=86400,
        description="Expiry applied by the refresh script when writing region data",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Singleton pattern
_config: DtekConfig | None = None


def get_config() -> DtekConfig:
    """Get the configuration singleton.

    Returns:
        DtekConfig: Configuration instance
    """
    global _config
    if _config is None:
        _config = DtekConfig()
    return _config

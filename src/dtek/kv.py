"""Read-through store for precomputed region data (Redis).

scripts/refresh_region_data.py writes one JSON entry per region; services
configured with a store build their session from it instead of scraping.

Keys:
    dtek:data:{region}   CachedRegion JSON, expires after kv_cache_ttl_seconds
"""

from pydantic import ValidationError as PydanticValidationError
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from src.dtek.errors import KvError, describe_exception
from src.dtek.logging import get_logger
from src.dtek.models import CachedRegion
from src.dtek.result import Err, Ok, Result

log = get_logger(__name__)


def region_key(region: str) -> str:
    return f"dtek:data:{region}"


class RegionStore:
    """Typed access to cached region entries.

    Args:
        redis: An async Redis client (decode_responses=True).
    """

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    @classmethod
    def from_url(cls, url: str) -> "RegionStore":
        if not url.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return cls(aioredis.from_url(url, decode_responses=True, socket_connect_timeout=5))

    async def get_region(self, region: str) -> Result[CachedRegion, KvError]:
        key = region_key(region)
        try:
            raw = await self._redis.get(key)
        except RedisError as e:
            log.warning("kv_read_failed", key=key, error=str(e))
            return Err(
                KvError(
                    message=f"Failed to read KV data for {region}",
                    key=key,
                    cause=describe_exception(e),
                )
            )

        if not raw:
            return Err(KvError(message=f"No cached data found for region: {region}", key=key))

        try:
            return Ok(CachedRegion.model_validate_json(raw))
        except PydanticValidationError as e:
            log.error("kv_entry_invalid", key=key, errors=e.error_count())
            return Err(
                KvError(
                    message=f"Cached data for {region} is malformed",
                    key=key,
                    cause=describe_exception(e),
                )
            )

    async def put_region(self, data: CachedRegion, ttl_seconds: int) -> None:
        """Write a region entry. Raises RedisError on failure (script use only)."""
        key = region_key(data.region)
        await self._redis.set(key, data.model_dump_json(), ex=ttl_seconds)
        log.info("kv_region_written", key=key, ttl_seconds=ttl_seconds)

    async def aclose(self) -> None:
        await self._redis.aclose()

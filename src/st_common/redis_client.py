"""Redis client factory — background job leases only.

NOT used for balances, confirmations or claims (those go through PostgreSQL).
A lease only keeps several instances from running the same sweep at the same
moment; every sweep still claims its rows with conditional UPDATEs.
"""

import uuid

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.close()
        _redis_pool = None


async def acquire_lease(redis: aioredis.Redis, name: str, ttl_seconds: int) -> str | None:
    """SET NX EX on `lease:{name}`. Returns the lease token, or None if held elsewhere."""
    token = uuid.uuid4().hex
    acquired = await redis.set(f"lease:{name}", token, nx=True, ex=ttl_seconds)
    return token if acquired else None


async def release_lease(redis: aioredis.Redis, name: str, token: str) -> None:
    """Delete the lease only if this instance still owns it."""
    await redis.eval(_RELEASE_SCRIPT, 1, f"lease:{name}", token)

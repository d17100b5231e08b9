import uuid
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

import redis
from redis.exceptions import ConnectionError, RedisError

from backend.app.infrastructure.errors import ConflictError
from backend.app.logging_config import get_logger

logger = get_logger("app.infrastructure.redis")

LOCK_KEY_PREFIX = "locks:"

# Atomic check-and-delete so a lock is only released by its owner
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


def check_redis_connectivity(redis_url: str) -> bool:
    try:
        client = redis.from_url(redis_url)
        client.ping()
        client.close()
        logger.info("Redis connectivity check passed")
        return True
    except ConnectionError as e:
        logger.error(f"Redis connectivity check failed: {e}")
        return False
    except RedisError as e:
        logger.error(f"Redis error during connectivity check: {e}")
        return False
    except Exception as e:
        logger.error(f"Unexpected error during Redis connectivity check: {e}")
        return False


class LockClient(Protocol):
    def acquire_lock(self, name: str, ttl_seconds: int = 30) -> Optional[str]: ...

    def release_lock(self, name: str, token: str) -> bool: ...


def letter_lock_name(letter_id: uuid.UUID) -> str:
    return f"letter-generation:{letter_id}"


class RedisClient:
    """Redis client for per-letter write locks."""

    def __init__(self, redis_url: str):
        self._client = redis.from_url(redis_url, decode_responses=True)

    def close(self) -> None:
        self._client.close()

    def acquire_lock(self, name: str, ttl_seconds: int = 30) -> Optional[str]:
        """
        Acquire a distributed lock.
        Returns a token if successful, None if lock is held.
        """
        token = str(uuid.uuid4())
        key = f"{LOCK_KEY_PREFIX}{name}"
        if self._client.set(key, token, nx=True, ex=ttl_seconds):
            return token
        return None

    def release_lock(self, name: str, token: str) -> bool:
        """Release a lock if we own it."""
        key = f"{LOCK_KEY_PREFIX}{name}"
        result = self._client.eval(RELEASE_LOCK_SCRIPT, 1, key, token)
        return result == 1


@contextmanager
def hold_lock(client: LockClient, name: str, ttl_seconds: int) -> Iterator[Optional[str]]:
    """
    Hold `name` for the duration of the block.

    Yields the lock token, or None when another holder owns the lock; the
    caller decides how to report the conflict. Release errors are logged, the
    TTL reclaims the key.
    """
    token = client.acquire_lock(name, ttl_seconds=ttl_seconds)
    try:
        yield token
    finally:
        if token is not None:
            try:
                client.release_lock(name, token)
            except RedisError as e:
                logger.warning(f"Failed to release lock {name}: {e}")


@contextmanager
def letter_write_lock(client: LockClient, letter_id: uuid.UUID, ttl_seconds: int) -> Iterator[str]:
    """Exclusive per-letter lock. Raises ConflictError when it is already held."""
    with hold_lock(client, letter_lock_name(letter_id), ttl_seconds) as token:
        if token is None:
            raise ConflictError(letter_id, "another operation is in progress for this letter")
        yield token


_redis_client: Optional[RedisClient] = None


def get_redis_client(redis_url: str) -> RedisClient:
    """Get or create the Redis client singleton."""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient(redis_url)
    return _redis_client


def close_redis_client() -> None:
    """Close the Redis client."""
    global _redis_client
    if _redis_client:
        _redis_client.close()
        _redis_client = None

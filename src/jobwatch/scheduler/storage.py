"""Redis storage for polling snapshots.

Hosts that keep job history across restarts can mirror the scheduler's state
here and restart polling from it later. Only PollingSnapshot records are
written; credentials never pass through this module.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis

from ..models.polling import PollingSnapshot

logger = logging.getLogger(__name__)

# Default TTL for snapshot records (24 hours)
DEFAULT_SNAPSHOT_TTL = 86400


async def create_redis_client(redis_url: str) -> redis.Redis:
    """Connect to Redis with a pooled client and verify the connection."""
    try:
        pool = redis.ConnectionPool.from_url(
            redis_url,
            max_connections=10,
            retry_on_timeout=True,
            retry_on_error=[redis.BusyLoadingError, redis.ConnectionError],
            health_check_interval=30,
            decode_responses=True,
        )
        client = redis.Redis(connection_pool=pool)
        await client.ping()
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise

    logger.info("Connected to Redis for polling snapshots")
    return client


class SnapshotStorage:
    """Redis storage for polling snapshots with TTL-based expiration.

    Key patterns:
    - polling:snapshot:{job_id} - Individual snapshot record
    - polling:snapshots - Set of job ids with a stored snapshot
    """

    INDEX_KEY = "polling:snapshots"

    def __init__(self, redis_client: redis.Redis, ttl: int = DEFAULT_SNAPSHOT_TTL) -> None:
        """Initialize snapshot storage.

        Args:
            redis_client: Async Redis client instance.
            ttl: Time-to-live for snapshot records in seconds (default: 24 hours).
        """
        self.redis = redis_client
        self.ttl = ttl

    def _get_snapshot_key(self, job_id: str) -> str:
        return f"polling:snapshot:{job_id}"

    async def save(self, snapshot: PollingSnapshot) -> None:
        """Store one snapshot and index it."""
        await self.redis.setex(
            self._get_snapshot_key(snapshot.job_id),
            self.ttl,
            snapshot.model_dump_json(),
        )
        await self.redis.sadd(self.INDEX_KEY, snapshot.job_id)
        await self.redis.expire(self.INDEX_KEY, self.ttl)

        logger.debug(f"Stored polling snapshot for job {snapshot.job_id}")

    async def save_all(self, snapshots: list[PollingSnapshot]) -> int:
        """Store several snapshots.

        Returns:
            Number of snapshots written.
        """
        for snapshot in snapshots:
            await self.save(snapshot)
        return len(snapshots)

    async def load(self, job_id: str) -> PollingSnapshot | None:
        data = await self.redis.get(self._get_snapshot_key(job_id))
        if data is None:
            return None
        try:
            return PollingSnapshot.model_validate_json(data)
        except Exception as e:
            logger.error(f"Failed to parse polling snapshot for {job_id}: {e}")
            return None

    async def load_all(self) -> list[PollingSnapshot]:
        """Load every indexed snapshot that has not expired."""
        job_ids = await self.redis.smembers(self.INDEX_KEY)
        snapshots: list[PollingSnapshot] = []
        for job_id in sorted(job_ids or []):
            # Handle both bytes and string from Redis
            if isinstance(job_id, bytes):
                job_id = job_id.decode("utf-8")
            snapshot = await self.load(job_id)
            if snapshot is not None:
                snapshots.append(snapshot)
            else:
                await self.redis.srem(self.INDEX_KEY, job_id)
        return snapshots

    async def delete(self, job_id: str) -> bool:
        """Delete the snapshot for a job; unknown ids are ignored."""
        deleted = await self.redis.delete(self._get_snapshot_key(job_id))
        await self.redis.srem(self.INDEX_KEY, job_id)
        return bool(deleted)

    async def clear(self) -> int:
        """Delete every stored snapshot.

        Returns:
            Number of keys deleted.
        """
        job_ids = await self.redis.smembers(self.INDEX_KEY)
        keys = [self.INDEX_KEY]
        for job_id in job_ids or []:
            if isinstance(job_id, bytes):
                job_id = job_id.decode("utf-8")
            keys.append(self._get_snapshot_key(job_id))

        deleted = await self.redis.delete(*keys)
        logger.info(f"Deleted {deleted} polling snapshot keys")
        return deleted

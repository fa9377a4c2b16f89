"""
Metadata store access layer.

Thin wrapper over the shared Redis database holding mirror records, the
ordered mirror list, file associations and the notification channels the
redirector daemon listens on.
"""
from contextlib import asynccontextmanager
from functools import wraps
from typing import AsyncIterator, Dict, List, Set

import redis.asyncio as redis
from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError, WatchError
import structlog

from mirroradmin.core.exceptions import StoreError

logger = structlog.get_logger(__name__)

# Notification channels
MIRROR_UPDATE = "_mirrorbits_mirror_update"
MIRROR_FILE_UPDATE = "_mirrorbits_mirror_file_update"

MIRRORS_KEY = "MIRRORS"
SOURCE_FILES_KEY = "FILES"


def mirror_key(identifier: str) -> str:
    return f"MIRROR_{identifier}"


def mirror_files_key(identifier: str) -> str:
    return f"MIRROR_{identifier}_FILES"


def mirror_files_tmp_key(identifier: str) -> str:
    return f"MIRROR_{identifier}_FILES_TMP"


def handled_files_key(identifier: str) -> str:
    return f"HANDLEDFILES_{identifier}"


def file_info_key(identifier: str, filename: str) -> str:
    return f"FILEINFO_{identifier}_{filename}"


def file_mirrors_key(filename: str) -> str:
    return f"FILEMIRRORS_{filename}"


def _store_errors(func):
    """Translate Redis failures into StoreError."""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except RedisError as e:
            logger.error("Redis command failed", operation=func.__name__, error=str(e))
            raise StoreError(f"Redis: {e}") from e
    return wrapper


class MetadataStore:
    """Access to mirror records and file associations in Redis."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @_store_errors
    async def mirror_ids(self) -> List[str]:
        """Return every known mirror identifier, in list order."""
        return await self.client.lrange(MIRRORS_KEY, 0, -1)

    @_store_errors
    async def mirror_exists(self, identifier: str) -> bool:
        return await self.client.exists(mirror_key(identifier)) > 0

    @_store_errors
    async def get_mirror_fields(self, identifier: str) -> Dict[str, str]:
        """Return the field map of a mirror, empty if it does not exist."""
        return await self.client.hgetall(mirror_key(identifier))

    @_store_errors
    async def get_many_mirror_fields(self, identifiers: List[str]) -> List[Dict[str, str]]:
        """Fetch several mirror field maps in a single MULTI/EXEC."""
        if not identifiers:
            return []
        async with self.client.pipeline(transaction=True) as pipe:
            for identifier in identifiers:
                pipe.hgetall(mirror_key(identifier))
            return await pipe.execute()

    @_store_errors
    async def mirror_files(self, identifier: str) -> Set[str]:
        """Files the scanner found on a mirror."""
        return await self.client.smembers(mirror_files_key(identifier))

    @_store_errors
    async def file_claimants(self, filename: str) -> Set[str]:
        """Mirrors known to host a file."""
        return await self.client.smembers(file_mirrors_key(filename))

    @_store_errors
    async def source_indexed(self) -> bool:
        """Whether the local repository has been indexed by a refresh."""
        return await self.client.exists(SOURCE_FILES_KEY) > 0

    @_store_errors
    async def publish(self, channel: str, message: str) -> None:
        await self.client.publish(channel, message)

    @asynccontextmanager
    async def transaction(self, *watch_keys: str) -> AsyncIterator[Pipeline]:
        """Yield a transactional pipeline watching the given keys.

        Reads issued before ``pipe.multi()`` run immediately; commands queued
        after it are applied atomically by ``pipe.execute()``. The whole
        batch is discarded if a watched key changed in the meantime.
        """
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                if watch_keys:
                    await pipe.watch(*watch_keys)
                yield pipe
        except WatchError as e:
            logger.error("Transaction aborted", watched=list(watch_keys))
            raise StoreError("Transaction aborted: a concurrent update modified the mirror") from e
        except RedisError as e:
            logger.error("Transaction failed", watched=list(watch_keys), error=str(e))
            raise StoreError(f"Redis: {e}") from e

"""
Mirror repository.

Every mutation is applied as a single Redis transaction and announced on the
mirror update channel so a running redirector reloads the record.
"""
import time
from dataclasses import dataclass
from typing import List, Optional

import structlog

from mirroradmin.core.exceptions import AlreadyExists, NoMatch
from mirroradmin.core.store import (
    MIRROR_FILE_UPDATE,
    MIRROR_UPDATE,
    MIRRORS_KEY,
    MetadataStore,
    file_info_key,
    file_mirrors_key,
    handled_files_key,
    mirror_files_key,
    mirror_files_tmp_key,
    mirror_key,
)
from mirroradmin.models.mirror import (
    EDITABLE_FIELDS,
    Mirror,
    mirror_from_fields,
    mirror_to_fields,
)

logger = structlog.get_logger(__name__)


@dataclass
class MirrorFilter:
    """Listing predicates, combined with a logical AND."""
    enabled: bool = False
    disabled: bool = False
    down: bool = False

    def accepts(self, mirror: Mirror) -> bool:
        if self.enabled and not mirror.enabled:
            return False
        if self.disabled and mirror.enabled:
            return False
        if self.down and mirror.up:
            return False
        return True


class MirrorRepository:
    """CRUD operations over mirror records and their file associations."""

    def __init__(self, store: MetadataStore):
        self.store = store

    async def get(self, identifier: str) -> Mirror:
        fields = await self.store.get_mirror_fields(identifier)
        if not fields:
            raise NoMatch(identifier)
        return mirror_from_fields(fields, identifier)

    async def list_mirrors(self, mirror_filter: Optional[MirrorFilter] = None) -> List[Mirror]:
        """Return full mirror records in list order."""
        mirror_filter = mirror_filter or MirrorFilter()
        identifiers = await self.store.mirror_ids()
        records = await self.store.get_many_mirror_fields(identifiers)

        mirrors = []
        for identifier, fields in zip(identifiers, records):
            if not fields:
                # Being added or removed by another client
                continue
            mirror = mirror_from_fields(fields, identifier)
            if mirror_filter.accepts(mirror):
                mirrors.append(mirror)
        return mirrors

    async def create(self, mirror: Mirror) -> Mirror:
        """Register a new mirror. New mirrors always start disabled and down."""
        mirror = mirror.model_copy(update={
            "enabled": False,
            "up": False,
            "state_since": int(time.time()),
        })
        key = mirror_key(mirror.id)

        async with self.store.transaction(key) as pipe:
            if await pipe.exists(key):
                raise AlreadyExists(mirror.id)
            pipe.multi()
            pipe.hset(key, mapping=mirror_to_fields(mirror))
            # Drop a leftover entry of a half-created mirror
            pipe.lrem(MIRRORS_KEY, 0, mirror.id)
            pipe.rpush(MIRRORS_KEY, mirror.id)
            pipe.publish(MIRROR_UPDATE, mirror.id)
            await pipe.execute()

        logger.info("Mirror created", mirror=mirror.id)
        return mirror

    async def update(self, mirror: Mirror) -> None:
        """Write back every editable field of an existing mirror."""
        key = mirror_key(mirror.id)
        fields = mirror_to_fields(mirror, include_state=False)
        mapping = {"ID": mirror.id}
        mapping.update({field: fields[field] for _, field in EDITABLE_FIELDS})

        async with self.store.transaction(key) as pipe:
            if not await pipe.exists(key):
                raise NoMatch(mirror.id)
            pipe.multi()
            pipe.hset(key, mapping=mapping)
            pipe.publish(MIRROR_UPDATE, mirror.id)
            await pipe.execute()

        logger.info("Mirror updated", mirror=mirror.id)

    async def set_enabled(self, identifier: str, enabled: bool) -> None:
        """Flip operator intent. Liveness (up/stateSince) is left untouched."""
        key = mirror_key(identifier)

        async with self.store.transaction(key) as pipe:
            if not await pipe.exists(key):
                raise NoMatch(identifier)
            pipe.multi()
            pipe.hset(key, "enabled", "1" if enabled else "0")
            pipe.publish(MIRROR_UPDATE, identifier)
            await pipe.execute()

        logger.info("Mirror state changed", mirror=identifier, enabled=enabled)

    async def remove(self, identifier: str) -> int:
        """Remove a mirror with all its file associations.

        Returns the number of file associations dropped.
        """
        await self.set_enabled(identifier, False)

        files_key = mirror_files_key(identifier)
        async with self.store.transaction(files_key) as pipe:
            files = sorted(await pipe.smembers(files_key))
            pipe.multi()
            for filename in files:
                pipe.delete(file_info_key(identifier, filename))
                pipe.srem(file_mirrors_key(filename), identifier)
                pipe.publish(MIRROR_FILE_UPDATE, f"{identifier} {filename}")
            pipe.delete(
                mirror_key(identifier),
                files_key,
                mirror_files_tmp_key(identifier),
                handled_files_key(identifier),
            )
            pipe.lrem(MIRRORS_KEY, 0, identifier)
            pipe.publish(MIRROR_UPDATE, identifier)
            await pipe.execute()

        logger.info("Mirror removed", mirror=identifier, files=len(files))
        return len(files)

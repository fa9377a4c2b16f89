"""
Collaborators shared by the commands of one invocation.
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncContextManager, AsyncIterator, Callable

import redis.asyncio as redis

from mirroradmin.core.config import Settings
from mirroradmin.core.redis import open_redis
from mirroradmin.core.store import MetadataStore
from mirroradmin.services.editing import Editor, ExternalEditor
from mirroradmin.services.geo import GeoIPLocator, Geolocator
from mirroradmin.services.scanner import CommandScanner, Scanner
from mirroradmin.services.signals import Signaler


@dataclass
class AdminContext:
    """Settings plus factories for everything a command talks to.

    Factories are called lazily so a command only needs the configuration
    of the collaborators it actually uses.
    """
    settings: Settings
    redis_factory: Callable[[], AsyncContextManager[redis.Redis]]
    editor: Callable[[], Editor]
    geolocator: Callable[[], Geolocator]
    scanner: Callable[[], Scanner]
    signaler: Signaler

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdminContext":
        return cls(
            settings=settings,
            redis_factory=lambda: open_redis(settings),
            editor=lambda: ExternalEditor(settings.EDITOR),
            geolocator=lambda: GeoIPLocator.from_settings(settings),
            scanner=lambda: CommandScanner.from_settings(settings),
            signaler=Signaler(settings.PID_FILE),
        )

    @asynccontextmanager
    async def store(self) -> AsyncIterator[MetadataStore]:
        async with self.redis_factory() as client:
            yield MetadataStore(client)

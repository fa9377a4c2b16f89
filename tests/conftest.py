from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, List, Optional

import fakeredis
import pytest

from mirroradmin.cli.context import AdminContext
from mirroradmin.core.config import Settings
from mirroradmin.core.exceptions import ScanError
from mirroradmin.core.logging import configure_logging
from mirroradmin.core.store import MetadataStore
from mirroradmin.models.mirror import Mirror, mirror_to_fields
from mirroradmin.services.editing import ExternalEditor
from mirroradmin.services.geo import GeoInfo
from mirroradmin.services.signals import Signaler


class FakeEditor:
    """Rewrites the staged file instead of opening a terminal editor."""

    def __init__(self, rewrite: Optional[Callable[[str], str]] = None):
        self.rewrite = rewrite
        self.paths: List[Path] = []

    async def edit(self, path: Path) -> None:
        self.paths.append(path)
        if self.rewrite is not None:
            path.write_text(self.rewrite(path.read_text(encoding="utf-8")), encoding="utf-8")


class FakeGeolocator:
    def __init__(self, info: GeoInfo):
        self.info = info
        self.hosts: List[str] = []

    async def locate(self, host: str) -> GeoInfo:
        self.hosts.append(host)
        return self.info


class FakeScanner:
    def __init__(self, fail: tuple = ()):
        self.fail = fail
        self.calls: List[tuple] = []

    async def scan_rsync(self, url: str, identifier: str) -> None:
        self.calls.append(("rsync", url, identifier))
        if "rsync" in self.fail:
            raise ScanError("rsync unreachable")

    async def scan_ftp(self, url: str, identifier: str) -> None:
        self.calls.append(("ftp", url, identifier))
        if "ftp" in self.fail:
            raise ScanError("ftp unreachable")

    async def scan_source(self) -> None:
        self.calls.append(("source",))


class RecordingKill:
    def __init__(self, alive: bool = True):
        self.alive = alive
        self.calls: List[tuple] = []

    def __call__(self, pid: int, signum: int) -> None:
        self.calls.append((pid, signum))
        if not self.alive:
            raise ProcessLookupError(pid)


@pytest.fixture(autouse=True, scope="session")
def quiet_logging() -> None:
    configure_logging(Settings(_env_file=None, LOG_LEVEL="CRITICAL"))


@pytest.fixture
def server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(server):
    return fakeredis.FakeAsyncRedis(server=server, decode_responses=True)


@pytest.fixture
def sync_redis(server):
    return fakeredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture
def store(redis_client) -> MetadataStore:
    return MetadataStore(redis_client)


@pytest.fixture
def seed(sync_redis) -> Callable[..., Mirror]:
    """Write a mirror straight into the store, bypassing the repository."""

    def _seed(identifier: str, files: tuple = (), **attrs) -> Mirror:
        attrs.setdefault("http_url", f"http://{identifier}.example.org/")
        mirror = Mirror(id=identifier, **attrs)
        sync_redis.hset(f"MIRROR_{identifier}", mapping=mirror_to_fields(mirror))
        sync_redis.rpush("MIRRORS", identifier)
        for filename in files:
            sync_redis.sadd(f"MIRROR_{identifier}_FILES", filename)
            sync_redis.sadd(f"FILEMIRRORS_{filename}", identifier)
            sync_redis.hset(f"FILEINFO_{identifier}_{filename}", mapping={"size": "42"})
        return mirror

    return _seed


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(_env_file=None, PID_FILE=tmp_path / "mirrorbits.pid", EDITOR="")


@pytest.fixture
def geo_info() -> GeoInfo:
    return GeoInfo(
        latitude=48.85,
        longitude=2.35,
        continent_code="EU",
        country_code="FR",
        asnum=64500,
        addresses=["192.0.2.10"],
    )


@pytest.fixture
def fake_editor() -> FakeEditor:
    return FakeEditor()


@pytest.fixture
def fake_scanner() -> FakeScanner:
    return FakeScanner()


@pytest.fixture
def fake_kill() -> RecordingKill:
    return RecordingKill()


@pytest.fixture
def admin_context(server, settings, geo_info, fake_editor, fake_scanner, fake_kill) -> AdminContext:
    @asynccontextmanager
    async def redis_factory():
        client = fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
        try:
            yield client
        finally:
            await client.aclose()

    return AdminContext(
        settings=settings,
        redis_factory=redis_factory,
        editor=lambda: fake_editor,
        geolocator=lambda: FakeGeolocator(geo_info),
        scanner=lambda: fake_scanner,
        signaler=Signaler(settings.PID_FILE, kill=fake_kill),
    )


@pytest.fixture
def unconfigured_editor_context(admin_context, settings) -> AdminContext:
    admin_context.editor = lambda: ExternalEditor(settings.EDITOR)
    return admin_context

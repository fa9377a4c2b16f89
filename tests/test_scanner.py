from __future__ import annotations

import shlex
import sys

import pytest

from mirroradmin.core.exceptions import ConfigurationError, NoSyncMethod, ScanError
from mirroradmin.models.mirror import Mirror
from mirroradmin.services.scanner import CommandScanner, scan_mirror

from .conftest import FakeScanner


def python_command(script: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(script)}"


async def test_rsync_is_preferred() -> None:
    scanner = FakeScanner()
    mirror = Mirror(id="m1", rsync_url="rsync://m1/pub/", ftp_url="ftp://m1/pub/")

    assert await scan_mirror(scanner, mirror) == "rsync"
    assert scanner.calls == [("rsync", "rsync://m1/pub/", "m1")]


async def test_falls_back_to_ftp() -> None:
    scanner = FakeScanner(fail=("rsync",))
    mirror = Mirror(id="m1", rsync_url="rsync://m1/pub/", ftp_url="ftp://m1/pub/")

    assert await scan_mirror(scanner, mirror) == "ftp"
    assert [call[0] for call in scanner.calls] == ["rsync", "ftp"]


async def test_rsync_failure_without_ftp() -> None:
    scanner = FakeScanner(fail=("rsync",))
    with pytest.raises(ScanError, match="rsync unreachable"):
        await scan_mirror(scanner, Mirror(id="m1", rsync_url="rsync://m1/pub/"))


async def test_ftp_only() -> None:
    scanner = FakeScanner()
    assert await scan_mirror(scanner, Mirror(id="m1", ftp_url="ftp://m1/pub/")) == "ftp"


async def test_http_only_mirror_cannot_be_scanned() -> None:
    scanner = FakeScanner()
    with pytest.raises(NoSyncMethod):
        await scan_mirror(scanner, Mirror(id="m1", http_url="http://m1/"))
    assert scanner.calls == []


def test_command_scanner_requires_a_command() -> None:
    with pytest.raises(ConfigurationError, match="SCANNER_COMMAND"):
        CommandScanner("")


async def test_command_scanner_passes_arguments(tmp_path) -> None:
    out = tmp_path / "args"
    script = f"import sys; open({str(out)!r}, 'w').write(' '.join(sys.argv[1:]))"
    scanner = CommandScanner(python_command(script))

    await scanner.scan_rsync("rsync://m1/pub/", "m1")
    assert out.read_text() == "rsync rsync://m1/pub/ m1"

    await scanner.scan_source()
    assert out.read_text() == "source"


async def test_command_scanner_failure() -> None:
    scanner = CommandScanner(python_command("import sys; print('connection refused'); sys.exit(3)"))
    with pytest.raises(ScanError, match="connection refused"):
        await scanner.scan_ftp("ftp://m1/pub/", "m1")


async def test_command_scanner_timeout() -> None:
    scanner = CommandScanner(python_command("import time; time.sleep(30)"), timeout=1)
    with pytest.raises(ScanError, match="timed out"):
        await scanner.scan_source()


async def test_missing_scanner_program() -> None:
    scanner = CommandScanner("/nonexistent/scanner")
    with pytest.raises(ScanError, match="Cannot run scanner"):
        await scanner.scan_source()

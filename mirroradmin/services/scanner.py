"""
Scanner invocation.

Crawling mirrors and the local repository is done by an external scanner
program; this module only decides what to scan and runs it.
"""
import asyncio
import shlex
from typing import List, Protocol

import structlog

from mirroradmin.core.config import Settings
from mirroradmin.core.exceptions import ConfigurationError, NoSyncMethod, ScanError
from mirroradmin.models.mirror import Mirror

logger = structlog.get_logger(__name__)


class Scanner(Protocol):
    async def scan_rsync(self, url: str, identifier: str) -> None:
        ...

    async def scan_ftp(self, url: str, identifier: str) -> None:
        ...

    async def scan_source(self) -> None:
        ...


async def scan_mirror(scanner: Scanner, mirror: Mirror) -> str:
    """Scan a mirror over rsync, falling back to FTP. Returns the method used."""
    if not mirror.rsync_url and not mirror.ftp_url:
        raise NoSyncMethod()

    if mirror.rsync_url:
        try:
            await scanner.scan_rsync(mirror.rsync_url, mirror.id)
            return "rsync"
        except ScanError as e:
            if not mirror.ftp_url:
                raise
            logger.warning("Rsync scan failed, trying FTP", mirror=mirror.id, error=str(e))

    await scanner.scan_ftp(mirror.ftp_url, mirror.id)
    return "ftp"


class CommandScanner:
    """Runs the configured scanner program.

    The program is called as ``<command> rsync <url> <id>``,
    ``<command> ftp <url> <id>`` or ``<command> source``.
    """

    def __init__(self, command: str, timeout: int = 0):
        if not command:
            raise ConfigurationError("No scanner configured (set SCANNER_COMMAND)")
        self.argv = shlex.split(command)
        self.timeout = timeout or None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CommandScanner":
        return cls(settings.SCANNER_COMMAND, settings.SCANNER_TIMEOUT)

    async def scan_rsync(self, url: str, identifier: str) -> None:
        await self._run(["rsync", url, identifier], identifier)

    async def scan_ftp(self, url: str, identifier: str) -> None:
        await self._run(["ftp", url, identifier], identifier)

    async def scan_source(self) -> None:
        await self._run(["source"], "source")

    async def _run(self, args: List[str], target: str) -> None:
        cmd = self.argv + args
        logger.info("Starting scan", target=target, command=cmd[0], method=args[0])

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT
            )
        except OSError as e:
            raise ScanError(f"Cannot run scanner {cmd[0]}: {e}") from e

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ScanError(f"Scan of {target} timed out after {self.timeout}s")

        output = stdout.decode("utf-8", errors="replace")
        if process.returncode != 0:
            logger.error("Scan failed", target=target, returncode=process.returncode)
            raise ScanError(f"Scan of {target} failed: {output[-500:].strip()}")

        logger.info("Scan completed", target=target)

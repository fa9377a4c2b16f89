"""
Control signals sent to the running redirector daemon.
"""
import os
import signal
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import structlog

from mirroradmin.core.exceptions import DaemonNotRunning, SignalDeliveryError

logger = structlog.get_logger(__name__)


class ControlSignal(str, Enum):
    """Instructions understood by the daemon."""
    RELOAD = "reload-configuration"
    UPGRADE = "begin-seamless-upgrade"

    @property
    def signum(self) -> int:
        return _SIGNALS[self]


_SIGNALS = {
    ControlSignal.RELOAD: signal.SIGHUP,
    ControlSignal.UPGRADE: signal.SIGUSR2,
}


def find_daemon_pid(pid_file: Path, kill: Callable[[int, int], None] = os.kill) -> Optional[int]:
    """Return the pid recorded by the daemon if that process is alive."""
    try:
        pid = int(pid_file.read_text().strip())
    except (OSError, ValueError) as e:
        logger.debug("No usable pid file", pid_file=str(pid_file), error=str(e))
        return None

    if pid <= 0:
        return None

    try:
        kill(pid, 0)
    except ProcessLookupError:
        logger.debug("Stale pid file", pid_file=str(pid_file), pid=pid)
        return None
    except PermissionError:
        # Alive, owned by another user
        pass
    return pid


class Signaler:
    """Delivers control signals to the daemon found through its pid file."""

    def __init__(self, pid_file: Path, kill: Callable[[int, int], None] = os.kill):
        self.pid_file = pid_file
        self.kill = kill

    def send(self, control: ControlSignal) -> int:
        """Send ``control`` to the daemon and return its pid."""
        pid = find_daemon_pid(self.pid_file, kill=self.kill)
        if pid is None:
            raise DaemonNotRunning("No pid found. Ensure the server is running.")

        try:
            self.kill(pid, control.signum)
        except OSError as e:
            raise SignalDeliveryError(f"Unable to send {control.value} to pid {pid}: {e}") from e

        logger.info("Control signal sent", signal=control.value, pid=pid)
        return pid

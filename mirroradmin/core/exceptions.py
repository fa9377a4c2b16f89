"""
Error taxonomy for mirror administration commands.

Every error carries the exit status the command line should terminate with.
Operations raise these; only the dispatcher turns them into an exit status.
"""
from typing import List


class MirrorAdminError(Exception):
    """Base class for all mirror administration errors."""

    exit_code: int = 1


class UsageError(MirrorAdminError):
    """Bad arguments. The usage is printed and no store access happens."""

    exit_code = 0


class NothingToMatch(MirrorAdminError):
    """An empty identifier query was given to the resolver."""

    exit_code = 0

    def __init__(self) -> None:
        super().__init__("Nothing to match")


class NoMatch(MirrorAdminError):
    """No known identifier matches the query."""

    exit_code = 0

    def __init__(self, query: str) -> None:
        super().__init__(f"No match for {query}")
        self.query = query


class AmbiguousTarget(MirrorAdminError):
    """More than one identifier matches the query."""

    exit_code = 0

    def __init__(self, query: str, candidates: List[str]) -> None:
        super().__init__("\n".join(candidates))
        self.query = query
        self.candidates = candidates


class ValidationError(MirrorAdminError):
    """Invalid mirror attributes given on the command line."""


class AlreadyExists(MirrorAdminError):
    """A mirror with the same identifier is already registered."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Mirror {identifier} already exists!")
        self.identifier = identifier


class StoreError(MirrorAdminError):
    """Transport failure or aborted transaction on the metadata store."""


class ConfigurationError(MirrorAdminError):
    """Missing or invalid local configuration."""


class DaemonNotRunning(ConfigurationError):
    """No running redirector process could be found."""


class SignalDeliveryError(MirrorAdminError):
    """The control signal could not be delivered to the daemon."""


class EditorError(MirrorAdminError):
    """The external editor failed."""


class ParseError(MirrorAdminError):
    """The edited mirror configuration could not be parsed."""


class ScanError(MirrorAdminError):
    """The scanner failed or could not be started."""


class NoSyncMethod(ScanError):
    """The mirror has neither an rsync nor an FTP URL."""

    def __init__(self) -> None:
        super().__init__("Cannot scan a mirror without a proper rsync or FTP url")


class NotIndexed(ScanError):
    """The local repository has not been indexed yet."""

    def __init__(self) -> None:
        super().__init__("Local repository not indexed.\nYou should run 'refresh' first!")

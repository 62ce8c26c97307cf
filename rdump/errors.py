"""Exception types raised by rdump."""
from __future__ import annotations


class RdumpError(Exception):
    """Base class for every error rdump reports to the user."""


class ConfigError(RdumpError):
    pass


class ParseError(RdumpError):
    """A line of tool output could not be understood."""
    def __init__(self, message: str, line: str):
        self.line = line
        super().__init__(f"{message}: {line!r}")


class NotMountedError(RdumpError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Not mounted: {name!r}")


class CloneError(RdumpError):
    """A source/destination pair cannot be cloned."""


class DivergedHistoryError(CloneError):
    """The destination's newest snapshot is unknown to the source."""
    def __init__(self, source: str, dest: str, snapshot: str):
        self.source = source
        self.dest = dest
        self.snapshot = snapshot
        super().__init__(
            f"Last destination snapshot {dest}@{snapshot} not present in {source}"
        )


class EmptyDestinationError(CloneError):
    """The destination exists but holds no snapshots to extend."""
    def __init__(self, dest: str):
        self.dest = dest
        super().__init__(
            f"Destination {dest} exists but has no snapshots; "
            f"remove it or seed it with a full receive"
        )

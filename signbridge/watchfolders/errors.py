"""
Watch folder error hierarchy.

A listing failure is fatal to the watch loop that hit it. Per-entry stat
failures are not errors at all: the entry is treated as gone.
"""


class WatchFolderError(Exception):
    """Base exception for watch folder failures."""

    pass


class DirectoryListingError(WatchFolderError):
    """Watched directory could not be listed (missing or inaccessible)."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot list watched directory {path}: {reason}")

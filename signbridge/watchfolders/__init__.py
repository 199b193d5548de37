"""
Watch folders: polling-based new-file detection.

Shared folders between virtual machines do not reliably deliver native
change notifications, so directories are re-listed on a fixed interval and
diffed against the previous snapshot.

Public API:
    WatchedDirectory: watch configuration model
    DirectorySnapshot: regular-file membership at one poll
    snapshot_directory: list + stat a directory into a snapshot
    DirectoryWatcher: poll loop that fires a callback per new file
    watch_dir: start a watcher and return its disposer
"""

from .errors import WatchFolderError, DirectoryListingError
from .models import WatchedDirectory, DirectorySnapshot
from .scanner import snapshot_directory
from .watcher import DirectoryWatcher, watch_dir, DEFAULT_POLL_SECONDS

__all__ = [
    # Errors
    "WatchFolderError",
    "DirectoryListingError",
    # Models
    "WatchedDirectory",
    "DirectorySnapshot",
    # Core
    "snapshot_directory",
    "DirectoryWatcher",
    "watch_dir",
    "DEFAULT_POLL_SECONDS",
]

"""
Filesystem scanner for watched directories.

Lists a directory and stats each entry, keeping only regular files.
"""

import logging
import os
import stat
from pathlib import Path
from typing import Union

from .errors import DirectoryListingError
from .models import DirectorySnapshot

logger = logging.getLogger(__name__)


def snapshot_directory(directory: Union[str, Path]) -> DirectorySnapshot:
    """
    Take a snapshot of the regular files in a directory (top level only).

    Entries can disappear between the listing and the stat. A failed stat
    means the file no longer exists, so the entry is skipped.

    os.stat follows symlinks, so a symlink to a regular file counts as a
    file and a symlink to a directory does not.

    Raises:
        DirectoryListingError: If the directory itself cannot be listed
    """
    directory = str(directory)

    try:
        names = os.listdir(directory)
    except OSError as e:
        raise DirectoryListingError(directory, str(e)) from e

    files = []
    for name in names:
        try:
            st = os.stat(os.path.join(directory, name))
        except OSError:
            logger.debug(f"[Scanner] Entry vanished before stat: {name}")
            continue

        if stat.S_ISREG(st.st_mode):
            files.append(name)

    return DirectorySnapshot.of(files)

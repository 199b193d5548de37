"""
File transfer primitives for the handoff directories.

Every file becomes visible under its final name in a single rename, so a
watcher on the other side never sees a partially-written file. Copies go
to a hidden temporary name in the destination directory first.

Known hazard: some VM shared folders (Parallels in particular) make files
vanish around rename operations. copy_then_delete exists for that case: it
copies, then deletes the original on a best-effort basis. A failed delete
is logged and tolerated because the data has already arrived. Do not use
it as the default on ordinary filesystems.
"""

import errno
import logging
import os
import shutil
from pathlib import Path
from typing import Union

from ..config import RetrieveMode

logger = logging.getLogger(__name__)


PARTIAL_SUFFIX = ".partial"


def _partial_path(dest: Path) -> Path:
    # The suffix keeps the in-progress copy out of extension filters.
    return dest.parent / f".{dest.name}{PARTIAL_SUFFIX}"


def _copy_into_place(src: Path, dest: Path) -> None:
    partial = _partial_path(dest)
    try:
        shutil.copy2(src, partial)
        os.replace(partial, dest)
    except OSError:
        try:
            partial.unlink()
        except FileNotFoundError:
            pass
        raise


def _rename(src: Path, dest: Path) -> None:
    try:
        os.replace(src, dest)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        # Different filesystems: copy atomically, then drop the source.
        logger.debug(f"[Transfer] Cross-device move, copying {src} → {dest}")
        _copy_into_place(src, dest)
        src.unlink()


def move_file_to_dir(file_path: Union[str, Path], dest_dir: Union[str, Path]) -> Path:
    """
    Move a file into a directory, keeping its basename.

    Returns:
        The new path

    Raises:
        OSError: If the move fails
    """
    src = Path(file_path)
    dest = Path(dest_dir) / src.name
    _rename(src, dest)
    return dest


def copy_then_delete(src_path: Union[str, Path], dest_path: Union[str, Path]) -> Path:
    """
    Copy a file to its destination, then delete the source if possible.

    Returns:
        The destination path

    Raises:
        OSError: If the copy fails (a failed delete is only logged)
    """
    src = Path(src_path)
    dest = Path(dest_path)
    _copy_into_place(src, dest)

    try:
        src.unlink()
    except OSError as e:
        logger.warning(
            f"[Transfer] Could not delete {src} after copy, continuing: {e}"
        )

    return dest


def retrieve(
    signed_path: Union[str, Path],
    destination: Union[str, Path],
    mode: RetrieveMode = RetrieveMode.COPY,
) -> Path:
    """
    Take a signed file out of the shared output directory.

    Creates the destination's parent directories.

    Args:
        signed_path: File in the output directory
        destination: Final path (may rename the file)
        mode: RENAME for an atomic move, COPY for copy + best-effort delete

    Returns:
        The destination path
    """
    src = Path(signed_path)
    dest = Path(destination)
    dest.parent.mkdir(parents=True, exist_ok=True)

    if RetrieveMode(mode) == RetrieveMode.RENAME:
        _rename(src, dest)
    else:
        copy_then_delete(src, dest)

    logger.info(f"[Transfer] Retrieved {src.name} → {dest}")
    return dest

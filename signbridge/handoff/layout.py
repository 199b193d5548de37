"""
Shared directory layout.

shared/
├── in/     # Written by the build host, consumed by the signing host
└── out/    # Written by the signing host, consumed by the build host

in/ must be used exclusively by this protocol: anything placed there with
a signable extension will be signed and moved.
"""

import errno
import logging
import os
from pathlib import Path
from typing import Union

from .errors import SharedDirectoryError

logger = logging.getLogger(__name__)


INPUT_FOLDER = "in"
OUTPUT_FOLDER = "out"


class SharedLayout:
    """Paths of the rendezvous directories under one shared root."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    @property
    def input_dir(self) -> Path:
        return self.root / INPUT_FOLDER

    @property
    def output_dir(self) -> Path:
        return self.root / OUTPUT_FOLDER

    def ensure(self) -> None:
        """
        Create in/ and out/ if absent (signing host startup).

        Raises:
            SharedDirectoryError: On any failure other than "already exists"
        """
        for role, path in ((INPUT_FOLDER, self.input_dir), (OUTPUT_FOLDER, self.output_dir)):
            try:
                os.mkdir(path)
                logger.info(f"[Layout] Created {role} directory {path}")
            except OSError as e:
                if e.errno != errno.EEXIST:
                    raise SharedDirectoryError(role, str(path), str(e)) from e

    def verify(self) -> None:
        """
        Check in/ and out/ exist and are accessible (build host preflight).

        Raises:
            SharedDirectoryError: Naming the first directory that fails
        """
        for role, path in ((INPUT_FOLDER, self.input_dir), (OUTPUT_FOLDER, self.output_dir)):
            if not path.is_dir():
                raise SharedDirectoryError(role, str(path), "not a directory")
            if not os.access(path, os.R_OK | os.W_OK | os.X_OK):
                raise SharedDirectoryError(role, str(path), "permission denied")

    def __repr__(self) -> str:
        return f"SharedLayout({str(self.root)!r})"

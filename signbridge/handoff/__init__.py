"""
Handoff: the shared-directory signing protocol.

The build host places a file in ``<shared>/in`` and waits for the same
basename to appear in ``<shared>/out``. The signing host watches ``in``,
signs what arrives and moves it to ``out``. The basename is the only
correlation key, so names must be unique among in-flight requests.

Public API:
    SharedLayout: in/ and out/ paths, creation and preflight checks
    SigningAgent: signing-host service
    HandoffClient: build-host client
    move_file_to_dir / copy_then_delete / retrieve: transfer primitives
"""

from .errors import HandoffError, SharedDirectoryError, HandoffPlacementError
from .layout import SharedLayout, INPUT_FOLDER, OUTPUT_FOLDER
from .transfer import move_file_to_dir, copy_then_delete, retrieve
from .agent import SigningAgent
from .client import HandoffClient

__all__ = [
    # Errors
    "HandoffError",
    "SharedDirectoryError",
    "HandoffPlacementError",
    # Layout
    "SharedLayout",
    "INPUT_FOLDER",
    "OUTPUT_FOLDER",
    # Transfer
    "move_file_to_dir",
    "copy_then_delete",
    "retrieve",
    # Core
    "SigningAgent",
    "HandoffClient",
]

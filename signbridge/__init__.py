"""
signbridge: cross-host code-signing handoff.

The build host cannot sign Windows binaries and the signing host cannot
build them. The two sides coordinate through a shared directory with an
``in`` and an ``out`` subdirectory. Filesystem renames stand in for messages.

Public API:
    DirectoryWatcher: polling change detector
    DedupQueue: one-at-a-time async work chain with key suppression
    SigningAgent: signing-host service (in → sign → out)
    HandoffClient: build-host client (place → await arrival → retrieve)
    SignBridgeSettings: configuration model
"""

from .config import SignBridgeSettings, CertificateSelection
from .watchfolders import DirectoryWatcher, watch_dir
from .execution import DedupQueue, SignTool, SigningResult, SigningStatus
from .handoff import SharedLayout, SigningAgent, HandoffClient

__version__ = "0.1.0"

__all__ = [
    "SignBridgeSettings",
    "CertificateSelection",
    "DirectoryWatcher",
    "watch_dir",
    "DedupQueue",
    "SignTool",
    "SigningResult",
    "SigningStatus",
    "SharedLayout",
    "SigningAgent",
    "HandoffClient",
]

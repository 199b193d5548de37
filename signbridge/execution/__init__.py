"""
Execution: sequential job chain and the external signing tool.

Public API:
    DedupQueue: one-at-a-time async work chain with key suppression
    SignTool: async wrapper around the code-signing command
    find_signtool: locate the signing tool binary
    build_sign_command: assemble the signing tool argument list
    SigningResult / SigningStatus: per-file outcome model
"""

from .errors import (
    ExecutionError,
    SignToolNotFoundError,
    SigningError,
    SigningTimeoutError,
)
from .queue import DedupQueue
from .results import SigningResult, SigningStatus
from .signtool import (
    SignTool,
    find_signtool,
    build_sign_command,
    DEFAULT_TIMESTAMP_URL,
    DIGEST_ALGORITHM,
)

__all__ = [
    # Errors
    "ExecutionError",
    "SignToolNotFoundError",
    "SigningError",
    "SigningTimeoutError",
    # Core
    "DedupQueue",
    "SignTool",
    "find_signtool",
    "build_sign_command",
    "DEFAULT_TIMESTAMP_URL",
    "DIGEST_ALGORITHM",
    # Results
    "SigningResult",
    "SigningStatus",
]

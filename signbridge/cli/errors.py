"""
CLI-specific error types and process exit statuses.

Each unrecoverable precondition failure has its own exit status so that
whatever launched the process can tell them apart.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    OK = 0
    USAGE = 1
    SIGNTOOL_MISSING = 2
    INPUT_DIR = 3
    OUTPUT_DIR = 4
    HANDOFF_FAILED = 5
    WATCH_FAILED = 6


class CLIError(Exception):
    """Base exception for all CLI-related failures."""

    def __init__(self, message: str, exit_code: ExitCode = ExitCode.USAGE):
        self.message = message
        self.exit_code = exit_code
        super().__init__(message)

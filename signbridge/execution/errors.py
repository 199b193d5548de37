"""
Execution-specific errors.

SignToolNotFoundError is an unrecoverable precondition failure.
SigningError and its subclasses are per-file failures: the file is abandoned
and the agent keeps running.
"""

from typing import Optional


class ExecutionError(Exception):
    """
    Base exception for execution failures.

    All execution errors inherit from this.
    """

    pass


class SignToolNotFoundError(ExecutionError):
    """
    Signing tool binary could not be located.

    Raised at startup. The signing agent cannot do anything useful without
    it, so the process exits.
    """

    pass


class SigningError(ExecutionError):
    """
    The signing command failed for one file.

    Carries the exit code and captured output for the log.
    """

    def __init__(
        self,
        path: str,
        message: str,
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        self.path = path
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)


class SigningTimeoutError(SigningError):
    """The signing command exceeded its wall-clock timeout and was killed."""

    pass

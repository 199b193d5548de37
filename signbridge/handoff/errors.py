"""
Handoff error hierarchy.

Unlike per-file signing errors, these are fatal to the process that hits
them: without the shared directories, or with a lost handoff, no further
progress is possible.
"""


class HandoffError(Exception):
    """Base exception for handoff protocol failures."""

    pass


class SharedDirectoryError(HandoffError):
    """
    A shared directory is missing, inaccessible or cannot be created.

    role is "in" or "out" so callers can report which side failed.
    """

    def __init__(self, role: str, path: str, reason: str):
        self.role = role
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot access {role} directory {path}: {reason}")


class HandoffPlacementError(HandoffError):
    """The file could not be moved into the input directory."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to hand off {path} for signing: {reason}")

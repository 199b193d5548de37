"""
Signing result models.

Structured representation of single-file signing outcomes.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SigningStatus(str, Enum):
    """
    Per-file lifecycle.

    DETECTED → VERIFIED → SIGNING → SIGNED → RELOCATED

    FAILED is reached from SIGNING (tool error or timeout) or from SIGNED
    (relocation failed). It is terminal and never retried.
    """

    DETECTED = "detected"
    VERIFIED = "verified"
    SIGNING = "signing"
    SIGNED = "signed"
    RELOCATED = "relocated"
    FAILED = "failed"


_TRANSITIONS = {
    SigningStatus.DETECTED: {SigningStatus.VERIFIED},
    SigningStatus.VERIFIED: {SigningStatus.SIGNING},
    SigningStatus.SIGNING: {SigningStatus.SIGNED, SigningStatus.FAILED},
    SigningStatus.SIGNED: {SigningStatus.RELOCATED, SigningStatus.FAILED},
    SigningStatus.RELOCATED: set(),
    SigningStatus.FAILED: set(),
}


class SigningResult(BaseModel):
    """
    Outcome of signing one file.

    Mutated in place by the signing agent as the file moves through its
    lifecycle; read by tests and the final log line.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    source_path: str
    """File as detected in the input directory."""

    status: SigningStatus = SigningStatus.DETECTED

    output_path: Optional[str] = None
    """Location in the output directory (once relocated)."""

    started_at: datetime = Field(default_factory=datetime.now)

    completed_at: Optional[datetime] = None

    failure_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (SigningStatus.RELOCATED, SigningStatus.FAILED)

    def advance(self, status: SigningStatus) -> None:
        """
        Move to the next lifecycle state.

        Raises:
            ValueError: On a transition the lifecycle does not allow
        """
        if status not in _TRANSITIONS[self.status]:
            raise ValueError(
                f"Invalid signing transition {self.status.value} → {status.value}"
            )
        self.status = status
        if self.is_terminal:
            self.completed_at = datetime.now()

    def fail(self, reason: str) -> None:
        self.failure_reason = reason
        self.advance(SigningStatus.FAILED)

    def duration_seconds(self) -> Optional[float]:
        """Calculate signing duration in seconds."""
        if self.completed_at is None:
            return None
        delta = self.completed_at - self.started_at
        return delta.total_seconds()

    def summary(self) -> str:
        """Human-readable summary of signing result."""
        duration_str = ""
        duration = self.duration_seconds()
        if duration is not None:
            duration_str = f" ({duration:.1f}s)"

        if self.status == SigningStatus.RELOCATED:
            return f"SIGNED{duration_str}: {self.source_path} → {self.output_path}"

        elif self.status == SigningStatus.FAILED:
            return f"FAILED{duration_str}: {self.source_path} - {self.failure_reason}"

        return f"{self.status.value.upper()}: {self.source_path}"

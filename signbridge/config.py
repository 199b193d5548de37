"""
Configuration for both sides of the signing handoff.

Values come from environment variables, overridden by command-line flags.
The build host and the signing host each read only the fields they need.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


class ConfigurationError(Exception):
    """Configuration is missing or invalid."""

    pass


class RetrieveMode(str, Enum):
    """
    How a signed file is taken out of the shared output directory.

    RENAME: atomic rename (preferred on ordinary filesystems)
    COPY: copy, then best-effort delete of the original. Some VM shared
          folders make files vanish when they are renamed; the copy path
          sidesteps that, and a failed delete is only logged.
    """

    RENAME = "rename"
    COPY = "copy"


class CertificateSelection(BaseModel):
    """
    Which certificate the signing tool should use.

    At most one of name (certificate store entry) and file (.pfx path) may
    be set. With neither, the tool picks the best certificate itself.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Optional[str] = None
    file: Optional[str] = None

    @model_validator(mode="after")
    def validate_exclusive(self) -> "CertificateSelection":
        if self.name and self.file:
            raise ValueError(
                "Certificate name and certificate file are mutually exclusive"
            )
        return self

    @classmethod
    def from_argument(cls, value: Optional[str]) -> "CertificateSelection":
        """A value ending in .pfx is a file; anything else is a store name."""
        if not value:
            return cls()
        if Path(value).suffix.lower() == ".pfx":
            return cls(file=value)
        return cls(name=value)

    @property
    def is_automatic(self) -> bool:
        return not self.name and not self.file

    def to_args(self) -> List[str]:
        if self.file:
            return ["/f", self.file]
        if self.name:
            return ["/n", self.name]
        return ["/a"]


# Environment variable → field name
ENV_FIELDS: Dict[str, str] = {
    "SHARED_DIR": "shared_dir",
    "SIGNBRIDGE_CERT": "certificate",
    "SIGNTOOL_TIMEOUT": "sign_timeout_ms",
    "SIGNBRIDGE_HANDOFF_TIMEOUT": "handoff_timeout_ms",
    "SIGNTOOL_PATH": "signtool_path",
    "SIGNBRIDGE_TIMESTAMP_URL": "timestamp_url",
    "SIGNBRIDGE_POLL_INTERVAL": "poll_interval",
    "SIGNBRIDGE_RETRIEVE_MODE": "retrieve_mode",
}


class SignBridgeSettings(BaseModel):
    """
    Settings shared by the signing agent and the handoff client.

    Timeouts are in milliseconds, matching the environment variables the
    external build tool already passes through.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    shared_dir: str = Field(..., description="Rendezvous root holding in/ and out/")
    certificate: CertificateSelection = Field(default_factory=CertificateSelection)
    timestamp_url: str = Field(default="http://timestamp.digicert.com")
    sign_timeout_ms: int = Field(default=30 * 60 * 1000, gt=0)
    handoff_timeout_ms: Optional[int] = Field(
        default=None,
        gt=0,
        description="Ceiling on waiting for a signed file (None = wait forever)",
    )
    poll_interval: float = Field(default=1.0, gt=0)
    signtool_path: Optional[str] = None
    executable_extensions: FrozenSet[str] = Field(default=frozenset({".exe"}))
    retrieve_mode: RetrieveMode = RetrieveMode.COPY

    @field_validator("shared_dir")
    @classmethod
    def validate_shared_dir(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Shared directory must not be empty")
        return str(Path(v).expanduser().resolve())

    @field_validator("certificate", mode="before")
    @classmethod
    def coerce_certificate(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return CertificateSelection.from_argument(v)
        return v

    @field_validator("executable_extensions", mode="before")
    @classmethod
    def normalize_extensions(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.split(",")
        return frozenset(
            ext if ext.startswith(".") else f".{ext}"
            for ext in (e.strip().lower() for e in v)
            if ext
        )

    @property
    def input_dir(self) -> Path:
        return Path(self.shared_dir) / "in"

    @property
    def output_dir(self) -> Path:
        return Path(self.shared_dir) / "out"

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "SignBridgeSettings":
        """
        Build settings from environment variables plus explicit overrides.

        Overrides whose value is None are ignored, so argparse namespaces can
        be passed through directly.

        Raises:
            ConfigurationError: If required values are missing or invalid
        """
        environ = os.environ if environ is None else environ

        values: Dict[str, Any] = {}
        for env_name, field_name in ENV_FIELDS.items():
            raw = environ.get(env_name)
            if raw:
                values[field_name] = raw

        for key, value in overrides.items():
            if value is not None:
                values[key] = value

        if "shared_dir" not in values:
            raise ConfigurationError(
                "Shared directory not configured (set SHARED_DIR or pass it explicitly)"
            )

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

"""
Watch folder data models.

All models use Pydantic with strict validation and no silent coercion.
"""

from typing import FrozenSet, Iterable, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WatchedDirectory(BaseModel):
    """
    Configuration for one watched directory.

    fire_initially controls how files present at watch start are treated:
    - False: they are recorded in the initial snapshot and never reported
    - True: the snapshot starts empty, so the first poll reports all of them
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = Field(..., description="Directory to observe")
    fire_initially: bool = Field(
        default=False,
        description="Report files already present when watching starts",
    )
    poll_interval: float = Field(
        default=1.0, gt=0, description="Seconds between directory scans"
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Reject empty paths."""
        if not v or not v.strip():
            raise ValueError("Watched directory path must not be empty")
        return v


class DirectorySnapshot(BaseModel):
    """
    Regular-file membership of a directory at one poll.

    Only regular files are ever recorded. Directories, and symlinks that
    point at directories, are excluded by the scanner.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    names: FrozenSet[str] = Field(default_factory=frozenset)

    @classmethod
    def empty(cls) -> "DirectorySnapshot":
        return cls()

    @classmethod
    def of(cls, names: Iterable[str]) -> "DirectorySnapshot":
        return cls(names=frozenset(names))

    def new_since(self, previous: "DirectorySnapshot") -> List[str]:
        """Names present here but absent from previous, in sorted order."""
        return sorted(self.names - previous.names)

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __len__(self) -> int:
        return len(self.names)

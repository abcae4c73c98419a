from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SnapshotError(Exception):
    """Base exception for errors in the context_snapshot package."""


@dataclass(frozen=True)
class ConfigurationError(SnapshotError):
    """Raised when the options file or command-line values cannot be used."""

    source: str
    message: str


@dataclass(frozen=True)
class OutputWriteError(SnapshotError):
    """Raised when the rendered snapshot cannot be persisted."""

    output: Path
    reason: str
    message: str = "Failed to write the snapshot output file."

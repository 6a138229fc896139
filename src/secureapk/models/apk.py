"""Pydantic models for package extraction and dev-mode artifacts."""

from pathlib import Path

from pydantic import BaseModel, Field


class ExtractionResult(BaseModel):
    """Outcome of streaming a package archive into a scratch directory."""

    root: Path
    """Job-scoped extraction root."""

    files: list[str] = Field(default_factory=list)
    """Relative (posix) names of entries written to disk."""

    skipped: list[str] = Field(default_factory=list)
    """Entries rejected (path traversal) or that failed to write."""


class RepackagedArtifact(BaseModel):
    """A rebuilt dev-mode archive, possibly aligned and signed."""

    path: Path
    """Location of the deliverable archive."""

    signed: bool = False
    """Whether a signature was applied."""

    aligned: bool = False
    """Whether zipalign ran successfully (False means a plain copy)."""

    keystore_generated: bool = False
    """Whether this run created the debug keystore."""

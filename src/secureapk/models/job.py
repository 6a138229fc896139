"""Pydantic models for analysis jobs and their outcome."""

from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from secureapk.models.analysis import AnalysisReport
from secureapk.models.apk import RepackagedArtifact


class JobStatus(StrEnum):
    """Lifecycle of an analysis job: pending -> analyzing -> completed|failed."""

    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisOutcome(BaseModel):
    """What the core hands back to the persistence collaborator."""

    report: AnalysisReport
    artifact: RepackagedArtifact | None = None
    """Dev-mode archive, or None when repackaging was abandoned."""


class AnalysisJob(BaseModel):
    """One scan request tracked by a job store."""

    id: int
    file_name: str
    file_size: int = 0
    source_path: Path
    status: JobStatus = JobStatus.PENDING
    upload_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    report: AnalysisReport | None = None
    """Set once the job completes."""

    fixed_apk_path: Path | None = None
    """Downloadable dev-mode archive, if one was produced."""

    fixed_apk_signed: bool = False

    error: str | None = None
    """Failure reason for failed jobs."""

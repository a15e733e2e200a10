"""Data models for tracked pull requests and their CI jobs."""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field

PRState = Literal["open", "merged", "closed"]
JobStatus = Literal["success", "failure", "running", "skipped", "pending"]
CIStatus = Literal["success", "failure", "pending", "running"]

# Fields that only describe the current session and are never persisted
TRANSIENT_FIELDS = {"is_loading", "last_error", "representative_run_id"}


class CIJob(BaseModel):
    """One CI job (a single check-run) of a pull request."""

    name: str
    status: JobStatus
    job_id: Optional[int] = None  # Needed to fetch logs


class TrackedPR(BaseModel):
    """A pull request under active monitoring.

    ``ci_status`` is computed from ``jobs`` on every access and cannot be
    set independently. ``(repo, number)`` is unique inside a TrackingStore.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    repo: str  # e.g., "facebook/react"
    number: int
    title: str = "Loading…"
    author: str = "…"
    state: PRState = "open"
    jobs: list[CIJob] = Field(default_factory=list)
    last_updated: Optional[datetime] = None
    additions: Optional[int] = None
    deletions: Optional[int] = None

    # Transient runtime state
    representative_run_id: Optional[int] = None
    last_error: Optional[str] = None
    is_loading: bool = False

    @computed_field
    @property
    def ci_status(self) -> CIStatus:
        # Imported here to keep models free of a package-level cycle
        from tracker.status import derive_ci_status
        return derive_ci_status(self.jobs)

    @property
    def url(self) -> str:
        return f"https://github.com/{self.repo}/pull/{self.number}"

    def failed_jobs(self) -> list[CIJob]:
        return [job for job in self.jobs if job.status == "failure"]

    def to_persisted(self) -> dict:
        """Plain dict for persistence, without transient or derived fields."""
        return self.model_dump(mode="json", exclude=TRANSIENT_FIELDS | {"ci_status"})


class RecordPatch(BaseModel):
    """Field-wise update for a TrackedPR.

    Only fields explicitly set on the patch are applied by
    ``TrackingStore.merge``; everything else on the record is untouched.
    """

    title: Optional[str] = None
    author: Optional[str] = None
    state: Optional[PRState] = None
    jobs: Optional[list[CIJob]] = None
    last_updated: Optional[datetime] = None
    additions: Optional[int] = None
    deletions: Optional[int] = None
    representative_run_id: Optional[int] = None


class PRSnapshot(BaseModel):
    """Result of one metadata read: PR fields plus its mapped CI jobs."""

    title: str
    author: str
    state: PRState
    head_sha: str
    additions: Optional[int] = None
    deletions: Optional[int] = None
    updated_at: Optional[datetime] = None
    jobs: list[CIJob] = Field(default_factory=list)

    def to_patch(self, representative_run_id: Optional[int] = None) -> RecordPatch:
        fields = {
            "title": self.title,
            "author": self.author,
            "state": self.state,
            "jobs": self.jobs,
            "last_updated": self.updated_at,
            "representative_run_id": representative_run_id,
        }
        # Unreported line counts stay unset so merge keeps the last known ones
        if self.additions is not None:
            fields["additions"] = self.additions
        if self.deletions is not None:
            fields["deletions"] = self.deletions
        return RecordPatch(**fields)


class RerunState(str, Enum):
    IDLE = "idle"
    RERUNNING = "rerunning"


class RerunOutcomeKind(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"
    NOTHING_TO_RERUN = "nothing_to_rerun"


class RerunOutcome(BaseModel):
    """Aggregated result of rerunning every failed workflow run of one PR."""

    pr_id: str
    repo: str
    number: int
    kind: RerunOutcomeKind
    triggered: int = 0
    total: int = 0
    errors: list[str] = Field(default_factory=list)
    message: str = ""

    @property
    def ratio(self) -> str:
        return f"{self.triggered}/{self.total}"


class BulkRerunSummary(BaseModel):
    """Result of a "rerun all failed" pass."""

    outcomes: list[RerunOutcome] = Field(default_factory=list)
    message: str = ""

    @property
    def nothing_to_rerun(self) -> bool:
        return not self.outcomes

"""Schemas for the GitHub REST payloads the tracker reads.

Only the fields the tracker uses are declared; everything else in the
response is ignored. Parsing happens at the client boundary so a missing
field surfaces as a DecodeError instead of a silent None downstream.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class GitHubUser(BaseModel):
    login: str


class GitHubCommitRef(BaseModel):
    sha: str


class PullRequestPayload(BaseModel):
    """GET /repos/{owner}/{repo}/pulls/{number}"""

    number: int
    title: str
    state: Literal["open", "closed"]
    merged_at: Optional[datetime] = None
    user: GitHubUser
    head: GitHubCommitRef
    additions: Optional[int] = None
    deletions: Optional[int] = None
    updated_at: Optional[datetime] = None


class CheckRunApp(BaseModel):
    name: Optional[str] = None


class CheckRunPayload(BaseModel):
    id: int
    name: str
    status: str  # queued, in_progress, completed (plus newer values like waiting)
    conclusion: Optional[str] = None
    details_url: Optional[str] = None
    app: Optional[CheckRunApp] = None

    @property
    def app_name(self) -> Optional[str]:
        return self.app.name if self.app else None


class CheckRunsResponse(BaseModel):
    """GET /repos/{owner}/{repo}/commits/{sha}/check-runs"""

    total_count: Optional[int] = None
    check_runs: list[CheckRunPayload] = Field(default_factory=list)


class WorkflowRunPayload(BaseModel):
    id: int
    conclusion: Optional[str] = None


class WorkflowRunsResponse(BaseModel):
    """GET /repos/{owner}/{repo}/actions/runs?head_sha=..."""

    total_count: Optional[int] = None
    workflow_runs: list[WorkflowRunPayload] = Field(default_factory=list)

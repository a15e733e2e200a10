"""
API routes for the PR CI tracker.

Every route runs on the event loop that owns the engine, so handlers are
``async`` even when they do not await anything.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from analyzer.log_analysis import LogAnalysisResult, LogAnalysisSession
from models.data_models import BulkRerunSummary, RerunOutcome, TrackedPR
from models.errors import AlreadyInProgressError, RecordNotFoundError
from tracker.engine import TrackerEngine
from tracker.pr_ref import make_pr_ref, parse_pr_ref

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["prs"])


class TrackRequest(BaseModel):
    """Request body for POST /api/prs: a reference, or repo + number."""
    ref: Optional[str] = None
    repo: Optional[str] = None
    number: Optional[int] = None


class PRListResponse(BaseModel):
    """Response model for PR list endpoint."""
    prs: List[TrackedPR]
    grouped: Dict[str, List[TrackedPR]]
    total: int
    refreshing_all: bool


class RefreshResponse(BaseModel):
    started: bool
    message: str


def _engine(request: Request) -> TrackerEngine:
    return request.app.state.engine


def _require_record(engine: TrackerEngine, record_id: str) -> TrackedPR:
    record = engine.get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"PR not found: {record_id}")
    return record


@router.get("/prs", response_model=PRListResponse)
async def list_prs(request: Request):
    """
    List tracked PRs.

    Returns:
    - prs: All records, most recently added first
    - grouped: The same records grouped by repository
    - total: Number of tracked PRs
    - refreshing_all: Whether a refresh of every PR is in flight
    """
    engine = _engine(request)
    records = engine.records()
    return PRListResponse(
        prs=records,
        grouped=engine.grouped_by_repo(),
        total=len(records),
        refreshing_all=engine.scheduler.refreshing_all,
    )


@router.post("/prs", status_code=201, response_model=TrackedPR)
async def track_pr(body: TrackRequest, request: Request):
    """
    Start tracking a PR.

    Accepts either ``ref`` (PR URL or ``owner/repo#number``) or ``repo`` and
    ``number``. The first refresh starts in the background; the placeholder
    record is returned right away.
    """
    engine = _engine(request)
    try:
        if body.ref:
            pr_ref = parse_pr_ref(body.ref)
        elif body.repo and body.number is not None:
            pr_ref = make_pr_ref(body.repo, body.number)
        else:
            raise HTTPException(status_code=400, detail="Provide 'ref', or 'repo' and 'number'")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    record = engine.add(pr_ref.repo, pr_ref.number)
    if record is None:
        raise HTTPException(status_code=409, detail=f"PR already tracked: {pr_ref}")
    return record


@router.delete("/prs/{record_id}")
async def untrack_pr(record_id: str, request: Request):
    """Stop tracking a PR. Unknown ids are reported but not an error."""
    removed = _engine(request).remove(record_id)
    return {"id": record_id, "removed": removed}


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_all(request: Request):
    """Refresh every tracked PR and wait for the results."""
    started = await _engine(request).refresh_all()
    message = "Refresh complete" if started else "Refresh already in progress"
    return RefreshResponse(started=started, message=message)


@router.post("/prs/{record_id}/refresh", response_model=TrackedPR)
async def refresh_pr(record_id: str, request: Request):
    """Refresh one PR now and return the updated record."""
    engine = _engine(request)
    _require_record(engine, record_id)
    await engine.refresh(record_id)
    return _require_record(engine, record_id)


@router.post("/prs/{record_id}/rerun", response_model=RerunOutcome)
async def rerun_pr(record_id: str, request: Request):
    """Rerun the failed workflow runs of one PR."""
    try:
        return await _engine(request).rerun(record_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AlreadyInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/rerun-failed", response_model=BulkRerunSummary)
async def rerun_all_failed(request: Request):
    """Rerun every PR whose CI failed, one PR at a time."""
    try:
        return await _engine(request).rerun_all_failed()
    except AlreadyInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/prs/{record_id}/jobs/{job_index}/analysis", response_model=LogAnalysisResult)
async def analyze_job(record_id: str, job_index: int, request: Request):
    """
    Fetch the log of one job and analyze it.

    The analysis is best-effort: when logs or the LLM are unavailable the
    response still succeeds and carries the reason in ``error``.
    """
    engine = _engine(request)
    record = _require_record(engine, record_id)
    if job_index < 0 or job_index >= len(record.jobs):
        raise HTTPException(status_code=404, detail=f"Job {job_index} not found on PR #{record.number}")

    job = record.jobs[job_index]
    session = LogAnalysisSession(engine.client, record.repo, job, analyzer=request.app.state.analyzer)
    result = await session.run()
    logger.info(f"Analyzed job '{job.name}' of {record.repo}#{record.number}")
    return result


@router.get("/events")
async def recent_events(
    request: Request,
    limit: int = Query(50, ge=1, le=200, description="Number of most recent events"),
) -> List[Dict[str, Any]]:
    """Most recent engine events, oldest first."""
    return request.app.state.event_log.recent(limit)

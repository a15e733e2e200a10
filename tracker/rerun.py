"""Rerun failed CI workflows for tracked PRs.

Each PR moves Idle -> Rerunning -> Idle. A second request for a PR that is
already rerunning is rejected before any network call. Rerun triggers are
sent one at a time, both inside one PR and across "rerun all failed", so
GitHub never sees overlapping triggers from us.
"""

import asyncio
import logging
from typing import Callable, Optional

from fetchers.github import CI_APP_NAME, GitHubCIClient
from models.data_models import (
    BulkRerunSummary,
    RerunOutcome,
    RerunOutcomeKind,
    RerunState,
    TrackedPR,
)
from models.errors import AlreadyInProgressError, NoRunsFoundError, RecordNotFoundError, TrackerError
from tracker.events import EventBus, RerunFinished
from tracker.status import extract_run_id, is_failed_conclusion
from tracker.store import TrackingStore

logger = logging.getLogger(__name__)


def discover_failed_run_ids(client: GitHubCIClient, repo: str, number: int) -> list[int]:
    """
    Find the workflow runs of a PR's head commit that can be rerun.

    Check-runs reported by GitHub Actions with a failure-class conclusion
    are preferred. Only when none yields a run id is the workflow-run list
    for the head commit consulted.

    Returns:
        Deduplicated run ids, in discovery order

    Raises:
        NoRunsFoundError: If neither source has a failed run
        NetworkError, DecodeError: If a remote read fails
    """
    pr = client.get_pull_request(repo, number)
    head_sha = pr.head.sha

    run_ids: list[int] = []
    for check_run in client.get_check_runs(repo, head_sha):
        if check_run.app_name != CI_APP_NAME or not check_run.details_url:
            continue
        if not is_failed_conclusion(check_run.conclusion):
            continue
        run_id = extract_run_id(check_run.details_url)
        if run_id and run_id not in run_ids:
            run_ids.append(run_id)

    if run_ids:
        return run_ids

    logger.debug(f"{repo}#{number}: no failed run ids in check-runs, listing workflow runs")
    for run in client.get_workflow_runs(repo, head_sha):
        if is_failed_conclusion(run.conclusion) and run.id not in run_ids:
            run_ids.append(run.id)

    if not run_ids:
        raise NoRunsFoundError(f"PR #{number}: no failed workflow runs to rerun")
    return run_ids


class RerunOrchestrator:
    """Per-PR and bulk rerun of failed workflow runs."""

    def __init__(
        self,
        client: GitHubCIClient,
        store: TrackingStore,
        events: EventBus,
        schedule_refresh: Callable[[str, float], object],
        settle_delay: float = 2.0,
    ):
        """
        Args:
            client: GitHub client used for discovery and triggers
            store: Tracked PRs
            events: Channel for status notes and outcomes
            schedule_refresh: ``(record_id, delay)`` callback that refreshes
                              one record later
            settle_delay: Seconds to wait before the follow-up refresh
        """
        self.client = client
        self.store = store
        self.events = events
        self.schedule_refresh = schedule_refresh
        self.settle_delay = settle_delay
        self._rerunning: set[str] = set()
        self._bulk_running = False

    def rerun_state(self, record_id: str) -> RerunState:
        return RerunState.RERUNNING if record_id in self._rerunning else RerunState.IDLE

    @property
    def bulk_running(self) -> bool:
        return self._bulk_running

    async def rerun(self, record_id: str) -> RerunOutcome:
        """
        Rerun every failed workflow run of one tracked PR.

        Raises:
            RecordNotFoundError: If the record is not tracked
            AlreadyInProgressError: If a rerun for this PR is in flight

        Returns:
            The aggregated outcome. Network failures during discovery or
            triggering are folded into the outcome rather than raised.
        """
        record = self.store.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"No tracked PR with id {record_id}")
        if record_id in self._rerunning:
            raise AlreadyInProgressError(f"PR #{record.number} is already being rerun")

        self._rerunning.add(record_id)
        try:
            outcome = await self._rerun_record(record)
        finally:
            self._rerunning.discard(record_id)

        self.events.note(outcome.message)
        self.events.emit(RerunFinished(outcome=outcome))
        return outcome

    async def _rerun_record(self, record: TrackedPR) -> RerunOutcome:
        repo, number = record.repo, record.number

        def outcome(kind: RerunOutcomeKind, message: str, **kwargs) -> RerunOutcome:
            return RerunOutcome(pr_id=record.id, repo=repo, number=number, kind=kind, message=message, **kwargs)

        self.events.note(f"Looking up failed workflows for PR #{number}...")
        try:
            run_ids = await asyncio.to_thread(discover_failed_run_ids, self.client, repo, number)
        except NoRunsFoundError as e:
            return outcome(RerunOutcomeKind.NOTHING_TO_RERUN, str(e))
        except TrackerError as e:
            logger.warning(f"Rerun discovery for {repo}#{number} failed: {e}")
            return outcome(RerunOutcomeKind.FAILURE, f"PR #{number}: {e}", errors=[str(e)])

        total = len(run_ids)
        self.events.note(f"PR #{number}: found {total} failed workflow(s), triggering rerun...")

        errors: list[str] = []
        triggered = 0
        for run_id in run_ids:
            try:
                await asyncio.to_thread(self.client.trigger_rerun, repo, run_id)
                triggered += 1
            except TrackerError as e:
                logger.warning(f"Rerun of run {run_id} in {repo} failed: {e}")
                errors.append(f"run {run_id}: {e}")

        if triggered:
            self.schedule_refresh(record.id, self.settle_delay)

        if triggered == total:
            return outcome(
                RerunOutcomeKind.SUCCESS,
                f"PR #{number}: triggered rerun of {triggered} failed workflow(s)",
                triggered=triggered, total=total,
            )
        if triggered:
            return outcome(
                RerunOutcomeKind.PARTIAL,
                f"PR #{number}: triggered {triggered}/{total} reruns (some failed)",
                triggered=triggered, total=total, errors=errors,
            )
        return outcome(
            RerunOutcomeKind.FAILURE,
            f"PR #{number}: {errors[0]}",
            triggered=0, total=total, errors=errors,
        )

    async def rerun_all_failed(self) -> BulkRerunSummary:
        """
        Rerun every tracked PR whose CI status is ``failure``, one PR at a time.

        Raises:
            AlreadyInProgressError: If a bulk rerun is already in flight
        """
        if self._bulk_running:
            raise AlreadyInProgressError("Bulk rerun already in progress")

        self._bulk_running = True
        try:
            failed = self.store.failed_records()
            if not failed:
                self.events.note("Nothing to rerun")
                return BulkRerunSummary(message="Nothing to rerun")

            self.events.note(f"Rerunning {len(failed)} failed PR(s)...")
            outcomes: list[RerunOutcome] = []
            for record in failed:
                result = await self._rerun_in_bulk(record)
                if result is not None:
                    outcomes.append(result)

            succeeded = sum(1 for o in outcomes if o.triggered > 0)
            summary = BulkRerunSummary(
                outcomes=outcomes,
                message=f"Rerun complete: {succeeded}/{len(outcomes)} PR(s) triggered",
            )
            self.events.note(summary.message)
            return summary
        finally:
            self._bulk_running = False

    async def _rerun_in_bulk(self, record: TrackedPR) -> Optional[RerunOutcome]:
        try:
            return await self.rerun(record.id)
        except RecordNotFoundError:
            # Removed while the bulk pass was running
            return None
        except AlreadyInProgressError as e:
            return RerunOutcome(
                pr_id=record.id,
                repo=record.repo,
                number=record.number,
                kind=RerunOutcomeKind.FAILURE,
                errors=[str(e)],
                message=str(e),
            )

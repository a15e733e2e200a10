"""Per-record refresh pipeline shared by the scheduler, manual refresh and reruns."""

import asyncio
import logging

from fetchers.github import GitHubCIClient
from models.errors import TrackerError
from tracker.store import TrackingStore

logger = logging.getLogger(__name__)


class RecordRefresher:
    """Fetches fresh metadata for one record and merges it into the store."""

    def __init__(self, client: GitHubCIClient, store: TrackingStore):
        self.client = client
        self.store = store

    async def refresh(self, record_id: str) -> bool:
        """
        Refresh one tracked PR.

        Runs two remote reads concurrently (PR snapshot and representative
        workflow run id) and joins them before a single merge. A failure of
        either read is recorded on the record as ``last_error``; previously
        known fields stay intact. Errors never propagate out of here.

        Returns:
            True if fresh data was merged, False otherwise.
        """
        record = self.store.get(record_id)
        if record is None:
            return False

        repo, number = record.repo, record.number
        token = self.store.begin_refresh(record_id)

        try:
            snapshot, run_id = await asyncio.gather(
                asyncio.to_thread(self.client.fetch_pr_snapshot, repo, number),
                asyncio.to_thread(self.client.get_representative_run_id, repo, number),
            )
        except TrackerError as e:
            logger.warning(f"Refresh of {repo}#{number} failed: {e}")
            self.store.merge(record_id, error=str(e), token=token)
            return False

        applied = self.store.merge(record_id, snapshot.to_patch(run_id), error=None, token=token)
        if applied:
            logger.debug(f"Refreshed {repo}#{number}: {len(snapshot.jobs)} jobs")
        return applied

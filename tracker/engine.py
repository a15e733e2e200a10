"""The tracking engine: one owned instance wiring store, scheduler and reruns.

All commands must be called from the event loop the engine was started
on. Consumers observe the engine through ``engine.events`` and the query
methods; the engine knows nothing about how results are displayed.
"""

import asyncio
import logging
from typing import Optional

from fetchers.github import GitHubCIClient
from models.config_models import Config, TrackerConfig
from models.data_models import BulkRerunSummary, RerunOutcome, RerunState, TrackedPR
from models.errors import RecordNotFoundError
from storage.tracked_list import KeyValueStore, TrackedListRepository
from tracker.events import EventBus, RecordAdded, RecordRemoved, RecordUpdated, TrackerEvent
from tracker.pr_ref import parse_pr_ref
from tracker.refresh import RecordRefresher
from tracker.rerun import RerunOrchestrator
from tracker.scheduler import RefreshScheduler
from tracker.store import TrackingStore

logger = logging.getLogger(__name__)


class TrackerEngine:
    """Tracks PRs, keeps their CI status fresh and reruns failed CI."""

    def __init__(
        self,
        client: GitHubCIClient,
        repository: Optional[TrackedListRepository] = None,
        settings: Optional[TrackerConfig] = None,
        events: Optional[EventBus] = None,
    ):
        settings = settings or TrackerConfig()
        self.client = client
        self.repository = repository
        self.events = events or EventBus()
        self.store = TrackingStore(self.events)
        self.refresher = RecordRefresher(client, self.store)
        self.scheduler = RefreshScheduler(
            self.store,
            self.refresher,
            self.events,
            interval_running=settings.refresh_interval_running,
            interval_idle=settings.refresh_interval_idle,
            startup_delay=settings.startup_refresh_delay,
        )
        self.reruns = RerunOrchestrator(
            client,
            self.store,
            self.events,
            schedule_refresh=self.scheduler.spawn_refresh,
            settle_delay=settings.rerun_settle_delay,
        )

        self._save_task: Optional[asyncio.Task] = None
        self._save_dirty = False

        if repository is not None:
            self.store.load(repository.load())
            self.events.subscribe(self._on_event)

    # ─── Lifecycle ─────────────────────────────────────────────────────

    def start(self) -> None:
        """Start periodic refreshes (and the delayed startup refresh)."""
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.flush()

    # ─── Commands ──────────────────────────────────────────────────────

    def add(self, repo: str, number: int) -> Optional[TrackedPR]:
        """
        Track a PR and schedule its first refresh immediately.

        Returns:
            The placeholder record, or None if the PR is already tracked.
        """
        record = self.store.add(repo, number)
        if record is not None:
            self.scheduler.spawn_refresh(record.id)
        return record

    def add_ref(self, text: str) -> Optional[TrackedPR]:
        """Track a PR given as a URL or ``owner/repo#number``."""
        ref = parse_pr_ref(text)
        return self.add(ref.repo, ref.number)

    def remove(self, record_id: str) -> bool:
        return self.store.remove(record_id)

    async def refresh(self, record_id: str) -> bool:
        """Refresh one record now and wait for the result."""
        self._require(record_id)
        return await self.refresher.refresh(record_id)

    async def refresh_all(self) -> bool:
        return await self.scheduler.refresh_all()

    async def rerun(self, record_id: str) -> RerunOutcome:
        return await self.reruns.rerun(record_id)

    async def rerun_all_failed(self) -> BulkRerunSummary:
        return await self.reruns.rerun_all_failed()

    # ─── Queries ───────────────────────────────────────────────────────

    def records(self) -> list[TrackedPR]:
        return self.store.records()

    def get(self, record_id: str) -> Optional[TrackedPR]:
        return self.store.get(record_id)

    def find_ref(self, text: str) -> Optional[TrackedPR]:
        ref = parse_pr_ref(text)
        return self.store.find(ref.repo, ref.number)

    def grouped_by_repo(self) -> dict[str, list[TrackedPR]]:
        return self.store.grouped_by_repo()

    def rerun_state(self, record_id: str) -> RerunState:
        return self.reruns.rerun_state(record_id)

    def _require(self, record_id: str) -> TrackedPR:
        record = self.store.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"No tracked PR with id {record_id}")
        return record

    # ─── Persistence ───────────────────────────────────────────────────

    def _on_event(self, event: TrackerEvent) -> None:
        if isinstance(event, (RecordAdded, RecordUpdated, RecordRemoved)):
            self._schedule_save()

    def _schedule_save(self) -> None:
        self._save_dirty = True
        if self._save_task is not None and not self._save_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._save_now()
            return
        self._save_task = loop.create_task(self._save_loop())

    def _snapshot(self) -> list[TrackedPR]:
        return [record.model_copy(deep=True) for record in self.store.records()]

    def _save_now(self) -> None:
        self._save_dirty = False
        try:
            self.repository.save(self._snapshot())
        except Exception as e:
            logger.error(f"Failed to save tracked PRs: {e}")

    async def _save_loop(self) -> None:
        # Coalesces bursts of changes into as few writes as possible
        while self._save_dirty:
            self._save_dirty = False
            try:
                await asyncio.to_thread(self.repository.save, self._snapshot())
            except Exception as e:
                logger.error(f"Failed to save tracked PRs: {e}")

    async def wait_idle(self) -> None:
        """Wait for background refreshes (including delayed follow-ups) and saves."""
        await self.scheduler.drain()
        await self.flush()

    async def flush(self) -> None:
        """Wait until pending changes are written."""
        if self._save_task is not None:
            await self._save_task


def build_kv_store(config: Config) -> KeyValueStore:
    """Supabase when configured, otherwise the local state file."""
    if config.credentials.use_supabase:
        from storage.supabase_client import SupabaseKVStore
        return SupabaseKVStore(config.credentials.supabase_url, config.credentials.supabase_key)

    from storage.json_store import JsonFileStore
    return JsonFileStore(config.tracker.state_file)


def build_engine(config: Config, events: Optional[EventBus] = None) -> TrackerEngine:
    """
    Create an engine from validated configuration.

    Raises:
        ConfigurationError: If no GitHub token is configured
    """
    client = GitHubCIClient(config.credentials.github_token or "")
    repository = TrackedListRepository(build_kv_store(config))
    return TrackerEngine(client, repository=repository, settings=config.tracker, events=events)

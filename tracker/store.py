"""In-memory store of tracked pull requests.

Owned by the engine and only mutated from the event loop thread, so there
is no locking. Completions of concurrent refreshes arrive in any order;
``merge`` uses per-record refresh tokens so an older completion can never
overwrite the result of a newer one.
"""

import logging
from typing import Iterable, Optional

from models.data_models import RecordPatch, TrackedPR
from tracker.events import EventBus, RecordAdded, RecordRemoved, RecordUpdated

logger = logging.getLogger(__name__)


class TrackingStore:
    """Ordered set of TrackedPR records, unique by (repo, number)."""

    def __init__(self, events: Optional[EventBus] = None):
        self.events = events or EventBus()
        self._records: list[TrackedPR] = []
        self._issued_tokens: dict[str, int] = {}
        self._applied_tokens: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._records)

    # ─── Queries ───────────────────────────────────────────────────────

    def records(self) -> list[TrackedPR]:
        """Snapshot of all records, newest first."""
        return list(self._records)

    def get(self, record_id: str) -> Optional[TrackedPR]:
        return next((r for r in self._records if r.id == record_id), None)

    def find(self, repo: str, number: int) -> Optional[TrackedPR]:
        return next((r for r in self._records if r.repo == repo and r.number == number), None)

    def failed_records(self) -> list[TrackedPR]:
        return [r for r in self._records if r.ci_status == "failure"]

    def has_running(self) -> bool:
        return any(r.ci_status == "running" for r in self._records)

    def grouped_by_repo(self) -> dict[str, list[TrackedPR]]:
        """Records grouped by repository, repos in first-seen order."""
        groups: dict[str, list[TrackedPR]] = {}
        for record in self._records:
            groups.setdefault(record.repo, []).append(record)
        return groups

    # ─── Mutations ─────────────────────────────────────────────────────

    def add(self, repo: str, number: int) -> Optional[TrackedPR]:
        """
        Start tracking ``repo#number``.

        Returns:
            The new placeholder record (inserted at the front), or None if
            the pair is already tracked.
        """
        if self.find(repo, number) is not None:
            logger.debug(f"{repo}#{number} is already tracked")
            return None

        record = TrackedPR(repo=repo, number=number, is_loading=True)
        self._records.insert(0, record)
        logger.info(f"Tracking {repo}#{number}")
        self.events.emit(RecordAdded(record=record.model_copy(deep=True)))
        return record

    def remove(self, record_id: str) -> bool:
        """Stop tracking a record. Removing an unknown id is a no-op."""
        record = self.get(record_id)
        if record is None:
            return False

        self._records.remove(record)
        self._issued_tokens.pop(record_id, None)
        self._applied_tokens.pop(record_id, None)
        logger.info(f"Stopped tracking {record.repo}#{record.number}")
        self.events.emit(RecordRemoved(record_id=record_id))
        return True

    def begin_refresh(self, record_id: str) -> Optional[int]:
        """
        Mark a record as loading and issue a token for the refresh.

        Returns:
            Token to pass to ``merge``, or None if the record is unknown.
        """
        record = self.get(record_id)
        if record is None:
            return None

        token = self._issued_tokens.get(record_id, 0) + 1
        self._issued_tokens[record_id] = token
        if not record.is_loading:
            record.is_loading = True
            self.events.emit(RecordUpdated(record=record.model_copy(deep=True)))
        return token

    def merge(
        self,
        record_id: str,
        patch: Optional[RecordPatch] = None,
        *,
        error: Optional[str] = None,
        token: Optional[int] = None,
    ) -> bool:
        """
        Apply the result of one remote operation to a record.

        Fields set on ``patch`` overwrite the record; unset fields are left
        alone. ``is_loading`` is always cleared and ``last_error`` is set to
        ``error`` (None clears it).

        Args:
            record_id: Target record
            patch: Fields to overwrite (None for a failed operation)
            error: Error message of the operation, None on success
            token: Token from ``begin_refresh``; a completion older than one
                   already applied is dropped

        Returns:
            True if the record was updated, False if it is unknown or the
            completion was stale.
        """
        record = self.get(record_id)
        if record is None:
            return False

        if token is not None:
            if token < self._applied_tokens.get(record_id, 0):
                logger.debug(f"Dropping stale refresh {token} for {record.repo}#{record.number}")
                return False
            self._applied_tokens[record_id] = token

        if patch is not None:
            for field in patch.model_fields_set:
                value = getattr(patch, field)
                if field == "jobs":
                    value = [job.model_copy() for job in value]
                setattr(record, field, value)

        record.last_error = error
        record.is_loading = False
        self.events.emit(RecordUpdated(record=record.model_copy(deep=True)))
        return True

    def load(self, records: Iterable[TrackedPR]) -> int:
        """
        Seed the store with persisted records, keeping their order.

        Duplicated (repo, number) pairs are dropped and transient fields are
        reset. Returns the number of records loaded.
        """
        loaded = 0
        for record in records:
            if self.find(record.repo, record.number) is not None:
                logger.warning(f"Skipping duplicate saved record {record.repo}#{record.number}")
                continue
            record.is_loading = False
            record.last_error = None
            record.representative_run_id = None
            self._records.append(record)
            loaded += 1
        return loaded

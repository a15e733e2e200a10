"""Load and save the tracked PR list through a key-value store."""

import logging
from typing import Any, Iterable, Optional, Protocol

from pydantic import ValidationError

from models.data_models import TrackedPR

logger = logging.getLogger(__name__)

TRACKED_PRS_KEY = "tracked_prs"


class KeyValueStore(Protocol):
    """Minimal persistence interface (JsonFileStore, SupabaseKVStore)."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...


class TrackedListRepository:
    """Persists the ordered tracked list without transient fields."""

    def __init__(self, store: KeyValueStore, key: str = TRACKED_PRS_KEY):
        self.store = store
        self.key = key

    def load(self) -> list[TrackedPR]:
        """
        Read the saved list.

        Unreadable or malformed state is logged and treated as empty;
        individual malformed entries are skipped.
        """
        try:
            raw = self.store.get(self.key)
        except Exception as e:
            logger.error(f"Failed to load tracked PRs: {e}")
            return []

        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.error(f"Saved '{self.key}' is not a list, ignoring it")
            return []

        records = []
        for item in raw:
            try:
                records.append(TrackedPR.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed saved PR {item!r}: {e}")
        logger.info(f"Loaded {len(records)} tracked PRs")
        return records

    def save(self, records: Iterable[TrackedPR]) -> None:
        payload = [record.to_persisted() for record in records]
        self.store.set(self.key, payload)
        logger.debug(f"Saved {len(payload)} tracked PRs")

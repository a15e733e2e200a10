"""
Supabase key-value storage for tracker state.

Stores each key as one row of the ``tracker_state`` table (created by
``setup/setup_database.py``) with the value in a JSONB column. Writes are
upserts, so saving the same key repeatedly is idempotent.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from supabase import Client, create_client

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "tracker_state"


class SupabaseKVStore:
    """Key-value store backed by a Supabase table."""

    def __init__(self, supabase_url: str, supabase_key: str, table_name: str = DEFAULT_TABLE):
        """
        Initialize Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key (anon/public key)
            table_name: Table holding (key, value, updated_at) rows
        """
        self.client: Client = create_client(supabase_url, supabase_key)
        self.table_name = table_name
        logger.info(f"Initialized SupabaseKVStore for {supabase_url}")

    def get(self, key: str) -> Optional[Any]:
        """
        Read the value stored under ``key``.

        Returns:
            The decoded JSON value, or None if the key has never been saved

        Raises:
            Exception if the query fails
        """
        try:
            result = (
                self.client.table(self.table_name)
                .select("value")
                .eq("key", key)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to read '{key}' from {self.table_name}: {e}")
            raise

        if not result.data:
            logger.debug(f"No value stored for '{key}'")
            return None
        return result.data[0]["value"]

    def set(self, key: str, value: Any) -> None:
        """
        Insert or replace the value stored under ``key``.

        Raises:
            Exception if the upsert fails
        """
        record = {
            "key": key,
            "value": value,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.client.table(self.table_name).upsert(record, on_conflict="key").execute()
            logger.debug(f"Saved '{key}' to {self.table_name}")
        except Exception as e:
            logger.error(f"Failed to save '{key}' to {self.table_name}: {e}")
            raise

# =============================================================================
# survey_core/data/supabase_client.py
# Supabase Client and Remote Response Writer
# =============================================================================

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging

import streamlit as st

from survey_core.errors import RemoteWriteError

logger = logging.getLogger(__name__)


def get_supabase_client(url: Optional[str], key: Optional[str]):
    """
    Initialize and return a Supabase client.

    Returns:
        Supabase client instance or None if not configured
    """
    if not url or not key:
        logger.warning("Supabase credentials not found; remote delivery disabled")
        return None

    try:
        from supabase import create_client, Client
        client: Client = create_client(url, key)
        return client
    except Exception as e:
        logger.error(f"Failed to initialize Supabase client: {e}")
        return None


@st.cache_resource(ttl=3600)  # Cache for 1 hour, then refresh
def get_cached_supabase_client(url: Optional[str], key: Optional[str]):
    """Get cached Supabase client (reused across sessions)."""
    return get_supabase_client(url, key)


class RemoteWriter(ABC):
    """Append-only write to the remote system of record."""

    @abstractmethod
    def write(self, payload: Dict[str, Any], delivered_at: int) -> str:
        """
        Store one survey response remotely.

        Args:
            payload: Survey response record
            delivered_at: Submission time in ms since epoch

        Returns:
            Identifier assigned by the remote store

        Raises:
            RemoteWriteError: on any failure; nothing is written in that case
        """


class SupabaseResponseWriter(RemoteWriter):
    """
    Inserts survey responses into the Supabase `responses` table.

    The submission time is stored in the `timestamp` column (ms since epoch).
    """

    def __init__(self, client: Any, table_name: str = "responses"):
        self.client = client
        self.table_name = table_name

    def is_connected(self) -> bool:
        """Check if Supabase client is available."""
        return self.client is not None

    def write(self, payload: Dict[str, Any], delivered_at: int) -> str:
        if not self.is_connected():
            raise RemoteWriteError("Supabase is not configured", table=self.table_name)

        record = {**payload, "timestamp": delivered_at}
        try:
            response = self.client.table(self.table_name).insert(record).execute()
        except Exception as e:
            raise RemoteWriteError(
                f"Error inserting response: {e}",
                table=self.table_name,
            ) from e

        rows = getattr(response, "data", None) or []
        if not rows or rows[0].get("id") is None:
            raise RemoteWriteError(
                "Supabase returned no row for the inserted response",
                table=self.table_name,
            )

        remote_id = str(rows[0]["id"])
        logger.info(f"Response written to {self.table_name} with ID: {remote_id}")
        return remote_id

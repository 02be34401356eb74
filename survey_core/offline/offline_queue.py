# =============================================================================
# survey_core/offline/offline_queue.py
# Durable Local Queue for Survey Responses
# =============================================================================
"""
OfflineQueue - the single queue API used by the sync engine.

Entries are written to the SQLite LocalDatabase. When that store cannot
accept a write, the entry goes to the JSON FallbackStore instead. Reads,
marks and deletes consult both stores, so callers never need to know which
one holds a given entry.
"""

from __future__ import annotations
import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
import logging

import pandas as pd

from survey_core.errors import StorageUnavailableError
from survey_core.offline.fallback_store import FallbackStore
from survey_core.offline.local_database import LocalDatabase
from survey_core.offline.records import (
    QueuedSubmission,
    clean_payload,
    generate_submission_id,
    now_ms,
)

logger = logging.getLogger(__name__)


@dataclass
class StorageStatus:
    """Bytes used by the queue files and bytes available to them."""
    usage: int = 0
    quota: int = 0


class OfflineQueue:
    """
    Crash-durable queue of survey responses awaiting remote delivery.

    Usage:
        queue = get_offline_queue()
        queue_id = queue.enqueue({"refId": "VZM-CSM-1700000000000-0042", ...})
        for entry in queue.list_pending():
            ...
            queue.mark_synced(entry.id)
            queue.delete(entry.id)
    """

    def __init__(
        self,
        primary: Optional[LocalDatabase] = None,
        fallback: Optional[FallbackStore] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Args:
            primary: SQLite store (default location if omitted)
            fallback: JSON file store (default location if omitted)
            clock: Millisecond clock used for enqueued_at
        """
        self.primary = primary or LocalDatabase()
        self.fallback = fallback or FallbackStore()
        self._clock = clock

    @property
    def stores(self) -> List[Any]:
        return [self.primary, self.fallback]

    def _on_each_store(
        self,
        action: str,
        op: Callable[[Any], Any],
        strict: bool = False,
    ) -> List[Any]:
        """
        Run op against both stores.

        Args:
            action: Description used in log messages
            op: Callable taking a store
            strict: Fail if any store that exists on disk failed. Otherwise
                fail only when every store failed.
        """
        results = []
        errors = []
        blocking = []
        for store in self.stores:
            try:
                results.append(op(store))
            except StorageUnavailableError as e:
                logger.warning(f"Could not {action} in {e.details.get('store')}: {e.message}")
                errors.append(e)
                # A store that was never created cannot hold the entry
                if strict and store.exists():
                    blocking.append(e)
        if blocking:
            raise blocking[0]
        if errors and not results:
            raise errors[0]
        return results

    # =========================================================================
    # QUEUE OPERATIONS
    # =========================================================================

    def enqueue(self, payload: Dict[str, Any]) -> str:
        """
        Store a survey response for later delivery.

        Returns:
            The new entry id

        Raises:
            StorageUnavailableError: neither store accepted the entry
            TypeError: the payload is not a JSON-serializable dict
        """
        clean = clean_payload(payload)
        json.dumps(clean)  # reject unserializable payloads before touching storage

        enqueued_at = self._clock()
        submission = QueuedSubmission(
            id=generate_submission_id(enqueued_at),
            payload=clean,
            enqueued_at=enqueued_at,
        )

        try:
            self.primary.insert_submission(submission)
            return submission.id
        except StorageUnavailableError as primary_error:
            logger.warning(f"Local database unavailable, using fallback store: {primary_error.message}")
            try:
                self.fallback.insert_submission(submission)
            except StorageUnavailableError as fallback_error:
                logger.error(f"Fallback store also unavailable: {fallback_error.message}")
                raise StorageUnavailableError(
                    "No local store can accept the response",
                    details={
                        "primary_error": primary_error.message,
                        "fallback_error": fallback_error.message,
                    },
                ) from fallback_error
            return submission.id

    def list_pending(self) -> List[QueuedSubmission]:
        """All unsynced entries from both stores, oldest first."""
        pending: List[QueuedSubmission] = []
        for entries in self._on_each_store("list pending responses",
                                           lambda store: store.get_pending_submissions()):
            pending.extend(entries)

        seen = set()
        unique = []
        for entry in pending:
            if entry.id not in seen:
                seen.add(entry.id)
                unique.append(entry)

        # sorted() is stable, so ties keep per-store insertion order
        return sorted(unique, key=lambda entry: entry.enqueued_at)

    def mark_synced(self, submission_id: str) -> None:
        """
        Flag an entry as delivered. Unknown ids are ignored.

        Raises:
            StorageUnavailableError: a store that may hold the entry failed
        """
        self._on_each_store("mark response synced",
                            lambda store: store.mark_synced(submission_id), strict=True)

    def delete(self, submission_id: str) -> None:
        """Remove an entry. Unknown ids are ignored."""
        self._on_each_store("delete response",
                            lambda store: store.delete_submission(submission_id), strict=True)

    def clear(self) -> None:
        """Remove every entry from both stores."""
        removed = self._on_each_store("clear responses",
                                      lambda store: store.clear_submissions(), strict=True)
        logger.info(f"Offline queue cleared ({sum(removed)} entries removed)")

    # =========================================================================
    # MAINTENANCE & STATUS
    # =========================================================================

    def purge_synced(self) -> int:
        """Delete entries left flagged as synced by an interrupted drain."""
        removed = sum(self._on_each_store("purge synced responses",
                                          lambda store: store.delete_synced()))
        if removed:
            logger.info(f"Purged {removed} already-synced responses")
        return removed

    def pending_count(self) -> int:
        return sum(self._on_each_store("count pending responses",
                                       lambda store: store.get_pending_count()))

    def storage_status(self) -> StorageStatus:
        """Usage of the queue files and the space left on their volume."""
        usage = self.primary.database_size() + self.fallback.file_size()
        directory = self.primary.db_path.parent
        while not directory.exists() and directory != directory.parent:
            directory = directory.parent
        try:
            free = shutil.disk_usage(str(directory)).free
        except OSError as e:
            logger.warning(f"Could not read disk usage for {directory}: {e}")
            free = 0
        return StorageStatus(usage=usage, quota=usage + free)

    def to_dataframe(self) -> pd.DataFrame:
        """Pending entries as a DataFrame for the operator page."""
        rows = [
            {
                "id": entry.id,
                "ref_id": entry.payload.get("refId"),
                "enqueued_at": pd.to_datetime(entry.enqueued_at, unit="ms"),
                "store": entry.source,
            }
            for entry in self.list_pending()
        ]
        return pd.DataFrame(rows, columns=["id", "ref_id", "enqueued_at", "store"])


# Singleton accessor
_offline_queue: Optional[OfflineQueue] = None


def get_offline_queue(
    db_path: Optional[Path] = None,
    fallback_path: Optional[Path] = None,
    fallback_max_entries: int = FallbackStore.DEFAULT_MAX_ENTRIES,
) -> OfflineQueue:
    """Get the global OfflineQueue instance."""
    global _offline_queue
    if _offline_queue is None:
        queue = OfflineQueue(
            primary=LocalDatabase(db_path),
            fallback=FallbackStore(fallback_path, max_entries=fallback_max_entries),
        )
        try:
            queue.purge_synced()
        except StorageUnavailableError as e:
            logger.warning(f"Skipping start-up purge: {e.message}")
        _offline_queue = queue
    return _offline_queue

# =============================================================================
# survey_core/offline/sync_engine.py
# Submission Routing and Offline Queue Synchronization
# =============================================================================
"""
SyncEngine - routes each survey submission and drains the offline queue.

Features:
- Direct delivery when online, local queue when offline
- Fallback to the local queue when direct delivery fails
- Queue drain on reconnect, preserving the original submission time
- Single drain pass at a time
- Sync status tracking and event callbacks

Retries are driven by reconnect events and the operator's "sync now"
action only; there is no timer or backoff.
"""

from __future__ import annotations
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging

from survey_core.config import ConnectivitySettings
from survey_core.errors import (
    HardFailureError,
    RemoteWriteError,
    StorageUnavailableError,
    SurveyError,
)
from survey_core.logging import LogContext
from survey_core.offline.connection_manager import ConnectionManager
from survey_core.offline.offline_queue import OfflineQueue
from survey_core.offline.records import clean_payload, now_ms

logger = logging.getLogger(__name__)


class SubmitOutcome(Enum):
    """What happened to a submission."""
    SAVED_OFFLINE = "saved_offline"
    DELIVERED = "delivered"
    SAVED_OFFLINE_FALLBACK = "saved_offline_fallback"
    HARD_FAILURE = "hard_failure"


@dataclass
class SubmitResult:
    """Result of SyncEngine.submit()."""
    outcome: SubmitOutcome
    queue_id: Optional[str] = None
    remote_id: Optional[str] = None
    error: Optional[SurveyError] = None

    @property
    def success(self) -> bool:
        """Delivered and saved-offline both count as recorded."""
        return self.outcome != SubmitOutcome.HARD_FAILURE

    def __bool__(self) -> bool:
        return self.success


@dataclass
class DrainSummary:
    """Result of one drain pass."""
    attempted: int = 0
    succeeded: int = 0
    skipped: bool = False       # Another pass was already running

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded


@dataclass
class SyncState:
    """Current sync state."""
    is_syncing: bool = False
    last_sync: Optional[datetime] = None
    last_sync_success: Optional[datetime] = None
    last_summary: Optional[DrainSummary] = None
    failed_count: int = 0
    total_synced: int = 0


class SyncEngine:
    """
    Sync driver between the offline queue and the remote response store.

    Usage:
        engine = get_sync_engine()
        result = engine.submit(response)
        if result.outcome is SubmitOutcome.HARD_FAILURE:
            ...
    """

    def __init__(
        self,
        queue: OfflineQueue,
        connection_manager: ConnectionManager,
        remote_writer: Any,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Args:
            queue: Durable local queue
            connection_manager: Connectivity monitor
            remote_writer: Object with write(payload, delivered_at) -> id
            clock: Millisecond clock for direct deliveries
        """
        self.queue = queue
        self.connection_manager = connection_manager
        self.remote_writer = remote_writer
        self._clock = clock
        self._state = SyncState()
        self._drain_lock = threading.Lock()
        self._subscription: Optional[int] = None
        self._callbacks: List[Callable[[SyncState], None]] = []

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    @property
    def pending_count(self) -> int:
        return self.queue.pending_count()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """
        Subscribe to reconnect events. Entries left over from an earlier
        session are drained once if the device is online.
        """
        if self._subscription is not None:
            return

        self._subscription = self.connection_manager.subscribe(self._on_reconnect)
        logger.info("SyncEngine started")

        if not self.connection_manager.is_offline_path():
            try:
                has_pending = self.queue.pending_count() > 0
            except StorageUnavailableError as e:
                logger.warning(f"Could not read offline queue at start-up: {e.message}")
                has_pending = False
            if has_pending:
                self.drain_queue()

    def stop(self) -> None:
        """Unsubscribe from reconnect events."""
        if self._subscription is not None:
            self.connection_manager.unsubscribe(self._subscription)
            self._subscription = None
            logger.info("SyncEngine stopped")

    def _on_reconnect(self) -> None:
        if self.connection_manager.offline_mode:
            logger.info("Connection restored but offline mode is on; keeping responses queued")
            return
        logger.info("Connection restored, triggering sync")
        self.drain_queue()

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def submit(self, payload: Dict[str, Any]) -> SubmitResult:
        """
        Deliver a survey response, or queue it when that is not possible.

        Returns:
            SubmitResult; HARD_FAILURE means the response was not recorded

        Raises:
            TypeError: the payload is not a dict
        """
        payload = clean_payload(payload)

        if self.connection_manager.is_offline_path():
            try:
                queue_id = self.queue.enqueue(payload)
            except StorageUnavailableError as e:
                return self._hard_failure(payload, storage_error=e)
            logger.info(f"Offline path: response queued as {queue_id}")
            return SubmitResult(SubmitOutcome.SAVED_OFFLINE, queue_id=queue_id)

        try:
            remote_id = self.remote_writer.write(payload, self._clock())
            return SubmitResult(SubmitOutcome.DELIVERED, remote_id=str(remote_id))
        except Exception as e:
            remote_error = e if isinstance(e, RemoteWriteError) else RemoteWriteError(str(e))
            logger.warning(f"Direct delivery failed, queueing response: {remote_error.message}")

        try:
            queue_id = self.queue.enqueue(payload)
        except StorageUnavailableError as e:
            return self._hard_failure(payload, remote_error=remote_error, storage_error=e)

        logger.info(f"Response queued as {queue_id} after failed delivery")
        return SubmitResult(
            SubmitOutcome.SAVED_OFFLINE_FALLBACK,
            queue_id=queue_id,
            error=remote_error,
        )

    def _hard_failure(
        self,
        payload: Dict[str, Any],
        storage_error: StorageUnavailableError,
        remote_error: Optional[RemoteWriteError] = None,
    ) -> SubmitResult:
        error = HardFailureError(
            "Your response could not be saved.",
            remote_error=remote_error.message if remote_error else None,
            storage_error=storage_error.message,
            details={"ref_id": payload.get("refId")},
        )
        logger.error(str(error))
        return SubmitResult(SubmitOutcome.HARD_FAILURE, error=error)

    # =========================================================================
    # DRAIN
    # =========================================================================

    def drain_queue(self) -> DrainSummary:
        """
        Attempt remote delivery of every queued response.

        Delivered entries are marked synced and deleted; failed entries stay
        queued. A call made while another pass is running returns a skipped
        summary.
        """
        if not self._drain_lock.acquire(blocking=False):
            logger.info("Drain already in progress; ignoring request")
            return DrainSummary(skipped=True)

        self._state.is_syncing = True
        self._state.last_sync = datetime.now()
        self._notify_callbacks()

        try:
            summary = self._drain_pending()
        finally:
            self._state.is_syncing = False
            self._drain_lock.release()

        self._state.last_summary = summary
        self._state.total_synced += summary.succeeded
        self._state.failed_count = summary.failed
        if summary.attempted and summary.failed == 0:
            self._state.last_sync_success = datetime.now()
        self._notify_callbacks()
        return summary

    def _drain_pending(self) -> DrainSummary:
        try:
            pending = self.queue.list_pending()
        except StorageUnavailableError as e:
            logger.error(f"Could not read offline queue: {e.message}")
            return DrainSummary()

        summary = DrainSummary()
        if not pending:
            return summary

        with LogContext(logger, f"Syncing {len(pending)} queued responses"):
            for entry in pending:
                summary.attempted += 1
                try:
                    self.remote_writer.write(entry.payload, entry.enqueued_at)
                except Exception as e:
                    logger.warning(f"Sync failed for {entry.id}, keeping it queued: {e}")
                    continue

                summary.succeeded += 1
                try:
                    self.queue.mark_synced(entry.id)
                    self.queue.delete(entry.id)
                except StorageUnavailableError as e:
                    logger.error(f"Delivered {entry.id} but could not remove it from the queue: {e.message}")

            logger.info(f"Sync complete: {summary.succeeded} success, {summary.failed} failed")

        return summary

    def sync_now(self) -> DrainSummary:
        """
        Operator-triggered drain, for entries queued while the network stayed
        up but the remote store was failing.
        """
        if self.connection_manager.is_offline_path():
            logger.debug("Cannot sync: offline path active")
            return DrainSummary()
        return self.drain_queue()

    def set_offline_mode(self, enabled: bool) -> None:
        """
        Persist the operator's offline mode flag and apply it.

        Turning offline mode off does not drain the queue by itself.
        """
        try:
            self.queue.primary.set_setting("offline_mode", bool(enabled))
        except StorageUnavailableError as e:
            logger.warning(f"Offline mode applied but not persisted: {e.message}")
        self.connection_manager.apply_settings(ConnectivitySettings(offline_mode=bool(enabled)))

    # =========================================================================
    # CALLBACKS & STATUS
    # =========================================================================

    def register_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Register a callback for sync state changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in self._callbacks:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in sync callback: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        try:
            pending = self.pending_count
        except StorageUnavailableError:
            pending = None
        summary = self._state.last_summary
        return {
            "is_syncing": self._state.is_syncing,
            "last_sync": self._state.last_sync.isoformat() if self._state.last_sync else None,
            "last_success": self._state.last_sync_success.isoformat() if self._state.last_sync_success else None,
            "last_attempted": summary.attempted if summary else 0,
            "last_succeeded": summary.succeeded if summary else 0,
            "pending_count": pending,
            "failed_count": self._state.failed_count,
            "total_synced": self._state.total_synced,
        }


# Singleton accessor
_sync_engine: Optional[SyncEngine] = None


def get_sync_engine(settings=None) -> SyncEngine:
    """
    Get the global SyncEngine instance, wired from SurveySettings.
    """
    global _sync_engine
    if _sync_engine is None:
        from survey_core.config import load_settings
        from survey_core.data.supabase_client import (
            SupabaseResponseWriter,
            get_cached_supabase_client,
        )
        from survey_core.offline.connection_manager import get_connection_manager
        from survey_core.offline.offline_queue import get_offline_queue

        settings = settings or load_settings()
        queue = get_offline_queue(
            db_path=settings.db_path,
            fallback_path=settings.fallback_path,
            fallback_max_entries=settings.fallback_max_entries,
        )

        connectivity = settings.connectivity
        try:
            stored = queue.primary.get_setting("offline_mode")
            if stored is not None:
                connectivity = ConnectivitySettings(offline_mode=bool(stored))
        except StorageUnavailableError as e:
            logger.warning(f"Could not read stored offline mode: {e.message}")

        manager = get_connection_manager(connectivity, supabase_url=settings.supabase_url)
        writer = SupabaseResponseWriter(
            get_cached_supabase_client(settings.supabase_url, settings.supabase_key),
            table_name=settings.responses_table,
        )

        engine = SyncEngine(queue, manager, writer)
        engine.start()
        _sync_engine = engine
    return _sync_engine

# =============================================================================
# survey_core/offline/__init__.py
# Offline Response Queue for the Survey Kiosk
# =============================================================================
"""
Offline Response Queue

Survey responses go straight to Supabase when the kiosk is online. When the
kiosk is offline (or offline mode is switched on, or Supabase rejects the
write) they are kept on the device and delivered when connectivity returns.

Architecture:
------------
    survey form
        │ submit()
        ▼
    ┌──────────────┐   is_offline_path()   ┌────────────────────┐
    │  SyncEngine  │ ────────────────────► │ ConnectionManager  │
    └──────────────┘ ◄──── reconnect ───── └────────────────────┘
        │        │
        │        └── write(payload, ts) ──► Supabase `responses`
        ▼
    ┌──────────────┐
    │ OfflineQueue │ ── LocalDatabase (SQLite)
    └──────────────┘ ── FallbackStore (JSON file)

Usage:
------
from survey_core.offline import get_sync_engine, SubmitOutcome

engine = get_sync_engine()
result = engine.submit(response)
print(result.outcome.value)          # "delivered", "saved_offline", ...
print(engine.pending_count)          # responses still on the device
"""

from survey_core.offline.records import QueuedSubmission

from survey_core.offline.local_database import LocalDatabase

from survey_core.offline.fallback_store import FallbackStore

from survey_core.offline.offline_queue import (
    OfflineQueue,
    StorageStatus,
    get_offline_queue,
)

from survey_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
    NetworkProbe,
    get_connection_manager,
)

from survey_core.offline.sync_engine import (
    SyncEngine,
    SyncState,
    SubmitOutcome,
    SubmitResult,
    DrainSummary,
    get_sync_engine,
)

__all__ = [
    # Local storage
    "QueuedSubmission",
    "LocalDatabase",
    "FallbackStore",
    "OfflineQueue",
    "StorageStatus",
    "get_offline_queue",
    # Connection Management
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    "NetworkProbe",
    "get_connection_manager",
    # Sync Engine
    "SyncEngine",
    "SyncState",
    "SubmitOutcome",
    "SubmitResult",
    "DrainSummary",
    "get_sync_engine",
]

# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import threading
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from survey_core.config import ConnectivitySettings
from survey_core.errors import RemoteWriteError
from survey_core.offline import (
    ConnectionManager,
    FallbackStore,
    LocalDatabase,
    OfflineQueue,
    SyncEngine,
)


ENQUEUE_TIME = 1_700_000_000_000        # 2023-11-14T22:13:20Z in ms
DELIVERY_TIME = ENQUEUE_TIME + 3_600_000


# =============================================================================
# TEST DOUBLES
# =============================================================================

class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = ENQUEUE_TIME):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class StubWriter:
    """
    Remote writer recording every call.

    Args:
        fail_ref_ids: refIds whose writes raise RemoteWriteError
        fail_all: make every write raise
        gate: if set, each write waits on this event before returning
    """

    def __init__(self, fail_ref_ids=(), fail_all: bool = False,
                 gate: Optional[threading.Event] = None):
        self.fail_ref_ids = set(fail_ref_ids)
        self.fail_all = fail_all
        self.gate = gate
        self.started = threading.Event()
        self.calls: List[Tuple[Dict[str, Any], int]] = []
        self._lock = threading.Lock()

    def write(self, payload: Dict[str, Any], delivered_at: int) -> str:
        with self._lock:
            self.calls.append((payload, delivered_at))
            call_number = len(self.calls)
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail_all or payload.get("refId") in self.fail_ref_ids:
            raise RemoteWriteError(f"Simulated failure for {payload.get('refId')}")
        return f"remote-{call_number}"

    @property
    def delivered_ref_ids(self) -> List[str]:
        return [payload.get("refId") for payload, _ in self.calls]


# =============================================================================
# STORAGE FIXTURES
# =============================================================================

@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "local_data" / "survey_queue.db"


@pytest.fixture
def fallback_path(tmp_path):
    return tmp_path / "local_data" / "pending_responses.json"


@pytest.fixture
def blocked_dir(tmp_path):
    """A path under a regular file: any store placed here cannot be created."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    return blocker


@pytest.fixture
def local_db(db_path):
    db = LocalDatabase(db_path)
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def fallback_store(fallback_path):
    return FallbackStore(fallback_path, max_entries=5)


@pytest.fixture
def enqueue_time():
    return ENQUEUE_TIME


@pytest.fixture
def delivery_time():
    """Time reported by the engine clock for direct deliveries."""
    return DELIVERY_TIME


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def offline_queue(local_db, fallback_store, clock):
    return OfflineQueue(primary=local_db, fallback=fallback_store, clock=clock)


@pytest.fixture
def broken_primary_queue(blocked_dir, fallback_store, clock):
    """Queue whose SQLite store cannot be opened."""
    return OfflineQueue(
        primary=LocalDatabase(blocked_dir / "survey_queue.db"),
        fallback=fallback_store,
        clock=clock,
    )


@pytest.fixture
def broken_queue(blocked_dir, clock):
    """Queue where neither store can be written."""
    return OfflineQueue(
        primary=LocalDatabase(blocked_dir / "survey_queue.db"),
        fallback=FallbackStore(blocked_dir / "pending_responses.json"),
        clock=clock,
    )


# =============================================================================
# SYNC FIXTURES
# =============================================================================

@pytest.fixture
def connection_manager():
    """Manager driven by notify_network_change() instead of a socket probe."""
    return ConnectionManager(ConnectivitySettings(offline_mode=False))


@pytest.fixture
def stub_writer():
    return StubWriter()


@pytest.fixture
def make_writer():
    """StubWriter factory for tests needing failures or a gate."""
    return StubWriter


@pytest.fixture
def make_engine(offline_queue, connection_manager):
    """Build a SyncEngine over the shared queue and manager."""
    def _make(writer, queue=None, clock=None):
        return SyncEngine(
            queue or offline_queue,
            connection_manager,
            writer,
            clock=clock or FakeClock(DELIVERY_TIME),
        )
    return _make


@pytest.fixture
def sample_payload():
    return {
        "refId": "VZM-CSM-1700000000000-0042",
        "date": "2023-11-14",
        "clientType": "Citizen",
        "sex": "Female",
        "age": "34",
        "region": "Region III",
        "service": "Business permit",
        "sqd0": "5",
        "sqd1": "4",
        "sqdAvg": 4.5,
        "suggestions": "",
        "email": "",
    }


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_streamlit(monkeypatch):
    """Replace the Streamlit module used by the error handlers"""
    from survey_core.errors import handlers

    mock_st = MagicMock()
    mock_st.session_state = {}
    monkeypatch.setattr(handlers, "st", mock_st)
    return mock_st


@pytest.fixture
def mock_supabase():
    """Mock Supabase client"""
    mock_client = MagicMock()
    mock_client.table.return_value.insert.return_value.execute.return_value.data = [{"id": 101}]
    return mock_client

# =============================================================================
# tests/unit/test_sync_engine.py
# Unit Tests for the Sync Driver
# =============================================================================

import json

import numpy as np
import pytest

from survey_core.config import ConnectivitySettings
from survey_core.errors import HardFailureError, RemoteWriteError, StorageUnavailableError
from survey_core.offline import DrainSummary, OfflineQueue, SubmitOutcome


@pytest.fixture
def engine(make_engine, stub_writer):
    return make_engine(stub_writer)


def go_offline(manager):
    manager.notify_network_change(False)


class TestSubmit:
    """Routing of a single submission"""

    def test_offline_mode_queues_without_remote_call(self, engine, stub_writer,
                                                     offline_queue, sample_payload):
        """Offline mode queues the response and skips the remote store"""
        engine.connection_manager.apply_settings(ConnectivitySettings(offline_mode=True))

        result = engine.submit(sample_payload)

        assert result.outcome == SubmitOutcome.SAVED_OFFLINE
        assert result.queue_id is not None
        assert stub_writer.calls == []
        assert [e.id for e in offline_queue.list_pending()] == [result.queue_id]

    def test_device_offline_queues(self, engine, stub_writer, offline_queue, sample_payload):
        """Device offline queues the response as saved offline"""
        go_offline(engine.connection_manager)

        result = engine.submit(sample_payload)

        assert result.outcome == SubmitOutcome.SAVED_OFFLINE
        assert result.success
        assert stub_writer.calls == []
        assert offline_queue.pending_count() == 1

    def test_online_delivers_directly(self, engine, stub_writer, offline_queue,
                                      sample_payload, delivery_time):
        """Online submission is written with the engine clock time"""
        result = engine.submit(sample_payload)

        assert result.outcome == SubmitOutcome.DELIVERED
        assert result.remote_id == "remote-1"
        assert stub_writer.calls == [(sample_payload, delivery_time)]
        assert offline_queue.pending_count() == 0

    def test_failed_delivery_falls_back_to_queue(self, make_engine, make_writer, offline_queue,
                                                 sample_payload, enqueue_time):
        """Failed remote write queues the response with the error attached"""
        writer = make_writer(fail_all=True)
        engine = make_engine(writer)

        result = engine.submit(sample_payload)

        assert result.outcome == SubmitOutcome.SAVED_OFFLINE_FALLBACK
        assert isinstance(result.error, RemoteWriteError)
        assert len(writer.calls) == 1
        [entry] = offline_queue.list_pending()
        assert entry.id == result.queue_id
        assert entry.enqueued_at == enqueue_time

    def test_numpy_values_are_delivered_directly(self, make_engine, offline_queue):
        """numpy scalars are cleaned before the remote write serializes them"""
        class JsonWriter:
            def __init__(self):
                self.bodies = []

            def write(self, payload, delivered_at):
                self.bodies.append(json.dumps(payload))
                return "remote-json"

        writer = JsonWriter()

        result = make_engine(writer).submit({"refId": "N1", "age": np.int64(34)})

        assert result.outcome == SubmitOutcome.DELIVERED
        assert json.loads(writer.bodies[0]) == {"refId": "N1", "age": 34}
        assert offline_queue.pending_count() == 0

    def test_rejects_non_dict_payload(self, engine, stub_writer):
        """A non-dict payload raises TypeError before any routing"""
        with pytest.raises(TypeError):
            engine.submit(["not", "a", "dict"])

        assert stub_writer.calls == []

    def test_unexpected_writer_exception_is_wrapped(self, make_engine, sample_payload):
        """Any writer exception is wrapped as RemoteWriteError"""
        class ExplodingWriter:
            def write(self, payload, delivered_at):
                raise ConnectionResetError("socket closed")

        result = make_engine(ExplodingWriter()).submit(sample_payload)

        assert result.outcome == SubmitOutcome.SAVED_OFFLINE_FALLBACK
        assert isinstance(result.error, RemoteWriteError)
        assert "socket closed" in result.error.message

    def test_hard_failure_when_offline_and_storage_broken(self, make_engine, stub_writer,
                                                          broken_queue, sample_payload):
        """Offline with no usable store is a hard failure"""
        engine = make_engine(stub_writer, queue=broken_queue)
        go_offline(engine.connection_manager)

        result = engine.submit(sample_payload)

        assert result.outcome == SubmitOutcome.HARD_FAILURE
        assert not result
        assert isinstance(result.error, HardFailureError)
        assert result.error.recoverable is False
        assert result.error.details["ref_id"] == sample_payload["refId"]
        assert stub_writer.calls == []

    def test_hard_failure_after_failed_delivery(self, make_engine, make_writer,
                                                broken_queue, sample_payload):
        """Hard failure reports both the remote and storage errors"""
        engine = make_engine(make_writer(fail_all=True), queue=broken_queue)

        result = engine.submit(sample_payload)

        assert result.outcome == SubmitOutcome.HARD_FAILURE
        assert "remote_error" in result.error.details
        assert "storage_error" in result.error.details


class TestDrain:
    """drain_queue() delivers queued entries oldest first"""

    def queue_refs(self, queue, clock, *ref_ids):
        for ref_id in ref_ids:
            queue.enqueue({"refId": ref_id})
            clock.advance(1000)

    def test_drain_delivers_in_order_with_original_times(self, engine, stub_writer,
                                                         offline_queue, clock, enqueue_time):
        """Drain writes oldest first with each enqueued_at time"""
        self.queue_refs(offline_queue, clock, "A", "B", "C")

        summary = engine.drain_queue()

        assert summary == DrainSummary(attempted=3, succeeded=3)
        assert stub_writer.delivered_ref_ids == ["A", "B", "C"]
        assert [at for _, at in stub_writer.calls] == [
            enqueue_time, enqueue_time + 1000, enqueue_time + 2000
        ]
        assert offline_queue.pending_count() == 0

    def test_failed_entries_stay_queued(self, make_engine, make_writer, offline_queue, clock):
        """Only the failed entry remains after a drain"""
        writer = make_writer(fail_ref_ids={"B"})
        engine = make_engine(writer)
        self.queue_refs(offline_queue, clock, "A", "B", "C")

        summary = engine.drain_queue()

        assert summary.attempted == 3
        assert summary.succeeded == 2
        assert summary.failed == 1
        assert writer.delivered_ref_ids == ["A", "B", "C"]
        assert [e.payload["refId"] for e in offline_queue.list_pending()] == ["B"]
        assert engine.state.failed_count == 1

    def test_empty_queue(self, engine, stub_writer):
        """Empty queue makes no remote calls"""
        assert engine.drain_queue() == DrainSummary()
        assert stub_writer.calls == []

    def test_unreadable_queue_returns_empty_summary(self, make_engine, stub_writer, broken_queue):
        """Unreadable queue gives an empty summary"""
        engine = make_engine(stub_writer, queue=broken_queue)

        assert engine.drain_queue() == DrainSummary()

    def test_delete_failure_still_counts_as_delivered(self, make_engine, stub_writer,
                                                      local_db, fallback_store, clock):
        """Delivered entry that cannot be deleted is purged later"""
        class StickyQueue(OfflineQueue):
            def delete(self, submission_id):
                raise StorageUnavailableError("disk went away", store="primary")

        queue = StickyQueue(primary=local_db, fallback=fallback_store, clock=clock)
        queue.enqueue({"refId": "A"})
        engine = make_engine(stub_writer, queue=queue)

        summary = engine.drain_queue()

        assert summary.succeeded == 1
        # marked synced, so it is not delivered again
        assert queue.list_pending() == []
        assert queue.purge_synced() == 1

    def test_unremovable_entry_is_delivered_again(self, make_engine, stub_writer,
                                                  local_db, fallback_store, clock):
        """Entry whose store rejects mark_synced stays queued for the next pass"""
        class LockedQueue(OfflineQueue):
            locked = True

            def mark_synced(self, submission_id):
                if self.locked:
                    raise StorageUnavailableError("database is locked", store="primary")
                super().mark_synced(submission_id)

        queue = LockedQueue(primary=local_db, fallback=fallback_store, clock=clock)
        queue.enqueue({"refId": "A"})
        engine = make_engine(stub_writer, queue=queue)

        assert engine.drain_queue().succeeded == 1
        assert [e.payload["refId"] for e in queue.list_pending()] == ["A"]

        queue.locked = False
        engine.drain_queue()

        assert stub_writer.delivered_ref_ids == ["A", "A"]
        assert queue.list_pending() == []

    def test_state_tracking_and_callbacks(self, engine, offline_queue, clock):
        """Callbacks see the pass start and finish"""
        self.queue_refs(offline_queue, clock, "A", "B")
        seen = []
        engine.register_callback(lambda state: seen.append(state.is_syncing))

        engine.drain_queue()

        assert seen == [True, False]
        assert engine.state.total_synced == 2
        assert engine.state.last_sync_success is not None
        assert engine.get_status_display()["last_succeeded"] == 2

    def test_unregister_callback(self, engine):
        """Unregistered callback is not called"""
        seen = []
        callback = seen.append
        engine.register_callback(callback)
        engine.unregister_callback(callback)

        engine.drain_queue()

        assert seen == []


class TestLifecycle:
    """start()/stop(), reconnect wiring and operator controls"""

    def test_reconnect_triggers_drain(self, engine, stub_writer, offline_queue):
        """Reconnect after an offline submission drains the queue"""
        engine.start()
        go_offline(engine.connection_manager)
        engine.submit({"refId": "queued"})

        engine.connection_manager.notify_network_change(True)

        assert stub_writer.delivered_ref_ids == ["queued"]
        assert offline_queue.pending_count() == 0

    def test_reconnect_in_offline_mode_keeps_queue(self, engine, stub_writer, offline_queue):
        """Reconnect while offline mode is on should not contact the remote store"""
        engine.start()
        engine.connection_manager.apply_settings(ConnectivitySettings(offline_mode=True))
        go_offline(engine.connection_manager)
        engine.submit({"refId": "queued"})

        engine.connection_manager.notify_network_change(True)

        assert stub_writer.calls == []
        assert offline_queue.pending_count() == 1

    def test_stop_unsubscribes(self, engine, stub_writer):
        """Stopped engine ignores reconnects"""
        engine.start()
        go_offline(engine.connection_manager)
        engine.submit({"refId": "queued"})
        engine.stop()

        engine.connection_manager.notify_network_change(True)

        assert stub_writer.calls == []

    def test_start_drains_leftovers_when_online(self, engine, stub_writer, offline_queue):
        """start() delivers entries from an earlier session"""
        offline_queue.enqueue({"refId": "left-over"})

        engine.start()

        assert stub_writer.delivered_ref_ids == ["left-over"]

    def test_start_keeps_leftovers_in_offline_mode(self, engine, stub_writer, offline_queue):
        """start() in offline mode leaves the queue alone"""
        offline_queue.enqueue({"refId": "left-over"})
        engine.connection_manager.apply_settings(ConnectivitySettings(offline_mode=True))

        engine.start()

        assert stub_writer.calls == []
        assert offline_queue.pending_count() == 1

    def test_sync_now_on_offline_path(self, engine, stub_writer, offline_queue):
        """Sync now on the offline path does nothing"""
        offline_queue.enqueue({"refId": "A"})
        go_offline(engine.connection_manager)

        assert engine.sync_now() == DrainSummary()
        assert stub_writer.calls == []

    def test_sync_now_delivers_fallback_entries(self, make_engine, make_writer, offline_queue):
        """Sync now retries entries queued after a failed delivery"""
        writer = make_writer(fail_all=True)
        engine = make_engine(writer)
        engine.submit({"refId": "A"})

        writer.fail_all = False
        summary = engine.sync_now()

        assert summary == DrainSummary(attempted=1, succeeded=1)
        assert offline_queue.pending_count() == 0

    def test_set_offline_mode_persists_and_applies(self, engine, offline_queue):
        """Offline mode is saved and applied without firing reconnects"""
        fired = []
        engine.connection_manager.subscribe(lambda: fired.append(1))

        engine.set_offline_mode(True)

        assert engine.connection_manager.offline_mode is True
        assert offline_queue.primary.get_setting("offline_mode") is True

        engine.set_offline_mode(False)

        assert engine.connection_manager.offline_mode is False
        assert offline_queue.primary.get_setting("offline_mode") is False
        assert fired == []

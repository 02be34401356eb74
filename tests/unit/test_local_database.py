# =============================================================================
# tests/unit/test_local_database.py
# Unit Tests for the SQLite Queue Store
# =============================================================================

import pytest

from survey_core.errors import StorageUnavailableError
from survey_core.offline import LocalDatabase, QueuedSubmission


def make_submission(submission_id, enqueued_at, **payload):
    return QueuedSubmission(id=submission_id, payload=payload, enqueued_at=enqueued_at)


class TestLocalDatabaseSubmissions:
    """Insert, list, mark and delete pending responses"""

    def test_insert_and_list_pending(self, local_db):
        """Inserted submission is listed as pending from the primary store"""
        local_db.insert_submission(make_submission("response-1-a", 1000, refId="A"))

        pending = local_db.get_pending_submissions()

        assert len(pending) == 1
        assert pending[0].id == "response-1-a"
        assert pending[0].payload == {"refId": "A"}
        assert pending[0].enqueued_at == 1000
        assert pending[0].synced is False
        assert pending[0].source == "primary"

    def test_pending_ordered_oldest_first(self, local_db):
        """Ties on enqueued_at keep insertion order"""
        local_db.insert_submission(make_submission("c", 3000))
        local_db.insert_submission(make_submission("a", 1000))
        local_db.insert_submission(make_submission("b1", 2000))
        local_db.insert_submission(make_submission("b2", 2000))

        ids = [s.id for s in local_db.get_pending_submissions()]

        assert ids == ["a", "b1", "b2", "c"]

    def test_mark_synced_hides_entry_from_pending(self, local_db):
        """Synced entries stay stored but leave the pending list"""
        local_db.insert_submission(make_submission("x", 1000))

        assert local_db.mark_synced("x") is True
        assert local_db.get_pending_submissions() == []
        assert local_db.has_submission("x")

    def test_mark_and_delete_missing_ids_are_noops(self, local_db):
        """Unknown ids return False without raising"""
        assert local_db.mark_synced("missing") is False
        assert local_db.delete_submission("missing") is False

    def test_delete_twice(self, local_db):
        """Second delete of the same id is a no-op"""
        local_db.insert_submission(make_submission("x", 1000))

        assert local_db.delete_submission("x") is True
        assert local_db.delete_submission("x") is False
        assert not local_db.has_submission("x")

    def test_delete_synced_only_removes_synced(self, local_db):
        """Purge keeps unsynced entries"""
        local_db.insert_submission(make_submission("keep", 1000))
        local_db.insert_submission(make_submission("drop", 2000))
        local_db.mark_synced("drop")

        assert local_db.delete_synced() == 1
        assert [s.id for s in local_db.get_pending_submissions()] == ["keep"]
        assert not local_db.has_submission("drop")

    def test_clear_and_count(self, local_db):
        """clear_submissions() returns the number removed"""
        for i in range(3):
            local_db.insert_submission(make_submission(f"r{i}", 1000 + i))

        assert local_db.get_pending_count() == 3
        assert local_db.clear_submissions() == 3
        assert local_db.get_pending_count() == 0

    def test_entries_survive_reopen(self, db_path, local_db):
        """A new instance on the same file sees committed entries"""
        local_db.insert_submission(make_submission("durable", 1000, refId="D"))

        reopened = LocalDatabase(db_path)
        pending = reopened.get_pending_submissions()
        reopened.close()

        assert [s.payload for s in pending] == [{"refId": "D"}]


class TestLocalDatabaseSettings:
    """Persisted app settings"""

    def test_setting_roundtrip_and_default(self, local_db):
        """Missing setting gives the default, stored setting reads back"""
        assert local_db.get_setting("offline_mode", default=False) is False

        local_db.set_setting("offline_mode", True)

        assert local_db.get_setting("offline_mode") is True

    def test_setting_overwrite(self, local_db):
        """Saving a setting again replaces its value"""
        local_db.set_setting("offline_mode", True)
        local_db.set_setting("offline_mode", False)

        assert local_db.get_setting("offline_mode") is False


class TestLocalDatabaseUnavailable:
    """Storage failures surface as StorageUnavailableError"""

    def test_insert_into_unusable_path(self, blocked_dir):
        """Unopenable database raises STORE_001 from the primary store"""
        db = LocalDatabase(blocked_dir / "queue.db")

        with pytest.raises(StorageUnavailableError) as exc_info:
            db.insert_submission(make_submission("x", 1000))

        assert exc_info.value.code == "STORE_001"
        assert exc_info.value.details["store"] == "primary"

    def test_read_from_unusable_path(self, blocked_dir):
        """Reads from an unopenable database raise too"""
        db = LocalDatabase(blocked_dir / "queue.db")

        with pytest.raises(StorageUnavailableError):
            db.get_pending_submissions()

    def test_database_size(self, local_db, blocked_dir):
        """Size is the file size, or zero when there is no file"""
        assert local_db.database_size() > 0
        assert LocalDatabase(blocked_dir / "queue.db").database_size() == 0

    def test_exists(self, local_db, blocked_dir):
        """File on disk means exists(); an unopenable path never does"""
        assert local_db.exists()
        assert not LocalDatabase(blocked_dir / "queue.db").exists()

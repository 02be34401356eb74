# =============================================================================
# survey_core/offline/fallback_store.py
# JSON File Fallback Store
# =============================================================================
"""
FallbackStore - low-capacity store used when the SQLite database cannot
accept writes (read-only volume, corrupted database file, locked file).

The whole queue is a single serialized list that is read and rewritten on
every change. Writes go through a temporary file and os.replace so a crash
leaves either the old or the new list on disk.
"""

from __future__ import annotations
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, List, Optional
import logging

from survey_core.errors import StorageUnavailableError
from survey_core.offline.records import FALLBACK_SOURCE, QueuedSubmission

logger = logging.getLogger(__name__)


class FallbackStore:
    """Whole-file JSON list of queued submissions."""

    DEFAULT_PATH = Path(__file__).parent.parent.parent / "local_data" / "pending_responses.json"
    DEFAULT_MAX_ENTRIES = 500

    def __init__(self, path: Optional[Path] = None, max_entries: int = DEFAULT_MAX_ENTRIES):
        self.path = Path(path) if path else self.DEFAULT_PATH
        self.max_entries = max_entries
        self._lock = threading.Lock()

    def _unavailable(self, action: str, error: Exception) -> StorageUnavailableError:
        return StorageUnavailableError(
            f"Fallback store could not {action}: {error}",
            store=FALLBACK_SOURCE,
            path=str(self.path),
        )

    def _load_list(self) -> List[dict]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            # A torn file cannot be trusted; keep it aside rather than overwrite it
            corrupt_path = self.path.with_suffix(self.path.suffix + ".corrupt")
            logger.error(f"Fallback store is corrupt, moving it to {corrupt_path}: {e}")
            try:
                os.replace(self.path, corrupt_path)
            except OSError as move_error:
                raise self._unavailable("recover corrupt file", move_error) from move_error
            return []
        except OSError as e:
            raise self._unavailable("read", e) from e

        if not isinstance(data, list):
            logger.warning("Fallback store did not contain a list; ignoring contents")
            return []
        return data

    def _save_list(self, entries: List[dict]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=self.path.name, suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(entries, f)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
            self._fsync_directory()
        except (OSError, TypeError, ValueError) as e:
            raise self._unavailable("write", e) from e

    def _fsync_directory(self) -> None:
        """Flush the directory entry so the rename survives power loss."""
        try:
            dir_fd = os.open(str(self.path.parent), os.O_RDONLY)
        except OSError as e:
            # Directories cannot be opened on every platform (e.g. Windows)
            logger.debug(f"Could not open {self.path.parent} for fsync: {e}")
            return
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)

    def _update(self, change: Callable[[List[dict]], List[dict]]) -> None:
        with self._lock:
            entries = self._load_list()
            self._save_list(change(entries))

    # =========================================================================
    # QUEUE OPERATIONS
    # =========================================================================

    def insert_submission(self, submission: QueuedSubmission) -> None:
        """Append a submission; fails when the store is full."""
        def append(entries: List[dict]) -> List[dict]:
            if len(entries) >= self.max_entries:
                raise StorageUnavailableError(
                    f"Fallback store is full ({self.max_entries} entries)",
                    store=FALLBACK_SOURCE,
                    path=str(self.path),
                )
            return entries + [submission.to_dict()]

        self._update(append)
        logger.info(f"Response saved to fallback store: {submission.id}")

    def get_all_submissions(self) -> List[QueuedSubmission]:
        with self._lock:
            entries = self._load_list()
        submissions = []
        for raw in entries:
            try:
                submissions.append(QueuedSubmission.from_dict(raw, source=FALLBACK_SOURCE))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed fallback entry: {e}")
        return submissions

    def get_pending_submissions(self) -> List[QueuedSubmission]:
        """Unsynced submissions in insertion order."""
        return [s for s in self.get_all_submissions() if not s.synced]

    def has_submission(self, submission_id: str) -> bool:
        return any(s.id == submission_id for s in self.get_all_submissions())

    def mark_synced(self, submission_id: str) -> bool:
        found = []

        def mark(entries: List[dict]) -> List[dict]:
            for raw in entries:
                if raw.get("id") == submission_id:
                    raw["synced"] = True
                    found.append(submission_id)
            return entries

        if not self.path.exists():
            return False
        self._update(mark)
        return bool(found)

    def delete_submission(self, submission_id: str) -> bool:
        removed = []

        def drop(entries: List[dict]) -> List[dict]:
            kept = [raw for raw in entries if raw.get("id") != submission_id]
            removed.append(len(entries) - len(kept))
            return kept

        if not self.path.exists():
            return False
        self._update(drop)
        return removed[0] > 0

    def delete_synced(self) -> int:
        removed = []

        def drop(entries: List[dict]) -> List[dict]:
            kept = [raw for raw in entries if not raw.get("synced")]
            removed.append(len(entries) - len(kept))
            return kept

        if not self.path.exists():
            return 0
        self._update(drop)
        return removed[0]

    def clear_submissions(self) -> int:
        if not self.path.exists():
            return 0
        count = len(self.get_all_submissions())
        with self._lock:
            self._save_list([])
        return count

    def get_pending_count(self) -> int:
        return len(self.get_pending_submissions())

    def exists(self) -> bool:
        return self.path.exists()

    def file_size(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0

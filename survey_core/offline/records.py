# =============================================================================
# survey_core/offline/records.py
# Queued Submission Record
# =============================================================================

from __future__ import annotations
import random
import string
import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

PRIMARY_SOURCE = "primary"
FALLBACK_SOURCE = "fallback"

_ID_ALPHABET = string.digits + string.ascii_lowercase


@dataclass
class QueuedSubmission:
    """A survey response waiting on the device for remote delivery."""
    id: str
    payload: Dict[str, Any]
    enqueued_at: int            # ms since epoch; forwarded as the submission time
    synced: bool = False
    source: str = PRIMARY_SOURCE

    def to_dict(self) -> Dict[str, Any]:
        """Serialized form used by the fallback store."""
        return {
            "id": self.id,
            "data": self.payload,
            "timestamp": self.enqueued_at,
            "synced": self.synced,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], source: str = FALLBACK_SOURCE) -> QueuedSubmission:
        return cls(
            id=str(raw["id"]),
            payload=raw.get("data") or {},
            enqueued_at=int(raw["timestamp"]),
            synced=bool(raw.get("synced", False)),
            source=source,
        )


def now_ms() -> int:
    """Current time in milliseconds since epoch."""
    return int(time.time() * 1000)


def generate_submission_id(timestamp_ms: Optional[int] = None) -> str:
    """Build an id of the form response-<ms>-<9 base36 chars>."""
    timestamp_ms = now_ms() if timestamp_ms is None else timestamp_ms
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"response-{timestamp_ms}-{suffix}"


def clean_value(value: Any) -> Any:
    """Convert pandas/numpy/datetime values into plain JSON types."""
    if isinstance(value, dict):
        return {str(k): clean_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [clean_value(v) for v in value]
    if value is pd.NaT:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return None if np.isnan(value) else float(value)
    if isinstance(value, float) and pd.isna(value):
        return None
    return value


def clean_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Clean a survey response for JSON serialization."""
    if not isinstance(payload, dict):
        raise TypeError(f"Survey payload must be a dict, got {type(payload).__name__}")
    return clean_value(payload)

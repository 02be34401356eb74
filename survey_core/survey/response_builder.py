# =============================================================================
# survey_core/survey/response_builder.py
# Survey Response Assembly
# =============================================================================
"""
Builds the response record that is submitted (or queued) for one citizen.

Reference IDs follow the office format VZM-CSM-<ms timestamp>-<4 digits>.
The SQD average is the mean of the Service Quality Dimension answers,
ignoring "N/A" and unanswered items.
"""

from __future__ import annotations
import random
from typing import Any, Dict, Iterable, List, Mapping, Optional

from survey_core.offline.records import now_ms

REFERENCE_PREFIX = "VZM-CSM"
SQD_CATEGORY = "SQD"
NOT_APPLICABLE = "na"

BASE_FIELDS = (
    "date",
    "sex",
    "age",
    "region",
    "service",
    "serviceOther",
    "suggestions",
    "email",
)


def generate_reference_id(timestamp_ms: Optional[int] = None) -> str:
    """Reference ID shown to the citizen after submitting."""
    timestamp_ms = now_ms() if timestamp_ms is None else timestamp_ms
    return f"{REFERENCE_PREFIX}-{timestamp_ms}-{random.randint(0, 9999):04d}"


def sqd_question_ids(questions: Iterable[Mapping[str, Any]]) -> List[str]:
    return [q["id"] for q in questions if q.get("category") == SQD_CATEGORY]


def calculate_sqd_average(
    answers: Mapping[str, Any],
    questions: Iterable[Mapping[str, Any]],
) -> float:
    """
    Mean of the numeric SQD answers.

    Returns:
        0 when no SQD question has a numeric answer
    """
    values = []
    for question_id in sqd_question_ids(questions):
        value = answers.get(question_id)
        if value in (None, "") or str(value).lower() == NOT_APPLICABLE:
            continue
        try:
            values.append(int(value))
        except (TypeError, ValueError):
            continue

    if not values:
        return 0
    return sum(values) / len(values)


def build_response(
    form_data: Mapping[str, Any],
    questions: Iterable[Mapping[str, Any]],
    reference_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Assemble the response record from the submitted form.

    Args:
        form_data: Field values keyed by field/question id
        questions: Question definitions ({"id", "category", ...})
        reference_id: Pre-generated reference ID (generated if omitted)

    Returns:
        Response payload ready for SyncEngine.submit()
    """
    questions = list(questions)
    client_type = str(form_data.get("clientType") or "")

    response: Dict[str, Any] = {
        "refId": reference_id or generate_reference_id(),
        "clientType": client_type[:1].upper() + client_type[1:],
    }
    for field in BASE_FIELDS:
        response[field] = form_data.get(field, "")
    response["sqdAvg"] = calculate_sqd_average(form_data, questions)

    for question in questions:
        response[question["id"]] = form_data.get(question["id"]) or ""

    return response

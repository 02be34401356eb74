# =============================================================================
# survey_core/survey/__init__.py
# Survey Response Helpers
# =============================================================================

from .response_builder import (
    build_response,
    calculate_sqd_average,
    generate_reference_id,
)

__all__ = [
    "build_response",
    "calculate_sqd_average",
    "generate_reference_id",
]

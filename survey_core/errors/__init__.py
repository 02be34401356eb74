# =============================================================================
# survey_core/errors/__init__.py
# Centralized Error Handling for the Survey Kiosk
# =============================================================================

from .exceptions import (
    SurveyError,
    StorageUnavailableError,
    RemoteWriteError,
    HardFailureError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    safe_execute,
    ErrorContext,
)

__all__ = [
    # Exceptions
    "SurveyError",
    "StorageUnavailableError",
    "RemoteWriteError",
    "HardFailureError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "safe_execute",
    "ErrorContext",
]

# =============================================================================
# survey_core/errors/exceptions.py
# Custom Exception Hierarchy for the Survey Kiosk
# =============================================================================

from typing import Optional, Dict, Any


class SurveyError(Exception):
    """
    Base exception for all survey kiosk errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "STORE_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "CSS_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# LOCAL STORAGE EXCEPTIONS
# =============================================================================

class StorageUnavailableError(SurveyError):
    """Raised when a local store cannot accept or serve writes"""

    def __init__(
        self,
        message: str,
        store: Optional[str] = None,
        path: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if store:
            details["store"] = store
        if path:
            details["path"] = path

        super().__init__(
            message=message,
            code="STORE_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# REMOTE STORE EXCEPTIONS
# =============================================================================

class RemoteWriteError(SurveyError):
    """Raised when the remote append-only write fails for any reason"""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table

        super().__init__(
            message=message,
            code="REMOTE_001",
            details=details,
            **kwargs,
        )


class HardFailureError(SurveyError):
    """Raised when a submission could be neither delivered nor stored locally"""

    def __init__(
        self,
        message: str,
        remote_error: Optional[str] = None,
        storage_error: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if remote_error:
            details["remote_error"] = remote_error
        if storage_error:
            details["storage_error"] = storage_error

        super().__init__(
            message=message,
            code="SUBMIT_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(SurveyError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )

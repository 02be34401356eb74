# =============================================================================
# survey_core/config.py
# Settings for the Survey Kiosk (Streamlit secrets + environment)
# =============================================================================
"""
Settings loading.

Expected secrets in .streamlit/secrets.toml:

    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"
    responses_table = "responses"

    [offline]
    db_path = "local_data/survey_queue.db"
    fallback_path = "local_data/pending_responses.json"
    fallback_max_entries = 500
    offline_mode = false

Every key may also be given through the environment (SUPABASE_URL,
SUPABASE_KEY, SURVEY_DB_PATH, SURVEY_FALLBACK_PATH, SURVEY_OFFLINE_MODE);
secrets take precedence.
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import logging

from survey_core.errors import ConfigurationError

logger = logging.getLogger(__name__)

LOCAL_DATA_DIR = Path(__file__).parent.parent / "local_data"

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class ConnectivitySettings:
    """Explicit connectivity preferences handed to the ConnectionManager."""
    offline_mode: bool = False


@dataclass(frozen=True)
class SurveySettings:
    """Resolved application settings."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    responses_table: str = "responses"
    db_path: Path = LOCAL_DATA_DIR / "survey_queue.db"
    fallback_path: Path = LOCAL_DATA_DIR / "pending_responses.json"
    fallback_max_entries: int = 500
    offline_mode: bool = False

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def connectivity(self) -> ConnectivitySettings:
        return ConnectivitySettings(offline_mode=self.offline_mode)


def _read_secrets() -> Dict[str, Any]:
    """Read Streamlit secrets, tolerating a missing secrets.toml."""
    try:
        import streamlit as st
        return {section: dict(values) for section, values in st.secrets.items()
                if isinstance(values, Mapping)}
    except Exception as e:
        logger.debug(f"Streamlit secrets not available: {e}")
        return {}


def parse_bool(value: Any, key: str) -> bool:
    """Parse a boolean setting from secrets or the environment."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"Invalid boolean value {value!r}",
        config_key=key,
        expected_type="bool",
    )


def parse_int(value: Any, key: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid integer value {value!r}",
            config_key=key,
            expected_type="int",
        ) from None
    if number <= 0:
        raise ConfigurationError(
            f"{key} must be positive, got {number}",
            config_key=key,
            expected_type="positive int",
        )
    return number


def load_settings(
    secrets: Optional[Mapping[str, Mapping[str, Any]]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> SurveySettings:
    """
    Resolve settings from Streamlit secrets and environment variables.

    Args:
        secrets: Secrets mapping (defaults to st.secrets)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        SurveySettings

    Raises:
        ConfigurationError: if a value cannot be parsed
    """
    secrets = _read_secrets() if secrets is None else secrets
    environ = os.environ if environ is None else environ

    supabase = secrets.get("supabase", {})
    offline = secrets.get("offline", {})
    defaults = SurveySettings()

    def pick(section: Mapping[str, Any], key: str, env_key: str, default: Any) -> Any:
        if key in section:
            return section[key]
        return environ.get(env_key, default)

    settings = SurveySettings(
        supabase_url=pick(supabase, "url", "SUPABASE_URL", None),
        supabase_key=pick(supabase, "key", "SUPABASE_KEY", None),
        responses_table=pick(supabase, "responses_table", "SUPABASE_RESPONSES_TABLE",
                             defaults.responses_table),
        db_path=Path(pick(offline, "db_path", "SURVEY_DB_PATH", defaults.db_path)),
        fallback_path=Path(pick(offline, "fallback_path", "SURVEY_FALLBACK_PATH",
                                defaults.fallback_path)),
        fallback_max_entries=parse_int(
            pick(offline, "fallback_max_entries", "SURVEY_FALLBACK_MAX_ENTRIES",
                 defaults.fallback_max_entries),
            "fallback_max_entries",
        ),
        offline_mode=parse_bool(
            pick(offline, "offline_mode", "SURVEY_OFFLINE_MODE", False),
            "offline_mode",
        ),
    )

    if not settings.supabase_configured:
        logger.warning("Supabase credentials not configured; responses will stay queued locally")

    return settings

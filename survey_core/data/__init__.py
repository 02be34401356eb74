# =============================================================================
# survey_core/data/__init__.py
# Remote Data Access
# =============================================================================

from .supabase_client import (
    RemoteWriter,
    SupabaseResponseWriter,
    get_supabase_client,
    get_cached_supabase_client,
)

__all__ = [
    "RemoteWriter",
    "SupabaseResponseWriter",
    "get_supabase_client",
    "get_cached_supabase_client",
]

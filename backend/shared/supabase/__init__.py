"""Hosted session store: PostgREST client, repository, and the local stand-in."""

from shared.supabase.client import SupabaseClient
from shared.supabase.local_repository import LocalSessionRepository, make_local_session_id
from shared.supabase.session_repository import SupabaseSessionRepository
from shared.supabase.settings import SupabaseSettings

__all__ = [
    "LocalSessionRepository",
    "SupabaseClient",
    "SupabaseSessionRepository",
    "SupabaseSettings",
    "make_local_session_id",
]

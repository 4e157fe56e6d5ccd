"""
Database Configuration

Supabase client for REST API access (already pooled via PostgREST).

NOTES:
- PostgREST runs every request as its own statement; there are no
  multi-statement transactions available to the client.
- The unique index on user_challenge_sessions (user_id, challenge_id, is_active)
  is the only serialization point the challenge session lifecycle relies on.
"""

from typing import Optional
from supabase import create_client, Client
from app.core.config import settings


_supabase: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Get Supabase client instance.

    Created on first use so that importing the app (tests, Celery beat)
    does not require credentials to be present.
    """
    global _supabase

    if _supabase is None:
        _supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)

    return _supabase

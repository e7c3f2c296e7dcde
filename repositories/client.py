"""
Supabase client construction.

This module contains *only* the database connection setup. The client is
built explicitly from Settings and handed to each repository; there is no
module-level client object.
"""

from __future__ import annotations

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

from config import Settings


def create_supabase_client(settings: Settings) -> Client:
    """Create the Supabase client used by every repository in this process."""

    return create_client(settings.supabase_url, settings.supabase_key)


__all__ = ["Client", "create_supabase_client"]

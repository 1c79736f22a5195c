"""
Database client factory for Supabase.

Clients are built explicitly by the application container at startup and
passed to the repositories that need them.
"""

from supabase import create_client, Client

from .config import Settings


def create_supabase_client(settings: Settings) -> Client:
    """
    Create a Supabase client with the service role (bypasses RLS).

    The billing core writes purchase rows and calls ledger procedures on
    behalf of users, so it always uses the service role.

    Args:
        settings: Application settings

    Returns:
        Supabase client configured with the service role key

    Raises:
        RuntimeError: If Supabase configuration is missing
    """
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise RuntimeError(
            "Supabase configuration missing. "
            "Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY environment variables."
        )
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
    )

"""
Base repository class for database access.

Provides a common abstraction layer for all repositories, encapsulating
Supabase client access.
"""

from typing import TypeVar, Generic
from supabase import Client


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base class for all Supabase-backed repositories.

    Subclasses implement domain-specific data access methods and handle
    dict-to-Pydantic model mapping internally.

    Example:
        class PurchaseRepository(BaseRepository[Purchase]):
            def get_by_reference(self, reference: str) -> Optional[Purchase]:
                result = (
                    self._db.table("purchases")
                    .select("*")
                    .eq("stripe_session_id", reference)
                    .execute()
                )
                if not result.data:
                    return None
                return self._map_to_purchase(result.data[0])
    """

    def __init__(self, db: Client) -> None:
        """
        Initialize the repository with a Supabase client.

        Args:
            db: Supabase client instance for database operations.
        """
        self._db = db

"""Tests for shared/repository.py."""

from unittest.mock import MagicMock

from shared.repository import BaseRepository


class TestBaseRepository:
    """Tests for BaseRepository base class."""

    def test_init_stores_db_client(self):
        """Should store the database client in _db attribute."""
        mock_db = MagicMock()
        repo = BaseRepository(mock_db)
        assert repo._db is mock_db

    def test_subclass_queries_through_db(self):
        """Subclasses reach Supabase only through _db."""
        mock_db = MagicMock()
        mock_db.table.return_value.select.return_value.eq.return_value.execute.return_value.data = [
            {"stripe_session_id": "cs_1", "status": "pending"}
        ]

        class StatusRepository(BaseRepository[dict]):
            def status_of(self, reference: str) -> str:
                result = (
                    self._db.table("purchases")
                    .select("status")
                    .eq("stripe_session_id", reference)
                    .execute()
                )
                return result.data[0]["status"]

        assert StatusRepository(mock_db).status_of("cs_1") == "pending"
        mock_db.table.assert_called_once_with("purchases")

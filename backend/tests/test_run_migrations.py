"""Tests for the migration runner's planning helpers."""

from pathlib import Path

from run_migrations import MIGRATIONS_DIR, Migration, checksum, discover_migrations, plan


class TestDiscoverMigrations:
    def test_ordered_by_name(self, tmp_path):
        (tmp_path / "002_second.sql").write_text("SELECT 2;")
        (tmp_path / "001_first.sql").write_text("SELECT 1;")
        (tmp_path / "notes.txt").write_text("ignored")

        migrations = discover_migrations(tmp_path)

        assert [m.name for m in migrations] == ["001_first.sql", "002_second.sql"]
        assert migrations[0].checksum == checksum("SELECT 1;")

    def test_missing_directory(self, tmp_path):
        assert discover_migrations(tmp_path / "nope") == []

    def test_ships_billing_schema(self):
        names = [m.name for m in discover_migrations(MIGRATIONS_DIR)]
        assert "001_booth_billing.sql" in names
        schema = (MIGRATIONS_DIR / "001_booth_billing.sql").read_text()
        for required in ("purchases", "credit_transactions", "add_credits", "check_rate_limit"):
            assert required in schema


class TestPlan:
    def _m(self, name: str, digest: str = "abc") -> Migration:
        return Migration(name, Path(name), digest)

    def test_pending_and_changed(self):
        migrations = [self._m("001.sql", "aaa"), self._m("002.sql", "bbb"), self._m("003.sql")]

        pending, changed = plan(migrations, {"001.sql": "aaa", "002.sql": "old"})

        assert [m.name for m in pending] == ["003.sql"]
        assert [m.name for m in changed] == ["002.sql"]

    def test_nothing_applied(self):
        migrations = [self._m("001.sql")]
        assert plan(migrations, {}) == (migrations, [])

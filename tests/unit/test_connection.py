"""
Unit tests for database connection management
"""
import pytest
from sqlalchemy import text
from wallet_api.database.connection import Database
from wallet_api.utils.exceptions import DatabaseConnectionError


class TestDatabase:
    """Tests for the Database object"""

    def test_initialize_in_memory(self):
        db = Database()
        db.initialize("sqlite:///:memory:")

        assert db.is_initialized()
        db.close()
        assert not db.is_initialized()

    def test_instances_are_independent(self):
        first, second = Database(), Database()
        first.initialize("sqlite:///:memory:")

        assert first is not second
        assert not second.is_initialized()
        first.close()

    def test_empty_url_rejected(self):
        with pytest.raises(DatabaseConnectionError):
            Database().initialize("")

    def test_session_before_initialize(self):
        with pytest.raises(DatabaseConnectionError):
            next(Database().get_session())

    def test_foreign_keys_enabled(self, database):
        with database.get_engine().connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_session_scope_rolls_back_on_error(self, database):
        with pytest.raises(RuntimeError):
            with database.session_scope() as db:
                db.execute(text("INSERT INTO app_settings (id, auto_swap_enabled, updated_at) VALUES ('9', 0, '2025-01-01')"))
                raise RuntimeError("boom")

        with database.session_scope() as db:
            assert db.execute(text("SELECT COUNT(*) FROM app_settings")).scalar() == 0

    def test_sqlite_file_directory_created(self, tmp_path):
        path = tmp_path / "nested" / "wallet.db"
        db = Database()
        db.initialize(f"sqlite:///{path}")

        assert path.parent.exists()
        db.close()

"""
Tests for database lifecycle management.
"""

import pytest
from sqlalchemy import inspect

from registry.database import IN_MEMORY_SQLITE, DatabaseConfig, DatabaseManager

REGISTRY_TABLES = {
    "shell_descriptors",
    "specific_asset_ids",
    "specific_asset_id_grants",
    "submodel_descriptors",
}


@pytest.fixture
def engine():
    DatabaseManager.dispose()
    DatabaseManager.initialize(DatabaseConfig(IN_MEMORY_SQLITE))
    yield DatabaseManager._engine
    DatabaseManager.dispose()


class TestLifecycle:
    def test_initialize_creates_tables(self, engine):
        assert REGISTRY_TABLES <= set(inspect(engine).get_table_names())
        assert DatabaseManager.health_check()

    def test_drop_tables(self, engine):
        DatabaseManager.drop_tables()
        assert set(inspect(engine).get_table_names()).isdisjoint(REGISTRY_TABLES)

    def test_create_tables_is_idempotent(self, engine):
        DatabaseManager.create_tables()
        DatabaseManager.drop_tables()
        DatabaseManager.create_tables()
        assert REGISTRY_TABLES <= set(inspect(engine).get_table_names())

    def test_uninitialized(self):
        DatabaseManager.dispose()
        assert not DatabaseManager.health_check()
        with pytest.raises(RuntimeError):
            DatabaseManager.drop_tables()
        with pytest.raises(RuntimeError):
            next(DatabaseManager.get_session())

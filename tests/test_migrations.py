"""
Alembic migration tests: the initial revision builds the schema the ORM uses.
"""

import importlib.util
from pathlib import Path

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

MIGRATION = Path(__file__).resolve().parent.parent / "alembic" / "versions" / "0001_initial_schema.py"


def _load_migration():
    spec = importlib.util.spec_from_file_location("leasepool_migration_0001", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _run(step: str) -> sa.Inspector:
    migration = _load_migration()
    engine = sa.create_engine("sqlite://")
    conn = engine.connect()
    context = MigrationContext.configure(conn)
    with Operations.context(context):
        migration.upgrade()
        if step == "downgrade":
            migration.downgrade()
    return sa.inspect(conn)


def test_upgrade_creates_tables_and_indexes():
    inspector = _run("upgrade")

    assert {"items", "location_summaries"} <= set(inspector.get_table_names())
    columns = {column["name"] for column in inspector.get_columns("items")}
    assert columns == {"id", "pool", "reserved_at", "last_processed", "sleep_until", "payload"}

    indexes = {index["name"]: index["column_names"] for index in inspector.get_indexes("items")}
    assert indexes["idx_items_claimable"] == ["pool", "sleep_until", "reserved_at", "last_processed"]
    assert indexes["idx_items_reserved_at"] == ["reserved_at"]


def test_downgrade_drops_tables():
    inspector = _run("downgrade")

    assert "items" not in inspector.get_table_names()
    assert "location_summaries" not in inspector.get_table_names()

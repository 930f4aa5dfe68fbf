from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect


def _alembic_config(database_url: str) -> Config:
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    return config


def test_migrations_apply(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'migrations.db'}"
    command.upgrade(_alembic_config(database_url), "head")

    engine = create_engine(database_url, future=True)
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())

    assert {
        "warehouses",
        "products",
        "product_variants",
        "materials",
        "inventory_items",
        "material_inventory",
        "stock_movements",
        "count_sessions",
        "count_items",
        "audit_events",
    } <= tables

    count_item_indexes = {index["name"] for index in inspector.get_indexes("count_items")}
    assert {"ix_count_items_session_sku", "ix_count_items_session_status"} <= count_item_indexes
    session_indexes = {index["name"]: index for index in inspector.get_indexes("count_sessions")}
    assert session_indexes["ix_count_sessions_code"]["unique"]
    engine.dispose()


def test_migrations_downgrade(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'downgrade.db'}"
    config = _alembic_config(database_url)
    command.upgrade(config, "head")
    command.downgrade(config, "base")

    engine = create_engine(database_url, future=True)
    tables = set(inspect(engine).get_table_names())
    assert "count_sessions" not in tables
    assert "count_items" not in tables
    engine.dispose()

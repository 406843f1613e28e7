"""
Alembic Migration Tests
========================

Applies the migration chain to an empty SQLite file and checks the result
matches what the ORM expects.
"""

from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic import command
from alembic.config import Config

BACKEND = Path(__file__).resolve().parents[1]


def alembic_config(db_path: Path) -> Config:
    config = Config(str(BACKEND / "alembic.ini"))
    config.set_main_option("script_location", str(BACKEND / "alembic"))
    config.set_main_option("sqlalchemy.url", f"sqlite+aiosqlite:///{db_path}")
    # leave pytest's logging setup alone
    config.attributes["configure_logger"] = False
    return config


def test_upgrade_creates_tables(tmp_path):
    db_path = tmp_path / "migrated.db"
    command.upgrade(alembic_config(db_path), "head")

    engine = sa.create_engine(f"sqlite:///{db_path}")
    try:
        inspector = sa.inspect(engine)
        assert {"users", "images", "markers", "comments"} <= set(inspector.get_table_names())

        user_indexes = {i["name"]: i for i in inspector.get_indexes("users")}
        assert user_indexes["uq_users_username"]["unique"]

        marker_columns = {c["name"]: c for c in inspector.get_columns("markers")}
        assert marker_columns["image_id"]["nullable"] is True
    finally:
        engine.dispose()


def test_username_unique_after_migration(tmp_path):
    db_path = tmp_path / "migrated.db"
    command.upgrade(alembic_config(db_path), "head")

    engine = sa.create_engine(f"sqlite:///{db_path}")
    row = {
        "name": "Ada",
        "username": "ada@example.com",
        "salt": b"\x00" * 16,
        "key": b"\x01" * 64,
    }
    insert = sa.text(
        "INSERT INTO users (id, name, username, password_salt, password_derived_key, "
        "password_hashed_at, created_at, updated_at) VALUES "
        "(:id, :name, :username, :salt, :key, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"
    )
    try:
        with engine.begin() as conn:
            conn.execute(insert, {**row, "id": "a" * 32})
        with pytest.raises(sa.exc.IntegrityError):
            with engine.begin() as conn:
                conn.execute(insert, {**row, "id": "b" * 32})
    finally:
        engine.dispose()


def test_downgrade_drops_tables(tmp_path):
    db_path = tmp_path / "migrated.db"
    config = alembic_config(db_path)
    command.upgrade(config, "head")
    command.downgrade(config, "base")

    engine = sa.create_engine(f"sqlite:///{db_path}")
    try:
        assert set(sa.inspect(engine).get_table_names()) <= {"alembic_version"}
    finally:
        engine.dispose()

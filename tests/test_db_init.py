from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, inspect

from apps.api.db import init as db_init


def test_init_db_creates_directory_and_tables(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "grimoire.db"
    engine = create_engine(f"sqlite:///{db_path}", future=True)

    db_init.init_db(engine)
    db_init.init_db(engine)

    inspector = inspect(engine)
    assert {"books", "ratings"} <= set(inspector.get_table_names())
    book_columns = {column["name"] for column in inspector.get_columns("books")}
    assert {"uid", "owner_id", "image_url", "average_rating"} <= book_columns
    assert db_path.is_file()
    engine.dispose()


def test_init_db_accepts_in_memory_database() -> None:
    engine = create_engine("sqlite:///:memory:", future=True)

    db_init.init_db(engine)

    assert "books" in inspect(engine).get_table_names()

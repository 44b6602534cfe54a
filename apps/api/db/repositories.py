"""Record store adapter for book records.

Repositories only translate between the ORM and storage; ownership and
rating rules live in :mod:`apps.api.services.catalog`.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from . import models

_SORTABLE_FIELDS = {
    "average_rating": models.Book.average_rating,
    "year": models.Book.year,
}


class _BaseRepository:
    model: type[Any]

    def __init__(self, session: Session) -> None:
        self.session = session

    def _all(self, stmt) -> list[Any]:
        return list(self.session.scalars(stmt))

    def _one(self, stmt) -> Any | None:
        return self.session.scalar(stmt)


class BookRepository(_BaseRepository):
    model = models.Book

    def _select(self):
        return select(models.Book).options(selectinload(models.Book.ratings))

    def find(self, uid: str) -> models.Book | None:
        return self._one(self._select().where(models.Book.uid == uid))

    def find_all(self) -> list[models.Book]:
        return self._all(self._select().order_by(models.Book.id))

    def save(self, book: models.Book) -> models.Book:
        """Insert ``book`` or write back its pending changes."""

        self.session.add(book)
        self.session.flush()
        return book

    def delete_one(self, book: models.Book) -> None:
        self.session.delete(book)
        self.session.flush()

    def top_by(self, field: str, limit: int) -> list[models.Book]:
        """Return records sorted by a numeric ``field`` descending.

        Ties keep insertion order and records without a value sort last.
        """

        try:
            column = _SORTABLE_FIELDS[field]
        except KeyError as exc:
            raise ValueError(f"Unsupported sort field: {field}") from exc
        stmt = (
            self._select()
            .order_by(column.desc().nulls_last(), models.Book.id.asc())
            .limit(max(0, limit))
        )
        return self._all(stmt)


__all__ = ["BookRepository"]

"""SQLAlchemy ORM models used by the API."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def _new_uid() -> str:
    return uuid.uuid4().hex


class TimestampMixin:
    """Mixin that tracks creation and update timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now(), nullable=False
    )


class Book(TimestampMixin, Base):
    """Catalog entry submitted by a user.

    ``id`` is an internal sequence that also records insertion order;
    ``uid`` is the opaque identifier exposed to clients.
    """

    __tablename__ = "books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True, default=_new_uid
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    genre: Mapped[str | None] = mapped_column(String(255), nullable=True)
    image_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    average_rating: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)

    ratings: Mapped[list[Rating]] = relationship(
        back_populates="book",
        cascade="all, delete-orphan",
        order_by="Rating.id",
    )


class Rating(TimestampMixin, Base):
    """A single user's grade for a book."""

    __tablename__ = "ratings"
    __table_args__ = (UniqueConstraint("book_id", "user_id", name="uq_ratings_book_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    book_id: Mapped[int] = mapped_column(
        ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    grade: Mapped[int] = mapped_column(Integer, nullable=False)

    book: Mapped[Book] = relationship(back_populates="ratings")


__all__ = [
    "Book",
    "Rating",
    "TimestampMixin",
]

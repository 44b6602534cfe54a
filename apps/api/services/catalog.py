"""Catalog operations: ownership checks, ratings and image lifecycle.

Each operation loads, validates, mutates and commits on its own. No lock is
held between the read and the write, so two concurrent ratings on the same
book can leave ``average_rating`` computed from a stale list; the unique
``(book_id, user_id)`` constraint still rejects a concurrent duplicate.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, TypeVar

import pydantic
import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from apps.api.db import models
from apps.api.db.repositories import BookRepository
from apps.api.schemas import BookCreate, BookUpdate

from .assets import AssetManager
from .errors import (
    AssetReleaseError,
    CatalogError,
    DuplicateRatingError,
    NotFoundError,
    PersistenceError,
    UnauthorizedError,
    ValidationError,
)

MIN_GRADE = 0
MAX_GRADE = 5
DEFAULT_TOP_RATED = 3

log = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def validate_grade(value: Any) -> int:
    """Return ``value`` as an int grade or raise :class:`ValidationError`."""

    message = f"Rating must be a whole number between {MIN_GRADE} and {MAX_GRADE}"
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(message)
    if isinstance(value, float) and (not math.isfinite(value) or not value.is_integer()):
        raise ValidationError(message)
    if not MIN_GRADE <= value <= MAX_GRADE:
        raise ValidationError(message)
    return int(value)


def average_grade(grades: Iterable[int]) -> float | None:
    """Mean of ``grades`` rounded half-up to one decimal, ``None`` when empty."""

    values = list(grades)
    if not values:
        return None
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def canonical_user_id(value: Any) -> str:
    user_id = "" if value is None else str(value).strip()
    if not user_id:
        raise UnauthorizedError("Not authenticated")
    return user_id


def _parse(model: type[ModelT], payload: Any) -> ModelT:
    if not isinstance(payload, Mapping):
        raise ValidationError("Book payload must be a JSON object")
    try:
        return model.model_validate(dict(payload))
    except pydantic.ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
        raise ValidationError(f"Invalid book fields: {', '.join(fields)}") from exc


class CatalogService:
    """Orchestrates book mutations over the record store and asset manager."""

    def __init__(self, session: Session, assets: AssetManager, *, base_url: str) -> None:
        self.session = session
        self.books = BookRepository(session)
        self.assets = assets
        self.base_url = base_url

    # -- persistence helpers -------------------------------------------------

    def _persist(
        self,
        book: models.Book,
        operation: str,
        *,
        on_conflict: type[CatalogError] = PersistenceError,
    ) -> None:
        try:
            self.books.save(book)
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            log.warning("books.persist_conflict", operation=operation)
            raise on_conflict() from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            log.error("books.persist_failed", operation=operation, exc_info=True)
            raise PersistenceError() from exc

    def _release_quietly(self, handle: str, **context: Any) -> None:
        try:
            self.assets.release(handle)
        except AssetReleaseError:
            log.warning("books.asset_release_failed", handle=handle, exc_info=True, **context)

    def _owned(self, uid: str, requester_id: Any) -> models.Book:
        requester = canonical_user_id(requester_id)
        book = self.get_book(uid)
        if book.owner_id != requester:
            log.warning("books.unauthorized", book_id=uid, requester=requester)
            raise UnauthorizedError()
        return book

    # -- queries ---------------------------------------------------------------

    def get_book(self, uid: str) -> models.Book:
        book = self.books.find(uid)
        if book is None:
            raise NotFoundError()
        return book

    def list_books(self) -> list[models.Book]:
        return self.books.find_all()

    def top_rated(self, limit: int = DEFAULT_TOP_RATED) -> list[models.Book]:
        return self.books.top_by("average_rating", limit)

    # -- mutations ---------------------------------------------------------------

    def create_book(self, payload: Any, image: bytes, creator_id: Any) -> models.Book:
        creator = canonical_user_id(creator_id)
        data = _parse(BookCreate, payload)
        grade = validate_grade(data.ratings[0].grade)

        handle = self.assets.normalize(image)
        book = models.Book(
            title=data.title,
            author=data.author,
            year=data.year,
            genre=data.genre,
            image_url=self.assets.to_external_reference(handle, self.base_url),
            owner_id=creator,
            ratings=[models.Rating(user_id=creator, grade=grade)],
            average_rating=average_grade([grade]),
        )
        try:
            self._persist(book, "create")
        except PersistenceError:
            self._release_quietly(handle)
            raise
        log.info("books.created", book_id=book.uid, owner_id=creator, image=handle)
        return book

    def update_book(
        self,
        uid: str,
        payload: Any,
        requester_id: Any,
        *,
        image: bytes | None = None,
        image_handle: str | None = None,
    ) -> models.Book:
        """Apply allow-listed field changes and optionally replace the image.

        ``image`` is a raw upload to normalize; ``image_handle`` names an asset
        the caller already normalized. Without either, ``image_url`` is kept.
        """

        book = self._owned(uid, requester_id)
        changes = _parse(BookUpdate, payload or {}).changes()

        if image_handle is not None and not self.assets.exists(image_handle):
            raise ValidationError("Unknown image")

        created_handle: str | None = None
        new_handle = image_handle
        if image is not None:
            created_handle = new_handle = self.assets.normalize(image)

        superseded: str | None = None
        for field, value in changes.items():
            setattr(book, field, value)
        if new_handle is not None:
            superseded = self.assets.handle_from_reference(book.image_url)
            book.image_url = self.assets.to_external_reference(new_handle, self.base_url)

        try:
            self._persist(book, "update")
        except PersistenceError:
            if created_handle is not None:
                self._release_quietly(created_handle, book_id=uid)
            raise

        if superseded is not None and superseded != new_handle:
            self._release_quietly(superseded, book_id=uid)
        log.info(
            "books.updated",
            book_id=uid,
            fields=sorted(changes),
            image_replaced=new_handle is not None,
        )
        return book

    def delete_book(self, uid: str, requester_id: Any) -> None:
        """Release the book's image, then delete the record.

        A failed release aborts the delete so the record never outlives
        knowledge of its image.
        """

        book = self._owned(uid, requester_id)
        handle = self.assets.handle_from_reference(book.image_url)
        if handle is not None:
            try:
                self.assets.release(handle)
            except AssetReleaseError:
                log.error("books.delete_release_failed", book_id=uid, handle=handle, exc_info=True)
                raise
        try:
            self.books.delete_one(book)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            log.error("books.persist_failed", operation="delete", exc_info=True)
            raise PersistenceError("Could not delete the book") from exc
        log.info("books.deleted", book_id=uid)

    def rate_book(self, uid: str, rater_id: Any, grade: Any) -> models.Book:
        value = validate_grade(grade)
        rater = canonical_user_id(rater_id)
        book = self.get_book(uid)
        if any(rating.user_id == rater for rating in book.ratings):
            raise DuplicateRatingError()

        book.ratings.append(models.Rating(user_id=rater, grade=value))
        book.average_rating = average_grade(rating.grade for rating in book.ratings)
        # a concurrent rating by the same user trips the unique constraint
        self._persist(book, "rate", on_conflict=DuplicateRatingError)
        log.info("books.rated", book_id=uid, grade=value, average=book.average_rating)
        return book


__all__ = [
    "CatalogService",
    "DEFAULT_TOP_RATED",
    "average_grade",
    "canonical_user_id",
    "validate_grade",
]

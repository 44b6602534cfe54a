from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from apps.api.db import models

# Fields an owner may change through an update; everything else is ignored.
MUTABLE_FIELDS = ("title", "author", "year", "genre")


class RatingPayload(BaseModel):
    """Seed rating sent along with a new book."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")
    grade: Any = None


class BookCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1, max_length=255)
    author: str = Field(min_length=1, max_length=255)
    year: int | None = None
    genre: str | None = Field(default=None, max_length=255)
    ratings: list[RatingPayload] = Field(min_length=1, max_length=1)


class BookUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    author: str | None = Field(default=None, min_length=1, max_length=255)
    year: int | None = None
    genre: str | None = Field(default=None, max_length=255)

    def changes(self) -> dict[str, Any]:
        """Return the allow-listed fields the caller actually sent."""

        data = self.model_dump(exclude_unset=True)
        return {
            key: value
            for key, value in data.items()
            if key in MUTABLE_FIELDS and not (value is None and key in {"title", "author"})
        }


class RatingRequest(BaseModel):
    # the rater always comes from the access token, never from the body
    model_config = ConfigDict(extra="ignore")

    rating: Any = None


class RatingRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(serialization_alias="userId")
    grade: int


class BookRead(BaseModel):
    """Logical record layout returned to clients."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    author: str
    year: int | None = None
    genre: str | None = None
    image_url: str = Field(serialization_alias="imageUrl")
    user_id: str = Field(serialization_alias="userId")
    ratings: list[RatingRead] = Field(default_factory=list)
    average_rating: float | None = Field(default=None, serialization_alias="averageRating")

    @classmethod
    def from_record(cls, book: models.Book) -> BookRead:
        return cls(
            id=book.uid,
            title=book.title,
            author=book.author,
            year=book.year,
            genre=book.genre,
            image_url=book.image_url,
            user_id=book.owner_id,
            ratings=[RatingRead(user_id=r.user_id, grade=r.grade) for r in book.ratings],
            average_rating=book.average_rating,
        )


def serialize_book(book: models.Book) -> dict[str, Any]:
    return BookRead.from_record(book).model_dump(by_alias=True)


__all__ = [
    "BookCreate",
    "BookRead",
    "BookUpdate",
    "MUTABLE_FIELDS",
    "RatingPayload",
    "RatingRead",
    "RatingRequest",
    "serialize_book",
]

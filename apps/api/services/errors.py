"""Domain errors raised by the catalog services.

Each error carries the HTTP status the API boundary answers with.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base exception for catalog failures."""

    status_code = 500
    default_message = "Catalog operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CatalogError):
    """Raised when input has the wrong shape or is out of range."""

    status_code = 400
    default_message = "Invalid input"


class NotFoundError(CatalogError):
    status_code = 404
    default_message = "Book not found"


class UnauthorizedError(CatalogError):
    """Raised when the requester does not own the record."""

    status_code = 401
    default_message = "Not authorized"


class DuplicateRatingError(CatalogError):
    status_code = 400
    default_message = "You have already rated this book"


class ImageProcessingError(CatalogError):
    """Raised when an uploaded image cannot be normalized."""

    status_code = 500
    default_message = "Image processing failed"


class AssetReleaseError(CatalogError):
    """Raised when a stored asset cannot be deleted."""

    status_code = 500
    default_message = "Could not delete the book image"


class PersistenceError(CatalogError):
    status_code = 500
    default_message = "Could not save the book"


__all__ = [
    "AssetReleaseError",
    "CatalogError",
    "DuplicateRatingError",
    "ImageProcessingError",
    "NotFoundError",
    "PersistenceError",
    "UnauthorizedError",
    "ValidationError",
]

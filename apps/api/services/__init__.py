"""Service layer for catalog business logic."""

from .assets import AssetManager, AssetStore, LocalAssetStore, transcode_image
from .catalog import CatalogService, average_grade, validate_grade
from .errors import (
    AssetReleaseError,
    CatalogError,
    DuplicateRatingError,
    ImageProcessingError,
    NotFoundError,
    PersistenceError,
    UnauthorizedError,
    ValidationError,
)

__all__ = [
    "AssetManager",
    "AssetReleaseError",
    "AssetStore",
    "CatalogError",
    "CatalogService",
    "DuplicateRatingError",
    "ImageProcessingError",
    "LocalAssetStore",
    "NotFoundError",
    "PersistenceError",
    "UnauthorizedError",
    "ValidationError",
    "average_grade",
    "transcode_image",
    "validate_grade",
]

"""Router exposing book catalog endpoints."""

from __future__ import annotations

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile as StarletteUploadFile

from apps.api.auth import get_current_user_id
from apps.api.db.session import get_db_session
from apps.api.metrics import track_operation
from apps.api.schemas import RatingRequest, serialize_book
from apps.api.services.assets import AssetManager, LocalAssetStore
from apps.api.services.catalog import CatalogService
from apps.api.services.errors import ValidationError
from core.config import settings

router = APIRouter(prefix="/api/books", tags=["books"])


def get_asset_manager() -> AssetManager:
    return AssetManager(
        LocalAssetStore(settings.image_dir),
        width=settings.image_width,
        height=settings.image_height,
        image_format=settings.image_format,
        quality=settings.image_quality,
    )


def get_catalog(
    request: Request,
    db_session: Annotated[Session, Depends(get_db_session)],
    assets: Annotated[AssetManager, Depends(get_asset_manager)],
) -> CatalogService:
    base_url = settings.public_base_url or str(request.base_url)
    return CatalogService(db_session, assets, base_url=base_url)


Catalog = Annotated[CatalogService, Depends(get_catalog)]
CurrentUser = Annotated[str, Depends(get_current_user_id)]


def _load_json_object(raw: Any) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    except json.JSONDecodeError as exc:
        raise ValidationError("Book payload must be valid JSON") from exc
    if not isinstance(data, dict):
        raise ValidationError("Book payload must be a JSON object")
    return data


@router.get("")
def list_books(catalog: Catalog) -> list[dict[str, Any]]:
    return [serialize_book(book) for book in catalog.list_books()]


@router.get("/bestrating")
def best_rated_books(catalog: Catalog) -> list[dict[str, Any]]:
    return [serialize_book(book) for book in catalog.top_rated(settings.top_rated_limit)]


@router.get("/{book_id}")
def get_book(book_id: str, catalog: Catalog) -> dict[str, Any]:
    return serialize_book(catalog.get_book(book_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_book(
    catalog: Catalog,
    user_id: CurrentUser,
    book: Annotated[str, Form()],
    image: Annotated[UploadFile, File()],
) -> dict[str, Any]:
    with track_operation("create"):
        payload = _load_json_object(book)
        record = catalog.create_book(payload, image.file.read(), user_id)
    return {"message": "Book saved", "id": record.uid}


@router.put("/{book_id}")
async def update_book(
    book_id: str,
    request: Request,
    catalog: Catalog,
    user_id: CurrentUser,
) -> dict[str, Any]:
    """Edit a book from a multipart form (``book`` + ``image``) or a JSON body."""

    image_bytes: bytes | None = None
    with track_operation("update"):
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            payload = _load_json_object(form.get("book"))
            upload = form.get("image")
            if isinstance(upload, StarletteUploadFile):
                image_bytes = await upload.read()
        else:
            body = await request.body()
            payload = _load_json_object(body or None)
        await run_in_threadpool(
            catalog.update_book, book_id, payload, user_id, image=image_bytes
        )
    return {"message": "Book updated"}


@router.delete("/{book_id}")
def delete_book(book_id: str, catalog: Catalog, user_id: CurrentUser) -> dict[str, Any]:
    with track_operation("delete"):
        catalog.delete_book(book_id, user_id)
    return {"message": "Book deleted"}


@router.post("/{book_id}/rating")
def rate_book(
    book_id: str,
    body: RatingRequest,
    catalog: Catalog,
    user_id: CurrentUser,
) -> dict[str, Any]:
    with track_operation("rate"):
        record = catalog.rate_book(book_id, user_id, body.rating)
    return serialize_book(record)


__all__ = ["get_asset_manager", "get_catalog", "router"]

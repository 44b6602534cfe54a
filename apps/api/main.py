from __future__ import annotations

from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.api.db.init import init_db
from apps.api.middleware import RequestIDMiddleware
from apps.api.routes.books import router as books_router
from apps.api.services.assets import IMAGE_ROUTE
from apps.api.services.errors import CatalogError
from core.config import settings
from utils.logging import configure_logging

configure_logging()

log = structlog.get_logger(__name__)


async def _catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    log.info(
        "books.request_failed",
        error=type(exc).__name__,
        message=exc.message,
        status=exc.status_code,
    )
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()})
    return JSONResponse({"error": f"Invalid request: {', '.join(fields)}"}, status_code=400)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": exc.detail}, status_code=exc.status_code, headers=exc.headers
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Grimoire API")

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CatalogError, _catalog_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)

    app.include_router(books_router)

    image_dir = Path(settings.image_dir).expanduser()
    app.mount(IMAGE_ROUTE, StaticFiles(directory=image_dir, check_dir=False), name="images")

    @app.on_event("startup")
    def _on_startup() -> None:
        image_dir.mkdir(parents=True, exist_ok=True)
        init_db()
        log.info("app.started", image_dir=str(image_dir))

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(generate_latest(), headers={"content-type": CONTENT_TYPE_LATEST})

    return app


app = create_app()

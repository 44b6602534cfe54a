from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from apps.api.db.base import Base  # noqa: E402
from apps.api.services.assets import AssetManager, LocalAssetStore  # noqa: E402
from apps.api.services.catalog import CatalogService  # noqa: E402

BASE_URL = "http://testserver"


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def image_dir(tmp_path: Path) -> Path:
    return tmp_path / "images"


@pytest.fixture
def assets(image_dir: Path) -> AssetManager:
    return AssetManager(LocalAssetStore(image_dir))


@pytest.fixture
def catalog(db_session: Session, assets: AssetManager) -> CatalogService:
    return CatalogService(db_session, assets, base_url=BASE_URL)


@pytest.fixture
def api_app(
    monkeypatch: pytest.MonkeyPatch,
    session_factory: sessionmaker[Session],
    assets: AssetManager,
    image_dir: Path,
):
    monkeypatch.setenv("IMAGE_DIR", str(image_dir))
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.delenv("PUBLIC_BASE_URL", raising=False)
    image_dir.mkdir(parents=True, exist_ok=True)

    from apps.api.db.session import get_db_session
    from apps.api.main import create_app
    from apps.api.routes.books import get_asset_manager

    def _session() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app = create_app()
    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[get_asset_manager] = lambda: assets
    return app


@pytest.fixture
def client(api_app):
    from fastapi.testclient import TestClient

    # no context manager: startup would initialize the configured database
    return TestClient(api_app)


@pytest.fixture
def auth_headers(api_app):
    from apps.api.auth import create_access_token

    def _headers(user_id: str = "user-1") -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import structlog
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from apps.api.middleware import RequestIDMiddleware
from apps.api.services.catalog import CatalogService
from tests.helpers import book_payload, make_image_bytes
from utils.logging import configure_logging, redact


@pytest.fixture
def configured_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    monkeypatch.setenv("LOG_REDACT_FIELDS", "api_key")
    monkeypatch.delenv("LOG_FILE", raising=False)
    monkeypatch.delenv("LOG_DIR", raising=False)
    configure_logging()


def _collect_json_logs(records: list[logging.LogRecord]) -> list[dict[str, object]]:
    events: list[dict[str, object]] = []
    for record in records:
        try:
            events.append(json.loads(record.getMessage()))
        except json.JSONDecodeError:
            continue
    return events


def test_redact_masks_keys_case_insensitively() -> None:
    processor = redact({"Authorization", "token"})

    event = processor(None, "info", {"authorization": "Bearer x", "TOKEN": "t", "title": "ok"})

    assert event == {"authorization": "***REDACTED***", "TOKEN": "***REDACTED***", "title": "ok"}


def test_request_logging_binds_context_and_redacts(
    configured_logging: None, caplog: pytest.LogCaptureFixture
) -> None:
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)
    log = structlog.get_logger("test.logging")

    @app.get("/ping")
    def ping(_request: Request) -> dict[str, str]:
        log.info("test.event", authorization="secret", api_key="k-123")
        return {"status": "ok"}

    client = TestClient(app)
    with caplog.at_level(logging.INFO):
        response = client.get("/ping", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.headers["x-request-id"] == "req-123"

    events = _collect_json_logs(caplog.records)
    request_log = next(event for event in events if event.get("event") == "http.request")
    assert request_log["request_id"] == "req-123"
    assert request_log["path"] == "/ping"
    assert request_log["method"] == "GET"
    assert request_log["status"] == 200
    assert isinstance(request_log["latency_ms"], float)

    handler_log = next(event for event in events if event.get("event") == "test.event")
    assert handler_log["request_id"] == "req-123"
    assert handler_log["authorization"] == "***REDACTED***"
    assert handler_log["api_key"] == "***REDACTED***"


def test_catalog_events_are_structured(
    configured_logging: None, caplog: pytest.LogCaptureFixture, catalog: CatalogService
) -> None:
    with caplog.at_level(logging.INFO):
        book = catalog.create_book(book_payload(), make_image_bytes(), "user-1")
        catalog.delete_book(book.uid, "user-1")

    names = [event.get("event") for event in _collect_json_logs(caplog.records)]
    assert "books.created" in names
    assert "assets.released" in names
    assert "books.deleted" in names


def test_log_dir_adds_file_handler(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("LOG_FILE", raising=False)
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    configure_logging()

    structlog.get_logger("test.file").info("file.event", user="u1")
    for handler in logging.getLogger().handlers:
        handler.flush()

    log_file = tmp_path / "logs" / "grimoire.log"
    lines = [json.loads(line) for line in log_file.read_text().splitlines() if line.strip()]
    assert any(line["event"] == "file.event" for line in lines)

    monkeypatch.delenv("LOG_DIR")
    configure_logging()

from __future__ import annotations

import os
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

from apps.api.metrics import REQUEST_COUNTER

ASGISend = Callable[[dict[str, Any]], Awaitable[None]]
ASGIReceive = Callable[[], Awaitable[dict[str, Any]]]
ASGIApp = Callable[[dict[str, Any], ASGIReceive, ASGISend], Awaitable[None]]


class RequestIDMiddleware:
    """Attach a request ID and structured logging context to each HTTP request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app
        self.header_name = os.getenv("REQUEST_ID_HEADER", "X-Request-ID")
        self._header_bytes = self.header_name.lower().encode("latin-1")
        self.log = structlog.get_logger("grimoire.request")

    async def __call__(self, scope: dict[str, Any], receive: ASGIReceive, send: ASGISend) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = self._find_header(scope.get("headers", [])) or str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id
        path = scope.get("path", "")
        method = scope.get("method", "")

        clear_contextvars()
        bind_contextvars(
            request_id=request_id,
            path=path,
            method=method,
            status=None,
            latency_ms=None,
        )

        start_time = time.perf_counter()
        status_code: int | None = None

        def _finish(code: int) -> None:
            latency = (time.perf_counter() - start_time) * 1000
            bind_contextvars(status=code, latency_ms=round(latency, 3))
            REQUEST_COUNTER.labels(path=path, method=method, status=str(code)).inc()

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            if message["type"] == "http.response.start":
                status_code = int(message.get("status", 500))
                headers = message.setdefault("headers", [])
                if not any(key.lower() == self._header_bytes for key, _ in headers):
                    headers.append(
                        (self.header_name.encode("latin-1"), request_id.encode("latin-1"))
                    )
                bind_contextvars(status=status_code)
            elif message["type"] == "http.response.body" and not message.get("more_body", False):
                _finish(status_code or 200)
                self.log.info("http.request")

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            _finish(status_code or 500)
            self.log.exception("http.request.error")
            raise
        finally:
            clear_contextvars()

    def _find_header(self, headers: list[tuple[bytes, bytes]]) -> str | None:
        for key, value in headers:
            if key.lower() == self._header_bytes:
                return value.decode("latin-1")
        return None

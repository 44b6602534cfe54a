"""JWT bearer authentication for the API.

Tokens are issued elsewhere; this module only verifies HS256 signatures
and extracts the ``sub`` claim as the trusted user identifier.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from datetime import timedelta
from typing import Any, Dict, Mapping

from fastapi import HTTPException, Request, status

from core.config import settings


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(raw: str) -> bytes:
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding)


def _json_dumps(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True)


def _json_loads(data: str) -> Mapping[str, Any]:
    loaded = json.loads(data)
    if not isinstance(loaded, Mapping):
        raise ValueError("JWT payload must be a mapping")
    return loaded


def _sign(message: str) -> str:
    secret = settings.jwt_secret.encode("utf-8")
    digest = hmac.new(secret, message.encode("utf-8"), hashlib.sha256).digest()
    return _b64encode(digest)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status.HTTP_401_UNAUTHORIZED, detail, headers={"WWW-Authenticate": "Bearer"}
    )


def create_access_token(
    user_id: str, expires_delta: timedelta | int | None = None, **claims: Any
) -> str:
    if isinstance(expires_delta, timedelta):
        expires_seconds = int(expires_delta.total_seconds())
    elif expires_delta is not None:
        expires_seconds = int(expires_delta)
    else:
        expires_seconds = settings.jwt_expiration_seconds
    now = int(time.time())
    payload: Dict[str, Any] = {**claims, "sub": str(user_id), "iat": now}
    payload["exp"] = now + expires_seconds
    header_segment = _b64encode(_json_dumps({"alg": "HS256", "typ": "JWT"}).encode("utf-8"))
    payload_segment = _b64encode(_json_dumps(payload).encode("utf-8"))
    signature_segment = _sign(f"{header_segment}.{payload_segment}")
    return f"{header_segment}.{payload_segment}.{signature_segment}"


def verify_token(token: str) -> Mapping[str, Any]:
    try:
        header_segment, payload_segment, signature_segment = token.split(".")
    except ValueError as exc:
        raise _unauthorized("Invalid token") from exc
    expected_signature = _sign(f"{header_segment}.{payload_segment}")
    if not hmac.compare_digest(signature_segment, expected_signature):
        raise _unauthorized("Invalid token signature")
    try:
        payload = _json_loads(_b64decode(payload_segment).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise _unauthorized("Invalid token payload") from exc
    exp = payload.get("exp")
    if isinstance(exp, (int, float)) and exp < time.time():
        raise _unauthorized("Token expired")
    return payload


def get_current_user_id(request: Request) -> str:
    """FastAPI dependency returning the authenticated user identifier."""

    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Not authenticated")
    payload = verify_token(token.strip())
    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id.strip():
        raise _unauthorized("Invalid token subject")
    request.state.user_id = user_id
    return user_id

"""Authentication helpers for the API layer."""

from .jwt import create_access_token, get_current_user_id, verify_token

__all__ = [
    "create_access_token",
    "get_current_user_id",
    "verify_token",
]

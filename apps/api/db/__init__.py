"""Database models and the record store adapter for the Grimoire API."""

from . import init, models, repositories, session

__all__ = ["init", "models", "repositories", "session"]

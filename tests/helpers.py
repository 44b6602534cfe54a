from __future__ import annotations

import io
import struct
import zlib
from pathlib import Path
from typing import Any

from PIL import Image


def make_image_bytes(
    size: tuple[int, int] = (120, 80),
    color: tuple[int, int, int] = (200, 30, 30),
    image_format: str = "PNG",
) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=image_format)
    return buffer.getvalue()


def oversized_png(width: int = 20000, height: int = 20000) -> bytes:
    """PNG whose header declares ``width`` x ``height`` with almost no pixel data."""

    def chunk(kind: bytes, data: bytes) -> bytes:
        return (
            struct.pack(">I", len(data))
            + kind
            + data
            + struct.pack(">I", zlib.crc32(kind + data) & 0xFFFFFFFF)
        )

    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", header)
        + chunk(b"IDAT", zlib.compress(b"\x00"))
        + chunk(b"IEND", b"")
    )


def book_payload(grade: Any = 4, **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "title": "Le Petit Prince",
        "author": "Antoine de Saint-Exupery",
        "year": 1943,
        "genre": "Conte",
        "ratings": [{"userId": "someone-else", "grade": grade}],
    }
    payload.update(overrides)
    return payload


def stored_files(directory: Path) -> list[str]:
    """Names of the files in ``directory``, temporary files included."""

    if not directory.exists():
        return []
    return sorted(path.name for path in directory.iterdir())

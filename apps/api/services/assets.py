"""Storage and lifecycle of normalized book cover images."""

from __future__ import annotations

import io
import os
import tempfile
import uuid
import warnings
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path
from typing import Protocol

import structlog
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import AssetReleaseError, ImageProcessingError

IMAGE_ROUTE = "/images"

log = structlog.get_logger(__name__)

Transform = Callable[[bytes, int, int, str, int], bytes]


class AssetStore(Protocol):
    """Byte storage addressed by asset handle."""

    def put(self, name: str, data: bytes) -> None: ...

    def get(self, name: str) -> bytes: ...

    def delete(self, name: str) -> None: ...

    def exists(self, name: str) -> bool: ...


class LocalAssetStore:
    """Asset store backed by a local directory.

    ``put`` writes to a temporary file inside the root and moves it into
    place with :func:`os.replace`, so a handle is either absent or complete.
    ``delete`` raises :class:`FileNotFoundError` when the handle is missing.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser()

    def _path(self, name: str) -> Path:
        if not name or name in {".", ".."} or "/" in name or "\\" in name:
            raise ValueError(f"Invalid asset name: {name!r}")
        return self.root / name

    def put(self, name: str, data: bytes) -> None:
        target = self._path(name)
        self.root.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=self.root, prefix=".incoming-", suffix=".part", delete=False
        ) as tmp:
            tmp_path = Path(tmp.name)
            try:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            except BaseException:
                tmp.close()
                with suppress(FileNotFoundError):
                    tmp_path.unlink()
                raise
        try:
            os.replace(tmp_path, target)
        except BaseException:
            with suppress(FileNotFoundError):
                tmp_path.unlink()
            raise

    def get(self, name: str) -> bytes:
        return self._path(name).read_bytes()

    def delete(self, name: str) -> None:
        self._path(name).unlink()

    def exists(self, name: str) -> bool:
        return self._path(name).is_file()


def transcode_image(data: bytes, width: int, height: int, image_format: str, quality: int) -> bytes:
    """Crop-resize ``data`` to exactly ``width`` x ``height`` and re-encode it."""

    target_format = image_format.upper()
    try:
        with warnings.catch_warnings():
            # oversized images fail instead of being decoded in full
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            source = Image.open(io.BytesIO(data))
        with source:
            source.load()
            has_alpha = source.mode in {"RGBA", "LA", "PA"} or "transparency" in source.info
            mode = "RGBA" if has_alpha and target_format != "JPEG" else "RGB"
            fitted = ImageOps.fit(source.convert(mode), (width, height))
            buffer = io.BytesIO()
            fitted.save(buffer, format=target_format, quality=quality)
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        Image.DecompressionBombWarning,
        OSError,
        EOFError,
        ValueError,
        KeyError,
    ) as exc:
        # KeyError: Pillow has no encoder registered for ``image_format``
        raise ImageProcessingError("Image could not be processed") from exc
    return buffer.getvalue()


class AssetManager:
    """Turns uploads into stored assets and releases them when superseded."""

    def __init__(
        self,
        store: AssetStore,
        *,
        width: int = 463,
        height: int = 595,
        image_format: str = "webp",
        quality: int = 80,
        transform: Transform = transcode_image,
    ) -> None:
        self.store = store
        self.width = width
        self.height = height
        self.image_format = image_format.lower()
        self.quality = quality
        self.transform = transform

    def normalize(
        self,
        raw: bytes,
        width: int | None = None,
        height: int | None = None,
        image_format: str | None = None,
    ) -> str:
        """Normalize ``raw`` and store it; return the new asset handle."""

        if not raw:
            raise ImageProcessingError("Image is empty")
        fmt = (image_format or self.image_format).lower()
        data = self.transform(
            raw, width or self.width, height or self.height, fmt, self.quality
        )
        handle = f"{uuid.uuid4().hex}.{fmt}"
        try:
            self.store.put(handle, data)
        except OSError as exc:
            log.error("assets.store_failed", handle=handle, exc_info=True)
            raise ImageProcessingError("Image could not be stored") from exc
        log.info("assets.stored", handle=handle, size=len(data))
        return handle

    def release(self, handle: str) -> None:
        """Delete ``handle``; a missing asset counts as released."""

        try:
            self.store.delete(handle)
        except FileNotFoundError:
            log.info("assets.already_absent", handle=handle)
            return
        except (OSError, ValueError) as exc:
            raise AssetReleaseError() from exc
        log.info("assets.released", handle=handle)

    def exists(self, handle: str) -> bool:
        try:
            return self.store.exists(handle)
        except ValueError:
            return False

    @staticmethod
    def to_external_reference(handle: str, base_location: str) -> str:
        return f"{base_location.rstrip('/')}{IMAGE_ROUTE}/{handle}"

    @staticmethod
    def handle_from_reference(reference: str | None) -> str | None:
        if not reference:
            return None
        marker = f"{IMAGE_ROUTE}/"
        if marker not in reference:
            return None
        handle = reference.rsplit(marker, 1)[1]
        if not handle or "/" in handle:
            return None
        return handle


__all__ = [
    "AssetManager",
    "AssetStore",
    "IMAGE_ROUTE",
    "LocalAssetStore",
    "transcode_image",
]

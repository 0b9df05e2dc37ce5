"""Photo access for the diary engine.

The engine never touches storage itself; it consumes ``PhotoInput`` values
from a ``PhotoSource``. ``LocalPhotoSource`` reads image files from disk and
takes the capture time from EXIF.

Example:
    >>> source = LocalPhotoSource()
    >>> photo = source.load("~/Pictures/2025-03-15/IMG_0012.jpg")
    >>> photo.timestamp
    datetime.datetime(2025, 3, 15, 8, 42, 10)
"""

from __future__ import annotations

import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Protocol

from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import TAGS

from smart_diary.core.models import PhotoInput

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}

# EXIF stores capture time in local time without a zone
EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"
EXIF_DATETIME_TAGS = ("DateTimeOriginal", "DateTimeDigitized", "DateTime")
EXIF_IFD_POINTER = 0x8769


class PhotoSource(Protocol):
    """Supplies image bytes and a timestamp for an asset identifier."""

    def load(self, asset_id: str) -> PhotoInput: ...


class LocalPhotoSource:
    """Loads photos from the local filesystem.

    Non-JPEG images are re-encoded as JPEG so every vision request carries
    the same MIME type.
    """

    def __init__(self, jpeg_quality: int = 90) -> None:
        self.jpeg_quality = jpeg_quality

    def load(self, asset_id: str) -> PhotoInput:
        """Read one photo.

        Raises:
            FileNotFoundError: If the path does not exist.
            ValueError: If the file is not a readable image.
        """
        path = Path(asset_id).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"Photo not found: {path}")

        raw = path.read_bytes()
        try:
            with Image.open(io.BytesIO(raw)) as img:
                exif = self._extract_exif_data(img)
                image_bytes = raw if img.format == "JPEG" else self._to_jpeg(img)
        except UnidentifiedImageError as e:
            raise ValueError(f"Not a readable image: {path.name}") from e

        timestamp = self._extract_datetime_from_exif(exif)
        if timestamp is None:
            timestamp = datetime.fromtimestamp(path.stat().st_mtime)
            logger.debug(f"No EXIF capture time for {path.name}; using file mtime")
        return PhotoInput(image_bytes=image_bytes, timestamp=timestamp)

    def load_many(self, asset_ids: Iterable[str]) -> list[PhotoInput]:
        """Load several photos, preserving the given order."""
        return [self.load(asset_id) for asset_id in asset_ids]

    def _to_jpeg(self, img: Image.Image) -> bytes:
        buffer = io.BytesIO()
        img.convert("RGB").save(buffer, format="JPEG", quality=self.jpeg_quality)
        return buffer.getvalue()

    def _extract_exif_data(self, img: Image.Image) -> dict[str, Any]:
        """Decode EXIF tag IDs to readable names, including the Exif sub-IFD."""
        exif = img.getexif()
        if not exif:
            return {}
        decoded = {TAGS.get(tag_id, tag_id): value for tag_id, value in exif.items()}
        for tag_id, value in exif.get_ifd(EXIF_IFD_POINTER).items():
            decoded[TAGS.get(tag_id, tag_id)] = value
        return decoded

    def _extract_datetime_from_exif(self, exif: dict[str, Any]) -> datetime | None:
        """First parseable of DateTimeOriginal, DateTimeDigitized, DateTime."""
        for tag in EXIF_DATETIME_TAGS:
            value = exif.get(tag)
            if isinstance(value, bytes):
                value = value.decode("ascii", errors="ignore")
            if not isinstance(value, str):
                continue
            try:
                return datetime.strptime(value.strip("\x00 "), EXIF_DATETIME_FORMAT)
            except ValueError:
                logger.debug(f"Could not parse EXIF datetime: {value!r}")
        return None


def find_photos(directory: Path) -> list[Path]:
    """Image files directly inside ``directory``, sorted by name."""
    return sorted(
        p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
    )

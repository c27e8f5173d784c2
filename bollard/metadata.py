"""Photo metadata for Bollard.

Derivative collections need a title, a date and a few optional fields for
every photo. They are read from EXIF through Pillow. The store hands out
handles that answer one key at a time, so tests can replace the store with
an in-memory fake.

Key items:
- MetadataKey: Keys a handle answers.
- MetadataStore: Opens Pillow handles on photo files.
- AssetMetadata: Validated metadata of one photo.
- read_asset_metadata: Read and validate the metadata of one photo.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from PIL import ExifTags, Image

from .errors import AssetMetadataError
from .images import SWAPS_AXES, Size

logger = logging.getLogger(__name__)

EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

_IMAGE_DESCRIPTION = 0x010E
_DATE_TIME = 0x0132
_ORIENTATION = 0x0112
_XP_TITLE = 0x9C9B
_XP_COMMENT = 0x9C9C
_XP_KEYWORDS = 0x9C9E
_DATE_TIME_ORIGINAL = 0x9003
_USER_COMMENT = 0x9286
_GPS_LATITUDE_REF = 1
_GPS_LATITUDE = 2
_GPS_LONGITUDE_REF = 3
_GPS_LONGITUDE = 4


class MetadataKey(Enum):
    TITLE = "title"
    COMMENT = "comment"
    KEYWORDS = "keywords"
    WIDTH = "width"
    HEIGHT = "height"
    DATE_TAKEN = "date_taken"
    LATITUDE = "latitude"
    LONGITUDE = "longitude"
    ORIENTATION = "orientation"


@dataclass
class AssetMetadata:
    """Metadata of one photo.

    Attributes:
        path: Source photo.
        title: Photo title.
        date_taken: When the photo was taken.
        size: Upright (display) size in pixels.
        orientation: EXIF orientation code, 1 to 8.
        comment: Free-text description.
        latitude: Degrees north, NaN if unknown.
        longitude: Degrees east, NaN if unknown.
        tags: Keywords.
    """

    path: Path
    title: str
    date_taken: datetime
    size: Size
    orientation: int = 1
    comment: str = ""
    latitude: float = math.nan
    longitude: float = math.nan
    tags: list[str] = field(default_factory=list)


class MetadataHandle:
    """Open photo whose EXIF metadata can be queried by key.

    Use as a context manager; the file is closed on exit.
    """

    def __init__(self, path: Path, image: Image.Image):
        self.path = path
        self._image = image
        self._exif = image.getexif()
        self._exif_ifd = self._exif.get_ifd(ExifTags.IFD.Exif)
        self._gps_ifd = self._exif.get_ifd(ExifTags.IFD.GPSInfo)

    def __enter__(self) -> MetadataHandle:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._image.close()

    def get_value(self, key: MetadataKey) -> Any:
        """Return the value for a key, or None when the photo lacks it.

        Width and height are display dimensions: swapped for orientations
        that rotate the picture by 90 degrees.
        """
        if key is MetadataKey.TITLE:
            return _decode_xp(self._exif.get(_XP_TITLE)) or _clean(
                self._exif.get(_IMAGE_DESCRIPTION)
            )
        if key is MetadataKey.COMMENT:
            return _decode_xp(self._exif.get(_XP_COMMENT)) or _decode_user_comment(
                self._exif_ifd.get(_USER_COMMENT)
            )
        if key is MetadataKey.KEYWORDS:
            keywords = _decode_xp(self._exif.get(_XP_KEYWORDS))
            if not keywords:
                return None
            return [k.strip() for k in keywords.split(";") if k.strip()]
        if key is MetadataKey.DATE_TAKEN:
            return _parse_date(
                self._exif_ifd.get(_DATE_TIME_ORIGINAL) or self._exif.get(_DATE_TIME)
            )
        if key is MetadataKey.ORIENTATION:
            return self._orientation()
        if key is MetadataKey.WIDTH:
            width, height = self._image.size
            return height if self._orientation() in SWAPS_AXES else width
        if key is MetadataKey.HEIGHT:
            width, height = self._image.size
            return width if self._orientation() in SWAPS_AXES else height
        if key is MetadataKey.LATITUDE:
            return _gps_degrees(
                self._gps_ifd.get(_GPS_LATITUDE), self._gps_ifd.get(_GPS_LATITUDE_REF)
            )
        if key is MetadataKey.LONGITUDE:
            return _gps_degrees(
                self._gps_ifd.get(_GPS_LONGITUDE), self._gps_ifd.get(_GPS_LONGITUDE_REF)
            )
        raise KeyError(key)

    def _orientation(self) -> int:
        value = self._exif.get(_ORIENTATION)
        try:
            orientation = int(value)
        except (TypeError, ValueError):
            return 1
        return orientation if 1 <= orientation <= 8 else 1


class MetadataStore:
    """Reads photo metadata with Pillow."""

    def open(self, path: Path) -> MetadataHandle:
        """Open a photo for metadata queries.

        Raises:
            AssetMetadataError: If the file is missing or not a readable image.
        """
        if not path.is_file():
            raise AssetMetadataError(path, "file not found")
        try:
            image = Image.open(path)
        except OSError as exc:
            raise AssetMetadataError(path, f"cannot read image: {exc}") from exc
        return MetadataHandle(path, image)


def read_asset_metadata(store: Any, path: Path) -> AssetMetadata:
    """Read the metadata a derivative collection needs for one photo.

    Args:
        store: Metadata store (anything with an ``open(path)`` method
            returning a handle).
        path: Source photo.

    Returns:
        Validated metadata.

    Raises:
        AssetMetadataError: If the title, date or size is missing.
    """
    with store.open(path) as handle:
        title = handle.get_value(MetadataKey.TITLE)
        if not title:
            raise AssetMetadataError(path, "no title")
        date_taken = handle.get_value(MetadataKey.DATE_TAKEN)
        if date_taken is None:
            raise AssetMetadataError(path, "no date taken")
        width = handle.get_value(MetadataKey.WIDTH)
        height = handle.get_value(MetadataKey.HEIGHT)
        if not width or not height:
            raise AssetMetadataError(path, "no image dimensions")

        orientation = handle.get_value(MetadataKey.ORIENTATION) or 1
        if orientation == 7:
            logger.warning("%s: orientation 7 is not supported, ignored", path.name)
            orientation = 1

        latitude = handle.get_value(MetadataKey.LATITUDE)
        longitude = handle.get_value(MetadataKey.LONGITUDE)
        return AssetMetadata(
            path=path,
            title=title,
            date_taken=date_taken,
            size=Size(width, height),
            orientation=orientation,
            comment=handle.get_value(MetadataKey.COMMENT) or "",
            latitude=math.nan if latitude is None else latitude,
            longitude=math.nan if longitude is None else longitude,
            tags=list(handle.get_value(MetadataKey.KEYWORDS) or []),
        )


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = str(value).strip("\x00").strip()
    return text or None


def _decode_xp(value: Any) -> str | None:
    # Windows XP* tags hold UTF-16LE bytes
    if value is None:
        return None
    if isinstance(value, tuple):
        value = bytes(value)
    if isinstance(value, bytes):
        value = value.decode("utf-16-le", errors="replace")
    return _clean(value)


def _decode_user_comment(value: Any) -> str | None:
    # UserComment starts with an 8-byte character code
    if not isinstance(value, bytes):
        return _clean(value)
    code, body = value[:8], value[8:]
    if code.startswith(b"UNICODE"):
        return _clean(body.decode("utf-16", errors="replace"))
    return _clean(body.decode("utf-8", errors="replace"))


def _parse_date(value: Any) -> datetime | None:
    text = _clean(value)
    if text is None:
        return None
    try:
        return datetime.strptime(text[:19], EXIF_DATE_FORMAT)
    except ValueError:
        logger.debug("Unparseable EXIF date %r", text)
        return None


def _gps_degrees(dms: Any, ref: Any) -> float | None:
    if not dms:
        return None
    try:
        degrees, minutes, seconds = (float(part) for part in dms)
    except (TypeError, ValueError):
        return None
    value = degrees + minutes / 60 + seconds / 3600
    if _clean(ref) in ("S", "W"):
        value = -value
    return value

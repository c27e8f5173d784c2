"""Image derivatives for Bollard.

Photos are published as several derivatives, each fitted into a bounding box
with the original aspect ratio and turned upright according to the EXIF
orientation tag. Derivatives are generated once: an existing file is never
recomputed.

Key items:
- Size: Pixel dimensions.
- limit_size: Fit a size into a bounding box without upscaling.
- name_from_title: Compact file-name-safe form of a photo title.
- resize_and_right / right_image: Pillow transforms for resizing and orientation.
- DerivativeGenerator: Produces all derivatives of one photo.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from PIL import Image

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = {".jpg", ".jpeg"}
MAX_BASE_NAME = 24
JPEG_QUALITY = 90
ORIENTATION_TAG = 0x0112

# EXIF orientation code -> transform that makes the image upright.
# Code 7 (transverse) is not supported.
ORIENTATION_TRANSFORMS = {
    2: Image.Transpose.FLIP_LEFT_RIGHT,
    3: Image.Transpose.ROTATE_180,
    4: Image.Transpose.FLIP_TOP_BOTTOM,
    5: Image.Transpose.TRANSPOSE,
    6: Image.Transpose.ROTATE_270,
    8: Image.Transpose.ROTATE_90,
}
SWAPS_AXES = frozenset({5, 6, 8})

_WORD_RE = re.compile(r"[^\W\d_][^\W_]*")


@dataclass(frozen=True)
class Size:
    """Width and height in pixels."""

    width: int
    height: int

    @classmethod
    def square(cls, size: int) -> Size:
        return cls(size, size)

    def scale(self, factor: int) -> Size:
        return Size(self.width * factor, self.height * factor)

    def divide(self, factor: int) -> Size:
        return Size(self.width // factor, self.height // factor)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


def limit_size(original: Size, limit: Size) -> Size:
    """Fit a size within a bounding box, keeping the aspect ratio.

    Width is tried as the governing dimension first; if the result is still
    too tall, height governs instead. Sizes that already fit are returned
    unchanged, so images are never scaled up.

    Args:
        original: Size of the source image.
        limit: Bounding box.

    Returns:
        The largest size within the box with the original's aspect ratio
        (up to integer rounding).

    Examples:
        >>> limit_size(Size(4000, 3000), Size(800, 600))
        Size(width=800, height=600)
        >>> limit_size(Size(3000, 4000), Size(800, 600))
        Size(width=450, height=600)
        >>> limit_size(Size(640, 480), Size(800, 600))
        Size(width=640, height=480)
    """
    if original.width <= limit.width:
        width, height = original.width, original.height
    else:
        width = limit.width
        height = limit.width * original.height // original.width

    if height > limit.height:
        height = limit.height
        width = limit.height * original.width // original.height
    return Size(width, height)


def name_from_title(title: str, max_length: int = MAX_BASE_NAME) -> str:
    """Build a compact file name from a photo title.

    Words (a letter followed by letters or digits) are concatenated, the
    word "the" is dropped, and words are added only while the result stays
    within ``max_length``. Words are never cut; the first word is always
    kept.

    Examples:
        >>> name_from_title("The Old Bridge")
        'OldBridge'
        >>> name_from_title("Bollards of the north-west, part 2")
        'Bollardsofnorthwestpart'
    """
    result = ""
    for word in _WORD_RE.findall(title):
        if word.lower() == "the":
            continue
        if result and len(result) + len(word) > max_length:
            break
        result += word
    return result


def base_name(date_taken: datetime, title: str) -> str:
    """Return the base file name for a photo: ``YYYY-MM-DD_TitleWords``."""
    return f"{date_taken:%Y-%m-%d}_{name_from_title(title)}"


def derivative_filename(base: str, size: Size) -> str:
    return f"{base}_{size}.jpg"


def resize_and_right(image: Image.Image, size: Size, orientation: int) -> Image.Image:
    """Resize an image and turn it upright.

    ``size`` is the upright target size. For orientations that swap the
    axes the image is first resized to the transposed size, then rotated.

    Args:
        image: Source image as stored in the file.
        size: Upright output size.
        orientation: EXIF orientation code of the source.

    Returns:
        New image of exactly ``size``.
    """
    if orientation in SWAPS_AXES:
        interim = (size.height, size.width)
    else:
        interim = (size.width, size.height)
    resized = image.resize(interim, Image.Resampling.LANCZOS)
    transform = ORIENTATION_TRANSFORMS.get(orientation)
    if transform is not None:
        resized = resized.transpose(transform)
    return resized


def right_image(image: Image.Image, orientation: int) -> Image.Image:
    """Turn an image upright without resizing it."""
    transform = ORIENTATION_TRANSFORMS.get(orientation)
    if transform is None:
        return image.copy()
    return image.transpose(transform)


def _save_jpeg(image: Image.Image, source: Image.Image, dest: Path) -> None:
    # Metadata carries over with orientation reset, since pixels are upright now
    exif = source.getexif()
    exif[ORIENTATION_TAG] = 1
    partial = dest.with_name(dest.name + ".part")
    try:
        image.save(
            partial,
            format="JPEG",
            quality=JPEG_QUALITY,
            exif=exif.tobytes(),
            icc_profile=source.info.get("icc_profile"),
        )
        os.replace(partial, dest)
    finally:
        if partial.exists():
            partial.unlink()


def _copy_file(source: Path, dest: Path) -> None:
    partial = dest.with_name(dest.name + ".part")
    try:
        shutil.copyfile(source, partial)
        os.replace(partial, dest)
    finally:
        if partial.exists():
            partial.unlink()


def generate_derivative(
    source: Path,
    source_size: Size,
    orientation: int,
    dest: Path,
    dest_size: Size,
) -> bool:
    """Write one derivative unless it already exists.

    A derivative that differs in size is resized and turned upright. One of
    the original size is only turned upright, and an upright original is
    copied byte for byte.

    Args:
        source: Source photo.
        source_size: Upright size of the source.
        orientation: EXIF orientation code of the source.
        dest: Derivative path.
        dest_size: Upright size of the derivative.

    Returns:
        True if a file was written, False if it already existed.
    """
    if dest.exists():
        return False

    if source_size != dest_size:
        with Image.open(source) as image:
            _save_jpeg(resize_and_right(image, dest_size, orientation), image, dest)
    elif orientation in ORIENTATION_TRANSFORMS:
        with Image.open(source) as image:
            _save_jpeg(right_image(image, orientation), image, dest)
    else:
        _copy_file(source, dest)
    return True


@dataclass
class DerivativeSet:
    """Derivatives produced for one photo.

    Attributes:
        base_name: Base file name shared by all derivatives.
        sizes: Upright pixel size of each derivative, in size order.
        filenames: File name of each derivative, in size order.
        generated: True if at least one file was written.
    """

    base_name: str
    sizes: list[Size] = field(default_factory=list)
    filenames: list[str] = field(default_factory=list)
    generated: bool = False


class DerivativeGenerator:
    """Generates the configured derivatives of photos into one directory.

    Attributes:
        image_dir: Directory the derivatives are written to.
        sizes: Bounding boxes by name, in output order.
    """

    def __init__(self, image_dir: Path, sizes: Mapping[str, Size]):
        self.image_dir = image_dir
        self.sizes = dict(sizes)

    def process(
        self, source: Path, native_size: Size, orientation: int, base: str
    ) -> DerivativeSet:
        """Produce every derivative of one photo.

        Args:
            source: Source photo.
            native_size: Upright size of the source.
            orientation: EXIF orientation code of the source.
            base: Base file name for the derivatives.

        Returns:
            The derivative sizes and file names.
        """
        result = DerivativeSet(base_name=base)
        for limit in self.sizes.values():
            size = limit_size(native_size, limit)
            filename = derivative_filename(base, size)
            if generate_derivative(
                source, native_size, orientation, self.image_dir / filename, size
            ):
                result.generated = True
            result.sizes.append(size)
            result.filenames.append(filename)
        return result

"""
Image-Header Probe

Reads format, dimensions, bit depth and resolution of the source image
without decoding pixel content. Pillow only parses the file header on
Image.open(); pixel data is never loaded here.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from .geometry import pixel_spacing_from_dpi

logger = logging.getLogger(__name__)

# Only JPEG can be carried under the JPEG Baseline transfer syntax.
SUPPORTED_FORMATS = frozenset({"JPEG"})

# Bits per pixel for each Pillow mode (all samples together).
MODE_BITS: Dict[str, int] = {
    "1": 1,
    "L": 8,
    "P": 8,
    "LA": 16,
    "I;16": 16,
    "I;16B": 16,
    "RGB": 24,
    "YCbCr": 24,
    "LAB": 24,
    "RGBA": 32,
    "CMYK": 32,
    "I": 32,
    "F": 32,
}


@dataclass(frozen=True)
class ImageHeader:
    """Header metadata of a source image."""

    format_name: str
    mime_type: Optional[str]
    width: int
    height: int
    bits_per_pixel: int
    dpi: Optional[Tuple[float, float]]  # (horizontal, vertical)


@dataclass(frozen=True)
class PixelGeometry:
    """
    Pixel attributes derived from an image header.

    pixel_spacing is in DICOM order: (row spacing, column spacing) in mm,
    i.e. (vertical, horizontal). None when the image carries no resolution.
    """

    rows: int
    columns: int
    bits_allocated: int
    bits_stored: int
    high_bit: int
    pixel_spacing: Optional[Tuple[float, float]] = None

    @classmethod
    def from_header(cls, header: ImageHeader) -> "PixelGeometry":
        spacing = None
        if header.dpi is not None:
            horizontal_dpi, vertical_dpi = header.dpi
            spacing = (
                pixel_spacing_from_dpi(vertical_dpi),
                pixel_spacing_from_dpi(horizontal_dpi),
            )
        return cls(
            rows=header.height,
            columns=header.width,
            bits_allocated=header.bits_per_pixel,
            bits_stored=header.bits_per_pixel,
            high_bit=header.bits_per_pixel - 1,
            pixel_spacing=spacing,
        )


def _read_dpi(info: dict) -> Optional[Tuple[float, float]]:
    dpi = info.get("dpi")
    if not dpi or len(dpi) != 2:
        return None
    try:
        horizontal, vertical = float(dpi[0]), float(dpi[1])
    except (TypeError, ValueError):
        return None
    if horizontal <= 0 or vertical <= 0:
        return None
    return horizontal, vertical


def probe_image_header(image_path: Union[str, Path]) -> Optional[ImageHeader]:
    """
    Probe the header of an image file.

    Args:
        image_path: Path to the source image

    Returns:
        ImageHeader, or None (logged) when the format is not supported.
        I/O errors other than an unidentifiable format propagate.
    """
    try:
        with Image.open(image_path) as img:
            format_name = img.format
            mode = img.mode
            width, height = img.size
            info = dict(img.info)
    except UnidentifiedImageError:
        logger.error("Not a supported image file format: %s", image_path)
        return None

    if format_name not in SUPPORTED_FORMATS:
        logger.error("Not a supported image file format: %s (%s)", image_path, format_name)
        return None

    # JPEG Baseline covers sequential DCT only
    if info.get("progressive") or info.get("progression"):
        logger.error("Progressive JPEG cannot be stored as JPEG Baseline: %s", image_path)
        return None

    bits = MODE_BITS.get(mode)
    if bits is None:
        logger.error("Unsupported image mode %s in %s", mode, image_path)
        return None

    dpi = _read_dpi(info)
    if dpi is None:
        logger.warning("No usable resolution in %s; pixel spacing will be unset", image_path)

    header = ImageHeader(
        format_name=format_name,
        mime_type=Image.MIME.get(format_name),
        width=width,
        height=height,
        bits_per_pixel=bits,
        dpi=dpi,
    )
    logger.info(
        "%s, %s, %d x %d pixels, %d bits per pixel, %s DPI",
        header.format_name,
        header.mime_type,
        header.width,
        header.height,
        header.bits_per_pixel,
        "x".join(f"{v:g}" for v in dpi) if dpi else "unknown",
    )
    return header

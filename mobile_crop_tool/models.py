"""
Data models and crop-geometry utilities.

Two coordinate spaces are involved: *display* coordinates (pixels relative
to the top-left of the rendered, possibly scaled image) and *natural*
coordinates (pixels of the decoded source image).  ``map_display_to_natural``
converts a click between them; ``compute_crop`` turns natural dimensions and
an optional focal point into the largest crop of the target aspect ratio.

This module is Qt-free and safe for worker import.
"""

from dataclasses import dataclass
from math import gcd

from mobile_crop_tool.config import RATIO_W, RATIO_H, OUTPUT_HEIGHT
from mobile_crop_tool.errors import InvalidDimensions


# =============================================================================
# Data classes
# =============================================================================
@dataclass(frozen=True)
class Point:
    """A position in either display or natural coordinates."""
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Size:
    width: float = 0
    height: float = 0

    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class ImageDimensions:
    """Natural (decoded) size of an image and the size it is displayed at."""
    natural: Size
    display: Size | None = None  # unknown until the image has been laid out


@dataclass(frozen=True)
class AspectRatioSpec:
    """Target aspect ratio (width / height) and the fixed export height."""
    ratio_w: int
    ratio_h: int
    output_height: int

    @property
    def ratio(self) -> float:
        return self.ratio_w / self.ratio_h

    @property
    def output_size(self) -> tuple[int, int]:
        """Output pixel size, width derived from the height. 9:16 @ 800 → (450, 800)"""
        return int(round(self.output_height * self.ratio)), self.output_height

    @property
    def label(self) -> str:
        """Normalized ratio label. (18, 32) → '9:16'"""
        g = gcd(self.ratio_w, self.ratio_h)
        return f"{self.ratio_w // g}:{self.ratio_h // g}"


@dataclass(frozen=True)
class CropRect:
    """Crop rectangle in natural image coordinates (sub-pixel precision)."""
    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0

    def box(self) -> tuple[float, float, float, float]:
        """Return ``(left, top, right, bottom)`` as used by Pillow."""
        return self.x, self.y, self.x + self.w, self.y + self.h

    def contains(self, point: Point) -> bool:
        return self.x <= point.x <= self.x + self.w and self.y <= point.y <= self.y + self.h


MOBILE_SPEC = AspectRatioSpec(RATIO_W, RATIO_H, OUTPUT_HEIGHT)


# =============================================================================
# Coordinate mapping
# =============================================================================
def _scale_factors(dims: ImageDimensions) -> tuple[float, float]:
    """Return (natural / display) scale factors for each axis."""
    if dims.display is None or not dims.display.is_valid():
        raise InvalidDimensions(f"Display size not measured: {dims.display!r}")
    if not dims.natural.is_valid():
        raise InvalidDimensions(f"Natural size not known: {dims.natural!r}")
    return (
        dims.natural.width / dims.display.width,
        dims.natural.height / dims.display.height,
    )


def map_display_to_natural(point: Point, dims: ImageDimensions) -> Point:
    """
    Convert a display-space point to natural image coordinates.

    Each axis is scaled independently.  If the display distorts the
    aspect ratio the two factors diverge, and that is kept as is.
    """
    scale_x, scale_y = _scale_factors(dims)
    return Point(point.x * scale_x, point.y * scale_y)


def map_natural_to_display(point: Point, dims: ImageDimensions) -> Point:
    """Inverse of ``map_display_to_natural``."""
    scale_x, scale_y = _scale_factors(dims)
    return Point(point.x / scale_x, point.y / scale_y)


# =============================================================================
# Crop math utilities
# =============================================================================
def calculate_max_crop(img_w: float, img_h: float, aspect: float) -> tuple[float, float]:
    """
    Calculate the largest crop of the given aspect ratio that fits the image.

    One side of the result always equals the matching image side.
    """
    if img_w <= 0 or img_h <= 0:
        raise InvalidDimensions(f"Image size must be positive, got {img_w}x{img_h}")
    if aspect <= 0:
        raise InvalidDimensions(f"Aspect ratio must be positive, got {aspect}")

    if img_w / img_h > aspect:
        # Image is wider than the target: full height, trim the sides
        crop_h = img_h
        crop_w = crop_h * aspect
    else:
        # Image is taller (or equal): full width, trim top and bottom
        crop_w = img_w
        crop_h = crop_w / aspect
    return crop_w, crop_h


def center_crop(img_w: float, img_h: float, crop_w: float, crop_h: float) -> CropRect:
    """Return a centered crop rectangle."""
    return CropRect((img_w - crop_w) / 2, (img_h - crop_h) / 2, crop_w, crop_h)


def focus_crop(img_w: float, img_h: float, crop_w: float, crop_h: float, focal: Point) -> CropRect:
    """
    Center the crop on *focal*, sliding it back inside the image if needed.

    Near an edge the crop sits flush against it and the focal point ends up
    off-center toward the interior.
    """
    x = max(0.0, min(focal.x - crop_w / 2, img_w - crop_w))
    y = max(0.0, min(focal.y - crop_h / 2, img_h - crop_h))
    return CropRect(x, y, crop_w, crop_h)


def compute_crop(img_w: float, img_h: float, aspect: float, focal: Point | None = None) -> CropRect:
    """Maximum crop for *aspect*, centered on *focal* (natural coords) or the image center."""
    crop_w, crop_h = calculate_max_crop(img_w, img_h, aspect)
    if focal is None:
        return center_crop(img_w, img_h, crop_w, crop_h)
    return focus_crop(img_w, img_h, crop_w, crop_h, focal)


def clamp_point(point: Point, size: Size) -> Point:
    """Clamp a point into ``[0, width] × [0, height]``."""
    return Point(max(0.0, min(point.x, size.width)), max(0.0, min(point.y, size.height)))

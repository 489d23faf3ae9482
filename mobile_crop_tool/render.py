"""
Resampling of a crop rectangle into the fixed-size output image (Qt-free).

Runs inside ``CropWorkerThread``; it must never touch Qt or session state.
"""

import logging
from dataclasses import dataclass

from PIL import Image

from mobile_crop_tool.config import JPEG_QUALITY
from mobile_crop_tool.errors import InvalidDimensions, SourceNotReady
from mobile_crop_tool.export import encode_jpeg
from mobile_crop_tool.models import AspectRatioSpec, CropRect

logger = logging.getLogger(__name__)


@dataclass
class OutputImage:
    """Resampled crop plus its encoded JPEG bytes."""
    image: Image.Image
    data: bytes
    crop: CropRect

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size


def resample(source: Image.Image | None, crop: CropRect, output_w: int, output_h: int) -> Image.Image:
    """
    Scale the *crop* region of *source* into a new ``output_w × output_h`` image.

    The crop box may be fractional; Pillow samples it directly instead of
    rounding to whole pixels first.
    """
    if source is None:
        raise SourceNotReady("Source image has not finished decoding")
    if output_w <= 0 or output_h <= 0:
        raise InvalidDimensions(f"Output size must be positive, got {output_w}x{output_h}")
    if crop.w <= 0 or crop.h <= 0:
        raise InvalidDimensions(f"Crop size must be positive, got {crop.w}x{crop.h}")

    img = source if source.mode == "RGB" else source.convert("RGB")
    return img.resize((output_w, output_h), Image.Resampling.LANCZOS, box=crop.box())


def render_output(
    source: Image.Image | None,
    crop: CropRect,
    spec: AspectRatioSpec,
    quality: int = JPEG_QUALITY,
) -> OutputImage:
    """Resample *crop* to the target output size and encode it for export."""
    out_w, out_h = spec.output_size
    resized = resample(source, crop, out_w, out_h)
    data = encode_jpeg(resized, quality=quality)
    logger.debug(
        "Rendered crop (%.1f, %.1f, %.1f × %.1f) → %dx%d, %d bytes",
        crop.x, crop.y, crop.w, crop.h, out_w, out_h, len(data),
    )
    return OutputImage(resized, data, crop)

"""
Qt-free image I/O utilities.

Validates that a selected file is an image, decodes it (PSD via psd-tools,
everything else via Pillow), and generates unique output paths.  Safe to
import in worker threads.
"""

import io
import logging
import mimetypes
import struct
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError
from psd_tools import PSDImage

from mobile_crop_tool.config import IMAGE_EXTENSIONS
from mobile_crop_tool.errors import InvalidFileType

logger = logging.getLogger(__name__)

# Allow very large images (Pillow's default limit is ~178MP)
Image.MAX_IMAGE_PIXELS = None


def is_image_file(path: Path) -> bool:
    """Return True if *path* looks like a supported image by extension or MIME type."""
    ext = path.suffix.lower()
    if ext in IMAGE_EXTENSIONS:
        return True
    mime, _ = mimetypes.guess_type(path.name)
    return bool(mime and mime.startswith("image/"))


def _finish(img: Image.Image) -> Image.Image:
    """Apply EXIF orientation and force decoding so dimensions are final."""
    img = ImageOps.exif_transpose(img)
    img.load()
    return img


def _decode_psd(fp, name: str) -> Image.Image:
    """Composite a PSD; psd-tools reports malformed headers via assert and struct."""
    try:
        return PSDImage.open(fp).composite()
    except (AssertionError, struct.error, EOFError) as exc:
        raise InvalidFileType(f"Cannot decode {name}: {exc}") from exc


def _decode(fp, name: str) -> Image.Image:
    """Decode an image from a path or file object; PSD goes through psd-tools."""
    try:
        if name.lower().endswith(".psd"):
            return _decode_psd(fp, name)
        with Image.open(fp) as img:
            return _finish(img)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise InvalidFileType(f"Cannot decode {name}: {exc}") from exc


def load_source(path: Path) -> Image.Image:
    """
    Open and fully decode an image file.

    Raises ``InvalidFileType`` if the file is not an image type or cannot
    be decoded.
    """
    path = Path(path)
    if not is_image_file(path):
        logger.warning("Rejected non-image file %s", path)
        raise InvalidFileType(f"Not an image file: {path.name}")
    img = _decode(path, path.name)
    logger.info("Loaded %s (%dx%d, %s)", path.name, img.width, img.height, img.mode)
    return img


def load_source_bytes(data: bytes, filename: str = "") -> Image.Image:
    """Decode an image from raw bytes (e.g. a drop or paste)."""
    if filename and not is_image_file(Path(filename)):
        logger.warning("Rejected non-image data %s", filename)
        raise InvalidFileType(f"Not an image file: {filename}")
    return _decode(io.BytesIO(data), filename or "<bytes>")


def unique_path(out_path: Path) -> Path:
    """Return a unique path by appending -01, -02, etc. if file already exists."""
    if not out_path.exists():
        return out_path
    stem = out_path.stem
    suffix = out_path.suffix
    parent = out_path.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}-{counter:02d}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1

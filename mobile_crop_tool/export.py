"""
Export helpers: JPEG encoding, download filename sanitizing, and saving.

This module is Qt-free.  The main window supplies the target directory and
the user-typed filename; everything else is decided here.
"""

import io
import logging
import re
import time
from pathlib import Path

from PIL import Image

from mobile_crop_tool.config import (
    JPEG_QUALITY, OUTPUT_EXTENSION, OUTPUT_EXTENSIONS,
    FILENAME_MAX_LENGTH, DEFAULT_FILENAME_PREFIX,
)
from mobile_crop_tool.image_io import unique_path

logger = logging.getLogger(__name__)

# Characters forbidden in file names (superset across Windows/macOS/Linux)
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
# Reserved device names on Windows (case-insensitive)
_RESERVED_NAMES = frozenset({
    "CON", "PRN", "AUX", "NUL",
    *(f"COM{i}" for i in range(1, 10)),
    *(f"LPT{i}" for i in range(1, 10)),
})


def encode_jpeg(image: Image.Image, quality: int = JPEG_QUALITY) -> bytes:
    """Encode *image* as a JPEG and return the bytes."""
    if image.mode != "RGB":
        image = image.convert("RGB")
    buf = io.BytesIO()
    image.save(buf, "JPEG", quality=quality, optimize=True, subsampling=0)
    return buf.getvalue()


def default_filename(now: float | None = None) -> str:
    """Timestamp-based fallback name. ``mobile-cropped-1700000000000.jpg``"""
    millis = int((time.time() if now is None else now) * 1000)
    return f"{DEFAULT_FILENAME_PREFIX}-{millis}{OUTPUT_EXTENSION}"


def output_filename(name: str | None, now: float | None = None) -> str:
    """
    Turn a user-typed name into a safe download filename.

    Blank input falls back to ``default_filename``.  Forbidden characters
    are dropped, the stem is capped at ``FILENAME_MAX_LENGTH`` characters,
    and ``.jpg`` is appended unless the name already has a JPEG extension.
    """
    name = (name or "").strip()
    if not name:
        return default_filename(now)

    stem, ext = name, OUTPUT_EXTENSION
    lowered = name.lower()
    for known in OUTPUT_EXTENSIONS:
        if lowered.endswith(known):
            stem, ext = name[: -len(known)], name[-len(known):]
            break

    stem = _INVALID_FILENAME_CHARS.sub("", stem)
    stem = stem[:FILENAME_MAX_LENGTH].strip().strip(".").strip()
    if not stem:
        return default_filename(now)

    if stem.split(".")[0].upper() in _RESERVED_NAMES:
        stem = f"_{stem}"
    return f"{stem}{ext}"


def save_output(data: bytes, directory: Path, name: str | None = None) -> Path:
    """
    Write encoded output bytes into *directory* under a sanitized name.

    Never overwrites: an existing file gets a ``-01``, ``-02``… suffix.
    Raises OSError if the file cannot be written.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    out_path = unique_path(directory / output_filename(name))
    out_path.write_bytes(data)
    logger.info("Saved %s (%d bytes)", out_path, len(data))
    return out_path

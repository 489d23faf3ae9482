"""
Single-image crop session: one authoritative state plus supersession rules.

The session moves through ``EMPTY → LOADED → CROPPED``.  Decoding and
rendering happen off the UI thread, so both are split into a *begin* step
that hands out a tagged ticket/job and a *complete* step that checks the tag
against the current generation counters.  A result whose tag is stale raises
``SupersededResult`` and is never applied (last write wins).

This module is Qt-free.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from PIL import Image

from mobile_crop_tool.errors import InvalidDimensions, SourceNotReady, SupersededResult
from mobile_crop_tool.models import (
    MOBILE_SPEC, AspectRatioSpec, CropRect, ImageDimensions, Point, Size,
    clamp_point, compute_crop, map_display_to_natural, map_natural_to_display,
)
from mobile_crop_tool.render import OutputImage

logger = logging.getLogger(__name__)


class SessionState(Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    CROPPED = "cropped"


@dataclass(frozen=True)
class LoadTicket:
    """Identifies one in-flight decode."""
    generation: int
    path: Path | None = None


@dataclass(frozen=True)
class CropJob:
    """Everything a worker needs to render one crop, tagged for supersession."""
    load_generation: int
    crop_generation: int
    source: Image.Image
    crop: CropRect
    spec: AspectRatioSpec


class CropSession:
    """Tracks the current image, focal point and output for one user."""

    def __init__(self, spec: AspectRatioSpec = MOBILE_SPEC):
        self.spec = spec
        self._load_generation = 0
        self._crop_generation = 0
        self._pending_job: int | None = None
        self._clear()

    def _clear(self):
        self.state = SessionState.EMPTY
        self.path: Path | None = None
        self.source: Image.Image | None = None
        self.dimensions: ImageDimensions | None = None
        self.focal_point: Point | None = None  # display coordinates
        self.crop_rect: CropRect | None = None
        self.output: OutputImage | None = None
        self._loading = False

    # --- Properties ---

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def is_processing(self) -> bool:
        """True while the latest crop job has not reported back."""
        return self._pending_job is not None

    @property
    def natural_size(self) -> Size | None:
        return self.dimensions.natural if self.dimensions else None

    def focal_point_natural(self) -> Point | None:
        """Focal point mapped into natural coordinates, or None if unset."""
        if self.focal_point is None:
            return None
        return map_display_to_natural(self.focal_point, self.dimensions)

    def preview_crop(self) -> CropRect | None:
        """The crop that ``request_crop`` would produce right now, or None."""
        if self.state == SessionState.EMPTY:
            return None
        try:
            return self._compute_crop()
        except InvalidDimensions:
            return None

    # --- Loading ---

    def begin_load(self, path: Path | None = None) -> LoadTicket:
        """
        Start loading a new image.

        Resets dimensions, focal point, crop and output together and
        invalidates any in-flight decode or crop.
        """
        self._load_generation += 1
        self._pending_job = None
        self._clear()
        self.path = Path(path) if path is not None else None
        self._loading = True
        logger.debug("Load #%d started: %s", self._load_generation, self.path)
        return LoadTicket(self._load_generation, self.path)

    def _check_ticket(self, ticket: LoadTicket):
        if ticket.generation != self._load_generation:
            raise SupersededResult(
                f"Load #{ticket.generation} superseded by #{self._load_generation}"
            )

    def complete_load(self, ticket: LoadTicket, image: Image.Image):
        """Apply a decoded image.  Natural size is set here and only here."""
        self._check_ticket(ticket)
        if image.width <= 0 or image.height <= 0:
            raise InvalidDimensions(f"Decoded image has no pixels: {image.size}")
        self._loading = False
        self.source = image
        self.dimensions = ImageDimensions(Size(image.width, image.height))
        self.state = SessionState.LOADED
        logger.info("Image ready: %dx%d", image.width, image.height)

    def fail_load(self, ticket: LoadTicket):
        """Return to EMPTY after a failed decode; raises SupersededResult for a stale ticket."""
        self._check_ticket(ticket)
        self._clear()

    def load_image(self, image: Image.Image, path: Path | None = None) -> LoadTicket:
        """Synchronous convenience: begin and complete a load in one step."""
        ticket = self.begin_load(path)
        self.complete_load(ticket, image)
        return ticket

    # --- Display & focal point ---

    def set_display_size(self, size: Size):
        """
        Record the size the image is currently rendered at.

        An existing focal point is rescaled so it keeps pointing at the
        same natural pixel.
        """
        if self.dimensions is None:
            return
        if not size.is_valid():
            raise InvalidDimensions(f"Display size must be positive, got {size!r}")
        old = self.dimensions
        self.dimensions = ImageDimensions(old.natural, size)
        if self.focal_point is not None and old.display != size:
            natural = map_display_to_natural(self.focal_point, old)
            self.focal_point = map_natural_to_display(natural, self.dimensions)

    def set_focal_point(self, point: Point):
        """Set the focal point in display coordinates, discarding any output."""
        if self.state == SessionState.EMPTY:
            raise SourceNotReady("No image loaded")
        display = self.dimensions.display
        if display is None or not display.is_valid():
            raise InvalidDimensions("Display size not measured yet")
        self.focal_point = clamp_point(point, display)
        self._invalidate_crop()

    def clear_focal_point(self):
        if self.focal_point is None:
            return
        self.focal_point = None
        self._invalidate_crop()

    def _invalidate_crop(self):
        """Drop the current output and any in-flight crop (CROPPED → LOADED)."""
        self._crop_generation += 1
        self._pending_job = None
        self.crop_rect = None
        self.output = None
        if self.state == SessionState.CROPPED:
            self.state = SessionState.LOADED

    # --- Cropping ---

    def _compute_crop(self) -> CropRect:
        natural = self.dimensions.natural
        return compute_crop(
            natural.width, natural.height, self.spec.ratio, self.focal_point_natural(),
        )

    def request_crop(self) -> CropJob:
        """
        Compute the crop rectangle and hand out a render job.

        Raises ``SourceNotReady`` if no image has finished decoding.
        """
        if self.state == SessionState.EMPTY or self.source is None:
            raise SourceNotReady("Crop requested before the image finished decoding")
        crop = self._compute_crop()
        self._crop_generation += 1
        self._pending_job = self._crop_generation
        logger.debug(
            "Crop job #%d: (%.1f, %.1f, %.1f × %.1f)",
            self._crop_generation, crop.x, crop.y, crop.w, crop.h,
        )
        return CropJob(self._load_generation, self._crop_generation, self.source, crop, self.spec)

    def _check_job(self, job: CropJob):
        if job.load_generation != self._load_generation:
            raise SupersededResult(f"Crop job #{job.crop_generation} belongs to a replaced image")
        if job.crop_generation != self._crop_generation:
            raise SupersededResult(
                f"Crop job #{job.crop_generation} superseded by #{self._crop_generation}"
            )

    def complete_crop(self, job: CropJob, output: OutputImage):
        """Apply a rendered output if *job* is still the latest request."""
        self._check_job(job)
        self._pending_job = None
        self.crop_rect = job.crop
        self.output = output
        self.state = SessionState.CROPPED

    def fail_crop(self, job: CropJob):
        """Clear the in-progress flag after a failed render; raises SupersededResult for a stale job."""
        self._check_job(job)
        self._pending_job = None

    def discard_crop(self):
        """'Try again': drop the output but keep image and focal point."""
        self._invalidate_crop()

    def reset(self):
        """Return to EMPTY, invalidating everything in flight."""
        self._load_generation += 1
        self._crop_generation += 1
        self._pending_job = None
        self._clear()

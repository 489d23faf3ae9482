"""
Focal-point editor widget and background worker threads.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, the ``ImageLoaderThread`` / ``CropWorkerThread`` pair,
and the ``FocalPointWidget`` that turns clicks into display-space points.
"""

from pathlib import Path

from PIL import Image
from PyQt6.QtWidgets import QWidget, QSizePolicy
from PyQt6.QtCore import Qt, QRectF, QPointF, pyqtSignal, QThread
from PyQt6.QtGui import (
    QPainter, QPixmap, QColor, QPen, QBrush, QImage,
    QMouseEvent, QPaintEvent, QResizeEvent,
)

from mobile_crop_tool.config import FOCAL_MARKER_RADIUS, FOCAL_RING_RADII
from mobile_crop_tool.errors import CropToolError
from mobile_crop_tool.image_io import load_source
from mobile_crop_tool.models import CropRect, Point, Size
from mobile_crop_tool.render import render_output
from mobile_crop_tool.session import CropJob, LoadTicket


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    img_rgb = pil_img.convert("RGBA")
    data = img_rgb.tobytes("raw", "RGBA")
    qimg = QImage(data, img_rgb.width, img_rgb.height, QImage.Format.Format_RGBA8888)
    return QPixmap.fromImage(qimg)


# =============================================================================
# Background workers
# =============================================================================

class ImageLoaderThread(QThread):
    """Background thread that decodes one image file."""
    loaded = pyqtSignal(object, object)  # LoadTicket, PIL.Image.Image
    error = pyqtSignal(object, str)      # LoadTicket, message

    def __init__(self, ticket: LoadTicket, path: Path, parent=None):
        super().__init__(parent)
        self._ticket = ticket
        self._path = path

    def run(self):
        try:
            img = load_source(self._path)
            self.loaded.emit(self._ticket, img)
        except CropToolError as e:
            self.error.emit(self._ticket, str(e))
        except Exception as e:
            self.error.emit(self._ticket, f"Unexpected error: {e}")


class CropWorkerThread(QThread):
    """Background thread that resamples and encodes one crop job."""
    rendered = pyqtSignal(object, object)  # CropJob, OutputImage
    error = pyqtSignal(object, str)        # CropJob, message

    def __init__(self, job: CropJob, parent=None):
        super().__init__(parent)
        self._job = job

    def run(self):
        try:
            output = render_output(self._job.source, self._job.crop, self._job.spec)
            self.rendered.emit(self._job, output)
        except Exception as e:
            self.error.emit(self._job, str(e))


# =============================================================================
# Focal Point Widget — click on the image to choose the point of interest
# =============================================================================

class FocalPointWidget(QWidget):
    """Displays an image letterboxed and reports clicks relative to its top-left."""

    focal_point_selected = pyqtSignal(float, float)  # display coordinates
    display_size_changed = pyqtSignal(float, float)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setMinimumSize(400, 300)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setCursor(Qt.CursorShape.PointingHandCursor)

        self._pixmap: QPixmap | None = None
        self._img_w = 0
        self._img_h = 0
        self._focal: Point | None = None      # display coordinates
        self._crop: CropRect | None = None    # natural coordinates
        self._loading = False

        # Display mapping
        self._scale = 1.0
        self._offset_x = 0.0
        self._offset_y = 0.0

    def set_loading(self, loading: bool):
        """Show/hide loading indicator."""
        self._loading = loading
        self.update()

    def set_image(self, pixmap: QPixmap, img_w: int, img_h: int):
        """Set the image to display and report its rendered size."""
        self._loading = False
        self._pixmap = pixmap
        self._img_w = img_w
        self._img_h = img_h
        self._focal = None
        self._crop = None
        self._update_display_mapping()
        self.update()

    def set_overlay(self, focal: Point | None, crop: CropRect | None):
        """Set the focal marker (display coords) and crop outline (natural coords)."""
        self._focal = focal
        self._crop = crop
        self.update()

    def has_image(self) -> bool:
        return self._pixmap is not None

    def display_size(self) -> Size:
        return Size(self._img_w * self._scale, self._img_h * self._scale)

    def clear(self):
        self._pixmap = None
        self._img_w = 0
        self._img_h = 0
        self._focal = None
        self._crop = None
        self._loading = False
        self.update()

    # --- Coordinate mapping ---

    def _update_display_mapping(self):
        """Calculate scale and offset to fit image in widget with letterboxing."""
        if not self._pixmap or self._img_w == 0 or self._img_h == 0:
            return
        ww, wh = self.width(), self.height()
        self._scale = min(ww / self._img_w, wh / self._img_h)
        disp_w = self._img_w * self._scale
        disp_h = self._img_h * self._scale
        self._offset_x = (ww - disp_w) / 2
        self._offset_y = (wh - disp_h) / 2
        self.display_size_changed.emit(disp_w, disp_h)

    def _image_rect(self) -> QRectF:
        return QRectF(self._offset_x, self._offset_y, self._img_w * self._scale, self._img_h * self._scale)

    def _widget_to_display(self, pos: QPointF) -> QPointF:
        """Widget position → position relative to the rendered image's top-left."""
        return QPointF(pos.x() - self._offset_x, pos.y() - self._offset_y)

    def _natural_to_widget(self, x: float, y: float) -> QPointF:
        return QPointF(x * self._scale + self._offset_x, y * self._scale + self._offset_y)

    # --- Painting ---

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), QColor(30, 30, 30))

        if not self._pixmap:
            painter.setPen(QColor(128, 128, 128))
            msg = "Loading image…" if self._loading else "Open an image to begin"
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, msg)
            painter.end()
            return

        dest = self._image_rect()
        painter.drawPixmap(dest.toRect(), self._pixmap)

        if self._crop is not None:
            self._paint_crop_outline(painter, dest)
        if self._focal is not None:
            self._paint_focal_marker(painter)

        painter.end()

    def _paint_crop_outline(self, painter: QPainter, dest: QRectF):
        """Dim the area outside the crop and outline it."""
        tl = self._natural_to_widget(self._crop.x, self._crop.y)
        br = self._natural_to_widget(self._crop.x + self._crop.w, self._crop.y + self._crop.h)
        crop_rect = QRectF(tl, br)
        dim = QColor(0, 0, 0, 120)

        # Top, bottom, left, right strips
        painter.fillRect(QRectF(dest.left(), dest.top(), dest.width(), crop_rect.top() - dest.top()), dim)
        painter.fillRect(QRectF(dest.left(), crop_rect.bottom(), dest.width(), dest.bottom() - crop_rect.bottom()), dim)
        painter.fillRect(QRectF(dest.left(), crop_rect.top(), crop_rect.left() - dest.left(), crop_rect.height()), dim)
        painter.fillRect(QRectF(crop_rect.right(), crop_rect.top(), dest.right() - crop_rect.right(), crop_rect.height()), dim)

        painter.setPen(QPen(QColor(255, 255, 255, 200), 1, Qt.PenStyle.DashLine))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(crop_rect)

    def _paint_focal_marker(self, painter: QPainter):
        center = QPointF(self._focal.x + self._offset_x, self._focal.y + self._offset_y)

        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.setPen(QPen(QColor(0, 123, 255, 150), 2))
        for radius in FOCAL_RING_RADII:
            painter.drawEllipse(center, radius, radius)

        painter.setPen(QPen(QColor(255, 255, 255), 2))
        painter.setBrush(QBrush(QColor(0, 123, 255)))
        painter.drawEllipse(center, FOCAL_MARKER_RADIUS, FOCAL_MARKER_RADIUS)

    def resizeEvent(self, event: QResizeEvent):
        self._update_display_mapping()
        super().resizeEvent(event)

    # --- Mouse interaction ---

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() != Qt.MouseButton.LeftButton or not self._pixmap:
            return
        pos = event.position()
        if not self._image_rect().contains(pos):
            return  # letterbox area
        rel = self._widget_to_display(pos)
        self.focal_point_selected.emit(rel.x(), rel.y())

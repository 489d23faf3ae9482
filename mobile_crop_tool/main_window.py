"""
Main application window.

Orchestrates image loading, focal-point selection, background cropping and
download.  All state lives in a single ``CropSession``; the window only
forwards user actions to it and redraws from it.
"""

from pathlib import Path

from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QPushButton, QLabel,
    QFileDialog, QSplitter, QGroupBox, QMessageBox, QStatusBar, QToolBar,
    QLineEdit, QApplication,
)
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QKeySequence, QShortcut

from mobile_crop_tool.config import (
    APP_TITLE, IMAGE_EXTENSIONS, FILENAME_MAX_LENGTH, OUTPUT_EXTENSION, PREVIEW_MAX_HEIGHT,
)
from mobile_crop_tool.crop_widget import (
    FocalPointWidget, ImageLoaderThread, CropWorkerThread, pil_to_qpixmap,
)
from mobile_crop_tool.errors import CropToolError, SupersededResult
from mobile_crop_tool.export import save_output
from mobile_crop_tool.image_io import is_image_file
from mobile_crop_tool.models import Point, Size
from mobile_crop_tool.session import CropSession, SessionState


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle(APP_TITLE)
        self.setMinimumSize(900, 500)

        # Screen-aware startup size, clamped to 80% of screen
        preferred_w, preferred_h = 1400, 900
        screen = QApplication.primaryScreen()
        if screen is not None:
            avail = screen.availableGeometry()
            preferred_w = min(preferred_w, int(avail.width() * 0.8))
            preferred_h = min(preferred_h, int(avail.height() * 0.8))
        self.resize(preferred_w, preferred_h)

        self._session = CropSession()
        self._loader: ImageLoaderThread | None = None
        self._loaders: set[ImageLoaderThread] = set()  # includes superseded, still-running loaders
        self._workers: set[CropWorkerThread] = set()
        self._last_dir: Path = Path.home()
        downloads = Path.home() / "Downloads"
        self._download_dir: Path = downloads if downloads.is_dir() else Path.home()

        self.setAcceptDrops(True)
        self._build_ui()
        self._refresh()

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_ui(self):
        self._build_toolbar()

        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QVBoxLayout(central)
        main_layout.setContentsMargins(4, 4, 4, 4)

        main_layout.addWidget(self._build_control_bar())

        splitter = QSplitter(Qt.Orientation.Horizontal)
        main_layout.addWidget(splitter, stretch=1)

        self._focal_widget = FocalPointWidget()
        self._focal_widget.focal_point_selected.connect(self._on_focal_point_selected)
        self._focal_widget.display_size_changed.connect(self._on_display_size_changed)
        splitter.addWidget(self._focal_widget)

        splitter.addWidget(self._build_preview_panel())
        splitter.setSizes([900, 400])

        self._status = QStatusBar()
        self.setStatusBar(self._status)
        out_w, out_h = self._session.spec.output_size
        self._status.showMessage(
            f"Open an image to begin.  |  Output: {out_w}×{out_h}px ({self._session.spec.label})"
        )

        # --- Keyboard Shortcuts ---
        QShortcut(QKeySequence(QKeySequence.StandardKey.Open), self, self._select_image)
        QShortcut(QKeySequence(Qt.Key.Key_Return), self, self._crop_image)
        QShortcut(QKeySequence(QKeySequence.StandardKey.Save), self, self._download)
        QShortcut(QKeySequence(Qt.Key.Key_Escape), self, self._clear_focus)

    def _build_toolbar(self):
        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        act_open = QAction("📤 Open Image", self)
        act_open.triggered.connect(self._select_image)
        toolbar.addAction(act_open)

        act_folder = QAction("💾 Download Folder", self)
        act_folder.triggered.connect(self._select_download_folder)
        toolbar.addAction(act_folder)

        toolbar.addSeparator()

        act_reset = QAction("🗑 New Image", self)
        act_reset.setToolTip("Clear everything and start over")
        act_reset.triggered.connect(self._reset)
        toolbar.addAction(act_reset)
        self._act_reset = act_reset

    def _build_control_bar(self) -> QWidget:
        bar = QWidget()
        layout = QHBoxLayout(bar)
        layout.setContentsMargins(4, 4, 4, 4)

        self._mode_label = QLabel("🎯 Auto Crop Mode")
        self._mode_label.setStyleSheet("font-weight: bold; color: #5a8ec5;")
        layout.addWidget(self._mode_label)

        self._hint_label = QLabel("")
        self._hint_label.setStyleSheet("color: #aaa;")
        layout.addWidget(self._hint_label, stretch=1)

        self._btn_crop = QPushButton("Crop Image")
        self._btn_crop.clicked.connect(self._crop_image)
        layout.addWidget(self._btn_crop)

        self._btn_clear_focus = QPushButton("Clear Focus")
        self._btn_clear_focus.clicked.connect(self._clear_focus)
        layout.addWidget(self._btn_clear_focus)

        self._btn_try_again = QPushButton("🔄 Try Again")
        self._btn_try_again.clicked.connect(self._try_again)
        layout.addWidget(self._btn_try_again)

        return bar

    def _build_preview_panel(self) -> QWidget:
        out_w, out_h = self._session.spec.output_size
        group = QGroupBox(f"Mobile Version ({out_w}×{out_h}px)")
        layout = QVBoxLayout(group)

        self._preview = QLabel("No crop yet")
        self._preview.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._preview.setMinimumWidth(int(PREVIEW_MAX_HEIGHT * self._session.spec.ratio) // 2)
        layout.addWidget(self._preview, stretch=1)

        name_row = QHBoxLayout()
        self._filename_edit = QLineEdit()
        self._filename_edit.setPlaceholderText("Enter filename (optional)")
        self._filename_edit.setMaxLength(FILENAME_MAX_LENGTH)
        name_row.addWidget(self._filename_edit, stretch=1)
        name_row.addWidget(QLabel(OUTPUT_EXTENSION))
        layout.addLayout(name_row)

        self._btn_download = QPushButton("📥 Download")
        self._btn_download.clicked.connect(self._download)
        layout.addWidget(self._btn_download)

        return group

    # =========================================================================
    # Folder / file selection
    # =========================================================================

    def _select_image(self):
        patterns = " ".join(f"*{ext}" for ext in sorted(IMAGE_EXTENSIONS))
        path, _ = QFileDialog.getOpenFileName(
            self, "Open Image", str(self._last_dir), f"Images ({patterns});;All files (*)",
        )
        if not path:
            return
        self._last_dir = Path(path).parent
        self._load_image(Path(path))

    def _select_download_folder(self):
        folder = QFileDialog.getExistingDirectory(self, "Select Download Folder", str(self._download_dir))
        if not folder:
            return
        self._download_dir = Path(folder)
        self._status.showMessage(f"Download folder: {self._download_dir}")

    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event):
        urls = [u for u in event.mimeData().urls() if u.isLocalFile()]
        if not urls:
            return
        path = Path(urls[0].toLocalFile())
        if not is_image_file(path):
            self._status.showMessage(f"Not an image file: {path.name}")
            return
        self._last_dir = path.parent
        self._load_image(path)

    # =========================================================================
    # Image loading
    # =========================================================================

    def _load_image(self, path: Path):
        ticket = self._session.begin_load(path)
        self._focal_widget.clear()
        self._focal_widget.set_loading(True)
        self._preview.clear()
        self._preview.setText("No crop yet")
        self._filename_edit.clear()

        self._detach_loader()

        loader = ImageLoaderThread(ticket, path, self)
        loader.loaded.connect(self._on_image_loaded)
        loader.error.connect(self._on_image_load_error)
        loader.finished.connect(lambda l=loader: self._loaders.discard(l))
        loader.finished.connect(loader.deleteLater)
        self._loaders.add(loader)
        self._loader = loader
        loader.start()
        self._status.showMessage(f"Loading {path.name}…")
        self._refresh()

    def _on_image_loaded(self, ticket, image):
        """Called when background image loading completes."""
        try:
            self._session.complete_load(ticket, image)
        except SupersededResult:
            return
        except CropToolError as exc:
            self._session.fail_load(ticket)
            self._focal_widget.set_loading(False)
            self._status.showMessage(f"Failed to load image: {exc}")
            self._refresh()
            return

        self._focal_widget.set_image(pil_to_qpixmap(image), image.width, image.height)
        self._status.showMessage(f"{ticket.path.name if ticket.path else 'Image'}: {image.width}×{image.height}px")
        self._refresh()

    def _on_image_load_error(self, ticket, error: str):
        """Called when background image loading fails."""
        try:
            self._session.fail_load(ticket)
        except SupersededResult:
            return
        self._focal_widget.set_loading(False)
        self._status.showMessage(f"Failed to load image: {error}")
        self._refresh()

    def _on_display_size_changed(self, width: float, height: float):
        if self._session.state == SessionState.EMPTY:
            return
        try:
            self._session.set_display_size(Size(width, height))
        except CropToolError:
            return  # widget not laid out yet
        self._refresh()

    # =========================================================================
    # Focal point & cropping
    # =========================================================================

    def _on_focal_point_selected(self, x: float, y: float):
        try:
            self._session.set_focal_point(Point(x, y))
        except CropToolError as exc:
            self._status.showMessage(str(exc))
            return
        self._reset_preview()
        self._refresh()

    def _clear_focus(self):
        self._session.clear_focal_point()
        self._reset_preview()
        self._refresh()

    def _try_again(self):
        self._session.discard_crop()
        self._reset_preview()
        self._refresh()

    def _crop_image(self):
        try:
            job = self._session.request_crop()
        except CropToolError as exc:
            self._status.showMessage(f"Cannot crop: {exc}")
            return

        worker = CropWorkerThread(job, self)
        worker.rendered.connect(self._on_crop_rendered)
        worker.error.connect(self._on_crop_error)
        worker.finished.connect(lambda w=worker: self._workers.discard(w))
        worker.finished.connect(worker.deleteLater)
        self._workers.add(worker)
        worker.start()
        self._refresh()

    def _on_crop_rendered(self, job, output):
        try:
            self._session.complete_crop(job, output)
        except SupersededResult:
            return
        pixmap = pil_to_qpixmap(output.image)
        if pixmap.height() > PREVIEW_MAX_HEIGHT:
            pixmap = pixmap.scaledToHeight(PREVIEW_MAX_HEIGHT, Qt.TransformationMode.SmoothTransformation)
        self._preview.setPixmap(pixmap)
        out_w, out_h = output.size
        self._status.showMessage(f"Cropped to {out_w}×{out_h}px.  Enter a filename and download.")
        self._refresh()

    def _on_crop_error(self, job, error: str):
        try:
            self._session.fail_crop(job)
        except SupersededResult:
            return
        self._status.showMessage(f"Crop failed: {error}")
        self._refresh()

    def _reset_preview(self):
        self._preview.clear()
        self._preview.setText("No crop yet")

    # =========================================================================
    # Download / reset
    # =========================================================================

    def _download(self):
        output = self._session.output
        if output is None:
            return
        try:
            out_path = save_output(output.data, self._download_dir, self._filename_edit.text())
        except OSError as exc:
            QMessageBox.warning(self, "Download Failed", f"Could not save image:\n{exc}")
            return
        self._status.showMessage(f"Saved {out_path}")

    def _detach_loader(self):
        """Stop listening to the current loader; it stays in _loaders until it finishes."""
        if self._loader is None:
            return
        try:
            self._loader.loaded.disconnect()
            self._loader.error.disconnect()
        except (TypeError, RuntimeError):
            pass  # Already disconnected or destroyed
        self._loader = None

    def _reset(self):
        self._detach_loader()
        self._session.reset()
        self._focal_widget.clear()
        self._reset_preview()
        self._filename_edit.clear()
        self._status.showMessage("Open an image to begin.")
        self._refresh()

    # =========================================================================
    # State → widgets
    # =========================================================================

    def _refresh(self):
        """Sync buttons, hint text and overlay with the session state."""
        session = self._session
        state = session.state
        has_image = state != SessionState.EMPTY
        cropped = state == SessionState.CROPPED
        processing = session.is_processing

        self._btn_crop.setVisible(not cropped)
        self._btn_crop.setEnabled(has_image and not processing)
        self._btn_crop.setText("Processing…" if processing else "Crop Image")
        self._btn_clear_focus.setVisible(session.focal_point is not None)
        self._btn_try_again.setVisible(cropped)
        self._btn_download.setEnabled(cropped)
        self._filename_edit.setEnabled(cropped)
        self._act_reset.setEnabled(has_image or session.is_loading)

        if session.is_loading:
            self._hint_label.setText("Loading…")
        elif not has_image:
            self._hint_label.setText("Open an image to begin")
        elif session.focal_point is None:
            self._hint_label.setText("Click image to set focus point")
        else:
            self._hint_label.setText("Focus point set!")

        if self._focal_widget.has_image():
            self._focal_widget.set_overlay(session.focal_point, session.preview_crop())

    def closeEvent(self, event):
        """Join every background thread, superseded loaders included, before closing."""
        self._detach_loader()
        for thread in list(self._loaders) + list(self._workers):
            try:
                if thread.isRunning():
                    thread.wait()
            except RuntimeError:
                pass  # already deleted
        super().closeEvent(event)

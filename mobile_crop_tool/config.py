"""
Application constants.

The target aspect ratio and output size are fixed for the lifetime of the
application.  All other constants control file handling, export encoding,
and the look of the focal-point editor.
"""

# =============================================================================
# APP IDENTITY
# =============================================================================
APP_NAME = "mobile-crop-tool"
APP_TITLE = "Mobile Image Cropper"

# =============================================================================
# TARGET FORMAT — portrait mobile, 9:16 at 800 px high (450 × 800)
# =============================================================================
RATIO_W = 9
RATIO_H = 16
OUTPUT_HEIGHT = 800

# JPEG export
JPEG_QUALITY = 95
OUTPUT_EXTENSION = ".jpg"
OUTPUT_EXTENSIONS = (".jpg", ".jpeg")

# Download filename handling
FILENAME_MAX_LENGTH = 50
DEFAULT_FILENAME_PREFIX = "mobile-cropped"

# Supported image extensions (PSD is composited via psd-tools)
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tiff", ".tif", ".webp", ".psd"}

# =============================================================================
# EDITOR APPEARANCE (screen pixels)
# =============================================================================
FOCAL_MARKER_RADIUS = 5
FOCAL_RING_RADII = (15, 22)
PREVIEW_MAX_HEIGHT = 600

"""
Error taxonomy.

Every error is recoverable: the user can always retry or open another
image.  ``SupersededResult`` is not a failure as such; it marks a stale
asynchronous result that must be dropped instead of applied.
"""


class CropToolError(Exception):
    """Base class for all crop tool errors."""


class InvalidFileType(CropToolError):
    """The selected file is not a decodable image."""


class InvalidDimensions(CropToolError):
    """Image or display dimensions are missing or not positive."""


class SourceNotReady(CropToolError):
    """A crop was requested before the source image finished decoding."""


class SupersededResult(CropToolError):
    """An async result arrived after a newer request or image replaced it."""

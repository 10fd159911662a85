"""Error taxonomy for the upload pipeline.

Every failure surfaces as one of these exceptions raised from the enclosing
coroutine. Nothing is retried and files written before a failure are left
in place.
"""

from typing import Any, Dict, Optional


class UploadError(Exception):
    """Base class for all upload pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize upload error.

        Args:
            message: Human readable description
            details: Extra context (offending value, file name, bounds)
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InputError(UploadError, ValueError):
    """A required argument is missing or malformed."""


class LimitError(UploadError):
    """More files were supplied than ``max_files`` allows."""


class FormatError(UploadError):
    """Decoded image format is not in the allow-list."""


class DimensionError(UploadError):
    """Image pixel count is outside ``[min_pixels, max_pixels]``."""


class CodecError(UploadError):
    """Decoding, resizing or encoding failed inside the image codec."""


class FilesystemError(UploadError):
    """Creating the destination or writing a file failed."""

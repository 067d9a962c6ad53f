"""
Error taxonomy for Image Comparator.

Per-file errors (IoError, DecodeError) are recoverable: the scanner skips
the file and counts it. CacheError is left to the caller to handle.
ConfigurationError stops a scan before any work starts.
"""


class ImageComparatorError(Exception):
    """Base class for all Image Comparator errors."""


class IoError(ImageComparatorError):
    """A file could not be opened or read completely."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class DecodeError(ImageComparatorError):
    """Image data is corrupt or could not be decoded."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class UnsupportedFormatError(DecodeError):
    """The file is not in an image format Pillow can identify."""


class CacheError(ImageComparatorError):
    """The cache database failed (disk full, corruption, lock contention)."""


class ConfigurationError(ImageComparatorError):
    """Invalid scan settings, such as comparing mixed grid sizes."""

"""
Exception types raised by the analysis engine and its collaborators.
"""


class PhotoSweepError(Exception):
    """Base class for all engine errors"""


class ExtractionError(PhotoSweepError):
    """A single photo could not be analyzed"""

    kind = "extraction_error"


class DecodeError(ExtractionError):
    """Unreadable, truncated or otherwise corrupt image bytes"""

    kind = "decode_error"


class UnsupportedFormat(ExtractionError):
    """Bytes are not in any image format the decoder understands"""

    kind = "unsupported_format"


class AssetNotFound(PhotoSweepError):
    """The gallery no longer has bytes for the requested asset"""

    def __init__(self, asset_id: str):
        super().__init__(f"Asset not found: {asset_id}")
        self.asset_id = asset_id


class PermissionDenied(PhotoSweepError):
    """Gallery access has not been granted. Fatal to a scan."""


class ScanCancelled(PhotoSweepError):
    """The caller abandoned a scan before it completed"""


class ConfigError(PhotoSweepError, ValueError):
    """Invalid engine configuration"""

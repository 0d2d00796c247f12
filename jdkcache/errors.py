"""Error types raised by jdkcache."""

from __future__ import annotations

from typing import Optional


class CLIError(Exception):
    """Raised for user-facing errors."""


class AcquisitionError(CLIError):
    """A JDK acquisition stopped in a terminal failure state."""


class ConfigurationError(AcquisitionError):
    """Required request or environment settings are absent or unusable."""


class OfflineError(AcquisitionError):
    """Cache miss while offline mode is active."""


class NotFoundError(AcquisitionError):
    """The release catalog holds nothing matching the request."""

    def __init__(self, message: str, *, report: str = "") -> None:
        super().__init__(message)
        self.report = report


class NetworkError(AcquisitionError):
    """Transport or HTTP status failure while talking to the catalog or CDN."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class ExtractionError(AcquisitionError):
    """Archive could not be unpacked into a usable JDK tree."""

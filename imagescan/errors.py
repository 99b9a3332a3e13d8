"""Exception hierarchy for the image scanning workflow."""

from __future__ import annotations


class ImageScanError(Exception):
    """Base class for all errors raised by the scanner."""


class ConfigError(ImageScanError):
    """Raised when settings cannot be built from the provided sources."""


class SourceUnavailable(ImageScanError):
    """Raised when the properties file cannot be opened or read."""


class ServiceNotReady(ImageScanError):
    """Raised when the container runtime never answered the readiness probe."""


class ProvisioningError(ImageScanError):
    """Base class for failures while installing the scanning tool."""


class DownloadFailed(ProvisioningError):
    """Raised when the tool archive cannot be fetched."""


class InstallVerificationFailed(ProvisioningError):
    """Raised when the executable is missing after the archive was unpacked."""


class ItemError(ImageScanError):
    """Base class for per-image failures; these never abort a batch."""

    def __init__(self, image: str, message: str = "") -> None:
        super().__init__(f"{image}: {message}" if message else image)
        self.image = image


class PullFailed(ItemError):
    """Raised when an image could not be pulled into the local cache."""


class ImageMissing(ItemError):
    """Raised when an image is absent from the local cache."""


class ScanFailed(ItemError):
    """Raised when the scanner exits unsuccessfully for an image."""

"""Fatal error taxonomy for the installer.

Every error raised here terminates the run; the CLI reports it as a single
``error:`` line and exits with status 1.
"""

from __future__ import annotations

from typing import Optional


class InstallerError(Exception):
    """Base class for all fatal installer errors."""


class PlatformDetectionError(InstallerError):
    """The host OS, architecture or combination is not supported."""


class MetadataError(InstallerError):
    """Release metadata could not be fetched or is malformed."""


class DownloadError(InstallerError):
    """A network request failed after exhausting its retry budget."""

    def __init__(self, message: str, url: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class AssetNotFoundError(InstallerError):
    """No candidate asset in the fallback chain exists for this platform."""

    def __init__(self, base_name: str, tier: Optional[str], tag: str) -> None:
        tier_str = tier if tier else "none"
        super().__init__(
            f"no release asset found for {base_name} (tier: {tier_str}, tag: {tag})"
        )
        self.base_name = base_name
        self.tier = tier
        self.tag = tag


class InstallError(InstallerError):
    """Extraction or installation of the downloaded archive failed."""


class ConfigError(InstallerError):
    """Configuration loading or parsing error."""

"""Asset selection.

Maps a platform descriptor and CPU tier to the release archive to download.
Candidates are ordered most CPU-specific first and checked in order; the
first one that exists wins.

Naming scheme::

    nocturne-miner-{os}[-musl]-{arch}[-{tier}].{tar.gz|zip}

Fallback chains:
- linux/macos x64: detected tier and every lower tier, then the untiered
  name (older releases publish no tiered builds).
- windows x64: the ``-v2`` baseline build, then the untiered name.
- arm64: the untiered name only.
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional

from nocturne_installer.core.errors import AssetNotFoundError, PlatformDetectionError
from nocturne_installer.core.logging import get_logger
from nocturne_installer.core.models import (
    Architecture,
    AssetSelection,
    CpuTier,
    OperatingSystem,
    PlatformDescriptor,
)

LOGGER = get_logger(__name__)

ASSET_PREFIX = "nocturne-miner"

_TIERED_PATTERN = re.compile(r"-v\d+\.(?:tar\.gz|zip)$")

_SUPPORTED = {
    (OperatingSystem.LINUX, Architecture.X64),
    (OperatingSystem.LINUX, Architecture.ARM64),
    (OperatingSystem.MACOS, Architecture.X64),
    (OperatingSystem.MACOS, Architecture.ARM64),
    (OperatingSystem.WINDOWS, Architecture.X64),
    (OperatingSystem.WINDOWS, Architecture.ARM64),
}


def archive_extension(platform: PlatformDescriptor) -> str:
    return "zip" if platform.os == OperatingSystem.WINDOWS else "tar.gz"


def base_asset_name(platform: PlatformDescriptor) -> str:
    """Asset name without tier suffix or extension."""
    if platform.os == OperatingSystem.WINDOWS:
        # Windows never carries a libc suffix
        return f"{ASSET_PREFIX}-{platform.os.value}-{platform.arch.value}"
    return f"{ASSET_PREFIX}-{platform.target}"


def is_tiered_asset(name: str) -> bool:
    """True if ``name`` carries a ``-v{N}`` suffix before its extension."""
    return bool(_TIERED_PATTERN.search(name))


def candidate_names(
    platform: PlatformDescriptor,
    tier: Optional[CpuTier],
    tiering: bool = True,
) -> List[str]:
    """Ordered asset names to try for ``platform``, most specific first.

    Args:
        platform: Detected platform.
        tier: Detected CPU tier (None when tiers do not apply).
        tiering: When False only the untiered name is offered.

    Raises:
        PlatformDetectionError: For an unsupported (os, arch) combination.
    """
    if (platform.os, platform.arch) not in _SUPPORTED:
        raise PlatformDetectionError(
            f"unsupported combination: {platform.os.value}-{platform.arch.value}"
        )

    base = base_asset_name(platform)
    ext = archive_extension(platform)
    untiered = f"{base}.{ext}"

    if not tiering or platform.arch != Architecture.X64:
        return [untiered]

    if platform.os == OperatingSystem.WINDOWS:
        return [f"{base}-{CpuTier.V2.value}.{ext}", untiered]

    effective = tier or CpuTier.V2
    names = [f"{base}-{t.value}.{ext}" for t in effective.fallback_chain()]
    names.append(untiered)
    return names


def select_asset(
    platform: PlatformDescriptor,
    tier: Optional[CpuTier],
    exists: Callable[[str], bool],
    tag: str,
    tiering: bool = True,
) -> AssetSelection:
    """Select the release asset to install.

    Candidates are checked in order and checking stops at the first hit, so
    nothing below the chosen name is ever queried.

    Args:
        platform: Detected platform.
        tier: Detected CPU tier.
        exists: Answers whether an asset name is published for the release.
        tag: Release tag, used in the error message.
        tiering: Whether tiered builds are considered.

    Returns:
        The selected asset.

    Raises:
        AssetNotFoundError: If no candidate exists.
    """
    candidates = candidate_names(platform, tier, tiering=tiering)
    tried: List[str] = []

    for name in candidates:
        tried.append(name)
        LOGGER.debug(f"Checking asset {name}")
        if exists(name):
            selection = AssetSelection(
                name=name,
                tiered=is_tiered_asset(name),
                candidates_tried=tuple(tried),
            )
            if selection.tiered:
                LOGGER.info(f"Selected tiered build {name}")
            else:
                LOGGER.info(f"Selected build {name}")
            return selection

    raise AssetNotFoundError(
        base_name=base_asset_name(platform),
        tier=tier.value if tier else None,
        tag=tag,
    )

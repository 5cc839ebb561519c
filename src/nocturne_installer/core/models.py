from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple


class OperatingSystem(str, Enum):
    """Operating systems nocturne-miner is published for."""

    LINUX = "linux"
    MACOS = "macos"
    WINDOWS = "windows"


class Architecture(str, Enum):
    """Normalized CPU architectures."""

    X64 = "x64"
    ARM64 = "arm64"


class LibcVariant(str, Enum):
    """C library flavor of the host (Linux only)."""

    GLIBC = "glibc"
    MUSL = "musl"
    NONE = "none"


class CpuTier(str, Enum):
    """x86-64 microarchitecture level used to pick an optimized build.

    Tiers are ordered: ``V2 < V3 < V4``. V2 is the universal baseline.
    """

    V2 = "v2"
    V3 = "v3"
    V4 = "v4"

    @property
    def rank(self) -> int:
        return int(self.value[1:])

    def fallback_chain(self) -> List["CpuTier"]:
        """Return this tier and every lower tier, highest first."""
        return sorted(
            (tier for tier in CpuTier if tier.rank <= self.rank),
            key=lambda tier: tier.rank,
            reverse=True,
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CpuTier):
            return NotImplemented
        return self.rank < other.rank


@dataclass(frozen=True)
class PlatformDescriptor:
    """Normalized identity of the host the binary is installed for."""

    os: OperatingSystem
    arch: Architecture
    libc: LibcVariant = LibcVariant.NONE

    @property
    def is_musl(self) -> bool:
        return self.libc == LibcVariant.MUSL

    @property
    def target(self) -> str:
        """Platform fragment used in asset names, e.g. ``linux-musl-x64``."""
        libc_suffix = "-musl" if self.is_musl else ""
        return f"{self.os.value}{libc_suffix}-{self.arch.value}"

    def supports_tiers(self) -> bool:
        return self.arch == Architecture.X64 and self.os in (
            OperatingSystem.LINUX,
            OperatingSystem.MACOS,
        )

    def __str__(self) -> str:
        return f"{self.os.value}/{self.arch.value}/{self.libc.value}"


@dataclass(frozen=True)
class ReleaseTarget:
    """Release tag to install from.

    ``known_asset_names`` is populated when the tag was resolved from the
    ``latest.json`` metadata. It is ``None`` for a pinned tag, in which case
    asset existence has to be probed on the CDN.
    """

    tag: str
    known_asset_names: Optional[FrozenSet[str]] = None

    @property
    def is_pinned(self) -> bool:
        return self.known_asset_names is None


@dataclass(frozen=True)
class AssetSelection:
    """Outcome of asset selection."""

    name: str
    tiered: bool
    candidates_tried: Tuple[str, ...] = ()

"""CPU feature tier classification for x86-64 hosts.

Reads the CPU feature flags of the running machine and maps them onto the
x86-64 microarchitecture levels the release is built for. Unreadable flags
never fail the install: they degrade to the v2 baseline with a warning.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, Optional

from nocturne_installer.core.logging import get_logger
from nocturne_installer.core.models import CpuTier, OperatingSystem, PlatformDescriptor

LOGGER = get_logger(__name__)

CPUINFO_PATH = Path("/proc/cpuinfo")

MACOS_FEATURE_KEYS = ("machdep.cpu.features", "machdep.cpu.leaf7_features")

V4_FLAGS: FrozenSet[str] = frozenset(
    {"avx512f", "avx512dq", "avx512cd", "avx512bw", "avx512vl"}
)
V3_FLAGS: FrozenSet[str] = frozenset({"avx2", "bmi1", "bmi2", "fma"})


class CpuFlagsUnavailable(Exception):
    """CPU feature flags could not be read."""


def parse_flags(raw: str) -> FrozenSet[str]:
    """Split a flag string into whole, lower-cased tokens."""
    return frozenset(token.lower() for token in raw.split())


def tier_from_flags(flags: Iterable[str]) -> CpuTier:
    """Pick the highest tier whose required flags are all present."""
    flag_set = frozenset(flags)
    if V4_FLAGS <= flag_set:
        return CpuTier.V4
    if V3_FLAGS <= flag_set:
        return CpuTier.V3
    return CpuTier.V2


def read_linux_flags(cpuinfo_path: Path = CPUINFO_PATH) -> str:
    """Return the first ``flags`` line of /proc/cpuinfo (value part only)."""
    try:
        with open(cpuinfo_path, "r", encoding="utf-8", errors="replace") as f:
            for line in f:
                key, sep, value = line.partition(":")
                if sep and key.strip() == "flags":
                    return value
    except OSError as e:
        raise CpuFlagsUnavailable(f"cannot read {cpuinfo_path}: {e}") from e
    raise CpuFlagsUnavailable(f"no flags line in {cpuinfo_path}")


def read_macos_flags() -> str:
    """Return the concatenated sysctl feature strings."""
    parts = []
    for key in MACOS_FEATURE_KEYS:
        try:
            result = subprocess.run(
                ["sysctl", "-n", key],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (subprocess.SubprocessError, FileNotFoundError, OSError) as e:
            raise CpuFlagsUnavailable(f"sysctl {key} failed: {e}") from e
        if result.returncode != 0:
            raise CpuFlagsUnavailable(
                f"sysctl {key} exited with {result.returncode}"
            )
        parts.append(result.stdout.strip())
    return " ".join(parts)


def classify_cpu_tier(
    platform: PlatformDescriptor,
    flag_reader: Optional[Callable[[], str]] = None,
) -> Optional[CpuTier]:
    """Classify the CPU tier for ``platform``.

    Args:
        platform: Detected platform.
        flag_reader: Returns the raw flag string; defaults to the reader
            for the platform's OS.

    Returns:
        The tier, or None when tiers do not apply (arm64, Windows).
    """
    if not platform.supports_tiers():
        return None

    if flag_reader is None:
        if platform.os == OperatingSystem.LINUX:
            flag_reader = read_linux_flags
        else:
            flag_reader = read_macos_flags

    try:
        flags = parse_flags(flag_reader())
    except (CpuFlagsUnavailable, OSError, UnicodeError, ValueError) as e:
        LOGGER.warning(f"Could not read CPU feature flags ({e}); assuming tier v2")
        return CpuTier.V2

    if not flags:
        LOGGER.warning("CPU feature flags are empty; assuming tier v2")
        return CpuTier.V2

    tier = tier_from_flags(flags)
    LOGGER.debug(f"CPU tier {tier.value} from {len(flags)} flags")
    return tier

"""Environment probe: OS, architecture and libc detection.

Produces the immutable :class:`PlatformDescriptor` that every later stage
works from. All host queries are injectable so detection can be exercised
without the real machine.
"""

from __future__ import annotations

import os
import platform
import subprocess
from pathlib import Path
from typing import Callable, Mapping, Optional

from nocturne_installer.core.errors import PlatformDetectionError
from nocturne_installer.core.logging import get_logger
from nocturne_installer.core.models import (
    Architecture,
    LibcVariant,
    OperatingSystem,
    PlatformDescriptor,
)

LOGGER = get_logger(__name__)

ALPINE_MARKER = Path("/etc/alpine-release")

_OS_MAP = {
    "linux": OperatingSystem.LINUX,
    "darwin": OperatingSystem.MACOS,
    "windows": OperatingSystem.WINDOWS,
}

_ARCH_MAP = {
    "x86_64": Architecture.X64,
    "amd64": Architecture.X64,
    "aarch64": Architecture.ARM64,
    "arm64": Architecture.ARM64,
}


def normalize_os(system_name: str) -> OperatingSystem:
    """Map a kernel/system name (``Linux``, ``Darwin``, ``Windows``) to an OS."""
    os_name = _OS_MAP.get(system_name.strip().lower())
    if os_name is None:
        raise PlatformDetectionError(f"unsupported OS: {system_name}")
    return os_name


def normalize_arch(machine: str) -> Architecture:
    """Map a raw architecture token to ``x64`` or ``arm64``."""
    arch = _ARCH_MAP.get(machine.strip().lower())
    if arch is None:
        raise PlatformDetectionError(f"unsupported CPU arch: {machine}")
    return arch


def windows_arch_token(environ: Mapping[str, str], fallback: str) -> str:
    """Architecture token reported by the Windows environment.

    A 32-bit process on 64-bit Windows sees ``x86`` in PROCESSOR_ARCHITECTURE
    and the real value in PROCESSOR_ARCHITEW6432.
    """
    return (
        environ.get("PROCESSOR_ARCHITEW6432")
        or environ.get("PROCESSOR_ARCHITECTURE")
        or fallback
    )


def is_rosetta_translated() -> bool:
    """Check whether the current process runs under Rosetta 2."""
    try:
        result = subprocess.run(
            ["sysctl", "-n", "sysctl.proc_translated"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False
    return result.returncode == 0 and result.stdout.strip() == "1"


def _loader_reports_musl() -> bool:
    try:
        result = subprocess.run(
            ["ldd", "--version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False
    # musl's ldd prints its banner to stderr and exits non-zero
    output = f"{result.stdout}\n{result.stderr}"
    return "musl" in output.lower()


def detect_libc(
    alpine_marker: Path = ALPINE_MARKER,
    loader_check: Callable[[], bool] = _loader_reports_musl,
) -> LibcVariant:
    """Detect glibc vs musl on Linux.

    The Alpine marker file wins without consulting the loader.
    """
    if alpine_marker.exists():
        LOGGER.debug(f"Found {alpine_marker}, assuming musl")
        return LibcVariant.MUSL
    if loader_check():
        LOGGER.debug("Dynamic loader reports musl")
        return LibcVariant.MUSL
    return LibcVariant.GLIBC


def detect_platform(
    system_name: Optional[str] = None,
    machine: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    rosetta_check: Callable[[], bool] = is_rosetta_translated,
    libc_check: Callable[[], LibcVariant] = detect_libc,
) -> PlatformDescriptor:
    """Detect the platform the binary should be installed for.

    Args:
        system_name: Kernel/system name; defaults to ``platform.system()``.
        machine: Raw machine string; defaults to ``platform.machine()``.
        environ: Environment used for the Windows architecture token.
        rosetta_check: Returns True when running under Rosetta (macOS only).
        libc_check: Determines the libc variant (Linux only).

    Returns:
        Immutable platform descriptor.

    Raises:
        PlatformDetectionError: If the OS or architecture is not supported.
    """
    system_name = system_name if system_name is not None else platform.system()
    machine = machine if machine is not None else platform.machine()
    env = os.environ if environ is None else environ

    os_name = normalize_os(system_name)
    if os_name == OperatingSystem.WINDOWS:
        machine = windows_arch_token(env, machine)
    arch = normalize_arch(machine)

    # Must run before libc/tier detection: it changes the target identity.
    if os_name == OperatingSystem.MACOS and arch == Architecture.X64:
        if rosetta_check():
            LOGGER.info("Rosetta detected; using macos-arm64 build")
            arch = Architecture.ARM64

    libc = LibcVariant.NONE
    if os_name == OperatingSystem.LINUX:
        libc = libc_check()

    descriptor = PlatformDescriptor(os=os_name, arch=arch, libc=libc)
    LOGGER.debug(f"Detected platform {descriptor}")
    return descriptor

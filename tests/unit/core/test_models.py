"""Tests for core data models."""

from __future__ import annotations

import pytest

from nocturne_installer.core.models import (
    Architecture,
    LibcVariant,
    OperatingSystem,
    PlatformDescriptor,
    ReleaseTarget,
)


class TestPlatformDescriptor:
    """Tests for PlatformDescriptor."""

    def test_target_with_musl(self) -> None:
        descriptor = PlatformDescriptor(OperatingSystem.LINUX, Architecture.X64, LibcVariant.MUSL)
        assert descriptor.target == "linux-musl-x64"
        assert descriptor.is_musl is True

    def test_target_without_libc(self) -> None:
        descriptor = PlatformDescriptor(OperatingSystem.MACOS, Architecture.ARM64)
        assert descriptor.target == "macos-arm64"
        assert str(descriptor) == "macos/arm64/none"

    @pytest.mark.parametrize(
        "os_name,arch,expected",
        [
            (OperatingSystem.LINUX, Architecture.X64, True),
            (OperatingSystem.MACOS, Architecture.X64, True),
            (OperatingSystem.WINDOWS, Architecture.X64, False),
            (OperatingSystem.LINUX, Architecture.ARM64, False),
        ],
    )
    def test_supports_tiers(self, os_name, arch, expected: bool) -> None:
        assert PlatformDescriptor(os_name, arch).supports_tiers() is expected


class TestReleaseTarget:
    """Tests for ReleaseTarget."""

    def test_pinned(self) -> None:
        assert ReleaseTarget("v1.0.0").is_pinned is True

    def test_latest(self) -> None:
        assert ReleaseTarget("v1.0.0", frozenset({"a"})).is_pinned is False

"""Tests for extraction and installation."""

from __future__ import annotations

import io
import os
import stat
import tarfile
import warnings
import zipfile
from pathlib import Path
from typing import Dict, Optional

import pytest

from nocturne_installer.bootstrap.install import (
    confirm_overwrite,
    extract_archive,
    find_executable,
    install_asset,
    installed_name,
    path_hint,
    place_binary,
)
from nocturne_installer.config.models import InstallerConfig
from nocturne_installer.core.errors import DownloadError, InstallError
from nocturne_installer.core.models import (
    Architecture,
    LibcVariant,
    OperatingSystem,
    PlatformDescriptor,
)

CDN = "https://cdn.example.com/releases"
LINUX_X64 = PlatformDescriptor(OperatingSystem.LINUX, Architecture.X64, LibcVariant.GLIBC)
WINDOWS_X64 = PlatformDescriptor(OperatingSystem.WINDOWS, Architecture.X64)


def make_tarball(entries: Dict[str, bytes], mode: int = 0o755) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, data in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = mode
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def make_zip(entries: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()


class FakeFetcher:
    def __init__(self, bodies: Dict[str, bytes]) -> None:
        self.bodies = bodies

    def get_bytes(self, url: str) -> bytes:
        if url not in self.bodies:
            raise DownloadError(f"failed to download {url}: HTTP 404", url, status=404)
        return self.bodies[url]


def _config(install_dir: Path, name: str = "nocturne-miner", local: bool = False) -> InstallerConfig:
    return InstallerConfig(install_dir=install_dir, cdn_base=CDN, name=name, local=local)


class TestExtractArchive:
    """Tests for extract_archive."""

    def test_extracts_tarball(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.tar.gz"
        archive.write_bytes(make_tarball({"dist/nocturne-miner": b"#!/bin/sh\n"}))
        dest = tmp_path / "out"
        dest.mkdir()

        extract_archive(archive, dest)

        assert (dest / "dist" / "nocturne-miner").read_bytes() == b"#!/bin/sh\n"

    def test_tarball_extraction_is_warning_free(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.tar.gz"
        archive.write_bytes(make_tarball({"nocturne-miner": b"ELF"}))
        dest = tmp_path / "out"
        dest.mkdir()

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            extract_archive(archive, dest)

        assert os.access(dest / "nocturne-miner", os.X_OK)

    def test_extracts_zip(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.zip"
        archive.write_bytes(make_zip({"nocturne-miner.exe": b"MZ"}))
        dest = tmp_path / "out"
        dest.mkdir()

        extract_archive(archive, dest)

        assert (dest / "nocturne-miner.exe").exists()

    def test_rejects_path_traversal(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.tar.gz"
        archive.write_bytes(make_tarball({"../evil": b"x"}))
        dest = tmp_path / "out"
        dest.mkdir()

        with pytest.raises(InstallError, match="path traversal"):
            extract_archive(archive, dest)
        assert not (tmp_path / "evil").exists()

    def test_corrupt_archive(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.tar.gz"
        archive.write_bytes(b"not a tarball")
        dest = tmp_path / "out"
        dest.mkdir()

        with pytest.raises(InstallError, match="failed to extract"):
            extract_archive(archive, dest)

    def test_unknown_format(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.rar"
        archive.write_bytes(b"")

        with pytest.raises(InstallError, match="unsupported archive format"):
            extract_archive(archive, tmp_path)


class TestFindExecutable:
    """Tests for find_executable."""

    def _touch(self, path: Path, executable: bool = True) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"bin")
        path.chmod(0o755 if executable else 0o644)
        return path

    def test_finds_nested_executable(self, tmp_path: Path) -> None:
        binary = self._touch(tmp_path / "pkg" / "bin" / "nocturne-miner")
        assert find_executable(tmp_path, is_windows=False) == binary

    def test_ignores_non_executable_files(self, tmp_path: Path) -> None:
        self._touch(tmp_path / "nocturne-miner.txt", executable=False)
        assert find_executable(tmp_path, is_windows=False) is None

    def test_ignores_other_names(self, tmp_path: Path) -> None:
        self._touch(tmp_path / "helper")
        assert find_executable(tmp_path, is_windows=False) is None

    def test_respects_depth_limit(self, tmp_path: Path) -> None:
        self._touch(tmp_path / "a" / "b" / "c" / "nocturne-miner")
        assert find_executable(tmp_path, is_windows=False) is None

    def test_prefers_shallowest(self, tmp_path: Path) -> None:
        self._touch(tmp_path / "a" / "nocturne-miner-debug")
        top = self._touch(tmp_path / "nocturne-miner")
        assert find_executable(tmp_path, is_windows=False) == top

    def test_windows_requires_exe(self, tmp_path: Path) -> None:
        self._touch(tmp_path / "nocturne-miner.pdb", executable=False)
        exe = self._touch(tmp_path / "nocturne-miner.exe", executable=False)
        assert find_executable(tmp_path, is_windows=True) == exe


class TestInstalledName:
    """Tests for installed_name."""

    def test_windows_adds_exe(self) -> None:
        assert installed_name("miner", is_windows=True) == "miner.exe"
        assert installed_name("miner.EXE", is_windows=True) == "miner.EXE"

    def test_posix_unchanged(self) -> None:
        assert installed_name("miner", is_windows=False) == "miner"


class TestPlaceBinary:
    """Tests for place_binary."""

    def test_sets_executable_bits(self, tmp_path: Path) -> None:
        source = tmp_path / "src"
        source.write_bytes(b"bin")
        source.chmod(0o600)
        install_dir = tmp_path / "bin"
        install_dir.mkdir()

        destination = place_binary(source, install_dir, "miner", is_windows=False)

        assert destination == install_dir / "miner"
        assert stat.S_IMODE(destination.stat().st_mode) == 0o755
        assert not source.exists()

    def test_replaces_existing(self, tmp_path: Path) -> None:
        source = tmp_path / "src"
        source.write_bytes(b"new")
        install_dir = tmp_path / "bin"
        install_dir.mkdir()
        (install_dir / "miner").write_bytes(b"old")

        destination = place_binary(source, install_dir, "miner", is_windows=False)

        assert destination.read_bytes() == b"new"


class TestConfirmOverwrite:
    """Tests for confirm_overwrite."""

    def test_no_existing_file(self, tmp_path: Path) -> None:
        assert confirm_overwrite(tmp_path / "miner", force=False, interactive=True) is True

    def test_force(self, tmp_path: Path) -> None:
        target = tmp_path / "miner"
        target.write_bytes(b"old")
        assert confirm_overwrite(target, force=True, interactive=True, ask=lambda q: False) is True

    def test_non_interactive_overwrites(self, tmp_path: Path) -> None:
        target = tmp_path / "miner"
        target.write_bytes(b"old")
        assert confirm_overwrite(target, force=False, interactive=False) is True

    def test_interactive_asks(self, tmp_path: Path) -> None:
        target = tmp_path / "miner"
        target.write_bytes(b"old")
        questions = []

        def decline(question: str) -> bool:
            questions.append(question)
            return False

        assert confirm_overwrite(target, force=False, interactive=True, ask=decline) is False
        assert "already exists" in questions[0]


class TestInstallAsset:
    """Tests for install_asset."""

    def test_installs_from_tarball(self, tmp_path: Path) -> None:
        asset = "nocturne-miner-linux-x64-v3.tar.gz"
        fetcher = FakeFetcher(
            {f"{CDN}/v1.4.0/{asset}": make_tarball({"nocturne-miner-linux-x64-v3/nocturne-miner": b"ELF"})}
        )
        install_dir = tmp_path / "bin"

        installed = install_asset(_config(install_dir), LINUX_X64, "v1.4.0", asset, fetcher)

        assert installed == install_dir / "nocturne-miner"
        assert installed.read_bytes() == b"ELF"
        assert os.access(installed, os.X_OK)

    def test_installs_under_custom_name(self, tmp_path: Path) -> None:
        asset = "nocturne-miner-linux-x64.tar.gz"
        fetcher = FakeFetcher({f"{CDN}/v1.4.0/{asset}": make_tarball({"nocturne-miner": b"ELF"})})

        installed = install_asset(
            _config(tmp_path / "bin", name="miner"), LINUX_X64, "v1.4.0", asset, fetcher
        )

        assert installed.name == "miner"

    def test_windows_zip_gets_exe_suffix(self, tmp_path: Path) -> None:
        asset = "nocturne-miner-windows-x64.zip"
        fetcher = FakeFetcher({f"{CDN}/v1.4.0/{asset}": make_zip({"nocturne-miner.exe": b"MZ"})})

        installed = install_asset(
            _config(tmp_path / "bin", name="miner"), WINDOWS_X64, "v1.4.0", asset, fetcher
        )

        assert installed == tmp_path / "bin" / "miner.exe"

    def test_missing_executable(self, tmp_path: Path) -> None:
        asset = "nocturne-miner-linux-x64.tar.gz"
        fetcher = FakeFetcher({f"{CDN}/v1.4.0/{asset}": make_tarball({"README.md": b"hi"}, mode=0o644)})

        with pytest.raises(InstallError, match="could not locate executable"):
            install_asset(_config(tmp_path / "bin"), LINUX_X64, "v1.4.0", asset, fetcher)

    def test_temp_directory_removed_on_failure(self, tmp_path: Path, monkeypatch) -> None:
        created = []
        import tempfile

        original = tempfile.TemporaryDirectory

        def tracking(*args, **kwargs):
            tmp = original(*args, **kwargs)
            created.append(Path(tmp.name))
            return tmp

        monkeypatch.setattr(
            "nocturne_installer.bootstrap.install.tempfile.TemporaryDirectory", tracking
        )
        fetcher = FakeFetcher({})

        with pytest.raises(DownloadError):
            install_asset(_config(tmp_path / "bin"), LINUX_X64, "v1.4.0", "x.tar.gz", fetcher)

        assert created and not created[0].exists()

    def test_local_install_does_not_create_directory(self, tmp_path: Path) -> None:
        asset = "nocturne-miner-linux-x64.tar.gz"
        fetcher = FakeFetcher({f"{CDN}/v1.4.0/{asset}": make_tarball({"nocturne-miner": b"ELF"})})

        installed = install_asset(
            _config(tmp_path, local=True), LINUX_X64, "v1.4.0", asset, fetcher
        )

        assert installed == tmp_path / "nocturne-miner"


class TestPathHint:
    """Tests for path_hint."""

    def test_no_hint_when_on_path(self, tmp_path: Path) -> None:
        path_value = os.pathsep.join(["/usr/bin", str(tmp_path)])
        assert path_hint(tmp_path, path_value, is_windows=False) == []

    def test_posix_hint(self, tmp_path: Path) -> None:
        lines = path_hint(tmp_path, "/usr/bin", is_windows=False)
        assert lines[0].startswith("note:")
        assert f'export PATH="{tmp_path}:$PATH"' in lines[1]

    def test_windows_hint(self, tmp_path: Path) -> None:
        lines = path_hint(tmp_path, None, is_windows=True)
        assert "setx PATH" in lines[1]

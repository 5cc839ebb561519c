"""Download, extraction and installation of the selected asset.

The archive is downloaded and unpacked inside a temporary working directory
that is removed on every exit path. The executable found inside is moved to
the installation directory under the configured name.
"""

from __future__ import annotations

import os
import shutil
import stat
import sys
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Callable, List, Optional

import questionary

from nocturne_installer.bootstrap.download import Fetcher
from nocturne_installer.bootstrap.paths import is_on_path
from nocturne_installer.bootstrap.release import asset_url
from nocturne_installer.bootstrap.selector import ASSET_PREFIX
from nocturne_installer.bootstrap.validation import ToolStatus, validate_binary
from nocturne_installer.config.models import InstallerConfig
from nocturne_installer.core.errors import InstallError
from nocturne_installer.core.logging import get_logger
from nocturne_installer.core.models import OperatingSystem, PlatformDescriptor

LOGGER = get_logger(__name__)

MAX_SEARCH_DEPTH = 3


def _check_member_path(dest_dir: Path, member_name: str) -> None:
    member_path = (dest_dir / member_name).resolve()
    if not member_path.is_relative_to(dest_dir.resolve()):
        raise InstallError(f"path traversal detected in archive: {member_name}")


def extract_archive(archive_path: Path, dest_dir: Path) -> None:
    """Extract a ``.tar.gz`` or ``.zip`` archive into ``dest_dir``.

    Only regular files and directories are extracted. Links and device
    entries are skipped.

    Raises:
        InstallError: On unreadable archives or members escaping ``dest_dir``.
    """
    name = archive_path.name
    try:
        if name.endswith(".zip"):
            with zipfile.ZipFile(archive_path, "r") as zf:
                for zip_member in zf.namelist():
                    _check_member_path(dest_dir, zip_member)
                zf.extractall(dest_dir)
        elif name.endswith(".tar.gz") or name.endswith(".tgz"):
            with tarfile.open(archive_path, "r:gz") as tar:
                members = []
                for tar_member in tar.getmembers():
                    _check_member_path(dest_dir, tar_member.name)
                    if tar_member.isfile() or tar_member.isdir():
                        members.append(tar_member)
                    else:
                        LOGGER.debug(f"Skipping non-regular archive entry {tar_member.name}")
                # Extraction filters exist from 3.10.12 and 3.11.4 on
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(path=dest_dir, members=members, filter="data")
                else:
                    tar.extractall(path=dest_dir, members=members)
        else:
            raise InstallError(f"unsupported archive format: {name}")
    except (tarfile.TarError, zipfile.BadZipFile, EOFError) as e:
        raise InstallError(f"failed to extract {name}: {e}") from e


def _looks_executable(path: Path, is_windows: bool) -> bool:
    if is_windows:
        return path.name.lower().endswith(".exe")
    return bool(path.stat().st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))


def find_executable(
    root: Path,
    is_windows: bool,
    prefix: str = ASSET_PREFIX,
    max_depth: int = MAX_SEARCH_DEPTH,
) -> Optional[Path]:
    """Find the first executable named ``{prefix}*`` within ``max_depth`` levels."""
    root_depth = len(root.parts)
    matches: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        depth = len(current.parts) - root_depth
        if depth >= max_depth - 1:
            dirnames[:] = []
        dirnames.sort()
        for filename in sorted(filenames):
            candidate = current / filename
            if not filename.startswith(prefix) or not candidate.is_file():
                continue
            if candidate.is_symlink():
                continue
            if _looks_executable(candidate, is_windows):
                matches.append(candidate)
    if not matches:
        return None
    # Prefer the shallowest match
    return min(matches, key=lambda p: (len(p.parts), str(p)))


def installed_name(name: str, is_windows: bool) -> str:
    """Installed executable name; Windows always gets an ``.exe`` suffix."""
    if is_windows and not name.lower().endswith(".exe"):
        return f"{name}.exe"
    return name


def confirm_overwrite(
    destination: Path,
    force: bool,
    interactive: Optional[bool] = None,
    ask: Optional[Callable[[str], bool]] = None,
) -> bool:
    """Decide whether an existing installation may be replaced.

    Non-interactive runs and ``--force`` overwrite without asking.
    """
    if force or not destination.exists():
        return True
    if interactive is None:
        interactive = sys.stdin is not None and sys.stdin.isatty()
    if not interactive:
        LOGGER.debug(f"Replacing existing {destination}")
        return True
    if ask is None:
        ask = _ask_overwrite
    return bool(ask(f"{destination} already exists. Overwrite?"))


def _ask_overwrite(question: str) -> bool:
    return bool(questionary.confirm(question, default=True).ask())


def place_binary(source: Path, install_dir: Path, name: str, is_windows: bool) -> Path:
    """Move ``source`` into ``install_dir`` and make it executable."""
    destination = install_dir / installed_name(name, is_windows)
    try:
        if destination.exists():
            destination.unlink()
        shutil.move(str(source), str(destination))
        if not is_windows:
            destination.chmod(0o755)
    except OSError as e:
        raise InstallError(f"failed to install {destination}: {e}") from e
    return destination


def install_asset(
    config: InstallerConfig,
    platform: PlatformDescriptor,
    tag: str,
    asset_name: str,
    fetcher: Fetcher,
) -> Path:
    """Download ``asset_name`` for ``tag`` and install its executable.

    Returns:
        Path to the installed binary.

    Raises:
        DownloadError: If the archive could not be downloaded.
        InstallError: If extraction or installation fails.
    """
    is_windows = platform.os == OperatingSystem.WINDOWS
    install_dir = config.install_dir

    if not config.local:
        try:
            install_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallError(f"cannot create {install_dir}: {e}") from e

    url = asset_url(config.cdn_base, tag, asset_name)

    with tempfile.TemporaryDirectory(prefix="nocturne-install-") as tmp:
        workdir = Path(tmp)
        archive_path = workdir / asset_name

        LOGGER.info(f"Downloading {url}")
        archive_path.write_bytes(fetcher.get_bytes(url))

        LOGGER.info(f"Extracting {asset_name}")
        extract_dir = workdir / "extract"
        extract_dir.mkdir()
        extract_archive(archive_path, extract_dir)

        binary = find_executable(extract_dir, is_windows)
        if binary is None:
            raise InstallError("could not locate executable inside archive")

        destination = place_binary(binary, install_dir, config.name, is_windows)

    status = validate_binary(destination, is_windows=is_windows)
    if status != ToolStatus.PRESENT:
        raise InstallError(f"installed binary at {destination} is {status.value}")

    return destination


def path_hint(install_dir: Path, path_value: Optional[str], is_windows: bool) -> List[str]:
    """Lines suggesting how to add ``install_dir`` to PATH (empty if present)."""
    if is_on_path(install_dir, path_value):
        return []
    if is_windows:
        return [
            f"note: {install_dir} is not in PATH. Add it with:",
            f'      setx PATH "%PATH%;{install_dir}"',
        ]
    return [
        f"note: {install_dir} is not in PATH. Add this to your shell rc:",
        f'      export PATH="{install_dir}:$PATH"',
    ]

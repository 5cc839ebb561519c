"""Path management for the installer.

Handles the ~/.nocturne directory (global configuration) and resolution of
the directory the binary is installed into.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Mapping, Optional

# Default directory name under user home
DEFAULT_HOME_DIR_NAME = ".nocturne"

# Environment variable to override home directory
NOCTURNE_HOME_ENV = "NOCTURNE_HOME"


def get_nocturne_home(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Get the installer home directory path.

    Resolution order:
    1. NOCTURNE_HOME environment variable (if set)
    2. ~/.nocturne (default)

    Returns:
        Path to the installer home directory.
    """
    env = os.environ if environ is None else environ
    env_home = env.get(NOCTURNE_HOME_ENV)
    if env_home:
        return Path(env_home)
    return Path.home() / DEFAULT_HOME_DIR_NAME


def default_install_dir(
    is_windows: bool,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """Default directory the binary is installed into.

    POSIX hosts use ~/.local/bin. Windows uses
    %LOCALAPPDATA%\\nocturne-miner\\bin, falling back to the user profile.
    """
    env = os.environ if environ is None else environ
    if is_windows:
        base = env.get("LOCALAPPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Local"
        return root / "nocturne-miner" / "bin"
    return Path.home() / ".local" / "bin"


def is_on_path(directory: Path, path_value: Optional[str]) -> bool:
    """Check whether ``directory`` is one of the entries of a PATH string."""
    if not path_value:
        return False
    target = os.path.normcase(os.path.abspath(str(directory)))
    for entry in path_value.split(os.pathsep):
        if entry and os.path.normcase(os.path.abspath(entry)) == target:
            return True
    return False


@dataclass
class NocturnePaths:
    """Manages paths within the installer home directory.

    Directory structure:
        ~/.nocturne/
            config/
                config.yml      - Global installer configuration
    """

    home: Path

    _CONFIG_DIR: ClassVar[str] = "config"
    _CONFIG_FILE: ClassVar[str] = "config.yml"

    @classmethod
    def default(cls, environ: Optional[Mapping[str, str]] = None) -> "NocturnePaths":
        """Create paths from the installer home (NOCTURNE_HOME or ~/.nocturne)."""
        return cls(get_nocturne_home(environ))

    @property
    def config_dir(self) -> Path:
        """Directory for configuration files."""
        return self.home / self._CONFIG_DIR

    @property
    def global_config_file(self) -> Path:
        return self.config_dir / self._CONFIG_FILE

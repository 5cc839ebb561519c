"""Configuration data model for the installer.

The configuration is resolved once by the CLI (config file, environment,
flags) and passed through the pipeline as an immutable value. No stage
reads the environment or the working directory after that.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from nocturne_installer.bootstrap.download import (
    DEFAULT_PROBE_ATTEMPTS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
)

DEFAULT_CDN_BASE = "https://cdn.nocturne.offchain.club/releases"
DEFAULT_BINARY_NAME = "nocturne-miner"


@dataclass(frozen=True)
class InstallerConfig:
    """Complete installer configuration.

    Example ~/.nocturne/config/config.yml:
        cdn_base: https://mirror.example.com/nocturne
        bin_dir: ~/bin
        name: miner
        tiering: true
        retry_attempts: 5
    """

    install_dir: Path
    cdn_base: str = DEFAULT_CDN_BASE
    name: str = DEFAULT_BINARY_NAME
    local: bool = False
    tag: Optional[str] = None
    tiering: bool = True
    force: bool = False
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY
    probe_attempts: int = DEFAULT_PROBE_ATTEMPTS
    timeout: float = DEFAULT_TIMEOUT

    # PATH as seen at startup, for the post-install hint
    path_env: Optional[str] = None

    # Metadata (not from YAML, set by loader)
    sources: Tuple[str, ...] = field(default=(), repr=False)

"""
Bootstrap module for installing nocturne-miner.

This module handles:
- Platform detection (OS, architecture, libc, Rosetta)
- CPU feature tier classification
- Release metadata resolution and asset selection
- Download, extraction and installation of the binary
"""

from nocturne_installer.bootstrap.cpu import classify_cpu_tier
from nocturne_installer.bootstrap.download import Fetcher
from nocturne_installer.bootstrap.install import install_asset
from nocturne_installer.bootstrap.paths import NocturnePaths, get_nocturne_home
from nocturne_installer.bootstrap.platform import detect_platform
from nocturne_installer.bootstrap.release import make_exists_check, resolve_release
from nocturne_installer.bootstrap.selector import candidate_names, select_asset
from nocturne_installer.bootstrap.validation import ToolStatus, validate_binary

__all__ = [
    "classify_cpu_tier",
    "Fetcher",
    "install_asset",
    "NocturnePaths",
    "get_nocturne_home",
    "detect_platform",
    "make_exists_check",
    "resolve_release",
    "candidate_names",
    "select_asset",
    "ToolStatus",
    "validate_binary",
]

"""Validation of the installed binary."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from nocturne_installer.core.logging import get_logger

LOGGER = get_logger(__name__)


class ToolStatus(str, Enum):
    """Status of an installed binary."""

    PRESENT = "present"
    MISSING = "missing"
    NOT_EXECUTABLE = "not_executable"


def validate_binary(path: Path, is_windows: bool = False) -> ToolStatus:
    """Validate a single binary file.

    Windows has no executable bit; a present ``.exe`` file counts as valid.

    Args:
        path: Path to the binary file.
        is_windows: Whether the binary targets Windows.

    Returns:
        ToolStatus indicating whether the binary is present and executable.
    """
    if not path.is_file():
        return ToolStatus.MISSING

    if is_windows:
        return ToolStatus.PRESENT

    if not os.access(path, os.X_OK):
        LOGGER.debug(f"{path} exists but is not executable")
        return ToolStatus.NOT_EXECUTABLE

    return ToolStatus.PRESENT

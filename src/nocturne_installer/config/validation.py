"""Configuration validation for the installer.

Warns on unknown keys without raising. Value checks belong to the loader,
which turns bad values into errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import get_close_matches
from typing import Any, Dict, List, Optional, Set

from nocturne_installer.core.logging import get_logger

LOGGER = get_logger(__name__)

VALID_KEYS: Set[str] = {
    "cdn_base",
    "bin_dir",
    "name",
    "tiering",
    "retry_attempts",
    "retry_delay",
    "probe_attempts",
    "timeout",
}


@dataclass
class ConfigValidationWarning:
    """A validation warning for configuration."""

    message: str
    source: str
    key: Optional[str] = None
    suggestion: Optional[str] = None


def validate_config(
    data: Dict[str, Any],
    source: str,
) -> List[ConfigValidationWarning]:
    """Validate a configuration dictionary.

    Args:
        data: Config dictionary to validate.
        source: Source file path for warning messages.

    Returns:
        List of validation warnings.
    """
    warnings: List[ConfigValidationWarning] = []

    if not isinstance(data, dict):
        warning = ConfigValidationWarning(
            message=f"Config must be a mapping, got {type(data).__name__}",
            source=source,
        )
        _log_warning(warning)
        return [warning]

    for key in data:
        if key in VALID_KEYS:
            continue
        warning = ConfigValidationWarning(
            message=f"Unknown key '{key}'",
            source=source,
            key=key,
            suggestion=_suggest_key(str(key), VALID_KEYS),
        )
        warnings.append(warning)
        _log_warning(warning)

    return warnings


def _suggest_key(key: str, valid_keys: Set[str]) -> Optional[str]:
    matches = get_close_matches(key, sorted(valid_keys), n=1, cutoff=0.6)
    return matches[0] if matches else None


def _log_warning(warning: ConfigValidationWarning) -> None:
    message = f"{warning.source}: {warning.message}"
    if warning.suggestion:
        message += f" (did you mean '{warning.suggestion}'?)"
    LOGGER.warning(message)

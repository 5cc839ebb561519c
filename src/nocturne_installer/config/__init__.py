"""Configuration module for nocturne-installer.

Provides configuration loading with support for:
- Global config (~/.nocturne/config/config.yml) or a custom --config file
- Environment overrides (BIN_DIR, NAME, NOCTURNE_CDN_BASE, NOCTURNE_TAG)
- Environment variable expansion in YAML values
"""

from nocturne_installer.config.models import InstallerConfig
from nocturne_installer.config.loader import load_config, find_global_config
from nocturne_installer.config.validation import validate_config, ConfigValidationWarning

__all__ = [
    "InstallerConfig",
    "load_config",
    "find_global_config",
    "validate_config",
    "ConfigValidationWarning",
]

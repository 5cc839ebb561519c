"""Configuration loading and merging.

Handles building the installer configuration from:
- Global config (~/.nocturne/config/config.yml) or a --config file
- Environment overrides (BIN_DIR, NAME, NOCTURNE_CDN_BASE, NOCTURNE_TAG)
- CLI flags
- Environment variable expansion in YAML values (${VAR})
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from nocturne_installer.bootstrap.download import validate_url
from nocturne_installer.bootstrap.paths import (
    NocturnePaths,
    default_install_dir,
)
from nocturne_installer.bootstrap.release import is_valid_tag
from nocturne_installer.config.models import (
    DEFAULT_BINARY_NAME,
    DEFAULT_CDN_BASE,
    InstallerConfig,
)
from nocturne_installer.config.validation import validate_config
from nocturne_installer.core.errors import ConfigError
from nocturne_installer.core.logging import get_logger

LOGGER = get_logger(__name__)

# Environment variable pattern: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Environment variables mapped onto config keys
ENV_OVERRIDES: Dict[str, str] = {
    "BIN_DIR": "bin_dir",
    "NAME": "name",
    "NOCTURNE_CDN_BASE": "cdn_base",
    "NOCTURNE_TAG": "tag",
}


def load_config(
    cli_config_path: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
    is_windows: bool = False,
) -> InstallerConfig:
    """Load configuration with proper precedence.

    Precedence (highest to lowest):
    1. CLI flags (cli_overrides)
    2. Environment overrides (BIN_DIR, NAME, ...)
    3. Custom config file (cli_config_path) OR global config
    4. Built-in defaults

    Args:
        cli_config_path: Optional path to custom config file (--config flag).
        cli_overrides: Dict of CLI flag overrides.
        environ: Environment mapping; defaults to os.environ.
        cwd: Working directory used for --local installs.
        is_windows: Whether the host is Windows (default install dir).

    Returns:
        Immutable InstallerConfig.

    Raises:
        ConfigError: If a config file is missing, unparsable or has bad values.
    """
    env = dict(os.environ if environ is None else environ)
    sources: List[str] = []
    merged: Dict[str, Any] = {}

    if cli_config_path:
        if not cli_config_path.exists():
            raise ConfigError(f"Config file not found: {cli_config_path}")
        merged = merge_configs(merged, _load_file(cli_config_path, env))
        sources.append(f"custom:{cli_config_path}")
        LOGGER.debug(f"Loaded custom config from {cli_config_path}")
    else:
        global_path = find_global_config(env)
        if global_path:
            merged = merge_configs(merged, _load_file(global_path, env))
            sources.append(f"global:{global_path}")
            LOGGER.debug(f"Loaded global config from {global_path}")

    env_overrides = env_to_overrides(env)
    if env_overrides:
        merged = merge_configs(merged, env_overrides)
        sources.append("env")
        LOGGER.debug(f"Applied environment overrides: {sorted(env_overrides)}")

    if cli_overrides:
        merged = merge_configs(merged, cli_overrides)
        sources.append("cli")
        LOGGER.debug("Applied CLI overrides")

    config = dict_to_config(
        merged,
        cwd=cwd if cwd is not None else Path.cwd(),
        is_windows=is_windows,
        environ=env,
        sources=sources,
    )
    LOGGER.debug(f"Config loaded from sources: {sources}")
    return config


def find_global_config(environ: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    """Find global config at ~/.nocturne/config/config.yml.

    Returns:
        Path to global config if it exists, None otherwise.
    """
    config_path = NocturnePaths.default(environ).global_config_file
    if config_path.exists():
        return config_path
    return None


def _load_file(path: Path, environ: Mapping[str, str]) -> Dict[str, Any]:
    try:
        data = load_yaml_file(path, environ)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    validate_config(data, source=str(path))
    return data


def load_yaml_file(path: Path, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Load and parse a YAML config file.

    Performs environment variable expansion on string values.

    Raises:
        yaml.YAMLError: If YAML parsing fails.
        ConfigError: If the document is not a mapping.
    """
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()

    data = yaml.safe_load(content)

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")

    return expand_env_vars(data, environ)


def expand_env_vars(data: Any, environ: Optional[Mapping[str, str]] = None) -> Any:
    """Recursively expand environment variables in config values.

    Supports ${VAR} and ${VAR:-default} syntax.
    """
    env = os.environ if environ is None else environ
    if isinstance(data, dict):
        return {k: expand_env_vars(v, env) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item, env) for item in data]
    elif isinstance(data, str):
        return ENV_VAR_PATTERN.sub(lambda m: _env_var_replacer(m, env), data)
    else:
        return data


def _env_var_replacer(match: re.Match[str], environ: Mapping[str, str]) -> str:
    """Replace environment variable reference with its value."""
    var_name = match.group(1)
    default_value = match.group(2)

    value = environ.get(var_name)
    if value is not None:
        return value
    if default_value is not None:
        return default_value

    LOGGER.warning(f"Environment variable ${var_name} is not set and has no default")
    return ""


def env_to_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Collect config overrides from recognized environment variables."""
    overrides: Dict[str, Any] = {}
    for var_name, key in ENV_OVERRIDES.items():
        value = environ.get(var_name)
        if value:
            overrides[key] = value
    return overrides


def merge_configs(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two flat config dicts, with overlay taking precedence."""
    result = base.copy()
    result.update(overlay)
    return result


def _as_int(data: Dict[str, Any], key: str, default: int, minimum: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be an integer, got {value!r}") from e
    if number < minimum:
        raise ConfigError(f"'{key}' must be at least {minimum}, got {number}")
    return number


def _as_float(data: Dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from e
    if number < 0:
        raise ConfigError(f"'{key}' must not be negative, got {number}")
    return number


def dict_to_config(
    data: Dict[str, Any],
    cwd: Path,
    is_windows: bool = False,
    environ: Optional[Mapping[str, str]] = None,
    sources: Optional[List[str]] = None,
) -> InstallerConfig:
    """Convert a merged config dict into a typed InstallerConfig.

    Raises:
        ConfigError: If a value cannot be used.
    """
    env = os.environ if environ is None else environ

    cdn_base = str(data.get("cdn_base") or DEFAULT_CDN_BASE).rstrip("/")
    try:
        validate_url(cdn_base)
    except ValueError as e:
        raise ConfigError(f"Invalid cdn_base: {cdn_base}") from e

    name = str(data.get("name") or DEFAULT_BINARY_NAME).strip()
    if not name or "/" in name or "\\" in name:
        raise ConfigError(f"Invalid executable name: {name!r}")

    local = bool(data.get("local", False))
    if local:
        install_dir = cwd
    elif data.get("bin_dir"):
        install_dir = Path(str(data["bin_dir"])).expanduser()
    else:
        install_dir = default_install_dir(is_windows, env)

    tag = data.get("tag")
    tag = str(tag).strip() if tag else None
    if tag and not is_valid_tag(tag):
        raise ConfigError(f"Invalid release tag: {tag!r}")

    tiering = data.get("tiering", True)
    if not isinstance(tiering, bool):
        raise ConfigError(f"'tiering' must be true or false, got {tiering!r}")

    defaults = InstallerConfig(install_dir=install_dir)
    return InstallerConfig(
        install_dir=install_dir,
        cdn_base=cdn_base,
        name=name,
        local=local,
        tag=tag or None,
        tiering=tiering,
        force=bool(data.get("force", False)),
        retry_attempts=_as_int(data, "retry_attempts", defaults.retry_attempts, 1),
        retry_delay=_as_float(data, "retry_delay", defaults.retry_delay),
        probe_attempts=_as_int(data, "probe_attempts", defaults.probe_attempts, 1),
        timeout=_as_float(data, "timeout", defaults.timeout),
        path_env=env.get("PATH"),
        sources=tuple(sources or ()),
    )

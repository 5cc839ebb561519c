from __future__ import annotations

import argparse
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from nocturne_installer.bootstrap.cpu import classify_cpu_tier
from nocturne_installer.bootstrap.download import Fetcher
from nocturne_installer.bootstrap.install import (
    confirm_overwrite,
    install_asset,
    installed_name,
    path_hint,
)
from nocturne_installer.bootstrap.platform import detect_platform
from nocturne_installer.bootstrap.release import (
    asset_url,
    make_exists_check,
    resolve_release,
)
from nocturne_installer.bootstrap.selector import select_asset
from nocturne_installer.config import InstallerConfig, load_config
from nocturne_installer.core.errors import InstallerError
from nocturne_installer.core.logging import configure_logging, get_logger
from nocturne_installer.core.models import OperatingSystem, PlatformDescriptor

LOGGER = get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


def _get_version() -> str:
    try:
        return version("nocturne-installer")
    except PackageNotFoundError:
        # Fallback for editable installs that have not yet built metadata.
        from nocturne_installer import __version__

        return __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nocturne-install",
        description=(
            "Download the correct nocturne-miner archive for this machine and "
            "install its executable."
        ),
        epilog=(
            "Environment: BIN_DIR (installation directory), NAME (installed "
            "executable name), NOCTURNE_CDN_BASE, NOCTURNE_TAG."
        ),
        add_help=False,
    )

    parser.add_argument(
        "-h",
        "--help",
        "-Help",
        action="help",
        help="Show this help message and exit.",
    )
    parser.add_argument(
        "--local",
        "-Local",
        action="store_true",
        default=None,
        help="Install into the current directory instead of a PATH directory.",
    )
    parser.add_argument(
        "--tag",
        "-Tag",
        metavar="vX.Y.Z",
        default=None,
        help="Install a specific release instead of the latest one.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        default=None,
        help="Overwrite an existing installation without asking.",
    )
    parser.add_argument(
        "--no-tiering",
        dest="tiering",
        action="store_false",
        default=None,
        help="Ignore CPU feature tiers and install the baseline build.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the detected platform and selected asset without installing.",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        type=Path,
        help="Path to config file (default: ~/.nocturne/config/config.yml).",
    )

    parser.add_argument(
        "--version",
        action="store_true",
        help="Show installer version and exit.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (info-level) logging.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce logging output to errors only.",
    )

    return parser


def cli_args_to_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Convert CLI arguments to config override dict.

    Only flags given explicitly are included, so they take precedence over
    the environment and config files without masking them otherwise.
    """
    overrides: Dict[str, Any] = {}
    if args.local:
        overrides["local"] = True
    if args.tag:
        overrides["tag"] = args.tag
    if args.force:
        overrides["force"] = True
    if args.tiering is False:
        overrides["tiering"] = False
    return overrides


def _describe(platform_info: PlatformDescriptor, tier_value: Optional[str]) -> str:
    musl = "yes" if platform_info.is_musl else "no"
    return (
        f"OS={platform_info.os.value} ARCH={platform_info.arch.value} "
        f"MUSL={musl} TIER={tier_value or '-'} -> target={platform_info.target}"
    )


def run_install(
    config: InstallerConfig,
    platform_info: PlatformDescriptor,
    dry_run: bool = False,
    fetcher: Optional[Fetcher] = None,
) -> int:
    """Run classification, resolution, selection and installation.

    Args:
        config: Resolved installer configuration.
        platform_info: Detected platform.
        dry_run: Stop after selecting the asset.
        fetcher: Network fetcher; built from the config when omitted.

    Returns:
        Exit code.

    Raises:
        InstallerError: On any fatal error.
    """
    is_windows = platform_info.os == OperatingSystem.WINDOWS
    tier = classify_cpu_tier(platform_info) if config.tiering else None
    LOGGER.info(_describe(platform_info, tier.value if tier else None))

    if fetcher is None:
        fetcher = Fetcher(
            retry_attempts=config.retry_attempts,
            retry_delay=config.retry_delay,
            probe_attempts=config.probe_attempts,
            timeout=config.timeout,
        )

    release = resolve_release(config.cdn_base, config.tag, fetcher)
    exists = make_exists_check(release, config.cdn_base, fetcher)
    selection = select_asset(
        platform_info,
        tier,
        exists,
        release.tag,
        tiering=config.tiering,
    )

    if dry_run:
        print(asset_url(config.cdn_base, release.tag, selection.name))
        return EXIT_SUCCESS

    destination = config.install_dir / installed_name(config.name, is_windows)
    if not confirm_overwrite(destination, force=config.force):
        print("Aborted.")
        return EXIT_SUCCESS

    installed = install_asset(config, platform_info, release.tag, selection.name, fetcher)
    print(f"success: installed {config.name} -> {installed}")

    if not config.local:
        for line in path_hint(config.install_dir, config.path_env, is_windows):
            print(line)

    return EXIT_SUCCESS


def main(argv: Optional[Iterable[str]] = None) -> int:
    """CLI entrypoint.

    Returns an exit code suitable for use as a console script.
    """
    parser = build_parser()
    argv_list = list(argv) if argv is not None else None

    try:
        args = parser.parse_args(argv_list)
    except SystemExit as e:
        # --help exits with 0, usage errors with 2
        return EXIT_SUCCESS if e.code in (0, None) else EXIT_FAILURE

    # Configure logging as early as possible.
    configure_logging(debug=args.debug, verbose=args.verbose, quiet=args.quiet)

    if args.version:
        print(_get_version())
        return EXIT_SUCCESS

    try:
        platform_info = detect_platform()
        config = load_config(
            cli_config_path=args.config,
            cli_overrides=cli_args_to_config_overrides(args),
            cwd=Path.cwd(),
            is_windows=platform_info.os == OperatingSystem.WINDOWS,
        )
        return run_install(config, platform_info, dry_run=args.dry_run)
    except InstallerError as e:
        LOGGER.error(str(e))
        if args.debug:
            import traceback
            traceback.print_exc()
        return EXIT_FAILURE


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    raise SystemExit(main())

"""Allow running the installer via ``python -m nocturne_installer``."""

from nocturne_installer.cli import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

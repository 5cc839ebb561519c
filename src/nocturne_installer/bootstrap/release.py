"""Release metadata resolution.

Latest mode reads ``{cdn_base}/latest.json`` once and remembers the published
asset names, so asset existence becomes a set lookup. Pinned mode skips the
metadata and probes the CDN for each candidate instead.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, Optional

from nocturne_installer.bootstrap.download import Fetcher
from nocturne_installer.core.errors import MetadataError
from nocturne_installer.core.logging import get_logger
from nocturne_installer.core.models import ReleaseTarget

LOGGER = get_logger(__name__)

LATEST_METADATA_NAME = "latest.json"

# Tags become a URL path segment
TAG_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


def is_valid_tag(tag: str) -> bool:
    return bool(TAG_PATTERN.fullmatch(tag))


def latest_metadata_url(cdn_base: str) -> str:
    return f"{cdn_base.rstrip('/')}/{LATEST_METADATA_NAME}"


def asset_url(cdn_base: str, tag: str, asset_name: str) -> str:
    return f"{cdn_base.rstrip('/')}/{tag}/{asset_name}"


def parse_latest_metadata(data: Any) -> ReleaseTarget:
    """Validate a decoded ``latest.json`` document.

    Expected shape::

        {"tag": "v1.4.0", "files": [{"name": "nocturne-miner-linux-x64.tar.gz"}, ...]}

    Raises:
        MetadataError: If the tag is missing or malformed, or no asset names
            are listed.
    """
    if not isinstance(data, dict):
        raise MetadataError("release metadata must be a JSON object")

    tag = data.get("tag")
    if not isinstance(tag, str) or not tag.strip():
        raise MetadataError("could not parse version tag from metadata")
    if not is_valid_tag(tag.strip()):
        raise MetadataError(f"invalid version tag in metadata: {tag!r}")

    files = data.get("files")
    names = set()
    if isinstance(files, list):
        for entry in files:
            name = entry.get("name") if isinstance(entry, dict) else None
            if isinstance(name, str) and name.strip():
                names.add(name.strip())
            else:
                LOGGER.debug(f"Skipping malformed metadata entry: {entry!r}")

    if not names:
        raise MetadataError(f"release metadata for {tag.strip()} lists no assets")

    return ReleaseTarget(tag=tag.strip(), known_asset_names=frozenset(names))


def fetch_latest_release(cdn_base: str, fetcher: Fetcher) -> ReleaseTarget:
    """Fetch and parse the latest release metadata (one request)."""
    url = latest_metadata_url(cdn_base)
    LOGGER.info("Fetching latest release metadata...")
    body = fetcher.get_bytes(url)
    try:
        data: Dict[str, Any] = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MetadataError(f"invalid release metadata from {url}: {e}") from e
    return parse_latest_metadata(data)


def resolve_release(
    cdn_base: str,
    tag: Optional[str],
    fetcher: Fetcher,
) -> ReleaseTarget:
    """Resolve the release to install from.

    Args:
        cdn_base: Base URL of the release CDN.
        tag: Pinned release tag, or None for the latest release.
        fetcher: Network fetcher.

    Returns:
        Resolved release target.
    """
    if tag:
        LOGGER.info(f"Using pinned release: {tag}")
        return ReleaseTarget(tag=tag)

    target = fetch_latest_release(cdn_base, fetcher)
    LOGGER.info(f"Latest version: {target.tag}")
    return target


def make_exists_check(
    target: ReleaseTarget,
    cdn_base: str,
    fetcher: Fetcher,
) -> Callable[[str], bool]:
    """Build the asset existence check for ``target``.

    Latest mode answers from the metadata without network calls; pinned mode
    probes ``{cdn_base}/{tag}/{name}``.
    """
    if not target.is_pinned:
        known = target.known_asset_names or frozenset()
        return lambda name: name in known

    def probe(name: str) -> bool:
        return fetcher.exists(asset_url(cdn_base, target.tag, name))

    return probe

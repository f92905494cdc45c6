"""
VS Code Marketplace catalog client.

The gallery's extensionquery endpoint returns version entries ordered newest
first. Stable and pre-release builds are mixed, so callers either pick the
newest stable entry (version tracking) or look up one exact
(version, targetPlatform) entry to obtain its VSIX download URL (mirroring).
"""

from __future__ import annotations

import logging
from typing import Any

from .common import DEFAULT_TIMEOUT, http_post_json
from .errors import NotFoundError, ParseError

logger = logging.getLogger(__name__)

GALLERY_URL = "https://marketplace.visualstudio.com/_apis/public/gallery/extensionquery"
ACCEPT_HEADER = "application/json;api-version=7.2-preview.1"

# ExtensionQueryFilterType.ExtensionName
FILTER_EXTENSION_NAME = 7

# ExtensionQueryFlags
FLAG_INCLUDE_VERSIONS = 0x1
FLAG_INCLUDE_FILES = 0x2
FLAG_INCLUDE_VERSION_PROPERTIES = 0x10

PRERELEASE_PROPERTY = "Microsoft.VisualStudio.Code.PreRelease"
VSIX_ASSET_TYPE = "Microsoft.VisualStudio.Services.VSIXPackage"

# Trailing numeric segments longer than this are build timestamps
MAX_STABLE_BUILD_DIGITS = 4


def query_versions(extension_id: str, flags: int, timeout: int = DEFAULT_TIMEOUT) -> list[dict[str, Any]]:
    """Query the gallery for an extension's version entries.

    Args:
        extension_id: Publisher-qualified extension id (e.g. "ms-python.python")
        flags: ExtensionQueryFlags bitmask
        timeout: Request timeout in seconds

    Returns:
        Version entries, newest first

    Raises:
        NotFoundError: If the gallery does not know the extension
        ParseError: If the response does not have the expected shape
        FetchError, ApiError: On transport or status failures
    """
    payload = {
        "filters": [{
            "criteria": [{"filterType": FILTER_EXTENSION_NAME, "value": extension_id}],
            "pageNumber": 1,
            "pageSize": 1,
        }],
        "flags": flags,
    }
    data = http_post_json(
        GALLERY_URL,
        payload,
        timeout=timeout,
        headers={"Accept": ACCEPT_HEADER},
        source="VS Code Marketplace",
    )

    if not isinstance(data, dict):
        raise ParseError("VS Code Marketplace returned an unexpected response")

    try:
        results = data.get("results") or []
        extensions = results[0].get("extensions") or [] if results else []
        versions = extensions[0].get("versions") or [] if extensions else None
    except (AttributeError, IndexError, KeyError, TypeError) as e:
        raise ParseError(f"VS Code Marketplace returned an unexpected response: {e!r}") from e

    if versions is None:
        raise NotFoundError(f"Extension not found: {extension_id}")
    if not isinstance(versions, list):
        raise ParseError("VS Code Marketplace returned an unexpected response")

    versions = [entry for entry in versions if isinstance(entry, dict)]
    logger.debug(f"Marketplace {extension_id}: {len(versions)} version entries")
    return versions


def is_prerelease(entry: dict[str, Any]) -> bool:
    """Classify a marketplace version entry as pre-release.

    An explicit PreRelease property wins. Otherwise a purely numeric final
    segment longer than four digits is taken as a build timestamp
    (e.g. "1.17.10291017").
    """
    for prop in entry.get("properties") or []:
        if prop.get("key") == PRERELEASE_PROPERTY and str(prop.get("value")).lower() == "true":
            return True

    last_segment = str(entry.get("version", "")).split(".")[-1]
    return last_segment.isdigit() and len(last_segment) > MAX_STABLE_BUILD_DIGITS


def select_stable_version(versions: list[dict[str, Any]], extension_id: str = "") -> str:
    """Return the newest stable version, or the first entry when none is stable."""
    if not versions:
        raise NotFoundError(f"No versions published for extension: {extension_id}")

    for entry in versions:
        if not is_prerelease(entry):
            return entry["version"]

    fallback = versions[0]["version"]
    logger.warning(f"Marketplace {extension_id}: no stable version, using {fallback}")
    return fallback


def find_vsix_url(
    extension_id: str,
    version: str,
    target_platform: str | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> str:
    """Resolve the VSIX download URL for one exact version and platform.

    Universal extensions publish entries without a targetPlatform; those are
    matched when no platform is requested.

    Raises:
        NotFoundError: If no entry matches or it carries no VSIX asset
    """
    versions = query_versions(
        extension_id,
        FLAG_INCLUDE_VERSIONS | FLAG_INCLUDE_FILES,
        timeout=timeout,
    )

    match = None
    for entry in versions:
        if entry.get("version") != version:
            continue
        platform = entry.get("targetPlatform")
        if (target_platform and platform == target_platform) or (not target_platform and not platform):
            match = entry
            break

    if match is None:
        platform_info = f" for {target_platform}" if target_platform else " (universal)"
        raise NotFoundError(f"Version {version}{platform_info} not found in marketplace for {extension_id}")

    for asset in match.get("files") or []:
        if asset.get("assetType") == VSIX_ASSET_TYPE and asset.get("source"):
            return asset["source"]

    raise NotFoundError(f"VSIX download URL not found in marketplace response for {extension_id}")

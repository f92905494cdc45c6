"""
Manifest generation from tracked versions and download configuration.

Template placeholders:

- ``{{VERSION}}``      the resolved version, verbatim
- ``{{VERSION_BASE}}`` leading major.minor.patch of the version
- ``{{MIRROR_URL}}``   the tool's stored mirror URL; tools without one are
                       left out of the manifest
- ``{{NEXUS_URL}}``    kept literally for the downstream proxy to fill in
"""

from __future__ import annotations

import datetime
import json
import os
import re
from pathlib import Path
from typing import Any

from .downloads import DownloadConfig, DownloadConfigNpm, DownloadConfigUrl
from .errors import StoreError

VERSION_BASE_PATTERN = re.compile(r"^(\d+\.\d+\.\d+)")

MIRROR_URL_PLACEHOLDER = "{{MIRROR_URL}}"
NEXUS_URL_PLACEHOLDER = "{{NEXUS_URL}}"


def get_version_base(version: str) -> str:
    """Leading "N.N.N" of a version, e.g. "2.52.0" from "2.52.0.windows.1"."""
    match = VERSION_BASE_PATTERN.match(version)
    return match.group(1) if match else version


def apply_version_placeholders(template: str, version: str) -> str:
    return (
        template
        .replace("{{VERSION}}", version)
        .replace("{{VERSION_BASE}}", get_version_base(version))
    )


def _utc_now() -> str:
    return (
        datetime.datetime.now(datetime.timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def _tool_entry(
    name: str,
    version: str,
    config: DownloadConfig,
    mirror_url: str | None,
    published_at: str,
) -> dict[str, Any] | None:
    if isinstance(config, DownloadConfigNpm):
        return {
            "name": name,
            "displayName": config.display_name,
            "version": version,
            "publishedAt": published_at,
            "type": "npm",
            "package": config.package,
        }

    if isinstance(config, DownloadConfigUrl):
        template = config.download_url
        if MIRROR_URL_PLACEHOLDER in template:
            if not mirror_url:
                return None
            template = template.replace(MIRROR_URL_PLACEHOLDER, mirror_url)
        return {
            "name": name,
            "displayName": config.display_name,
            "version": version,
            "publishedAt": published_at,
            "downloadUrl": f"{NEXUS_URL_PLACEHOLDER}/" + apply_version_placeholders(template, version),
            "filename": apply_version_placeholders(config.filename, version),
        }

    raise TypeError(f"Unknown download config variant: {type(config).__name__}")


def generate_versions_json(
    versions: dict[str, str],
    downloads: dict[str, DownloadConfig],
    mirror_urls: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build the manifest consumed by the companion CLI.

    Args:
        versions: Tool name to tracked version
        downloads: Tool name to download configuration
        mirror_urls: Tool name to stored mirror URL

    Returns:
        ``{"generatedAt": ..., "tools": [...]}``; tools without download
        configuration, or needing a mirror URL that is not known yet, are skipped
    """
    mirror_urls = mirror_urls or {}
    now = _utc_now()
    tools = []

    for name, version in versions.items():
        config = downloads.get(name)
        if config is None:
            continue
        entry = _tool_entry(name, version, config, mirror_urls.get(name), now)
        if entry is not None:
            tools.append(entry)

    return {"generatedAt": now, "tools": tools}


def write_versions_json(manifest: dict[str, Any], path: Path) -> None:
    """Write a manifest atomically.

    Raises:
        StoreError: If the file cannot be written
    """
    temp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        temp_path.replace(path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise StoreError(f"Failed to write manifest {path}: {e}") from e

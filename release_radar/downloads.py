"""
Download configuration: how a tracked tool is obtained by consumers.

Each entry is one of two variants, discriminated by the ``type`` field:

- ``DownloadConfigUrl`` (default): a direct download URL template plus a
  filename template, optionally with a ``mirror`` block.
- ``DownloadConfigNpm`` (``type: "npm"``): the tool is installed from a
  package registry; there is nothing to download or mirror.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .errors import ConfigError

MARKETPLACE_SOURCE = "marketplace-api"


@dataclass(frozen=True)
class MirrorConfig:
    """
    Where the mirror fetches a tool's binary from.

    Attributes:
        source_url: Direct URL, or "marketplace-api" to negotiate via the catalog
        extension_id: Marketplace extension identifier (marketplace source only)
        target_platform: Marketplace platform, None for universal packages
    """
    source_url: str
    extension_id: str | None = None
    target_platform: str | None = None

    def __post_init__(self):
        if not self.source_url:
            raise ConfigError("mirror.sourceUrl must not be empty")
        if self.uses_marketplace and not self.extension_id:
            raise ConfigError('extensionId is required when sourceUrl is "marketplace-api"')

    @property
    def uses_marketplace(self) -> bool:
        return self.source_url == MARKETPLACE_SOURCE

    @staticmethod
    def from_dict(data: dict[str, Any]) -> MirrorConfig:
        return MirrorConfig(
            source_url=data.get("source_url", data.get("sourceUrl", "")),
            extension_id=data.get("extension_id", data.get("extensionId")),
            target_platform=data.get("target_platform", data.get("targetPlatform")),
        )


@dataclass(frozen=True)
class DownloadConfigUrl:
    """Direct-download tool entry."""
    display_name: str
    download_url: str
    filename: str
    mirror: MirrorConfig | None = None


@dataclass(frozen=True)
class DownloadConfigNpm:
    """Registry-installed tool entry."""
    display_name: str
    package: str


DownloadConfig = Union[DownloadConfigUrl, DownloadConfigNpm]


def parse_download_config(name: str, data: dict[str, Any]) -> DownloadConfig:
    """Parse one download configuration entry.

    Args:
        name: Tool name the entry belongs to (for error messages)
        data: Raw entry

    Returns:
        The matching DownloadConfig variant

    Raises:
        ConfigError: On unknown type or missing fields
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Download config for {name} must be a mapping")

    kind = data.get("type", "download")
    display_name = data.get("display_name", data.get("displayName", name))

    if kind == "npm":
        package = data.get("package")
        if not package:
            raise ConfigError(f"Download config for {name}: npm entry needs a package")
        return DownloadConfigNpm(display_name=display_name, package=package)

    if kind == "download":
        download_url = data.get("download_url", data.get("downloadUrl"))
        filename = data.get("filename")
        if not download_url or not filename:
            raise ConfigError(f"Download config for {name}: downloadUrl and filename are required")
        mirror_data = data.get("mirror")
        mirror = MirrorConfig.from_dict(mirror_data) if mirror_data else None
        return DownloadConfigUrl(
            display_name=display_name,
            download_url=download_url,
            filename=filename,
            mirror=mirror,
        )

    raise ConfigError(f"Download config for {name}: unknown type {kind!r}")


def parse_downloads(data: dict[str, Any]) -> dict[str, DownloadConfig]:
    """Parse a mapping of tool name to download configuration entry."""
    if not isinstance(data, dict):
        raise ConfigError("Download configuration must be a mapping of tool name to entry")
    return {name: parse_download_config(name, entry) for name, entry in data.items()}


def mirror_config_for(config: DownloadConfig | None) -> MirrorConfig | None:
    """Return the mirror block of a download entry, None if it never mirrors."""
    if config is None:
        return None
    if isinstance(config, DownloadConfigNpm):
        return None
    if isinstance(config, DownloadConfigUrl):
        return config.mirror
    raise TypeError(f"Unknown download config variant: {type(config).__name__}")

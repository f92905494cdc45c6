"""
Configuration file parsing and management.

A configuration file (YAML or JSON, chosen by extension) lists the tracked
tools, their download configuration and the mirror settings. The download
configuration may be inlined or kept in a separate file referenced by path.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .common import vlog
from .downloads import DownloadConfig, parse_downloads
from .errors import ConfigError
from .tools import ToolDescriptor, parse_tools


# Configuration file locations (in priority order)
CONFIG_LOCATIONS = [
    "release-radar.yml",
    "release-radar.yaml",
    "config/tools.json",
    os.path.expanduser("~/.config/release-radar/config.yml"),
    os.path.expanduser("~/.config/release-radar/config.yaml"),
]

DEFAULT_DATA_DIR = os.path.expanduser("~/.release-radar")


def get_data_dir() -> Path:
    """Directory holding versions.json and generated manifests."""
    return Path(os.environ.get("RELEASE_RADAR_DATA_DIR", DEFAULT_DATA_DIR))


@dataclass(frozen=True)
class MirrorSettings:
    """
    Settings for the asset mirror.

    Attributes:
        repo: GitHub repository ("owner/name") receiving mirrored releases
        batch_delay_seconds: Pause between consecutive batch downloads
        download_timeout: Timeout for one artifact download in seconds
        publish_timeout: Timeout for one gh release operation in seconds
        query_timeout: Timeout for marketplace queries in seconds
    """
    repo: str = "lvntbkdmr/apps"
    batch_delay_seconds: float = 2.0
    download_timeout: int = 300
    publish_timeout: int = 300
    query_timeout: int = 30

    def __post_init__(self):
        """Validate mirror settings after initialization."""
        if "/" not in self.repo:
            raise ConfigError(f"Invalid mirror repo: {self.repo}. Expected 'owner/name'")
        if self.batch_delay_seconds < 0:
            raise ConfigError(f"Invalid batch_delay_seconds: {self.batch_delay_seconds}. Must be >= 0")
        for name in ("download_timeout", "publish_timeout", "query_timeout"):
            value = getattr(self, name)
            if value < 1 or value > 3600:
                raise ConfigError(f"Invalid {name}: {value}. Must be between 1 and 3600")

    @staticmethod
    def from_dict(data: dict[str, Any]) -> MirrorSettings:
        """Create MirrorSettings from dictionary."""
        return MirrorSettings(
            repo=data.get("repo", "lvntbkdmr/apps"),
            batch_delay_seconds=data.get("batch_delay_seconds", 2.0),
            download_timeout=data.get("download_timeout", 300),
            publish_timeout=data.get("publish_timeout", 300),
            query_timeout=data.get("query_timeout", 30),
        )


@dataclass(frozen=True)
class Config:
    """
    Complete release-radar configuration.

    Attributes:
        check_interval_hours: Interval the scheduler uses between checks
        tools: Tracked tools in check order
        downloads: Download configuration keyed by tool name
        mirror: Asset mirror settings
        fetch_timeout: Timeout for version resolution requests in seconds
        source: Path to the configuration file that was loaded
    """
    check_interval_hours: int = 6
    tools: tuple[ToolDescriptor, ...] = ()
    downloads: dict[str, DownloadConfig] = field(default_factory=dict)
    mirror: MirrorSettings = field(default_factory=MirrorSettings)
    fetch_timeout: int = 15
    source: str = ""

    def __post_init__(self):
        """Validate config after initialization."""
        if self.check_interval_hours < 1 or self.check_interval_hours > 168:
            raise ConfigError(
                f"Invalid checkIntervalHours: {self.check_interval_hours}. Must be between 1 and 168"
            )
        if self.fetch_timeout < 1 or self.fetch_timeout > 120:
            raise ConfigError(f"Invalid fetch_timeout: {self.fetch_timeout}. Must be between 1 and 120")

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "") -> Config:
        """Create Config from dictionary."""
        downloads_data = data.get("downloads", {})
        if isinstance(downloads_data, str):
            base = Path(source).parent if source else Path.cwd()
            downloads_data = _load_file(str(base / downloads_data))

        return Config(
            check_interval_hours=data.get("check_interval_hours", data.get("checkIntervalHours", 6)),
            tools=parse_tools(data.get("tools", [])),
            downloads=parse_downloads(downloads_data or {}),
            mirror=MirrorSettings.from_dict(data.get("mirror", {})),
            fetch_timeout=data.get("fetch_timeout", 15),
            source=source,
        )

    def get_tool(self, name: str) -> ToolDescriptor | None:
        """Look up a tracked tool by name."""
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None


def _load_file(file_path: str) -> dict[str, Any]:
    """
    Load a YAML or JSON mapping from disk.

    Raises:
        ConfigError: If the file is missing, unparseable or not a mapping
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            if file_path.endswith(".json"):
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Could not read config {file_path}: {e}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Invalid config file {file_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {file_path} must contain a mapping")
    return data


def load_config_file(file_path: str, verbose: bool = False) -> Config:
    """
    Load configuration from a single file.

    Args:
        file_path: Path to configuration file
        verbose: Enable verbose logging

    Returns:
        Config object

    Raises:
        ConfigError: If the file cannot be loaded or fails validation
    """
    vlog(f"Loading config from: {file_path}", verbose)
    data = _load_file(file_path)
    try:
        config = Config.from_dict(data, source=file_path)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Config validation failed for {file_path}: {e}") from e
    vlog(f"Loaded {len(config.tools)} tools from {file_path}", verbose)
    return config


def load_config(custom_path: str | None = None, verbose: bool = False) -> Config:
    """
    Load configuration from the first available location.

    Precedence: custom path, RELEASE_RADAR_CONFIG, then CONFIG_LOCATIONS.

    Raises:
        ConfigError: If no configuration file exists or it is invalid
    """
    candidates = []
    if custom_path:
        candidates.append(custom_path)
    env_path = os.environ.get("RELEASE_RADAR_CONFIG")
    if env_path:
        candidates.append(env_path)

    if candidates:
        return load_config_file(candidates[0], verbose)

    for location in CONFIG_LOCATIONS:
        if os.path.exists(location):
            return load_config_file(location, verbose)

    raise ConfigError(
        "No configuration file found. Tried: " + ", ".join(CONFIG_LOCATIONS)
    )

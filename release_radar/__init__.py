"""
Release Radar - upstream release tracking and asset mirroring.

Core Modules:
- Resolution: per-source version fetchers and the marketplace client
- State: atomic JSON version store
- Detection: check passes that classify changes and isolate failures
- Mirroring: idempotent single and batched re-publication of binaries
- Output: notifier interface, terminal rendering, versions manifest
"""

__version__ = "1.0.0"

from .errors import (
    ReleaseRadarError,
    ConfigError,
    StoreError,
    ResolutionError,
    FetchError,
    ApiError,
    RateLimitError,
    NotFoundError,
    ParseError,
    MirrorError,
    MirrorDownloadError,
    MirrorPublishError,
    CheckInProgressError,
)
from .tools import ToolDescriptor, parse_tools
from .downloads import (
    MirrorConfig,
    DownloadConfig,
    DownloadConfigUrl,
    DownloadConfigNpm,
    parse_download_config,
    parse_downloads,
)
from .config import Config, MirrorSettings, load_config, load_config_file
from .fetchers import resolve_version, CUSTOM_FETCHERS
from .marketplace import is_prerelease, select_stable_version, find_vsix_url
from .storage import Storage, StorageState
from .asset_mirror import AssetMirror, MirrorRequest, MirrorOutcome, BatchResult, build_tag
from .notifier import Notifier, ConsoleNotifier, UpdateInfo, FailureInfo
from .checker import Checker, CheckResult
from .versions_generator import get_version_base, generate_versions_json
from .logging_config import setup_logging, get_logger

__all__ = [
    "ReleaseRadarError",
    "ConfigError",
    "StoreError",
    "ResolutionError",
    "FetchError",
    "ApiError",
    "RateLimitError",
    "NotFoundError",
    "ParseError",
    "MirrorError",
    "MirrorDownloadError",
    "MirrorPublishError",
    "CheckInProgressError",
    "ToolDescriptor",
    "parse_tools",
    "MirrorConfig",
    "DownloadConfig",
    "DownloadConfigUrl",
    "DownloadConfigNpm",
    "parse_download_config",
    "parse_downloads",
    "Config",
    "MirrorSettings",
    "load_config",
    "load_config_file",
    "resolve_version",
    "CUSTOM_FETCHERS",
    "is_prerelease",
    "select_stable_version",
    "find_vsix_url",
    "Storage",
    "StorageState",
    "AssetMirror",
    "MirrorRequest",
    "MirrorOutcome",
    "BatchResult",
    "build_tag",
    "Notifier",
    "ConsoleNotifier",
    "UpdateInfo",
    "FailureInfo",
    "Checker",
    "CheckResult",
    "get_version_base",
    "generate_versions_json",
    "setup_logging",
    "get_logger",
]

"""
Version resolution from upstream sources.

``resolve_version`` dispatches a ToolDescriptor to the fetcher for its source
kind. Every fetcher returns the version string or raises a ResolutionError
subclass; none of them swallow failures.
"""

import logging
import re
from typing import Callable

from . import marketplace
from .common import DEFAULT_TIMEOUT, decode_json, github_headers, http_get, http_get_json
from .errors import ApiError, FetchError, NotFoundError, ParseError, ResolutionError
from .tools import CUSTOM, GITHUB, NPM, VSCODE_MARKETPLACE, ToolDescriptor

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
NPM_REGISTRY = "https://registry.npmjs.org"

VSCODE_RELEASES_URL = "https://update.code.visualstudio.com/api/releases/stable"
CLAUDE_CLI_FALLBACK_URL = f"{GITHUB_API}/repos/anthropics/claude-code/releases/latest"
CMAKE_JSON_URL = "https://cmake.org/files/LatestRelease/cmake-latest-files-v1.json"
CMAKE_LISTING_URL = "https://cmake.org/files/LatestRelease/"

CMAKE_VERSION_PATTERN = re.compile(r"cmake-(\d+\.\d+\.\d+)")


def strip_version_prefix(tag: str) -> str:
    """Strip a single leading "v" from a release tag."""
    tag = tag.strip()
    return tag[1:] if tag.startswith("v") else tag


def fetch_github_release(repo: str, timeout: int = DEFAULT_TIMEOUT) -> str:
    """Latest stable release of a GitHub repository.

    The releases/latest endpoint never returns drafts or pre-releases.

    Args:
        repo: Repository in "owner/name" form
        timeout: Request timeout in seconds

    Returns:
        Release tag without its "v" prefix
    """
    url = f"{GITHUB_API}/repos/{repo}/releases/latest"
    data = http_get_json(url, timeout=timeout, headers=github_headers(), source="GitHub API")

    tag = data.get("tag_name") if isinstance(data, dict) else None
    if not tag:
        raise ParseError(f"GitHub API response for {repo} has no tag_name")

    version = strip_version_prefix(tag)
    logger.debug(f"GitHub {repo}: {version}")
    return version


def fetch_npm_version(package: str, timeout: int = DEFAULT_TIMEOUT) -> str:
    """Version of the "latest" dist-tag of an npm package."""
    data = http_get_json(f"{NPM_REGISTRY}/{package}/latest", timeout=timeout, source="npm registry")

    version = data.get("version") if isinstance(data, dict) else None
    if not version:
        raise ParseError(f"npm registry response for {package} has no version")

    logger.debug(f"npm {package}: {version}")
    return version


def fetch_marketplace_version(extension_id: str, timeout: int = DEFAULT_TIMEOUT) -> str:
    """Newest stable version of a VS Code Marketplace extension."""
    versions = marketplace.query_versions(
        extension_id,
        marketplace.FLAG_INCLUDE_VERSIONS | marketplace.FLAG_INCLUDE_VERSION_PROPERTIES,
        timeout=timeout,
    )
    version = marketplace.select_stable_version(versions, extension_id)
    logger.debug(f"Marketplace {extension_id}: {version}")
    return version


# Custom fetchers


def fetch_vscode_version(tool: ToolDescriptor, timeout: int = DEFAULT_TIMEOUT) -> str:
    """First element of the VS Code stable releases array."""
    releases = http_get_json(tool.url or VSCODE_RELEASES_URL, timeout=timeout, source="VSCode API")
    if not isinstance(releases, list) or not releases:
        raise NotFoundError("VSCode API returned no releases")
    return str(releases[0])


def fetch_claude_cli_version(tool: ToolDescriptor, timeout: int = DEFAULT_TIMEOUT) -> str:
    """Plain-text version from the configured url, GitHub release as fallback.

    Without a configured url only the GitHub release is consulted.
    """
    if tool.url:
        try:
            body = http_get(tool.url, timeout=timeout, source="Claude Code CLI")
            version = body.decode("utf-8", "ignore").strip()
            if version:
                return version
            logger.debug("Claude Code CLI primary endpoint returned an empty body")
        except (FetchError, ApiError) as e:
            logger.debug(f"Claude Code CLI primary endpoint failed: {e}")

    url = tool.fallback_url or CLAUDE_CLI_FALLBACK_URL
    data = http_get_json(url, timeout=timeout, headers=github_headers(), source="Claude Code CLI fetch")
    tag = data.get("tag_name") if isinstance(data, dict) else None
    if not tag:
        raise ParseError("Claude Code CLI fallback response has no tag_name")
    return strip_version_prefix(tag)


def fetch_cmake_version(tool: ToolDescriptor, timeout: int = DEFAULT_TIMEOUT) -> str:
    """CMake version from the JSON manifest, directory listing as fallback.

    The listing is ordered oldest to newest, so the last match wins.
    """
    try:
        data = decode_json(
            http_get(tool.url or CMAKE_JSON_URL, timeout=timeout, source="CMake"),
            source="CMake",
        )
        version = data["version"]["string"]
        if version:
            return version
    except (FetchError, ApiError, ParseError, KeyError, TypeError) as e:
        logger.debug(f"CMake JSON endpoint failed, using directory listing: {e}")

    html = http_get(tool.fallback_url or CMAKE_LISTING_URL, timeout=timeout, source="CMake fetch")
    versions = CMAKE_VERSION_PATTERN.findall(html.decode("utf-8", "ignore"))
    if not versions:
        raise NotFoundError("Could not parse CMake version from directory listing")
    return versions[-1]


CustomFetcher = Callable[[ToolDescriptor, int], str]

CUSTOM_FETCHERS: dict[str, CustomFetcher] = {
    "vscode": fetch_vscode_version,
    "claude-cli": fetch_claude_cli_version,
    "cmake": fetch_cmake_version,
}


def resolve_version(tool: ToolDescriptor, timeout: int = DEFAULT_TIMEOUT) -> str:
    """Resolve the current authoritative version of a tool.

    Args:
        tool: Tool descriptor
        timeout: Per-request timeout in seconds

    Returns:
        Version string

    Raises:
        ResolutionError: Or one of its subclasses
    """
    if tool.source_kind == GITHUB:
        return fetch_github_release(tool.repo, timeout=timeout)
    if tool.source_kind == NPM:
        return fetch_npm_version(tool.package, timeout=timeout)
    if tool.source_kind == VSCODE_MARKETPLACE:
        return fetch_marketplace_version(tool.extension_id, timeout=timeout)
    if tool.source_kind == CUSTOM:
        fetcher = CUSTOM_FETCHERS.get(tool.custom_fetcher)
        if fetcher is None:
            raise ResolutionError(f"Unknown custom fetcher: {tool.custom_fetcher}")
        return fetcher(tool, timeout)
    raise ResolutionError(f"Unknown tool type: {tool.source_kind}")

"""
Tracked tool definitions.

A ToolDescriptor names a tool and tells the fetchers where its current version
lives. Descriptors are immutable for the duration of a run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .errors import ConfigError

# Source kinds
GITHUB = "github"
NPM = "npm"
VSCODE_MARKETPLACE = "vscode-marketplace"
CUSTOM = "custom"

SOURCE_KINDS = (GITHUB, NPM, VSCODE_MARKETPLACE, CUSTOM)

# Required parameter per source kind
_REQUIRED_PARAM = {
    GITHUB: "repo",
    NPM: "package",
    VSCODE_MARKETPLACE: "extension_id",
    CUSTOM: "custom_fetcher",
}


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool definition with version source metadata."""
    name: str
    source_kind: str  # "github" | "npm" | "vscode-marketplace" | "custom"
    repo: str | None = None
    package: str | None = None
    extension_id: str | None = None
    custom_fetcher: str | None = None  # "vscode" | "claude-cli" | "cmake"
    url: str | None = None
    fallback_url: str | None = None

    def __post_init__(self):
        """Validate descriptor after initialization."""
        if not self.name:
            raise ConfigError("Tool name must not be empty")
        if self.source_kind not in SOURCE_KINDS:
            raise ConfigError(f"Unknown tool type: {self.source_kind}")
        param = _REQUIRED_PARAM[self.source_kind]
        if not getattr(self, param):
            raise ConfigError(f"Missing {param} for {self.name}")

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ToolDescriptor:
        """Create ToolDescriptor from a configuration entry.

        Accepts both snake_case and the camelCase keys of tools.json.
        """
        return ToolDescriptor(
            name=data.get("name", ""),
            source_kind=data.get("type", ""),
            repo=data.get("repo"),
            package=data.get("package"),
            extension_id=data.get("extension_id", data.get("extensionId")),
            custom_fetcher=data.get("custom_fetcher", data.get("customFetcher")),
            url=data.get("url"),
            fallback_url=data.get("fallback_url", data.get("fallbackUrl")),
        )


def parse_tools(entries: Iterable[dict[str, Any]]) -> tuple[ToolDescriptor, ...]:
    """Parse tool entries, rejecting duplicate names.

    Args:
        entries: Raw tool entries from configuration

    Returns:
        Descriptors in configured order

    Raises:
        ConfigError: If an entry is invalid or a name repeats
    """
    tools: list[ToolDescriptor] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            raise ConfigError(f"Tool entry must be a mapping, got {type(entry).__name__}")
        tool = ToolDescriptor.from_dict(entry)
        if tool.name in seen:
            raise ConfigError(f"Duplicate tool name: {tool.name}")
        seen.add(tool.name)
        tools.append(tool)
    return tuple(tools)

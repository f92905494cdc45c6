"""
Version store: last-known versions and mirror URLs per tool.

The state lives in a single JSON file::

    {"lastCheck": "...", "versions": {"Ninja": "1.12.0"}, "mirrorUrls": {...}}

Every mutation rewrites the file atomically (temp file then rename). Read and
write failures raise StoreError; a run must not continue on a state it cannot
trust.
"""

from __future__ import annotations

import datetime
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import StoreError

logger = logging.getLogger(__name__)

DEFAULT_STORE_FILE = "versions.json"


def _utc_now() -> str:
    return (
        datetime.datetime.now(datetime.timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


@dataclass
class StorageState:
    """In-memory form of the version store file."""

    last_check: str | None = None
    versions: dict[str, str] = field(default_factory=dict)
    mirror_urls: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "lastCheck": self.last_check,
            "versions": dict(self.versions),
        }
        if self.mirror_urls:
            data["mirrorUrls"] = dict(self.mirror_urls)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StorageState":
        """Create from dictionary."""
        versions = data.get("versions") or {}
        mirror_urls = data.get("mirrorUrls") or {}
        if not isinstance(versions, dict) or not isinstance(mirror_urls, dict):
            raise StoreError("Version store has malformed versions or mirrorUrls")
        return cls(
            last_check=data.get("lastCheck"),
            versions={str(k): str(v) for k, v in versions.items()},
            mirror_urls={str(k): str(v) for k, v in mirror_urls.items()},
        )


class Storage:
    """Durable mapping of tool name to version and mirror URL."""

    def __init__(self, file_path: str | Path):
        self.file_path = Path(file_path)
        self._state: StorageState | None = None

    def _ensure_loaded(self) -> StorageState:
        if self._state is None:
            self._state = self.load()
        return self._state

    def load(self) -> StorageState:
        """(Re)load state from disk; a missing file is an empty store.

        Raises:
            StoreError: If the file cannot be read or parsed
        """
        if not self.file_path.exists():
            self._state = StorageState()
            return self._state

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to read version store {self.file_path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreError(f"Version store {self.file_path} does not contain an object")

        self._state = StorageState.from_dict(data)
        logger.debug(f"Loaded {len(self._state.versions)} versions from {self.file_path}")
        return self._state

    def save(self, state: StorageState) -> None:
        """Write state atomically.

        Raises:
            StoreError: If the file cannot be written
        """
        temp_path = self.file_path.with_name(self.file_path.name + ".tmp")
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(state.to_dict(), f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            temp_path.replace(self.file_path)
        except OSError as e:
            raise StoreError(f"Failed to write version store {self.file_path}: {e}") from e
        self._state = state

    def get_version(self, tool_name: str) -> str | None:
        return self._ensure_loaded().versions.get(tool_name)

    def set_version(self, tool_name: str, version: str) -> None:
        state = self._ensure_loaded()
        state.versions[tool_name] = version
        state.last_check = _utc_now()
        self.save(state)

    def get_mirror_url(self, tool_name: str) -> str | None:
        return self._ensure_loaded().mirror_urls.get(tool_name)

    def set_mirror_url(self, tool_name: str, url: str) -> None:
        state = self._ensure_loaded()
        state.mirror_urls[tool_name] = url
        self.save(state)

    def delete_version(self, tool_name: str) -> bool:
        """Forget a tool's version and mirror URL.

        Returns:
            True if the tool had a version record
        """
        state = self._ensure_loaded()
        if tool_name not in state.versions:
            return False
        del state.versions[tool_name]
        state.mirror_urls.pop(tool_name, None)
        self.save(state)
        return True

    def all_versions(self) -> dict[str, str]:
        return dict(self._ensure_loaded().versions)

    def all_mirror_urls(self) -> dict[str, str]:
        return dict(self._ensure_loaded().mirror_urls)

    @property
    def last_check(self) -> str | None:
        return self._ensure_loaded().last_check

"""
Change detection over the tracked tool set.

One ``check_all`` pass resolves every tool in configured order, compares the
result with the version store and classifies the tool:

- first seen: version stored, not reported
- changed:    version stored, reported, mirror request queued if configured
- unchanged:  nothing written
- failed:     reported as a failure; the pass continues with the next tool

Queued mirror requests go out as a single batch after the pass. Mirror
failures are logged and never undo a reported update.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .asset_mirror import AssetMirror, BatchResult, MirrorRequest
from .common import DEFAULT_TIMEOUT
from .downloads import DownloadConfig, DownloadConfigUrl, mirror_config_for
from .errors import CheckInProgressError, ResolutionError
from .fetchers import resolve_version
from .notifier import FailureInfo, Notifier, UpdateInfo
from .storage import Storage
from .tools import ToolDescriptor

logger = logging.getLogger(__name__)

Resolver = Callable[[ToolDescriptor], str]


@dataclass(frozen=True)
class CheckResult:
    """
    Aggregate report of one check pass.

    Attributes:
        updates: Tools whose version changed
        failures: Tools whose version could not be resolved
        mirror: Batch mirror outcome, None when nothing was mirrored
    """
    updates: tuple[UpdateInfo, ...] = ()
    failures: tuple[FailureInfo, ...] = ()
    mirror: BatchResult | None = None

    @property
    def has_updates(self) -> bool:
        return len(self.updates) > 0

    @property
    def update_count(self) -> int:
        return len(self.updates)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "updates": [u.to_dict() for u in self.updates],
            "failures": [f.to_dict() for f in self.failures],
            "hasUpdates": self.has_updates,
            "updateCount": self.update_count,
            "mirror": {
                "tag": self.mirror.tag,
                "results": {name: r.to_dict() for name, r in self.mirror.results.items()},
            } if self.mirror else None,
        }


@dataclass
class Checker:
    """
    Drives check passes for a fixed tool list.

    One instance owns its run guard: overlapping check_all calls on the same
    instance raise CheckInProgressError. Separate processes are expected to be
    serialized by the scheduler that triggers them.
    """
    tools: Sequence[ToolDescriptor]
    storage: Storage
    notifier: Notifier
    downloads: dict[str, DownloadConfig] = field(default_factory=dict)
    mirror: AssetMirror | None = None
    resolver: Resolver | None = None
    timeout: int = DEFAULT_TIMEOUT
    _running: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def _resolve(self, tool: ToolDescriptor) -> str:
        if self.resolver is not None:
            return self.resolver(tool)
        return resolve_version(tool, timeout=self.timeout)

    def _mirror_request(self, tool_name: str, version: str) -> MirrorRequest | None:
        config = self.downloads.get(tool_name)
        mirror_config = mirror_config_for(config)
        if mirror_config is None or not isinstance(config, DownloadConfigUrl):
            return None
        return MirrorRequest(tool_name, version, mirror_config, config.filename)

    def check_all(self) -> CheckResult:
        """Run one full pass and report it.

        Raises:
            CheckInProgressError: If this checker is already running
            StoreError: If the version store cannot be read or written
        """
        if not self._running.acquire(blocking=False):
            raise CheckInProgressError("A check is already in progress")
        try:
            return self._check_all()
        finally:
            self._running.release()

    def _check_all(self) -> CheckResult:
        updates: list[UpdateInfo] = []
        failures: list[FailureInfo] = []
        requests: list[MirrorRequest] = []

        for tool in self.tools:
            try:
                new_version = self._resolve(tool)
            except ResolutionError as e:
                logger.warning(f"{tool.name}: {e.message}")
                failures.append(FailureInfo(tool.name, e.message))
                continue
            except Exception as e:
                logger.exception(f"{tool.name}: unexpected error while resolving")
                failures.append(FailureInfo(tool.name, f"Unexpected error: {e}"))
                continue

            old_version = self.storage.get_version(tool.name)

            if old_version is None:
                logger.info(f"{tool.name}: first seen at {new_version}")
                self.storage.set_version(tool.name, new_version)
            elif old_version != new_version:
                logger.info(f"{tool.name}: {old_version} -> {new_version}")
                updates.append(UpdateInfo(tool.name, old_version, new_version))
                self.storage.set_version(tool.name, new_version)
                request = self._mirror_request(tool.name, new_version)
                if request is not None:
                    requests.append(request)
            else:
                logger.debug(f"{tool.name}: unchanged at {new_version}")

        try:
            batch = self._mirror_all(requests)
        finally:
            # Report even when mirroring raises
            self.notifier.send_batched_updates(updates)
            self.notifier.send_batched_failures(failures)

        return CheckResult(updates=tuple(updates), failures=tuple(failures), mirror=batch)

    def _mirror_all(self, requests: list[MirrorRequest]) -> BatchResult | None:
        if not requests:
            return None
        if self.mirror is None:
            logger.debug(f"{len(requests)} mirror request(s) dropped: no mirror configured")
            return None

        try:
            batch = self.mirror.mirror_batch(requests)
        except Exception:
            logger.exception(f"Mirror batch of {len(requests)} item(s) failed")
            return None

        for outcome in batch.results.values():
            if outcome.success and outcome.download_url:
                self.storage.set_mirror_url(outcome.tool_name, outcome.download_url)
            else:
                logger.warning(f"Mirror failed for {outcome.tool_name}: {outcome.error}")
        return batch

    def mirror_missing(self) -> BatchResult | None:
        """Mirror the stored version of every mirrorable tool without a mirror URL.

        Covers tools that were first seen (and so never mirrored) or whose
        mirror failed on an earlier run. Returns None when nothing is missing.

        Raises:
            CheckInProgressError: If this checker is already running
            StoreError: If the version store cannot be read or written
        """
        if not self._running.acquire(blocking=False):
            raise CheckInProgressError("A check is already in progress")
        try:
            requests = []
            for tool in self.tools:
                version = self.storage.get_version(tool.name)
                if version is None or self.storage.get_mirror_url(tool.name):
                    continue
                request = self._mirror_request(tool.name, version)
                if request is not None:
                    requests.append(request)
            logger.info(f"{len(requests)} tool(s) missing a mirror")
            return self._mirror_all(requests)
        finally:
            self._running.release()

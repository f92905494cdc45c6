"""
Reporting of detected updates and failures.

``Notifier`` is the interface the checker reports to; chat delivery lives
outside this package. ``ConsoleNotifier`` writes the same messages to a
stream and to the log, which is what scheduled and manual runs use.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Sequence, TextIO

from packaging import version as pkg_version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateInfo:
    name: str
    old_version: str
    new_version: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "oldVersion": self.old_version, "newVersion": self.new_version}


@dataclass(frozen=True)
class FailureInfo:
    name: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "error": self.error}


def is_major_upgrade(old: str, new: str) -> bool:
    """
    Check if going from old to new bumps the major version.

    Versions that do not parse as PEP 440 are never flagged.
    """
    try:
        return pkg_version.parse(new).major > pkg_version.parse(old).major
    except pkg_version.InvalidVersion:
        return False


def format_update(update: UpdateInfo) -> str:
    line = f"🔄 {update.name}: {update.old_version} → {update.new_version}"
    if is_major_upgrade(update.old_version, update.new_version):
        line += " (major)"
    return line


def format_failure(failure: FailureInfo) -> str:
    return f"⚠️ Failed to check {failure.name}: {failure.error}"


class Notifier:
    """Interface for delivering run reports. Empty lists mean nothing to report."""

    def send_batched_updates(self, updates: Sequence[UpdateInfo]) -> None:
        raise NotImplementedError

    def send_batched_failures(self, failures: Sequence[FailureInfo]) -> None:
        raise NotImplementedError


class ConsoleNotifier(Notifier):
    """Writes one message per batch to a text stream."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout

    def _send(self, message: str) -> None:
        print(message, file=self.stream)

    def send_batched_updates(self, updates: Sequence[UpdateInfo]) -> None:
        if not updates:
            return
        logger.info(f"{len(updates)} update(s) detected")
        self._send("\n".join(format_update(u) for u in updates))

    def send_batched_failures(self, failures: Sequence[FailureInfo]) -> None:
        if not failures:
            return
        logger.warning(f"{len(failures)} tool(s) failed to check")
        self._send("\n".join(format_failure(f) for f in failures))

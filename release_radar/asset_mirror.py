"""
Asset mirroring into GitHub releases.

Binaries that consuming networks cannot reach at their source are downloaded
and re-published as release assets on a mirror repository, where a proxy can
serve them. Releases are driven through the ``gh`` CLI.

Per-tool releases are tagged ``<slug>-v<version>``; the tag is the idempotency
key, so a release that already exists is never downloaded or published again.
Batch releases share one timestamp tag and are all-or-nothing at publish time
only: a failed download drops that item, a failed publish fails every item
that was waiting on it.

Errors never leave this module as exceptions; every requested item yields a
MirrorOutcome.
"""

from __future__ import annotations

import http.client
import logging
import re
import shutil
import subprocess
import tempfile
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Sequence

from . import marketplace
from .common import USER_AGENT
from .config import MirrorSettings
from .downloads import MirrorConfig
from .errors import MirrorDownloadError, MirrorError, MirrorPublishError, ResolutionError
from .versions_generator import apply_version_placeholders

logger = logging.getLogger(__name__)

RELEASE_NOTES = "Mirrored for Nexus proxy access."

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass(frozen=True)
class MirrorRequest:
    """
    One detected version change that should be mirrored.

    Attributes:
        tool_name: Tracked tool name
        version: Version to mirror
        config: Where to fetch the binary from
        filename_template: Asset filename, may contain {{VERSION}}/{{VERSION_BASE}}
    """
    tool_name: str
    version: str
    config: MirrorConfig
    filename_template: str

    @property
    def filename(self) -> str:
        return apply_version_placeholders(self.filename_template, self.version)


@dataclass(frozen=True)
class MirrorOutcome:
    """Result of mirroring one tool."""
    tool_name: str
    success: bool
    download_url: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "tool_name": self.tool_name,
            "success": self.success,
            "download_url": self.download_url,
            "error": self.error,
        }


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one mirror_batch call, keyed by tool name."""
    tag: str
    results: dict[str, MirrorOutcome] = field(default_factory=dict)

    @property
    def succeeded(self) -> list[MirrorOutcome]:
        return [r for r in self.results.values() if r.success]

    @property
    def failed(self) -> list[MirrorOutcome]:
        return [r for r in self.results.values() if not r.success]


def build_tag(tool_name: str, version: str) -> str:
    """Deterministic per-tool release tag, e.g. "claude-code-vscode-v2.1.9"."""
    slug = re.sub(r"\s+", "-", tool_name.strip().lower())
    return f"{slug}-v{version}"


def build_batch_tag(now: datetime) -> str:
    """Timestamp-derived tag shared by all items of one batch."""
    return f"batch-{now:%Y%m%d-%H%M%S}"


def _unexpected(item: MirrorRequest, error: Exception) -> MirrorOutcome:
    return MirrorOutcome(item.tool_name, False, error=f"Unexpected error: {error}")


class AssetMirror:
    """Mirror release assets into a GitHub repository."""

    def __init__(
        self,
        repo: str = "lvntbkdmr/apps",
        batch_delay: float = 2.0,
        download_timeout: int = 300,
        publish_timeout: int = 300,
        query_timeout: int = 30,
        sleep: Callable[[float], None] = time.sleep,
        runner: Runner = subprocess.run,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            repo: Mirror repository in "owner/name" form
            batch_delay: Seconds to wait between consecutive batch downloads
            download_timeout: Timeout for one download in seconds
            publish_timeout: Timeout for one gh invocation in seconds
            query_timeout: Timeout for marketplace queries in seconds
            sleep: Delay function (injectable for tests)
            runner: subprocess.run compatible callable used for gh
            clock: Returns the current time for batch tags
        """
        self.repo = repo
        self.batch_delay = batch_delay
        self.download_timeout = download_timeout
        self.publish_timeout = publish_timeout
        self.query_timeout = query_timeout
        self._sleep = sleep
        self._runner = runner
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: MirrorSettings, **kwargs) -> AssetMirror:
        return cls(
            repo=settings.repo,
            batch_delay=settings.batch_delay_seconds,
            download_timeout=settings.download_timeout,
            publish_timeout=settings.publish_timeout,
            query_timeout=settings.query_timeout,
            **kwargs,
        )

    def release_url(self, tag: str, filename: str) -> str:
        """Externally addressable asset URL (no scheme; consumers add a proxy base)."""
        return f"github.com/{self.repo}/releases/download/{tag}/{filename}"

    # gh plumbing

    def _gh(self, args: Sequence[str]) -> subprocess.CompletedProcess:
        command = ["gh", *args, "--repo", self.repo]
        logger.debug(f"Executing: {' '.join(command)}")
        try:
            return self._runner(
                command,
                capture_output=True,
                text=True,
                timeout=self.publish_timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise MirrorPublishError(f"gh {args[0]} {args[1]} timed out after {self.publish_timeout}s") from e
        except FileNotFoundError as e:
            raise MirrorPublishError("Command not found: gh") from e
        except OSError as e:
            raise MirrorPublishError(f"Could not run gh: {e}") from e

    @staticmethod
    def _gh_error(action: str, result: subprocess.CompletedProcess) -> str:
        message = f"{action} failed with exit code {result.returncode}"
        if result.stderr:
            message += f": {result.stderr.strip()[:200]}"
        return message

    def release_exists(self, tag: str) -> bool:
        """Whether a release with this tag exists on the mirror repository."""
        return self._gh(["release", "view", tag]).returncode == 0

    def delete_release(self, tag: str) -> None:
        """Delete a release and its tag."""
        result = self._gh(["release", "delete", tag, "--yes", "--cleanup-tag"])
        if result.returncode != 0:
            raise MirrorPublishError(self._gh_error(f"gh release delete {tag}", result))

    def create_release(self, tag: str, assets: Sequence[tuple[Path, str]], title: str, notes: str) -> None:
        """Create a release with the given (path, filename) assets attached."""
        args = ["release", "create", tag]
        args.extend(f"{path}#{filename}" for path, filename in assets)
        args.extend(["--title", title, "--notes", notes])
        result = self._gh(args)
        if result.returncode != 0:
            raise MirrorPublishError(self._gh_error(f"gh release create {tag}", result))

    # Source negotiation and transfer

    def get_source_url(self, config: MirrorConfig, version: str) -> str:
        """Concrete download URL for a version of the configured source."""
        if not config.uses_marketplace:
            return config.source_url
        try:
            return marketplace.find_vsix_url(
                config.extension_id,
                version,
                config.target_platform,
                timeout=self.query_timeout,
            )
        except ResolutionError as e:
            raise MirrorDownloadError(e.message) from e
        except (KeyError, TypeError, AttributeError) as e:
            raise MirrorDownloadError(
                f"Malformed marketplace response for {config.extension_id}: {e!r}"
            ) from e

    def download_file(self, url: str, dest: Path) -> None:
        """Stream url to dest, following redirects.

        Raises:
            MirrorDownloadError: On transfer failure or when dest is missing afterwards
        """
        try:
            req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
            with urllib.request.urlopen(req, timeout=self.download_timeout) as response, open(dest, "wb") as out:
                shutil.copyfileobj(response, out)
        except urllib.error.HTTPError as e:
            raise MirrorDownloadError(f"Download failed: {e.code} {e.reason} ({url})") from e
        except (urllib.error.URLError, OSError) as e:
            raise MirrorDownloadError(f"Download failed: {getattr(e, 'reason', e)} ({url})") from e
        except (ValueError, http.client.HTTPException) as e:
            # Scheme-less or malformed URLs, truncated bodies
            raise MirrorDownloadError(f"Download failed: {e!r} ({url})") from e

        if not dest.exists():
            raise MirrorDownloadError("Download failed - file not created")

    def _fetch_to(self, request: MirrorRequest, workdir: Path) -> Path:
        logger.info(f"Getting source URL for {request.tool_name} v{request.version}...")
        source_url = self.get_source_url(request.config, request.version)
        dest = workdir / request.filename
        logger.info(f"Downloading {source_url} to {dest}...")
        self.download_file(source_url, dest)
        return dest

    # Public API

    def mirror(
        self,
        tool_name: str,
        version: str,
        config: MirrorConfig,
        filename_template: str,
        force: bool = False,
    ) -> MirrorOutcome:
        """Mirror one tool version into its own release.

        Args:
            tool_name: Tracked tool name
            version: Version to mirror
            config: Source of the binary
            filename_template: Asset filename template
            force: Delete and re-publish an existing release

        Returns:
            MirrorOutcome with the asset URL or the causing error
        """
        request = MirrorRequest(tool_name, version, config, filename_template)
        tag = build_tag(tool_name, version)
        filename = request.filename
        download_url = self.release_url(tag, filename)

        try:
            if self.release_exists(tag):
                if not force:
                    logger.info(f"Release {tag} already exists, skipping")
                    return MirrorOutcome(tool_name, True, download_url=download_url)
                logger.info(f"Deleting existing release {tag} (forced)")
                self.delete_release(tag)

            workdir = Path(tempfile.mkdtemp(prefix="release-radar-"))
            try:
                path = self._fetch_to(request, workdir)
                logger.info(f"Creating release {tag}...")
                self.create_release(
                    tag,
                    [(path, filename)],
                    title=f"{tool_name} {version}",
                    notes=RELEASE_NOTES,
                )
            finally:
                shutil.rmtree(workdir, ignore_errors=True)
        except MirrorError as e:
            logger.error(f"Failed to mirror {tool_name}: {e.message}")
            return MirrorOutcome(tool_name, False, error=e.message)
        except Exception as e:
            logger.exception(f"Unexpected error while mirroring {tool_name}")
            return MirrorOutcome(tool_name, False, error=f"Unexpected error: {e}")

        logger.info(f"Successfully mirrored to {download_url}")
        return MirrorOutcome(tool_name, True, download_url=download_url)

    def mirror_batch(self, items: Sequence[MirrorRequest]) -> BatchResult:
        """Mirror several tools into one shared release.

        Items whose per-tool release already exists are reused without
        downloading. Downloads run one at a time with a delay in between.
        """
        tag = build_batch_tag(self._clock())
        results: dict[str, MirrorOutcome] = {}
        pending: list[tuple[MirrorRequest, Path]] = []

        try:
            workdir = Path(tempfile.mkdtemp(prefix="release-radar-batch-"))
        except OSError as e:
            logger.error(f"Could not create batch work directory: {e}")
            return BatchResult(tag=tag, results={
                item.tool_name: MirrorOutcome(item.tool_name, False, error=f"Could not create work directory: {e}")
                for item in items
            })

        try:
            for index, item in enumerate(items):
                is_last = index == len(items) - 1
                per_tool_tag = build_tag(item.tool_name, item.version)

                try:
                    if self.release_exists(per_tool_tag):
                        logger.info(f"Release {per_tool_tag} already exists, reusing")
                        results[item.tool_name] = MirrorOutcome(
                            item.tool_name, True,
                            download_url=self.release_url(per_tool_tag, item.filename),
                        )
                        continue
                except MirrorError as e:
                    logger.error(f"Failed to mirror {item.tool_name}: {e.message}")
                    results[item.tool_name] = MirrorOutcome(item.tool_name, False, error=e.message)
                    continue
                except Exception as e:
                    logger.exception(f"Unexpected error while checking {per_tool_tag}")
                    results[item.tool_name] = _unexpected(item, e)
                    continue

                item_dir = workdir / str(index)
                item_dir.mkdir()
                try:
                    path = self._fetch_to(item, item_dir)
                    pending.append((item, path))
                    results[item.tool_name] = MirrorOutcome(
                        item.tool_name, True,
                        download_url=self.release_url(tag, item.filename),
                    )
                except MirrorError as e:
                    logger.error(f"Failed to download {item.tool_name}: {e.message}")
                    results[item.tool_name] = MirrorOutcome(item.tool_name, False, error=e.message)
                except Exception as e:
                    logger.exception(f"Unexpected error while downloading {item.tool_name}")
                    results[item.tool_name] = _unexpected(item, e)

                if not is_last and self.batch_delay > 0:
                    self._sleep(self.batch_delay)

            if pending:
                try:
                    self.create_release(
                        tag,
                        [(path, item.filename) for item, path in pending],
                        title=f"Batch mirror {tag[len('batch-'):]}",
                        notes=self._batch_notes(item for item, _ in pending),
                    )
                    logger.info(f"Created batch release {tag} with {len(pending)} assets")
                except MirrorError as e:
                    logger.error(f"Batch release {tag} failed: {e.message}")
                    for item, _ in pending:
                        results[item.tool_name] = MirrorOutcome(item.tool_name, False, error=e.message)
                except Exception as e:
                    logger.exception(f"Unexpected error while publishing {tag}")
                    for item, _ in pending:
                        results[item.tool_name] = _unexpected(item, e)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

        return BatchResult(tag=tag, results=results)

    @staticmethod
    def _batch_notes(items) -> str:
        lines = [RELEASE_NOTES, ""]
        lines.extend(f"- {item.tool_name} {item.version}" for item in items)
        return "\n".join(lines)

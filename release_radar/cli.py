"""
release-radar command line.

Usage:
    release-radar check                 # Resolve versions, mirror changes, report
    release-radar status                # Show tracked versions and mirror URLs
    release-radar mirror TOOL [--force] # Mirror the tracked version of one tool
    release-radar mirror --all          # Mirror every tool that has no mirror URL yet
    release-radar manifest [-o FILE]    # Write the versions manifest
    release-radar forget TOOL           # Drop a tool's version and mirror records
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .asset_mirror import AssetMirror
from .checker import Checker
from .config import Config, get_data_dir, load_config
from .downloads import DownloadConfigUrl, mirror_config_for
from .errors import ReleaseRadarError
from .logging_config import setup_logging
from .notifier import ConsoleNotifier
from .render import render_check_summary, render_mirror_outcomes, render_status_table
from .storage import DEFAULT_STORE_FILE, Storage
from .versions_generator import generate_versions_json, write_versions_json


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="release-radar",
        description="Track upstream tool releases and mirror their binaries.",
    )
    parser.add_argument("--config", help="Path to configuration file (YAML or JSON)")
    parser.add_argument("--data-dir", help="Directory holding versions.json (default: ~/.release-radar)")
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")

    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Check all tools for new versions")
    check.add_argument("--json", action="store_true", help="Print the result as JSON")

    sub.add_parser("status", help="Show tracked versions")

    mirror = sub.add_parser("mirror", help="Mirror the tracked version of one tool, or every unmirrored tool")
    mirror.add_argument("tool", nargs="?", help="Tool name")
    mirror.add_argument("--all", action="store_true", help="Mirror every tool with a mirror block and no stored mirror URL")
    mirror.add_argument("--force", action="store_true", help="Delete and re-publish an existing release")

    manifest = sub.add_parser("manifest", help="Write the versions manifest")
    manifest.add_argument("-o", "--output", help="Output file (default: <data-dir>/versions-manifest.json)")

    forget = sub.add_parser("forget", help="Forget a tool's version and mirror URL")
    forget.add_argument("tool", help="Tool name")

    return parser


def _checker(config: Config, storage: Storage, notifier: ConsoleNotifier) -> Checker:
    return Checker(
        tools=config.tools,
        storage=storage,
        notifier=notifier,
        downloads=config.downloads,
        mirror=AssetMirror.from_settings(config.mirror),
        timeout=config.fetch_timeout,
    )


def cmd_check(args: argparse.Namespace, config: Config, storage: Storage) -> int:
    checker = _checker(config, storage, ConsoleNotifier(sys.stderr if args.json else None))
    result = checker.check_all()
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        render_check_summary(result)
    return 0


def cmd_status(args: argparse.Namespace, config: Config, storage: Storage) -> int:
    render_status_table(storage.all_versions(), storage.all_mirror_urls(), storage.last_check)
    return 0


def cmd_mirror_all(args: argparse.Namespace, config: Config, storage: Storage) -> int:
    batch = _checker(config, storage, ConsoleNotifier()).mirror_missing()
    if batch is None:
        print("Nothing to mirror")
        return 0
    render_mirror_outcomes(batch)
    return 1 if batch.failed else 0


def cmd_mirror(args: argparse.Namespace, config: Config, storage: Storage) -> int:
    if args.all:
        return cmd_mirror_all(args, config, storage)

    version = storage.get_version(args.tool)
    if version is None:
        print(f"No tracked version for {args.tool}. Run 'release-radar check' first.", file=sys.stderr)
        return 1

    download_config = config.downloads.get(args.tool)
    mirror_config = mirror_config_for(download_config)
    if mirror_config is None or not isinstance(download_config, DownloadConfigUrl):
        print(f"{args.tool} has no mirror configuration", file=sys.stderr)
        return 1

    outcome = AssetMirror.from_settings(config.mirror).mirror(
        args.tool,
        version,
        mirror_config,
        download_config.filename,
        force=args.force,
    )
    if not outcome.success:
        print(f"❌ Mirror failed for {args.tool}: {outcome.error}", file=sys.stderr)
        return 1

    storage.set_mirror_url(args.tool, outcome.download_url)
    print(f"✅ Mirrored {args.tool} {version}: {outcome.download_url}")
    return 0


def cmd_manifest(args: argparse.Namespace, config: Config, storage: Storage) -> int:
    manifest = generate_versions_json(storage.all_versions(), config.downloads, storage.all_mirror_urls())
    output = Path(args.output) if args.output else storage.file_path.parent / "versions-manifest.json"
    write_versions_json(manifest, output)
    print(f"Wrote {len(manifest['tools'])} tools to {output}")
    return 0


def cmd_forget(args: argparse.Namespace, config: Config, storage: Storage) -> int:
    if storage.delete_version(args.tool):
        print(f"Forgot {args.tool}")
        return 0
    print(f"{args.tool} is not tracked", file=sys.stderr)
    return 1


COMMANDS = {
    "check": cmd_check,
    "status": cmd_status,
    "mirror": cmd_mirror,
    "manifest": cmd_manifest,
    "forget": cmd_forget,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "mirror" and bool(args.tool) == args.all:
        parser.error("mirror: give either a TOOL or --all")
    if args.command == "mirror" and args.all and args.force:
        parser.error("mirror: --force applies to a single TOOL")
    logger = setup_logging(log_file=args.log_file, verbose=args.verbose, quiet=args.quiet)

    try:
        config = load_config(args.config, verbose=args.verbose)
        data_dir = Path(args.data_dir) if args.data_dir else get_data_dir()
        storage = Storage(data_dir / DEFAULT_STORE_FILE)
        return COMMANDS[args.command](args, config, storage)
    except ReleaseRadarError as e:
        logger.error(e.message)
        return 2


if __name__ == "__main__":
    sys.exit(main())

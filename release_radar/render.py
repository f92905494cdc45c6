"""
Terminal rendering of tracked versions and run results.
"""

import os
import sys
from typing import Any, TextIO

from wcwidth import wcswidth

# Environment options
USE_EMOJI = os.environ.get("RELEASE_RADAR_EMOJI", "1") == "1"
ENABLE_LINKS = os.environ.get("RELEASE_RADAR_LINKS", "1") == "1"
USE_COLOR = os.environ.get("RELEASE_RADAR_COLOR", "1") == "1"

# ANSI color codes
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
RESET = "\033[0m"


def colorize(text: str, color: str) -> str:
    """Apply color to text, or return it unchanged if colors are disabled."""
    if not USE_COLOR or not text:
        return text
    return f"{color}{text}{RESET}"


def osc8(url: str, text: str) -> str:
    """Create OSC8 hyperlink.

    Args:
        url: Link URL (scheme-less mirror URLs get https://)
        text: Display text
    """
    if not ENABLE_LINKS or not url:
        return text
    if "://" not in url:
        url = f"https://{url}"
    return f"\033]8;;{url}\033\\{text}\033]8;;\033\\"


def display_width(text: str) -> int:
    """Printable width of text; falls back to len() for non-printables."""
    width = wcswidth(text)
    return width if width >= 0 else len(text)


def pad(text: str, width: int) -> str:
    return text + " " * max(0, width - display_width(text))


def mirror_icon(mirror_url: str) -> str:
    if not USE_EMOJI:
        return "M" if mirror_url else "-"
    return "🪞" if mirror_url else "—"


def render_status_table(
    versions: dict[str, str],
    mirror_urls: dict[str, str],
    last_check: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Render tracked versions as an aligned table, sorted by tool name."""
    out = stream or sys.stdout
    if not versions:
        print("No versions tracked yet. Run 'release-radar check' first.", file=out)
        return

    rows: list[tuple[str, str, str, str]] = []
    for name in sorted(versions):
        url = mirror_urls.get(name, "")
        rows.append((mirror_icon(url), name, versions[name], url))

    headers = ("", "tool", "version", "mirror")
    widths = [
        max(display_width(h), *(display_width(r[i]) for r in rows))
        for i, h in enumerate(headers)
    ]

    print("  ".join(pad(h, widths[i]) for i, h in enumerate(headers)).rstrip(), file=out)
    for icon, name, version, url in rows:
        cells = [
            pad(icon, widths[0]),
            pad(name, widths[1]),
            # Pad before coloring; escape codes have no width
            colorize(pad(version, widths[2]), GREEN),
            osc8(url, url) if url else "",
        ]
        print("  ".join(cells).rstrip(), file=out)

    if last_check:
        print(f"\nLast check: {last_check}", file=out)


def render_mirror_outcomes(batch: Any, stream: TextIO | None = None) -> None:
    """Print one line per item of a BatchResult."""
    out = stream or sys.stdout
    for outcome in batch.results.values():
        if outcome.success:
            print(colorize(f"✅ Mirrored {outcome.tool_name}: {outcome.download_url}", GREEN), file=out)
        else:
            print(colorize(f"❌ Mirror failed for {outcome.tool_name}: {outcome.error}", YELLOW), file=out)


def render_check_summary(result: Any, stream: TextIO | None = None) -> None:
    """Print the mirror outcomes of a CheckResult and a one-line summary.

    Updates and failures themselves are delivered by the notifier.
    """
    out = stream or sys.stdout
    if result.mirror is not None:
        render_mirror_outcomes(result.mirror, out)

    parts = [f"{result.update_count} updated", f"{len(result.failures)} failed"]
    if result.mirror is not None:
        parts.append(f"{len(result.mirror.succeeded)} mirrored")
    print(f"\nCheck complete: {', '.join(parts)}", file=out)

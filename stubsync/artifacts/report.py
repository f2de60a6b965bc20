"""Report renderers for sync runs.

The reconciler produces one :class:`SyncReport`; apply mode streams its lines
while operations happen, verify mode renders the whole report at the end.
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from stubsync.artifacts.envelope import SYNC_COMMAND
from stubsync.artifacts.models import SyncReport
from stubsync.console import say

REMOVAL_HEADER = "Removing stub files of packages that have been removed:"
GENERATION_HEADER = "Generating stub files of packages that are added or updated:"
NOTHING_TO_DO = "Nothing to do."

VERIFY_HEADER = "Checking for out-of-date stubs..."
UP_TO_DATE = "Nothing to do, all stubs are up-to-date."


# ── Apply mode ───────────────────────────────────────────────────────


def section_header(title: str, out: Console | None = None) -> None:
    say(title, style="bold", out=out)
    say("", out=out)


def section_footer(empty: bool, out: Console | None = None) -> None:
    if empty:
        say(f"  {NOTHING_TO_DO}", out=out)
    say("", out=out)


def removing(path: Path, out: Console | None = None) -> None:
    say(f"  -- Removing: {path}", style="red", out=out)


def moving(source: Path, target: Path, out: Console | None = None) -> None:
    say(f"  -> Moving: {source} to {target}", style="yellow", out=out)


def adding(path: Path, out: Console | None = None) -> None:
    say(f"  ++ Adding: {path}", style="green", out=out)


def compiling(name: str, out: Console | None = None) -> None:
    say(f"  Compiling {name}, this may take a few seconds...", out=out)


def compiled(empty: bool, out: Console | None = None) -> None:
    say("  Done (empty output)" if empty else "  Done", style="green", out=out)


def failed(name: str, message: str, out: Console | None = None) -> None:
    say(f"  !! Failed: {name}: {message}", style="red", out=out)


def render_failures(report: SyncReport, out: Console | None = None) -> None:
    if not report.failures:
        return
    say(
        f"{len(report.failures)} package(s) could not be synced; "
        "their stub files were left as they are:",
        style="red",
        out=out,
    )
    for failure in report.failures:
        say(f"  - {failure.name} ({failure.operation}): {failure.message}", style="red", out=out)


# ── Verify mode ──────────────────────────────────────────────────────


def render_verify(report: SyncReport, out: Console | None = None) -> None:
    """Print the verify-mode report.

    Categories with nothing in them are left out; paths inside a category are
    sorted.
    """
    say(VERIFY_HEADER, out=out)
    say("", out=out)

    if report.in_sync:
        say(UP_TO_DATE, style="green", out=out)
        return

    say(
        "Stub files are out-of-date. In your development environment, please run:",
        style="red",
        out=out,
    )
    say(f"  `{SYNC_COMMAND}`", style="bold", out=out)
    say("Once it is complete, be sure to commit and push any changes", out=out)
    say("", out=out)
    say("Reason:", out=out)

    for title, paths in (
        ("added", report.added),
        ("changed", report.changed),
        ("removed", report.removed),
    ):
        if not paths:
            continue
        say(f"  File(s) {title}:", out=out)
        for path in sorted(paths, key=str):
            say(f"  - {path}", out=out)

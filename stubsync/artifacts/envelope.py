"""Artifact envelope -- the framing every generated stub file shares.

A file is ``{header}{strictness marker}\\n\\n{body}``. The empty-package
placeholder is the on-disk signature of "up to date, nothing to declare" and
must stay byte-identical between runs.
"""

from __future__ import annotations

from stubsync.artifacts.models import PackageRef

DEFAULT_STRICTNESS = "basic"
VALID_STRICTNESS = {"off", "basic", "standard", "strict"}

SYNC_COMMAND = "stubsync sync"

EMPTY_STUB_BODY = (
    "# THIS IS AN EMPTY STUB FILE.\n"
    "# see README.md#manual-package-imports\n"
)


def file_header(ref: PackageRef) -> str:
    return (
        "# DO NOT EDIT MANUALLY\n"
        f"# This is an autogenerated file for types exported from the `{ref.name}` package.\n"
        f"# Please instead update this file by running `{SYNC_COMMAND}`.\n"
        "\n"
    )


def strictness_marker(strictness: str = DEFAULT_STRICTNESS) -> str:
    if strictness not in VALID_STRICTNESS:
        raise ValueError(
            f"Invalid strictness '{strictness}'. Must be one of: {sorted(VALID_STRICTNESS)}"
        )
    return f"# pyright: {strictness}\n"


def render(
    ref: PackageRef,
    body: str,
    include_header: bool = True,
    strictness: str = DEFAULT_STRICTNESS,
) -> str:
    """Wrap compiled stub text for ``ref`` into the file contents to write."""
    if not body.strip():
        body = EMPTY_STUB_BODY
    elif not body.endswith("\n"):
        body += "\n"

    header = file_header(ref) if include_header else ""
    return f"{header}{strictness_marker(strictness)}\n{body}"

"""Artifact naming -- the ``<package>@<version>.pyi`` filename convention."""

from __future__ import annotations

import re
from pathlib import Path

from stubsync.artifacts.models import ArtifactFile, PackageRef

STUB_EXTENSION = ".pyi"

_FILENAME_RE = re.compile(r"^(?P<name>[^@/\s]+)@(?P<version>[^@/\s]+)\.pyi$")


def parse(filename: str | Path) -> PackageRef | None:
    """Parse a stub filename into a ref, or None if it does not follow the convention.

    Only the basename is considered, so full paths are accepted too.
    """
    match = _FILENAME_RE.match(Path(filename).name)
    if not match:
        return None
    return PackageRef(match.group("name"), match.group("version"))


def format(ref: PackageRef) -> str:  # noqa: A001
    """Return the filename for a ref. Inverse of :func:`parse`."""
    if not is_valid_ref(ref):
        raise ValueError(f"Cannot build a stub filename for {ref.name!r}@{ref.version!r}")
    return f"{ref.qualified_id}{STUB_EXTENSION}"


def is_valid_ref(ref: PackageRef) -> bool:
    """Check that a ref can be written as a filename and parsed back."""
    return bool(
        ref.name
        and ref.version
        and _FILENAME_RE.match(f"{ref.name}@{ref.version}{STUB_EXTENSION}")
    )


def artifact_path(directory: Path, ref: PackageRef) -> Path:
    return directory / format(ref)


def scan_directory(directory: str | Path) -> list[ArtifactFile]:
    """List the stub artifacts in a directory (non-recursive).

    Files that do not match the naming convention are ignored. A missing
    directory has no artifacts.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []

    artifacts = []
    for item in sorted(directory.iterdir()):
        if not item.is_file():
            continue
        ref = parse(item.name)
        if ref is None:
            continue
        artifacts.append(ArtifactFile(path=item, name=ref.name, version=ref.version))
    return artifacts

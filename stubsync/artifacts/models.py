"""Artifact data models -- package refs, files on disk, and the sync plan."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass(frozen=True, order=True)
class PackageRef:
    """A package and the single version the manifest wants stubs for."""

    name: str
    version: str

    @property
    def qualified_id(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class ArtifactFile:
    """A stub file found in the output directory."""

    path: Path
    name: str
    version: str

    @property
    def ref(self) -> PackageRef:
        return PackageRef(self.name, self.version)

    @property
    def filename(self) -> str:
        return self.path.name


class Classification(Enum):
    """How a package name relates the desired set to the directory."""

    UNCHANGED = "unchanged"
    NEW = "new"
    STALE_VERSION = "stale_version"
    EXTRANEOUS = "extraneous"


class SyncMode(Enum):
    APPLY = "apply"
    VERIFY = "verify"


@dataclass(frozen=True)
class PlanEntry:
    """One classified package name.

    ``desired`` is set for everything except EXTRANEOUS, ``present`` for
    everything except NEW.
    """

    classification: Classification
    desired: PackageRef | None = None
    present: ArtifactFile | None = None

    @property
    def name(self) -> str:
        return (self.desired or self.present).name


@dataclass
class SyncPlan:
    """Classification of every name in the union of desired and actual sets."""

    directory: Path
    entries: list[PlanEntry] = field(default_factory=list)

    @property
    def removals(self) -> list[PlanEntry]:
        removed = [e for e in self.entries if e.classification == Classification.EXTRANEOUS]
        return sorted(removed, key=lambda e: e.present.filename)

    @property
    def updates(self) -> list[PlanEntry]:
        updates = [
            e
            for e in self.entries
            if e.classification in (Classification.NEW, Classification.STALE_VERSION)
        ]
        return sorted(updates, key=lambda e: e.desired.name)

    @property
    def unchanged(self) -> list[PlanEntry]:
        return [e for e in self.entries if e.classification == Classification.UNCHANGED]

    @property
    def is_empty(self) -> bool:
        return not self.removals and not self.updates


@dataclass
class SyncFailure:
    """A package whose operation failed during an apply run."""

    name: str
    operation: str  # "compile", "write", "rename", "remove"
    message: str


@dataclass
class SyncReport:
    """Outcome of one reconcile call, in the order operations ran."""

    mode: SyncMode
    removed: list[Path] = field(default_factory=list)
    moved: list[tuple[Path, Path]] = field(default_factory=list)
    added: list[Path] = field(default_factory=list)
    changed: list[Path] = field(default_factory=list)
    failures: list[SyncFailure] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not (self.removed or self.moved or self.added or self.changed)

    @property
    def exit_code(self) -> int:
        if self.mode == SyncMode.VERIFY:
            return 0 if self.in_sync else 1
        return 1 if self.failures else 0

"""Artifact reconciler -- bring the stub directory in line with the desired set.

Classification happens once, in :func:`plan`. Apply mode lowers a stale
version to a rename followed by a regenerate; verify mode reports it as a
single "changed" entry and touches nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Protocol

from rich.console import Console

from stubsync.artifacts import report as output
from stubsync.artifacts.envelope import DEFAULT_STRICTNESS, render as render_stub
from stubsync.artifacts.models import (
    ArtifactFile,
    Classification,
    PackageRef,
    PlanEntry,
    SyncFailure,
    SyncMode,
    SyncPlan,
    SyncReport,
)
from stubsync.artifacts.naming import artifact_path, scan_directory
from stubsync.errors import DuplicatePackageError

logger = logging.getLogger(__name__)


class StubCompiler(Protocol):
    def compile(self, ref: PackageRef) -> str:
        """Return stub text for ``ref``; an empty string means nothing to declare."""


def desired_set(refs: Iterable[PackageRef], exclude: Iterable[str] = ()) -> list[PackageRef]:
    """Drop excluded names (exact match, any version) and reject duplicates."""
    excluded = set(exclude)
    by_name: dict[str, PackageRef] = {}
    for ref in refs:
        if ref.name in excluded:
            continue
        existing = by_name.get(ref.name)
        if existing is not None and existing != ref:
            raise DuplicatePackageError(ref.name, sorted([existing.version, ref.version]))
        by_name[ref.name] = ref
    return sorted(by_name.values())


def plan(desired: Iterable[PackageRef], directory: str | Path) -> SyncPlan:
    """Classify every package name found in either the desired set or the directory.

    When several files exist for one package and none has the desired version,
    the lexicographically first filename is renamed and the rest are removed.
    Files for a package whose desired version is present are removed too.
    """
    directory = Path(directory)
    wanted = {ref.name: ref for ref in desired_set(desired)}

    present: dict[str, list[ArtifactFile]] = {}
    for artifact in scan_directory(directory):
        present.setdefault(artifact.name, []).append(artifact)

    result = SyncPlan(directory=directory)
    for name in sorted(set(wanted) | set(present)):
        ref = wanted.get(name)
        files = sorted(present.get(name, []), key=lambda a: a.filename)

        if ref is None:
            for artifact in files:
                result.entries.append(PlanEntry(Classification.EXTRANEOUS, present=artifact))
            continue

        if not files:
            result.entries.append(PlanEntry(Classification.NEW, desired=ref))
            continue

        keep = next((a for a in files if a.version == ref.version), None)
        if keep is not None:
            result.entries.append(PlanEntry(Classification.UNCHANGED, desired=ref, present=keep))
        else:
            keep = files[0]
            result.entries.append(
                PlanEntry(Classification.STALE_VERSION, desired=ref, present=keep)
            )
        for artifact in files:
            if artifact is not keep:
                result.entries.append(PlanEntry(Classification.EXTRANEOUS, present=artifact))

    return result


class ArtifactReconciler:
    """Diffs a desired package set against a stub directory and syncs it."""

    def __init__(
        self,
        directory: str | Path,
        compiler: StubCompiler,
        file_header: bool = True,
        strictness: str = DEFAULT_STRICTNESS,
        jobs: int = 1,
        out: Console | None = None,
    ):
        self.directory = Path(directory)
        self.compiler = compiler
        self.file_header = file_header
        self.strictness = strictness
        self.jobs = max(1, jobs)
        self.out = out

    def plan(self, desired: Iterable[PackageRef]) -> SyncPlan:
        return plan(desired, self.directory)

    def reconcile(self, desired: Iterable[PackageRef], mode: SyncMode = SyncMode.APPLY) -> SyncReport:
        sync_plan = self.plan(desired)
        if mode == SyncMode.VERIFY:
            return self._verify(sync_plan)
        return self._apply(sync_plan)

    def regenerate(self, refs: Iterable[PackageRef]) -> SyncReport:
        """Force fresh content for specific packages, even if their file is current.

        Other versions of the same packages are removed first.
        """
        refs = desired_set(refs)
        names = {ref.name for ref in refs}
        entries = []
        for artifact in scan_directory(self.directory):
            if artifact.name in names:
                entries.append(PlanEntry(Classification.EXTRANEOUS, present=artifact))
        for ref in refs:
            entries.append(PlanEntry(Classification.NEW, desired=ref))
        return self._apply(SyncPlan(directory=self.directory, entries=entries))

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def _verify(self, sync_plan: SyncPlan) -> SyncReport:
        result = SyncReport(mode=SyncMode.VERIFY)
        result.removed = [entry.present.path for entry in sync_plan.removals]
        for entry in sync_plan.updates:
            target = artifact_path(self.directory, entry.desired)
            if entry.classification == Classification.NEW:
                result.added.append(target)
            else:
                result.changed.append(target)

        result.added.sort(key=str)
        result.changed.sort(key=str)
        result.removed.sort(key=str)
        output.render_verify(result, out=self.out)
        return result

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def _apply(self, sync_plan: SyncPlan) -> SyncReport:
        result = SyncReport(mode=SyncMode.APPLY)

        removals = sync_plan.removals
        output.section_header(output.REMOVAL_HEADER, out=self.out)
        for entry in removals:
            self._remove(entry.present, result)
        output.section_footer(empty=not removals, out=self.out)

        updates = sync_plan.updates
        output.section_header(output.GENERATION_HEADER, out=self.out)
        if updates:
            self._ensure_directory()
        if self.jobs > 1 and len(updates) > 1:
            with ThreadPoolExecutor(max_workers=self.jobs) as pool:
                futures = {
                    entry.desired.name: pool.submit(self.compiler.compile, entry.desired)
                    for entry in updates
                }
                for entry in updates:
                    self._update(entry, result, futures[entry.desired.name].result)
        else:
            for entry in updates:
                self._update(entry, result, partial(self.compiler.compile, entry.desired))
        output.section_footer(empty=not updates, out=self.out)

        output.render_failures(result, out=self.out)
        return result

    def _ensure_directory(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            # Each write will fail and be reported on its own.
            logger.debug("Could not create %s: %s", self.directory, e)

    def _remove(self, artifact: ArtifactFile, result: SyncReport) -> None:
        output.removing(artifact.path, out=self.out)
        try:
            artifact.path.unlink()
        except OSError as e:
            self._fail(result, artifact.name, "remove", e)
            return
        result.removed.append(artifact.path)

    def _update(
        self,
        entry: PlanEntry,
        result: SyncReport,
        produce: Callable[[], str],
    ) -> None:
        ref = entry.desired
        target = artifact_path(self.directory, ref)
        source = None
        if entry.classification == Classification.STALE_VERSION:
            source = entry.present.path
            output.moving(source, target, out=self.out)

        # The old file is only renamed once there is fresh content for it.
        output.compiling(ref.name, out=self.out)
        try:
            body = produce()
        except Exception as e:  # noqa: BLE001
            self._fail(result, ref.name, "compile", e)
            return
        output.compiled(empty=not body.strip(), out=self.out)

        if source is not None:
            try:
                source.rename(target)
            except OSError as e:
                self._fail(result, ref.name, "rename", e)
                return

        content = render_stub(ref, body, include_header=self.file_header, strictness=self.strictness)
        try:
            target.write_text(content, encoding="utf-8")
        except OSError as e:
            if source is not None:
                self._restore(target, source)
            self._fail(result, ref.name, "write", e)
            return

        if source is not None:
            result.moved.append((source, target))
        output.adding(target, out=self.out)
        result.added.append(target)

    def _restore(self, target: Path, source: Path) -> None:
        try:
            target.rename(source)
        except OSError as e:
            logger.debug("Could not move %s back to %s: %s", target, source, e)

    def _fail(self, result: SyncReport, name: str, operation: str, error: Exception) -> None:
        logger.debug("%s of %s failed", operation, name, exc_info=error)
        output.failed(name, f"{operation} failed: {error}", out=self.out)
        result.failures.append(SyncFailure(name=name, operation=operation, message=str(error)))

"""Manifest resolution -- which installed distributions the project depends on.

Declared requirements come from ``pyproject.toml`` (or ``requirements.txt``).
Versions are never resolved here; they are read from what is installed.
"""

from __future__ import annotations

import logging
import re
import tomllib
from dataclasses import dataclass, field
from importlib import metadata
from pathlib import Path

from stubsync.artifacts.models import PackageRef
from stubsync.bootstrap.loader import ModuleLoader, RequireOutcome
from stubsync.errors import ManifestError

logger = logging.getLogger(__name__)

PYPROJECT_FILE = "pyproject.toml"
REQUIREMENTS_FILE = "requirements.txt"

# The type-checking toolchain never gets stubs of its own
IGNORED_PACKAGES = {"stubsync", "mypy", "mypy-extensions", "pyright"}

_NAME_RE = re.compile(r"^\s*(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[(?P<extras>[^\]]*)\])?")
_EXTRA_MARKER_RE = re.compile(r"""extra\s*==\s*["'](?P<extra>[^"']+)["']""")
_URL_RE = re.compile(r"^[a-z]+(\+[a-z]+)?://")


def canonical_name(name: str) -> str:
    """PEP 503 normalized distribution name."""
    return re.sub(r"[-_.]+", "-", name).lower()


def is_stub_only(name: str) -> bool:
    """Distributions that already are stubs (``types-*``, ``*-stubs``)."""
    name = canonical_name(name)
    return name.startswith("types-") or name.endswith("-stubs")


@dataclass
class Requirement:
    """The parts of a requirement string resolution cares about."""

    name: str
    extras: set[str] = field(default_factory=set)
    marker: str = ""

    @property
    def extra_only(self) -> str | None:
        """The extra this requirement belongs to, if it is only pulled in by one."""
        match = _EXTRA_MARKER_RE.search(self.marker)
        return match.group("extra") if match else None


def parse_requirement(line: str) -> Requirement | None:
    requirement, _, marker = line.partition(";")
    match = _NAME_RE.match(requirement)
    if not match:
        return None
    extras = {canonical_name(e) for e in (match.group("extras") or "").split(",") if e.strip()}
    return Requirement(name=canonical_name(match.group("name")), extras=extras, marker=marker.strip())


class Manifest:
    """The project's declared dependencies, resolved against the installed environment."""

    def __init__(
        self,
        project_root: str | Path = ".",
        groups: list[str] | None = None,
        ignore: list[str] | None = None,
    ):
        self.project_root = Path(project_root)
        self.groups = groups or []
        self.ignore = {canonical_name(name) for name in ignore or []}
        self.missing: list[str] = []
        self._project_name: str | None = None
        self._distributions: dict[str, metadata.Distribution] = {}

    def declared(self) -> list[Requirement]:
        """Requirements the project declares directly."""
        pyproject = self.project_root / PYPROJECT_FILE
        if pyproject.is_file():
            return self._from_pyproject(pyproject)

        requirements = self.project_root / REQUIREMENTS_FILE
        if requirements.is_file():
            return self._from_requirements(requirements)

        raise ManifestError(
            f"No {PYPROJECT_FILE} or {REQUIREMENTS_FILE} found in {self.project_root}"
        )

    def resolve(self) -> list[PackageRef]:
        """Every installed distribution the declared requirements pull in, with its version."""
        self.missing = []
        refs: dict[str, PackageRef] = {}
        seen: set[tuple[str, frozenset[str]]] = set()
        queue = [req for req in self.declared() if req.extra_only is None]
        top_level = {req.name for req in queue}

        while queue:
            req = queue.pop(0)
            key = (req.name, frozenset(req.extras))
            if key in seen or self._skipped(req.name):
                continue
            seen.add(key)

            dist = self.distribution(req.name)
            if dist is None:
                if req.name in top_level:
                    self.missing.append(req.name)
                logger.debug("%s is not installed, skipping", req.name)
                continue

            refs[req.name] = PackageRef(req.name, dist.version)
            for line in dist.requires or []:
                child = parse_requirement(line)
                if child is None:
                    continue
                extra = child.extra_only
                if extra is not None and canonical_name(extra) not in req.extras:
                    continue
                queue.append(child)

        return sorted(refs.values())

    def distribution(self, name: str) -> metadata.Distribution | None:
        name = canonical_name(name)
        if name not in self._distributions:
            try:
                self._distributions[name] = metadata.distribution(name)
            except metadata.PackageNotFoundError:
                return None
        return self._distributions[name]

    def top_level_modules(self, name: str) -> list[str]:
        """Importable top-level module names a distribution provides."""
        dist = self.distribution(name)
        if dist is None:
            return []

        top_level = dist.read_text("top_level.txt")
        if top_level:
            modules = [line.strip() for line in top_level.splitlines()]
        else:
            modules = [
                module
                for module, owners in _packages_distributions().items()
                if name in {canonical_name(owner) for owner in owners}
            ]
        return sorted(m for m in modules if m and "/" not in m and m.isidentifier())

    def require_all(self, loader: ModuleLoader | None = None) -> RequireOutcome:
        """Import every resolved distribution's top-level modules, failing soft."""
        loader = loader or ModuleLoader()
        outcome = RequireOutcome()
        for ref in self.resolve():
            outcome.merge(loader.require_all(self.top_level_modules(ref.name)))
        return outcome

    def _skipped(self, name: str) -> bool:
        return (
            name in IGNORED_PACKAGES
            or name in self.ignore
            or name == self._project_name
            or is_stub_only(name)
        )

    def _from_pyproject(self, path: Path) -> list[Requirement]:
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ManifestError(f"Invalid {path}: {e}") from e

        project = data.get("project", {})
        if project.get("name"):
            self._project_name = canonical_name(project["name"])

        lines = list(project.get("dependencies", []))
        optional = project.get("optional-dependencies", {})
        for group in self.groups:
            if group not in optional:
                raise ManifestError(f"Unknown dependency group '{group}' in {path}")
            lines.extend(optional[group])

        return [req for req in map(parse_requirement, lines) if req is not None]

    def _from_requirements(self, path: Path) -> list[Requirement]:
        requirements = []
        for raw in path.read_text(encoding="utf-8").splitlines():
            line = raw.split("#", 1)[0].strip()
            if not line or line.startswith(("-", ".", "/")) or _URL_RE.match(line):
                continue
            req = parse_requirement(line)
            if req is not None:
                requirements.append(req)
        return requirements


_PACKAGES_DISTRIBUTIONS: dict[str, list[str]] | None = None


def _packages_distributions() -> dict[str, list[str]]:
    global _PACKAGES_DISTRIBUTIONS
    if _PACKAGES_DISTRIBUTIONS is None:
        _PACKAGES_DISTRIBUTIONS = metadata.packages_distributions()
    return _PACKAGES_DISTRIBUTIONS

"""Module sources -- the primary application and the engines nested in it.

An engine is a sub-application installed alongside the host application (a
Django app config living outside the project, for instance). Engines are
discovered once per bootstrap and held in an explicit registry.
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

# Directories never descended into when collecting module files
SKIP_DIRS = {"__pycache__"}

# Path components that mark an installed (not project-owned) location
INSTALL_DIRS = {"site-packages", "dist-packages"}


class ModuleSource(ABC):
    """Something with a root directory and a set of paths to eager load."""

    name: str
    abstract: bool = False

    @abstractmethod
    def root(self) -> Path | None: ...

    @abstractmethod
    def eager_load_paths(self) -> list[Path]: ...


@dataclass
class PrimaryApplication(ModuleSource):
    """The host application the project itself defines."""

    name: str
    root_path: Path
    paths: list[Path] = field(default_factory=list)

    def root(self) -> Path:
        return self.root_path

    def eager_load_paths(self) -> list[Path]:
        return list(self.paths)


@dataclass
class Engine(ModuleSource):
    """A sub-application whose modules are loaded separately from the host."""

    name: str
    root_path: Path | None = None
    paths: list[Path] | None = None
    abstract: bool = False

    def root(self) -> Path | None:
        return self.root_path

    def eager_load_paths(self) -> list[Path]:
        if self.paths is not None:
            return list(self.paths)
        return [self.root_path] if self.root_path is not None else []


def module_files(source: ModuleSource) -> list[Path]:
    """Every ``.py`` file under the source's eager-load paths, sorted."""
    files: set[Path] = set()
    for load_path in source.eager_load_paths():
        if not load_path.is_dir():
            continue
        for item in load_path.rglob("*.py"):
            if item.is_file() and not SKIP_DIRS.intersection(item.parts):
                files.add(item)
    return sorted(files, key=str)


def in_project(path: Path, project_root: Path) -> bool:
    """True when ``path`` belongs to the project rather than an installed package."""
    path = path.absolute()
    project_root = project_root.absolute()
    if not path.is_relative_to(project_root):
        return False
    relative = path.relative_to(project_root)
    return not INSTALL_DIRS.intersection(relative.parts)


def django_app_configs() -> list | None:
    """Installed Django app configs, or None when Django's app registry is not loaded."""
    apps_module = sys.modules.get("django.apps")
    registry = getattr(apps_module, "apps", None)
    if registry is None or not getattr(registry, "ready", False):
        return None
    return list(registry.get_app_configs())


def engine_from_app_config(config) -> Engine:
    path = getattr(config, "path", None)
    return Engine(
        name=config.name,
        root_path=Path(path) if path else None,
        abstract=not path,
    )


def primary_application(project_root: str | Path) -> PrimaryApplication:
    """The project's own application, built from the app configs it owns."""
    project_root = Path(project_root).absolute()
    app = PrimaryApplication(name=project_root.name, root_path=project_root)
    for config in django_app_configs() or []:
        path = getattr(config, "path", None)
        if path and in_project(Path(path), project_root):
            app.paths.append(Path(path))
    return app


class EngineRegistry:
    """Engines to eager load, populated by :meth:`discover` or by hand."""

    def __init__(self) -> None:
        self._engines: dict[str, Engine] = {}

    @property
    def engines(self) -> list[Engine]:
        return [self._engines[name] for name in sorted(self._engines)]

    def register(self, engine: Engine) -> None:
        self._engines[engine.name] = engine

    def discover(self, project_root: str | Path) -> list[Engine]:
        """Register every installed engine that is concrete and not the project itself.

        Does nothing when the host framework's engine registry is absent.
        """
        project_root = Path(project_root)
        configs = django_app_configs()
        if configs is None:
            return []

        found = []
        for config in configs:
            engine = engine_from_app_config(config)
            if engine.abstract:
                continue
            if in_project(engine.root_path, project_root):
                continue
            self.register(engine)
            found.append(engine)
        return found

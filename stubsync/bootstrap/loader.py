"""Module loading -- bring single files and packages into the running interpreter."""

from __future__ import annotations

import hashlib
import importlib
import importlib.util
import logging
import pkgutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType

logger = logging.getLogger(__name__)


@dataclass
class LoadOutcome:
    """What happened to each file handed to :func:`load_with_retry`."""

    loaded: list[Path] = field(default_factory=list)
    retried: list[Path] = field(default_factory=list)  # failed once, loaded on the second pass
    failed: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class RequireOutcome:
    """Modules imported by name, and the error message for each one that was not."""

    loaded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    def merge(self, other: RequireOutcome) -> None:
        self.loaded.extend(other.loaded)
        self.failed.update(other.failed)


class ModuleLoader:
    """Loads files and modules, remembering what it already brought in.

    A file that lives under a ``sys.path`` entry is imported by its dotted
    module name so it ends up in ``sys.modules`` exactly once, however it was
    reached. Any other file is executed under a synthetic module name.
    """

    def __init__(self) -> None:
        self._loaded: dict[Path, ModuleType] = {}

    @property
    def loaded_files(self) -> list[Path]:
        return sorted(self._loaded)

    def load(self, path: str | Path) -> bool:
        """Load one ``.py`` file.

        Returns False when the file does not exist. Errors raised by the file
        itself propagate to the caller.
        """
        path = Path(path).absolute()
        if not path.is_file():
            return False
        if path in self._loaded:
            return True

        module_name = module_name_for(path)
        if module_name is None:
            module = self._exec_file(path)
        else:
            existing = sys.modules.get(module_name)
            if existing is not None and _same_file(existing, path):
                module = existing
            else:
                module = importlib.import_module(module_name)

        self._loaded[path] = module
        return True

    def require(self, module_name: str) -> ModuleType:
        return importlib.import_module(module_name)

    def safe_require(self, module_name: str) -> ModuleType | None:
        """Import a module, or return None when it cannot be found."""
        try:
            return importlib.import_module(module_name)
        except ImportError:
            return None

    def require_all(self, module_names: list[str]) -> RequireOutcome:
        """Import each module by name, recording failures instead of raising."""
        outcome = RequireOutcome()
        for name in module_names:
            try:
                self.require(name)
            except Exception as e:  # noqa: BLE001
                logger.debug("Could not import %s: %s", name, e)
                outcome.failed[name] = str(e)
            else:
                outcome.loaded.append(name)
        return outcome

    def require_tree(self, package_name: str) -> RequireOutcome:
        """Import a package and every submodule below it.

        Submodules that fail to import are recorded and do not stop the walk.
        The package itself must import.
        """
        outcome = RequireOutcome()
        package = self.require(package_name)
        outcome.loaded.append(package_name)

        search_path = getattr(package, "__path__", None)
        if search_path is None:
            return outcome

        def _walk_error(name: str) -> None:
            outcome.failed.setdefault(name, "could not be walked")

        names = [
            info.name
            for info in pkgutil.walk_packages(search_path, prefix=f"{package_name}.", onerror=_walk_error)
        ]
        outcome.merge(self.require_all(names))
        return outcome

    def _exec_file(self, path: Path) -> ModuleType:
        digest = hashlib.sha1(str(path).encode()).hexdigest()[:12]
        name = f"_stubsync_file_{path.stem}_{digest}"
        spec = importlib.util.spec_from_file_location(name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(name, None)
            raise
        return module


def load_with_retry(loader: ModuleLoader, files: list[Path]) -> LoadOutcome:
    """Load every file, then retry the ones that failed exactly once.

    Files often fail only because they reference a module that sorts after
    them; a second pass picks those up. Whatever fails twice is dropped.
    """
    outcome = LoadOutcome()
    errored: list[Path] = []

    for file in files:
        try:
            if loader.load(file):
                outcome.loaded.append(file)
        except Exception as e:  # noqa: BLE001
            logger.debug("Deferring %s: %s", file, e)
            errored.append(file)

    for file in errored:
        try:
            if loader.load(file):
                outcome.retried.append(file)
        except Exception as e:  # noqa: BLE001
            logger.debug("Skipping %s after second attempt: %s", file, e)
            outcome.failed.append(file)

    return outcome


def module_name_for(path: Path) -> str | None:
    """Dotted module name for a file under ``sys.path``, or None.

    The deepest matching ``sys.path`` entry wins, so files in a virtualenv
    inside the project resolve against site-packages rather than the project.
    """
    path = path.absolute()
    candidates = []
    for entry in sys.path:
        base = Path(entry or ".").absolute()
        try:
            relative = path.relative_to(base)
        except ValueError:
            continue
        candidates.append((len(base.parts), relative))

    for _, relative in sorted(candidates, reverse=True):
        parts = list(relative.with_suffix("").parts)
        if parts and parts[-1] == "__init__":
            parts.pop()
        if parts and all(part.isidentifier() for part in parts):
            return ".".join(parts)
    return None


def _same_file(module: ModuleType, path: Path) -> bool:
    origin = getattr(module, "__file__", None)
    if not origin:
        return False
    return Path(origin).absolute() == path

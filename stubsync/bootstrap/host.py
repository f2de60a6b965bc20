"""Host application loading and eager loading.

The host application is a Django project, recognized by its ``manage.py``.
Everything here is best-effort: a project that cannot be loaded still gets
stubs for whatever its dependencies define.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import sys
import warnings
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType

from rich.console import Console

from stubsync.bootstrap.loader import LoadOutcome, ModuleLoader, RequireOutcome, load_with_retry
from stubsync.bootstrap.sources import django_app_configs, module_files, primary_application
from stubsync.console import say

logger = logging.getLogger(__name__)

DESCRIPTOR_FILE = "manage.py"
SETTINGS_ENV_VAR = "DJANGO_SETTINGS_MODULE"

# Submodules Django projects conventionally register things from
AUTODISCOVER_MODULES = ("apps", "models", "admin", "signals", "views", "urls")

_SETTINGS_RE = re.compile(
    r"""DJANGO_SETTINGS_MODULE["']\s*,\s*["'](?P<module>[A-Za-z_][\w.]*)["']"""
)


@dataclass
class HostApplication:
    """A host application that loaded successfully."""

    root: Path
    settings_module: str
    environment_loaded: bool

    @property
    def settings(self) -> ModuleType | None:
        return sys.modules.get(self.settings_module)


def find_settings_module(app_root: str | Path) -> str | None:
    """The settings module named by the environment, else by ``manage.py``."""
    from_env = os.environ.get(SETTINGS_ENV_VAR)
    if from_env:
        return from_env

    descriptor = Path(app_root) / DESCRIPTOR_FILE
    if not descriptor.is_file():
        return None
    match = _SETTINGS_RE.search(descriptor.read_text(errors="replace"))
    return match.group("module") if match else None


@contextlib.contextmanager
def silenced_deprecations(enabled: bool = True) -> Iterator[None]:
    """Hide deprecation warnings for the duration of the block.

    The previous warning filters are restored on exit.
    """
    with warnings.catch_warnings():
        if enabled:
            warnings.simplefilter("ignore", DeprecationWarning)
            warnings.simplefilter("ignore", PendingDeprecationWarning)
            deprecation = sys.modules.get("django.utils.deprecation")
            for name in dir(deprecation) if deprecation is not None else ():
                category = getattr(deprecation, name)
                if name.startswith("RemovedIn") and isinstance(category, type) and issubclass(category, Warning):
                    warnings.simplefilter("ignore", category)
        yield


def load_host_application(
    app_root: str | Path = ".",
    loader: ModuleLoader | None = None,
    environment_load: bool = False,
    out: Console | None = None,
) -> HostApplication | None:
    """Load the host application if the project has one.

    With ``environment_load`` the full framework environment is set up
    (``django.setup()``); otherwise only the settings module is imported.
    Failures print a warning and return None.
    """
    app_root = Path(app_root)
    if not (app_root / DESCRIPTOR_FILE).is_file():
        return None

    loader = loader or ModuleLoader()
    try:
        return _load(app_root, loader, environment_load)
    except Exception as e:  # noqa: BLE001
        say(
            "stubsync attempted to load the host application after finding a "
            f"`{DESCRIPTOR_FILE}` file, but it failed. If your project uses Django please "
            "ensure it can be loaded correctly before generating stubs.\n"
            f"{type(e).__name__}: {e}",
            style="yellow",
            out=out,
        )
        say("Continuing stub generation without loading the host application.", out=out)
        return None


def _load(app_root: Path, loader: ModuleLoader, environment_load: bool) -> HostApplication:
    settings_module = find_settings_module(app_root)
    if settings_module is None:
        raise ImportError(f"No {SETTINGS_ENV_VAR} found in the environment or {DESCRIPTOR_FILE}")

    root = str(app_root.absolute())
    if root not in sys.path:
        sys.path.insert(0, root)
    os.environ.setdefault(SETTINGS_ENV_VAR, settings_module)

    if environment_load:
        django = loader.require("django")
        django.setup()
    else:
        loader.require(settings_module)

    return HostApplication(
        root=app_root.absolute(),
        settings_module=settings_module,
        environment_loaded=environment_load,
    )


def eager_load(app: HostApplication, loader: ModuleLoader | None = None) -> list[str]:
    """Force every lazily loaded module of the host application in.

    Each strategy runs only when the capability it needs is present, and all
    applicable strategies run. Returns the names of the strategies that ran.
    """
    loader = loader or ModuleLoader()
    ran = []

    django = sys.modules.get("django")
    if django is not None and callable(getattr(django, "setup", None)) and django_app_configs() is None:
        ran.append("before_eager_load")
        _attempt("before_eager_load", django.setup)

    module_loading = loader.safe_require("django.utils.module_loading") if django is not None else None
    autodiscover = getattr(module_loading, "autodiscover_modules", None)
    if callable(autodiscover):
        ran.append("autodiscover")
        _attempt("autodiscover", autodiscover, *AUTODISCOVER_MODULES)

    primary = primary_application(app.root)
    files = module_files(primary)
    if files:
        ran.append("app_files")
        _attempt("app_files", _load_files, loader, files)

    namespaces = getattr(app.settings, "EAGER_LOAD_NAMESPACES", None)
    if namespaces:
        ran.append("namespaces")
        _attempt("namespaces", _require_packages, loader, list(namespaces))

    return ran


def _load_files(loader: ModuleLoader, files: list[Path]) -> LoadOutcome:
    outcome = load_with_retry(loader, files)
    for file in outcome.failed:
        logger.debug("Eager load skipped %s", file)
    return outcome


def _require_packages(loader: ModuleLoader, packages: list[str]) -> RequireOutcome:
    outcome = RequireOutcome()
    for package in packages:
        try:
            outcome.merge(loader.require_tree(package))
        except Exception as e:  # noqa: BLE001
            outcome.failed[package] = str(e)
    for name, message in outcome.failed.items():
        logger.debug("Eager load skipped %s: %s", name, message)
    return outcome


def _attempt(strategy: str, func, *args) -> None:
    try:
        func(*args)
    except Exception as e:  # noqa: BLE001
        logger.debug("Eager load strategy %s failed: %s", strategy, e)

"""Environment bootstrapper -- load the host application and every dependency.

The stub compiler works by reflection, so everything it should see has to be
imported first. Loading is best-effort throughout: the compiler can still run
against whatever did load.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from rich.console import Console

from stubsync.bootstrap.host import (
    HostApplication,
    eager_load,
    load_host_application,
    silenced_deprecations,
)
from stubsync.bootstrap.loader import LoadOutcome, ModuleLoader, RequireOutcome, load_with_retry
from stubsync.bootstrap.sources import EngineRegistry, module_files

logger = logging.getLogger(__name__)


class DependencySet(Protocol):
    def require_all(self, loader: ModuleLoader | None = None) -> RequireOutcome: ...


@dataclass
class BootstrapOptions:
    """Everything one bootstrap call needs; nothing here outlives the call."""

    app_root: Path = field(default_factory=lambda: Path("."))
    pre_init_file: str | None = None
    post_init_file: str | None = None
    environment_load: bool = False
    eager_load: bool = True
    silence_deprecations: bool = True


@dataclass
class BootstrapResult:
    host: HostApplication | None = None
    eager_load_strategies: list[str] = field(default_factory=list)
    hook_files: list[Path] = field(default_factory=list)
    dependencies: RequireOutcome = field(default_factory=RequireOutcome)
    engines: dict[str, LoadOutcome] = field(default_factory=dict)


class EnvironmentBootstrapper:
    """Brings the host application and its dependencies into this process."""

    def __init__(
        self,
        dependencies: DependencySet | None = None,
        loader: ModuleLoader | None = None,
        registry: EngineRegistry | None = None,
        out: Console | None = None,
    ):
        self.dependencies = dependencies
        self.loader = loader or ModuleLoader()
        self.registry = registry or EngineRegistry()
        self.out = out

    def bootstrap(self, options: BootstrapOptions | None = None) -> BootstrapResult:
        options = options or BootstrapOptions()
        result = BootstrapResult()

        self._load_hook_file(options.pre_init_file, result)

        with silenced_deprecations(options.silence_deprecations):
            result.host = load_host_application(
                options.app_root,
                loader=self.loader,
                environment_load=options.environment_load,
                out=self.out,
            )
            if options.eager_load and result.host is not None:
                result.eager_load_strategies = eager_load(result.host, self.loader)

        if self.dependencies is not None:
            result.dependencies = self.dependencies.require_all(self.loader)

        self._load_hook_file(options.post_init_file, result)

        self.registry.discover(options.app_root)
        for engine in self.registry.engines:
            result.engines[engine.name] = load_with_retry(self.loader, module_files(engine))

        return result

    def _load_hook_file(self, file: str | None, result: BootstrapResult) -> None:
        if not file:
            return
        path = Path(file).absolute()
        try:
            if self.loader.load(path):
                result.hook_files.append(path)
        except Exception as e:  # noqa: BLE001
            logger.warning("Could not load %s: %s", path, e)

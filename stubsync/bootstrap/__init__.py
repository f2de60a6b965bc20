"""Bootstrap -- load the host application, its engines, and its dependencies.

Every failure here is recoverable: it is logged and the run continues with
whatever did load.
"""

from stubsync.bootstrap.environment import (
    BootstrapOptions,
    BootstrapResult,
    EnvironmentBootstrapper,
)
from stubsync.bootstrap.loader import LoadOutcome, ModuleLoader, RequireOutcome, load_with_retry
from stubsync.bootstrap.sources import Engine, EngineRegistry, ModuleSource, PrimaryApplication

__all__ = [
    "BootstrapOptions",
    "BootstrapResult",
    "Engine",
    "EngineRegistry",
    "EnvironmentBootstrapper",
    "LoadOutcome",
    "ModuleLoader",
    "ModuleSource",
    "PrimaryApplication",
    "RequireOutcome",
    "load_with_retry",
]

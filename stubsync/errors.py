"""Exception hierarchy for stubsync."""

from __future__ import annotations


class StubsyncError(Exception):
    """Base class for every error stubsync raises on purpose."""


class ConfigError(StubsyncError):
    """The configuration file or a CLI override is invalid."""


class ManifestError(StubsyncError):
    """The dependency manifest could not be read."""


class DuplicatePackageError(StubsyncError):
    """Two desired packages share a name."""

    def __init__(self, name: str, versions: list[str]):
        self.name = name
        self.versions = versions
        super().__init__(
            f"Package '{name}' is declared more than once ({', '.join(versions)})"
        )


class CompileError(StubsyncError):
    """The stub compiler could not produce content for a package."""

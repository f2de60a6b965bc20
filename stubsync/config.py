"""Configuration -- ``stubsync.yml`` plus command-line overrides."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

from stubsync.artifacts.envelope import DEFAULT_STRICTNESS, VALID_STRICTNESS
from stubsync.errors import ConfigError

DEFAULT_CONFIG_FILE = "stubsync.yml"
DEFAULT_OUTDIR = "typings/packages"

_CONFIG_TEMPLATE = """\
# stubsync configuration. Command-line options override these values.

# Where the <package>@<version>.pyi files live
outdir: {outdir}

# Packages that never get a stub file
exclude: []

# Optional dependency groups from pyproject.toml to include
groups: []

# Files loaded before and after the dependencies are imported
prerequire: null
postrequire: null

# Host application loading
environment_load: false
eager_load: true

file_header: true
strictness: {strictness}
jobs: 1
"""


@dataclass
class SyncConfig:
    """Settings for one stubsync run."""

    outdir: str = DEFAULT_OUTDIR
    exclude: list[str] = field(default_factory=list)
    ignore: list[str] = field(default_factory=list)
    groups: list[str] = field(default_factory=list)
    file_header: bool = True
    strictness: str = DEFAULT_STRICTNESS
    prerequire: str | None = None
    postrequire: str | None = None
    environment_load: bool = False
    eager_load: bool = True
    jobs: int = 1

    def merged(self, **overrides) -> SyncConfig:
        """A copy with every override that is not None applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        config = replace(self, **{k: v for k, v in overrides.items() if v is not None})
        config.validate()
        return config

    def validate(self) -> None:
        if self.strictness not in VALID_STRICTNESS:
            raise ConfigError(
                f"Invalid strictness '{self.strictness}'. Must be one of: {sorted(VALID_STRICTNESS)}"
            )
        if self.jobs < 1:
            raise ConfigError(f"jobs must be at least 1, got {self.jobs}")


# Expected type for each key, checked when reading YAML
_FIELD_TYPES: dict[str, tuple[type, ...]] = {
    "outdir": (str,),
    "exclude": (list,),
    "ignore": (list,),
    "groups": (list,),
    "file_header": (bool,),
    "strictness": (str,),
    "prerequire": (str, type(None)),
    "postrequire": (str, type(None)),
    "environment_load": (bool,),
    "eager_load": (bool,),
    "jobs": (int,),
}


def load_config(path: str | Path = DEFAULT_CONFIG_FILE) -> SyncConfig:
    """Load a config file. A missing file yields the defaults."""
    path = Path(path)
    if not path.exists():
        return SyncConfig()

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return SyncConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping of settings")

    values = {}
    for key, value in data.items():
        expected = _FIELD_TYPES.get(key)
        if expected is None:
            raise ConfigError(f"Unknown key '{key}' in {path}")
        # bool is an int subclass; jobs: true is a mistake
        if not isinstance(value, expected) or (key == "jobs" and isinstance(value, bool)):
            names = " or ".join(t.__name__ for t in expected)
            raise ConfigError(f"'{key}' in {path} must be {names}, got {type(value).__name__}")
        if isinstance(value, list):
            value = [str(item) for item in value]
        values[key] = value

    config = SyncConfig(**values)
    config.validate()
    return config


def write_default_config(path: str | Path = DEFAULT_CONFIG_FILE) -> bool:
    """Write a starter config. Returns False if one already exists."""
    path = Path(path)
    if path.exists():
        return False
    path.write_text(
        _CONFIG_TEMPLATE.format(outdir=DEFAULT_OUTDIR, strictness=DEFAULT_STRICTNESS),
        encoding="utf-8",
    )
    return True

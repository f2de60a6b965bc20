import logging
import sys
import types
from typing import Iterator

import pytest

FIXTURE_PREFIXES = ("stubsync_fixture", "mysite_fixture", "engine_fixture", "_stubsync_file_")


@pytest.fixture(autouse=True)
def _purge_fixture_modules() -> Iterator[None]:
    """
    Loader and bootstrap tests import throwaway packages written to tmp_path.
    Drop them afterwards so the next test imports its own copy.
    """
    yield

    for name in list(sys.modules):
        if name.startswith(FIXTURE_PREFIXES):
            sys.modules.pop(name, None)


@pytest.fixture(autouse=True)
def _isolate_sys_path(monkeypatch) -> None:
    monkeypatch.setattr(sys, "path", list(sys.path))


@pytest.fixture
def calls(monkeypatch) -> list:
    """A list fixture files append to, importable as ``stubsync_fixture_calls``."""
    module = types.ModuleType("stubsync_fixture_calls")
    module.calls = []
    module.shared = {}
    monkeypatch.setitem(sys.modules, "stubsync_fixture_calls", module)
    return module.calls


@pytest.fixture
def stubsync_logs(monkeypatch, caplog):
    """caplog for the ``stubsync`` logger, even after the CLI turned propagation off."""
    monkeypatch.setattr(logging.getLogger("stubsync"), "propagate", True)
    caplog.set_level(logging.DEBUG, logger="stubsync")
    return caplog

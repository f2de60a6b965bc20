"""Tests for the module loader and the two-pass load_with_retry."""

import sys
from pathlib import Path

import pytest

from stubsync.bootstrap.loader import ModuleLoader, load_with_retry, module_name_for


def _write(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def _package(root: Path, name: str, modules: dict) -> Path:
    package = root / name
    _write(package / "__init__.py")
    for module, text in modules.items():
        _write(package / f"{module}.py", text)
    return package


# --- Single File Tests ---


def test_load_missing_file_returns_false(tmp_path):
    assert ModuleLoader().load(tmp_path / "nope.py") is False


def test_load_runs_file_once(tmp_path, calls):
    hook = _write(
        tmp_path / "hook.py",
        "import stubsync_fixture_calls\nstubsync_fixture_calls.calls.append('hook')\n",
    )
    loader = ModuleLoader()

    assert loader.load(hook) is True
    assert loader.load(str(hook)) is True
    assert calls == ["hook"]
    assert loader.loaded_files == [hook.absolute()]


def test_load_propagates_errors_from_the_file(tmp_path):
    broken = _write(tmp_path / "broken.py", "raise RuntimeError('boom')\n")
    loader = ModuleLoader()

    with pytest.raises(RuntimeError, match="boom"):
        loader.load(broken)
    assert loader.loaded_files == []
    assert not any(name.startswith("_stubsync_file_broken") for name in sys.modules)


def test_load_imports_files_on_sys_path_by_module_name(tmp_path, monkeypatch):
    _package(tmp_path, "stubsync_fixture_pkg", {"mod": "VALUE = 1\n"})
    monkeypatch.syspath_prepend(str(tmp_path))

    loader = ModuleLoader()
    assert loader.load(tmp_path / "stubsync_fixture_pkg" / "mod.py")

    assert sys.modules["stubsync_fixture_pkg.mod"].VALUE == 1


def test_module_name_for(tmp_path, monkeypatch):
    monkeypatch.syspath_prepend(str(tmp_path))

    assert module_name_for(tmp_path / "stubsync_fixture_pkg" / "mod.py") == "stubsync_fixture_pkg.mod"
    assert module_name_for(tmp_path / "stubsync_fixture_pkg" / "__init__.py") == "stubsync_fixture_pkg"
    assert module_name_for(tmp_path / "not-a-module" / "mod.py") is None


def test_module_name_for_prefers_deepest_path_entry(tmp_path, monkeypatch):
    site = tmp_path / "venv" / "lib"
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.syspath_prepend(str(site))

    assert module_name_for(site / "requests" / "api.py") == "requests.api"


# --- Module Tests ---


def test_safe_require_missing_module():
    assert ModuleLoader().safe_require("stubsync_fixture_does_not_exist") is None


def test_require_all_records_failures(tmp_path, monkeypatch):
    _package(tmp_path, "stubsync_fixture_pkg", {"good": "", "bad": "raise ValueError('nope')\n"})
    monkeypatch.syspath_prepend(str(tmp_path))

    outcome = ModuleLoader().require_all(
        ["stubsync_fixture_pkg.good", "stubsync_fixture_pkg.bad", "stubsync_fixture_missing"]
    )

    assert outcome.loaded == ["stubsync_fixture_pkg.good"]
    assert set(outcome.failed) == {"stubsync_fixture_pkg.bad", "stubsync_fixture_missing"}
    assert outcome.failed["stubsync_fixture_pkg.bad"] == "nope"


def test_require_tree_walks_subpackages(tmp_path, monkeypatch):
    package = _package(tmp_path, "stubsync_fixture_tree", {"models": "", "broken": "1 / 0\n"})
    _package(package, "services", {"billing": ""})
    monkeypatch.syspath_prepend(str(tmp_path))

    outcome = ModuleLoader().require_tree("stubsync_fixture_tree")

    assert "stubsync_fixture_tree" in outcome.loaded
    assert "stubsync_fixture_tree.models" in outcome.loaded
    assert "stubsync_fixture_tree.services.billing" in outcome.loaded
    assert list(outcome.failed) == ["stubsync_fixture_tree.broken"]
    assert "stubsync_fixture_tree.services.billing" in sys.modules


# --- Retry Tests ---


def test_load_with_retry_picks_up_forward_references(tmp_path, calls):
    # a.py needs something b.py sets up, but sorts first
    a = _write(
        tmp_path / "a.py",
        "import stubsync_fixture_calls as c\nc.calls.append('a:' + c.shared['b'])\n",
    )
    b = _write(
        tmp_path / "b.py",
        "import stubsync_fixture_calls as c\nc.shared['b'] = 'ready'\nc.calls.append('b')\n",
    )
    c = _write(tmp_path / "c.py", "raise ImportError('never loads')\n")

    outcome = load_with_retry(ModuleLoader(), [a, b, c])

    assert outcome.loaded == [b]
    assert outcome.retried == [a]
    assert outcome.failed == [c]
    assert not outcome.ok
    assert calls == ["b", "a:ready"]


def test_load_with_retry_all_good(tmp_path):
    files = [_write(tmp_path / f"m{i}.py", f"X = {i}\n") for i in range(3)]

    outcome = load_with_retry(ModuleLoader(), files)

    assert outcome.loaded == files
    assert outcome.retried == []
    assert outcome.ok


def test_load_with_retry_skips_missing_files(tmp_path):
    outcome = load_with_retry(ModuleLoader(), [tmp_path / "gone.py"])
    assert outcome.loaded == [] and outcome.failed == []

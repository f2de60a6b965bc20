"""Tests for the reflection stub compiler."""

import importlib

import pytest

from stubsync.artifacts.models import PackageRef
from stubsync.compiler import (
    EMPTY,
    ReflectionCompiler,
    public_members,
    render_module,
    render_signature,
)
from stubsync.errors import CompileError

FIXTURE_API = '''\
"""A small client library."""
import os

__version__ = "1.0"
MAX_RETRIES = 3
default_timeout = 10.0


def fetch(url: str, timeout: float = 10.0, *, retries: int = 3) -> bytes:
    return b""


async def stream(url, *chunks, **options):
    pass


def _private():
    pass


class Client:
    def __init__(self, base_url: str) -> None:
        self.base_url = base_url

    def get(self, path: str) -> dict:
        return {}

    @staticmethod
    def default() -> "Client":
        return Client("")

    @classmethod
    def from_env(cls):
        return cls("")

    @property
    def host(self) -> str:
        return ""

    def _cache(self):
        pass


class Error(Exception):
    pass
'''


class FakeManifest:
    def __init__(self, modules):
        self.modules = modules

    def top_level_modules(self, name):
        return self.modules.get(name, [])


@pytest.fixture
def fixture_api(tmp_path, monkeypatch):
    (tmp_path / "stubsync_fixture_api.py").write_text(FIXTURE_API)
    (tmp_path / "stubsync_fixture_quiet.py").write_text("import os\n_hidden = 1\n")
    (tmp_path / "stubsync_fixture_broken.py").write_text("raise ImportError('needs a database')\n")
    monkeypatch.syspath_prepend(str(tmp_path))
    return importlib.import_module("stubsync_fixture_api")


# --- Signature Tests ---


def test_signature_elides_defaults():
    def f(a, b=1, /, c=2, *, d, e: int = 5): ...

    assert render_signature(f) == "(a, b=..., /, c=..., *, d, e: int = ...)"


def test_signature_with_varargs_has_no_bare_star():
    def f(*args, key=None, **kwargs) -> None: ...

    assert render_signature(f) == "(*args, key=..., **kwargs) -> None"


def test_signature_of_uninspectable_callable():
    assert render_signature(object()) == "(*args, **kwargs)"


# --- Module Rendering Tests ---


def test_public_members_skip_private_and_imported(fixture_api):
    names = [name for name, _ in public_members(fixture_api)]
    assert names == ["Client", "Error", "MAX_RETRIES", "default_timeout", "fetch", "os", "stream"]


def test_public_members_honour_dunder_all(fixture_api, monkeypatch):
    monkeypatch.setattr(fixture_api, "__all__", ["fetch", "_private"], raising=False)
    names = [name for name, _ in public_members(fixture_api)]
    assert names == ["_private", "fetch"]


def test_render_module(fixture_api):
    text = render_module(fixture_api)
    lines = text.splitlines()

    assert lines[0] == "# module: stubsync_fixture_api"
    assert "def fetch(url: str, timeout: float = ..., *, retries: int = ...) -> bytes: ..." in lines
    assert "async def stream(url, *chunks, **options): ..." in lines
    assert "MAX_RETRIES: int" in lines
    assert "class Error(Exception):" in lines
    assert "default_timeout" not in text
    assert "_private" not in text
    assert "_cache" not in text
    assert "os" not in lines

    client = lines.index("class Client:")
    assert lines[client + 1 : client + 9] == [
        "    def __init__(self, base_url: str) -> None: ...",
        "    @staticmethod",
        "    def default() -> Client: ...",
        "    @classmethod",
        "    def from_env(cls): ...",
        "    def get(self, path: str) -> dict: ...",
        "    @property",
        "    def host(self) -> str: ...",
    ]


# --- Compiler Tests ---


def test_compile_renders_every_top_level_module(fixture_api):
    compiler = ReflectionCompiler(
        FakeManifest({"fixture-api": ["stubsync_fixture_api", "stubsync_fixture_broken"]})
    )

    text = compiler.compile(PackageRef("fixture-api", "1.0"))

    assert text.startswith("# module: stubsync_fixture_api")
    assert "stubsync_fixture_broken" not in text


def test_compile_with_nothing_public_is_empty(fixture_api):
    compiler = ReflectionCompiler(FakeManifest({"quiet": ["stubsync_fixture_quiet"]}))
    assert compiler.compile(PackageRef("quiet", "0.1")) == EMPTY


def test_compile_fails_when_nothing_imports(fixture_api):
    compiler = ReflectionCompiler(FakeManifest({"broken": ["stubsync_fixture_broken"]}))

    with pytest.raises(CompileError, match="needs a database"):
        compiler.compile(PackageRef("broken", "0.1"))


def test_compile_package_without_modules_is_empty():
    compiler = ReflectionCompiler(FakeManifest({}))
    assert compiler.compile(PackageRef("data-only", "1.0")) == EMPTY

"""Tests for manifest parsing and resolution against the installed environment."""

from importlib import metadata
from pathlib import Path

import pytest

from stubsync.artifacts.models import PackageRef
from stubsync.bootstrap.loader import ModuleLoader
from stubsync.errors import ManifestError
from stubsync.manifest import Manifest, canonical_name, is_stub_only, parse_requirement


def _pyproject(root: Path, dependencies, optional=None, name="mysite") -> Path:
    lines = ["[project]", f'name = "{name}"', "dependencies = ["]
    lines += [f'    "{dep}",' for dep in dependencies]
    lines.append("]")
    if optional:
        lines.append("")
        lines.append("[project.optional-dependencies]")
        for group, deps in optional.items():
            lines.append(f"{group} = [{', '.join(repr(d) for d in deps)}]")
    (root / "pyproject.toml").write_text("\n".join(lines) + "\n")
    return root


def _names(refs):
    return [ref.name for ref in refs]


# --- Requirement Parsing Tests ---


def test_canonical_name():
    assert canonical_name("Typing_Extensions") == "typing-extensions"
    assert canonical_name("zope.interface") == "zope-interface"
    assert canonical_name("ruamel.yaml.clib") == "ruamel-yaml-clib"


def test_is_stub_only():
    assert is_stub_only("types-requests")
    assert is_stub_only("pandas-stubs")
    assert is_stub_only("Django_Stubs")
    assert not is_stub_only("requests")


def test_parse_requirement():
    req = parse_requirement("Foo_Bar[Socks, security]>=1.0; python_version > '3.8'")
    assert req.name == "foo-bar"
    assert req.extras == {"socks", "security"}
    assert req.marker == "python_version > '3.8'"
    assert req.extra_only is None


def test_parse_requirement_extra_marker():
    req = parse_requirement('PySocks!=1.5.7,>=1.5.6; extra == "socks"')
    assert req.name == "pysocks"
    assert req.extra_only == "socks"


def test_parse_requirement_rejects_garbage():
    assert parse_requirement("   ") is None


# --- Declared Dependency Tests ---


def test_declared_from_pyproject(tmp_path):
    _pyproject(tmp_path, ["click>=8.1", "rich[jupyter]"], optional={"test": ["pytest"]})

    manifest = Manifest(tmp_path)

    assert [req.name for req in manifest.declared()] == ["click", "rich"]


def test_declared_with_groups(tmp_path):
    _pyproject(tmp_path, ["click"], optional={"test": ["pytest"]})

    manifest = Manifest(tmp_path, groups=["test"])

    assert [req.name for req in manifest.declared()] == ["click", "pytest"]


def test_unknown_group_is_an_error(tmp_path):
    _pyproject(tmp_path, ["click"])
    with pytest.raises(ManifestError, match="docs"):
        Manifest(tmp_path, groups=["docs"]).declared()


def test_declared_from_requirements_txt(tmp_path):
    (tmp_path / "requirements.txt").write_text(
        "# runtime\n"
        "click>=8.1  # cli\n"
        "-e .\n"
        "-r other.txt\n"
        "./vendor/thing\n"
        "git+https://example.com/repo.git\n"
        "\n"
        "PyYAML==6.0.1\n"
    )

    assert [req.name for req in Manifest(tmp_path).declared()] == ["click", "pyyaml"]


def test_missing_manifest_is_an_error(tmp_path):
    with pytest.raises(ManifestError):
        Manifest(tmp_path).declared()


def test_invalid_pyproject_is_an_error(tmp_path):
    (tmp_path / "pyproject.toml").write_text("[project\nname = ")
    with pytest.raises(ManifestError, match="Invalid"):
        Manifest(tmp_path).declared()


# --- Resolution Tests ---


def test_resolve_reads_installed_versions(tmp_path):
    _pyproject(tmp_path, ["click>=8.1", "pyyaml"])

    refs = Manifest(tmp_path).resolve()

    assert PackageRef("click", metadata.version("click")) in refs
    assert PackageRef("pyyaml", metadata.version("PyYAML")) in refs
    assert refs == sorted(refs)


def test_resolve_follows_transitive_dependencies(tmp_path):
    (tmp_path / "requirements.txt").write_text("rich\n")

    names = _names(Manifest(tmp_path).resolve())

    assert "rich" in names
    assert "markdown-it-py" in names
    assert "pygments" in names


def test_resolve_records_missing_packages(tmp_path):
    _pyproject(tmp_path, ["click", "stubsync-fixture-not-installed>=1"])

    manifest = Manifest(tmp_path)
    names = _names(manifest.resolve())

    assert "click" in names
    assert "stubsync-fixture-not-installed" not in names
    assert manifest.missing == ["stubsync-fixture-not-installed"]


def test_resolve_skips_ignored_stub_only_and_self(tmp_path):
    _pyproject(tmp_path, ["click", "rich", "types-requests", "mypy", "mysite"], name="mysite")

    manifest = Manifest(tmp_path, ignore=["Rich"])
    names = _names(manifest.resolve())

    assert "click" in names
    assert "rich" not in names
    assert "markdown-it-py" not in names
    assert manifest.missing == []


def test_top_level_modules():
    manifest = Manifest(".")
    assert "yaml" in manifest.top_level_modules("pyyaml")
    assert manifest.top_level_modules("click") == ["click"]
    assert manifest.top_level_modules("stubsync-fixture-not-installed") == []


def test_require_all_imports_top_level_modules(tmp_path):
    _pyproject(tmp_path, ["click"])

    outcome = Manifest(tmp_path).require_all(ModuleLoader())

    assert "click" in outcome.loaded

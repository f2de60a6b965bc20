"""stubsync CLI -- keep per-package type stubs in sync with the dependency manifest."""

from __future__ import annotations

import re
from pathlib import Path
from typing import NoReturn

import click
from rich.table import Table

from stubsync import __version__
from stubsync.console import configure_logging, console, say
from stubsync.errors import StubsyncError


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, help="Config file (default: stubsync.yml)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output, including swallowed load errors")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool):
    """stubsync -- generate and sync .pyi stubs for installed packages.

    One stub file per package, named <package>@<version>.pyi, kept in line
    with the dependencies your project declares.
    """
    from stubsync.config import DEFAULT_CONFIG_FILE

    configure_logging(verbose)
    ctx.obj = {"config_path": Path(config_path or DEFAULT_CONFIG_FILE)}


# ── Init ─────────────────────────────────────────────────────────────


@main.command()
@click.pass_context
def init(ctx: click.Context):
    """Write a starter config and create the output directory."""
    from stubsync.config import write_default_config

    config_path = ctx.obj["config_path"]
    if write_default_config(config_path):
        say(f"  ++ Created: {config_path}", style="green")
    else:
        say(f"  {config_path} already exists, leaving it alone.", style="yellow")

    config = _load_config(ctx)
    Path(config.outdir).mkdir(parents=True, exist_ok=True)
    say(f"  Stub files will be written to {config.outdir}")


# ── Sync ─────────────────────────────────────────────────────────────


@main.command()
@click.option("--verify", is_flag=True, help="Only check the stubs are up to date; change nothing")
@click.option("--exclude", "-x", multiple=True, help="Packages to leave out (repeatable, space separated)")
@click.option("--outdir", "-o", default=None, help="Directory the stub files live in")
@click.option("--file-header/--no-file-header", default=None, help="Write the do-not-edit header")
@click.option("--prerequire", default=None, help="File to load before the dependencies")
@click.option("--postrequire", default=None, help="File to load after the dependencies")
@click.option("--environment-load/--no-environment-load", default=None, help="Run the full framework setup")
@click.option("--eager-load/--no-eager-load", default=None, help="Import every module of the host application")
@click.option("--jobs", "-j", type=int, default=None, help="Compile this many packages in parallel")
@click.pass_context
def sync(
    ctx: click.Context,
    verify: bool,
    exclude: tuple,
    outdir: str | None,
    file_header: bool | None,
    prerequire: str | None,
    postrequire: str | None,
    environment_load: bool | None,
    eager_load: bool | None,
    jobs: int | None,
):
    """Add, update and remove stub files so they match the manifest.

    Stub files of removed packages are deleted first, then new packages get
    a stub and packages whose version changed have theirs renamed and
    regenerated. With --verify nothing is written and the exit status tells
    whether the stubs are up to date.
    """
    from stubsync.artifacts.models import SyncMode
    from stubsync.artifacts.reconciler import desired_set

    try:
        config = _load_config(ctx).merged(
            outdir=outdir,
            file_header=file_header,
            prerequire=prerequire,
            postrequire=postrequire,
            environment_load=environment_load,
            eager_load=eager_load,
            jobs=jobs,
        )
        excluded = _excluded(config.exclude, exclude)
        manifest = _manifest(config)
        desired = desired_set(manifest.resolve(), exclude=excluded)
        _warn_missing(manifest)

        if verify:
            report = _reconciler(config, manifest).reconcile(desired, SyncMode.VERIFY)
        else:
            _bootstrap(config, manifest)
            report = _reconciler(config, manifest).reconcile(desired, SyncMode.APPLY)
    except StubsyncError as e:
        _abort(ctx, e)

    ctx.exit(report.exit_code)


# ── Generate ─────────────────────────────────────────────────────────


@main.command()
@click.argument("packages", nargs=-1, required=True)
@click.option("--outdir", "-o", default=None, help="Directory the stub files live in")
@click.option("--file-header/--no-file-header", default=None, help="Write the do-not-edit header")
@click.pass_context
def generate(ctx: click.Context, packages: tuple, outdir: str | None, file_header: bool | None):
    """Regenerate the stub files of specific packages, even if they are current."""
    from stubsync.manifest import canonical_name

    try:
        config = _load_config(ctx).merged(outdir=outdir, file_header=file_header)
        manifest = _manifest(config)
        resolved = {ref.name: ref for ref in manifest.resolve()}

        wanted = [canonical_name(name) for name in _split_names(packages)]
        unknown = sorted(name for name in wanted if name not in resolved)
        if unknown:
            raise click.BadParameter(
                f"not in the manifest: {', '.join(unknown)}", param_hint="PACKAGES"
            )

        _bootstrap(config, manifest)
        report = _reconciler(config, manifest).regenerate([resolved[name] for name in wanted])
    except StubsyncError as e:
        _abort(ctx, e)

    ctx.exit(report.exit_code)


# ── List ─────────────────────────────────────────────────────────────


@main.command(name="list")
@click.option("--outdir", "-o", default=None, help="Directory the stub files live in")
@click.pass_context
def list_packages(ctx: click.Context, outdir: str | None):
    """Show every package in the manifest and the state of its stub file."""
    from stubsync.artifacts.models import Classification
    from stubsync.artifacts.reconciler import desired_set, plan

    try:
        config = _load_config(ctx).merged(outdir=outdir)
        manifest = _manifest(config)
        desired = desired_set(manifest.resolve(), exclude=_excluded(config.exclude))
        sync_plan = plan(desired, config.outdir)
    except StubsyncError as e:
        _abort(ctx, e)

    if not sync_plan.entries:
        console.print("[yellow]No packages in the manifest.[/]")
        return

    status_labels = {
        Classification.UNCHANGED: "[green]up to date[/]",
        Classification.NEW: "[cyan]missing[/]",
        Classification.STALE_VERSION: "[yellow]stale[/]",
        Classification.EXTRANEOUS: "[red]extraneous[/]",
    }

    table = Table(title=f"Packages ({len(desired)} in manifest)")
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("Stub file", style="dim")
    table.add_column("Status", justify="center")

    for entry in sync_plan.entries:
        version = entry.desired.version if entry.desired else entry.present.version
        filename = entry.present.filename if entry.present else ""
        table.add_row(entry.name, version, filename, status_labels[entry.classification])

    console.print(table)


# ── Helpers ──────────────────────────────────────────────────────────


def _load_config(ctx: click.Context):
    from stubsync.config import load_config

    return load_config(ctx.obj["config_path"])


def _manifest(config):
    from stubsync.manifest import Manifest

    return Manifest(Path("."), groups=config.groups, ignore=config.ignore)


def _reconciler(config, manifest):
    from stubsync.artifacts.reconciler import ArtifactReconciler
    from stubsync.compiler import ReflectionCompiler

    return ArtifactReconciler(
        config.outdir,
        ReflectionCompiler(manifest),
        file_header=config.file_header,
        strictness=config.strictness,
        jobs=config.jobs,
    )


def _bootstrap(config, manifest):
    from stubsync.bootstrap import BootstrapOptions, EnvironmentBootstrapper

    options = BootstrapOptions(
        app_root=Path("."),
        pre_init_file=config.prerequire,
        post_init_file=config.postrequire,
        environment_load=config.environment_load,
        eager_load=config.eager_load,
    )
    return EnvironmentBootstrapper(manifest).bootstrap(options)


def _split_names(values) -> list[str]:
    names = []
    for value in values:
        names.extend(n for n in re.split(r"[\s,]+", value) if n)
    return names


def _excluded(*sources) -> list[str]:
    """Excluded names from config and options, normalized like manifest names."""
    from stubsync.manifest import canonical_name

    return [canonical_name(name) for values in sources for name in _split_names(values)]


def _warn_missing(manifest) -> None:
    missing = getattr(manifest, "missing", [])
    if missing:
        say(
            f"Declared but not installed, no stubs generated: {', '.join(sorted(missing))}",
            style="yellow",
        )


def _abort(ctx: click.Context, error: Exception) -> NoReturn:
    say(f"Error: {error}", style="red")
    ctx.exit(1)


if __name__ == "__main__":
    main()

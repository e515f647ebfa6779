"""treepkg CLI — the main entry point."""

import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from treepkg import __version__
from treepkg.config import VCS_KINDS, Options, Settings, load_settings
from treepkg.errors import ConflictError, TreepkgError

console = Console()
err_console = Console(stderr=True)


@dataclass
class AppContext:
    options: Options
    settings: Settings


@contextmanager
def _reported_errors():
    """Print engine and OS errors and exit 1 instead of dumping a traceback."""
    try:
        yield
    except ConflictError as e:
        err_console.print(f"[red]Conflict:[/] {len(e.paths)} locally modified path(s):")
        for path in e.paths:
            err_console.print(f"  [red]x[/] {escape(str(path))}")
        err_console.print("Re-run with [bold]--force[/] to override.")
        sys.exit(1)
    except (TreepkgError, OSError) as e:
        err_console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--force", "-f", is_flag=True, help="Overwrite or remove locally modified files")
@click.option("--reverse", "-R", is_flag=True, help="Diff local copy against the package")
@click.option("--vcs", type=click.Choice(VCS_KINDS), default=None, help="VCS used by 'package'")
@click.option("--config", "config_path", default=None, help="Settings file (YAML)")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
@click.pass_context
def main(ctx, force: bool, reverse: bool, vcs: str | None, config_path: str | None, verbose: bool):
    """treepkg — package directory trees and keep installed copies in sync.

    A package records a checksum for every file it carries. Installing it
    leaves that record behind, so later commands can tell what changed.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    with _reported_errors():
        settings = load_settings(config_path)
    ctx.obj = AppContext(options=Options(force=force, reverse=reverse, vcs=vcs), settings=settings)


# ── Package ──────────────────────────────────────────────────────────


@main.command()
@click.argument("module")
@click.argument("tag")
@click.option("--output-dir", "-o", default=".", help="Base directory for the spec's Destination")
@click.pass_obj
def package(app: AppContext, module: str, tag: str, output_dir: str):
    """Check out MODULE at TAG and build a package from its treepkg.spec.

    With --vcs local, MODULE is a directory packaged as it is and TAG is
    used as the version.
    """
    from treepkg.distribution.packager import package as build

    console.print(f"\n[bold blue]treepkg[/] — Packaging {escape(module)} at {escape(tag)}\n")

    with _reported_errors():
        result = build(module, tag, app.settings, app.options, output_base=output_dir)

    console.print(f"  [green]v[/] {escape(result.manifest.summary())}")
    console.print(f"  Written to: {escape(str(result.archive_path))}")


# ── Install / Remove ─────────────────────────────────────────────────


@main.command()
@click.argument("location")
@click.argument("target", default=".")
@click.pass_obj
def install(app: AppContext, location: str, target: str):
    """Install the package at LOCATION (path or URL) into TARGET."""
    from treepkg.archive.fetch import open_package
    from treepkg.sync.install import install as do_install

    with _reported_errors():
        with open_package(location, app.settings) as archive:
            result = do_install(archive, target, app.options)

    for path in result.replaced_paths:
        console.print(f"  [yellow]![/] replaced {escape(str(path))} (file and directory swapped)")
    for path in result.overridden_conflicts:
        console.print(f"  [yellow]![/] overwrote local changes in {escape(str(path))}")
    console.print(f"[green]{escape(result.summary())}[/]")


@main.command()
@click.argument("target", default=".")
@click.pass_obj
def remove(app: AppContext, target: str):
    """Remove the package installed in TARGET."""
    from treepkg.sync.remove import remove as do_remove

    with _reported_errors():
        result = do_remove(target, app.options)

    for warning in result.warnings:
        console.print(f"  [yellow]![/] {escape(warning)}")
    console.print(f"[green]{escape(result.summary())}[/]")


# ── Inspect ──────────────────────────────────────────────────────────


@main.command(name="list")
@click.argument("location")
@click.pass_obj
def list_entries(app: AppContext, location: str):
    """List the files carried by the package at LOCATION."""
    from treepkg.archive.fetch import open_package
    from treepkg.core.manifest import read_manifest

    with _reported_errors():
        with open_package(location, app.settings) as archive:
            manifest = read_manifest(archive)

    table = Table(
        title=escape(f"{manifest.package_name} {manifest.version} ({len(manifest.entries)} entries)")
    )
    table.add_column("Checksum", style="dim")
    table.add_column("Path", style="cyan")
    for entry in manifest.entries:
        suffix = "/" if entry.is_directory else ""
        table.add_row(entry.checksum, escape(f"{entry.path}{suffix}"))
    console.print(table)


@main.command()
@click.argument("location")
@click.pass_obj
def info(app: AppContext, location: str):
    """Show name, version and metadata of the package at LOCATION."""
    from treepkg.archive.fetch import open_package
    from treepkg.core.manifest import read_manifest

    with _reported_errors():
        with open_package(location, app.settings) as archive:
            manifest = read_manifest(archive)

    lines = [
        f"[bold]Name:[/] {escape(manifest.package_name)}",
        f"[bold]Version:[/] {escape(manifest.version)}",
        f"[bold]Files:[/] {len(manifest.files)}",
        f"[bold]Directories:[/] {len(manifest.directories)}",
    ]
    for key, value in manifest.metadata.items():
        lines.append(f"[bold]{key.value}:[/] {escape(value)}")
    console.print(Panel("\n".join(lines), title=escape(location)))


@main.command()
@click.argument("location")
@click.argument("paths", nargs=-1)
@click.option("--target", "-t", default=".", help="Directory holding the installed copy")
@click.pass_obj
def diff(app: AppContext, location: str, paths: tuple, target: str):
    """Diff the installed copy in --target against the package at LOCATION.

    PATHS limits the comparison; by default every packaged file is checked.
    """
    from treepkg.archive.fetch import open_package
    from treepkg.sync.diff import diff as do_diff
    from treepkg.utils.differ import get_differ

    differ = get_differ(app.settings.diff_tool)
    with _reported_errors():
        with open_package(location, app.settings) as archive:
            for chunk in do_diff(archive, target, list(paths), app.options, differ):
                click.echo(chunk, nl=False)


_STATUS_STYLES = {
    "?": "dim",
    "!": "red",
    "M": "yellow",
    " ": "green",
}


@main.command()
@click.argument("target", default=".")
@click.option("--quiet", "-q", is_flag=True, help="Hide up-to-date paths")
@click.pass_obj
def status(app: AppContext, target: str, quiet: bool):
    """Classify every path in TARGET against its installed package.

    ? unknown to the package, ! missing, M locally modified. A directory
    the package never recorded, such as the top of an Add root like
    "./src", is listed as unknown.
    """
    from treepkg.sync.status import Classification, status as do_status

    with _reported_errors():
        entries = do_status(target)

    for entry in entries:
        if entry.classification == Classification.UP_TO_DATE and quiet:
            continue
        code = entry.classification.value
        console.print(f"[{_STATUS_STYLES[code]}]{code}[/] {escape(str(entry.path))}", highlight=False)


if __name__ == "__main__":
    main()

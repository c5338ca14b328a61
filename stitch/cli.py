"""Command-line interface for Stitch.

This module defines the CLI commands using Click framework.

Commands:
- build: Build the source tree into the output directory once.
- watch: Build, then rebuild whenever sources change.
- serve: Watch and serve the output with live reload.
"""

from __future__ import annotations

import time
from pathlib import Path

import click

from . import __version__
from .build import BuildReport
from .errors import StitchError, WatchError
from .logging import configure_logging

_source_argument = click.argument(
    "source",
    required=False,
    default=".",
    type=click.Path(file_okay=False, path_type=Path),
)
_output_option = click.option(
    "--output",
    "-o",
    "output",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (overrides stitch.yaml output_dir)",
)


@click.group()
@click.version_option(version=__version__, prog_name="stitch")
@click.option("--verbose", "-v", is_flag=True, help="Log every build step")
def cli(verbose: bool):
    """Stitch static site builder."""
    configure_logging(verbose=verbose)


@cli.command()
@_source_argument
@_output_option
def build(source: Path, output: Path | None):
    """Build the source tree into the output directory."""
    from .build import SiteBuilder

    try:
        builder = SiteBuilder(source, output_dir=output)
        report = builder.full_build()
    except StitchError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Error: {exc}", fg="white"), err=True)
        raise SystemExit(1) from None
    if report.failures:
        _echo_failures(report, builder.source_root)
        raise SystemExit(1)
    click.echo(f"Built {len(report.written)} files into {builder.output_dir}")


@cli.command()
@_source_argument
@_output_option
def watch(source: Path, output: Path | None):
    """Build, then rebuild whenever sources change."""
    from .build import SiteBuilder
    from .watcher import RebuildLoop

    try:
        builder = SiteBuilder(source, output_dir=output)
        loop = RebuildLoop.for_builder(builder)
        report = loop.build_once()
    except StitchError as exc:
        raise click.ClickException(str(exc)) from None
    if report.failures:
        _echo_failures(report, builder.source_root)
    try:
        loop.start()
    except WatchError as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(f"Watching {builder.source_root} (Ctrl+C to stop)")
    try:
        while loop.running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        loop.stop()
    if loop.error is not None:
        raise click.ClickException(str(loop.error))


@cli.command()
@_source_argument
@_output_option
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides stitch.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides stitch.yaml ws_port)",
)
def serve(source: Path, output: Path | None, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    from .server import DevServer

    try:
        server = DevServer(source, output_dir=output, http_port=port, ws_port=ws_port)
        server.start()
    except StitchError as exc:
        raise click.ClickException(str(exc)) from None


def _echo_failures(report: BuildReport, source_root: Path) -> None:
    """Print every failed page with its cause."""
    click.echo(
        click.style(f"{len(report.failures)} page(s) failed:", fg="red", bold=True),
        err=True,
    )
    for failure in report.failures:
        try:
            rel_path = failure.source_path.relative_to(source_root)
        except ValueError:
            rel_path = failure.source_path
        click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {failure.message}", fg="white"), err=True)


def main():
    """Entry point for the CLI application."""
    cli()

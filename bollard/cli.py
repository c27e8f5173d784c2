"""Command-line interface for Bollard.

This module defines the CLI commands using Click framework.

Commands:
- build: Build a site directory, or a single file next to itself.
"""

from __future__ import annotations

from pathlib import Path

import click

from . import __version__
from .errors import FATAL_ERRORS
from .log import setup_logging


class CLIGroup(click.Group):
    """Click group that reports usage errors with exit status 1."""

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as exc:
            exc.exit_code = 1
            raise

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except click.UsageError as exc:
            exc.exit_code = 1
            raise


@click.group(cls=CLIGroup, context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="bollard")
def cli():
    """Bollard static site generator."""


@cli.command()
@click.argument(
    "path",
    required=False,
    type=click.Path(exists=True, path_type=Path),
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
def build(path: Path | None, verbose: bool):
    """Build the site at PATH (default: current directory)."""
    setup_logging(verbose)
    from .build import open_site

    source = (path or Path.cwd()).resolve()
    click.echo(f"Producing website from: {source}")
    try:
        site = open_site(source)
        click.echo(f"output: {site.paths.dest_root}")
        click.echo(f"siteRoot: {site.url}")
        result = site.build()
    except FATAL_ERRORS as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Error: {exc}", fg="white"), err=True)
        raise SystemExit(1) from None

    report = result.report
    summary = (
        f"Rendered {len(report.rendered)} pages, copied {len(report.copied)} files "
        f"({len(report.unchanged)} unchanged) into {result.output_dir}"
    )
    for name, count in result.collections.items():
        summary += f"\n  {name}: {count} photos"
    click.echo(summary)

    if result.failures:
        click.echo(
            click.style(f"{len(result.failures)} file(s) failed:", fg="red", bold=True),
            err=True,
        )
        for failure in result.failures:
            click.echo(click.style(f"  File: {failure.source_path}", fg="yellow"), err=True)
            click.echo(click.style(f"  Error: {failure.message}", fg="white"), err=True)
        raise SystemExit(1)


def main():
    """Entry point for the CLI application."""
    cli()


if __name__ == "__main__":
    main()

"""CLI entry point for the REST handler generator."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from .classfile import ClasspathMetadataSource
from .errors import GeneratorError
from .metadata import ClassMetadataSource, ManifestMetadataSource
from .runner import RunSummary, run


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _open_source(classpath: tuple[Path, ...], manifest: Path | None) -> ClassMetadataSource:
    if manifest is not None and classpath:
        raise click.UsageError("--manifest and --classpath are mutually exclusive.")
    if manifest is not None:
        return ManifestMetadataSource.from_file(manifest)
    if classpath:
        return ClasspathMetadataSource(classpath)
    raise click.UsageError("One of --classpath or --manifest is required.")


def _report(summary: RunSummary) -> None:
    click.echo(
        f"Parsed {summary.types_parsed} types, saw {summary.endpoints_seen} endpoints."
    )
    click.echo(
        f"Generated {len(summary.generated)} handlers, skipped {len(summary.skipped)}, "
        f"failed {len(summary.failed)}, deleted {len(summary.deleted)} stale files."
    )
    for name, reason in summary.skipped:
        click.echo(f"  skipped {name}: {reason}")
    for name, reason in summary.failed:
        click.echo(f"  failed {name}: {reason}")


@click.command()
@click.option("--schema", required=True, envvar="HANDLERGEN_SCHEMA",
              type=click.Path(dir_okay=False, path_type=Path),
              help="Path to the compiled schema.json.")
@click.option("--classpath", multiple=True, envvar="HANDLERGEN_CLASSPATH",
              type=click.Path(path_type=Path),
              help="Class directory or jar to read server classes from (repeatable).")
@click.option("--manifest", default=None, envvar="HANDLERGEN_MANIFEST",
              type=click.Path(dir_okay=False, path_type=Path),
              help="JSON class manifest to use instead of a classpath.")
@click.option("-o", "--output", required=True, envvar="HANDLERGEN_OUTPUT",
              type=click.Path(file_okay=False, path_type=Path),
              help="Root directory for generated Java sources.")
@click.option("-v", "--verbose", is_flag=True, help="Log skipped endpoints and file writes.")
@click.option("-q", "--quiet", is_flag=True, help="Only log warnings and errors.")
def main(
    schema: Path,
    classpath: tuple[Path, ...],
    manifest: Path | None,
    output: Path,
    verbose: bool,
    quiet: bool,
) -> None:
    """Generate Elasticsearch REST handlers from the API schema."""
    _configure_logging(verbose, quiet)
    try:
        source = _open_source(classpath, manifest)
        summary = run(schema, source, output)
    except GeneratorError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    _report(summary)

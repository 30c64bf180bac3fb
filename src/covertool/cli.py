"""covertool CLI: convert ``cover`` export data into a Cobertura XML report."""

from __future__ import annotations

import logging

import click
from rich.logging import RichHandler

from covertool import __version__
from covertool.builder import build_report
from covertool.config import ConfigError, CovertoolConfig, load_config, validate_config
from covertool.coverdata import DataImportError, read_coverdata
from covertool.models import CoverageReport
from covertool.reporters.cobertura import CoberturaReporter, ReportWriteError
from covertool.reporters.terminal import err_console, print_error, print_success, print_summary
from covertool.resolver import SourceRootError

logger = logging.getLogger(__name__)


def _configure_logging(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def convert(config: CovertoolConfig) -> CoverageReport:
    """Run the whole pipeline: import, aggregate, build and write the report.

    Raises:
        DataImportError: If a cover data file cannot be imported.
        SourceRootError: If the source directory cannot be scanned.
        ReportWriteError: If the output file cannot be written.
    """
    logger.debug("Importing %s", ", ".join(str(p) for p in config.cover_files))
    data = read_coverdata(config.cover_files)
    report = build_report(data.modules, config)
    CoberturaReporter().generate(report, config.output)
    return report


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--cover",
    "-cover",
    "cover_files",
    multiple=True,
    type=click.Path(dir_okay=False),
    help="Cover data file exported by cover:export/1 (repeatable). [default: all.coverdata]",
)
@click.option(
    "--output",
    "-output",
    type=click.Path(dir_okay=False),
    help="Cobertura XML file to write. [default: coverage.xml]",
)
@click.option(
    "--src",
    "-src",
    "source_root",
    type=click.Path(file_okay=False),
    help="Directory searched for module sources. [default: src/]",
)
@click.option(
    "--appname",
    "-appname",
    "app_name",
    help="Package name used in the report. [default: Application]",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file with default settings. [default: .covertool.yml if present]",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("-q", "--quiet", is_flag=True, help="Do not print the coverage summary.")
@click.version_option(version=__version__, prog_name="covertool")
def main(  # noqa: PLR0913
    cover_files: tuple[str, ...],
    output: str | None,
    source_root: str | None,
    app_name: str | None,
    config_path: str | None,
    *,
    verbose: bool,
    quiet: bool,
) -> None:
    """Convert Erlang cover data into a Cobertura XML coverage report."""
    _configure_logging(verbose=verbose)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    config = config.with_overrides(
        cover_files=cover_files or None,
        output=output,
        source_root=source_root,
        app_name=app_name,
    )
    errors = validate_config(config)
    if errors:
        raise click.UsageError("; ".join(errors))

    try:
        report = convert(config)
    except (DataImportError, SourceRootError, ReportWriteError) as e:
        print_error(str(e))
        raise SystemExit(1) from e

    if not quiet:
        print_summary(report)
        print_success(f"Cobertura report written to {config.output}")

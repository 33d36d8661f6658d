"""
CLI commands for iisgeolocate.
"""
from __future__ import annotations

import logging
from pathlib import Path

import click
from click.core import ParameterSource
from pydantic import ValidationError

from iisgeolocate import __version__
from iisgeolocate.config import GeoIPSettings, PipelineSettings, Settings, configure_logging, get_settings
from iisgeolocate.services.logparser.schemas import RunSummary
from iisgeolocate.services.pipeline import ConfigurationError, StartupError, run_pipeline

logger = logging.getLogger(__name__)

HEADER = (
    f"iisgeolocate version {__version__}\n\n"
    "Geolocates the client IP of every row in IIS W3C extended logs and writes "
    "the enriched rows, the malformed rows and a table of unique IPs to CSV."
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _given(ctx: click.Context, name: str) -> bool:
    return ctx.get_parameter_source(name) is ParameterSource.COMMANDLINE


def build_settings(ctx: click.Context) -> Settings:
    """Merge command line options over environment/.env settings."""
    params = ctx.params
    pipeline: dict[str, object] = {}
    geoip: dict[str, object] = {}
    app: dict[str, object] = {}

    if params["log_dir"] is not None:
        pipeline["input_dir"] = params["log_dir"]
    if params["csv_dir"] is not None:
        pipeline["output_dir"] = params["csv_dir"]
    if params["ip_field"] is not None:
        pipeline["ip_field"] = params["ip_field"]
    for option, field in (
        ("sbl", "suppress_bad_lines"),
        ("nul", "no_updated_logs"),
        ("skip_reserved", "skip_reserved_ranges"),
    ):
        if _given(ctx, option):
            pipeline[field] = params[option]
    if params["geoip_db"] is not None:
        geoip["db_path"] = params["geoip_db"]
    if params["log_level"] is not None:
        app["log_level"] = params["log_level"]

    if not (pipeline or geoip or app):
        return get_settings()
    return Settings(
        pipeline=PipelineSettings(**pipeline),
        geoip=GeoIPSettings(**geoip),
        **app,
    )


def report(summary: RunSummary) -> None:
    logger.info(
        "Processed %d log files (%d skipped): %d rows, %d bad rows",
        summary.processed_files,
        summary.skipped_files,
        summary.total_rows,
        summary.total_bad_rows,
    )
    if summary.unique_ips_path is not None:
        logger.info("%d unique, geolocated IPs saved to %s", summary.unique_ips, summary.unique_ips_path)


@click.command(help=HEADER)
@click.option("-d", "log_dir", type=click.Path(path_type=Path, file_okay=False),
              help="The directory that contains IIS logs. This will be recursively searched for *.log files")
@click.option("--csv", "csv_dir", type=click.Path(path_type=Path, file_okay=False),
              help="The directory to write results to")
@click.option("--sbl", is_flag=True, default=False,
              help="When set, do NOT show bad lines to console (they are still logged to a file)")
@click.option("--nul", is_flag=True, default=False,
              help="When set, do NOT create updated CSV files in --csv directory")
@click.option("--ip-field", default=None, help="Column holding the client IP (default: c-ip)")
@click.option("--skip-reserved", is_flag=True, default=False,
              help="Also skip every non-public range (172.16/12, multicast, reserved...)")
@click.option("--geoip-db", type=click.Path(path_type=Path, dir_okay=False), default=None,
              help="GeoIP2/GeoLite2 City database to use instead of probing next to the program")
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), default=None,
              help="Logging level (default: INFO)")
@click.version_option(__version__, prog_name="iisgeolocate")
@click.pass_context
def cli(ctx: click.Context, **_options: object) -> None:
    try:
        settings = build_settings(ctx)
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    configure_logging(settings.log_level)
    logger.info("%s version %s", settings.name, settings.version)

    try:
        summary = run_pipeline(settings)
    except ConfigurationError as e:
        click.echo(ctx.get_help())
        logger.warning("%s. Exiting", e)
        ctx.exit(1)
    except StartupError as e:
        logger.critical("%s. Exiting", e)
        ctx.exit(1)

    report(summary)

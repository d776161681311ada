"""CLI for otel-sink.

Usage:
    otel-sink serve --port 4318
    otel-sink files list --signal traces
    otel-sink files clear --yes
    otel-sink errors
    otel-sink check-config
"""

from pathlib import Path

import click
import structlog

from otel_sink import __version__
from otel_sink.api import create_app, run_app
from otel_sink.config import SinkConfig
from otel_sink.errors import ConfigurationError
from otel_sink.logging import configure_logging
from otel_sink.metrics import SERVICE_INFO, start_metrics_server
from otel_sink.pipeline import (
    DiagnosticsCollector,
    HealthStatus,
    SignalType,
    build_pipeline,
    clear_telemetry_files,
    list_error_files,
    list_telemetry_files,
)

log = structlog.get_logger()


def _format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


@click.group()
@click.version_option(__version__, prog_name="otel-sink")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=Path("otel-sink.yaml"),
    show_default=True,
    help="Config file path",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Override the telemetry output directory",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: Path, output_dir: Path | None, verbose: bool) -> None:
    """Record OpenTelemetry export requests as NDJSON files."""
    ctx.ensure_object(dict)
    configure_logging("otel-sink", "DEBUG" if verbose else "INFO")

    try:
        config = SinkConfig.from_file(config_path)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e
    if output_dir is not None:
        config.output_directory = output_dir
    ctx.obj["config"] = config


# --- Server ---


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Host to bind to")
@click.option("--port", default=4318, show_default=True, help="OTLP/HTTP port")
@click.option(
    "--metrics-port",
    type=int,
    default=None,
    help="Serve Prometheus metrics on this port",
)
@click.option(
    "--stdout/--no-stdout",
    "stdout_mirror",
    default=None,
    help="Mirror telemetry to the console",
)
@click.option("--errors-only", is_flag=True, help="Mirror only error telemetry")
@click.pass_context
def serve(
    ctx: click.Context,
    host: str,
    port: int,
    metrics_port: int | None,
    stdout_mirror: bool | None,
    errors_only: bool,
) -> None:
    """Run the ingestion server."""
    config: SinkConfig = ctx.obj["config"]
    if stdout_mirror is not None:
        config.enable_stdout_mirror = stdout_mirror
    if errors_only:
        config.stdout_errors_only = True

    try:
        pipeline = build_pipeline(config)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    diagnostics = DiagnosticsCollector(config.output_directory, pipeline.health, pipeline.statistics)
    SERVICE_INFO.info({"version": __version__, "output_directory": str(config.output_directory)})

    if metrics_port is not None:
        start_metrics_server(
            port=metrics_port,
            is_healthy=lambda: pipeline.health.status is HealthStatus.HEALTHY,
        )

    app = create_app(pipeline, diagnostics)
    log.info("Starting otel-sink", host=host, port=port, output=str(config.output_directory))
    try:
        run_app(app, host=host, port=port)
    finally:
        pipeline.close()


# --- File Commands ---


@main.group()
def files() -> None:
    """Telemetry file operations."""
    pass


@files.command("list")
@click.option(
    "--signal",
    type=click.Choice([s.value for s in SignalType], case_sensitive=False),
    default=None,
    help="Only list files for this signal",
)
@click.pass_context
def files_list(ctx: click.Context, signal: str | None) -> None:
    """List NDJSON files in the output directory."""
    config: SinkConfig = ctx.obj["config"]
    infos = list_telemetry_files(config.output_directory, signal)

    if not infos:
        click.echo(f"No telemetry files in {config.output_directory}")
        return

    click.echo(f"{'File':<50} {'Size':>10}  {'Modified (UTC)':<19}")
    click.echo("-" * 82)
    for info in infos:
        name = Path(info.path).name
        modified = info.last_modified.strftime("%Y-%m-%d %H:%M:%S")
        click.echo(f"{name:<50} {_format_size(info.size_bytes):>10}  {modified:<19}")
    click.echo("")
    total = sum(info.size_bytes for info in infos)
    click.echo(f"{len(infos)} files, {_format_size(total)}")


@files.command("clear")
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def files_clear(ctx: click.Context, yes: bool) -> None:
    """Delete all NDJSON files in the output directory."""
    config: SinkConfig = ctx.obj["config"]

    if not yes:
        click.confirm(f"Delete all telemetry files in {config.output_directory}?", abort=True)

    result = clear_telemetry_files(config.output_directory)
    click.echo(
        f"Deleted {result.files_deleted} of {result.files_before} files "
        f"({_format_size(result.bytes_freed)})"
    )
    if result.files_deleted < result.files_before:
        ctx.exit(1)


# --- Error Commands ---


@main.command()
@click.pass_context
def errors(ctx: click.Context) -> None:
    """List error files. Exits 1 when any exist."""
    config: SinkConfig = ctx.obj["config"]
    names = list_error_files(config.output_directory)

    if not names:
        click.echo("No error files found.")
        return

    click.echo(f"{len(names)} error files:")
    for name in names:
        click.echo(f"  - {name}")
    ctx.exit(1)


# --- Configuration ---


@main.command("check-config")
@click.pass_context
def check_config(ctx: click.Context) -> None:
    """Validate the configuration and print it."""
    config: SinkConfig = ctx.obj["config"]
    try:
        config.validate()
    except ConfigurationError as e:
        for message in e.errors:
            click.echo(f"ERROR: {message}", err=True)
        ctx.exit(2)

    for key, value in config.to_dict().items():
        click.echo(f"{key:<26} {value}")
    click.echo("")
    click.echo("Configuration OK")


if __name__ == "__main__":
    main()

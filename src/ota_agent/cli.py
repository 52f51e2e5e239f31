"""Command-line interface for the OTA agent.

``ota-agent run`` performs one update attempt and exits with a code derived
from its outcome; ``ota-agent serve`` exposes status and a run trigger over
HTTP.
"""

import asyncio
import json
import logging
import sys

import click

from ota_agent.config import AgentConfig, load_config
from ota_agent.models.status import StatusEvent
from ota_agent.services.device import detect_device_identity
from ota_agent.services.pipeline import build_pipeline
from ota_agent.services.reporter import ReportService
from ota_agent.utils.logging import setup_logger

logger = logging.getLogger("ota_agent.cli")


class ConsoleSink:
    """Echoes status events as '> message' lines."""

    async def publish(self, event: StatusEvent) -> None:
        click.echo(f"> {event.message}")
        if event.error:
            click.echo(f"  {event.error}", err=True)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to YAML config (default: $OTA_AGENT_CONFIG or standard locations)",
)
@click.pass_context
def cli(ctx, config_path):
    """Side-loaded OTA update agent."""
    try:
        ctx.obj = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))


def _setup_logging(config: AgentConfig, verbose: bool) -> None:
    setup_logger(
        "ota_agent",
        config.logging.log_file,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
        level="DEBUG" if verbose else config.logging.level,
        console=verbose,
    )


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Log to the console at DEBUG level")
@click.pass_obj
def run(config: AgentConfig, as_json, verbose):
    """Locate, stage, verify and install one update package."""
    _setup_logging(config, verbose)
    identity = detect_device_identity(config.device)

    sinks = [] if as_json else [ConsoleSink()]
    if config.report_url:
        sinks.append(ReportService(config.report_url))

    pipeline = build_pipeline(config, identity, sinks)
    result = asyncio.run(pipeline.run())

    if as_json:
        click.echo(result.model_dump_json(indent=2))
    logger.info(f"Exiting with {result.outcome.value} ({result.outcome.exit_code})")
    sys.exit(result.outcome.exit_code)


@cli.command()
@click.pass_obj
def serve(config: AgentConfig):
    """Serve pipeline status and a run trigger over HTTP."""
    from ota_agent.main import main

    main(config)


@cli.command()
@click.pass_obj
def identity(config: AgentConfig):
    """Print the detected device identity."""
    detected = detect_device_identity(config.device)
    click.echo(json.dumps(detected.model_dump(), indent=2))


if __name__ == "__main__":
    cli()

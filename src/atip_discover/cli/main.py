"""atip-discover CLI: find and index ATIP-compatible tools.

Entry point for the ``atip-discover`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    scan     - Probe executables in safe directories and update the registry.
    list     - List registered tools.
    get      - Show the cached manifest of one tool.
    validate - Validate manifest files.
    cache    - Inspect, clear and refresh the manifest cache.

Usage::

    atip-discover scan
    atip-discover scan --allow-path ./bin --full
    atip-discover -o table list 'g*'
    atip-discover get gh --refresh
    atip-discover validate ./shims/curl.json
    atip-discover cache refresh --stale-only
"""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from atip_discover import __version__
from atip_discover.cli.agent import agent_manifest
from atip_discover.cli.cache_cmd import cache_group
from atip_discover.cli.context import CliContext, fail
from atip_discover.cli.get_cmd import get_command
from atip_discover.cli.list_cmd import list_command
from atip_discover.cli.output import emit_json
from atip_discover.cli.scan_cmd import scan_command
from atip_discover.cli.validate_cmd import validate_command
from atip_discover.config import OUTPUT_FORMATS, load_config
from atip_discover.exceptions import ConfigError
from atip_discover.paths import resolve_paths


def _print_agent_manifest(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    emit_json(agent_manifest())
    ctx.exit(0)


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="atip-discover")
@click.option(
    "--agent",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_print_agent_manifest,
    help="Print this tool's ATIP manifest as JSON and exit.",
)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Data directory for registry, cache and shims.",
)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Configuration file (YAML or JSON).",
)
@click.option(
    "-o", "--output", "output_format",
    type=click.Choice(list(OUTPUT_FORMATS)),
    default=None,
    help="Output format: json (default), table, or quiet.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def cli(
    ctx: click.Context,
    data_dir: str | None,
    config_path: str | None,
    output_format: str | None,
    verbose: bool,
) -> None:
    """atip-discover: Safe discovery of ATIP-compatible CLI tools.

    Scans trusted directories for executables that document an --agent
    flag, fetches their ATIP manifests, and keeps a local registry of
    every tool an agent can introspect.
    """
    _configure_logging(verbose)
    paths = resolve_paths(data_dir=data_dir)
    try:
        config = load_config(config_path, paths=paths)
    except ConfigError as exc:
        fail(str(exc))

    ctx.obj = CliContext(
        paths=paths,
        config=config,
        output_format=output_format or config.output_format,
        verbose=verbose,
    )


# Register all subcommands
cli.add_command(scan_command)
cli.add_command(list_command)
cli.add_command(get_command)
cli.add_command(validate_command)
cli.add_command(cache_group)

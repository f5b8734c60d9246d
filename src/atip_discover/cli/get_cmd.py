"""``atip-discover get TOOL`` - Show the cached manifest of a registered tool.

Exit Codes:
    0 - Manifest printed.
    1 - ``--refresh`` was requested and the re-probe failed.
    2 - Tool not registered, manifest missing, or registry unreadable.
"""

from __future__ import annotations

import asyncio
import sys

import click

from atip_discover.cli.context import EXIT_PARTIAL, CliContext, fail, pass_context
from atip_discover.cli.output import print_tool
from atip_discover.discovery.scanner import Scanner
from atip_discover.exceptions import DiscoverError


@click.command("get")
@click.argument("tool")
@click.option(
    "--refresh",
    is_flag=True,
    default=False,
    help="Re-probe the tool and update its cached manifest first.",
)
@pass_context
def get_command(obj: CliContext, tool: str, refresh: bool) -> None:
    """Show the ATIP manifest of TOOL."""
    try:
        if refresh:
            scanner = Scanner(obj.paths, obj.config, store=obj.store)
            result = asyncio.run(scanner.refresh([tool]))
            if result.errors:
                click.echo(f"Error: {result.errors[0].error}", err=True)
                sys.exit(EXIT_PARTIAL)
        entry = obj.store.load().get(tool)
        manifest = obj.store.read_metadata(entry)
    except DiscoverError as exc:
        fail(str(exc))

    print_tool(entry, manifest, obj.output_format)

"""``atip-discover list [PATTERN]`` - List registered tools.

Usage::

    atip-discover list
    atip-discover list 'git*' --source native
    atip-discover -o table list --sort discovered --limit 10
    atip-discover list --stale
"""

from __future__ import annotations

from datetime import datetime, timezone

import click

from atip_discover.cli.context import CliContext, fail, pass_context
from atip_discover.cli.output import print_tool_list
from atip_discover.exceptions import RegistryError
from atip_discover.registry.models import RegistryEntry

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(sort: str):
    if sort == "discovered":
        return lambda e: e.discovered_at or _EPOCH
    if sort == "path":
        return lambda e: e.path
    return lambda e: e.name


@click.command("list")
@click.argument("pattern", required=False, default=None)
@click.option(
    "--source",
    type=click.Choice(["all", "native", "shim"]),
    default="all",
    help="Only show tools from this source.",
)
@click.option(
    "--sort",
    type=click.Choice(["name", "discovered", "path"]),
    default="name",
    help="Sort order (default: name).",
)
@click.option(
    "--limit",
    type=click.IntRange(min=0),
    default=0,
    help="Show at most this many tools (0 for no limit).",
)
@click.option(
    "--stale",
    is_flag=True,
    default=False,
    help="Only show tools whose executable changed since the last probe.",
)
@pass_context
def list_command(
    obj: CliContext,
    pattern: str | None,
    source: str,
    sort: str,
    limit: int,
    stale: bool,
) -> None:
    """List registered tools, optionally filtered by a name glob."""
    try:
        registry = obj.store.load()
    except RegistryError as exc:
        fail(str(exc))

    entries: list[RegistryEntry] = sorted(
        registry.list_tools(pattern, source), key=_sort_key(sort)
    )
    flags = [e.is_stale() for e in entries]
    if stale:
        pairs = [(e, f) for e, f in zip(entries, flags) if f]
        entries = [e for e, _ in pairs]
        flags = [f for _, f in pairs]
    if limit:
        entries = entries[:limit]
        flags = flags[:limit]

    print_tool_list(entries, obj.output_format, flags)

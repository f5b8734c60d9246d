"""``atip-discover cache`` - Inspect and maintain the manifest cache.

Usage::

    atip-discover cache info
    atip-discover cache clear --all
    atip-discover cache clear --tools gh --tools kubectl
    atip-discover cache clear --older-than 30d
    atip-discover cache refresh
    atip-discover cache refresh gh --stale-only
"""

from __future__ import annotations

import asyncio
import sys

import click

from atip_discover.cli.context import (
    EXIT_OK,
    EXIT_PARTIAL,
    CliContext,
    fail,
    pass_context,
)
from atip_discover.cli.output import print_cache_info, print_cleared, print_scan_result
from atip_discover.config import parse_duration
from atip_discover.discovery.scanner import Scanner
from atip_discover.exceptions import ConfigError, DiscoverError


@click.group("cache")
def cache_group() -> None:
    """Inspect, clear and refresh cached tool manifests."""


@cache_group.command("info")
@pass_context
def cache_info_command(obj: CliContext) -> None:
    """Show registry and cache statistics."""
    try:
        info = obj.store.cache_info()
    except DiscoverError as exc:
        fail(str(exc))
    print_cache_info(info, obj.output_format, obj.config.cache_max_size_bytes)


@cache_group.command("clear")
@click.option("--all", "clear_all", is_flag=True, default=False, help="Remove every tool.")
@click.option("--tools", "tools", multiple=True, help="Remove this tool (repeatable).")
@click.option(
    "--older-than",
    default=None,
    help="Remove tools not verified within this duration, e.g. 24h.",
)
@pass_context
def cache_clear_command(
    obj: CliContext,
    clear_all: bool,
    tools: tuple[str, ...],
    older_than: str | None,
) -> None:
    """Remove registry entries and their cached manifests.

    Exactly one of --all, --tools or --older-than is required.
    """
    chosen = sum([clear_all, bool(tools), older_than is not None])
    if chosen != 1:
        raise click.UsageError("Specify exactly one of --all, --tools or --older-than.")

    try:
        max_age = parse_duration(older_than) if older_than is not None else None
    except ConfigError as exc:
        raise click.BadParameter(str(exc), param_hint="--older-than") from exc

    try:
        registry = obj.store.load()
        removed = obj.store.clear_cache(
            registry, names=list(tools) or None, older_than=max_age
        )
        obj.store.save(registry)
    except DiscoverError as exc:
        fail(str(exc))

    print_cleared(removed, obj.output_format)


@cache_group.command("refresh")
@click.argument("tools", nargs=-1)
@click.option(
    "--stale-only",
    is_flag=True,
    default=False,
    help="Only re-probe tools whose executable changed or disappeared.",
)
@pass_context
def cache_refresh_command(obj: CliContext, tools: tuple[str, ...], stale_only: bool) -> None:
    """Re-probe registered tools (all, or just TOOLS) and re-cache them."""
    scanner = Scanner(obj.paths, obj.config, store=obj.store)
    try:
        result = asyncio.run(scanner.refresh(list(tools) or None, stale_only=stale_only))
    except DiscoverError as exc:
        fail(str(exc))

    print_scan_result(result, obj.output_format)
    sys.exit(EXIT_PARTIAL if result.failed or result.cancelled else EXIT_OK)

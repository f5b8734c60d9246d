"""``atip-discover scan`` - Discover ATIP tools and update the registry.

Without ``--allow-path`` the configured safe paths are scanned, after
dropping any directory that fails the safety checks. Ctrl-C stops the
scan cleanly: running probes are killed and completed results are saved.

Exit Codes:
    0 - Scan completed with no probe failures.
    1 - Scan completed but some tools failed, or it was interrupted.
    2 - The registry could not be loaded or saved, or options are invalid.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys

import click

from atip_discover.cli.context import EXIT_OK, EXIT_PARTIAL, CliContext, fail, pass_context
from atip_discover.cli.output import print_scan_plan, print_scan_result
from atip_discover.config import parse_duration
from atip_discover.discovery.models import ScanResult
from atip_discover.discovery.scanner import Scanner, ScanOptions
from atip_discover.exceptions import ConfigError, RegistryError


def _split_patterns(values: tuple[str, ...]) -> list[str]:
    patterns: list[str] = []
    for value in values:
        patterns.extend(p.strip() for p in value.split(",") if p.strip())
    return patterns


async def _scan_until_interrupted(scanner: Scanner, options: ScanOptions) -> ScanResult:
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    # Unsupported on Windows event loops and off the main thread.
    with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    try:
        return await scanner.scan(options, cancel=cancel)
    finally:
        with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
            loop.remove_signal_handler(signal.SIGINT)


def run_scan(scanner: Scanner, options: ScanOptions) -> ScanResult:
    return asyncio.run(_scan_until_interrupted(scanner, options))


@click.command("scan")
@click.option(
    "--allow-path", "allow_paths",
    multiple=True,
    help="Scan this directory instead of the safe paths (repeatable).",
)
@click.option(
    "--skip",
    multiple=True,
    help="Tool name or glob to skip; repeatable or comma-separated.",
)
@click.option("--timeout", default=None, help="Per-tool probe timeout, e.g. 500ms or 2s.")
@click.option(
    "--parallel", "parallelism",
    type=click.IntRange(min=1),
    default=None,
    help="Number of concurrent probes.",
)
@click.option("--full", is_flag=True, default=False, help="Re-probe unchanged executables.")
@click.option("--no-shims", is_flag=True, default=False, help="Do not load shim manifests.")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Show which executables would be probed, without running them.",
)
@pass_context
def scan_command(
    obj: CliContext,
    allow_paths: tuple[str, ...],
    skip: tuple[str, ...],
    timeout: str | None,
    parallelism: int | None,
    full: bool,
    no_shims: bool,
    dry_run: bool,
) -> None:
    """Discover ATIP-compatible tools and update the registry.

    Each executable is first run with --help; only tools whose usage text
    mentions --agent are then run with --agent. Tools on the skip list
    are never executed.
    """
    try:
        timeout_seconds = parse_duration(timeout) if timeout is not None else None
    except ConfigError as exc:
        raise click.BadParameter(str(exc), param_hint="--timeout") from exc

    options = ScanOptions(
        allow_paths=list(allow_paths),
        skip_list=_split_patterns(skip),
        timeout=timeout_seconds,
        parallelism=parallelism,
        incremental=not full,
        include_shims=not no_shims,
    )
    scanner = Scanner(obj.paths, obj.config, store=obj.store)

    try:
        if dry_run:
            print_scan_plan(scanner.plan(options), obj.output_format)
            return
        result = run_scan(scanner, options)
    except (RegistryError, ConfigError) as exc:
        fail(str(exc))

    print_scan_result(result, obj.output_format)
    sys.exit(EXIT_PARTIAL if result.failed or result.cancelled else EXIT_OK)

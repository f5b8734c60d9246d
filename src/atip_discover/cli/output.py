"""Output formatting for the atip-discover CLI.

Every result type has its own formatter. Each takes the result and one of
three formats:

    json  - pretty-printed JSON on stdout, suitable for agents and scripts
    table - Rich tables and panels for humans
    quiet - bare names or a single summary line
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from atip_discover.discovery.models import ScanPlan, ScanResult
from atip_discover.registry.models import RegistryEntry, ToolSource, format_timestamp
from atip_discover.registry.store import CacheInfo
from atip_discover.validator import ValidationResult

_SOURCE_STYLES: dict[str, str] = {
    ToolSource.NATIVE.value: "green",
    ToolSource.SHIM.value: "cyan",
}

console = Console()


def emit_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2))


def _short_time(value: Any) -> str:
    text = format_timestamp(value)
    if text is None:
        return "-"
    return text[:19].replace("T", " ")


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


# ---------------------------------------------------------------------------
# Scan
# ---------------------------------------------------------------------------


def print_scan_result(result: ScanResult, output_format: str) -> None:
    """Print the outcome of a scan or refresh."""
    if output_format == "json":
        emit_json(result.to_dict())
        return
    if output_format == "quiet":
        click.echo(
            f"discovered={result.discovered} updated={result.updated} "
            f"failed={result.failed} skipped={result.skipped}"
        )
        return

    if result.tools:
        table = Table(title="Discovered Tools", show_header=True, header_style="bold")
        table.add_column("Tool", style="bold")
        table.add_column("Version")
        table.add_column("Path", style="dim")
        for tool in result.tools:
            table.add_row(tool.name, tool.version, tool.path)
        console.print(table)

    if result.errors:
        errors = Table(title="Failures", show_header=True, header_style="bold red")
        errors.add_column("Path", style="dim")
        errors.add_column("Error")
        for error in result.errors:
            errors.add_row(error.path, error.error)
        console.print(errors)

    parts = [
        f"[green]{result.discovered} discovered[/green]",
        f"{result.updated} updated",
        f"[red]{result.failed} failed[/red]" if result.failed else "0 failed",
        f"[dim]{result.skipped} skipped[/dim]",
        f"{result.duration_ms} ms",
    ]
    console.print(" | ".join(parts))
    if result.cancelled:
        console.print("[yellow]Scan interrupted; partial results saved.[/yellow]")


def print_scan_plan(plan: ScanPlan, output_format: str) -> None:
    """Print what a dry-run scan would probe."""
    if output_format == "json":
        emit_json(plan.to_dict())
        return
    if output_format == "quiet":
        for candidate in plan.candidates:
            click.echo(str(candidate))
        return

    console.print(
        Panel(
            "\n".join(plan.directories) or "[dim](none)[/dim]",
            title="Directories",
        )
    )
    table = Table(title="Would Probe", show_header=True, header_style="bold")
    table.add_column("Executable", style="bold")
    table.add_column("Directory", style="dim")
    for candidate in plan.candidates:
        table.add_row(candidate.name, str(candidate.parent))
    console.print(table)
    console.print(
        f"{len(plan.candidates)} to probe | [dim]{len(plan.skipped)} skipped[/dim]"
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def _entry_row(entry: RegistryEntry, stale: bool) -> dict[str, Any]:
    data = entry.to_dict()
    data["stale"] = stale
    return data


def print_tool_list(
    entries: Sequence[RegistryEntry], output_format: str, stale: Sequence[bool]
) -> None:
    """Print registry entries.

    Args:
        entries: Entries to show, already filtered and sorted.
        output_format: Output format.
        stale: Staleness flag for each entry, in the same order.
    """
    if output_format == "json":
        emit_json(
            {
                "tools": [_entry_row(e, s) for e, s in zip(entries, stale)],
                "count": len(entries),
            }
        )
        return
    if output_format == "quiet":
        for entry in entries:
            click.echo(entry.name)
        return

    if not entries:
        console.print("[dim]No tools registered. Run 'atip-discover scan'.[/dim]")
        return

    table = Table(title="Registered Tools", show_header=True, header_style="bold")
    table.add_column("Tool", style="bold")
    table.add_column("Version")
    table.add_column("Source", justify="center")
    table.add_column("Verified", style="dim")
    table.add_column("Path", style="dim")
    for entry, is_stale in zip(entries, stale):
        source = ToolSource(entry.source).value
        name = Text(entry.name)
        if is_stale:
            name.append(" (stale)", style="yellow")
        table.add_row(
            name,
            entry.version,
            Text(source, style=_SOURCE_STYLES.get(source, "white")),
            _short_time(entry.last_verified),
            entry.path,
        )
    console.print(table)


def print_tool(entry: RegistryEntry, manifest: dict[str, Any], output_format: str) -> None:
    """Print one tool's cached manifest."""
    if output_format == "json":
        emit_json(manifest)
        return
    if output_format == "quiet":
        click.echo(f"{entry.name} {entry.version}")
        return

    header = Text.assemble(
        ("Tool: ", "bold"), (entry.name, ""),
        ("  Version: ", "bold"), (entry.version, ""),
        ("  Source: ", "bold"), (ToolSource(entry.source).value, ""),
    )
    console.print(Panel(header, title=manifest.get("description", "")))

    commands = manifest.get("commands") or {}
    if not commands:
        return
    table = Table(title="Commands", show_header=True, header_style="bold")
    table.add_column("Command", style="bold")
    table.add_column("Description")
    for name, description in _walk_commands(commands):
        table.add_row(name, description)
    console.print(table)


def _walk_commands(commands: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    for name, command in commands.items():
        full = f"{prefix}{name}"
        if not isinstance(command, dict):
            continue
        rows.append((full, str(command.get("description", ""))))
        nested = command.get("commands")
        if isinstance(nested, dict):
            rows.extend(_walk_commands(nested, prefix=f"{full} "))
    return rows


# ---------------------------------------------------------------------------
# Validation and cache
# ---------------------------------------------------------------------------


def print_validation(
    results: Sequence[tuple[Path, ValidationResult]], output_format: str
) -> None:
    """Print validation results for one or more manifest files."""
    if output_format == "json":
        emit_json(
            {
                "results": [
                    {
                        "file": str(path),
                        "valid": result.valid,
                        "errors": [
                            {"path": issue.dotted_path, "message": issue.message}
                            for issue in result.errors
                        ],
                    }
                    for path, result in results
                ],
                "valid": all(r.valid for _, r in results),
            }
        )
        return

    for path, result in results:
        if result.valid:
            if output_format != "quiet":
                console.print(f"[green]VALID[/green]   {path}")
            continue
        if output_format == "quiet":
            click.echo(str(path))
            continue
        console.print(f"[bold red]INVALID[/bold red] {path}")
        for issue in result.errors:
            console.print(f"  - {issue}")


def print_cache_info(info: CacheInfo, output_format: str, max_size_bytes: int) -> None:
    """Print cache statistics."""
    if output_format == "json":
        data = info.to_dict()
        data["maxSizeBytes"] = max_size_bytes
        emit_json(data)
        return
    if output_format == "quiet":
        click.echo(f"{info.tool_count} tools, {info.cache_size_bytes} bytes")
        return

    table = Table(title="Cache", show_header=False)
    table.add_column("Key", style="bold", no_wrap=True)
    table.add_column("Value")
    table.add_row("Data directory", str(info.data_dir))
    table.add_row("Registry", str(info.registry_path))
    table.add_row("Tools", f"{info.tool_count} ({info.native_count} native, {info.shim_count} shim)")
    size = _human_size(info.cache_size_bytes)
    if info.cache_size_bytes > max_size_bytes:
        size = f"[yellow]{size} (over {_human_size(max_size_bytes)} limit)[/yellow]"
    table.add_row("Cached manifests", f"{info.cached_files} files, {size}")
    table.add_row("Last scan", _short_time(info.last_scan))
    console.print(table)


def print_cleared(names: Sequence[str], output_format: str) -> None:
    if output_format == "json":
        emit_json({"cleared": list(names), "count": len(names)})
    elif output_format == "quiet":
        for name in names:
            click.echo(name)
    else:
        console.print(f"Cleared [bold]{len(names)}[/bold] tool(s) from the cache.")

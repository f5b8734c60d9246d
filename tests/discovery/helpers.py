"""Shared test helpers for creating mock executables.

Each helper writes a small POSIX shell script into a directory and makes
it executable. The scripts mimic the tool behaviours discovery has to cope
with: tools that answer ``--agent`` with a manifest, tools that know
nothing about ATIP, tools that hang, and tools that print garbage.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import pytest

DEMO_MANIFEST: dict[str, Any] = {
    "atip": {"version": "0.6"},
    "name": "demo",
    "version": "1.0.0",
    "description": "Demo ATIP tool",
    "commands": {
        "hello": {
            "description": "Say hello",
            "effects": {"network": False, "idempotent": True},
        },
    },
}

_AGENT_HELP = 'echo "Usage: tool [--agent]"; echo "  --agent    Print ATIP metadata as JSON"'


def write_script(directory: Path, name: str, body: str) -> Path:
    """Write ``body`` as an executable shell script and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(0o755)
    return path


def make_atip_tool(
    directory: Path,
    name: str = "demo",
    manifest: dict[str, Any] | None = None,
) -> Path:
    """Create a well-behaved tool that prints ``manifest`` for ``--agent``."""
    manifest = manifest if manifest is not None else {**DEMO_MANIFEST, "name": name}
    body = (
        'case "$1" in\n'
        f"  --help) {_AGENT_HELP} ;;\n"
        "  --agent)\n"
        "    cat <<'JSON'\n"
        f"{json.dumps(manifest)}\n"
        "JSON\n"
        "    ;;\n"
        "  *) exit 2 ;;\n"
        "esac\n"
    )
    return write_script(directory, name, body)


def make_plain_tool(directory: Path, name: str, log_file: Path) -> Path:
    """Create a tool without ATIP support that logs every invocation."""
    body = (
        f'echo "$@" >> "{log_file}"\n'
        'case "$1" in\n'
        f"  --help) echo \"Usage: {name} [-v] [--output FILE]\" ;;\n"
        "esac\n"
    )
    return write_script(directory, name, body)


def make_agent_output_tool(directory: Path, name: str, output: str, exit_code: int = 0) -> Path:
    """Create a tool that advertises ``--agent`` and prints ``output`` for it."""
    body = (
        'case "$1" in\n'
        f"  --help) {_AGENT_HELP} ;;\n"
        "  --agent)\n"
        "    cat <<'OUT'\n"
        f"{output}\n"
        "OUT\n"
        f"    exit {exit_code}\n"
        "    ;;\n"
        "esac\n"
    )
    return write_script(directory, name, body)


def make_slow_tool(directory: Path, name: str, pid_file: Path) -> Path:
    """Create a tool whose ``--agent`` records its PID and then hangs."""
    body = (
        'case "$1" in\n'
        f"  --help) {_AGENT_HELP} ;;\n"
        "  --agent)\n"
        f'    echo $$ > "{pid_file}"\n'
        "    exec sleep 30\n"
        "    ;;\n"
        "esac\n"
    )
    return write_script(directory, name, body)


def make_slow_help_tool(directory: Path, name: str) -> Path:
    """Create a tool whose ``--help`` hangs."""
    return write_script(directory, name, "exec sleep 30\n")


posix_only = pytest.mark.skipif(
    sys.platform == "win32", reason="mock executables are POSIX shell scripts"
)

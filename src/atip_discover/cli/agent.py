"""The ATIP manifest that ``atip-discover --agent`` prints about itself."""

from __future__ import annotations

from typing import Any

from atip_discover import __version__

ATIP_PROTOCOL_VERSION = "0.6"

_READ_ONLY = {"network": False, "destructive": False, "idempotent": True}


def agent_manifest() -> dict[str, Any]:
    """Return this tool's own manifest."""
    return {
        "atip": {"version": ATIP_PROTOCOL_VERSION},
        "name": "atip-discover",
        "version": __version__,
        "description": "Discover, validate and index ATIP-compatible CLI tools",
        "commands": {
            "scan": {
                "description": "Probe executables in safe directories and update the registry",
                "options": [
                    {"name": "allow-path", "type": "string", "description": "Directory to scan instead of the safe paths"},
                    {"name": "skip", "type": "string", "description": "Tool name or glob to skip"},
                    {"name": "timeout", "type": "string", "description": "Per-tool probe timeout, e.g. 2s"},
                    {"name": "parallel", "type": "integer", "description": "Concurrent probes"},
                    {"name": "full", "type": "boolean", "description": "Re-probe unchanged executables"},
                    {"name": "dry-run", "type": "boolean", "description": "Show what would be probed"},
                ],
                "effects": {"network": False, "destructive": False, "idempotent": True},
            },
            "list": {
                "description": "List registered tools",
                "arguments": [
                    {"name": "pattern", "type": "string", "required": False, "description": "Glob over tool names"},
                ],
                "effects": _READ_ONLY,
            },
            "get": {
                "description": "Show the cached manifest of a registered tool",
                "arguments": [
                    {"name": "tool", "type": "string", "required": True, "description": "Tool name"},
                ],
                "effects": _READ_ONLY,
            },
            "validate": {
                "description": "Validate manifest files",
                "arguments": [
                    {"name": "files", "type": "file", "required": True, "variadic": True, "description": "Manifest files"},
                ],
                "effects": _READ_ONLY,
            },
            "cache": {
                "description": "Inspect and maintain the manifest cache",
                "commands": {
                    "info": {"description": "Show cache statistics", "effects": _READ_ONLY},
                    "clear": {
                        "description": "Remove registry entries and cached manifests",
                        "effects": {"network": False, "destructive": True, "reversible": True},
                    },
                    "refresh": {
                        "description": "Re-probe registered tools",
                        "effects": {"network": False, "destructive": False, "idempotent": True},
                    },
                },
            },
        },
    }

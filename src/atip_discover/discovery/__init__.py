"""Safe discovery of ATIP-compatible executables.

Enumerates executables in trusted directories, probes each one with the
two-phase ``--help`` / ``--agent`` protocol, and records every tool that
answers with a valid manifest in the registry.

Public API::

    from atip_discover.discovery import Scanner, ScanOptions

    scanner = Scanner(resolve_paths(), load_config())
    result = asyncio.run(scanner.scan(ScanOptions()))
    for tool in result.tools:
        print(f"{tool.name} {tool.version}: {tool.path}")
"""

from __future__ import annotations

from atip_discover.discovery.executables import enumerate_executables
from atip_discover.discovery.models import (
    DiscoveredTool,
    ScanError,
    ScanPlan,
    ScanProgress,
    ScanResult,
)
from atip_discover.discovery.prober import Prober, check_help_for_agent, probe
from atip_discover.discovery.safety import is_safe_path, matches_skip_list
from atip_discover.discovery.scanner import Scanner, ScanOptions

__all__ = [
    "DiscoveredTool",
    "Prober",
    "ScanError",
    "ScanOptions",
    "ScanPlan",
    "ScanProgress",
    "ScanResult",
    "Scanner",
    "check_help_for_agent",
    "enumerate_executables",
    "is_safe_path",
    "matches_skip_list",
    "probe",
]

"""Data models for scan results and progress reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from atip_discover.registry.models import ToolSource, format_timestamp


@dataclass
class DiscoveredTool:
    """A tool registered for the first time by a scan.

    Attributes:
        name: Tool name from its manifest.
        version: Tool version from its manifest.
        path: Absolute path to the executable.
        source: Always ``ToolSource.NATIVE`` for scanned tools.
        discovered_at: Registration time.
    """

    name: str
    version: str
    path: str
    source: ToolSource = ToolSource.NATIVE
    discovered_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "path": self.path,
            "source": ToolSource(self.source).value,
            "discoveredAt": format_timestamp(self.discovered_at),
        }


@dataclass
class ScanError:
    """A candidate that could not be probed or registered."""

    path: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "error": self.error}


@dataclass
class ScanResult:
    """Aggregate outcome of one scan or refresh.

    Attributes:
        discovered: Tools registered for the first time.
        updated: Existing tools whose entry was refreshed.
        failed: Candidates that produced an error.
        skipped: Candidates excluded by the skip list or found unchanged.
        duration_ms: Wall-clock duration of the scan.
        tools: The newly discovered tools.
        errors: One record per failed candidate.
        cancelled: True when the scan was interrupted; the counts then
            cover only the candidates completed before the interruption.
    """

    discovered: int = 0
    updated: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: int = 0
    tools: list[DiscoveredTool] = field(default_factory=list)
    errors: list[ScanError] = field(default_factory=list)
    cancelled: bool = False

    def add_error(self, path: str | Path, message: str) -> None:
        self.errors.append(ScanError(path=str(path), error=message))
        self.failed = len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "discovered": self.discovered,
            "updated": self.updated,
            "failed": self.failed,
            "skipped": self.skipped,
            "durationMs": self.duration_ms,
            "tools": [t.to_dict() for t in self.tools],
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.cancelled:
            data["cancelled"] = True
        return data


@dataclass
class ScanPlan:
    """What a scan would do, computed without executing anything.

    Attributes:
        directories: Directories that will be enumerated, in order.
        candidates: Executables that will be probed.
        skipped: Executables excluded by the skip list or incremental mode.
    """

    directories: list[str] = field(default_factory=list)
    candidates: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "directories": self.directories,
            "candidates": [str(p) for p in self.candidates],
            "skipped": [str(p) for p in self.skipped],
        }


@dataclass(frozen=True)
class ScanProgress:
    """Progress event passed to ``ScanOptions.on_progress``.

    ``phase`` is one of ``"enumerating"``, ``"probing"`` or ``"done"``.
    """

    phase: str
    current: int
    total: int
    item: str = ""

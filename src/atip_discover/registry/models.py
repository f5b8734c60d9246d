"""Registry data models: ``RegistryEntry`` and ``Registry``.

The registry is the persisted index of every tool known to support ATIP
introspection. It maps a unique tool name to where the tool lives, how it
was found, and when it was last verified. Serialized form::

    {
      "version": "1",
      "lastScan": "2026-01-05T10:30:00.123456+00:00",
      "tools": [
        {
          "name": "gh",
          "version": "2.45.0",
          "path": "/usr/local/bin/gh",
          "source": "native",
          "discoveredAt": "...",
          "lastVerified": "...",
          "modTime": "...",
          "metadataFile": "gh.json"
        }
      ]
    }

Timestamps are ISO-8601 UTC with microsecond precision, which is what the
incremental-scan staleness comparison relies on.
"""

from __future__ import annotations

import fnmatch
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from atip_discover.exceptions import ToolNotFoundError

REGISTRY_VERSION: str = "1"

# Two modification times closer than this are considered equal.
MOD_TIME_TOLERANCE_SECONDS: float = 0.001


class ToolSource(str, Enum):
    """How a registry entry was obtained."""

    NATIVE = "native"
    SHIM = "shim"


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be a string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def file_mod_time(path: str | os.PathLike[str]) -> datetime:
    """Return the modification time of ``path`` as an aware UTC datetime.

    Raises:
        OSError: If the file cannot be stat'ed.
    """
    return datetime.fromtimestamp(os.stat(path).st_mtime, tz=timezone.utc)


# ---------------------------------------------------------------------------
# RegistryEntry
# ---------------------------------------------------------------------------


@dataclass
class RegistryEntry:
    """One tool in the registry.

    Attributes:
        name: Tool name from its manifest. Unique within a registry.
        version: Tool version from its manifest.
        path: Absolute path of the executable, or of the shim file for
            shim entries.
        source: ``ToolSource.NATIVE`` or ``ToolSource.SHIM``.
        discovered_at: When the tool was first registered. Never changed
            by later updates unless explicitly supplied.
        last_verified: When the manifest was last successfully fetched.
        mod_time: Executable modification time at the last probe. None
            for shims.
        metadata_file: File name of the cached manifest, if any.
    """

    name: str
    version: str
    path: str
    source: ToolSource = ToolSource.NATIVE
    discovered_at: datetime | None = None
    last_verified: datetime | None = None
    mod_time: datetime | None = None
    metadata_file: str | None = None

    def is_stale(self) -> bool:
        return is_stale(self)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "path": self.path,
            "source": ToolSource(self.source).value,
            "discoveredAt": format_timestamp(self.discovered_at),
            "lastVerified": format_timestamp(self.last_verified),
        }
        if self.mod_time is not None:
            data["modTime"] = format_timestamp(self.mod_time)
        if self.metadata_file:
            data["metadataFile"] = self.metadata_file
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RegistryEntry:
        """Build an entry from its serialized form.

        Raises:
            KeyError: If a required key is missing.
            TypeError: If a field has the wrong JSON type.
            ValueError: If the source or a timestamp is malformed.
        """
        for key in ("name", "version", "path"):
            if not isinstance(data[key], str):
                raise TypeError(f"tool {key!r} must be a string")
        metadata_file = data.get("metadataFile")
        if metadata_file is not None and not isinstance(metadata_file, str):
            raise TypeError("tool 'metadataFile' must be a string")
        return cls(
            name=data["name"],
            version=data["version"],
            path=data["path"],
            source=ToolSource(data.get("source", ToolSource.NATIVE.value)),
            discovered_at=parse_timestamp(data.get("discoveredAt")),
            last_verified=parse_timestamp(data.get("lastVerified")),
            mod_time=parse_timestamp(data.get("modTime")),
            metadata_file=metadata_file or None,
        )


def is_stale(entry: RegistryEntry) -> bool:
    """Report whether a registry entry needs re-probing.

    - Shim entries are never stale.
    - A native entry whose executable no longer exists is stale.
    - A native entry without a recorded modification time is not stale.
    - Otherwise the entry is stale only if the executable's current
      modification time is strictly later than the recorded one.
    """
    if entry.source == ToolSource.SHIM:
        return False
    try:
        current = file_mod_time(entry.path)
    except OSError:
        return True
    if entry.mod_time is None:
        return False
    return current > entry.mod_time


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class Registry:
    """In-memory registry keyed by tool name.

    Entries keep their insertion order, so a registry loaded from disk and
    saved again produces the same tool ordering.

    Example::

        reg = Registry()
        reg.add(RegistryEntry(name="gh", version="2.45.0", path="/usr/bin/gh"))
        reg.get("gh").version      # "2.45.0"
        reg.list_tools("g*")       # [RegistryEntry(name="gh", ...)]
    """

    def __init__(
        self, version: str = REGISTRY_VERSION, last_scan: datetime | None = None
    ) -> None:
        self.version = version
        self.last_scan = last_scan
        self._tools: dict[str, RegistryEntry] = {}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    @property
    def tools(self) -> list[RegistryEntry]:
        return list(self._tools.values())

    # -- Mutation -----------------------------------------------------------

    def add(self, entry: RegistryEntry) -> RegistryEntry:
        """Insert or update an entry by name.

        On update the existing entry takes the new version, path, source,
        modification time and metadata file, and a fresh ``last_verified``.
        Its ``discovered_at`` is kept unless the new entry carries one.
        On insert, missing timestamps default to now.

        Returns:
            The entry now stored in the registry.
        """
        now = utc_now()
        existing = self._tools.get(entry.name)
        if existing is None:
            if entry.discovered_at is None:
                entry.discovered_at = now
            if entry.last_verified is None:
                entry.last_verified = now
            self._tools[entry.name] = entry
            return entry

        existing.version = entry.version
        existing.path = entry.path
        existing.source = entry.source
        existing.last_verified = entry.last_verified or now
        existing.mod_time = entry.mod_time
        existing.metadata_file = entry.metadata_file
        if entry.discovered_at is not None:
            existing.discovered_at = entry.discovered_at
        return existing

    def remove(self, name: str) -> RegistryEntry:
        """Remove and return the entry named ``name``.

        Raises:
            ToolNotFoundError: If no such entry exists.
        """
        try:
            return self._tools.pop(name)
        except KeyError:
            raise ToolNotFoundError(name) from None

    def clear(self) -> None:
        self._tools.clear()

    # -- Lookup -------------------------------------------------------------

    def find(self, name: str) -> RegistryEntry | None:
        return self._tools.get(name)

    def find_by_path(self, path: str) -> RegistryEntry | None:
        for entry in self._tools.values():
            if entry.path == path:
                return entry
        return None

    def get(self, name: str) -> RegistryEntry:
        """Return the entry named ``name``.

        Raises:
            ToolNotFoundError: If no such entry exists.
        """
        entry = self._tools.get(name)
        if entry is None:
            raise ToolNotFoundError(name)
        return entry

    def list_tools(
        self, pattern: str | None = None, source: str | None = None
    ) -> list[RegistryEntry]:
        """Return entries filtered by name glob and source.

        Args:
            pattern: Shell glob matched against tool names. None or empty
                matches everything.
            source: ``"native"``, ``"shim"``, or None/``"all"`` for no
                source filter.
        """
        result = []
        for entry in self._tools.values():
            if pattern and not fnmatch.fnmatchcase(entry.name, pattern):
                continue
            if source and source != "all" and ToolSource(entry.source).value != source:
                continue
            result.append(entry)
        return result

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "lastScan": format_timestamp(self.last_scan),
            "tools": [entry.to_dict() for entry in self._tools.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Registry:
        """Build a registry from its serialized form.

        Duplicate names in ``tools`` collapse into one entry; the last
        occurrence wins.

        Raises:
            KeyError, TypeError, ValueError: If the structure is malformed.
        """
        if not isinstance(data, dict):
            raise TypeError("registry must be a JSON object")
        tools = data.get("tools") or []
        if not isinstance(tools, list):
            raise TypeError("registry 'tools' must be a list")

        registry = cls(
            version=str(data.get("version") or REGISTRY_VERSION),
            last_scan=parse_timestamp(data.get("lastScan")),
        )
        for raw in tools:
            if not isinstance(raw, dict):
                raise TypeError("registry tool entries must be objects")
            entry = RegistryEntry.from_dict(raw)
            registry._tools[entry.name] = entry
        return registry

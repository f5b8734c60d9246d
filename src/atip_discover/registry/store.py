"""On-disk persistence for the registry, the manifest cache, and shims.

Every write goes to a temporary file in the target's directory which is
fsync'ed and then renamed over the target with ``os.replace``. Readers
therefore see either the previous file or the new one, never a partial
write.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from atip_discover.exceptions import CacheError, MetadataNotFoundError, RegistryError
from atip_discover.paths import AtipPaths
from atip_discover.registry.models import (
    Registry,
    RegistryEntry,
    ToolSource,
    format_timestamp,
    utc_now,
)
from atip_discover.validator import validate_metadata

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Atomic JSON writes
# ---------------------------------------------------------------------------


def write_json_atomic(path: Path, data: Any) -> None:
    """Write ``data`` as JSON to ``path`` via temp file, fsync and rename.

    Raises:
        OSError: If any step fails. The temp file is removed and ``path``
            is left as it was.
        TypeError, ValueError: If ``data`` is not JSON-serializable.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(temp_name, path)
    except BaseException:
        try:
            os.unlink(temp_name)
        except FileNotFoundError:
            pass
        raise


# ---------------------------------------------------------------------------
# Registry file
# ---------------------------------------------------------------------------


def load_registry(path: Path) -> Registry:
    """Load the registry at ``path``.

    A missing file yields an empty registry.

    Raises:
        RegistryError: If the file cannot be read or is not a valid registry.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Registry()
    except OSError as exc:
        raise RegistryError(f"Failed to read registry: {exc}", path) from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RegistryError(f"Failed to parse registry: {exc}", path) from exc

    try:
        return Registry.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise RegistryError(f"Malformed registry: {exc}", path) from exc


def save_registry(registry: Registry, path: Path) -> None:
    """Atomically persist ``registry`` to ``path``.

    Raises:
        RegistryError: If the write fails; the previous file is untouched.
    """
    try:
        write_json_atomic(path, registry.to_dict())
    except (OSError, TypeError, ValueError) as exc:
        raise RegistryError(f"Failed to save registry: {exc}", path) from exc


# ---------------------------------------------------------------------------
# Cache bookkeeping
# ---------------------------------------------------------------------------


def check_cache_name(name: str) -> None:
    """Reject tool names that are unusable as a plain cache file name.

    Raises:
        CacheError: If ``name`` is empty, ``.``/``..``, starts with a dot,
            or contains a path separator or NUL byte.
    """
    if not name or name in (".", "..") or name.startswith("."):
        raise CacheError(f"Unsafe tool name for cache file: {name!r}")
    separators = {"/", "\\", "\0"}
    if os.altsep:
        separators.add(os.altsep)
    if any(sep in name for sep in separators):
        raise CacheError(f"Unsafe tool name for cache file: {name!r}")


@dataclass
class CacheInfo:
    """Summary of what is stored under the data directory.

    Attributes:
        data_dir: Base data directory.
        registry_path: Location of ``registry.json``.
        tool_count: Number of registry entries.
        native_count: Entries found by probing.
        shim_count: Entries loaded from shim files.
        cached_files: Number of manifest files in the cache directory.
        cache_size_bytes: Total size of those files.
        last_scan: Time of the last completed scan, if any.
    """

    data_dir: Path
    registry_path: Path
    tool_count: int
    native_count: int
    shim_count: int
    cached_files: int
    cache_size_bytes: int
    last_scan: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "dataDir": str(self.data_dir),
            "registryPath": str(self.registry_path),
            "toolCount": self.tool_count,
            "nativeCount": self.native_count,
            "shimCount": self.shim_count,
            "cachedFiles": self.cached_files,
            "cacheSizeBytes": self.cache_size_bytes,
            "lastScan": format_timestamp(self.last_scan),
        }


class RegistryStore:
    """Registry, manifest cache and shim access bound to one data directory.

    Example::

        store = RegistryStore(resolve_paths())
        registry = store.load()
        store.write_metadata("gh", manifest)
        store.save(registry)
    """

    def __init__(self, paths: AtipPaths) -> None:
        self.paths = paths

    # -- Registry -----------------------------------------------------------

    def load(self) -> Registry:
        return load_registry(self.paths.registry_path)

    def save(self, registry: Registry) -> None:
        save_registry(registry, self.paths.registry_path)

    # -- Manifest cache -----------------------------------------------------

    def metadata_path(self, entry: RegistryEntry | str) -> Path:
        """Return where the manifest for ``entry`` lives.

        Shim entries point into the shims directory; everything else into
        the tool cache as ``<name>.json``.

        Raises:
            CacheError: If the tool name cannot be used as a file name.
        """
        if isinstance(entry, RegistryEntry) and entry.source == ToolSource.SHIM:
            return self.paths.shims_dir / (entry.metadata_file or f"{entry.name}.json")
        name = entry.name if isinstance(entry, RegistryEntry) else entry
        check_cache_name(name)
        return self.paths.tools_dir / f"{name}.json"

    def write_metadata(self, name: str, manifest: dict[str, Any]) -> Path:
        """Cache ``manifest`` as ``tools/<name>.json``.

        Raises:
            CacheError: If the name is unsafe or the write fails.
        """
        target = self.metadata_path(name)
        try:
            write_json_atomic(target, manifest)
        except (OSError, TypeError, ValueError) as exc:
            raise CacheError(f"Failed to cache metadata for {name}: {exc}") from exc
        return target

    def read_metadata(self, entry: RegistryEntry | str) -> dict[str, Any]:
        """Return the cached manifest for ``entry``.

        Raises:
            MetadataNotFoundError: If no cached manifest exists.
            CacheError: If the cached file is unreadable or not JSON.
        """
        name = entry.name if isinstance(entry, RegistryEntry) else entry
        target = self.metadata_path(entry)
        try:
            text = target.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise MetadataNotFoundError(name, target) from None
        except OSError as exc:
            raise CacheError(f"Failed to read metadata for {name}: {exc}") from exc
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise CacheError(f"Corrupted metadata for {name}: {exc}") from exc

    def remove_metadata(self, name: str) -> int:
        """Delete the cached manifest for ``name``; return bytes freed."""
        target = self.metadata_path(name)
        try:
            size = target.stat().st_size
            target.unlink()
        except FileNotFoundError:
            return 0
        return size

    # -- Shims --------------------------------------------------------------

    def load_shims(self, registry: Registry) -> list[str]:
        """Register every valid manifest in the shims directory.

        Shims describe tools that cannot answer ``--agent`` themselves. A
        shim never replaces a natively discovered tool of the same name.
        Invalid shim files are logged and skipped.

        Returns:
            Names of the shim entries added or refreshed.
        """
        shims_dir = self.paths.shims_dir
        if not shims_dir.is_dir():
            return []

        loaded: list[str] = []
        for shim_file in sorted(shims_dir.glob("*.json")):
            try:
                manifest = json.loads(shim_file.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Skipping unreadable shim %s: %s", shim_file, exc)
                continue

            result = validate_metadata(manifest)
            if not result.valid:
                logger.warning("Skipping invalid shim %s: %s", shim_file, result.summary())
                continue

            existing = registry.find(manifest["name"])
            if existing is not None and existing.source == ToolSource.NATIVE:
                logger.debug(
                    "Shim %s ignored; %s was discovered natively",
                    shim_file.name,
                    manifest["name"],
                )
                continue

            registry.add(
                RegistryEntry(
                    name=manifest["name"],
                    version=manifest["version"],
                    path=str(shim_file),
                    source=ToolSource.SHIM,
                    metadata_file=shim_file.name,
                )
            )
            loaded.append(manifest["name"])
        return loaded

    # -- Maintenance --------------------------------------------------------

    def cache_info(self, registry: Registry | None = None) -> CacheInfo:
        registry = registry if registry is not None else self.load()
        files = (
            list(self.paths.tools_dir.glob("*.json"))
            if self.paths.tools_dir.is_dir()
            else []
        )
        size = 0
        for f in files:
            try:
                size += f.stat().st_size
            except OSError:
                continue
        shims = len(registry.list_tools(source=ToolSource.SHIM.value))
        return CacheInfo(
            data_dir=self.paths.data_dir,
            registry_path=self.paths.registry_path,
            tool_count=len(registry),
            native_count=len(registry) - shims,
            shim_count=shims,
            cached_files=len(files),
            cache_size_bytes=size,
            last_scan=registry.last_scan,
        )

    def clear_cache(
        self,
        registry: Registry,
        names: list[str] | None = None,
        older_than: float | None = None,
    ) -> list[str]:
        """Remove entries and their cached manifests from ``registry``.

        With neither ``names`` nor ``older_than``, every entry and every
        cached manifest is removed. The caller is responsible for saving
        the registry afterwards.

        Args:
            registry: Registry to modify in place.
            names: Only remove these tools.
            older_than: Only remove native entries whose last verification
                is older than this many seconds.

        Returns:
            Names of the removed entries.

        Raises:
            ToolNotFoundError: If a name in ``names`` is not registered.
        """
        if names is not None:
            targets = [registry.get(name) for name in names]
        elif older_than is not None:
            cutoff = utc_now() - timedelta(seconds=older_than)
            targets = [
                e
                for e in registry.tools
                if e.source == ToolSource.NATIVE
                and e.last_verified is not None
                and e.last_verified < cutoff
            ]
        else:
            removed = [e.name for e in registry.tools]
            registry.clear()
            registry.last_scan = None
            if self.paths.tools_dir.is_dir():
                for cached in self.paths.tools_dir.glob("*.json"):
                    cached.unlink(missing_ok=True)
            return removed

        removed = []
        for entry in targets:
            registry.remove(entry.name)
            if entry.source == ToolSource.NATIVE:
                try:
                    self.remove_metadata(entry.name)
                except CacheError:
                    logger.debug("No cache file for unsafe name %r", entry.name)
            removed.append(entry.name)
        return removed

"""Scan orchestration: directories -> candidates -> probes -> registry.

A scan runs in four stages:

1. **Directories.** Explicit ``allow_paths`` are used as given. Otherwise
   the configured safe paths (plus any additional paths) are filtered
   through ``is_safe_path``. Each directory is scanned once.
2. **Candidates.** Executables are enumerated per directory, then dropped
   if their name is on the skip list or, in incremental mode, if the
   registry already holds an entry for the same path whose recorded
   modification time matches the file's current one.
3. **Probing.** A fixed pool of worker tasks pulls candidates from a queue
   and pushes outcomes onto a results queue, so at most ``parallelism``
   probes run at once.
4. **Aggregation.** A single consumer applies every outcome: it writes the
   manifest cache from a worker thread, mutates the registry and updates
   the counts. Nothing else touches the registry during a scan.

Probe failures are recorded in ``ScanResult.errors`` and never stop the
scan. Only failing to load or save the registry raises.

Example::

    scanner = Scanner(resolve_paths(), load_config())
    result = asyncio.run(scanner.scan(ScanOptions(incremental=False)))
    print(result.discovered, result.failed)
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from atip_discover.config import DiscoverConfig
from atip_discover.discovery.executables import enumerate_executables
from atip_discover.discovery.models import (
    DiscoveredTool,
    ScanPlan,
    ScanProgress,
    ScanResult,
)
from atip_discover.discovery.prober import Prober
from atip_discover.discovery.safety import filter_safe_directories, matches_skip_list
from atip_discover.exceptions import CacheError, ConfigError, DiscoverError
from atip_discover.paths import AtipPaths, expand_tilde
from atip_discover.registry.models import (
    MOD_TIME_TOLERANCE_SECONDS,
    Registry,
    RegistryEntry,
    ToolSource,
    file_mod_time,
    utc_now,
)
from atip_discover.registry.store import RegistryStore

logger = logging.getLogger(__name__)

NO_LONGER_SUPPORTED = "Tool no longer supports ATIP introspection"


@dataclass
class ScanOptions:
    """Per-scan overrides on top of ``DiscoverConfig``.

    Attributes:
        allow_paths: Directories to scan instead of the configured safe
            paths. These bypass the directory safety checks.
        skip_list: Extra names or globs to skip, added to the configured
            skip list.
        timeout: Probe timeout in seconds; None uses the configured value.
        parallelism: Concurrent probes; None uses the configured value.
        incremental: Skip executables unchanged since their last probe.
        include_shims: Load shim manifests into the registry.
        on_progress: Called with a ``ScanProgress`` as the scan advances.
    """

    allow_paths: list[str] = field(default_factory=list)
    skip_list: list[str] = field(default_factory=list)
    timeout: float | None = None
    parallelism: int | None = None
    incremental: bool = True
    include_shims: bool = True
    on_progress: Callable[[ScanProgress], None] | None = None


@dataclass
class _ProbeOutcome:
    path: Path
    manifest: dict[str, Any] | None = None
    error: str | None = None
    cancelled: bool = False


def _dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for item in items:
        key = os.path.normcase(os.path.abspath(item))
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def _is_unchanged(entry: RegistryEntry | None, path: Path) -> bool:
    if entry is None or entry.mod_time is None:
        return False
    try:
        current = file_mod_time(path)
    except OSError:
        return False
    delta = abs((current - entry.mod_time).total_seconds())
    return delta < MOD_TIME_TOLERANCE_SECONDS


class Scanner:
    """Discovers ATIP tools and keeps the registry up to date.

    Args:
        paths: Resolved storage locations.
        config: Discovery configuration. Defaults to built-in defaults.
        store: Registry store; defaults to one bound to ``paths``.
    """

    def __init__(
        self,
        paths: AtipPaths,
        config: DiscoverConfig | None = None,
        store: RegistryStore | None = None,
    ) -> None:
        self.paths = paths
        self.config = config if config is not None else DiscoverConfig()
        self.store = store if store is not None else RegistryStore(paths)

    # -- Planning -----------------------------------------------------------

    def directories(self, options: ScanOptions) -> list[str]:
        """Return the directories a scan with ``options`` would enumerate."""
        if options.allow_paths:
            return _dedupe([expand_tilde(p) for p in options.allow_paths])
        configured = list(self.config.safe_paths) + list(self.config.additional_paths)
        return _dedupe(filter_safe_directories(configured))

    def _plan(self, registry: Registry, options: ScanOptions) -> ScanPlan:
        plan = ScanPlan(directories=self.directories(options))
        skip_list = list(self.config.skip_list) + list(options.skip_list)
        seen: set[str] = set()

        for index, directory in enumerate(plan.directories, start=1):
            _notify(options, ScanProgress("enumerating", index, len(plan.directories), directory))
            for executable in enumerate_executables(directory):
                key = str(executable)
                if key in seen:
                    continue
                seen.add(key)

                if matches_skip_list(executable.name, skip_list):
                    logger.debug("Skipping %s (skip list)", executable)
                    plan.skipped.append(executable)
                elif options.incremental and _is_unchanged(
                    registry.find_by_path(key), executable
                ):
                    logger.debug("Skipping %s (unchanged)", executable)
                    plan.skipped.append(executable)
                else:
                    plan.candidates.append(executable)
        return plan

    def plan(self, options: ScanOptions | None = None) -> ScanPlan:
        """Compute what a scan would probe without executing anything.

        Raises:
            RegistryError: If the registry cannot be loaded.
        """
        options = options if options is not None else ScanOptions()
        return self._plan(self.store.load(), options)

    # -- Scanning -----------------------------------------------------------

    async def scan(
        self, options: ScanOptions | None = None, cancel: asyncio.Event | None = None
    ) -> ScanResult:
        """Run a scan and persist the updated registry.

        Args:
            options: Per-scan overrides.
            cancel: When set, no further candidates are dispatched and
                in-flight probes are killed. Completed results are still
                saved and the result is marked ``cancelled``.

        Raises:
            RegistryError: If the registry cannot be loaded or saved.
            ConfigError: If the effective timeout or parallelism is invalid.
        """
        options = options if options is not None else ScanOptions()
        started = time.monotonic()
        timeout, parallelism = self._limits(options.timeout, options.parallelism)

        registry = self.store.load()
        plan = self._plan(registry, options)
        result = ScanResult(skipped=len(plan.skipped))
        total = len(plan.candidates)
        logger.info(
            "Probing %d candidates in %d directories (%d skipped)",
            total,
            len(plan.directories),
            result.skipped,
        )

        completed = 0
        async for outcome in self._probe_all(
            plan.candidates, Prober(timeout), parallelism, cancel
        ):
            if outcome.cancelled:
                result.cancelled = True
                continue
            completed += 1
            await self._record(registry, outcome, result)
            _notify(options, ScanProgress("probing", completed, total, str(outcome.path)))

        if options.include_shims:
            shims = self.store.load_shims(registry)
            logger.debug("Loaded %d shims", len(shims))

        registry.last_scan = utc_now()
        self.store.save(registry)

        result.duration_ms = int((time.monotonic() - started) * 1000)
        _notify(options, ScanProgress("done", completed, total))
        return result

    async def refresh(
        self,
        names: list[str] | None = None,
        stale_only: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> ScanResult:
        """Re-probe registered native tools and re-cache their manifests.

        Args:
            names: Tools to refresh; None refreshes every native entry.
            stale_only: Only refresh entries whose executable changed or
                disappeared since the last probe.
            cancel: Same semantics as for ``scan``.

        Returns:
            A ``ScanResult`` where ``updated`` counts refreshed tools and
            ``skipped`` counts shims and, with ``stale_only``, fresh tools.

        Raises:
            ToolNotFoundError: If a name in ``names`` is not registered.
            RegistryError: If the registry cannot be loaded or saved.
        """
        started = time.monotonic()
        timeout, parallelism = self._limits(None, None)
        registry = self.store.load()
        entries = [registry.get(n) for n in names] if names else registry.tools

        result = ScanResult()
        targets: list[Path] = []
        for entry in entries:
            if entry.source == ToolSource.SHIM or (stale_only and not entry.is_stale()):
                result.skipped += 1
                continue
            targets.append(Path(entry.path))

        async for outcome in self._probe_all(targets, Prober(timeout), parallelism, cancel):
            if outcome.cancelled:
                result.cancelled = True
            elif outcome.error is None and outcome.manifest is None:
                result.add_error(outcome.path, NO_LONGER_SUPPORTED)
            else:
                await self._record(registry, outcome, result)

        self.store.save(registry)
        result.duration_ms = int((time.monotonic() - started) * 1000)
        return result

    # -- Internals ----------------------------------------------------------

    def _limits(self, timeout: float | None, parallelism: int | None) -> tuple[float, int]:
        timeout = timeout if timeout is not None else self.config.scan_timeout
        parallelism = parallelism if parallelism is not None else self.config.parallelism
        if timeout <= 0:
            raise ConfigError("Timeout must be greater than 0", "timeout", timeout)
        if parallelism <= 0:
            raise ConfigError(
                "Parallelism must be greater than 0", "parallelism", parallelism
            )
        return timeout, parallelism

    async def _probe_all(
        self,
        candidates: list[Path],
        prober: Prober,
        parallelism: int,
        cancel: asyncio.Event | None,
    ) -> AsyncIterator[_ProbeOutcome]:
        """Probe ``candidates`` with a bounded worker pool.

        Yields exactly one outcome per candidate, in completion order.
        """
        if not candidates:
            return

        jobs: asyncio.Queue[Path | None] = asyncio.Queue()
        results: asyncio.Queue[_ProbeOutcome] = asyncio.Queue()
        for candidate in candidates:
            jobs.put_nowait(candidate)
        worker_count = min(parallelism, len(candidates))
        for _ in range(worker_count):
            jobs.put_nowait(None)

        workers = [
            asyncio.ensure_future(_worker(jobs, results, prober, cancel))
            for _ in range(worker_count)
        ]
        try:
            for _ in range(len(candidates)):
                yield await results.get()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

    async def _record(
        self, registry: Registry, outcome: _ProbeOutcome, result: ScanResult
    ) -> None:
        if outcome.error is not None:
            logger.info("Probe failed for %s: %s", outcome.path, outcome.error)
            result.add_error(outcome.path, outcome.error)
            return
        if outcome.manifest is None:
            return

        manifest = outcome.manifest
        name = manifest["name"]
        try:
            await asyncio.to_thread(self.store.write_metadata, name, manifest)
        except CacheError as exc:
            logger.info("Cannot cache %s: %s", outcome.path, exc)
            result.add_error(outcome.path, str(exc))
            return

        try:
            mod_time = file_mod_time(outcome.path)
        except OSError:
            mod_time = None

        is_new = name not in registry
        entry = registry.add(
            RegistryEntry(
                name=name,
                version=manifest["version"],
                path=str(outcome.path),
                source=ToolSource.NATIVE,
                mod_time=mod_time,
                metadata_file=f"{name}.json",
            )
        )
        if is_new:
            logger.info("Discovered %s %s at %s", name, entry.version, entry.path)
            result.discovered += 1
            result.tools.append(
                DiscoveredTool(
                    name=entry.name,
                    version=entry.version,
                    path=entry.path,
                    discovered_at=entry.discovered_at,
                )
            )
        else:
            result.updated += 1


def _notify(options: ScanOptions, progress: ScanProgress) -> None:
    if options.on_progress is not None:
        options.on_progress(progress)


async def _worker(
    jobs: asyncio.Queue[Path | None],
    results: asyncio.Queue[_ProbeOutcome],
    prober: Prober,
    cancel: asyncio.Event | None,
) -> None:
    while True:
        path = await jobs.get()
        if path is None:
            return
        await results.put(await _probe_one(prober, path, cancel))


async def _probe_one(
    prober: Prober, path: Path, cancel: asyncio.Event | None
) -> _ProbeOutcome:
    if cancel is not None and cancel.is_set():
        return _ProbeOutcome(path, cancelled=True)

    probe_task = asyncio.ensure_future(prober.probe(path))
    waiters: set[asyncio.Future[Any]] = {probe_task}
    if cancel is not None:
        waiters.add(asyncio.ensure_future(cancel.wait()))

    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [w for w in waiters if not w.done()]
        for waiter in pending:
            waiter.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    if probe_task.cancelled():
        return _ProbeOutcome(path, cancelled=True)
    try:
        return _ProbeOutcome(path, manifest=probe_task.result())
    except DiscoverError as exc:
        return _ProbeOutcome(path, error=str(exc))
    except Exception as exc:
        logger.warning("Unexpected error probing %s", path, exc_info=True)
        return _ProbeOutcome(path, error=str(exc))

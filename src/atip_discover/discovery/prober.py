"""Two-phase probing of candidate executables.

Phase 1 runs ``<exe> --help``, which is safe for practically every CLI, and
looks for ``--agent`` in the combined stdout and stderr. Phase 2 runs
``<exe> --agent`` only when phase 1 found the flag documented, so a tool
where ``--agent`` happens to mean something else is never invoked with it.

Outcomes of :func:`probe`:

====================================  =================================
Situation                             Result
====================================  =================================
``--agent`` not in usage text          ``None`` (not supported)
non-zero exit or blank stdout          ``None`` (not supported)
stdout not JSON, not starting ``{``    ``None`` (not supported)
stdout starts ``{`` but is not JSON    ``ProbeError``
JSON fails manifest validation         ``ProbeError``
``--agent`` exceeds the timeout        ``ProbeTimeoutError``
valid manifest                         the parsed ``dict``
====================================  =================================

Every subprocess runs with no stdin. On timeout or cancellation the process
is killed (its whole process group on POSIX) and reaped before the error
propagates, so probes never leak processes.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import platform
import re
import signal
from pathlib import Path
from typing import Any

from atip_discover import AGENT_FLAG, HELP_FLAG
from atip_discover.config import DEFAULT_TIMEOUT
from atip_discover.exceptions import ProbeError, ProbeTimeoutError
from atip_discover.validator import validate_metadata

logger = logging.getLogger(__name__)

# Phase 1 never gets less than this, however short the probe timeout.
MIN_HELP_TIMEOUT: float = 1.0

_AGENT_FLAG_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"--agent\b"),
    re.compile(r"\s-agent\b"),
    re.compile(r"\batip\b.*\bagent\b"),
)

_IS_WINDOWS = platform.system() == "Windows"


def help_mentions_agent_flag(text: str) -> bool:
    """Return True if usage text documents the ``--agent`` flag."""
    lowered = text.lower()
    return any(p.search(lowered) for p in _AGENT_FLAG_PATTERNS)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    """Forcibly terminate ``proc`` (and its process group) and reap it."""
    if proc.returncode is None:
        try:
            if _IS_WINDOWS:
                proc.kill()
            else:
                os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    await proc.wait()


async def _run(argv: list[str], timeout: float) -> tuple[int, bytes, bytes]:
    """Run ``argv`` with a wall-clock timeout.

    Raises:
        OSError: If the process cannot be spawned.
        asyncio.TimeoutError: If it does not finish in time (after killing it).
    """
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=not _IS_WINDOWS,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except (asyncio.TimeoutError, asyncio.CancelledError):
        await _kill(proc)
        raise
    return proc.returncode if proc.returncode is not None else -1, stdout, stderr


async def check_help_for_agent(
    executable: str | Path, timeout: float = DEFAULT_TIMEOUT
) -> bool:
    """Phase 1: does ``<executable> --help`` mention ``--agent``?

    Any spawn error, timeout, or non-matching output yields False. This
    function never raises for a misbehaving executable.
    """
    try:
        _, stdout, stderr = await _run([str(executable), HELP_FLAG], timeout)
    except asyncio.TimeoutError:
        logger.debug("Help check timed out: %s", executable)
        return False
    except OSError as exc:
        logger.debug("Help check failed for %s: %s", executable, exc)
        return False

    text = stdout.decode("utf-8", errors="replace") + stderr.decode(
        "utf-8", errors="replace"
    )
    return help_mentions_agent_flag(text)


def _parse_manifest(executable: str | Path, stdout: bytes) -> dict[str, Any] | None:
    text = stdout.decode("utf-8", errors="replace")
    stripped = text.strip()
    if not stripped:
        return None

    try:
        document = json.loads(stripped)
    except json.JSONDecodeError as exc:
        if stripped.startswith("{"):
            raise ProbeError(f"Invalid JSON output: {exc}", executable) from exc
        return None

    result = validate_metadata(document)
    if not result.valid:
        raise ProbeError(f"ATIP validation failed: {result.summary()}", executable)
    return document


class Prober:
    """Runs the two-phase protocol against single executables.

    Attributes:
        timeout: Timeout in seconds for the ``--agent`` invocation.
        help_timeout: Timeout in seconds for the ``--help`` invocation.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout
        self.help_timeout = max(MIN_HELP_TIMEOUT, timeout)

    async def supports_agent(self, executable: str | Path) -> bool:
        return await check_help_for_agent(executable, self.help_timeout)

    async def probe(self, executable: str | Path) -> dict[str, Any] | None:
        """Probe one executable.

        Args:
            executable: Absolute path to the candidate.

        Returns:
            The validated manifest, or None if the tool does not support
            introspection.

        Raises:
            ProbeTimeoutError: If ``--agent`` exceeds the timeout.
            ProbeError: If the file is not executable, cannot be spawned,
                or returns a non-conformant manifest.
        """
        path = str(executable)
        if not os.path.isfile(path) or not os.access(path, os.X_OK):
            raise ProbeError(
                f"File is not executable or doesn't exist: {path}", path
            )

        if not await self.supports_agent(path):
            logger.debug("No %s in usage text: %s", AGENT_FLAG, path)
            return None

        try:
            returncode, stdout, _ = await _run([path, AGENT_FLAG], self.timeout)
        except asyncio.TimeoutError as exc:
            raise ProbeTimeoutError(path, self.timeout) from exc
        except OSError as exc:
            raise ProbeError(f"Failed to execute: {exc}", path) from exc

        if returncode != 0:
            logger.debug("%s %s exited with %d", path, AGENT_FLAG, returncode)
            return None
        return _parse_manifest(path, stdout)


async def probe(
    executable: str | Path, timeout: float = DEFAULT_TIMEOUT
) -> dict[str, Any] | None:
    """Probe ``executable`` with a one-off :class:`Prober`."""
    return await Prober(timeout).probe(executable)

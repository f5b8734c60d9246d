"""atip-discover exception hierarchy.

All public exceptions inherit from DiscoverError, giving callers a single
base class to catch when they want to handle any discovery-specific failure
without swallowing unrelated errors.

Only ``RegistryError`` is fatal to a scan. Probe errors are collected per
candidate and reported as data in ``ScanResult.errors``.
"""

from __future__ import annotations

from pathlib import Path


class DiscoverError(Exception):
    """Base exception for all atip-discover errors."""


class RegistryError(DiscoverError):
    """Raised when the registry file cannot be read, parsed, or written.

    Covers corrupted registry JSON, unreadable files, and failed atomic
    writes. The on-disk registry is never left partially written.
    """

    def __init__(self, message: str, path: Path | str) -> None:
        super().__init__(message)
        self.path = Path(path)


class ToolNotFoundError(DiscoverError):
    """Raised when a tool name is not present in the registry."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class MetadataNotFoundError(DiscoverError):
    """Raised when a registered tool has no cached manifest on disk."""

    def __init__(self, tool_name: str, expected_path: Path | str) -> None:
        super().__init__(
            f"Metadata not found for tool {tool_name} at {expected_path}"
        )
        self.tool_name = tool_name
        self.expected_path = Path(expected_path)


class ProbeError(DiscoverError):
    """Raised when a tool claims ATIP support but cannot be probed.

    Covers spawn failures, JSON-looking output that does not parse, and
    manifests that fail schema validation.
    """

    def __init__(self, message: str, executable_path: Path | str) -> None:
        super().__init__(message)
        self.executable_path = Path(executable_path)


class ProbeTimeoutError(ProbeError):
    """Raised when the ``--agent`` invocation exceeds its timeout."""

    def __init__(self, executable_path: Path | str, timeout: float) -> None:
        super().__init__(
            f"Probe timeout after {int(timeout * 1000)}ms: {executable_path}",
            executable_path,
        )
        self.timeout = timeout


class ConfigError(DiscoverError):
    """Raised when configuration values are invalid."""

    def __init__(self, message: str, field: str, value: object = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class CacheError(DiscoverError):
    """Raised when a manifest cannot be written to or read from the cache."""

"""XDG-compliant storage locations for the tool registry.

Paths are resolved once, at process start, into an ``AtipPaths`` value that
is handed to ``RegistryStore`` and ``Scanner``. Nothing else in the package
reads ``HOME`` or the XDG variables.

Layout::

    <data_dir>/registry.json     persisted registry
    <data_dir>/tools/<name>.json cached manifests from native probes
    <data_dir>/shims/*.json      pre-authored manifests for non-native tools
    <config_dir>/config.yaml     optional configuration file
"""

from __future__ import annotations

import os
import platform
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

APP_DIR_NAME = "agent-tools"


@dataclass(frozen=True)
class AtipPaths:
    """Resolved storage locations.

    Attributes:
        data_dir: Base data directory (registry, cache, shims).
        config_dir: Base configuration directory.
    """

    data_dir: Path
    config_dir: Path

    @property
    def registry_path(self) -> Path:
        return self.data_dir / "registry.json"

    @property
    def tools_dir(self) -> Path:
        return self.data_dir / "tools"

    @property
    def shims_dir(self) -> Path:
        return self.data_dir / "shims"


def expand_tilde(path: str, env: Mapping[str, str] | None = None) -> str:
    """Expand a leading ``~`` to the home directory.

    Only ``~`` and ``~/...`` are expanded; ``~user`` forms are left alone.
    """
    if path == "~" or path.startswith("~/"):
        env = os.environ if env is None else env
        home = env.get("HOME") or str(Path.home())
        return str(Path(home) / path[2:]) if path != "~" else home
    return path


def _home(env: Mapping[str, str]) -> Path:
    return Path(env.get("HOME") or Path.home())


def _default_data_dir(env: Mapping[str, str]) -> Path:
    if platform.system() == "Windows":
        base = env.get("LOCALAPPDATA") or str(_home(env) / "AppData" / "Local")
        return Path(base) / APP_DIR_NAME
    xdg = env.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / APP_DIR_NAME
    return _home(env) / ".local" / "share" / APP_DIR_NAME


def _default_config_dir(env: Mapping[str, str]) -> Path:
    if platform.system() == "Windows":
        base = env.get("LOCALAPPDATA") or str(_home(env) / "AppData" / "Local")
        return Path(base) / APP_DIR_NAME
    xdg = env.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_DIR_NAME
    return _home(env) / ".config" / APP_DIR_NAME


def resolve_paths(
    data_dir: str | Path | None = None,
    config_dir: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AtipPaths:
    """Resolve the storage locations for this process.

    Precedence for the data directory: explicit argument, then
    ``ATIP_DISCOVER_DATA_DIR``, then the platform default. The config
    directory follows the same rule without an environment override.

    Args:
        data_dir: Explicit data directory (e.g. from ``--data-dir``).
        config_dir: Explicit configuration directory.
        env: Environment mapping; defaults to ``os.environ``.

    Returns:
        Absolute ``AtipPaths``.
    """
    env = os.environ if env is None else env

    if data_dir is not None:
        resolved_data = Path(expand_tilde(str(data_dir), env))
    elif env.get("ATIP_DISCOVER_DATA_DIR"):
        resolved_data = Path(expand_tilde(env["ATIP_DISCOVER_DATA_DIR"], env))
    else:
        resolved_data = _default_data_dir(env)

    if config_dir is not None:
        resolved_config = Path(expand_tilde(str(config_dir), env))
    else:
        resolved_config = _default_config_dir(env)

    return AtipPaths(
        data_dir=resolved_data.resolve(),
        config_dir=resolved_config.resolve(),
    )

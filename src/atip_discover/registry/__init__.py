"""Persistent registry of discovered tools and their cached manifests.

Public API::

    from atip_discover.registry import RegistryStore

    store = RegistryStore(resolve_paths())
    registry = store.load()
    for entry in registry.list_tools("g*", source="native"):
        print(entry.name, entry.version, entry.is_stale())
"""

from __future__ import annotations

from atip_discover.registry.models import (
    Registry,
    RegistryEntry,
    ToolSource,
    is_stale,
)
from atip_discover.registry.store import (
    CacheInfo,
    RegistryStore,
    load_registry,
    save_registry,
)

__all__ = [
    "CacheInfo",
    "Registry",
    "RegistryEntry",
    "RegistryStore",
    "ToolSource",
    "is_stale",
    "load_registry",
    "save_registry",
]

"""atip-discover: Safe discovery and registry of ATIP-compatible CLI tools."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# The flag a tool must document in its usage text and answer with a manifest.
AGENT_FLAG = "--agent"
HELP_FLAG = "--help"

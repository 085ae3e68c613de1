"""
Animica watchtower.

Periodic duties for a trusted reporter node:
- submit the token price for each height-aligned checkpoint, exactly once,
- detect and react to challenges raised against the node.

Only light, stable exports are surfaced here to avoid import cycles.
"""

from __future__ import annotations

from watchtower.checkpoint import reportable_checkpoint
from watchtower.errors import WatchtowerError
from watchtower.version import __version__

__all__ = ["__version__", "reportable_checkpoint", "WatchtowerError"]

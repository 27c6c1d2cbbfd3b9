"""
SPI interface for picker state persistence.
"""

from __future__ import annotations

from typing import Optional, Protocol


class StateStore(Protocol):
    """
    Key-value persistence for serialized picker snapshots.

    Values are opaque strings; the picker owns the encoding.
    """

    def get(self, key: str) -> Optional[str]:
        """Stored value for ``key``, or None."""

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

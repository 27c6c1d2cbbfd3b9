"""Catalog adapters (turn external payloads into picker items)."""

from .spotify import SavedTracksProvider, items_from_saved_tracks

__all__ = [
    "SavedTracksProvider",
    "items_from_saved_tracks",
]

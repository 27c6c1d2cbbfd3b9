"""
Faves - elimination-tournament favorites picker

Narrows a large catalog down to an ordered list of favorites through
small-batch elimination rounds. The engine repairs its own state when the
catalog changes between sessions, keeps a bounded undo/redo history, and
encodes a favorites list as a short shareable token.

Design principles:
- Opaque identifiers; item payloads belong to the caller
- Self-healing over failing: stale state is repaired, not rejected
- Storage, catalog fetching and presentation sit behind small interfaces
"""

from .picker import Picker, PickerError, PickerOptions
from .shortcodes import ShortcodeCodec
from .state import EliminatedItem, PickerState, PickerStateOptions, default_batch_size
from .stores import InMemoryStore, JsonFileStore

__all__ = [
    "Picker",
    "PickerError",
    "PickerOptions",
    "PickerState",
    "PickerStateOptions",
    "EliminatedItem",
    "default_batch_size",
    "ShortcodeCodec",
    "InMemoryStore",
    "JsonFileStore",
]

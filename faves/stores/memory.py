"""
In-memory state store.
"""

from __future__ import annotations

from typing import Dict, Optional


class InMemoryStore:
    def __init__(self) -> None:
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"InMemoryStore values must be str, got {type(value).__name__}.")
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self):
        return list(self._values)

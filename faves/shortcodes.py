"""
Fixed-width shortcode tokens for sharing a favorites list.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping


class ShortcodeCodec:
    """
    Encode identifiers as concatenated fixed-width shortcodes and back.

    The shortcode table is built from the full catalog, so a token decodes
    the same way whatever settings the picker is currently filtered by.
    """

    def __init__(self, length: int, item_map: Mapping[str, Mapping[str, Any]]) -> None:
        if length <= 0:
            raise ValueError("Shortcode length must be positive.")
        self.length = length
        self._item_map = item_map
        self._by_shortcode: Dict[str, str] = {}
        for identifier, item in item_map.items():
            shortcode = item.get("shortcode")
            if shortcode:
                self._by_shortcode[shortcode] = identifier

    def encode(self, identifiers: Iterable[str]) -> str:
        return "".join(self._item_map[identifier]["shortcode"] for identifier in identifiers)

    def decode(self, token: str) -> List[str]:
        """
        Map ``token`` back to identifiers.

        Unknown chunks, including a trailing partial chunk, are skipped.
        Repeats keep their first position.
        """
        identifiers: List[str] = []
        seen = set()
        for start in range(0, len(token), self.length):
            identifier = self._by_shortcode.get(token[start : start + self.length])
            if identifier is None or identifier in seen:
                continue
            seen.add(identifier)
            identifiers.append(identifier)
        return identifiers

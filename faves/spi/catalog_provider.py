"""
SPI interface for catalog providers.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol


class CatalogProvider(Protocol):
    """
    Supplies the candidate items a picker runs over.

    Each item is a mapping with a unique string ``id`` and, when shortcodes
    are used, a fixed-length ``shortcode``. Every other field is payload the
    picker hands back untouched.
    """

    def id(self) -> str: ...

    def items(self) -> Iterable[Mapping[str, Any]]: ...

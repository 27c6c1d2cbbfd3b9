"""
Stateless helpers shared by the picker engine and session controller.
"""

from __future__ import annotations

import copy
import random
from typing import Any, Dict, List, Mapping, Optional, TypeVar, Union
from urllib.parse import unquote

T = TypeVar("T")


def deep_copy(value: T) -> T:
    """Return a fully independent copy of a snapshot, settings map or list."""
    return copy.deepcopy(value)


def merge_settings(*sources: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Merge settings maps left to right into a new dict.

    Later sources win per key. Values are deep-copied so the result never
    aliases any of the inputs.
    """
    result: Dict[str, Any] = {}
    for source in sources:
        if not source:
            continue
        for key, value in source.items():
            result[key] = copy.deepcopy(value)
    return result


def shuffle(items: List[T], rng: Optional[random.Random] = None) -> List[T]:
    """Shuffle ``items`` in place (Fisher-Yates) and return the same list."""
    (rng or random).shuffle(items)
    return items


def parse_query_string(query: str) -> Dict[str, Union[str, bool]]:
    """
    Parse ``a=1&b&c=x`` into ``{"a": "1", "b": True, "c": "x"}``.

    A leading ``?`` is ignored. Keys without a value (or with an empty one)
    map to ``True``.
    """
    if query.startswith("?"):
        query = query[1:]
    result: Dict[str, Union[str, bool]] = {}
    for part in query.split("&"):
        pieces = part.split("=")
        key = unquote(pieces[0])
        if len(pieces) > 1 and pieces[1]:
            result[key] = unquote(pieces[1])
        else:
            result[key] = True
    return result

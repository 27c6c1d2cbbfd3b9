"""
Catalog file loader.

A catalog file is a YAML (or JSON) document:

    shortcode_length: 2
    default_settings:
      maxBatchSize: 10
    items:
      - id: track-1
        shortcode: "a1"
        name: Some Song
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .spi.catalog_provider import CatalogProvider


@dataclass(frozen=True)
class Catalog:
    items: List[Dict[str, Any]]
    shortcode_length: Optional[int] = None
    default_settings: Dict[str, Any] = field(default_factory=dict)

    def ids(self) -> List[str]:
        return [item["id"] for item in self.items]


def load_catalog(path: Union[str, Path]) -> Catalog:
    data = _load_yaml(path)
    return catalog_from_dict(data)


def catalog_from_dict(data: Any) -> Catalog:
    if not isinstance(data, dict):
        raise ValueError("Catalog document must be a mapping with an 'items' list.")
    items_raw = data.get("items", [])
    if not isinstance(items_raw, list):
        raise ValueError("Catalog 'items' must be a list.")
    items: List[Dict[str, Any]] = []
    for item in items_raw:
        if not isinstance(item, dict):
            raise ValueError(f"Catalog item must be a mapping, got {item!r}.")
        items.append(dict(item))
    shortcode_length = data.get("shortcode_length")
    default_settings = data.get("default_settings") or {}
    if not isinstance(default_settings, dict):
        raise ValueError("Catalog 'default_settings' must be a mapping.")
    return Catalog(
        items=items,
        shortcode_length=int(shortcode_length) if shortcode_length else None,
        default_settings=dict(default_settings),
    )


def catalog_from_provider(
    provider: CatalogProvider,
    shortcode_length: Optional[int] = None,
    default_settings: Optional[Dict[str, Any]] = None,
) -> Catalog:
    """Snapshot any provider's items into a Catalog."""
    return Catalog(
        items=[dict(item) for item in provider.items()],
        shortcode_length=shortcode_length,
        default_settings=dict(default_settings or {}),
    )


class FileCatalogProvider:
    """CatalogProvider backed by a catalog file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._catalog: Optional[Catalog] = None

    def id(self) -> str:
        return f"file://{self._path}"

    @property
    def catalog(self) -> Catalog:
        if self._catalog is None:
            self._catalog = load_catalog(self._path)
        return self._catalog

    def items(self) -> List[Dict[str, Any]]:
        return list(self.catalog.items)


def _load_yaml(path: Union[str, Path]) -> Any:
    try:
        return yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid catalog file {path}: {exc}") from exc

"""SPI surface for picker storage and catalog adapters."""

from .catalog_provider import CatalogProvider
from .state_store import StateStore

__all__ = [
    "CatalogProvider",
    "StateStore",
]

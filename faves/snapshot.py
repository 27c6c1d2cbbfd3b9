"""
Snapshot schema for persisted picker state.

A snapshot is what the engine's ``get_state`` returns and what
``restore_state`` accepts: the five tracking lists plus optional settings.
Anything read back from storage is checked against this schema before it
reaches the engine.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

logger = logging.getLogger(__name__)


class EliminatedRecordModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    eliminated_by: List[str] = Field(default_factory=list, alias="eliminatedBy")


class SettingsModel(BaseModel):
    """Reserved batch-size keys; every other key is caller-defined."""

    model_config = ConfigDict(extra="allow")

    minBatchSize: Optional[StrictInt] = None
    maxBatchSize: Optional[StrictInt] = None


class PickerSnapshotModel(BaseModel):
    eliminated: List[EliminatedRecordModel]
    survived: List[str]
    current: List[str]
    evaluating: List[str]
    favorites: List[str]
    settings: Optional[SettingsModel] = None


def is_state(value: Any) -> bool:
    """Return True if ``value`` has the shape of a picker snapshot."""
    if not isinstance(value, dict):
        return False
    try:
        PickerSnapshotModel.model_validate(value)
    except ValidationError:
        return False
    return True


def settings_error(settings: Any) -> Optional[str]:
    """Describe why ``settings`` is unusable, or return None."""
    if not isinstance(settings, dict):
        return "Settings must be a mapping."
    try:
        SettingsModel.model_validate(settings)
    except ValidationError as exc:
        return "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
    return None


def dump_state(state: Dict[str, Any]) -> str:
    return json.dumps(state)


def load_state(raw: Optional[str]) -> Optional[Any]:
    """
    Decode a stored snapshot.

    Undecodable data counts as no saved state. The result is not
    shape-checked; use ``is_state`` for that.
    """
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("Discarding undecodable saved state: %s", exc)
        return None

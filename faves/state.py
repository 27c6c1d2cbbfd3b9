"""
Picker state engine.

Pure elimination-tournament state machine over opaque item identifiers.
Holds the five tracking lists, the settings and the batch-size policy.
Knows nothing about item payloads, persistence or history; those live in
the session controller.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from .utils import deep_copy, merge_settings, shuffle

logger = logging.getLogger(__name__)

Settings = Dict[str, Any]
BatchSizeHook = Callable[[int, Settings], int]
IncludeHook = Callable[[str, Settings], bool]
FilterHook = Callable[[Settings], List[str]]

ARRAY_NAMES = ("eliminated", "survived", "current", "evaluating", "favorites")

DEFAULT_MIN_BATCH_SIZE = 2
DEFAULT_MAX_BATCH_SIZE = 20


@dataclass
class EliminatedItem:
    """An eliminated identifier and the survivors credited with eliminating it."""

    id: str
    eliminated_by: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "eliminatedBy": list(self.eliminated_by)}


@dataclass
class PickerStateOptions:
    """
    Strategy hooks for a PickerState.

    Any hook left as None falls back to the default policy: every item is
    included, and the batch size follows ``default_batch_size``.
    """

    items: List[str]
    get_batch_size: Optional[BatchSizeHook] = None
    should_include_item: Optional[IncludeHook] = None
    get_filtered_items: Optional[FilterHook] = None
    default_settings: Optional[Settings] = None
    rng: Optional[random.Random] = None


def default_batch_size(current_size: int, settings: Mapping[str, Any]) -> int:
    """ceil(size / 5), clamped to [minBatchSize, maxBatchSize] and never below 2."""
    min_size = settings.get("minBatchSize") or DEFAULT_MIN_BATCH_SIZE
    max_size = settings.get("maxBatchSize") or DEFAULT_MAX_BATCH_SIZE
    return max(2, min_size, min(max_size, math.ceil(current_size / 5)))


class PickerState:
    """
    Elimination-tournament state machine.

    Every known identifier lives in exactly one of ``current``,
    ``evaluating``, ``survived``, ``eliminated`` or ``favorites``.
    ``validate`` restores that partition after any external change (new
    snapshot, new settings, new favorites) instead of raising.
    """

    def __init__(self, options: PickerStateOptions) -> None:
        self.options = options
        self.settings: Settings = {}
        self.items: List[str] = []
        self.current: List[str] = []
        self.evaluating: List[str] = []
        self.survived: List[str] = []
        self.eliminated: List[EliminatedItem] = []
        self.favorites: List[str] = []
        self.batch_size: int = 0
        self.missing_items: List[str] = []
        self.extra_items: List[str] = []

    # ---- initialization and serialization ----

    def get_state(self) -> Dict[str, Any]:
        """
        Return a snapshot of the tracking lists and settings.

        The snapshot is a deep copy: mutating the engine afterwards can never
        corrupt it, which undo/redo depends on.
        """
        return {
            "eliminated": [record.to_dict() for record in self.eliminated],
            "survived": list(self.survived),
            "current": list(self.current),
            "evaluating": list(self.evaluating),
            "favorites": list(self.favorites),
            "settings": deep_copy(self.settings),
        }

    def initialize(self, settings: Optional[Mapping[str, Any]] = None) -> None:
        """Start a fresh tournament over the items matching ``settings``."""
        if settings is not None:
            self.settings = dict(settings)
        else:
            self.settings = merge_settings(self.options.default_settings)
        self.items = self.get_filtered_items()

        self.current = list(self.items)
        self.evaluating = []
        self.survived = []
        self.eliminated = []
        self.favorites = []
        self.missing_items = []
        self.extra_items = []
        self.batch_size = self.get_batch_size(len(self.current))

        self._shuffle(self.current)
        self.next_batch()

    def restore_state(self, state: Mapping[str, Any]) -> None:
        """
        Adopt a dehydrated snapshot, then validate it.

        This is the only way external data enters the engine, so the snapshot
        is copied and fully repaired against the current item set.
        """
        self.settings = merge_settings(
            self.options.default_settings, state.get("settings") or {}
        )
        self.items = self.get_filtered_items()

        self.eliminated = [
            EliminatedItem(
                id=record["id"],
                eliminated_by=list(record.get("eliminatedBy") or []),
            )
            for record in state["eliminated"]
        ]
        self.survived = list(state["survived"])
        self.current = list(state["current"])
        self.evaluating = list(state["evaluating"])
        self.favorites = list(state["favorites"])
        self.batch_size = len(self.evaluating)

        self.validate()

    def reset(self) -> None:
        """Start over with the current settings."""
        self.initialize(self.settings)

    # ---- public setters ----

    def set_settings(self, settings: Mapping[str, Any]) -> None:
        """
        Replace the settings.

        The in-flight batch is folded back into ``current`` and redrawn at
        the size the new settings call for.
        """
        self.settings = dict(settings)
        self.items = self.get_filtered_items()

        self.validate()
        self.reset_batch_size()

    def set_favorites(self, favorites: List[str]) -> None:
        """Overwrite the favorites list; validate reconciles everything else."""
        self.favorites = list(favorites)
        self.validate()

    # ---- lookups ----

    @staticmethod
    def find_in(identifier: str, identifiers: List[str]) -> int:
        """Index of ``identifier`` in a plain identifier list, or -1."""
        try:
            return identifiers.index(identifier)
        except ValueError:
            return -1

    @staticmethod
    def find_eliminated(identifier: str, eliminated: List[EliminatedItem]) -> int:
        """Index of the eliminated record for ``identifier``, or -1."""
        for index, record in enumerate(eliminated):
            if record.id == identifier:
                return index
        return -1

    def should_include_item(self, identifier: str, settings: Mapping[str, Any]) -> bool:
        """Return True if ``identifier`` takes part under ``settings``."""
        if self.options.get_filtered_items is not None:
            return identifier in self.options.get_filtered_items(dict(settings))
        if self.options.should_include_item is not None:
            return self.options.should_include_item(identifier, dict(settings)) is True
        return True

    def get_filtered_items(self, settings: Optional[Mapping[str, Any]] = None) -> List[str]:
        """Identifiers that match ``settings`` (the current settings by default)."""
        if settings is None:
            settings = self.settings
        if self.options.get_filtered_items is not None:
            known = set(self.options.items)
            return [
                identifier
                for identifier in self.options.get_filtered_items(dict(settings))
                if identifier in known
            ]
        return [
            identifier
            for identifier in self.options.items
            if self.should_include_item(identifier, settings)
        ]

    def get_batch_size(self, current_size: int) -> int:
        """Number of items to show at once for a round of ``current_size``."""
        if self.options.get_batch_size is not None:
            return self.options.get_batch_size(current_size, self.settings)
        return default_batch_size(current_size, self.settings)

    def reset_batch_size(self) -> None:
        """
        Recompute the batch size for the remaining pool and redraw
        ``evaluating`` from the front of ``current``.
        """
        self.current = self.evaluating + self.current
        size = self.get_batch_size(len(self.current) + len(self.survived))
        self.evaluating = self.current[:size]
        self.current = self.current[size:]
        self.batch_size = len(self.evaluating)

    # ---- validation ----

    def validate(self) -> None:
        """
        Repair the state so the tracking lists partition the expected items.

        Duplicates and unexpected identifiers are stripped, stale eliminators
        are dropped, missing identifiers are appended to ``current``, and the
        round/batch bookkeeping is brought back in line. Stripped and added
        identifiers are recorded in ``extra_items`` and ``missing_items``.
        """
        expected_items = self.get_filtered_items()
        expected = set(expected_items)
        seen: Set[str] = set()
        duplicates: List[str] = []
        extra_items: List[str] = []

        def keep(identifier: str) -> bool:
            if identifier not in expected:
                extra_items.append(identifier)
                return False
            if identifier in seen:
                duplicates.append(identifier)
                return False
            seen.add(identifier)
            return True

        # Scan backwards; favorites first so a favorite beats any other copy.
        self.favorites = _filter_backwards(self.favorites, keep)
        self.survived = _filter_backwards(self.survived, keep)
        self.eliminated = _filter_backwards(
            self.eliminated, lambda record: keep(record.id)
        )
        self.current = _filter_backwards(self.current, keep)
        self.evaluating = _filter_backwards(self.evaluating, keep)

        # A stripped copy may have eliminated things by mistake; reopen those.
        for identifier in duplicates:
            self.remove_from_eliminated(identifier)

        favorites = set(self.favorites)
        for index in range(len(self.eliminated) - 1, -1, -1):
            record = self.eliminated[index]
            record.eliminated_by = [
                eliminator
                for eliminator in record.eliminated_by
                if eliminator != record.id
                and eliminator not in favorites
                and eliminator in expected
            ]
            if not record.eliminated_by:
                del self.eliminated[index]
                self.survived.append(record.id)

        missing_items: List[str] = []
        for identifier in expected_items:
            if identifier not in seen:
                seen.add(identifier)
                missing_items.append(identifier)
        self.current.extend(missing_items)
        if missing_items:
            # Spread new arrivals through the round instead of at its end.
            self._shuffle(self.current)

        self.missing_items = missing_items
        self.extra_items = extra_items
        if missing_items or extra_items or duplicates:
            logger.info(
                "Repaired picker state: %d missing, %d extra, %d duplicate",
                len(missing_items),
                len(extra_items),
                len(duplicates),
            )

        if not self.current and not self.evaluating and self.survived:
            self.next_round()
            return

        if len(self.evaluating) < 2:
            self.reset_batch_size()
        else:
            self.batch_size = len(self.evaluating)

    # ---- main picker logic ----

    def pick(self, picked: List[str]) -> None:
        """
        Resolve the current batch.

        Members of ``picked`` survive; the rest are eliminated by ``picked``.
        An empty ``picked`` accepts the whole batch.
        """
        picked = list(picked)
        for identifier in self.evaluating:
            if not picked or identifier in picked:
                self.survived.append(identifier)
            else:
                self.eliminated.append(
                    EliminatedItem(id=identifier, eliminated_by=list(picked))
                )

        self.evaluating = []
        self.next_batch()

    def pass_batch(self) -> None:
        """Accept every item in the current batch."""
        self.pick(list(self.evaluating))

    def remove_eliminated_by(self, index: int, eliminator: str) -> None:
        """
        Drop ``eliminator`` from the record at ``index`` in ``eliminated``.

        A record left with no eliminators moves to ``survived``. Callers
        looping over ``eliminated`` must loop backwards.
        """
        record = self.eliminated[index]
        record.eliminated_by = [e for e in record.eliminated_by if e != eliminator]
        if not record.eliminated_by:
            del self.eliminated[index]
            self.survived.append(record.id)

    def remove_from_eliminated(self, item: str) -> None:
        """Remove ``item`` from every eliminatedBy list."""
        for index in range(len(self.eliminated) - 1, -1, -1):
            if item in self.eliminated[index].eliminated_by:
                self.remove_eliminated_by(index, item)

    def add_to_favorites(self, item: str) -> None:
        """Promote ``item`` and restore whatever it alone had eliminated."""
        logger.debug("Promoting %s to favorites", item)
        self.favorites.append(item)
        self.remove_from_eliminated(item)

    def next_batch(self) -> None:
        if len(self.current) < self.batch_size and self.survived:
            self.next_round()
            return
        self.evaluating = self.current[: self.batch_size]
        self.current = self.current[self.batch_size :]

    def next_round(self) -> None:
        """
        Shuffle the survivors onto the end of ``current`` and draw a batch.

        A lone survivor with nothing left in ``current`` is the next favorite;
        promoting it may restore more survivors, so this repeats.
        """
        while not self.current and len(self.survived) == 1:
            self.add_to_favorites(self.survived.pop())

        survivors = self._shuffle(self.survived)
        self.survived = []
        self.current = self.current + survivors
        self.batch_size = self.get_batch_size(len(self.current))
        logger.debug("New round over %d items, batch size %d", len(self.current), self.batch_size)
        self.next_batch()

    def _shuffle(self, items: List[str]) -> List[str]:
        return shuffle(items, self.options.rng)


def _filter_backwards(items: List[Any], keep: Callable[[Any], bool]) -> List[Any]:
    kept = [item for item in reversed(items) if keep(item)]
    kept.reverse()
    return kept

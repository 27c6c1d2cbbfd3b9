"""
Picker session controller.

Binds a PickerState engine to a concrete item catalog and adds
persistence, bounded undo/redo history, item-record views and shortcode
sharing on top of it.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from .shortcodes import ShortcodeCodec
from .snapshot import dump_state, is_state, load_state, settings_error
from .spi.state_store import StateStore
from .state import ARRAY_NAMES, PickerState, PickerStateOptions, Settings
from .stores.memory import InMemoryStore
from .utils import deep_copy, merge_settings, parse_query_string

logger = logging.getLogger(__name__)

PickerItem = Mapping[str, Any]
Snapshot = Dict[str, Any]


class PickerError(Exception):
    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


@dataclass
class PickerOptions:
    """
    Configuration for a Picker.

    Every hook is optional; leaving one unset selects the default behaviour.
    ``should_include_item`` receives the full item record rather than its
    identifier. ``save_state``/``load_state`` replace the key-value store
    entirely when given.
    """

    items: List[PickerItem]
    history_length: int = 3
    favorites_query_param: Optional[str] = "favs"
    default_settings: Optional[Settings] = None
    get_batch_size: Optional[Callable[[int, Settings], int]] = None
    should_include_item: Optional[Callable[[PickerItem, Settings], bool]] = None
    get_filtered_items: Optional[Callable[[Settings], List[str]]] = None
    modify_state: Optional[Callable[[Any], Any]] = None
    on_load_state: Optional[Callable[[List[str], List[str]], None]] = None
    save_state: Optional[Callable[[Snapshot], None]] = None
    load_state: Optional[Callable[[], Optional[Any]]] = None
    storage_key: Optional[str] = None
    store: StateStore = field(default_factory=InMemoryStore)
    settings_from_favorites: Optional[Callable[[List[PickerItem]], Settings]] = None
    shortcode_length: Optional[int] = None
    rng: Optional[random.Random] = None


class Picker:
    """
    A favorites picker over one catalog.

    Every action goes through the engine, then lands in history and in
    storage, so the stored snapshot always matches the live state.
    """

    def __init__(self, options: PickerOptions) -> None:
        self.options = options
        if options.default_settings is not None:
            _check_settings(options.default_settings)
        self.item_map: Dict[str, PickerItem] = _build_item_map(
            options.items, options.shortcode_length
        )
        self.history: List[Snapshot] = []
        self.history_pos = -1
        self.initial_favorites: List[str] = []
        self._codec: Optional[ShortcodeCodec] = None
        if options.shortcode_length:
            self._codec = ShortcodeCodec(options.shortcode_length, self.item_map)

        self.state = PickerState(
            PickerStateOptions(
                items=list(self.item_map),
                get_batch_size=options.get_batch_size,
                should_include_item=self._include_hook(),
                get_filtered_items=options.get_filtered_items,
                default_settings=options.default_settings or {},
                rng=options.rng,
            )
        )

        saved_state = self.load_state()
        if saved_state is not None and options.modify_state is not None:
            saved_state = options.modify_state(saved_state)
        if saved_state is not None and not is_state(saved_state):
            logger.warning("Ignoring invalid saved state")
            saved_state = None

        if saved_state is not None:
            self.state.restore_state(saved_state)
            missing, extra = self.state.missing_items, self.state.extra_items
            if missing or extra:
                logger.info(
                    "Saved state out of date: %d items added, %d items removed",
                    len(missing),
                    len(extra),
                )
            if options.on_load_state is not None:
                options.on_load_state(list(missing), list(extra))
        else:
            self.state.initialize(merge_settings(options.default_settings))
        self.push_history()

    def _include_hook(self) -> Optional[Callable[[str, Settings], bool]]:
        include = self.options.should_include_item
        if include is None:
            return None

        def should_include(identifier: str, settings: Settings) -> bool:
            return include(self.item_map[identifier], settings) is True

        return should_include

    # ---- getters ----

    def get_array(self, name: str) -> List[PickerItem]:
        if name not in ARRAY_NAMES:
            raise PickerError(
                code="UNKNOWN_ARRAY",
                message=f"Unknown picker array '{name}'.",
                details={"allowed": list(ARRAY_NAMES)},
            )
        if name == "eliminated":
            return self.map_items([record.id for record in self.state.eliminated])
        return self.map_items(getattr(self.state, name))

    def get_favorites(self) -> List[PickerItem]:
        return self.get_array("favorites")

    def get_evaluating(self) -> List[PickerItem]:
        return self.get_array("evaluating")

    def get_settings(self) -> Settings:
        return deep_copy(self.state.settings)

    def get_shared_favorites(self, query_string: str) -> Optional[List[PickerItem]]:
        """
        Favorites shared through a link's query string, or None when the
        picker is not set up for sharing or there is no query string.
        """
        param = self.options.favorites_query_param
        if not query_string or not param or self._codec is None:
            return None
        query = parse_query_string(query_string)
        value = query.get(param)
        token = value if isinstance(value, str) else ""
        return self.map_items(self._codec.decode(token))

    # ---- shortcodes ----

    def get_shortcode_string(self) -> str:
        """Shortcode token for the current favorites."""
        return self._require_codec().encode(self.state.favorites)

    def get_shortcode_link(self) -> str:
        param = self.options.favorites_query_param
        if not param:
            raise PickerError(
                code="SHORTCODES_DISABLED",
                message="No favorites query parameter is configured for this picker.",
            )
        return f"?{param}={self.get_shortcode_string()}"

    def parse_shortcode_string(self, shortcode_string: str) -> List[str]:
        return self._require_codec().decode(shortcode_string)

    def _require_codec(self) -> ShortcodeCodec:
        if self._codec is None:
            raise PickerError(
                code="SHORTCODES_DISABLED",
                message="No shortcode length is configured for this picker.",
            )
        return self._codec

    # ---- history ----

    def push_history(self) -> None:
        """Append the live state to history, dropping any redo tail."""
        del self.history[self.history_pos + 1 :]
        self.history.append(self.state.get_state())
        if len(self.history) > self.options.history_length + 1:
            self.history.pop(0)
        self.history_pos = len(self.history) - 1
        self.save_state()

    def can_undo(self) -> bool:
        return self.history_pos > 0

    def can_redo(self) -> bool:
        return self.history_pos < len(self.history) - 1

    def undo(self) -> None:
        if not self.can_undo():
            return
        self.history_pos -= 1
        self.state.restore_state(self.history[self.history_pos])
        self.save_state()

    def redo(self) -> None:
        if not self.can_redo():
            return
        self.history_pos += 1
        self.state.restore_state(self.history[self.history_pos])
        self.save_state()

    def reset_to_favorites(
        self,
        favorites: List[str],
        use_settings: Optional[Settings] = None,
    ) -> None:
        """
        Start a new tournament that already has ``favorites`` found.

        Without ``use_settings`` the settings come from
        ``settings_from_favorites`` layered over the defaults, or the
        defaults alone. The resulting favorites become the baseline
        ``is_untouched`` compares against.
        """
        known = [identifier for identifier in favorites if identifier in self.item_map]
        final_favorites = [
            identifier
            for identifier in known
            if use_settings is None or self.state.should_include_item(identifier, use_settings)
        ]

        settings = use_settings
        if settings is None:
            if self.options.settings_from_favorites is not None:
                settings = merge_settings(
                    self.options.default_settings,
                    self.options.settings_from_favorites(self.map_items(known)),
                )
            else:
                settings = merge_settings(self.options.default_settings)

        _check_settings(settings)
        self.state.initialize(settings)
        self.state.set_favorites(final_favorites)
        self.initial_favorites = list(self.state.favorites)
        self.push_history()

    # ---- persistence ----

    def save_state(self) -> None:
        snapshot = self.state.get_state()
        if self.options.save_state is not None:
            self.options.save_state(snapshot)
        elif self.options.storage_key:
            self.options.store.set(self.options.storage_key, dump_state(snapshot))

    def load_state(self) -> Optional[Any]:
        if self.options.load_state is not None:
            return self.options.load_state()
        if self.options.storage_key:
            return load_state(self.options.store.get(self.options.storage_key))
        return None

    def is_untouched(self) -> bool:
        """
        True for a clean tournament: nothing eliminated or survived, and
        favorites either empty or exactly the initial favorites.
        """
        if self.state.eliminated or self.state.survived:
            return False
        if not self.state.favorites:
            return True
        return self.state.favorites == self.initial_favorites

    def has_items(self) -> bool:
        return len(self.state.items) > 0

    # ---- actions ----

    def pick(self, picked: List[str]) -> None:
        """Keep ``picked`` from the current batch; every id must be in that batch."""
        stray = [identifier for identifier in picked if identifier not in self.state.evaluating]
        if stray:
            raise PickerError(
                code="INVALID_PICK",
                message="Picked items must come from the current batch.",
                details={"invalid": stray, "evaluating": list(self.state.evaluating)},
            )
        self.state.pick(picked)
        self.push_history()

    def pass_batch(self) -> None:
        self.state.pass_batch()
        self.push_history()

    def reset(self) -> None:
        self.state.reset()
        self.push_history()

    def set_settings(self, settings: Settings) -> None:
        _check_settings(settings)
        self.state.set_settings(settings)
        self.push_history()

    def set_favorites(self, favorites: List[str]) -> None:
        self.state.set_favorites(favorites)
        self.push_history()

    # ---- utilities ----

    def for_each_item(self, func: Callable[[str], Any]) -> Any:
        """Call ``func`` per identifier; stop at and return the first truthy result."""
        for identifier in self.item_map:
            result = func(identifier)
            if result:
                return result
        return None

    def map_items(self, identifiers: List[str]) -> List[PickerItem]:
        items: List[PickerItem] = []
        for identifier in identifiers:
            item = self.item_map.get(identifier)
            if item is None:
                raise PickerError(
                    code="INVARIANT_VIOLATION",
                    message=f"Identifier '{identifier}' is not in the catalog.",
                    details={"identifier": identifier},
                )
            items.append(item)
        return items


def _build_item_map(
    items: List[PickerItem], shortcode_length: Optional[int]
) -> Dict[str, PickerItem]:
    item_map: Dict[str, PickerItem] = {}
    for item in items:
        identifier = item.get("id")
        if not isinstance(identifier, str) or not identifier:
            raise PickerError(
                code="MISSING_ID",
                message="Every item needs a non-empty string id.",
                details={"item": dict(item)},
            )
        if identifier in item_map:
            raise PickerError(
                code="DUPLICATE_ID",
                message=f"More than one item has the id '{identifier}'; ids must be unique.",
                details={"id": identifier},
            )
        if shortcode_length:
            shortcode = item.get("shortcode")
            if not isinstance(shortcode, str) or len(shortcode) != shortcode_length:
                raise PickerError(
                    code="INVALID_SHORTCODE",
                    message=(
                        f"Shortcode length is {shortcode_length} but item '{identifier}' "
                        f"has shortcode {shortcode!r}; all shortcodes must share that length."
                    ),
                    details={"id": identifier, "shortcode": shortcode},
                )
        item_map[identifier] = item
    return item_map


def _check_settings(settings: Any) -> None:
    problem = settings_error(settings)
    if problem is not None:
        raise PickerError(
            code="INVALID_SETTINGS",
            message=f"Invalid picker settings: {problem}",
            details={"settings": settings},
        )

"""
Picker server (in-memory sessions).

Hosts one Picker per session over a shared state store, and renders the
view a client needs after each action. Each session has a single writer:
an action and the view rendered from it run under the session's lock.
The least recently used sessions are dropped from memory past
``max_sessions``; their state stays in the store and reopening the same
session id resumes it.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from .picker import Picker, PickerError, PickerItem, PickerOptions
from .spi.state_store import StateStore
from .stores.memory import InMemoryStore

logger = logging.getLogger(__name__)


@dataclass
class PickerView:
    session_id: str
    evaluating: List[PickerItem]
    favorites: List[PickerItem]
    settings: Dict[str, Any]
    can_undo: bool
    can_redo: bool
    untouched: bool
    has_items: bool
    remaining: int
    shortcode_link: Optional[str]

    @property
    def finished(self) -> bool:
        return not self.evaluating

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "evaluating": [dict(item) for item in self.evaluating],
            "favorites": [dict(item) for item in self.favorites],
            "settings": self.settings,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "untouched": self.untouched,
            "has_items": self.has_items,
            "remaining": self.remaining,
            "finished": self.finished,
            "shortcode_link": self.shortcode_link,
        }


T = TypeVar("T")


@dataclass
class _Session:
    picker: Picker
    lock: threading.Lock = field(default_factory=threading.Lock)


class PickerServer:
    def __init__(
        self,
        store: Optional[StateStore] = None,
        history_length: int = 3,
        favorites_query_param: str = "favs",
        storage_prefix: str = "faves",
        max_sessions: int = 1000,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1.")
        self._store = store if store is not None else InMemoryStore()
        self._history_length = history_length
        self._favorites_query_param = favorites_query_param
        self._storage_prefix = storage_prefix
        self._max_sessions = max_sessions
        self._sessions: "OrderedDict[str, _Session]" = OrderedDict()
        self._sessions_lock = threading.Lock()

    def create_session(
        self,
        items: List[Dict[str, Any]],
        default_settings: Optional[Dict[str, Any]] = None,
        shortcode_length: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> Tuple[str, PickerView]:
        """
        Open a picker over ``items``.

        Passing a known ``session_id`` resumes the state stored for it,
        repaired against the (possibly changed) item list.
        """
        session_id = session_id or str(uuid.uuid4())
        picker = Picker(
            PickerOptions(
                items=items,
                history_length=self._history_length,
                favorites_query_param=self._favorites_query_param,
                default_settings=default_settings,
                storage_key=f"{self._storage_prefix}:{session_id}",
                store=self._store,
                shortcode_length=shortcode_length,
            )
        )
        with self._sessions_lock:
            self._sessions[session_id] = _Session(picker)
            self._sessions.move_to_end(session_id)
            while len(self._sessions) > self._max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.info("Evicted idle picker session %s", evicted)
        logger.info("Opened picker session %s over %d items", session_id, len(items))
        return session_id, self.view(session_id)

    def close_session(self, session_id: str) -> None:
        with self._sessions_lock:
            if self._sessions.pop(session_id, None) is None:
                raise PickerError(code="SESSION_NOT_FOUND", message="Session not found.")

    def view(self, session_id: str) -> PickerView:
        return self._act(session_id, lambda picker: None)

    def pick(self, session_id: str, picked: List[str]) -> PickerView:
        return self._act(session_id, lambda picker: picker.pick(picked))

    def pass_batch(self, session_id: str) -> PickerView:
        return self._act(session_id, lambda picker: picker.pass_batch())

    def undo(self, session_id: str) -> PickerView:
        return self._act(session_id, lambda picker: picker.undo())

    def redo(self, session_id: str) -> PickerView:
        return self._act(session_id, lambda picker: picker.redo())

    def reset(self, session_id: str) -> PickerView:
        return self._act(session_id, lambda picker: picker.reset())

    def set_settings(self, session_id: str, settings: Dict[str, Any]) -> PickerView:
        return self._act(session_id, lambda picker: picker.set_settings(settings))

    def set_favorites(self, session_id: str, favorites: List[str]) -> PickerView:
        return self._act(session_id, lambda picker: picker.set_favorites(favorites))

    def reset_to_favorites(
        self,
        session_id: str,
        favorites: List[str],
        settings: Optional[Dict[str, Any]] = None,
    ) -> PickerView:
        return self._act(session_id, lambda picker: picker.reset_to_favorites(favorites, settings))

    def shared_favorites(self, session_id: str, token: str) -> List[PickerItem]:
        return self._locked(
            session_id, lambda picker: picker.map_items(picker.parse_shortcode_string(token))
        )

    def _act(self, session_id: str, action: Callable[[Picker], Any]) -> PickerView:
        def act_and_render(picker: Picker) -> PickerView:
            action(picker)
            return _render(session_id, picker)

        return self._locked(session_id, act_and_render)

    def _locked(self, session_id: str, func: Callable[[Picker], T]) -> T:
        session = self._get(session_id)
        with session.lock:
            return func(session.picker)

    def _get(self, session_id: str) -> _Session:
        with self._sessions_lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise PickerError(code="SESSION_NOT_FOUND", message="Session not found.")
            self._sessions.move_to_end(session_id)
            return session


def _render(session_id: str, picker: Picker) -> PickerView:
    state = picker.state
    sharing = picker.options.shortcode_length and picker.options.favorites_query_param
    return PickerView(
        session_id=session_id,
        evaluating=picker.get_evaluating(),
        favorites=picker.get_favorites(),
        settings=picker.get_settings(),
        can_undo=picker.can_undo(),
        can_redo=picker.can_redo(),
        untouched=picker.is_untouched(),
        has_items=picker.has_items(),
        remaining=len(state.current) + len(state.evaluating) + len(state.survived),
        shortcode_link=picker.get_shortcode_link() if sharing else None,
    )

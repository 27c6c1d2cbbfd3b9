import json
import logging
import random

import pytest

from faves.picker import Picker, PickerError, PickerOptions
from faves.stores import InMemoryStore


def _items(n, shortcodes=False):
    items = []
    for i in range(1, n + 1):
        item = {"id": f"H{i}", "name": f"Item {i}", "genre": "rock" if i % 2 else "pop"}
        if shortcodes:
            item["shortcode"] = f"{i:02d}"
        items.append(item)
    return items


def _new_picker(n=10, seed=0, **kwargs) -> Picker:
    kwargs.setdefault("items", _items(n))
    return Picker(PickerOptions(rng=random.Random(seed), **kwargs))


def _stored(store, key):
    return json.loads(store.get(key))


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    def test_missing_id_rejected(self):
        with pytest.raises(PickerError) as excinfo:
            Picker(PickerOptions(items=[{"id": "a"}, {"name": "no id"}]))
        assert excinfo.value.code == "MISSING_ID"

    def test_empty_id_rejected(self):
        with pytest.raises(PickerError) as excinfo:
            Picker(PickerOptions(items=[{"id": ""}]))
        assert excinfo.value.code == "MISSING_ID"

    def test_duplicate_id_rejected(self):
        with pytest.raises(PickerError) as excinfo:
            Picker(PickerOptions(items=[{"id": "a"}, {"id": "b"}, {"id": "a"}]))
        assert excinfo.value.code == "DUPLICATE_ID"
        assert excinfo.value.details == {"id": "a"}

    def test_shortcode_length_mismatch_rejected(self):
        items = [{"id": "a", "shortcode": "aa"}, {"id": "b", "shortcode": "b"}]
        with pytest.raises(PickerError) as excinfo:
            Picker(PickerOptions(items=items, shortcode_length=2))
        assert excinfo.value.code == "INVALID_SHORTCODE"

    def test_missing_shortcode_rejected(self):
        items = [{"id": "a", "shortcode": "aa"}, {"id": "b"}]
        with pytest.raises(PickerError) as excinfo:
            Picker(PickerOptions(items=items, shortcode_length=2))
        assert excinfo.value.code == "INVALID_SHORTCODE"

    def test_fresh_picker_has_one_history_entry(self):
        picker = _new_picker(10)
        assert len(picker.history) == 1
        assert picker.history_pos == 0
        assert picker.can_undo() is False
        assert picker.can_redo() is False
        assert len(picker.get_evaluating()) == 2

    def test_item_hook_receives_records(self):
        seen = []

        def include(item, settings):
            seen.append(item["id"])
            return item["genre"] == settings.get("genre", item["genre"])

        picker = _new_picker(6, should_include_item=include, default_settings={"genre": "pop"})
        assert sorted(picker.state.items) == ["H2", "H4", "H6"]
        assert "H1" in seen


# =============================================================================
# Views
# =============================================================================


class TestViews:
    def test_views_return_catalog_records(self):
        picker = _new_picker(10)
        evaluating = picker.get_evaluating()
        assert [item["id"] for item in evaluating] == picker.state.evaluating
        assert all("name" in item for item in evaluating)

    def test_get_array_eliminated(self):
        picker = _new_picker(10)
        first, second = picker.state.evaluating
        picker.pick([first])
        assert [item["id"] for item in picker.get_array("eliminated")] == [second]
        assert [item["id"] for item in picker.get_array("survived")] == [first]

    def test_get_array_unknown_name(self):
        picker = _new_picker(3)
        with pytest.raises(PickerError) as excinfo:
            picker.get_array("bogus")
        assert excinfo.value.code == "UNKNOWN_ARRAY"

    def test_map_items_unknown_identifier_is_a_defect(self):
        picker = _new_picker(3)
        with pytest.raises(PickerError) as excinfo:
            picker.map_items(["H1", "NOPE"])
        assert excinfo.value.code == "INVARIANT_VIOLATION"

    def test_get_settings_is_a_copy(self):
        picker = _new_picker(3, default_settings={"tags": ["a"]})
        picker.get_settings()["tags"].append("b")
        assert picker.get_settings() == {"tags": ["a"]}

    def test_has_items(self):
        assert _new_picker(3).has_items() is True
        empty = _new_picker(3, get_filtered_items=lambda settings: [])
        assert empty.has_items() is False

    def test_filter_hook_ids_outside_catalog_ignored(self):
        picker = _new_picker(3, get_filtered_items=lambda settings: ["H1", "NOPE", "H2"])
        assert sorted(item["id"] for item in picker.get_evaluating()) == ["H1", "H2"]

    def test_for_each_item_stops_at_first_truthy(self):
        picker = _new_picker(5)
        visited = []

        def visit(identifier):
            visited.append(identifier)
            return identifier if identifier == "H3" else None

        assert picker.for_each_item(visit) == "H3"
        assert visited == ["H1", "H2", "H3"]
        assert picker.for_each_item(lambda identifier: None) is None


# =============================================================================
# History
# =============================================================================


class TestHistory:
    def test_undo_and_redo(self):
        picker = _new_picker(10)
        before = picker.state.get_state()
        picker.pick([picker.state.evaluating[0]])
        after = picker.state.get_state()

        assert picker.can_undo() is True
        picker.undo()
        assert picker.state.get_state() == before
        assert picker.can_redo() is True

        picker.redo()
        assert picker.state.get_state() == after
        assert picker.can_redo() is False

    def test_undo_redo_noop_at_bounds(self):
        picker = _new_picker(4)
        state = picker.state.get_state()
        picker.undo()
        picker.redo()
        assert picker.state.get_state() == state
        assert picker.history_pos == 0

    def test_new_action_discards_redo_tail(self):
        picker = _new_picker(10)
        picker.pass_batch()
        picker.pass_batch()
        picker.undo()
        picker.undo()
        assert picker.can_redo() is True

        picker.pick([picker.state.evaluating[0]])

        assert picker.can_redo() is False
        assert len(picker.history) == 2

    def test_history_is_bounded(self):
        picker = _new_picker(20, history_length=3)
        snapshots = [picker.state.get_state()]
        for _ in range(4):
            picker.pass_batch()
            snapshots.append(picker.state.get_state())

        assert len(picker.history) == 4
        assert picker.history == snapshots[1:]
        assert picker.history_pos == 3

    def test_history_entries_are_isolated(self):
        picker = _new_picker(10)
        first, second = picker.state.evaluating
        picker.pick([first])
        entry = picker.history[-1]

        picker.state.eliminated[0].eliminated_by.append("H9")
        picker.state.favorites.append("bogus")

        assert entry["eliminated"] == [{"id": second, "eliminatedBy": [first]}]
        assert entry["favorites"] == []

    def test_undo_persists(self):
        store = InMemoryStore()
        picker = _new_picker(10, store=store, storage_key="k")
        before = picker.state.get_state()
        picker.pick([picker.state.evaluating[0]])

        picker.undo()

        assert _stored(store, "k") == before


# =============================================================================
# Persistence
# =============================================================================


class TestPersistence:
    def test_actions_are_saved(self):
        store = InMemoryStore()
        picker = _new_picker(10, store=store, storage_key="k")
        assert _stored(store, "k") == picker.state.get_state()

        picker.pick([picker.state.evaluating[0]])
        assert _stored(store, "k") == picker.state.get_state()

    def test_nothing_saved_without_storage_key(self):
        store = InMemoryStore()
        _new_picker(10, store=store)
        assert store.keys() == []

    def test_saved_state_is_resumed(self):
        store = InMemoryStore()
        first = _new_picker(10, store=store, storage_key="k")
        first.pick([first.state.evaluating[0]])
        first.pick([first.state.evaluating[1]])

        second = _new_picker(10, seed=5, store=store, storage_key="k")

        assert second.state.get_state() == first.state.get_state()
        assert len(second.history) == 1

    def test_invalid_saved_state_is_discarded(self, caplog):
        store = InMemoryStore()
        store.set("k", json.dumps({"current": "not a list"}))

        with caplog.at_level(logging.WARNING, logger="faves.picker"):
            picker = _new_picker(10, store=store, storage_key="k")

        assert "Ignoring invalid saved state" in caplog.text
        assert len(picker.state.evaluating) == 2
        assert picker.state.eliminated == []

    def test_undecodable_saved_state_is_discarded(self):
        store = InMemoryStore()
        store.set("k", "{not json")
        picker = _new_picker(10, store=store, storage_key="k")
        assert len(picker.state.evaluating) == 2
        assert _stored(store, "k") == picker.state.get_state()

    def test_catalog_changes_reported(self):
        store = InMemoryStore()
        old = _new_picker(5, store=store, storage_key="k")
        old.pass_batch()

        reports = []
        new_items = _items(4) + [{"id": "H6", "name": "Item 6", "genre": "pop"}]
        new = _new_picker(
            items=new_items,
            store=store,
            storage_key="k",
            on_load_state=lambda missing, extra: reports.append((missing, extra)),
        )

        assert reports == [(["H6"], ["H5"])]
        assert "H5" not in new.state.get_state()["current"]

    def test_modify_state_hook(self):
        store = InMemoryStore()
        old = _new_picker(4, store=store, storage_key="k")
        old.set_favorites(["H1"])

        def rename(state):
            state["favorites"] = ["H2" if i == "H1" else i for i in state["favorites"]]
            return state

        new = _new_picker(4, store=store, storage_key="k", modify_state=rename)
        assert new.state.favorites == ["H2"]

    def test_modify_state_producing_garbage_is_discarded(self):
        store = InMemoryStore()
        _new_picker(4, store=store, storage_key="k")
        new = _new_picker(4, store=store, storage_key="k", modify_state=lambda state: 42)
        assert new.state.favorites == []
        assert len(new.state.evaluating) == 2

    def test_custom_save_and_load_hooks(self):
        saved = []
        snapshot = {
            "eliminated": [{"id": "H3", "eliminatedBy": ["H1"]}],
            "survived": ["H1"],
            "current": ["H4"],
            "evaluating": ["H2", "H5"],
            "favorites": [],
        }
        picker = _new_picker(
            5,
            load_state=lambda: snapshot,
            save_state=saved.append,
            storage_key="ignored",
        )

        assert picker.state.evaluating == ["H2", "H5"]
        assert picker.state.survived == ["H1"]
        assert saved == [picker.state.get_state()]


# =============================================================================
# Reset to favorites / untouched
# =============================================================================


class TestResetToFavorites:
    def test_fresh_picker_is_untouched(self):
        assert _new_picker(5).is_untouched() is True

    def test_elimination_touches(self):
        picker = _new_picker(5)
        picker.pick([picker.state.evaluating[0]])
        assert picker.is_untouched() is False

    def test_pass_touches(self):
        picker = _new_picker(5)
        picker.pass_batch()
        assert picker.is_untouched() is False

    def test_reset_to_favorites_is_untouched(self):
        picker = _new_picker(6)
        picker.pick([picker.state.evaluating[0]])

        picker.reset_to_favorites(["H1", "H2"])

        assert picker.state.favorites == ["H1", "H2"]
        assert picker.state.eliminated == []
        assert picker.is_untouched() is True
        assert picker.can_undo() is True

    def test_reordered_favorites_are_touched(self):
        picker = _new_picker(6)
        picker.reset_to_favorites(["H1", "H2"])
        picker.set_favorites(["H2", "H1"])
        assert picker.is_untouched() is False

    def test_explicit_settings_filter_favorites(self):
        def include(item, settings):
            return settings.get("genre") in (None, item["genre"])

        picker = _new_picker(6, should_include_item=include)
        picker.reset_to_favorites(["H1", "H2", "H3"], {"genre": "rock"})

        assert picker.state.favorites == ["H1", "H3"]
        assert picker.get_settings() == {"genre": "rock"}
        assert sorted(picker.state.items) == ["H1", "H3", "H5"]

    def test_settings_from_favorites(self):
        received = []

        def settings_from_favorites(items):
            received.append([item["id"] for item in items])
            return {"genre": items[0]["genre"]}

        picker = _new_picker(
            6,
            default_settings={"maxBatchSize": 5},
            settings_from_favorites=settings_from_favorites,
        )
        picker.reset_to_favorites(["H2", "NOPE"])

        assert received == [["H2"]]
        assert picker.get_settings() == {"maxBatchSize": 5, "genre": "pop"}
        assert picker.state.favorites == ["H2"]

    def test_defaults_used_without_settings(self):
        picker = _new_picker(6, default_settings={"minBatchSize": 3})
        picker.set_settings({"minBatchSize": 2})
        picker.reset_to_favorites(["H1"])
        assert picker.get_settings() == {"minBatchSize": 3}
        assert picker.state.favorites == ["H1"]


# =============================================================================
# Actions
# =============================================================================


class TestActions:
    def test_each_action_pushes_history(self):
        picker = _new_picker(10, history_length=10)
        picker.pick([picker.state.evaluating[0]])
        picker.pass_batch()
        picker.set_settings({"minBatchSize": 3})
        picker.set_favorites([picker.state.current[0]])
        picker.reset()
        assert len(picker.history) == 6

    def test_set_settings_redraws_batch(self):
        picker = _new_picker(10)
        picker.set_settings({"minBatchSize": 5})
        assert len(picker.get_evaluating()) == 5
        assert picker.get_settings() == {"minBatchSize": 5}

    def test_reset_clears_progress(self):
        picker = _new_picker(10)
        picker.pick([picker.state.evaluating[0]])
        picker.reset()
        assert picker.state.eliminated == []
        assert picker.state.survived == []
        assert picker.is_untouched() is True

    @pytest.mark.parametrize("keep_real", [False, True])
    def test_pick_outside_batch_rejected(self, keep_real):
        store = InMemoryStore()
        picker = _new_picker(10, store=store, storage_key="k")
        picked = [picker.state.evaluating[0], "typo"] if keep_real else ["typo"]
        before = picker.state.get_state()

        with pytest.raises(PickerError) as excinfo:
            picker.pick(picked)

        assert excinfo.value.code == "INVALID_PICK"
        assert excinfo.value.details["invalid"] == ["typo"]
        assert picker.state.get_state() == before
        assert len(picker.history) == 1
        assert _stored(store, "k") == before

    def test_pick_of_known_item_outside_batch_rejected(self):
        picker = _new_picker(10)
        outsider = picker.state.current[0]
        with pytest.raises(PickerError) as excinfo:
            picker.pick([outsider])
        assert excinfo.value.code == "INVALID_PICK"
        assert picker.state.eliminated == []

    @pytest.mark.parametrize(
        "settings",
        [{"minBatchSize": "3"}, {"maxBatchSize": 2.5}, {"minBatchSize": True}],
    )
    def test_bad_batch_settings_rejected(self, settings):
        picker = _new_picker(10)
        before = picker.state.get_state()

        with pytest.raises(PickerError) as excinfo:
            picker.set_settings(settings)

        assert excinfo.value.code == "INVALID_SETTINGS"
        assert picker.state.get_state() == before

    def test_bad_settings_rejected_everywhere(self):
        with pytest.raises(PickerError) as excinfo:
            _new_picker(4, default_settings={"minBatchSize": "2"})
        assert excinfo.value.code == "INVALID_SETTINGS"

        picker = _new_picker(4)
        with pytest.raises(PickerError):
            picker.reset_to_favorites(["H1"], {"maxBatchSize": "many"})
        assert picker.state.favorites == []

    def test_caller_settings_and_null_limits_allowed(self):
        picker = _new_picker(10)
        picker.set_settings({"minBatchSize": None, "genre": "rock", "tags": ["x"]})
        assert len(picker.get_evaluating()) == 2

    def test_saved_state_with_bad_settings_is_discarded(self):
        store = InMemoryStore()
        _new_picker(6, store=store, storage_key="k")
        saved = _stored(store, "k")
        saved["settings"] = {"minBatchSize": "3"}
        store.set("k", json.dumps(saved))

        picker = _new_picker(6, store=store, storage_key="k")

        assert picker.get_settings() == {}
        assert len(picker.state.evaluating) == 2


# =============================================================================
# Shortcodes
# =============================================================================


class TestShortcodes:
    def test_shortcode_string_and_link(self):
        picker = _new_picker(items=_items(6, shortcodes=True), shortcode_length=2)
        picker.set_favorites(["H3", "H1"])
        assert picker.get_shortcode_string() == "0301"
        assert picker.get_shortcode_link() == "?favs=0301"

    def test_parse_shortcode_string(self):
        picker = _new_picker(items=_items(6, shortcodes=True), shortcode_length=2)
        assert picker.parse_shortcode_string("030199010") == ["H3", "H1"]

    def test_round_trip(self):
        picker = _new_picker(items=_items(12, shortcodes=True), shortcode_length=2)
        favorites = ["H7", "H2", "H11", "H5"]
        picker.set_favorites(favorites)
        assert picker.parse_shortcode_string(picker.get_shortcode_string()) == favorites

    def test_shared_favorites_from_query_string(self):
        picker = _new_picker(items=_items(6, shortcodes=True), shortcode_length=2)
        shared = picker.get_shared_favorites("?other=1&favs=0502")
        assert [item["id"] for item in shared] == ["H5", "H2"]

    def test_shared_favorites_custom_param(self):
        picker = _new_picker(
            items=_items(6, shortcodes=True),
            shortcode_length=2,
            favorites_query_param="f",
        )
        assert [item["id"] for item in picker.get_shared_favorites("f=04")] == ["H4"]
        assert picker.get_shared_favorites("favs=04") == []

    def test_shared_favorites_unavailable(self):
        picker = _new_picker(items=_items(6, shortcodes=True), shortcode_length=2)
        assert picker.get_shared_favorites("") is None
        assert _new_picker(6).get_shared_favorites("?favs=01") is None

    def test_shortcodes_disabled(self):
        picker = _new_picker(6)
        with pytest.raises(PickerError) as excinfo:
            picker.get_shortcode_string()
        assert excinfo.value.code == "SHORTCODES_DISABLED"
        with pytest.raises(PickerError):
            picker.parse_shortcode_string("01")

    def test_link_needs_query_param(self):
        picker = _new_picker(
            items=_items(6, shortcodes=True),
            shortcode_length=2,
            favorites_query_param=None,
        )
        picker.set_favorites(["H2"])
        assert picker.get_shortcode_string() == "02"
        with pytest.raises(PickerError) as excinfo:
            picker.get_shortcode_link()
        assert excinfo.value.code == "SHORTCODES_DISABLED"

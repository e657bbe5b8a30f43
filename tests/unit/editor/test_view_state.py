"""
Unit tests for editor/view_state.py - ViewState and its flat/URL codec.
"""
import logging
from urllib.parse import parse_qs

import pytest

from core.ontology import Direction, LayoutDirection
from editor.view_state import (
    Removal,
    ViewState,
    ViewStateDecodeError,
    decode_view_state,
    default_view_state,
    encode_view_state,
    parse_typed_value,
    view_state_from_flat,
    view_state_to_flat,
)


def test_default_view_state():
    """
    Verifies:
    - Layout LR, grouping and embedding on, nothing selected/hidden
    """
    state = default_view_state()

    assert state.selected_id is None
    assert state.focus_id is None
    assert state.removed_ids == ()
    assert state.white_list_ids == ()
    assert state.layout_direction is LayoutDirection.LR
    assert state.group_by_modules is True
    assert state.embed_special_actions is True


def test_default_view_state_overrides():
    state = default_view_state(layout_direction=LayoutDirection.TB, focus_id="x")

    assert state.layout_direction is LayoutDirection.TB
    assert state.focus_id == "x"


# =============================================================================
# TYPED VALUES
# =============================================================================

@pytest.mark.parametrize("raw,value_type,expected", [
    ("abc", "string", "abc"),
    ("true", "boolean", True),
    ("false", "boolean", False),
    ('[1, "a"]', "json", [1, "a"]),
    ("", "json", None),
    (None, "boolean", None),
])
def test_parse_typed_value(raw, value_type, expected):
    assert parse_typed_value(raw, value_type) == expected


@pytest.mark.parametrize("raw,value_type", [
    ("yes", "boolean"),
    ("[1,", "json"),
])
def test_parse_typed_value_malformed(raw, value_type):
    with pytest.raises(ViewStateDecodeError):
        parse_typed_value(raw, value_type)


# =============================================================================
# FLAT FORM
# =============================================================================

def test_flat_form_shapes():
    """
    Verifies:
    - removedIds is a JSON array of {id, dir}
    - whiteListIds is a JSON array of ids
    - Booleans are "true"/"false", unset fields are omitted
    """
    state = ViewState(
        selected_id="a",
        removed_ids=(Removal("b", Direction.BACKWARD),),
        white_list_ids=("c", "d"),
        group_by_modules=False,
    )

    flat = view_state_to_flat(state)

    assert flat["selectedId"] == "a"
    assert flat["removedIds"] == '[{"id":"b","dir":"backward"}]'
    assert flat["whiteListIds"] == '["c","d"]'
    assert flat["groupByModules"] == "false"
    assert flat["embedSpecialActions"] == "true"
    assert flat["layoutDirection"] == "LR"
    assert "focusId" not in flat


def test_flat_round_trip():
    state = ViewState(
        selected_id="booking/loadOffersEpic",
        focus_id="booking/ui/OffersPage",
        removed_ids=(Removal("cluster_payments"), Removal("x", Direction.BACKWARD)),
        white_list_ids=("y",),
        layout_direction=LayoutDirection.TB,
        embed_special_actions=False,
    )

    assert view_state_from_flat(view_state_to_flat(state)) == state


def test_malformed_field_falls_back_per_field(caplog):
    """
    Validate per-field fallback.

    Verifies:
    - A malformed removedIds keeps the default
    - A valid field in the same mapping is still applied
    - A warning is logged
    """
    defaults = ViewState(removed_ids=(Removal("kept"),))

    with caplog.at_level(logging.WARNING, logger="editor.view_state"):
        state = view_state_from_flat({"removedIds": "[{oops", "focusId": "f"}, defaults)

    assert state.removed_ids == (Removal("kept"),)
    assert state.focus_id == "f"
    assert "removedIds" in caplog.text


def test_wrongly_typed_field_falls_back():
    """JSON that parses but does not match the field's type is ignored."""
    state = view_state_from_flat({
        "removedIds": '[{"id": 3, "dir": "sideways"}]',
        "layoutDirection": "diagonal",
        "whiteListIds": '["ok"]',
    })

    assert state.removed_ids == ()
    assert state.layout_direction is LayoutDirection.LR
    assert state.white_list_ids == ("ok",)


def test_removal_direction_defaults_to_forward():
    state = view_state_from_flat({"removedIds": '[{"id": "a"}]'})

    assert state.removed_ids == (Removal("a", Direction.FORWARD),)


# =============================================================================
# URL HASH FORM
# =============================================================================

def test_fragment_round_trip():
    state = ViewState(
        selected_id="a/b c",
        removed_ids=(Removal("x&y"),),
        white_list_ids=("z=1",),
    )

    fragment = encode_view_state(state)

    assert decode_view_state(fragment) == state
    assert decode_view_state("#" + fragment) == state


def test_fragment_keeps_foreign_keys():
    """
    Verifies:
    - Keys not owned by the view state (e.g. the payload) survive encoding
    - Stale view keys in `extra` are replaced
    """
    fragment = encode_view_state(
        ViewState(focus_id="new"),
        extra={"data": "compressed-graph", "focusId": "old", "selectedId": "stale"},
    )
    params = parse_qs(fragment)

    assert params["data"] == ["compressed-graph"]
    assert params["focusId"] == ["new"]
    assert "selectedId" not in params


def test_decode_garbage_returns_defaults():
    defaults = ViewState(layout_direction=LayoutDirection.TB)

    assert decode_view_state("", defaults) == defaults
    assert decode_view_state("%%%&&&==", defaults) == defaults
    assert decode_view_state("groupByModules=maybe", defaults) == defaults

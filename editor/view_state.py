"""
View state: what the user has hidden, revealed, focused and selected.

The graph itself is never stored in history; only this small, immutable
description of how to filter it. A ViewState round-trips through a flat
string-keyed form (the URL hash of the web viewer), where every field has a
declared value type:

    selectedId          string
    focusId             string
    layoutDirection     string
    removedIds          json    [{"id": ..., "dir": "forward" | "backward"}]
    whiteListIds        json    [id, ...]
    groupByModules      boolean
    embedSpecialActions boolean

Decoding never raises: a malformed field falls back to its default and a
malformed fragment falls back to the default state.
"""
import logging
from typing import Any, Dict, Literal, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

import msgspec

from core.ontology import Direction, Id, LayoutDirection

logger = logging.getLogger(__name__)

ValueType = Literal["string", "json", "boolean"]


class Removal(msgspec.Struct, frozen=True, rename={"direction": "dir"}):
    """One user-issued removal: a node or cluster id plus cascade direction."""
    id: Id
    direction: Direction = Direction.FORWARD


class ViewState(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """Immutable snapshot of the editor's view specification."""
    selected_id: Optional[Id] = None
    focus_id: Optional[Id] = None
    removed_ids: Tuple[Removal, ...] = ()
    white_list_ids: Tuple[Id, ...] = ()
    layout_direction: LayoutDirection = LayoutDirection.LR
    group_by_modules: bool = True
    embed_special_actions: bool = True


# Flat key -> (declared type, attribute name)
FIELD_TYPES: Dict[str, Tuple[ValueType, str]] = {
    "selectedId": ("string", "selected_id"),
    "focusId": ("string", "focus_id"),
    "layoutDirection": ("string", "layout_direction"),
    "removedIds": ("json", "removed_ids"),
    "whiteListIds": ("json", "white_list_ids"),
    "groupByModules": ("boolean", "group_by_modules"),
    "embedSpecialActions": ("boolean", "embed_special_actions"),
}


class ViewStateDecodeError(ValueError):
    """A single flat value could not be parsed as its declared type."""
    pass


def default_view_state(**overrides: Any) -> ViewState:
    """The starting state, optionally with fields replaced."""
    return msgspec.structs.replace(ViewState(), **overrides) if overrides else ViewState()


# =============================================================================
# TYPED VALUES
# =============================================================================

def parse_typed_value(raw: Optional[str], value_type: ValueType) -> Any:
    """
    Parse one flat string value by its declared type.

    Returns None for a missing or empty value.

    Raises:
        ViewStateDecodeError: If a json/boolean value is malformed
    """
    if raw is None or raw == "":
        return None
    if value_type == "string":
        return raw
    if value_type == "boolean":
        if raw == "true":
            return True
        if raw == "false":
            return False
        raise ViewStateDecodeError(f"Not a boolean: {raw!r}")
    if value_type == "json":
        try:
            return msgspec.json.decode(raw)
        except msgspec.DecodeError as e:
            raise ViewStateDecodeError(f"Not JSON: {raw!r}") from e
    raise ViewStateDecodeError(f"Unknown value type: {value_type}")


def format_typed_value(value: Any, value_type: ValueType) -> Optional[str]:
    """Inverse of parse_typed_value. Returns None for values that are omitted."""
    if value is None or value == "" or value == ():
        return None
    if value_type == "boolean":
        return "true" if value else "false"
    if value_type == "json":
        return msgspec.json.encode(value).decode()
    return str(value.value if hasattr(value, "value") else value)


# =============================================================================
# FLAT FORM
# =============================================================================

def view_state_to_flat(state: ViewState) -> Dict[str, str]:
    """ViewState as a flat string-keyed mapping. Empty fields are omitted."""
    flat: Dict[str, str] = {}
    for key, (value_type, attr) in FIELD_TYPES.items():
        formatted = format_typed_value(getattr(state, attr), value_type)
        if formatted is not None:
            flat[key] = formatted
    return flat


def view_state_from_flat(flat: Mapping[str, str], defaults: Optional[ViewState] = None) -> ViewState:
    """
    Build a ViewState from a flat mapping.

    Unknown keys are ignored. A field that fails to parse or validate keeps
    its value from `defaults`.
    """
    base = defaults or ViewState()
    changes: Dict[str, Any] = {}

    for key, (value_type, attr) in FIELD_TYPES.items():
        try:
            value = parse_typed_value(flat.get(key), value_type)
        except ViewStateDecodeError as e:
            logger.warning(f"Ignoring malformed view field {key}: {e}")
            continue
        if value is None:
            continue
        try:
            changes[attr] = msgspec.convert(value, _FIELD_TARGETS[attr])
        except msgspec.ValidationError as e:
            logger.warning(f"Ignoring invalid view field {key}: {e}")

    return msgspec.structs.replace(base, **changes) if changes else base


_FIELD_TARGETS: Dict[str, Any] = {
    "selected_id": str,
    "focus_id": str,
    "layout_direction": LayoutDirection,
    "removed_ids": Tuple[Removal, ...],
    "white_list_ids": Tuple[str, ...],
    "group_by_modules": bool,
    "embed_special_actions": bool,
}


# =============================================================================
# URL HASH FORM
# =============================================================================

def encode_view_state(state: ViewState, extra: Optional[Mapping[str, str]] = None) -> str:
    """
    Encode as a URL-hash fragment (without the leading '#').

    `extra` carries foreign keys (e.g. the graph payload) that must survive.
    """
    params = dict(extra or {})
    for key in FIELD_TYPES:
        params.pop(key, None)
    params.update(view_state_to_flat(state))
    return urlencode(params)


def decode_view_state(fragment: str, defaults: Optional[ViewState] = None) -> ViewState:
    """Decode a URL-hash fragment. Never raises; falls back to defaults."""
    try:
        flat = dict(parse_qsl(fragment.lstrip("#"), keep_blank_values=False))
    except (ValueError, TypeError) as e:
        logger.warning(f"Failed to parse view fragment, using defaults: {e}")
        return defaults or ViewState()
    return view_state_from_flat(flat, defaults)

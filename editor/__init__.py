"""
INSPECTOR EDITOR - Interactive view editing

- view_state: ViewState and its URL-hash codec
- filter: apply a ViewState to a graph
- history: GraphEditor with undo/redo
- navigator: arrow-key navigation between rendered nodes
"""

from editor.view_state import Removal, ViewState, decode_view_state, encode_view_state
from editor.filter import apply_view
from editor.history import GraphEditor, SearchItem
from editor.navigator import Rect, SpatialNavigator

__all__ = [
    "Removal",
    "ViewState",
    "decode_view_state",
    "encode_view_state",
    "apply_view",
    "GraphEditor",
    "SearchItem",
    "Rect",
    "SpatialNavigator",
]

"""
INSPECTOR GRAPH EDITOR - View History with Undo/Redo

GraphEditor owns the current ViewState plus two stacks of prior states.
Every structural edit (remove, reveal, focus, layout, grouping, embedding)
goes through commit() and can be undone; selecting a node does not create
a checkpoint.

The editor never mutates the raw graph. It derives:
- initial_graph: the raw graph, with special actions embedded if the
  current state asks for it (memoized per embedding flag)
- rendered_graph: apply_view(initial_graph, state) (memoized per state)

Usage:
    editor = GraphEditor(create_graph_from_payload(payload))
    editor.remove_node("cluster_services/booking", Direction.FORWARD)
    editor.undo()
    snapshot = editor.snapshot()
"""
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import msgspec

from core.clusters import collect_cluster_nodes
from core.embedding import embed_action_nodes
from core.graph_db import GraphDB
from core.ontology import ArrowDirection, Direction, Id, LayoutDirection
from editor.filter import apply_view
from editor.navigator import Rect, SpatialNavigator
from editor.view_state import Removal, ViewState, decode_view_state, encode_view_state
from infrastructure.config import InspectorConfig
from infrastructure.logger import EditEventType, EditLogger
from viz.core import GraphFormatter, GraphSnapshot, create_snapshot

StateMutator = Callable[[ViewState], Mapping[str, Any]]


class SearchItem(msgspec.Struct, kw_only=True, frozen=True):
    """One entry of the node search box."""
    id: Id
    name: str
    module: str
    file_name: str


class RemovedEntry(msgspec.Struct, kw_only=True, frozen=True):
    """One entry of the 'hidden nodes' list, newest first."""
    id: Id
    direction: Direction
    name: str


class GraphEditor:
    """
    Interactive editing session over one raw graph.

    Attributes:
        state: The current ViewState
        generation: Render generation token, bumped on every state change
    """

    def __init__(
        self,
        raw_graph: GraphDB,
        initial_state: Optional[ViewState] = None,
        event_log: Optional[EditLogger] = None,
        navigator: Optional[SpatialNavigator] = None,
        **overrides: Any,
    ):
        self._raw_graph = raw_graph
        state = initial_state or ViewState()
        if overrides:
            state = msgspec.structs.replace(state, **overrides)
        self._state = state
        self._past: List[ViewState] = []
        self._future: List[ViewState] = []
        self._generation = 0
        self._event_log = event_log or EditLogger()
        self._navigator = navigator or SpatialNavigator()

        self._embedded_graph: Optional[GraphDB] = None
        self._rendered_for: Optional[ViewState] = None
        self._rendered_graph: Optional[GraphDB] = None

    @classmethod
    def from_config(
        cls,
        raw_graph: GraphDB,
        config: InspectorConfig,
        fragment: Optional[str] = None,
    ) -> "GraphEditor":
        """
        Editor whose defaults come from config, optionally overridden by a
        URL-hash fragment.
        """
        defaults = ViewState(
            layout_direction=config.view.layout_direction,
            group_by_modules=config.view.group_by_modules,
            embed_special_actions=config.view.embed_special_actions,
        )
        state = decode_view_state(fragment, defaults) if fragment else defaults
        return cls(
            raw_graph,
            state,
            EditLogger(config.logging.to_logger_config()),
            SpatialNavigator.from_config(config.navigator),
        )

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def event_log(self) -> EditLogger:
        return self._event_log

    @property
    def navigator(self) -> SpatialNavigator:
        """Arrow-key navigator. Hosts call navigator.reset() on mouse selection."""
        return self._navigator

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def raw_graph(self) -> GraphDB:
        return self._raw_graph

    @property
    def initial_graph(self) -> GraphDB:
        """The unfiltered graph the current state is applied to."""
        if not self._state.embed_special_actions:
            return self._raw_graph
        if self._embedded_graph is None:
            self._embedded_graph = embed_action_nodes(self._raw_graph)
        return self._embedded_graph

    @property
    def rendered_graph(self) -> GraphDB:
        """initial_graph filtered by the current state. Recomputed only on change."""
        key = self._state
        if self._rendered_graph is None or self._rendered_for != key:
            self._rendered_graph = apply_view(self.initial_graph, self._state)
            self._rendered_for = key
        return self._rendered_graph

    def to_fragment(self, extra: Optional[Mapping[str, str]] = None) -> str:
        """Current state as a URL-hash fragment."""
        return encode_view_state(self._state, extra)

    # =========================================================================
    # HISTORY
    # =========================================================================

    def _set_state(self, state: ViewState) -> None:
        self._state = state
        self._generation += 1

    def commit(self, mutator: StateMutator) -> ViewState:
        """
        Checkpoint the current state, then apply mutator's changes.

        Args:
            mutator: Receives the current state, returns {field: new value}

        Returns:
            The new current state
        """
        current = self._state
        changes = dict(mutator(current))
        self._past.append(current)
        self._future.clear()
        self._set_state(msgspec.structs.replace(current, **changes) if changes else current)
        self._log(EditEventType.COMMIT, detail=",".join(sorted(changes)))
        return self._state

    def undo(self) -> bool:
        """Step back one checkpoint. Returns False (no-op) if there is none."""
        if not self._past:
            return False
        self._future.append(self._state)
        self._set_state(self._past.pop())
        self._log(EditEventType.UNDO)
        return True

    def redo(self) -> bool:
        """Re-apply the most recently undone state. Returns False if there is none."""
        if not self._future:
            return False
        self._past.append(self._state)
        self._set_state(self._future.pop())
        self._log(EditEventType.REDO)
        return True

    def _log(
        self,
        event_type: EditEventType,
        node_id: Optional[Id] = None,
        direction: Optional[Direction] = None,
        detail: Optional[str] = None,
    ) -> None:
        self._event_log.log(
            event_type,
            node_id=node_id,
            direction=direction,
            detail=detail,
            history_depth=len(self._past),
        )

    # =========================================================================
    # DOMAIN ACTIONS
    # =========================================================================

    def select_node(self, node_id: Optional[Id]) -> None:
        """Change the selection. Not an undo checkpoint."""
        self._set_state(msgspec.structs.replace(self._state, selected_id=node_id))
        self._log(EditEventType.SELECT, node_id=node_id)

    def navigate(self, direction: ArrowDirection, rects: Sequence[Rect]) -> Optional[Id]:
        """
        Move the selection by arrow key over the rendered node boxes.

        Returns:
            The newly selected id, or None if nothing is selected or no
            node lies in that direction
        """
        selected_id = self._state.selected_id
        if selected_id is None:
            return None
        target_id = self._navigator.find_next(selected_id, direction, rects)
        if target_id is not None:
            self.select_node(target_id)
        return target_id

    def focus_node(self, node_id: Optional[Id]) -> None:
        """Show only what node_id reaches. Clears earlier reveals."""
        self.commit(lambda s: {"focus_id": node_id, "white_list_ids": ()})
        self._log(EditEventType.NODE_FOCUSED, node_id=node_id)

    def remove_node(self, node_id: Id, direction: Direction = Direction.FORWARD) -> None:
        """
        Hide a node (with its private cascade) or a whole cluster.

        Whitelist entries for everything the removal hides are dropped, and
        the selection is cleared.
        """
        direction = Direction(direction)
        initial = self.initial_graph
        clusters = initial.clusters
        if node_id in clusters:
            hidden = set(collect_cluster_nodes(clusters, node_id))
        else:
            hidden = initial.find_recursive(node_id, direction)
        hidden.add(node_id)

        def mutate(s: ViewState) -> Dict[str, Any]:
            return {
                "removed_ids": s.removed_ids + (Removal(node_id, direction),),
                "white_list_ids": tuple(i for i in s.white_list_ids if i not in hidden),
                "selected_id": None,
            }

        self.commit(mutate)
        self._log(EditEventType.NODE_REMOVED, node_id=node_id, direction=direction)

    def reveal_node(self, node_id: Id, direction: Direction = Direction.FORWARD) -> bool:
        """
        Protect node_id's parents (backward) or children (forward) from removal.

        Returns:
            False without a checkpoint if there is nothing to reveal
        """
        direction = Direction(direction)
        initial = self.initial_graph
        if direction is Direction.BACKWARD:
            neighbor_ids = initial.find_parent_ids(node_id)
        else:
            neighbor_ids = initial.find_child_ids(node_id)
        if not neighbor_ids:
            return False

        def mutate(s: ViewState) -> Dict[str, Any]:
            white_list = list(s.white_list_ids)
            white_list.extend(i for i in neighbor_ids if i not in s.white_list_ids)
            return {"white_list_ids": tuple(dict.fromkeys(white_list)), "selected_id": neighbor_ids[0]}

        self.commit(mutate)
        self._log(EditEventType.NODE_REVEALED, node_id=node_id, direction=direction)
        return True

    def restore_node(self, node_id: Id) -> None:
        """Undo every removal entry for node_id."""
        self.commit(lambda s: {"removed_ids": tuple(r for r in s.removed_ids if r.id != node_id)})
        self._log(EditEventType.NODE_RESTORED, node_id=node_id)

    def restore_all(self) -> None:
        self.commit(lambda s: {"removed_ids": ()})
        self._log(EditEventType.RESTORED_ALL)

    def change_layout(self, layout_direction: LayoutDirection) -> None:
        layout_direction = LayoutDirection(layout_direction)
        self.commit(lambda s: {"layout_direction": layout_direction})
        self._log(EditEventType.LAYOUT_CHANGED, detail=layout_direction.value)

    def change_group_by_modules(self, group_by_modules: bool) -> None:
        self.commit(lambda s: {"group_by_modules": group_by_modules})
        self._log(EditEventType.GROUPING_CHANGED, detail=str(group_by_modules).lower())

    def change_embed_special_actions(self, embed_special_actions: bool) -> None:
        self.commit(lambda s: {"embed_special_actions": embed_special_actions})
        self._log(EditEventType.EMBEDDING_CHANGED, detail=str(embed_special_actions).lower())

    # =========================================================================
    # QUERIES
    # =========================================================================

    def search(self, term: str = "") -> List[SearchItem]:
        """
        Nodes of the initial graph whose name or module contains term.

        Case-insensitive. An empty term lists every node.
        """
        needle = term.strip().lower()
        items = []
        for node_id, node in self.initial_graph.iter_nodes():
            if needle and needle not in node.name.lower() and needle not in node.location.module.lower():
                continue
            items.append(SearchItem(
                id=node_id,
                name=node.name,
                module=node.location.module,
                file_name=node.location.url,
            ))
        return items

    def removed_entries(self) -> List[RemovedEntry]:
        """Hidden ids with display names, most recent first."""
        initial = self.initial_graph
        return [
            RemovedEntry(id=r.id, direction=r.direction, name=GraphFormatter.display_name(initial, r.id))
            for r in reversed(self._state.removed_ids)
        ]

    def selected_path(self) -> Optional[List[str]]:
        """Raw 'module/name' (or cluster path) of the selection, split on '/'."""
        selected_id = self._state.selected_id
        if not selected_id:
            return None
        initial = self.initial_graph
        raw = (
            GraphFormatter.node_name(initial, selected_id, prettify=False)
            or GraphFormatter.cluster_name(initial, selected_id, prettify=False)
            or selected_id
        )
        return raw.split("/")

    def snapshot(self) -> GraphSnapshot:
        """Rendering hand-off for the current state, stamped with the generation."""
        return create_snapshot(
            self.initial_graph,
            self.rendered_graph,
            layout_direction=self._state.layout_direction,
            group_by_modules=self._state.group_by_modules,
            generation=self._generation,
        )

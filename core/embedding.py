"""
Node embedding: fold synthetic outcome and trigger actions into epic ports.

An epic usually comes with satellite actions:
- `loadOffersSuccess` / `loadOffersError`, emitted by the epic
- `loadOffers`, dispatched by a component and consumed only by the epic

Drawing them as separate boxes triples the node count for no extra
information. The transform deletes those actions and re-routes their
relations through the epic, tagging each re-routed relation with the port
it passes through (success / error outbound, trigger inbound).

The transform never guesses. An action that is shared (several parents for
an outcome action, several children for a trigger action) stays visible,
and a relation that already carries a port is never folded again, which
makes the transform idempotent.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from core.graph_db import GraphDB
from core.ontology import NON_TRIGGER_ID_PATTERN, Id, NodeKind, PortName, outcome_port_for_name

logger = logging.getLogger(__name__)


@dataclass
class EmbeddedNodeMap:
    """Which actions would fold into which epic, and through which port."""
    action_to_epic: Dict[Id, Tuple[Id, PortName]] = field(default_factory=dict)
    epic_to_actions: Dict[Id, List[Tuple[Id, PortName]]] = field(default_factory=dict)

    def add(self, action_id: Id, epic_id: Id, port: PortName) -> None:
        self.action_to_epic[action_id] = (epic_id, port)
        self.epic_to_actions.setdefault(epic_id, []).append((action_id, port))

    def __len__(self) -> int:
        return len(self.action_to_epic)


# =============================================================================
# SHAPE PREDICATES
# =============================================================================

def outcome_port(graph: GraphDB, epic_id: Id, action_id: Id) -> Optional[PortName]:
    """
    Port through which action_id would fold into epic_id as an outcome.

    Matches when epic_id is an epic, action_id is an action whose name marks
    it as Success/Error, the epic is its only parent, and the relation
    between them carries no port yet.
    """
    epic = graph.find_node(epic_id)
    action = graph.find_node(action_id)
    if epic is None or action is None:
        return None
    if epic.kind is not NodeKind.EPIC or action.kind is not NodeKind.ACTION:
        return None

    relation = graph.find_relation(epic_id, action_id)
    if relation is None or graph.get_port_mapping(relation) is not None:
        return None
    if graph.find_parent_ids(action_id) != [epic_id]:
        return None
    return outcome_port_for_name(action.name)


def trigger_target(graph: GraphDB, action_id: Id) -> Optional[Id]:
    """
    Epic that action_id would fold into as its trigger, if any.

    Matches when the action has exactly one outgoing relation, untagged,
    into an epic of the same module and layer, and the action id does not
    already look like an outcome or port id.
    """
    action = graph.find_node(action_id)
    if action is None or action.kind is not NodeKind.ACTION:
        return None
    if NON_TRIGGER_ID_PATTERN.search(action_id):
        return None

    children = graph.find_children(action_id)
    if len(children) != 1:
        return None
    relation = children[0]
    if graph.get_port_mapping(relation) is not None:
        return None

    epic = graph.find_node(relation.to_id)
    if epic is None or epic.kind is not NodeKind.EPIC:
        return None
    if epic.location.module != action.location.module or epic.location.layer != action.location.layer:
        return None
    return relation.to_id


def find_embeddable_nodes(graph: GraphDB) -> EmbeddedNodeMap:
    """Report every action matching the outcome or trigger shape. Read-only."""
    result = EmbeddedNodeMap()
    for node_id, node in graph.iter_nodes():
        if node.kind is NodeKind.EPIC:
            for action_id in graph.find_child_ids(node_id):
                port = outcome_port(graph, node_id, action_id)
                if port is not None:
                    result.add(action_id, node_id, port)
        elif node.kind is NodeKind.ACTION:
            epic_id = trigger_target(graph, node_id)
            if epic_id is not None:
                result.add(node_id, epic_id, PortName.TRIGGER)
    return result


# =============================================================================
# TRANSFORM
# =============================================================================

def embed_action_nodes(graph: GraphDB) -> GraphDB:
    """
    Fold outcome and trigger actions into their epics.

    Works on a clone; the input graph is left untouched.

    Returns:
        The transformed clone
    """
    result = graph.clone()
    folded = 0

    # Pass 1: Success/Error actions emitted by an epic
    for epic_id, epic in result.iter_nodes():
        if epic.kind is not NodeKind.EPIC:
            continue
        for action_id in result.find_child_ids(epic_id):
            port = outcome_port(result, epic_id, action_id)
            if port is None:
                continue
            result.remove_relation(epic_id, action_id)
            for next_id in result.find_child_ids(action_id):
                _reroute(result, (action_id, next_id), (epic_id, next_id), from_port=port)
            result.remove_node(action_id)
            folded += 1

    # Pass 2: single-use triggers, re-scanned after pass 1 deletions
    for action_id, action in result.iter_nodes():
        if action.kind is not NodeKind.ACTION:
            continue
        epic_id = trigger_target(result, action_id)
        if epic_id is None:
            continue
        result.remove_relation(action_id, epic_id)
        for prev_id in result.find_parent_ids(action_id):
            _reroute(result, (prev_id, action_id), (prev_id, epic_id), to_port=PortName.TRIGGER)
        result.remove_node(action_id)
        folded += 1

    logger.debug(f"Embedded {folded} action node(s) into epic ports")
    return result


def _reroute(
    graph: GraphDB,
    old: Tuple[Id, Id],
    new: Tuple[Id, Id],
    from_port: Optional[PortName] = None,
    to_port: Optional[PortName] = None,
) -> None:
    """
    Replace relation `old` with `new`, tagging the given port.

    The port on the far end of `old` (the end that survives) is carried
    over to `new`.
    """
    old_mapping = graph.get_port_mapping(graph.find_relation(*old).id)
    graph.remove_relation(*old)
    graph.add_relation(*new)

    if from_port is not None:
        graph.add_from_port_for_relation(new[0], from_port, new[1])
        if old_mapping is not None and old_mapping.to_port_name is not None:
            graph.add_to_port_for_relation(new[0], new[1], old_mapping.to_port_name)
    if to_port is not None:
        graph.add_to_port_for_relation(new[0], new[1], to_port)
        if old_mapping is not None and old_mapping.from_port_name is not None:
            graph.add_from_port_for_relation(new[0], old_mapping.from_port_name, new[1])

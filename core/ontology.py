"""
INSPECTOR ONTOLOGY - The Dictionary of the System

If schemas.py is the Grammar (how we structure sentences),
ontology.py is the Dictionary (the words we can use).

This module defines:
- Enums: The vocabulary (NodeKind, PortName, Direction, ...)
- Cluster id conventions
- The name markers that identify synthetic outcome/trigger actions

The static analyzer upstream decides WHAT a node is. Nothing here
inspects source code; every node arrives already tagged with a kind.
"""
import re
from enum import Enum
from typing import Literal, Optional


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class NodeKind(str, Enum):
    """Kinds of domain entities discovered in a Redux codebase."""
    ACTION = "action"          # Dispatched event/message type
    EPIC = "epic"              # Reactive business-logic unit
    REDUCER = "reducer"        # Slice case reducer
    COMPONENT = "component"    # UI component that dispatches/subscribes


class PortName(str, Enum):
    """Labeled attachment points on an epic node."""
    TRIGGER = "trigger"        # Inbound: the action that starts the epic
    SUCCESS = "success"        # Outbound: emitted on success
    ERROR = "error"            # Outbound: emitted on failure


class Direction(str, Enum):
    """Traversal direction for cascades and reveals."""
    FORWARD = "forward"        # Follow relations from -> to (descendants)
    BACKWARD = "backward"      # Follow relations to -> from (ancestors)


class ArrowDirection(str, Enum):
    """Screen-space direction for keyboard navigation."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    @property
    def opposite(self) -> "ArrowDirection":
        return _OPPOSITES[self]


_OPPOSITES = {
    ArrowDirection.UP: ArrowDirection.DOWN,
    ArrowDirection.DOWN: ArrowDirection.UP,
    ArrowDirection.LEFT: ArrowDirection.RIGHT,
    ArrowDirection.RIGHT: ArrowDirection.LEFT,
}


class LayoutDirection(str, Enum):
    """Rank direction handed to the layout engine."""
    TB = "TB"                  # Top to bottom
    LR = "LR"                  # Left to right


# =============================================================================
# Type Aliases
# =============================================================================

Id = str
ApiMethod = Literal["POST", "GET", "PUT", "DELETE"]


# =============================================================================
# CLUSTERS
# =============================================================================

# Cluster ids share one namespace with node ids; the prefix keeps them apart
CLUSTER_ID_PREFIX = "cluster_"
MODULE_SEPARATOR = "/"


def cluster_id_for_path(path: str) -> Id:
    """Stable cluster id for a slash-joined module path prefix."""
    return CLUSTER_ID_PREFIX + path


# =============================================================================
# EMBEDDING MARKERS
# =============================================================================

SUCCESS_MARKER = "Success"
ERROR_MARKER = "Error"

# Ids that already look like outcome/port ids are never treated as triggers
NON_TRIGGER_ID_PATTERN = re.compile(r":|Success|Error")


def outcome_port_for_name(name: str) -> Optional[PortName]:
    """Port an outcome action folds into, judged by its display name."""
    if SUCCESS_MARKER in name:
        return PortName.SUCCESS
    if ERROR_MARKER in name:
        return PortName.ERROR
    return None

"""
INSPECTOR SCHEMAS - The Grammar of the System

If ontology.py is the Dictionary (defining the words we can use),
schemas.py is the Grammar (defining how we structure sentences).

This module defines the data structures that flow through the graph:
- Location / ApiRequest / ApiCall: Node detail records
- ActionNode / EpicNode / ReducerNode / ComponentNode: The tagged node union
- Relation: A directed edge record addressed by a stable integer id
- PortMapping: Port labels attached to one relation (keyed by relation id)
- Cluster: A derived module-path grouping
- GraphPayload: The flat {nodes, relations} wire form produced by the analyzer

Design Principles:
1. STRICT TYPING: msgspec.Struct, tagged on the "type" field
2. IMMUTABLE RECORDS: Nodes, relations and port mappings are frozen, so a
   cloned graph can share them with its source
3. WIRE COMPATIBLE: camelCase on the wire, snake_case in Python
"""
from pathlib import Path
from typing import ClassVar, Dict, List, Optional, Union

import msgspec

from core.ontology import ApiMethod, Id, NodeKind, PortName


# =============================================================================
# NODE DETAILS
# =============================================================================

class Location(msgspec.Struct, kw_only=True, frozen=True):
    """Where a node was found and which module it belongs to."""
    url: str = ""                       # file:line:col deep link target
    module: str = ""                    # "/"-delimited logical path, drives clustering
    layer: Optional[str] = None         # Short classification tag (S, DP, E, V, ...)


class ApiRequest(msgspec.Struct, kw_only=True, frozen=True):
    """A single HTTP call issued by an epic."""
    method: ApiMethod
    url: str
    location: Location = msgspec.field(default_factory=Location)


class ApiCall(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """All requests an epic performs, plus its outcome actions if known."""
    requests: List[ApiRequest] = msgspec.field(default_factory=list)
    success_id: Optional[Id] = None
    error_id: Optional[Id] = None


# =============================================================================
# NODES (Tagged Union)
# =============================================================================

class BaseNode(msgspec.Struct, kw_only=True, frozen=True, tag_field="type", rename="camel"):
    """Fields shared by every node kind."""
    name: str
    location: Location = msgspec.field(default_factory=Location)

    kind: ClassVar[NodeKind]

    @property
    def module(self) -> str:
        return self.location.module


class ActionNode(BaseNode, tag="action", kw_only=True, frozen=True, rename="camel"):
    kind: ClassVar[NodeKind] = NodeKind.ACTION


class EpicNode(BaseNode, tag="epic", kw_only=True, frozen=True, rename="camel"):
    kind: ClassVar[NodeKind] = NodeKind.EPIC
    api_call: ApiCall = msgspec.field(default_factory=ApiCall)


class ReducerNode(BaseNode, tag="reducer", kw_only=True, frozen=True, rename="camel"):
    kind: ClassVar[NodeKind] = NodeKind.REDUCER
    parent_slice_name: str = ""


class ComponentNode(BaseNode, tag="component", kw_only=True, frozen=True, rename="camel"):
    kind: ClassVar[NodeKind] = NodeKind.COMPONENT


Node = Union[ActionNode, EpicNode, ReducerNode, ComponentNode]


# =============================================================================
# RELATIONS AND PORTS
# =============================================================================

class Relation(msgspec.Struct, frozen=True, rename={"from_id": "from", "to_id": "to"}):
    """
    Directed relation: from_id causally leads to / triggers / contains to_id.

    `id` is the relation's slot in the graph's relation arena. It is stable
    for as long as the relation exists and is what port mappings key off.
    """
    id: int
    from_id: Id
    to_id: Id


class PortMapping(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """Port labels for one relation. Either end may be unset."""
    relation_id: int
    from_port_name: Optional[PortName] = None
    to_port_name: Optional[PortName] = None


# =============================================================================
# CLUSTERS
# =============================================================================

class Cluster(msgspec.Struct, kw_only=True, rename="camel"):
    """
    A derived grouping of nodes sharing a module path prefix.

    Built incrementally by the cluster deriver, hence not frozen.
    """
    id: Id
    name: str                                   # Full slash-joined prefix, e.g. "services/booking"
    sub_clusters: List[Id] = msgspec.field(default_factory=list)
    nodes: List[Id] = msgspec.field(default_factory=list)


# =============================================================================
# WIRE PAYLOAD
# =============================================================================

class GraphPayload(msgspec.Struct, kw_only=True):
    """The analyzer's output: node map plus flat adjacency lists."""
    nodes: Dict[Id, Node] = msgspec.field(default_factory=dict)
    relations: Dict[Id, List[Id]] = msgspec.field(default_factory=dict)


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================

# Pre-compiled encoders/decoders, reused across the application
_encoder = msgspec.json.Encoder()
_payload_decoder = msgspec.json.Decoder(type=GraphPayload)


def serialize_payload(payload: GraphPayload) -> bytes:
    """Serialize a GraphPayload to JSON bytes."""
    return _encoder.encode(payload)


def deserialize_payload(data: Union[bytes, str]) -> GraphPayload:
    """
    Deserialize JSON to a GraphPayload.

    Raises:
        msgspec.ValidationError: If a node has an unknown type or bad fields
        msgspec.DecodeError: If the input is not JSON
    """
    return _payload_decoder.decode(data)


def load_payload(path: Union[str, Path]) -> GraphPayload:
    """Read a GraphPayload from a JSON file."""
    return deserialize_payload(Path(path).read_bytes())

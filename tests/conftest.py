"""
Pytest configuration and shared fixtures for the inspector test suite.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset process-wide singletons before each test to ensure isolation."""
    from infrastructure.config import reset_config
    from infrastructure.logger import reset_logger

    reset_config()
    reset_logger()

    yield

    reset_config()
    reset_logger()


@pytest.fixture
def fresh_graph():
    """Provide a fresh, empty GraphDB instance."""
    from core.graph_db import create_empty_graph
    return create_empty_graph()


@pytest.fixture
def make_node():
    """
    Factory for nodes: make_node("action", "loadOffers", module="booking").
    """
    from core.schemas import ActionNode, ComponentNode, EpicNode, Location, ReducerNode

    classes = {
        "action": ActionNode,
        "epic": EpicNode,
        "reducer": ReducerNode,
        "component": ComponentNode,
    }

    def factory(kind: str, name: str, module: str = "", layer=None, url: str = ""):
        return classes[kind](name=name, location=Location(url=url, module=module, layer=layer))

    return factory


@pytest.fixture
def redux_payload(make_node):
    """
    A small booking feature as the static analyzer would report it.

        OffersPage -> loadOffers -> loadOffersEpic -> loadOffersSuccess -> offersReducer
                                                   -> loadOffersError   -> errorReducer
        PayButton  -> pay (payments, two epics consume it)
    """
    from core.schemas import ApiCall, ApiRequest, EpicNode, GraphPayload, Location

    nodes = {
        "booking/ui/OffersPage": make_node("component", "OffersPage", "booking/ui", url="src/booking/ui/OffersPage.tsx:1:1"),
        "booking/loadOffers": make_node("action", "loadOffers", "booking", url="src/booking/actions.ts:3:14"),
        "booking/loadOffersEpic": EpicNode(
            name="loadOffersEpic",
            location=Location(url="src/booking/epics.ts:10:14", module="booking"),
            api_call=ApiCall(requests=[ApiRequest(method="GET", url="/api/offers")]),
        ),
        "booking/loadOffersSuccess": make_node("action", "loadOffersSuccess", "booking"),
        "booking/loadOffersError": make_node("action", "loadOffersError", "booking"),
        "booking/offersReducer": make_node("reducer", "offersReducer", "booking"),
        "booking/errorReducer": make_node("reducer", "errorReducer", "booking"),
        "payments/ui/PayButton": make_node("component", "PayButton", "payments/ui"),
        "payments/pay": make_node("action", "pay", "payments"),
        "payments/payEpic": make_node("epic", "payEpic", "payments"),
        "payments/auditEpic": make_node("epic", "auditEpic", "payments"),
    }
    relations = {
        "booking/ui/OffersPage": ["booking/loadOffers"],
        "booking/loadOffers": ["booking/loadOffersEpic"],
        "booking/loadOffersEpic": ["booking/loadOffersSuccess", "booking/loadOffersError"],
        "booking/loadOffersSuccess": ["booking/offersReducer"],
        "booking/loadOffersError": ["booking/errorReducer"],
        "payments/ui/PayButton": ["payments/pay"],
        "payments/pay": ["payments/payEpic", "payments/auditEpic"],
    }
    return GraphPayload(nodes=nodes, relations=relations)


@pytest.fixture
def redux_graph(redux_payload):
    """GraphDB built from redux_payload."""
    from core.graph_db import create_graph_from_payload
    return create_graph_from_payload(redux_payload)


@pytest.fixture
def chain_graph(fresh_graph, make_node):
    """
    Build a graph of plain actions from an edge list.

    chain_graph([("A", "B"), ("B", "C")]) -> GraphDB
    """
    def build(edges, extra_nodes=()):
        ids = list(dict.fromkeys([n for edge in edges for n in edge] + list(extra_nodes)))
        for node_id in ids:
            fresh_graph.add_node(node_id, make_node("action", node_id))
        for from_id, to_id in edges:
            fresh_graph.add_relation(from_id, to_id)
        return fresh_graph

    return build

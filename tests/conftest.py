"""Shared test fixtures for costner tests."""
import sys
from pathlib import Path

import pytest

# Ensure costner package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from costner.config import settings
from costner.engine.graph import Connection, Graph
from costner.nodes.base import BaseNode, DataType, NodeInput, NodeOutput


@pytest.fixture(scope="session", autouse=True)
def register_nodes():
    """Discover and register all node types once per test session."""
    from costner.nodes.registry import NodeRegistry
    NodeRegistry.discover("costner.nodes")


class EchoNode(BaseNode):
    """Copies ``value`` to ``out``; records every call on the class."""
    NODE_TYPE = "echo"
    calls: list[str] = []

    @classmethod
    def INPUT_TYPES(cls):
        return [
            NodeInput("value", DataType.ANY, value="default"),
            NodeInput("extra", DataType.ANY),
        ]

    @classmethod
    def RETURN_TYPES(cls):
        return [NodeOutput("out", DataType.ANY), NodeOutput("extra", DataType.ANY)]

    def execute(self, context, inputs):
        EchoNode.calls.append(self.id)
        result = {"out": inputs.get("value")}
        if "extra" in inputs:
            result["extra"] = inputs["extra"]
        return result


class NeedyNode(BaseNode):
    """Has one required input with no default."""
    NODE_TYPE = "needy"

    @classmethod
    def INPUT_TYPES(cls):
        return [NodeInput("needed", DataType.ANY, required=True)]

    @classmethod
    def RETURN_TYPES(cls):
        return [NodeOutput("out", DataType.ANY)]

    def execute(self, context, inputs):
        return {"out": inputs["needed"]}


class FailingNode(BaseNode):
    NODE_TYPE = "failing"

    @classmethod
    def INPUT_TYPES(cls):
        return [NodeInput("value", DataType.ANY)]

    @classmethod
    def RETURN_TYPES(cls):
        return [NodeOutput("out", DataType.ANY)]

    def execute(self, context, inputs):
        raise RuntimeError("boom")


@pytest.fixture(autouse=True)
def reset_echo_calls():
    EchoNode.calls = []
    yield


def connect(graph: Graph, conn_id: str, src: str, src_port: str, tgt: str, tgt_port: str):
    graph.add_connection(Connection(conn_id, src, src_port, tgt, tgt_port))


@pytest.fixture
def chain_graph():
    """a -> b -> c through echo ports."""
    graph = Graph()
    for nid in ("a", "b", "c"):
        graph.add_node(EchoNode(nid))
    connect(graph, "e1", "a", "out", "b", "value")
    connect(graph, "e2", "b", "out", "c", "value")
    return graph


@pytest.fixture
def diamond_graph():
    """a -> b, a -> c, b -> d, c -> d"""
    graph = Graph()
    for nid in ("a", "b", "c", "d"):
        graph.add_node(EchoNode(nid))
    connect(graph, "e1", "a", "out", "b", "value")
    connect(graph, "e2", "a", "out", "c", "value")
    connect(graph, "e3", "b", "out", "d", "value")
    connect(graph, "e4", "c", "out", "d", "extra")
    return graph


@pytest.fixture
def projects_dir(tmp_path, monkeypatch):
    """Point settings.projects_dir at a temp directory."""
    monkeypatch.setattr(settings, "projects_dir", tmp_path)
    return tmp_path


@pytest.fixture
def api_project_data():
    """env -> transform(to_string) -> conditional(contains) project as plain JSON."""
    return {
        "name": "smoke",
        "description": "env to string and check",
        "nodes": [
            {
                "id": "n1", "type": "env", "name": "Env",
                "inputs": [{"name": "load_os", "value": False}],
            },
            {
                "id": "n2", "type": "transform",
                "inputs": [{"name": "operation", "value": "to_string"}],
            },
            {
                "id": "n3", "type": "conditional",
                "inputs": [
                    {"name": "condition", "value": "eq"},
                    {"name": "compare_value", "value": "{}"},
                    {"name": "true_output", "value": "empty"},
                    {"name": "false_output", "value": "not empty"},
                ],
            },
        ],
        "connections": [
            {"id": "c1", "source_node": "n1", "source_port": "variables",
             "target_node": "n2", "target_port": "input"},
            {"id": "c2", "source_node": "n2", "source_port": "output",
             "target_node": "n3", "target_port": "value"},
        ],
    }

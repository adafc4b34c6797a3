"""Exception types raised by the graph, executor and node implementations."""
from typing import Any


class CostnerError(Exception):
    """Base class for every error raised by costner."""


class NodeNotFoundError(CostnerError):
    def __init__(self, node_id: str, detail: str = "node not found"):
        self.node_id = node_id
        super().__init__(f"{detail}: {node_id}")


class ConnectionNotFoundError(CostnerError):
    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__(f"connection not found: {connection_id}")


class CyclicGraphError(CostnerError):
    def __init__(self, message: str = "cyclic dependency detected"):
        super().__init__(message)


class InvalidConnectionError(CostnerError):
    """A connection references a node or port that does not exist.

    ``kind`` is one of ``source_node``, ``target_node``, ``source_port`` or
    ``target_port``; ``identifier`` names the missing entity (ports are
    given as ``node.port``).
    """

    KINDS = ("source_node", "target_node", "source_port", "target_port")

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        label = kind.replace("_", " ")
        super().__init__(f"{label} not found: {identifier}")


class InputNotFoundError(CostnerError):
    def __init__(self, node_id: str, name: str):
        self.node_id = node_id
        self.name = name
        super().__init__(f"input not found: {node_id}.{name}")


class InputResolutionError(CostnerError):
    """A node's inputs could not be resolved before execution.

    ``reason`` is one of:
      - ``not_executed``: the upstream node has no output in this pass
      - ``upstream_failed``: the upstream node ran in this pass and failed
      - ``missing_output``: the upstream ran but did not produce the port
      - ``not_provided``: required input neither connected nor defaulted
    """

    def __init__(self, message: str, node_id: str, port: str,
                 source: str | None = None, reason: str = "not_provided"):
        self.node_id = node_id
        self.port = port
        self.source = source
        self.reason = reason
        super().__init__(message)


class NodeError(CostnerError):
    """Raised by node implementations for failures of their own behavior."""


class UnknownNodeTypeError(CostnerError):
    def __init__(self, node_type: str):
        self.node_type = node_type
        super().__init__(f"unknown node type: {node_type}")


class ProjectError(CostnerError):
    """A project file could not be read, parsed or turned into a graph."""


class ExecutionError(CostnerError):
    """A run stopped at a failing node.

    ``results`` holds every ExecutionResult produced before the stop,
    including the failing node's own result as the last element.
    """

    def __init__(self, node_id: str, results: list[Any], cause: BaseException):
        self.node_id = node_id
        self.results = results
        super().__init__(f"execution stopped at node {node_id}: {cause}")


class ExecutionCancelled(CostnerError):
    def __init__(self, results: list[Any], next_node: str | None = None):
        self.results = results
        self.next_node = next_node
        msg = "execution cancelled"
        if next_node is not None:
            msg += f" before node {next_node}"
        super().__init__(msg)

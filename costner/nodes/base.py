"""Base node abstraction and port type definitions."""
import copy
import json
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from ..engine.errors import InputNotFoundError, NodeError


class DataType(str, Enum):
    """Semantic hint for a port's value. Never enforced at connect time."""
    STRING = "string"
    INT = "int"
    BOOL = "bool"
    MAP = "map"
    ANY = "any"
    DURATION = "duration"


@dataclass
class NodeInput:
    name: str
    dtype: DataType
    required: bool = False
    description: str = ""
    value: Any = None  # declared default, seeded before connections resolve


@dataclass
class NodeOutput:
    name: str
    dtype: DataType
    description: str = ""
    value: Any = None  # last value produced by the node


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0


@dataclass
class NodeDefinition:
    """Serializable node definition for listings (CLI, API)."""
    node_type: str
    display_name: str
    description: str
    inputs: list[NodeInput]
    outputs: list[NodeOutput]


def port_to_dict(port: NodeInput | NodeOutput) -> dict[str, Any]:
    data = asdict(port)
    data["type"] = data.pop("dtype").value
    return data


class BaseNode(ABC):
    """Abstract base class for all nodes in the graph.

    Subclasses declare their ports through ``INPUT_TYPES``/``RETURN_TYPES``
    and implement ``execute``. The ``inputs`` and ``outputs`` accessors
    return the live port lists: value updates made through them are seen by
    every later reader.
    """

    NODE_TYPE: str = ""  # set by NodeRegistry.register
    DISPLAY_NAME: str = ""
    DESCRIPTION: str = ""

    def __init__(self, node_id: str):
        self._id = node_id
        self.name = self.DISPLAY_NAME or type(self).__name__
        self._inputs = self.INPUT_TYPES()
        self._outputs = self.RETURN_TYPES()
        self.config: dict[str, Any] = {}
        self.position = Position()

    @classmethod
    @abstractmethod
    def INPUT_TYPES(cls) -> list[NodeInput]:
        ...

    @classmethod
    @abstractmethod
    def RETURN_TYPES(cls) -> list[NodeOutput]:
        ...

    @abstractmethod
    def execute(self, context: Any, inputs: dict[str, Any]) -> dict[str, Any]:
        """Run the node on fully resolved inputs and return its output map.

        Must depend only on ``inputs`` and the node's own config. ``context``
        is the run's ExecutionContext (cancellation and deadline).
        """
        ...

    @property
    def id(self) -> str:
        return self._id

    @property
    def node_type(self) -> str:
        return self.NODE_TYPE or type(self).__name__

    @property
    def inputs(self) -> list[NodeInput]:
        return self._inputs

    @property
    def outputs(self) -> list[NodeOutput]:
        return self._outputs

    def get_input(self, name: str) -> NodeInput | None:
        for port in self._inputs:
            if port.name == name:
                return port
        return None

    def has_output(self, name: str) -> bool:
        return any(port.name == name for port in self._outputs)

    def set_input_value(self, name: str, value: Any) -> None:
        port = self.get_input(name)
        if port is None:
            raise InputNotFoundError(self._id, name)
        port.value = value

    def get_output_value(self, name: str) -> tuple[Any, bool]:
        for port in self._outputs:
            if port.name == name:
                return port.value, True
        return None, False

    def set_output_values(self, values: dict[str, Any]) -> None:
        """Publish produced values onto the matching output ports."""
        for port in self._outputs:
            if port.name in values:
                port.value = values[port.name]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self._id,
            "type": self.node_type,
            "name": self.name,
            "inputs": [port_to_dict(p) for p in self._inputs],
            "outputs": [port_to_dict(p) for p in self._outputs],
            "config": self.config,
            "position": asdict(self.position),
        }

    def serialize(self) -> bytes:
        return json.dumps(self.to_dict(), default=str).encode("utf-8")

    def deserialize(self, data: bytes) -> None:
        """Restore state written by ``serialize``.

        Port lists keep the class declaration; only values of known ports
        are restored.
        """
        try:
            state = json.loads(data)
        except (TypeError, ValueError) as e:
            raise NodeError(f"cannot deserialize node {self._id}: {e}") from e
        if state.get("type", self.node_type) != self.node_type:
            raise NodeError(
                f"cannot deserialize {state.get('type')!r} state into "
                f"{self.node_type!r} node"
            )
        self._id = state.get("id", self._id)
        self.name = state.get("name", self.name)
        for item in state.get("inputs", []):
            port = self.get_input(item.get("name", ""))
            if port is not None:
                port.value = item.get("value")
        self.set_output_values({
            item["name"]: item.get("value")
            for item in state.get("outputs", []) if "name" in item
        })
        self.config = dict(state.get("config") or {})
        pos = state.get("position") or {}
        self.position = Position(x=float(pos.get("x", 0.0)), y=float(pos.get("y", 0.0)))

    def clone(self) -> "BaseNode":
        """Independent copy: same ports, values and config, nothing shared."""
        return copy.deepcopy(self)

    @classmethod
    def get_definition(cls, node_type: str) -> NodeDefinition:
        return NodeDefinition(
            node_type=node_type,
            display_name=cls.DISPLAY_NAME or cls.__name__,
            description=cls.DESCRIPTION or cls.__doc__ or "",
            inputs=cls.INPUT_TYPES(),
            outputs=cls.RETURN_TYPES(),
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self._id!r}>"

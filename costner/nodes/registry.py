"""Node registry with auto-discovery."""
import importlib
import logging
import pkgutil
from typing import TYPE_CHECKING

from ..engine.errors import InputNotFoundError, UnknownNodeTypeError
from .base import BaseNode, NodeDefinition, Position

if TYPE_CHECKING:
    from ..models.schemas import NodeData

logger = logging.getLogger(__name__)


class NodeRegistry:
    """Singleton registry mapping node type tags to BaseNode subclasses."""

    _nodes: dict[str, type[BaseNode]] = {}

    @classmethod
    def register(cls, node_type: str | None = None):
        """Decorator to register a node class.

        Usage:
            @NodeRegistry.register("request")
            class RequestNode(BaseNode):
                ...
        """
        def decorator(node_cls: type[BaseNode]) -> type[BaseNode]:
            name = node_type or node_cls.__name__
            node_cls.NODE_TYPE = name
            cls._nodes[name] = node_cls
            return node_cls
        return decorator

    @classmethod
    def get(cls, node_type: str) -> type[BaseNode]:
        if node_type not in cls._nodes:
            raise UnknownNodeTypeError(node_type)
        return cls._nodes[node_type]

    @classmethod
    def create(cls, node_type: str, node_id: str) -> BaseNode:
        return cls.get(node_type)(node_id)

    @classmethod
    def create_from_data(cls, data: "NodeData") -> BaseNode:
        """Instantiate a node from its persisted record."""
        node = cls.create(data.type, data.id)
        if data.name:
            node.name = data.name
        node.position = Position(x=data.position.x, y=data.position.y)
        node.config = dict(data.config)
        for port in data.inputs:
            try:
                node.set_input_value(port.name, port.value)
            except InputNotFoundError:
                logger.warning(
                    "Ignoring unknown input %r on node %s (%s)",
                    port.name, data.id, data.type,
                )
        return node

    @classmethod
    def available_types(cls) -> list[str]:
        return sorted(cls._nodes)

    @classmethod
    def all_definitions(cls) -> dict[str, NodeDefinition]:
        return {
            name: cls._nodes[name].get_definition(name)
            for name in cls.available_types()
        }

    @classmethod
    def discover(cls, package_name: str) -> None:
        """Import all modules in the given package to trigger @register decorators."""
        try:
            package = importlib.import_module(package_name)
        except ImportError:
            return
        if not hasattr(package, "__path__"):
            return
        for _, module_name, _ in pkgutil.iter_modules(package.__path__):
            if module_name.startswith("_") or module_name in ("base", "registry"):
                continue
            importlib.import_module(f"{package_name}.{module_name}")

    @classmethod
    def clear(cls) -> None:
        cls._nodes.clear()

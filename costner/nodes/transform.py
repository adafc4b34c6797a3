"""Data transform node: JSON path lookup, conversions and string templating."""
import json
import re
from typing import Any

from ..engine.errors import NodeError
from .base import BaseNode, DataType, NodeInput, NodeOutput
from .registry import NodeRegistry

_INT_RE = re.compile(r"[+-]?[0-9]+")


@NodeRegistry.register("transform")
class TransformNode(BaseNode):
    DISPLAY_NAME = "Data Transform"
    DESCRIPTION = "Transform a value (json_path, to_string, to_int, format)"

    OPERATIONS = ("json_path", "to_string", "to_int", "format")

    @classmethod
    def INPUT_TYPES(cls):
        return [
            NodeInput("input", DataType.ANY, required=True, description="Input data to transform"),
            NodeInput(
                "operation", DataType.STRING, required=True,
                description="Transform operation (json_path, to_string, to_int, format)",
            ),
            NodeInput("expression", DataType.STRING, description="Expression for the operation"),
        ]

    @classmethod
    def RETURN_TYPES(cls):
        return [NodeOutput("output", DataType.ANY, description="Transformed data")]

    def execute(self, context, inputs):
        if "input" not in inputs:
            raise NodeError("input is required")
        value = inputs["input"]

        operation = inputs.get("operation")
        if not isinstance(operation, str) or not operation:
            raise NodeError("operation is required")

        expression = inputs.get("expression")
        if not isinstance(expression, str):
            expression = ""

        try:
            if operation == "json_path":
                result = json_path(value, expression)
            elif operation == "to_string":
                result = to_string(value)
            elif operation == "to_int":
                result = to_int(value)
            elif operation == "format":
                result = format_template(value, expression, "input")
            else:
                raise NodeError(f"unknown operation: {operation}")
        except (ValueError, TypeError) as e:
            raise NodeError(f"transform failed: {e}") from e

        return {"output": result}


def json_path(value: Any, path: str) -> Any:
    """Follow a dot path (``data.items.0.id``) through dicts and lists.

    A string input is parsed as JSON first so response bodies can be
    traversed directly.
    """
    if not path:
        return value
    current = value
    if isinstance(current, str):
        try:
            current = json.loads(current)
        except ValueError as e:
            raise ValueError(f"cannot traverse path on non-JSON string: {e}") from e

    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                raise ValueError(f"path not found: {part}")
            current = current[part]
        elif isinstance(current, list):
            if not part.isascii() or not part.isdigit() or int(part) >= len(current):
                raise ValueError(f"invalid array index: {part}")
            current = current[int(part)]
        else:
            raise ValueError(f"cannot traverse path on type {type(current).__name__}")
    return current


def to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), sort_keys=True, default=str)
    return str(value)


def to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("cannot convert bool to int")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        if not _INT_RE.fullmatch(value):
            raise ValueError(f"invalid integer: {value!r}")
        return int(value)
    raise TypeError(f"cannot convert {type(value).__name__} to int")


def format_template(value: Any, template: str, placeholder: str) -> str:
    """Substitute ``{key}`` for each key of a dict value, else ``{placeholder}``."""
    if not template:
        return to_string(value)
    result = template
    if isinstance(value, dict):
        for key, item in value.items():
            result = result.replace(f"{{{key}}}", to_string(item))
    else:
        result = result.replace(f"{{{placeholder}}}", to_string(value))
    return result

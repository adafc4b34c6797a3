"""Conditional branch node."""
from typing import Any

from ..engine.errors import NodeError
from .base import BaseNode, DataType, NodeInput, NodeOutput
from .registry import NodeRegistry


@NodeRegistry.register("conditional")
class ConditionalNode(BaseNode):
    DISPLAY_NAME = "Conditional"
    DESCRIPTION = "Evaluate a condition and select one of two outputs"

    CONDITIONS = ("eq", "ne", "gt", "lt", "contains", "exists")

    @classmethod
    def INPUT_TYPES(cls):
        return [
            NodeInput("value", DataType.ANY, required=True, description="Value to evaluate"),
            NodeInput(
                "condition", DataType.STRING, required=True,
                description="Condition (eq, ne, gt, lt, contains, exists)",
            ),
            NodeInput("compare_value", DataType.ANY, description="Value to compare against"),
            NodeInput("true_output", DataType.ANY, description="Output when condition is true"),
            NodeInput("false_output", DataType.ANY, description="Output when condition is false"),
        ]

    @classmethod
    def RETURN_TYPES(cls):
        return [
            NodeOutput("result", DataType.BOOL, description="Condition result"),
            NodeOutput("output", DataType.ANY, description="Selected output based on condition"),
        ]

    def execute(self, context, inputs):
        condition = inputs.get("condition")
        if not isinstance(condition, str) or not condition:
            raise NodeError("condition is required")

        try:
            result = evaluate(inputs.get("value"), condition, inputs.get("compare_value"))
        except (ValueError, TypeError) as e:
            raise NodeError(f"condition evaluation failed: {e}") from e

        output = inputs.get("true_output") if result else inputs.get("false_output")
        return {"result": result, "output": output}


def evaluate(value: Any, condition: str, compare_value: Any) -> bool:
    if condition == "exists":
        return value is not None
    if condition == "eq":
        return _equal(value, compare_value)
    if condition == "ne":
        return not _equal(value, compare_value)
    if condition == "gt":
        return _to_float(value) > _to_float(compare_value)
    if condition == "lt":
        return _to_float(value) < _to_float(compare_value)
    if condition == "contains":
        if not isinstance(value, str):
            raise TypeError("contains operation requires string haystack")
        if not isinstance(compare_value, str):
            raise TypeError("contains operation requires string needle")
        return compare_value in value
    raise ValueError(f"unknown condition: {condition}")


def _equal(a: Any, b: Any) -> bool:
    """Structural equality in which booleans never equal numbers."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(_equal(x, y) for x, y in zip(a, b))
    return a == b


def _to_float(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            pass
    raise TypeError("cannot compare non-numeric values")

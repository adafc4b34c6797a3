"""Variable assignment node: describes where a value goes in a request."""
from ..engine.errors import NodeError
from .base import BaseNode, DataType, NodeInput, NodeOutput
from .registry import NodeRegistry
from .transform import format_template

TARGET_TYPES = ("header", "query", "path", "body")


@NodeRegistry.register("variable")
class VariableNode(BaseNode):
    DISPLAY_NAME = "Variable Assignment"
    DESCRIPTION = "Assign a value to a request header, query parameter, path segment or body"

    @classmethod
    def INPUT_TYPES(cls):
        return [
            NodeInput("source", DataType.ANY, required=True, description="Source value"),
            NodeInput(
                "target_type", DataType.STRING, required=True,
                description="Target type (header, query, path, body)",
            ),
            NodeInput("target_key", DataType.STRING, required=True,
                      description="Target key or parameter name"),
            NodeInput("format", DataType.STRING, description="Format template (optional)"),
        ]

    @classmethod
    def RETURN_TYPES(cls):
        return [NodeOutput("assignment", DataType.MAP, description="Variable assignment for request")]

    def execute(self, context, inputs):
        source = inputs.get("source")

        target_type = inputs.get("target_type")
        if not isinstance(target_type, str) or not target_type:
            raise NodeError("target_type is required")
        target_key = inputs.get("target_key")
        if not isinstance(target_key, str) or not target_key:
            raise NodeError("target_key is required")

        if target_type not in TARGET_TYPES:
            raise NodeError(
                f"invalid target_type: {target_type}. "
                f"Must be one of: {', '.join(TARGET_TYPES)}"
            )

        value = source
        template = inputs.get("format")
        if isinstance(template, str) and template:
            value = format_template(source, template, "value")

        return {"assignment": {"type": target_type, "key": target_key, "value": value}}

"""Environment variable loader node."""
import os
from pathlib import Path

from dotenv import dotenv_values

from ..engine.errors import NodeError
from .base import BaseNode, DataType, NodeInput, NodeOutput
from .registry import NodeRegistry


@NodeRegistry.register("env")
class EnvNode(BaseNode):
    DISPLAY_NAME = "Environment Variables"
    DESCRIPTION = "Load OS environment variables and/or a .env file into a map"

    @classmethod
    def INPUT_TYPES(cls):
        return [
            NodeInput("load_os", DataType.BOOL, description="Load OS environment variables", value=True),
            NodeInput("env_file", DataType.STRING, description="Path to .env file"),
        ]

    @classmethod
    def RETURN_TYPES(cls):
        return [NodeOutput("variables", DataType.MAP, description="Environment variables")]

    def execute(self, context, inputs):
        variables: dict[str, str] = {}

        if inputs.get("load_os") is True:
            variables.update(os.environ)

        env_file = inputs.get("env_file")
        if isinstance(env_file, str) and env_file:
            variables.update(_load_env_file(env_file))

        return {"variables": variables}


def _load_env_file(filename: str) -> dict[str, str]:
    path = Path(filename).expanduser().resolve()
    if not path.is_file():
        raise NodeError(f"env file not found: {path}")
    # Keys declared without a value come back as None
    return {k: v for k, v in dotenv_values(path).items() if v is not None}

"""HTTP request node."""
import time

import requests

from ..config import settings
from ..engine.errors import NodeError
from .base import BaseNode, DataType, NodeInput, NodeOutput
from .registry import NodeRegistry


@NodeRegistry.register("request")
class RequestNode(BaseNode):
    DISPLAY_NAME = "HTTP Request"
    DESCRIPTION = "Send an HTTP request and expose the response"

    @classmethod
    def INPUT_TYPES(cls):
        return [
            NodeInput("url", DataType.STRING, required=True, description="Request URL"),
            NodeInput("method", DataType.STRING, description="HTTP method", value="GET"),
            NodeInput("headers", DataType.MAP, description="Request headers"),
            NodeInput("body", DataType.STRING, description="Request body"),
            NodeInput("timeout", DataType.INT, description="Timeout in seconds", value=30),
        ]

    @classmethod
    def RETURN_TYPES(cls):
        return [
            NodeOutput("status_code", DataType.INT, description="HTTP status code"),
            NodeOutput("headers", DataType.MAP, description="Response headers"),
            NodeOutput("body", DataType.STRING, description="Response body"),
            NodeOutput("duration", DataType.DURATION, description="Request duration in seconds"),
        ]

    def execute(self, context, inputs):
        url = inputs.get("url")
        if not isinstance(url, str) or not url:
            raise NodeError("url is required")

        method = inputs.get("method")
        method = method.upper() if isinstance(method, str) and method else "GET"

        # Only string-valued headers are sent
        headers: dict[str, str] = {}
        if isinstance(inputs.get("headers"), dict):
            headers = {str(k): v for k, v in inputs["headers"].items() if isinstance(v, str)}

        body = inputs.get("body")
        data = body.encode("utf-8") if isinstance(body, str) and body else None

        timeout = _request_timeout(inputs.get("timeout"), context)

        start = time.perf_counter()
        try:
            resp = requests.request(method, url, headers=headers, data=data, timeout=timeout)
        except requests.RequestException as e:
            raise NodeError(f"request failed: {e}") from e
        duration = time.perf_counter() - start

        return {
            "status_code": resp.status_code,
            "headers": dict(resp.headers),
            "body": resp.text,
            "duration": duration,
        }


def _request_timeout(value, context) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        timeout = float(value)
    else:
        timeout = float(settings.default_request_timeout)
    remaining = context.remaining() if context is not None else None
    if remaining is not None:
        if remaining <= 0:
            raise NodeError("run deadline exceeded before request was sent")
        timeout = min(timeout, remaining)
    return timeout

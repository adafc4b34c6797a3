"""WebSocket fan-out of per-node run progress events."""
import asyncio
import logging
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class RunEventManager:
    """Tracks WebSocket subscribers per session and pushes run events to them."""

    def __init__(self):
        self._subscribers: dict[str, list[WebSocket]] = {}

    async def connect(self, session_id: str, websocket: WebSocket):
        # Registered before the handshake completes so no event published
        # after the client sees the accept can be missed
        self._subscribers.setdefault(session_id, []).append(websocket)
        await websocket.accept()

    def disconnect(self, session_id: str, websocket: WebSocket):
        remaining = [ws for ws in self._subscribers.get(session_id, []) if ws is not websocket]
        if remaining:
            self._subscribers[session_id] = remaining
        else:
            self._subscribers.pop(session_id, None)

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, []))

    async def publish(self, session_id: str, event: dict[str, Any]):
        for ws in list(self._subscribers.get(session_id, [])):
            if ws.client_state != WebSocketState.CONNECTED:
                self.disconnect(session_id, ws)
                continue
            try:
                await ws.send_json(event)
            except (RuntimeError, ConnectionError) as e:
                logger.debug("Dropping subscriber of session %s: %s", session_id, e)
                self.disconnect(session_id, ws)

    def make_progress_callback(self, session_id: str, loop: asyncio.AbstractEventLoop):
        """Create a sync callback that publishes executor events from a worker thread."""
        def callback(event: dict[str, Any]):
            asyncio.run_coroutine_threadsafe(
                self.publish(session_id, {**event, "session_id": session_id}),
                loop,
            )
        return callback


manager = RunEventManager()

"""Run session registry: tracks in-flight runs and their execution contexts."""
import threading

from .control import ExecutionContext


class RunSession:
    def __init__(self, session_id: str, context: ExecutionContext):
        self.session_id = session_id
        self.context = context


_sessions: dict[str, RunSession] = {}
_lock = threading.Lock()


def create_session(session_id: str, context: ExecutionContext) -> RunSession | None:
    """Register a run; returns None if ``session_id`` already has one in flight."""
    with _lock:
        if session_id in _sessions:
            return None
        session = RunSession(session_id, context)
        _sessions[session_id] = session
        return session


def get_session(session_id: str) -> RunSession | None:
    with _lock:
        return _sessions.get(session_id)


def remove_session(session_id: str) -> None:
    with _lock:
        _sessions.pop(session_id, None)

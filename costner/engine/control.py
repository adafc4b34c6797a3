"""Thread-safe run control: cancel, pause/resume and an optional deadline."""
import threading
import time
from enum import Enum


class RunState(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class ExecutionContext:
    """Signal passed to every node's ``execute`` and checked between nodes.

    ``timeout`` (seconds) sets a deadline measured from construction; once
    it has passed the context reads as cancelled.
    """

    def __init__(self, timeout: float | None = None):
        self._state = RunState.RUNNING
        self._lock = threading.Lock()
        self._resume_event = threading.Event()
        self._resume_event.set()  # starts unblocked (running)
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @property
    def state(self) -> RunState:
        with self._lock:
            if self._state != RunState.CANCELLED and self._expired():
                self._state = RunState.CANCELLED
                self._resume_event.set()
            return self._state

    @property
    def cancelled(self) -> bool:
        return self.state == RunState.CANCELLED

    def _expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def pause(self):
        with self._lock:
            if self._state == RunState.RUNNING:
                self._state = RunState.PAUSED
                self._resume_event.clear()

    def resume(self):
        with self._lock:
            if self._state == RunState.PAUSED:
                self._state = RunState.RUNNING
                self._resume_event.set()

    def cancel(self):
        with self._lock:
            self._state = RunState.CANCELLED
            self._resume_event.set()  # unblock if paused so the run can exit

    def check(self) -> RunState:
        """Call before starting each node. Blocks while paused, returns state."""
        # A deadline that passes while paused ends the wait as cancelled.
        self._resume_event.wait(timeout=self.remaining())
        return self.state

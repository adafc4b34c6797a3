"""Execution engine: run graph nodes in topological order with fail-fast semantics."""
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from .control import ExecutionContext, RunState
from .errors import (
    ExecutionCancelled,
    ExecutionError,
    InputResolutionError,
    NodeNotFoundError,
)
from .graph import Graph

if TYPE_CHECKING:
    from ..nodes.base import BaseNode

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class ExecutionResult:
    node_id: str
    success: bool
    timestamp: datetime
    duration: float  # seconds
    error: str | None = None
    outputs: dict[str, Any] | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_id": self.node_id,
            "success": self.success,
            "error": self.error,
            "outputs": self.outputs,
            "duration": self.duration,
            "timestamp": self.timestamp.isoformat(),
        }


class Executor:
    """Runs a graph one node at a time.

    Holds a run-scoped cache of node outputs (node id -> output map) used to
    resolve downstream inputs. The cache is rebuilt by every full-graph run
    and shared by targeted runs. One run at a time: every entry point holds
    the executor lock for its whole duration.
    """

    def __init__(self, graph: Graph, progress_callback: ProgressCallback | None = None):
        self.graph = graph
        self.progress_callback = progress_callback
        self._results: dict[str, dict[str, Any]] = {}
        self._failed: set[str] = set()
        self._lock = threading.Lock()

    def execute_graph(self, context: ExecutionContext | None = None) -> list[ExecutionResult]:
        """Execute all nodes in topological order.

        Raises ExecutionError at the first failing node, carrying the results
        produced so far (the failing node's included).
        """
        context = context or ExecutionContext()
        with self._lock:
            self._reset()
            order = self.graph.get_topological_order()
            logger.info("Executing graph: %d nodes", len(order))
            results = self._run_sequence(order, context)
            logger.info("Graph execution finished: %d nodes succeeded", len(results))
            return results

    def execute_node(self, node_id: str, context: ExecutionContext | None = None) -> ExecutionResult:
        """Execute a single node against the current output cache.

        Dependencies are not executed; connections from nodes with no cached
        output resolve to absent.
        """
        context = context or ExecutionContext()
        with self._lock:
            node = self.graph.get_node(node_id)
            if node is None:
                raise NodeNotFoundError(node_id)
            if context.check() == RunState.CANCELLED:
                raise ExecutionCancelled([], next_node=node_id)
            result, err = self._execute_one(node, context)
            if err is not None:
                raise ExecutionError(node_id, [result], err) from err
            return result

    def execute_with_dependencies(
        self, node_id: str, context: ExecutionContext | None = None,
    ) -> list[ExecutionResult]:
        """Execute ``node_id`` after its transitive dependencies, in graph order."""
        context = context or ExecutionContext()
        with self._lock:
            wanted = self.graph.get_upstream(node_id) | {node_id}
            self._reset()
            order = [nid for nid in self.graph.get_topological_order() if nid in wanted]
            logger.info("Executing %s with %d dependencies", node_id, len(order) - 1)
            return self._run_sequence(order, context)

    def get_node_result(self, node_id: str) -> dict[str, Any] | None:
        with self._lock:
            return self._results.get(node_id)

    def clear_results(self) -> None:
        with self._lock:
            self._reset()

    # -- internals (caller holds self._lock) --------------------------------

    def _reset(self) -> None:
        self._results = {}
        self._failed = set()

    def _run_sequence(self, order: list[str], context: ExecutionContext) -> list[ExecutionResult]:
        results: list[ExecutionResult] = []
        for node_id in order:
            if context.check() == RunState.CANCELLED:
                logger.warning("Execution cancelled before node %s", node_id)
                raise ExecutionCancelled(results, next_node=node_id)

            node = self.graph.get_node(node_id)
            if node is None:
                raise NodeNotFoundError(node_id, "node not found during execution")

            result, err = self._execute_one(node, context)
            results.append(result)
            if err is not None:
                raise ExecutionError(node_id, results, err) from err
        return results

    def _execute_one(
        self, node: "BaseNode", context: ExecutionContext,
    ) -> tuple[ExecutionResult, Exception | None]:
        timestamp = datetime.now(timezone.utc)
        start = time.perf_counter()
        try:
            inputs = self._prepare_inputs(node)
            outputs = node.execute(context, inputs)
        except Exception as e:
            duration = time.perf_counter() - start
            self._results.pop(node.id, None)
            self._failed.add(node.id)
            logger.warning("Node %s (%s) failed: %s", node.id, node.node_type, e)
            self._notify("node_failed", node, duration)
            result = ExecutionResult(
                node_id=node.id, success=False, timestamp=timestamp,
                duration=duration, error=str(e),
            )
            return result, e

        duration = time.perf_counter() - start
        outputs = dict(outputs or {})
        self._results[node.id] = outputs
        self._failed.discard(node.id)
        node.set_output_values(outputs)
        logger.debug("Node %s (%s) completed in %.3fs", node.id, node.node_type, duration)
        self._notify("node_complete", node, duration)
        result = ExecutionResult(
            node_id=node.id, success=True, timestamp=timestamp,
            duration=duration, outputs=dict(outputs),
        )
        return result, None

    def _prepare_inputs(self, node: "BaseNode") -> dict[str, Any]:
        """Resolve a node's effective inputs.

        Declared defaults first, then values from upstream outputs (which
        always win), then a final pass enforcing required inputs.
        """
        inputs: dict[str, Any] = {}
        declared = node.inputs

        for port in declared:
            if port.value is not None:
                inputs[port.name] = port.value

        for conn in self.graph.get_incoming_connections(node.id):
            port = node.get_input(conn.target_port)
            required = port is not None and port.required
            source_outputs = self._results.get(conn.source_node)
            if source_outputs is None:
                if required:
                    reason = "upstream_failed" if conn.source_node in self._failed else "not_executed"
                    raise InputResolutionError(
                        f"required input {conn.target_port} not available from {conn.source_node}",
                        node_id=node.id, port=conn.target_port,
                        source=conn.source_node, reason=reason,
                    )
                continue
            if conn.source_port not in source_outputs:
                if required:
                    raise InputResolutionError(
                        f"required output {conn.source_port} not found in {conn.source_node}",
                        node_id=node.id, port=conn.target_port,
                        source=conn.source_node, reason="missing_output",
                    )
                continue
            inputs[conn.target_port] = source_outputs[conn.source_port]

        for port in declared:
            if port.required and port.name not in inputs:
                raise InputResolutionError(
                    f"required input {port.name} not provided for node {node.id}",
                    node_id=node.id, port=port.name,
                )
        return inputs

    def _notify(self, event_type: str, node: "BaseNode", duration: float) -> None:
        if self.progress_callback:
            self.progress_callback({
                "type": event_type,
                "node_id": node.id,
                "node_type": node.node_type,
                "duration": duration,
            })

"""Graph data structures for the execution engine.

The graph owns its nodes and the port-to-port connections between them and
keeps two invariants at all times: every connection references existing
nodes and ports, and the node-level digraph is acyclic. Both are enforced
when a connection is added; a rejected connection never mutates the graph.
"""
import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import (
    ConnectionNotFoundError,
    CyclicGraphError,
    InvalidConnectionError,
    NodeNotFoundError,
)
from .locks import ReadWriteLock

if TYPE_CHECKING:
    from ..nodes.base import BaseNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Connection:
    id: str
    source_node: str
    source_port: str   # output name on the source node
    target_node: str
    target_port: str   # input name on the target node


class Graph:
    """Thread-safe node/connection store. Mutations are exclusive, queries shared."""

    def __init__(self):
        self._nodes: dict[str, "BaseNode"] = {}
        self._connections: list[Connection] = []
        self._lock = ReadWriteLock()

    # -- mutation -----------------------------------------------------------

    def add_node(self, node: "BaseNode") -> None:
        """Insert or replace a node by id (last write wins)."""
        with self._lock.write_locked():
            self._nodes[node.id] = node
        logger.debug("Added node %s (%s)", node.id, node.node_type)

    def remove_node(self, node_id: str) -> None:
        """Remove a node and every connection touching it."""
        with self._lock.write_locked():
            if node_id not in self._nodes:
                raise NodeNotFoundError(node_id)
            self._connections = [
                c for c in self._connections
                if c.source_node != node_id and c.target_node != node_id
            ]
            del self._nodes[node_id]
        logger.debug("Removed node %s", node_id)

    def add_connection(self, conn: Connection) -> None:
        with self._lock.write_locked():
            self._validate_connection(conn)
            if self._would_create_cycle(conn):
                raise CyclicGraphError(
                    f"cyclic dependency detected: connection {conn.id} "
                    f"({conn.source_node} -> {conn.target_node})"
                )
            self._connections.append(conn)
        logger.debug(
            "Connected %s.%s -> %s.%s (%s)",
            conn.source_node, conn.source_port,
            conn.target_node, conn.target_port, conn.id,
        )

    def remove_connection(self, connection_id: str) -> None:
        with self._lock.write_locked():
            for i, conn in enumerate(self._connections):
                if conn.id == connection_id:
                    del self._connections[i]
                    return
        raise ConnectionNotFoundError(connection_id)

    # -- queries ------------------------------------------------------------

    def get_node(self, node_id: str) -> "BaseNode | None":
        with self._lock.read_locked():
            return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        with self._lock.read_locked():
            return node_id in self._nodes

    def get_all_nodes(self) -> dict[str, "BaseNode"]:
        with self._lock.read_locked():
            return dict(self._nodes)

    def get_connections(self) -> list[Connection]:
        with self._lock.read_locked():
            return list(self._connections)

    def get_incoming_connections(self, node_id: str) -> list[Connection]:
        with self._lock.read_locked():
            return [c for c in self._connections if c.target_node == node_id]

    def get_dependencies(self, node_id: str) -> list[str]:
        """Source node ids of every connection targeting ``node_id`` (not deduplicated)."""
        with self._lock.read_locked():
            return [c.source_node for c in self._connections if c.target_node == node_id]

    def get_dependents(self, node_id: str) -> list[str]:
        """Target node ids of every connection sourced from ``node_id`` (not deduplicated)."""
        with self._lock.read_locked():
            return [c.target_node for c in self._connections if c.source_node == node_id]

    def get_upstream(self, node_id: str) -> set[str]:
        """Transitive dependencies of ``node_id``, excluding the node itself."""
        with self._lock.read_locked():
            if node_id not in self._nodes:
                raise NodeNotFoundError(node_id)
            preds: dict[str, list[str]] = {}
            for c in self._connections:
                preds.setdefault(c.target_node, []).append(c.source_node)
        seen: set[str] = set()
        stack = list(preds.get(node_id, []))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(preds.get(current, []))
        return seen

    def get_topological_order(self) -> list[str]:
        """Kahn's algorithm returning node IDs in execution order.

        Ready nodes are released in ascending id order, both at seeding time
        and whenever a batch of successors becomes ready, so the order is
        reproducible across calls. Acyclicity is re-checked here rather than
        trusted from insertion time.
        """
        with self._lock.read_locked():
            in_degree: dict[str, int] = {nid: 0 for nid in self._nodes}
            # One adjacency entry per connection, not per unique successor
            adj: dict[str, list[str]] = {nid: [] for nid in self._nodes}
            for conn in self._connections:
                adj[conn.source_node].append(conn.target_node)
                in_degree[conn.target_node] += 1
            node_count = len(self._nodes)

        queue = deque(sorted(nid for nid, deg in in_degree.items() if deg == 0))
        order: list[str] = []
        while queue:
            node_id = queue.popleft()
            order.append(node_id)
            ready: list[str] = []
            for succ in adj[node_id]:
                in_degree[succ] -= 1
                if in_degree[succ] == 0:
                    ready.append(succ)
            queue.extend(sorted(ready))

        if len(order) != node_count:
            raise CyclicGraphError()
        return order

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        with self._lock.read_locked():
            return node_id in self._nodes

    # -- internals (caller holds the write lock) ----------------------------

    def _validate_connection(self, conn: Connection) -> None:
        source = self._nodes.get(conn.source_node)
        if source is None:
            raise InvalidConnectionError("source_node", conn.source_node)
        target = self._nodes.get(conn.target_node)
        if target is None:
            raise InvalidConnectionError("target_node", conn.target_node)
        if not source.has_output(conn.source_port):
            raise InvalidConnectionError(
                "source_port", f"{conn.source_node}.{conn.source_port}"
            )
        if target.get_input(conn.target_port) is None:
            raise InvalidConnectionError(
                "target_port", f"{conn.target_node}.{conn.target_port}"
            )

    def _would_create_cycle(self, new_conn: Connection) -> bool:
        """DFS over every node with the new edge simulated on the adjacency."""
        adj: dict[str, list[str]] = {}
        for conn in self._connections:
            adj.setdefault(conn.source_node, []).append(conn.target_node)
        adj.setdefault(new_conn.source_node, []).append(new_conn.target_node)

        visited: set[str] = set()
        on_path: set[str] = set()
        for root in self._nodes:
            if root in visited:
                continue
            # Iterative DFS; each frame is (node, iterator over its successors)
            visited.add(root)
            on_path.add(root)
            stack = [(root, iter(adj.get(root, ())))]
            while stack:
                node_id, successors = stack[-1]
                advanced = False
                for succ in successors:
                    if succ in on_path:
                        return True
                    if succ not in visited:
                        visited.add(succ)
                        on_path.add(succ)
                        stack.append((succ, iter(adj.get(succ, ()))))
                        advanced = True
                        break
                if not advanced:
                    on_path.discard(node_id)
                    stack.pop()
        return False

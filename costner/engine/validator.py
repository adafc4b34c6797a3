"""Project validation: node types, connection endpoints, cycles, required inputs."""
from ..models.schemas import Project
from ..nodes.registry import NodeRegistry
from .errors import CostnerError, UnknownNodeTypeError
from .project import project_to_graph


def validate_project(project: Project) -> list[str]:
    """Validate a project, returning a list of error messages (empty = valid)."""
    errors: list[str] = []
    errors.extend(_check_node_types(project))
    errors.extend(_check_duplicate_ids(project))
    errors.extend(_check_connections(project))
    if not errors:
        errors.extend(_check_cycles(project))
    errors.extend(_check_required_inputs(project))
    return errors


def _check_node_types(project: Project) -> list[str]:
    errors: list[str] = []
    for node in project.nodes:
        try:
            NodeRegistry.get(node.type)
        except UnknownNodeTypeError as e:
            errors.append(f"Node '{node.id}': {e}")
    return errors


def _check_duplicate_ids(project: Project) -> list[str]:
    errors: list[str] = []
    seen: set[str] = set()
    for node in project.nodes:
        if node.id in seen:
            errors.append(f"Duplicate node id '{node.id}'")
        seen.add(node.id)
    seen.clear()
    for conn in project.connections:
        if conn.id in seen:
            errors.append(f"Duplicate connection id '{conn.id}'")
        seen.add(conn.id)
    return errors


def _check_connections(project: Project) -> list[str]:
    errors: list[str] = []
    types = {n.id: n.type for n in project.nodes}
    for conn in project.connections:
        src_type = types.get(conn.source_node)
        tgt_type = types.get(conn.target_node)
        if src_type is None or tgt_type is None:
            missing = conn.source_node if src_type is None else conn.target_node
            errors.append(f"Connection {conn.id} references missing node '{missing}'")
            continue
        try:
            src_cls = NodeRegistry.get(src_type)
            tgt_cls = NodeRegistry.get(tgt_type)
        except UnknownNodeTypeError:
            continue  # already reported by _check_node_types

        if conn.source_port not in {o.name for o in src_cls.RETURN_TYPES()}:
            errors.append(
                f"Connection {conn.id}: source port '{conn.source_port}' "
                f"not found on {src_type}"
            )
        if conn.target_port not in {i.name for i in tgt_cls.INPUT_TYPES()}:
            errors.append(
                f"Connection {conn.id}: target port '{conn.target_port}' "
                f"not found on {tgt_type}"
            )
    return errors


def _check_cycles(project: Project) -> list[str]:
    """Build the graph and ask it for an execution order."""
    try:
        project_to_graph(project).get_topological_order()
    except CostnerError as e:
        return [f"Graph is not executable: {e}"]
    return []


def _check_required_inputs(project: Project) -> list[str]:
    errors: list[str] = []
    connected = {(c.target_node, c.target_port) for c in project.connections}
    for node in project.nodes:
        try:
            cls = NodeRegistry.get(node.type)
        except UnknownNodeTypeError:
            continue

        provided = {p.name for p in node.inputs if p.value is not None}
        for port in cls.INPUT_TYPES():
            if not port.required or port.value is not None:
                continue
            if port.name in provided or (node.id, port.name) in connected:
                continue
            errors.append(
                f"Node '{node.id}' ({node.type}): "
                f"required input '{port.name}' not connected"
            )
    return errors

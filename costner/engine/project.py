"""Project file persistence and project <-> graph conversion."""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from ..models.schemas import ConnectionSchema, NodeData, PortSchema, PositionSchema, Project
from ..nodes.base import port_to_dict
from ..nodes.registry import NodeRegistry
from .errors import CostnerError, ProjectError
from .graph import Connection, Graph

logger = logging.getLogger(__name__)


def new_project(name: str, description: str = "") -> Project:
    return Project(name=name, description=description)


def load_project(path: str | Path) -> Project:
    path = Path(path)
    try:
        text = path.read_text()
    except (OSError, UnicodeDecodeError) as e:
        raise ProjectError(f"failed to read project file {path}: {e}") from e
    try:
        project = Project.model_validate_json(text)
    except ValidationError as e:
        raise ProjectError(f"failed to parse project file {path}: {e}") from e
    logger.debug("Loaded project %r from %s", project.name, path)
    return project


def save_project(project: Project, path: str | Path) -> Path:
    path = Path(path)
    project.updated_at = datetime.now(timezone.utc)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(project.model_dump_json(indent=2))
    except OSError as e:
        raise ProjectError(f"failed to write project file {path}: {e}") from e
    logger.debug("Saved project %r to %s", project.name, path)
    return path


def project_to_graph(project: Project) -> Graph:
    """Instantiate every node through the registry and wire the connections."""
    graph = Graph()
    for data in project.nodes:
        try:
            graph.add_node(NodeRegistry.create_from_data(data))
        except CostnerError as e:
            raise ProjectError(f"failed to create node {data.id}: {e}") from e

    for conn in project.connections:
        try:
            graph.add_connection(Connection(**conn.model_dump()))
        except CostnerError as e:
            raise ProjectError(f"failed to add connection {conn.id}: {e}") from e
    return graph


def graph_to_project(graph: Graph, name: str, description: str = "") -> Project:
    nodes = []
    for node_id, node in sorted(graph.get_all_nodes().items()):
        nodes.append(NodeData(
            id=node_id,
            type=node.node_type,
            name=node.name,
            position=PositionSchema(x=node.position.x, y=node.position.y),
            config=_jsonable(node.config),
            inputs=[PortSchema(**_jsonable(port_to_dict(p))) for p in node.inputs],
            outputs=[PortSchema(**_jsonable(port_to_dict(p))) for p in node.outputs],
        ))
    connections = [
        ConnectionSchema(
            id=c.id, source_node=c.source_node, source_port=c.source_port,
            target_node=c.target_node, target_port=c.target_port,
        )
        for c in graph.get_connections()
    ]
    return Project(name=name, description=description, nodes=nodes, connections=connections)


def _jsonable(data: dict) -> dict:
    # Port values may hold anything a node produced
    return json.loads(json.dumps(data, default=str))

"""Project runner: build a graph from a project and execute it end to end."""
import logging
from dataclasses import dataclass, field

from ..models.schemas import Project
from .control import ExecutionContext
from .errors import ExecutionCancelled, ExecutionError
from .executor import ExecutionResult, Executor, ProgressCallback
from .project import project_to_graph

logger = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    status: str  # "success" | "failed" | "cancelled"
    results: list[ExecutionResult] = field(default_factory=list)
    error: str | None = None
    failed_node: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)


def run_project(
    project: Project,
    node_id: str | None = None,
    context: ExecutionContext | None = None,
    progress_callback: ProgressCallback | None = None,
) -> RunOutcome:
    """Execute a whole project, or one node plus its dependencies.

    Graph construction errors (ProjectError, CyclicGraphError) propagate;
    execution failures are folded into the returned outcome together with
    the partial results.
    """
    graph = project_to_graph(project)
    executor = Executor(graph, progress_callback=progress_callback)
    logger.info("Running project %r (%d nodes)", project.name, len(graph))
    try:
        if node_id is not None:
            results = executor.execute_with_dependencies(node_id, context)
        else:
            results = executor.execute_graph(context)
    except ExecutionError as e:
        return RunOutcome("failed", e.results, str(e), e.node_id)
    except ExecutionCancelled as e:
        return RunOutcome("cancelled", e.results, str(e), None)
    return RunOutcome("success", results)

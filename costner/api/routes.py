"""REST API routes."""
import asyncio
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor

from fastapi import APIRouter, HTTPException

from ..config import settings
from ..engine.control import ExecutionContext
from ..engine.errors import CostnerError, NodeNotFoundError, ProjectError
from ..engine.project import load_project, project_to_graph, save_project
from ..engine.runner import RunOutcome, run_project
from ..engine.session import create_session, get_session, remove_session
from ..engine.validator import validate_project
from ..models.schemas import (
    ExecutionResultSchema, NodeDefinitionResponse, Project,
    RunRequest, RunResponse, SavedProject, ValidateResponse,
)
from ..nodes.base import port_to_dict
from ..nodes.registry import NodeRegistry
from .websocket import manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")
executor_pool = ThreadPoolExecutor(max_workers=4)


def _to_response(outcome: RunOutcome) -> RunResponse:
    return RunResponse(
        status=outcome.status,
        results=[ExecutionResultSchema(**r.to_dict()) for r in outcome.results],
        error=outcome.error,
        failed_node=outcome.failed_node,
    )


def _project_path(project_id: str):
    if not project_id or "/" in project_id or "\\" in project_id or project_id.startswith("."):
        raise HTTPException(status_code=400, detail="Invalid project id")
    return settings.projects_dir / f"{project_id}{settings.project_extension}"


@router.get("/nodes", response_model=dict[str, NodeDefinitionResponse])
async def list_nodes():
    """Return all registered node definitions."""
    result = {}
    for name, defn in NodeRegistry.all_definitions().items():
        result[name] = NodeDefinitionResponse(
            node_type=defn.node_type,
            display_name=defn.display_name,
            description=defn.description,
            inputs=[port_to_dict(p) for p in defn.inputs],
            outputs=[port_to_dict(p) for p in defn.outputs],
        )
    return result


@router.post("/validate", response_model=ValidateResponse)
async def validate(project: Project):
    errors = validate_project(project)
    if errors:
        return ValidateResponse(valid=False, errors=errors)
    order = project_to_graph(project).get_topological_order()
    return ValidateResponse(valid=True, order=order)


@router.post("/run", response_model=RunResponse)
async def run(request: RunRequest):
    """Execute a project (or one node plus its dependencies) in a worker thread.

    Per-node progress is published to ``/ws/run/{session_id}`` when a
    session id is given, and the run can then be paused, resumed or
    cancelled through ``/api/run/{session_id}/...`` while it is in flight.
    """
    loop = asyncio.get_running_loop()
    progress_cb = None
    timeout = request.timeout if request.timeout is not None else settings.run_timeout
    context = ExecutionContext(timeout=timeout)
    if request.session_id:
        if create_session(request.session_id, context) is None:
            raise HTTPException(status_code=409, detail="Session already has a run in progress")
        progress_cb = manager.make_progress_callback(request.session_id, loop)

    def job():
        return run_project(
            request.project, node_id=request.node_id,
            context=context, progress_callback=progress_cb,
        )

    try:
        outcome = await loop.run_in_executor(executor_pool, job)
    except NodeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except CostnerError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    finally:
        if request.session_id:
            remove_session(request.session_id)

    if request.session_id:
        await manager.publish(request.session_id, {
            "type": "run_complete", "session_id": request.session_id,
            "status": outcome.status,
        })
    return _to_response(outcome)


def _running_context(session_id: str) -> ExecutionContext:
    session = get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Run not found or already completed")
    return session.context


@router.post("/run/{session_id}/pause")
async def pause_run(session_id: str):
    _running_context(session_id).pause()
    await manager.publish(session_id, {"type": "run_paused", "session_id": session_id})
    return {"status": "paused"}


@router.post("/run/{session_id}/resume")
async def resume_run(session_id: str):
    _running_context(session_id).resume()
    await manager.publish(session_id, {"type": "run_resumed", "session_id": session_id})
    return {"status": "resumed"}


@router.post("/run/{session_id}/cancel")
async def cancel_run(session_id: str):
    _running_context(session_id).cancel()
    await manager.publish(session_id, {"type": "run_cancelled", "session_id": session_id})
    return {"status": "cancelled"}


@router.post("/projects")
async def create_project(saved: SavedProject):
    """Save a project to disk."""
    if not saved.id:
        saved.id = str(uuid.uuid4())
    try:
        save_project(saved.project, _project_path(saved.id))
    except ProjectError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    return {"id": saved.id}


@router.get("/projects")
async def list_projects():
    """Summaries of every readable project; unreadable files are skipped."""
    result = {}
    for path in sorted(settings.projects_dir.glob(f"*{settings.project_extension}")):
        try:
            project = load_project(path)
        except ProjectError as e:
            logger.warning("Skipping project file %s: %s", path, e)
            continue
        pid = path.stem
        result[pid] = {
            "id": pid,
            "name": project.name,
            "description": project.description,
        }
    return result


@router.get("/projects/{project_id}", response_model=Project)
async def get_project(project_id: str):
    path = _project_path(project_id)
    if not path.exists():
        raise HTTPException(status_code=404, detail="Project not found")
    try:
        return load_project(path)
    except CostnerError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@router.delete("/projects/{project_id}")
async def delete_project(project_id: str):
    path = _project_path(project_id)
    if not path.exists():
        raise HTTPException(status_code=404, detail="Project not found")
    path.unlink()
    return {"status": "deleted"}

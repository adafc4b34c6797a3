"""Pydantic schemas for the project file format and API request/response models."""
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PositionSchema(BaseModel):
    x: float = 0.0
    y: float = 0.0


class PortSchema(BaseModel):
    name: str
    type: str = "any"
    required: bool = False
    description: str = ""
    value: Any = None


class NodeData(BaseModel):
    id: str
    type: str
    name: str = ""
    position: PositionSchema = Field(default_factory=PositionSchema)
    config: dict[str, Any] = {}
    inputs: list[PortSchema] = []
    outputs: list[PortSchema] = []


class ConnectionSchema(BaseModel):
    id: str
    source_node: str
    source_port: str
    target_node: str
    target_port: str


class Project(BaseModel):
    name: str
    version: str = "1.0.0"
    description: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    nodes: list[NodeData] = []
    connections: list[ConnectionSchema] = []
    variables: dict[str, Any] = {}


class ExecutionResultSchema(BaseModel):
    node_id: str
    success: bool
    error: str | None = None
    outputs: dict[str, Any] | None = None
    duration: float
    timestamp: datetime


class RunRequest(BaseModel):
    project: Project
    node_id: str | None = None  # run only this node and its dependencies
    session_id: str | None = None
    timeout: float | None = None


class RunResponse(BaseModel):
    status: str  # "success" | "failed" | "cancelled"
    results: list[ExecutionResultSchema] = []
    error: str | None = None
    failed_node: str | None = None


class ValidateResponse(BaseModel):
    valid: bool
    errors: list[str] = []
    order: list[str] = []


class SavedProject(BaseModel):
    id: str = ""
    project: Project


class NodeDefinitionResponse(BaseModel):
    node_type: str
    display_name: str
    description: str
    inputs: list[dict[str, Any]]
    outputs: list[dict[str, Any]]

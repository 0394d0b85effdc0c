"""Request and response bodies of the HTTP API (camelCase on the wire)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue
from pydantic.alias_generators import to_camel

from ..contracts import WorkflowKind, WorkflowState, WorkflowStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StartWorkflowRequest(CamelModel):
    requirements: Dict[str, JsonValue] = Field(default_factory=dict)
    kind: WorkflowKind = WorkflowKind.STORY


class StartWorkflowResponse(CamelModel):
    workflow_id: str
    current_step: str
    status: WorkflowStatus


class AdvanceWorkflowRequest(CamelModel):
    """``context.requirements`` holds requirement additions; every other key is step input."""

    step: str
    context: Dict[str, JsonValue] = Field(default_factory=dict)

    def split(self) -> tuple[Dict[str, JsonValue], Dict[str, JsonValue]]:
        data = dict(self.context)
        requirements = data.pop("requirements", None)
        return data, requirements if isinstance(requirements, dict) else {}


class CompleteWorkflowRequest(CamelModel):
    result: JsonValue = None


class FailWorkflowRequest(CamelModel):
    error: str
    diagnostic: Optional[str] = None


class RewindWorkflowRequest(CamelModel):
    step: str


class SyncWorkflowRequest(CamelModel):
    project_key: str


class AddDocumentRequest(CamelModel):
    """Plain-text project document; file upload parsing happens client side."""

    content: str = Field(min_length=1)
    document_id: Optional[str] = None
    title: Optional[str] = None


class WorkflowResponse(CamelModel):
    workflow_id: str
    kind: WorkflowKind
    project_id: str
    user_id: str
    current_step: str
    status: WorkflowStatus
    context: Dict[str, Any]
    metadata: Dict[str, Any]
    version: int
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_state(cls, state: WorkflowState) -> "WorkflowResponse":
        return cls(
            workflow_id=state.id,
            kind=state.kind,
            project_id=state.project_id,
            user_id=state.user_id,
            current_step=state.current_step,
            status=state.status,
            context=state.context.model_dump(mode="json"),
            metadata=state.metadata,
            version=state.version,
            created_at=state.created_at,
            updated_at=state.updated_at,
            completed_at=state.completed_at,
        )


class CurrentStepResponse(CamelModel):
    workflow_id: str
    current_step: str


class ResultResponse(CamelModel):
    workflow_id: str
    result: JsonValue


class TrackerSyncResponse(CamelModel):
    workflow_id: str
    project_key: str
    issue_keys: List[str]


class WorkflowSummary(CamelModel):
    workflow_id: str
    kind: WorkflowKind
    current_step: str
    status: WorkflowStatus
    updated_at: datetime


class DocumentIngestResponse(CamelModel):
    project_id: str
    document_id: str
    chunks: int

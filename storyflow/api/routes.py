"""Workflow routes. Every route requires a bearer token."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status

from ..auth import Principal
from ..contracts import WorkflowStatus
from ..errors import NotFoundError
from ..service import WorkflowService
from .dependencies import current_user, get_service
from .schemas import (
    AddDocumentRequest,
    AdvanceWorkflowRequest,
    CompleteWorkflowRequest,
    CurrentStepResponse,
    DocumentIngestResponse,
    FailWorkflowRequest,
    ResultResponse,
    RewindWorkflowRequest,
    StartWorkflowRequest,
    StartWorkflowResponse,
    SyncWorkflowRequest,
    TrackerSyncResponse,
    WorkflowResponse,
    WorkflowSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflow", tags=["workflow"])


async def _state(service: WorkflowService, workflow_id: str):
    state = await service.get_workflow(workflow_id)
    if state is None:
        raise NotFoundError(f"Workflow {workflow_id} not found")
    return state


@router.post(
    "/project/{project_id}/start",
    status_code=status.HTTP_201_CREATED,
    response_model=StartWorkflowResponse,
)
async def start_workflow(
    project_id: str,
    body: StartWorkflowRequest,
    user: Principal = Depends(current_user),
    service: WorkflowService = Depends(get_service),
):
    state = await service.start_workflow(project_id, user.user_id, body.requirements, body.kind)
    return StartWorkflowResponse(
        workflow_id=state.id, current_step=state.current_step, status=state.status
    )


@router.get("/project/{project_id}", response_model=List[WorkflowSummary])
async def list_project_workflows(
    project_id: str,
    status: Optional[WorkflowStatus] = None,
    user: Principal = Depends(current_user),
    service: WorkflowService = Depends(get_service),
):
    workflows = await service.list_workflows(project_id=project_id, status=status)
    return [
        WorkflowSummary(
            workflow_id=wf.id,
            kind=wf.kind,
            current_step=wf.current_step,
            status=wf.status,
            updated_at=wf.updated_at,
        )
        for wf in workflows
    ]


@router.post(
    "/project/{project_id}/documents",
    status_code=status.HTTP_201_CREATED,
    response_model=DocumentIngestResponse,
)
async def add_project_document(
    project_id: str,
    body: AddDocumentRequest,
    user: Principal = Depends(current_user),
    service: WorkflowService = Depends(get_service),
):
    indexed = await service.add_project_document(
        project_id, body.content, document_id=body.document_id, title=body.title
    )
    logger.info(f"User {user.user_id} indexed document {indexed['documentId']} for {project_id}")
    return DocumentIngestResponse(
        project_id=project_id, document_id=indexed["documentId"], chunks=indexed["chunks"]
    )


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: str,
    user: Principal = Depends(current_user),
    service: WorkflowService = Depends(get_service),
):
    return WorkflowResponse.from_state(await _state(service, workflow_id))


@router.patch("/{workflow_id}", response_model=WorkflowResponse)
async def advance_workflow(
    workflow_id: str,
    body: AdvanceWorkflowRequest,
    user: Principal = Depends(current_user),
    service: WorkflowService = Depends(get_service),
):
    data, requirements = body.split()
    state = await service.advance_workflow(workflow_id, body.step, data, requirements)
    return WorkflowResponse.from_state(state)


@router.get("/{workflow_id}/step", response_model=CurrentStepResponse)
async def get_current_step(
    workflow_id: str,
    user: Principal = Depends(current_user),
    service: WorkflowService = Depends(get_service),
):
    step = await service.get_current_step(workflow_id)
    if step is None:
        raise NotFoundError(f"Workflow {workflow_id} not found")
    return CurrentStepResponse(workflow_id=workflow_id, current_step=step)


@router.get("/{workflow_id}/result", response_model=ResultResponse)
async def get_result(
    workflow_id: str,
    user: Principal = Depends(current_user),
    service: WorkflowService = Depends(get_service),
):
    state = await _state(service, workflow_id)
    if state.status != WorkflowStatus.COMPLETED:
        raise NotFoundError(f"Workflow {workflow_id} has no result yet")
    return ResultResponse(workflow_id=workflow_id, result=state.result)


@router.post("/{workflow_id}/complete", response_model=WorkflowResponse)
async def complete_workflow(
    workflow_id: str,
    body: CompleteWorkflowRequest,
    user: Principal = Depends(current_user),
    service: WorkflowService = Depends(get_service),
):
    state = await service.complete_workflow(workflow_id, body.result)
    return WorkflowResponse.from_state(state)


@router.post("/{workflow_id}/fail", response_model=WorkflowResponse)
async def fail_workflow(
    workflow_id: str,
    body: FailWorkflowRequest,
    user: Principal = Depends(current_user),
    service: WorkflowService = Depends(get_service),
):
    state = await service.fail_workflow(workflow_id, body.error, body.diagnostic)
    return WorkflowResponse.from_state(state)


@router.post("/{workflow_id}/rewind", response_model=WorkflowResponse)
async def rewind_workflow(
    workflow_id: str,
    body: RewindWorkflowRequest,
    user: Principal = Depends(current_user),
    service: WorkflowService = Depends(get_service),
):
    state = await service.rewind_workflow(workflow_id, body.step)
    return WorkflowResponse.from_state(state)


@router.post("/{workflow_id}/sync", response_model=TrackerSyncResponse)
async def sync_workflow(
    workflow_id: str,
    body: SyncWorkflowRequest,
    user: Principal = Depends(current_user),
    service: WorkflowService = Depends(get_service),
):
    tracker = await service.sync_to_tracker(workflow_id, body.project_key)
    return TrackerSyncResponse(
        workflow_id=workflow_id,
        project_key=tracker["projectKey"],
        issue_keys=tracker["issueKeys"],
    )

"""Caller-facing facade over the workflow engine.

Read operations report a missing workflow as ``None``; mutations raise
``NotFoundError`` because they have nothing meaningful to return.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

from pydantic import JsonValue

from .contracts import StepInput, WorkflowKind, WorkflowState, WorkflowStatus
from .engine import WorkflowEngine
from .errors import NotFoundError, ValidationError
from .integrations import JiraClient
from .retrieval import DocumentRetriever

logger = logging.getLogger(__name__)


def _require(**values: Any) -> None:
    missing = [name for name, value in values.items() if not value or not str(value).strip()]
    if missing:
        raise ValidationError(
            f"Missing required argument(s): {', '.join(missing)}",
            errors=[{"field": name, "message": "is required"} for name in missing],
        )


def _kind(kind: Any) -> WorkflowKind:
    try:
        return WorkflowKind(kind)
    except ValueError:
        allowed = [k.value for k in WorkflowKind]
        raise ValidationError(
            f"Unknown workflow kind: {kind}", errors=[{"field": "kind", "allowed": allowed}]
        ) from None


class WorkflowService:
    def __init__(
        self,
        engine: WorkflowEngine,
        tracker: Optional[JiraClient] = None,
        retriever: Optional[DocumentRetriever] = None,
    ) -> None:
        self.engine = engine
        self.tracker = tracker
        self.retriever = retriever

    async def start_workflow(
        self,
        project_id: str,
        user_id: str,
        requirements: Mapping[str, JsonValue],
        kind: Any = WorkflowKind.STORY,
    ) -> WorkflowState:
        _require(project_id=project_id, user_id=user_id)
        if not isinstance(requirements, Mapping):
            raise ValidationError("requirements must be an object")
        return await self.engine.start(_kind(kind), project_id, user_id, dict(requirements))

    async def get_workflow(self, workflow_id: str) -> Optional[WorkflowState]:
        _require(workflow_id=workflow_id)
        return await self.engine.get_state(workflow_id)

    async def get_current_step(self, workflow_id: str) -> Optional[str]:
        state = await self.get_workflow(workflow_id)
        return state.current_step if state else None

    async def get_result(self, workflow_id: str) -> Optional[JsonValue]:
        state = await self.get_workflow(workflow_id)
        return state.result if state else None

    async def advance_workflow(
        self,
        workflow_id: str,
        step: str,
        user_input: Optional[Mapping[str, JsonValue]] = None,
        requirements: Optional[Mapping[str, JsonValue]] = None,
    ) -> WorkflowState:
        """Run ``step`` with ``user_input``; ``requirements`` are appended before the step runs."""
        _require(workflow_id=workflow_id, step=step)
        if user_input is not None and not isinstance(user_input, Mapping):
            raise ValidationError("user input must be an object")
        if requirements is not None and not isinstance(requirements, Mapping):
            raise ValidationError("requirements must be an object")
        step_input = StepInput(data=dict(user_input or {}), requirements=dict(requirements or {}))
        return await self.engine.advance(workflow_id, step, step_input)

    async def complete_workflow(self, workflow_id: str, result: JsonValue) -> WorkflowState:
        _require(workflow_id=workflow_id)
        return await self.engine.complete(workflow_id, result)

    async def fail_workflow(
        self, workflow_id: str, error: str, diagnostic: Optional[str] = None
    ) -> WorkflowState:
        _require(workflow_id=workflow_id, error=error)
        return await self.engine.fail(workflow_id, error, diagnostic)

    async def rewind_workflow(self, workflow_id: str, step: str) -> WorkflowState:
        _require(workflow_id=workflow_id, step=step)
        return await self.engine.rewind(workflow_id, step)

    async def list_workflows(
        self,
        project_id: Optional[str] = None,
        user_id: Optional[str] = None,
        status: Optional[Any] = None,
    ) -> List[WorkflowState]:
        if status is not None:
            try:
                status = WorkflowStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown workflow status: {status}") from None
        workflows = await self.engine.find(
            project_id=project_id, user_id=user_id, status=status
        )
        return sorted(workflows, key=lambda wf: wf.created_at)

    async def sync_to_tracker(self, workflow_id: str, project_key: str) -> Dict[str, Any]:
        """Publish a completed workflow's artifacts as Jira issues.

        Each issue key is recorded on the workflow as soon as the issue is
        created, so a sync interrupted by a tracker error can be retried:
        artifacts already published to the same project are skipped.
        Returns the tracker metadata: the Jira project key and the issue keys.
        """
        _require(workflow_id=workflow_id, project_key=project_key)
        if self.tracker is None:
            raise ValidationError("No issue tracker is configured")
        state = await self.engine.get_state(workflow_id)
        if state is None:
            raise NotFoundError(f"Workflow {workflow_id} not found")
        if state.status != WorkflowStatus.COMPLETED:
            raise ValidationError(f"Workflow {workflow_id} has not completed")

        result = state.result if isinstance(state.result, dict) else {}
        if state.kind == WorkflowKind.STORY:
            artifacts = [result.get("story", result)]
        else:
            artifacts = list(result.get("testCases") or [])

        previous = state.metadata.get("tracker")
        keys: List[str] = []
        if isinstance(previous, dict) and previous.get("projectKey") == project_key:
            keys = list(previous.get("issueKeys") or [])
        if keys:
            logger.info(f"Workflow {workflow_id} already has issues {keys} in {project_key}")

        for artifact in artifacts[len(keys):]:
            if state.kind == WorkflowKind.STORY:
                issue = await self.tracker.create_story_issue(artifact, project_key)
            else:
                issue = await self.tracker.create_test_issue(artifact, project_key)
            keys.append(issue["key"])
            await self.engine.attach_metadata(
                workflow_id, {"tracker": {"projectKey": project_key, "issueKeys": list(keys)}}
            )

        logger.info(f"Synced workflow {workflow_id} to Jira project {project_key}: {keys}")
        return {"projectKey": project_key, "issueKeys": keys}

    async def add_project_document(
        self,
        project_id: str,
        content: str,
        document_id: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Index a project document so clarification can draw on it."""
        _require(project_id=project_id, content=content)
        if self.retriever is None:
            raise ValidationError("Document retrieval is not configured")
        document_id = document_id or str(uuid.uuid4())
        metadata = {"title": title} if title else {}
        chunks = await self.retriever.ingest(content, project_id, document_id, metadata)
        return {"projectId": project_id, "documentId": document_id, "chunks": chunks}


__all__ = ["WorkflowService"]

"""In-memory implementation of the workflow repository."""

from __future__ import annotations

from typing import Dict, Optional

from ..contracts import WorkflowPatch, WorkflowState
from ..errors import ConflictError, NotFoundError
from .repository import WorkflowRepository, check_filters, field_value


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. States are copied on the way in and
    out so callers never share mutable objects with the store.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, WorkflowState] = {}

    # ------------------------------------------------------------------
    async def create(self, state: WorkflowState) -> WorkflowState:
        if state.id in self._workflows:
            raise ConflictError(f"Workflow {state.id} already exists")
        self._workflows[state.id] = state.model_copy(deep=True)
        return state.model_copy(deep=True)

    async def find_by_id(self, workflow_id: str) -> Optional[WorkflowState]:
        wf = self._workflows.get(workflow_id)
        return wf.model_copy(deep=True) if wf else None

    async def update(
        self,
        workflow_id: str,
        patch: WorkflowPatch,
        expected_version: Optional[int] = None,
    ) -> WorkflowState:
        wf = self._workflows.get(workflow_id)
        if wf is None:
            raise NotFoundError(f"Workflow {workflow_id} not found")
        if expected_version is not None and wf.version != expected_version:
            raise ConflictError(
                f"Workflow {workflow_id} was modified concurrently "
                f"(expected version {expected_version}, found {wf.version})"
            )
        updated = wf.apply(patch)
        self._workflows[workflow_id] = updated
        return updated.model_copy(deep=True)

    async def find_by(self, **filters: str) -> list[WorkflowState]:
        wanted = check_filters(filters)
        return [
            wf.model_copy(deep=True)
            for wf in self._workflows.values()
            if all(field_value(wf, key) == value for key, value in wanted.items())
        ]

    async def list_workflows(self) -> list[WorkflowState]:
        return [wf.model_copy(deep=True) for wf in self._workflows.values()]

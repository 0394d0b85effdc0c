"""Repository abstraction for workflow state persistence."""

from __future__ import annotations

from typing import Optional, Protocol

from ..contracts import WorkflowPatch, WorkflowState

FILTERABLE_FIELDS = ("project_id", "user_id", "kind", "status", "current_step")


class WorkflowRepository(Protocol):
    """Protocol for workflow state persistence backends.

    Backends never lock: ``update`` with ``expected_version`` is a
    compare-and-swap that raises ``ConflictError`` when another writer got
    there first.
    """

    async def create(self, state: WorkflowState) -> WorkflowState:
        """Persist a new workflow; ``ConflictError`` if the id is taken."""

    async def find_by_id(self, workflow_id: str) -> Optional[WorkflowState]:
        """Retrieve the workflow by id."""

    async def update(
        self,
        workflow_id: str,
        patch: WorkflowPatch,
        expected_version: Optional[int] = None,
    ) -> WorkflowState:
        """Apply ``patch`` and return the stored result."""

    async def find_by(self, **filters: str) -> list[WorkflowState]:
        """Return workflows whose fields equal every given filter."""

    async def list_workflows(self) -> list[WorkflowState]:
        """Return all persisted workflows."""


def check_filters(filters: dict) -> dict[str, str]:
    unknown = set(filters) - set(FILTERABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unsupported filter fields: {sorted(unknown)}")
    return {
        key: getattr(value, "value", value)
        for key, value in filters.items()
        if value is not None
    }


def field_value(state: WorkflowState, name: str) -> str:
    value = getattr(state, name)
    return getattr(value, "value", value)

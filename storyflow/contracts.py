"""Core state contracts for storyflow workflows."""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, JsonValue

from .constants import COMPLETED_STEP, FAILED_STEP, TERMINAL_STEPS

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowKind(str, Enum):
    STORY = "story"
    TEST_CASE = "test_case"


class WorkflowStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


def _is_empty(value: JsonValue) -> bool:
    return value is None or value == "" or value == []


class StepTurn(BaseModel):
    """One executed turn of a step, kept in the step's history."""

    input: Dict[str, JsonValue] = Field(default_factory=dict)
    result: JsonValue = None
    needs_input: bool = False
    prompt: Optional[str] = None
    at: datetime = Field(default_factory=utcnow)


class StepRecord(BaseModel):
    """Accumulated output of a single step.

    The ``completed`` and ``failed`` terminal records reuse this model: the
    former only sets ``result``/``completed_at``, the latter the error fields.
    """

    result: JsonValue = None
    needs_input: bool = False
    prompt: Optional[str] = None
    suggested_step: Optional[str] = None
    iterations: int = 0
    history: List[StepTurn] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    diagnostic: Optional[str] = None
    step: Optional[str] = None
    failed_at: Optional[datetime] = None


class WorkflowContext(BaseModel):
    """Requirements plus per-step results carried across turns."""

    requirements: Dict[str, JsonValue] = Field(default_factory=dict)
    steps: Dict[str, StepRecord] = Field(default_factory=dict)

    def merged(self, update: "WorkflowContext") -> "WorkflowContext":
        """Return a new context with ``update`` merged into both partitions.

        Requirements are append-only: new keys are added, lists gain the
        items they do not already hold and empty values (``None``, ``""``,
        ``[]``) may be filled in. Any other existing value is kept. Step
        records are replaced key by key, untouched steps are preserved.
        """
        requirements = copy.deepcopy(self.requirements)
        for key, value in update.requirements.items():
            if key not in requirements or _is_empty(requirements[key]):
                requirements[key] = copy.deepcopy(value)
            elif isinstance(requirements[key], list) and isinstance(value, list):
                existing = requirements[key]
                for item in value:
                    if item not in existing:
                        existing.append(copy.deepcopy(item))
            elif requirements[key] != value:
                logger.debug(f"Ignoring update of existing requirement '{key}'")

        steps = {name: record.model_copy(deep=True) for name, record in self.steps.items()}
        for name, record in update.steps.items():
            steps[name] = record.model_copy(deep=True)
        return WorkflowContext(requirements=requirements, steps=steps)

    def results(self) -> Dict[str, JsonValue]:
        """Map of step name to that step's latest result."""
        return {
            name: record.result
            for name, record in self.steps.items()
            if name not in TERMINAL_STEPS
        }


class WorkflowPatch(BaseModel):
    """Partial update applied by a repository.

    Only fields explicitly set are applied, so ``completed_at=None`` clears
    the completion timestamp while an absent field leaves it alone.
    ``drop_steps`` names step records removed after the context merge.
    """

    current_step: Optional[str] = None
    status: Optional[WorkflowStatus] = None
    context: Optional[WorkflowContext] = None
    metadata: Optional[Dict[str, JsonValue]] = None
    completed_at: Optional[datetime] = None
    drop_steps: List[str] = Field(default_factory=list)


class WorkflowState(BaseModel):
    """Persisted workflow instance."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: WorkflowKind = WorkflowKind.STORY
    project_id: str
    user_id: str
    current_step: str
    status: WorkflowStatus = WorkflowStatus.IN_PROGRESS
    context: WorkflowContext = Field(default_factory=WorkflowContext)
    metadata: Dict[str, JsonValue] = Field(default_factory=dict)
    version: int = 1
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (WorkflowStatus.COMPLETED, WorkflowStatus.FAILED)

    @property
    def result(self) -> JsonValue:
        """Final artifact payload, ``None`` until the workflow completed."""
        if self.status != WorkflowStatus.COMPLETED:
            return None
        record = self.context.steps.get(COMPLETED_STEP)
        return record.result if record else None

    @property
    def failure(self) -> Optional[StepRecord]:
        return self.context.steps.get(FAILED_STEP)

    def apply(self, patch: WorkflowPatch) -> "WorkflowState":
        """Return the state produced by ``patch``; version and ``updated_at`` advance."""
        updated = self.model_copy(deep=True)
        fields = patch.model_fields_set
        if "current_step" in fields and patch.current_step is not None:
            updated.current_step = patch.current_step
        if "status" in fields and patch.status is not None:
            updated.status = patch.status
        if "context" in fields and patch.context is not None:
            updated.context = updated.context.merged(patch.context)
        for name in patch.drop_steps:
            updated.context.steps.pop(name, None)
        if "metadata" in fields and patch.metadata is not None:
            updated.metadata = {**updated.metadata, **copy.deepcopy(patch.metadata)}
        if "completed_at" in fields:
            updated.completed_at = patch.completed_at
        updated.version = self.version + 1
        updated.updated_at = utcnow()
        return updated


class StepInput(BaseModel):
    """User-supplied data for one advance call."""

    data: Dict[str, JsonValue] = Field(default_factory=dict)
    requirements: Dict[str, JsonValue] = Field(default_factory=dict)


class StepContext(BaseModel):
    """Read-only view of the workflow handed to a step function."""

    workflow_id: str
    project_id: str
    kind: WorkflowKind
    step: str
    requirements: Dict[str, JsonValue] = Field(default_factory=dict)
    results: Dict[str, JsonValue] = Field(default_factory=dict)
    history: List[StepTurn] = Field(default_factory=list)
    iteration: int = 1


class StepOutput(BaseModel):
    """What a step function reports back to the engine."""

    result: JsonValue = None
    needs_input: bool = False
    prompt: Optional[str] = None
    suggested_step: Optional[str] = None


__all__ = [
    "WorkflowKind",
    "WorkflowStatus",
    "StepTurn",
    "StepRecord",
    "WorkflowContext",
    "WorkflowPatch",
    "WorkflowState",
    "StepInput",
    "StepContext",
    "StepOutput",
    "utcnow",
    "COMPLETED_STEP",
    "FAILED_STEP",
]

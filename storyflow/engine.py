"""Generic workflow engine driving a stage sequence one advance at a time."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import JsonValue

from .agent.base import StepFunction
from .config import EngineConfig
from .constants import COMPLETED_STEP, FAILED_STEP
from .contracts import (
    StepContext,
    StepInput,
    StepOutput,
    StepRecord,
    StepTurn,
    WorkflowContext,
    WorkflowKind,
    WorkflowPatch,
    WorkflowState,
    WorkflowStatus,
    utcnow,
)
from .errors import ConflictError, NotFoundError, TransientError, ValidationError
from .persistence import WorkflowRepository
from .workflows import Registry, StageSequence

logger = logging.getLogger(__name__)


class WorkflowEngine:
    """Runs the step function of a workflow's current stage and persists the outcome.

    The engine holds no lock while a step runs. The update is written with
    the version read at the start of the call, so when two callers advance
    the same workflow concurrently only the first write wins and the other
    receives a ``ConflictError``.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        registry: Registry,
        settings: Optional[EngineConfig] = None,
    ) -> None:
        self._repository = repository
        self._registry = registry
        self.settings = settings or EngineConfig()

    def sequence(self, kind: WorkflowKind) -> StageSequence:
        try:
            return self._registry[kind]
        except KeyError:
            raise ValidationError(f"Unsupported workflow kind: {kind}") from None

    async def _load(self, workflow_id: str) -> WorkflowState:
        state = await self._repository.find_by_id(workflow_id)
        if state is None:
            raise NotFoundError(f"Workflow {workflow_id} not found")
        return state

    # ------------------------------------------------------------------
    async def start(
        self,
        kind: WorkflowKind,
        project_id: str,
        user_id: str,
        requirements: Dict[str, JsonValue],
        metadata: Optional[Dict[str, JsonValue]] = None,
    ) -> WorkflowState:
        """Create a workflow positioned at the first stage of ``kind``."""
        sequence = self.sequence(kind)
        state = WorkflowState(
            kind=kind,
            project_id=project_id,
            user_id=user_id,
            current_step=sequence.first.name,
            status=WorkflowStatus.IN_PROGRESS,
            context=WorkflowContext(requirements=requirements),
            metadata=metadata or {},
        )
        created = await self._repository.create(state)
        logger.info(
            f"Started {kind.value} workflow {created.id} for project {project_id} "
            f"at step {created.current_step}"
        )
        return created

    async def get_state(self, workflow_id: str) -> Optional[WorkflowState]:
        return await self._repository.find_by_id(workflow_id)

    async def find(self, **filters: Any) -> List[WorkflowState]:
        return await self._repository.find_by(**filters)

    async def advance(
        self, workflow_id: str, step: str, step_input: Optional[StepInput] = None
    ) -> WorkflowState:
        """Execute ``step`` for the workflow and record its outcome.

        Raises:
            NotFoundError: the workflow does not exist.
            ConflictError: the workflow is terminal, ``step`` is not its
                current step, or another advance won the race.
            TransientError: the step timed out or its model call failed; the
                stored state is untouched.
        """
        step_input = step_input or StepInput()
        state = await self._load(workflow_id)
        if state.is_terminal:
            raise ConflictError(
                f"Workflow {workflow_id} is already {state.status.value}",
                errors=[{"currentStep": state.current_step, "status": state.status.value}],
            )
        if state.current_step != step:
            logger.warning(
                f"Rejected advance of workflow {workflow_id}: requested {step}, "
                f"current step is {state.current_step}"
            )
            raise ConflictError(
                f"Step '{step}' does not match current step '{state.current_step}'",
                errors=[{"currentStep": state.current_step, "requestedStep": step}],
            )

        sequence = self.sequence(state.kind)
        stage = sequence.get(step)
        context = state.context.merged(WorkflowContext(requirements=step_input.requirements))
        previous = context.steps.get(step) or StepRecord()
        step_context = StepContext(
            workflow_id=state.id,
            project_id=state.project_id,
            kind=state.kind,
            step=step,
            requirements=context.requirements,
            results={k: v for k, v in context.results().items() if k != step},
            history=previous.history,
            iteration=previous.iterations + 1,
        )

        output = await self._run_step(stage.step, step_input, step_context)
        record = self._record(previous, step_input, output)
        update = WorkflowContext(
            requirements=step_input.requirements, steps={step: record}
        )

        if output.needs_input:
            patch = WorkflowPatch(context=update)
            if record.iterations >= self.settings.max_step_iterations:
                reason = (
                    f"Step '{step}' still needs input after {record.iterations} "
                    f"iterations (limit {self.settings.max_step_iterations})"
                )
                logger.warning(f"Workflow {workflow_id}: {reason}")
                update.steps[FAILED_STEP] = StepRecord(
                    error=reason,
                    diagnostic=record.prompt,
                    step=step,
                    failed_at=utcnow(),
                )
                patch = WorkflowPatch(
                    current_step=FAILED_STEP,
                    status=WorkflowStatus.FAILED,
                    context=update,
                    completed_at=utcnow(),
                )
        else:
            following = sequence.next_after(step)
            if following is not None:
                patch = WorkflowPatch(
                    current_step=following.name,
                    status=WorkflowStatus.IN_PROGRESS,
                    context=update,
                )
            else:
                finished = utcnow()
                update.steps[COMPLETED_STEP] = StepRecord(
                    result=output.result, completed_at=finished
                )
                patch = WorkflowPatch(
                    current_step=COMPLETED_STEP,
                    status=WorkflowStatus.COMPLETED,
                    context=update,
                    completed_at=finished,
                )

        updated = await self._repository.update(
            workflow_id, patch, expected_version=state.version
        )
        logger.info(
            f"Workflow {workflow_id} advanced {step} -> {updated.current_step} "
            f"(iteration {record.iterations}, needs_input={output.needs_input})"
        )
        return updated

    async def _run_step(
        self, step_function: StepFunction, step_input: StepInput, context: StepContext
    ) -> StepOutput:
        timeout = self.settings.step_timeout_seconds
        try:
            return await asyncio.wait_for(step_function(step_input, context), timeout)
        except asyncio.TimeoutError as e:
            logger.error(
                f"Step {context.step} of workflow {context.workflow_id} timed out after {timeout}s"
            )
            raise TransientError(
                f"Step '{context.step}' timed out after {timeout} seconds"
            ) from e

    @staticmethod
    def _record(previous: StepRecord, step_input: StepInput, output: StepOutput) -> StepRecord:
        turn = StepTurn(
            input=step_input.data,
            result=output.result,
            needs_input=output.needs_input,
            prompt=output.prompt,
        )
        return StepRecord(
            result=output.result,
            needs_input=output.needs_input,
            prompt=output.prompt,
            suggested_step=output.suggested_step,
            iterations=previous.iterations + 1,
            history=[*previous.history, turn],
            completed_at=None if output.needs_input else turn.at,
        )

    # ------------------------------------------------------------------
    async def complete(self, workflow_id: str, result: JsonValue) -> WorkflowState:
        """Mark the workflow completed with a caller-supplied result."""
        state = await self._load(workflow_id)
        if state.is_terminal:
            raise ConflictError(f"Workflow {workflow_id} is already {state.status.value}")
        finished = utcnow()
        patch = WorkflowPatch(
            current_step=COMPLETED_STEP,
            status=WorkflowStatus.COMPLETED,
            context=WorkflowContext(
                steps={COMPLETED_STEP: StepRecord(result=result, completed_at=finished)}
            ),
            completed_at=finished,
        )
        updated = await self._repository.update(
            workflow_id, patch, expected_version=state.version
        )
        logger.info(f"Workflow {workflow_id} completed from step {state.current_step}")
        return updated

    async def fail(
        self, workflow_id: str, error: str, diagnostic: Optional[str] = None
    ) -> WorkflowState:
        """Mark the workflow failed, recording where and why."""
        state = await self._load(workflow_id)
        if state.is_terminal:
            raise ConflictError(f"Workflow {workflow_id} is already {state.status.value}")
        failed_at = utcnow()
        patch = WorkflowPatch(
            current_step=FAILED_STEP,
            status=WorkflowStatus.FAILED,
            context=WorkflowContext(
                steps={
                    FAILED_STEP: StepRecord(
                        error=error,
                        diagnostic=diagnostic,
                        step=state.current_step,
                        failed_at=failed_at,
                    )
                }
            ),
            completed_at=failed_at,
        )
        updated = await self._repository.update(
            workflow_id, patch, expected_version=state.version
        )
        logger.error(f"Workflow {workflow_id} failed at step {state.current_step}: {error}")
        return updated

    async def rewind(self, workflow_id: str, to_step: str) -> WorkflowState:
        """Move a workflow back to an earlier stage so it can be re-run.

        Failed workflows may be rewound; completed ones may not. Records of
        earlier steps are kept and overwritten when the stage runs again,
        but ``to_step`` and every later stage restart their iteration count
        and the ``failed`` record is removed.
        """
        state = await self._load(workflow_id)
        if state.status == WorkflowStatus.COMPLETED:
            raise ConflictError(f"Workflow {workflow_id} is already completed")
        sequence = self.sequence(state.kind)
        if not sequence.contains(to_step):
            raise ValidationError(
                f"Unknown step '{to_step}'",
                errors=[{"step": to_step, "allowed": sequence.names()}],
            )
        if sequence.contains(state.current_step):
            limit = sequence.index(state.current_step)
        else:
            failure = state.failure
            limit = (
                sequence.index(failure.step)
                if failure and failure.step and sequence.contains(failure.step)
                else len(sequence.stages) - 1
            )
        if sequence.index(to_step) > limit:
            raise ValidationError(f"Cannot rewind forward to step '{to_step}'")

        # Stages from to_step onward get a fresh iteration budget.
        reset = {
            name: state.context.steps[name].model_copy(update={"iterations": 0}, deep=True)
            for name in sequence.names()[sequence.index(to_step):]
            if name in state.context.steps
        }
        patch = WorkflowPatch(
            current_step=to_step,
            status=WorkflowStatus.IN_PROGRESS,
            context=WorkflowContext(steps=reset),
            completed_at=None,
            drop_steps=[FAILED_STEP],
        )
        updated = await self._repository.update(
            workflow_id, patch, expected_version=state.version
        )
        if state.failure is not None:
            logger.info(
                f"Workflow {workflow_id} revived after failure at "
                f"{state.failure.step}: {state.failure.error}"
            )
        logger.info(f"Workflow {workflow_id} rewound from {state.current_step} to {to_step}")
        return updated

    async def attach_metadata(
        self, workflow_id: str, metadata: Dict[str, JsonValue]
    ) -> WorkflowState:
        await self._load(workflow_id)
        return await self._repository.update(workflow_id, WorkflowPatch(metadata=metadata))


__all__ = ["WorkflowEngine"]

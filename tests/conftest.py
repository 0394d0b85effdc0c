"""Shared fixtures: scripted step functions and fake agents."""

import asyncio
from types import SimpleNamespace
from typing import Any, List

import pytest

from storyflow.config import EngineConfig, LLMConfig
from storyflow.contracts import StepContext, StepInput, StepOutput, WorkflowKind
from storyflow.engine import WorkflowEngine
from storyflow.persistence import InMemoryWorkflowRepository
from storyflow.workflows import StageSequence, StageSpec

STORY_STAGES = [
    "requirements_analysis",
    "story_creation",
    "acceptance_criteria_definition",
    "review_approval",
]
TEST_CASE_STAGES = ["analyzing", "creating", "validating"]

STORY_REQUIREMENTS = {
    "title": "Password reset",
    "description": "Users can reset a forgotten password by email",
    "acceptanceCriteria": ["A reset link is emailed", "The link expires after 1 hour"],
    "businessValue": "Fewer support tickets",
}


class ScriptedStep:
    """Step function replaying queued outputs; the last output repeats."""

    def __init__(self, *outputs: StepOutput, delay: float = 0.0):
        self.outputs: List[StepOutput] = list(outputs) or [StepOutput(result={"ok": True})]
        self.delay = delay
        self.calls: List[tuple] = []

    async def __call__(self, step_input: StepInput, context: StepContext) -> StepOutput:
        self.calls.append((step_input, context))
        if self.delay:
            await asyncio.sleep(self.delay)
        if len(self.outputs) > 1:
            return self.outputs.pop(0)
        return self.outputs[0]


class FakeAgent:
    """Stands in for a pydantic-ai agent: returns queued outputs or raises queued errors."""

    def __init__(self, *outputs: Any):
        self.outputs = list(outputs)
        self.prompts: List[str] = []

    async def run(self, user_prompt: str, **kwargs: Any) -> Any:
        self.prompts.append(user_prompt)
        output = self.outputs.pop(0) if len(self.outputs) > 1 else self.outputs[0]
        if isinstance(output, BaseException):
            raise output
        return SimpleNamespace(output=output)


def satisfied(result: Any = None) -> StepOutput:
    return StepOutput(result=result if result is not None else {"ok": True})


def needs_input(prompt: str = "Tell me more", suggested_step: str = None) -> StepOutput:
    return StepOutput(
        result={"question": prompt}, needs_input=True, prompt=prompt, suggested_step=suggested_step
    )


def sequence_of(kind: WorkflowKind, names: List[str], steps: dict) -> StageSequence:
    return StageSequence(
        kind, [StageSpec(name, steps.get(name) or ScriptedStep()) for name in names]
    )


@pytest.fixture
def fast_llm() -> LLMConfig:
    return LLMConfig(model="test", max_attempts=2, backoff_base=0, backoff_jitter=0)


@pytest.fixture
def repository() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def make_engine(repository):
    """Build an engine whose stages run the given scripted steps."""

    def _make(story_steps=None, test_case_steps=None, **settings) -> WorkflowEngine:
        registry = {
            WorkflowKind.STORY: sequence_of(WorkflowKind.STORY, STORY_STAGES, story_steps or {}),
            WorkflowKind.TEST_CASE: sequence_of(
                WorkflowKind.TEST_CASE, TEST_CASE_STAGES, test_case_steps or {}
            ),
        }
        return WorkflowEngine(repository, registry, EngineConfig(**settings))

    return _make

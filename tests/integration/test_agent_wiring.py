"""Agent steps backed by real pydantic-ai agents running on TestModel."""

import pytest
from pydantic_ai.models.test import TestModel

from storyflow.config import LLMConfig
from storyflow.contracts import StepContext, StepInput, WorkflowKind
from storyflow.workflows import build_registry

REQUIREMENTS = {
    "title": "Password reset",
    "description": "Users can reset a forgotten password",
    "acceptanceCriteria": ["A reset link is emailed"],
}


def test_registry_lists_stages_in_order():
    registry = build_registry(TestModel(), LLMConfig(max_attempts=1))

    assert registry[WorkflowKind.STORY].names() == [
        "requirements_analysis",
        "story_creation",
        "acceptance_criteria_definition",
        "review_approval",
    ]
    assert registry[WorkflowKind.TEST_CASE].names() == ["analyzing", "creating", "validating"]
    assert registry[WorkflowKind.STORY].next_after("review_approval") is None


@pytest.mark.asyncio
async def test_story_creation_runs_on_test_model():
    registry = build_registry(TestModel(), LLMConfig(max_attempts=1))
    step = registry[WorkflowKind.STORY].get("story_creation").step
    context = StepContext(
        workflow_id="wf",
        project_id="proj",
        kind=WorkflowKind.STORY,
        step="story_creation",
        requirements=REQUIREMENTS,
    )

    output = await step(StepInput(), context)

    assert not output.needs_input
    assert set(output.result) >= {"title", "description", "acceptance_criteria"}

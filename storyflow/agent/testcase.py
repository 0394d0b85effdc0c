"""Agent steps of the test-case workflow."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..contracts import StepContext, StepInput, StepOutput
from .base import AgentStep, latest_answer, render_prompt
from .outputs import CoverageReview, TestAnalysis, TestCaseBatch

logger = logging.getLogger(__name__)


def story_details(requirements: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the story a test-case workflow was started for.

    Accepts either a ``storyDetails`` mapping or the story fields at the top
    level of the requirements.
    """
    details = requirements.get("storyDetails")
    if isinstance(details, dict) and details.get("title"):
        return details
    if requirements.get("title") and requirements.get("description"):
        return {
            "title": requirements["title"],
            "description": requirements["description"],
            "acceptanceCriteria": requirements.get("acceptanceCriteria", []),
        }
    return None


def _latest_feedback(results: Dict[str, Any]) -> Optional[str]:
    review = results.get("validating")
    if isinstance(review, dict):
        return review.get("feedback") or None
    return None


class AnalyzeStoryStep(AgentStep):
    """Enumerates test scenarios, data requirements and dependencies."""

    name = "analyzing"
    output_model = TestAnalysis

    async def precheck(
        self, step_input: StepInput, context: StepContext
    ) -> Optional[StepOutput]:
        if story_details(context.requirements) is not None:
            return None
        return StepOutput(
            result={"missing_fields": ["storyDetails"]},
            needs_input=True,
            prompt="Please provide the story (title, description and acceptance criteria) to test.",
        )

    async def build_prompt(self, step_input: StepInput, context: StepContext) -> str:
        return render_prompt(
            story=story_details(context.requirements),
            project_documents=context.requirements.get("projectDocuments"),
            tester_notes=latest_answer(step_input),
        )

    def interpret(
        self, output: TestAnalysis, step_input: StepInput, context: StepContext
    ) -> StepOutput:
        return StepOutput(result=output.model_dump(mode="json"))


class CreateTestCasesStep(AgentStep):
    """Turns the analysis (and any review feedback) into concrete test cases."""

    name = "creating"
    output_model = TestCaseBatch

    async def build_prompt(self, step_input: StepInput, context: StepContext) -> str:
        return render_prompt(
            story=story_details(context.requirements),
            analysis=context.results.get("analyzing"),
            reviewer_feedback=_latest_feedback(context.results),
            tester_notes=latest_answer(step_input),
        )

    def interpret(
        self, output: TestCaseBatch, step_input: StepInput, context: StepContext
    ) -> StepOutput:
        cases = [case.model_dump(mode="json") for case in output.test_cases]
        logger.info(f"Generated {len(cases)} test cases for workflow {context.workflow_id}")
        return StepOutput(result={"testCases": cases})


class ValidateTestCasesStep(AgentStep):
    """Reviews coverage; a rejection waits for the tester's decision."""

    name = "validating"
    output_model = CoverageReview

    def _cases(self, step_input: StepInput, context: StepContext) -> List[Any]:
        supplied = step_input.data.get("testCases")
        if isinstance(supplied, list) and supplied:
            return supplied
        created = context.results.get("creating")
        if isinstance(created, dict):
            return list(created.get("testCases") or [])
        return []

    async def build_prompt(self, step_input: StepInput, context: StepContext) -> str:
        story = story_details(context.requirements) or {}
        return render_prompt(
            acceptance_criteria=story.get("acceptanceCriteria"),
            test_cases=self._cases(step_input, context),
            earlier_feedback=[turn.prompt for turn in context.history if turn.prompt],
            tester_response=latest_answer(step_input),
        )

    def interpret(
        self, output: CoverageReview, step_input: StepInput, context: StepContext
    ) -> StepOutput:
        cases = self._cases(step_input, context)
        if output.approved:
            return StepOutput(result={"testCases": cases, "feedback": output.feedback})
        feedback = output.feedback or "Missing scenarios: " + "; ".join(output.missing_scenarios)
        return StepOutput(
            result={
                "testCases": cases,
                "feedback": feedback,
                "missingScenarios": output.missing_scenarios,
            },
            needs_input=True,
            prompt=feedback,
            suggested_step="creating",
        )

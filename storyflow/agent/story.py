"""Agent steps of the story workflow."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..artifacts import StoryDraft
from ..config import LLMConfig
from ..contracts import StepContext, StepInput, StepOutput
from ..retrieval import DocumentRetriever
from .base import AgentRunner, AgentStep, answer_in, latest_answer, render_prompt
from .outputs import AcceptanceCriteriaResult, ClarificationResult, ReviewResult

logger = logging.getLogger(__name__)

REQUIRED_STORY_FIELDS = ("title", "description", "acceptanceCriteria")
RECOMMENDED_STORY_FIELDS = ("businessValue",)

FIELD_LABELS = {
    "title": "a short, descriptive title",
    "description": "a detailed description of the feature",
    "acceptanceCriteria": "the acceptance criteria (a list of conditions)",
    "businessValue": "the business value of the story",
}


def missing_fields(requirements: Dict[str, Any]) -> List[str]:
    missing = []
    for field in REQUIRED_STORY_FIELDS:
        value = requirements.get(field)
        if value is None or value == "" or value == []:
            missing.append(field)
    return missing


def _clarification_transcript(context: StepContext) -> List[Dict[str, Any]]:
    """Question/answer pairs from earlier turns of the step."""
    transcript = []
    for turn in context.history:
        # a turn's input answers the question asked on the turn before it
        answer = answer_in(turn.input)
        if answer:
            transcript.append({"answer": answer})
        if turn.prompt:
            transcript.append({"question": turn.prompt})
    return transcript


def _current_story(results: Dict[str, Any]) -> Dict[str, Any]:
    for step in ("acceptance_criteria_definition", "story_creation"):
        story = results.get(step)
        if isinstance(story, dict) and story:
            return dict(story)
    return {}


class RequirementsAnalysisStep(AgentStep):
    """Validates the requirement fields, then loops on clarifying questions."""

    name = "requirements_analysis"
    output_model = ClarificationResult

    def __init__(
        self,
        agent: AgentRunner,
        retriever: Optional[DocumentRetriever] = None,
        llm: Optional[LLMConfig] = None,
    ) -> None:
        super().__init__(agent, llm)
        self.retriever = retriever

    async def precheck(
        self, step_input: StepInput, context: StepContext
    ) -> Optional[StepOutput]:
        missing = missing_fields(context.requirements)
        if not missing:
            return None
        wanted = "; ".join(FIELD_LABELS[f] for f in missing)
        logger.info(f"Workflow {context.workflow_id} is missing requirement fields {missing}")
        return StepOutput(
            result={"missing_fields": missing},
            needs_input=True,
            prompt=f"Please provide {wanted}.",
        )

    async def __call__(self, step_input: StepInput, context: StepContext) -> StepOutput:
        early = await self.precheck(step_input, context)
        if early is not None:
            return early
        documents = await self.related_documents(context)
        output = await self.run_agent(self.render(step_input, context, documents))
        return self.to_output(output, documents)

    async def related_documents(self, context: StepContext) -> List[str]:
        if self.retriever is None:
            return []
        query = f"{context.requirements.get('title', '')}\n{context.requirements.get('description', '')}"
        hits = await self.retriever.search(query, project_id=context.project_id)
        return [hit.content for hit in hits]

    def render(
        self, step_input: StepInput, context: StepContext, documents: List[str]
    ) -> str:
        recommended = [f for f in RECOMMENDED_STORY_FIELDS if not context.requirements.get(f)]
        return render_prompt(
            requirements=context.requirements,
            missing_recommended_fields=recommended,
            relevant_project_documents="\n---\n".join(documents),
            previous_clarifications=_clarification_transcript(context),
            latest_answer=latest_answer(step_input),
        )

    def to_output(self, output: ClarificationResult, documents: List[str]) -> StepOutput:
        result = {
            "summary": output.summary,
            "questions": output.questions,
            "documents": documents,
        }
        if output.needs_clarification and output.questions:
            return StepOutput(
                result=result,
                needs_input=True,
                prompt="\n".join(output.questions),
            )
        return StepOutput(result=result)


class StoryCreationStep(AgentStep):
    """Writes a story draft from the clarified requirements."""

    name = "story_creation"
    output_model = StoryDraft

    async def build_prompt(self, step_input: StepInput, context: StepContext) -> str:
        analysis = context.results.get("requirements_analysis") or {}
        review = context.results.get("review_approval") or {}
        return render_prompt(
            requirements=context.requirements,
            clarified_summary=analysis.get("summary") if isinstance(analysis, dict) else None,
            reviewer_feedback=review.get("feedback") if isinstance(review, dict) else None,
            author_guidance=step_input.data,
        )

    def interpret(
        self, output: StoryDraft, step_input: StepInput, context: StepContext
    ) -> StepOutput:
        if not output.business_value and context.requirements.get("businessValue"):
            output.business_value = str(context.requirements["businessValue"])
        return StepOutput(result=output.model_dump(mode="json"))


class AcceptanceCriteriaStep(AgentStep):
    """Rewrites the draft's acceptance criteria as Given/When/Then statements."""

    name = "acceptance_criteria_definition"
    output_model = AcceptanceCriteriaResult

    async def build_prompt(self, step_input: StepInput, context: StepContext) -> str:
        return render_prompt(
            story=context.results.get("story_creation"),
            original_acceptance_criteria=context.requirements.get("acceptanceCriteria"),
            author_guidance=step_input.data,
        )

    def interpret(
        self, output: AcceptanceCriteriaResult, step_input: StepInput, context: StepContext
    ) -> StepOutput:
        story = _current_story({"story_creation": context.results.get("story_creation")})
        story["acceptance_criteria"] = output.acceptance_criteria
        return StepOutput(result=story)


class ReviewApprovalStep(AgentStep):
    """Critiques the story; a rejection asks the user how to proceed."""

    name = "review_approval"
    output_model = ReviewResult

    def _story(self, step_input: StepInput, context: StepContext) -> Dict[str, Any]:
        # Revisions from earlier turns since the stage was (re)entered live
        # in the last reviewed story.
        last = context.history[-1].result if context.iteration > 1 and context.history else None
        if isinstance(last, dict) and isinstance(last.get("story"), dict):
            story = dict(last["story"])
        else:
            story = _current_story(context.results)
        revisions = step_input.data.get("revisions")
        if isinstance(revisions, dict):
            allowed = set(StoryDraft.model_fields)
            story.update({k: v for k, v in revisions.items() if k in allowed})
        return story

    async def build_prompt(self, step_input: StepInput, context: StepContext) -> str:
        earlier = [turn.prompt for turn in context.history if turn.prompt]
        return render_prompt(
            story=self._story(step_input, context),
            earlier_feedback=earlier,
            author_response=latest_answer(step_input),
        )

    def interpret(
        self, output: ReviewResult, step_input: StepInput, context: StepContext
    ) -> StepOutput:
        story = self._story(step_input, context)
        if output.approved:
            return StepOutput(result={"story": story, "feedback": output.feedback})
        feedback = output.feedback or "; ".join(output.issues) or "The story needs revision."
        return StepOutput(
            result={"story": story, "feedback": feedback, "issues": output.issues},
            needs_input=True,
            prompt=feedback,
            suggested_step="story_creation",
        )

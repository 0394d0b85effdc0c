"""Stage registries for the supported workflow kinds."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..agent import (
    AcceptanceCriteriaStep,
    AnalyzeStoryStep,
    CreateTestCasesStep,
    RequirementsAnalysisStep,
    ReviewApprovalStep,
    StoryCreationStep,
    ValidateTestCasesStep,
    build_agent,
)
from ..agent import prompts
from ..agent.outputs import (
    AcceptanceCriteriaResult,
    ClarificationResult,
    CoverageReview,
    ReviewResult,
    TestAnalysis,
    TestCaseBatch,
)
from ..artifacts import StoryDraft
from ..config import LLMConfig
from ..contracts import WorkflowKind
from ..retrieval import DocumentRetriever
from .sequence import StageSequence, StageSpec

Registry = Dict[WorkflowKind, StageSequence]


def story_sequence(
    model: Any,
    llm: Optional[LLMConfig] = None,
    retriever: Optional[DocumentRetriever] = None,
) -> StageSequence:
    analysis = RequirementsAnalysisStep(
        build_agent(model, ClarificationResult, prompts.REQUIREMENTS_ANALYST_PROMPT, "requirements_analyst"),
        retriever=retriever,
        llm=llm,
    )
    creation = StoryCreationStep(
        build_agent(model, StoryDraft, prompts.STORY_WRITER_PROMPT, "story_writer"), llm
    )
    criteria = AcceptanceCriteriaStep(
        build_agent(model, AcceptanceCriteriaResult, prompts.ACCEPTANCE_CRITERIA_PROMPT, "criteria_writer"),
        llm,
    )
    review = ReviewApprovalStep(
        build_agent(model, ReviewResult, prompts.STORY_REVIEWER_PROMPT, "story_reviewer"), llm
    )
    return StageSequence(
        WorkflowKind.STORY,
        [StageSpec(step.name, step) for step in (analysis, creation, criteria, review)],
    )


def testcase_sequence(model: Any, llm: Optional[LLMConfig] = None) -> StageSequence:
    analysis = AnalyzeStoryStep(
        build_agent(model, TestAnalysis, prompts.TEST_ANALYST_PROMPT, "test_analyst"), llm
    )
    creation = CreateTestCasesStep(
        build_agent(model, TestCaseBatch, prompts.TEST_CASE_WRITER_PROMPT, "test_case_writer"), llm
    )
    validation = ValidateTestCasesStep(
        build_agent(model, CoverageReview, prompts.TEST_CASE_REVIEWER_PROMPT, "test_case_reviewer"),
        llm,
    )
    return StageSequence(
        WorkflowKind.TEST_CASE,
        [StageSpec(step.name, step) for step in (analysis, creation, validation)],
    )


def build_registry(
    model: Any,
    llm: Optional[LLMConfig] = None,
    retriever: Optional[DocumentRetriever] = None,
) -> Registry:
    """Build both stage sequences sharing one model and retry policy."""
    return {
        WorkflowKind.STORY: story_sequence(model, llm, retriever),
        WorkflowKind.TEST_CASE: testcase_sequence(model, llm),
    }


__all__ = [
    "Registry",
    "StageSequence",
    "StageSpec",
    "build_registry",
    "story_sequence",
    "testcase_sequence",
]

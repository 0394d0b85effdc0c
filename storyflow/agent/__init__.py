"""Agent steps bound to workflow stages."""

from .base import AgentRunner, AgentStep, StepFunction, build_agent, render_prompt
from .story import (
    AcceptanceCriteriaStep,
    RequirementsAnalysisStep,
    ReviewApprovalStep,
    StoryCreationStep,
)
from .testcase import AnalyzeStoryStep, CreateTestCasesStep, ValidateTestCasesStep

__all__ = [
    "AgentRunner",
    "AgentStep",
    "StepFunction",
    "build_agent",
    "render_prompt",
    "RequirementsAnalysisStep",
    "StoryCreationStep",
    "AcceptanceCriteriaStep",
    "ReviewApprovalStep",
    "AnalyzeStoryStep",
    "CreateTestCasesStep",
    "ValidateTestCasesStep",
]

"""Structured outputs requested from the models."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from ..artifacts import Priority, TestCaseDraft


class ClarificationResult(BaseModel):
    needs_clarification: bool
    questions: List[str] = Field(default_factory=list)
    summary: str = ""


class AcceptanceCriteriaResult(BaseModel):
    acceptance_criteria: List[str]


class ReviewResult(BaseModel):
    approved: bool
    feedback: str = ""
    issues: List[str] = Field(default_factory=list)


class TestScenario(BaseModel):
    __test__ = False

    description: str
    priority: Priority = "medium"


class TestAnalysis(BaseModel):
    __test__ = False

    scenarios: List[TestScenario]
    test_data_requirements: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)


class TestCaseBatch(BaseModel):
    __test__ = False

    test_cases: List[TestCaseDraft]


class CoverageReview(BaseModel):
    approved: bool
    feedback: str = ""
    missing_scenarios: List[str] = Field(default_factory=list)

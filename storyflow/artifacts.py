"""Artifacts produced by completed workflows."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

Priority = Literal["low", "medium", "high", "critical"]


class StoryDraft(BaseModel):
    """A user story in "As a ..., I want ..., so that ..." form."""

    title: str
    description: str = Field(description="As a [role], I want [feature] so that [benefit]")
    acceptance_criteria: List[str] = Field(
        default_factory=list, description="Given/When/Then acceptance criteria"
    )
    business_value: Optional[str] = None
    technical_notes: Optional[str] = None


class TestStep(BaseModel):
    __test__ = False

    action: str
    expected: str


class TestCaseDraft(BaseModel):
    """An executable test case derived from a story."""

    __test__ = False

    title: str
    description: str = ""
    steps: List[TestStep] = Field(default_factory=list)
    expected_result: str = ""
    priority: Priority = "medium"
    preconditions: Optional[str] = None
    postconditions: Optional[str] = None
    test_data: Optional[Dict[str, Any]] = None

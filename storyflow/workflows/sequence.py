"""Ordered stage lists driven by the workflow engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..agent.base import StepFunction
from ..contracts import WorkflowKind


@dataclass(frozen=True)
class StageSpec:
    name: str
    step: StepFunction


@dataclass
class StageSequence:
    """Stages of one workflow kind, in execution order."""

    kind: WorkflowKind
    stages: Sequence[StageSpec] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.stages:
            raise ValueError(f"Workflow kind {self.kind.value} has no stages")
        names = self.names()
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate stage names for {self.kind.value}: {names}")

    @property
    def first(self) -> StageSpec:
        return self.stages[0]

    def names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def contains(self, name: str) -> bool:
        return name in self.names()

    def index(self, name: str) -> int:
        try:
            return self.names().index(name)
        except ValueError:
            raise KeyError(f"Unknown stage '{name}' for {self.kind.value} workflows") from None

    def get(self, name: str) -> StageSpec:
        return self.stages[self.index(name)]

    def next_after(self, name: str) -> Optional[StageSpec]:
        """Stage following ``name``; ``None`` when ``name`` is the last one."""
        position = self.index(name) + 1
        return self.stages[position] if position < len(self.stages) else None

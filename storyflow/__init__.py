"""storyflow: multi-turn agent workflows for user stories and test cases."""

__version__ = "0.1.0"

from .contracts import StepContext, StepInput, StepOutput, WorkflowKind, WorkflowState, WorkflowStatus
from .engine import WorkflowEngine
from .persistence import get_repository
from .service import WorkflowService
from .workflows import StageSequence, StageSpec, build_registry

__all__ = [
    "StageSequence",
    "StageSpec",
    "StepContext",
    "StepInput",
    "StepOutput",
    "WorkflowEngine",
    "WorkflowKind",
    "WorkflowService",
    "WorkflowState",
    "WorkflowStatus",
    "build_registry",
    "get_repository",
]

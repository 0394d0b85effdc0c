"""Adapters turning a pydantic-ai agent call into a workflow step."""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel
from pydantic_ai import Agent

from ..config import LLMConfig
from ..contracts import StepContext, StepInput, StepOutput
from ..utils.retry import retry_async

logger = logging.getLogger(__name__)

OutputT = TypeVar("OutputT", bound=BaseModel)

StepFunction = Callable[[StepInput, StepContext], Awaitable[StepOutput]]


class AgentRunner(Protocol):
    """Anything with an async ``run(prompt)`` returning an object with ``output``."""

    async def run(self, user_prompt: str, **kwargs: Any) -> Any: ...


def build_agent(
    model: Any,
    output_type: Type[OutputT],
    system_prompt: str,
    name: str,
) -> Agent:
    """Create a pydantic-ai agent with a structured output type.

    The model check is deferred so agents can be built before credentials
    are available (tests override the model).
    """
    return Agent(
        model,
        output_type=output_type,
        system_prompt=system_prompt,
        name=name,
        defer_model_check=True,
    )


def render_prompt(**sections: Any) -> str:
    """Serialize named sections into a deterministic prompt.

    Sections with empty values are skipped; mappings and lists are rendered
    as sorted-key JSON so identical context yields an identical prompt.
    """
    parts = []
    for title, value in sections.items():
        if value is None or value == {} or value == [] or value == "":
            continue
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        if not isinstance(value, str):
            value = json.dumps(value, sort_keys=True, indent=2, default=str)
        heading = title.replace("_", " ").capitalize()
        parts.append(f"## {heading}\n{value}")
    return "\n\n".join(parts)


class AgentStep:
    """Base class for steps backed by a single agent call.

    Subclasses implement ``build_prompt`` and ``interpret``; the base class
    owns the retry policy. Only transport or parsing failures escape as
    errors; a negative judgment from the model is returned as data.
    """

    name: str = "agent_step"
    output_model: Optional[Type[BaseModel]] = None

    def __init__(self, agent: AgentRunner, llm: Optional[LLMConfig] = None) -> None:
        self.agent = agent
        self.llm = llm or LLMConfig()

    async def __call__(self, step_input: StepInput, context: StepContext) -> StepOutput:
        early = await self.precheck(step_input, context)
        if early is not None:
            return early
        prompt = await self.build_prompt(step_input, context)
        output = await self.run_agent(prompt)
        return self.interpret(output, step_input, context)

    async def precheck(
        self, step_input: StepInput, context: StepContext
    ) -> Optional[StepOutput]:
        """Return an output without calling the model, or ``None`` to proceed."""
        return None

    async def build_prompt(self, step_input: StepInput, context: StepContext) -> str:
        raise NotImplementedError

    def interpret(
        self, output: Any, step_input: StepInput, context: StepContext
    ) -> StepOutput:
        raise NotImplementedError

    async def run_agent(self, prompt: str) -> Any:
        async def _call() -> Any:
            result = await self.agent.run(prompt)
            output = result.output
            if self.output_model is not None and not isinstance(output, self.output_model):
                output = self.output_model.model_validate(output)
            return output

        logger.debug(f"Running {self.name} agent")
        return await retry_async(
            _call,
            attempts=self.llm.max_attempts,
            base=self.llm.backoff_base,
            jitter=self.llm.backoff_jitter,
            retry_on=(Exception,),
            description=f"{self.name} agent",
        )


ANSWER_KEYS = ("answer", "response", "feedback", "message")


def answer_in(data: Dict[str, Any]) -> Optional[str]:
    """First non-blank answer found under one of ``ANSWER_KEYS``."""
    for key in ANSWER_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def latest_answer(step_input: StepInput) -> Optional[str]:
    """Return the free-text answer the user supplied this turn, if any."""
    return answer_in(step_input.data)


__all__ = [
    "ANSWER_KEYS",
    "AgentRunner",
    "AgentStep",
    "StepFunction",
    "answer_in",
    "build_agent",
    "latest_answer",
    "render_prompt",
]

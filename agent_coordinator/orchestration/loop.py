"""
Bounded reasoning/acting loop for one agent.

Each iteration rebuilds a fresh [system, user] prompt from the agent
description, the tool catalog, the conversation memory and the scratchpad
of tool calls made so far in this turn. The model answers with a JSON
object that is either a tool call or the final answer. The number of LLM
calls per turn is capped; running out of calls is an error, never a
best-effort answer.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..cancellation import CancellationToken
from ..errors import (
    LoopLimitExceeded,
    ToolExecutionError,
    TurnCancelled,
    UnknownToolError,
)
from ..llm_call import Completion, LLMClient
from ..tools.registry import Tool, ToolRegistry
from ..tracing import TracingContext
from ..usage import TokenUsage
from .memory import ConversationMemory, Role, Transcript
from .parser import ActionOutput, FinalOutput, decode_agent_output
from .prompt import PromptBuilder

logger = logging.getLogger(__name__)

DEFAULT_LLM_CALL_LIMIT = 5


@dataclass
class AgentStep:
    """A single LLM call of a turn and what came of it."""

    step_number: int
    thought: Optional[str] = None
    action: Optional[str] = None
    action_input: Optional[dict] = None
    observation: Optional[str] = None
    is_final: bool = False
    final_answer: Optional[str] = None


@dataclass
class AgentResponse:
    """Result of one agent turn."""

    actions: list[str] = field(default_factory=list)
    response: list[str] = field(default_factory=list)
    token_usage: TokenUsage = field(default_factory=TokenUsage)

    def to_dict(self) -> dict:
        return {
            "actions": list(self.actions),
            "response": list(self.response),
            "tokenUsage": self.token_usage.to_dict(),
        }


class Agent:
    """
    A specialized assistant: one model, one tool registry, shared memory.

    Per-turn flow:
        1. Render memory (summarizing older history when over budget)
        2. Build [system, user] prompts with the scratchpad
        3. Call the LLM (refusing once the call limit is spent)
        4. Decode: final answer ends the turn, a tool call is executed
           and its result added to the scratchpad, anything else aborts
    """

    def __init__(
        self,
        name: str,
        client: LLMClient,
        registry: ToolRegistry,
        memory: ConversationMemory,
        llm_call_limit: int = DEFAULT_LLM_CALL_LIMIT,
        description: Optional[str] = None,
        tracing_context: Optional[TracingContext] = None,
    ):
        if llm_call_limit < 1:
            raise ValueError("llm_call_limit must be at least 1")
        self.name = name
        self.client = client
        self.registry = registry
        self.memory = memory
        self.llm_call_limit = llm_call_limit
        self.tracing_context = tracing_context
        self.prompt = PromptBuilder(registry, description)

        self.steps: list[AgentStep] = []
        self._actions: list[str] = []

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r}, model={self.client.model!r})"

    def run(
        self,
        user_input: str,
        cancel: Optional[CancellationToken] = None,
        record_input: bool = True,
        tracing_context: Optional[TracingContext] = None,
    ) -> AgentResponse:
        """
        Handle one user turn.

        Args:
            user_input: The user's message.
            cancel: Token aborting the turn at any blocking call.
            record_input: Append the message to memory first. Callers that
                already recorded it (for routing) pass False.
            tracing_context: Trace for this turn, overriding the agent's.

        Returns:
            AgentResponse with the tools used, the answer lines and the
            usage of every LLM call made during the turn.

        Raises:
            LoopLimitExceeded: If no final answer within the call limit.
            ParseError: If the model output cannot be decoded.
            UnknownToolError: If the model names an unregistered tool.
            ToolExecutionError: If a tool fails.
            ProviderError: If an LLM call fails.
            TurnCancelled: If the token fires.
        """
        cancel = cancel or CancellationToken.none()
        tracing = tracing_context or self.tracing_context

        self.steps = []
        self._actions = []
        self.prompt.reset_scratchpad()

        if record_input:
            self.memory.append(Role.USER, user_input)

        logger.debug("[%s] Starting turn for: %s", self.name, user_input)

        if tracing:
            with tracing.span(
                name=f"agent:{self.name}",
                metadata={"llm_call_limit": self.llm_call_limit},
                input={"user_input": user_input},
            ) as agent_span:
                response = self._run_loop(user_input, cancel, tracing)
                agent_span.set_output(
                    {"actions": response.actions, "steps_taken": len(self.steps)}
                )
                return response
        return self._run_loop(user_input, cancel, None)

    def _run_loop(
        self,
        user_input: str,
        cancel: CancellationToken,
        tracing: Optional[TracingContext],
    ) -> AgentResponse:
        usage = TokenUsage()
        calls = 0
        system_text = self.prompt.system_prompt()

        while True:
            if calls >= self.llm_call_limit:
                logger.error(
                    "[%s] Agent non-convergence: no final answer after %d LLM calls",
                    self.name,
                    calls,
                )
                self._log_trace_summary()
                raise LoopLimitExceeded(self.llm_call_limit)

            cancel.raise_if_cancelled()
            transcript = self._render_conversation(user_input, cancel)
            usage = usage + transcript.usage

            calls += 1
            step = AgentStep(step_number=calls)
            self.steps.append(step)

            user_text = self.prompt.user_prompt(transcript.text)
            completion = self._call_llm(system_text, user_text, calls, cancel, tracing)
            usage = usage + completion.usage
            # A cancel that arrived during the call discards its answer
            cancel.raise_if_cancelled()

            output = decode_agent_output(completion.text)
            step.thought = output.thought

            if isinstance(output, FinalOutput):
                step.is_final = True
                step.final_answer = output.answer
                self.memory.append(Role.ASSISTANT, output.answer)
                self._log_trace_summary()
                return AgentResponse(
                    actions=list(self._actions),
                    response=output.answer.split("\n"),
                    token_usage=usage,
                )

            assert isinstance(output, ActionOutput)
            step.action = output.tool
            step.action_input = output.tool_input

            tool = self.registry.get(output.tool)
            if tool is None:
                logger.warning("[%s] Unknown tool: %s", self.name, output.tool)
                raise UnknownToolError(output.tool)

            observation = self._execute_tool(tool, output.tool_input, cancel, tracing)
            step.observation = observation
            if tool.name not in self._actions:
                self._actions.append(tool.name)
            self.prompt.add_step(
                output.thought, tool.name, output.tool_input, observation
            )

    def _render_conversation(
        self, user_input: str, cancel: CancellationToken
    ) -> Transcript:
        """Render memory for the prompt, summarizing older history if needed."""
        if len(self.memory) == 0:
            # Nothing recorded (record_input=False on an empty memory)
            return Transcript(f"{Role.USER.value}: {user_input}")
        return self.memory.render(0, -1, summarize=True, cancel=cancel)

    def _call_llm(
        self,
        system_text: str,
        user_text: str,
        call_number: int,
        cancel: CancellationToken,
        tracing: Optional[TracingContext],
    ) -> Completion:
        if tracing:
            return self._call_llm_with_tracing(
                system_text, user_text, call_number, cancel, tracing
            )
        logger.debug("[%s] Call %d: calling LLM", self.name, call_number)
        return self.client.get_completion(system_text, user_text, cancel=cancel)

    def _call_llm_with_tracing(
        self,
        system_text: str,
        user_text: str,
        call_number: int,
        cancel: CancellationToken,
        tracing: TracingContext,
    ) -> Completion:
        """Call LLM with Langfuse generation tracing."""
        settings = self.client.settings
        with tracing.generation(
            name=f"{self.name}_call_{call_number}",
            model=settings.model,
            input=[
                {"role": "system", "content": system_text},
                {"role": "user", "content": user_text},
            ],
            model_parameters={
                "temperature": settings.temperature,
                "top_p": settings.top_p,
            },
        ) as gen:
            logger.debug("[%s] Call %d: calling LLM (traced)", self.name, call_number)
            completion = self.client.get_completion(
                system_text, user_text, cancel=cancel
            )
            gen.set_output(completion.text[:2000])
            gen.set_usage(completion.usage)
            return completion

    def _execute_tool(
        self,
        tool: Tool,
        tool_input: dict,
        cancel: CancellationToken,
        tracing: Optional[TracingContext],
    ) -> str:
        """
        Execute a tool and return its textual result.

        Raises:
            ToolExecutionError: Wrapping whatever the tool raised.
            TurnCancelled: If the token fires during the call.
        """
        if tracing:
            with tracing.span(name=f"tool:{tool.name}", input=tool_input) as span:
                result = self._invoke_tool(tool, tool_input, cancel)
                span.set_output({"result": result[:500]})
                return result
        return self._invoke_tool(tool, tool_input, cancel)

    def _invoke_tool(
        self, tool: Tool, tool_input: dict, cancel: CancellationToken
    ) -> str:
        cancel.raise_if_cancelled()
        logger.debug("[%s] Executing tool '%s'", self.name, tool.name)
        try:
            return tool.run(tool_input, cancel)
        except (TurnCancelled, ToolExecutionError):
            raise
        except Exception as e:
            logger.error("[%s] Tool '%s' execution failed: %s", self.name, tool.name, e)
            raise ToolExecutionError(tool.name, str(e)) from e

    def _log_trace_summary(self) -> None:
        """Log a compact trace summary."""
        logger.info("[%s] %s", self.name, "─" * 50)
        for step in self.steps:
            if step.is_final:
                logger.info("[%s] Step %d [FINAL]", self.name, step.step_number)
                continue
            obs_preview = (
                (step.observation[:80] + "...")
                if step.observation and len(step.observation) > 80
                else step.observation
            )
            logger.info(
                "[%s] Step %d: %s -> %s",
                self.name,
                step.step_number,
                step.action,
                obs_preview,
            )

    def get_trace(self) -> list[dict]:
        """
        Get a trace of the last turn's steps.

        Returns:
            List of step dictionaries.
        """
        return [
            {
                "step": s.step_number,
                "thought": s.thought,
                "action": s.action,
                "action_input": s.action_input,
                "observation": s.observation,
                "is_final": s.is_final,
                "final_answer": s.final_answer,
            }
            for s in self.steps
        ]

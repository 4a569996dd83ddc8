"""
Prompt assembly for the agent loop.

The system prompt carries the assistant description, the tool catalog
and the JSON reply contract. The user prompt carries the conversation so
far and the scratchpad of tool calls made during the current turn.
"""

from dataclasses import dataclass
from typing import Optional

from ..tools.registry import ToolRegistry
from .tool_defs import build_tools_prompt_block

DEFAULT_DESCRIPTION = (
    "You are a helpful and polite assistant. Rely on the tools provided, "
    "the scratchpad and the conversation for facts you do not know. If no "
    "tool or context can help, tell the user you are unable to answer."
)

REPLY_FORMAT = """Reply with a single JSON object, keys and string values in double quotes.
To use a tool:
{{"Thought": "what you are thinking", "Tool": "one of [{tool_names}]", "Tool Input": {{"parameter": "value"}}}}
To answer the user:
{{"Thought": "what you are thinking", "Final Answer": "your answer to the user"}}
Always think before acting. Use the scratchpad results instead of calling the same tool again."""


@dataclass
class ScratchpadStep:
    """One tool call made during the current turn."""

    thought: str
    tool: str
    tool_input: dict
    observation: str


class PromptBuilder:
    """Builds the system and user prompts for one agent."""

    def __init__(
        self,
        registry: ToolRegistry,
        description: Optional[str] = None,
    ):
        self.registry = registry
        self.description = description or DEFAULT_DESCRIPTION
        self._steps: list[ScratchpadStep] = []

    def system_prompt(self) -> str:
        parts = [self.description.strip()]
        catalog = build_tools_prompt_block(self.registry)
        if catalog:
            parts.append(catalog)
        parts.append(
            REPLY_FORMAT.format(tool_names=", ".join(self.registry.names()))
        )
        return "\n\n".join(parts)

    def reset_scratchpad(self) -> None:
        """Forget the tool calls of the previous turn."""
        self._steps = []

    def add_step(
        self, thought: str, tool: str, tool_input: dict, observation: str
    ) -> None:
        self._steps.append(
            ScratchpadStep(
                thought=thought,
                tool=tool,
                tool_input=dict(tool_input),
                observation=observation,
            )
        )

    @property
    def steps(self) -> list[ScratchpadStep]:
        return list(self._steps)

    def scratchpad_text(self) -> str:
        lines = []
        for step in self._steps:
            lines.append(f"Thought: {step.thought}")
            lines.append(f"Tool: {step.tool}")
            lines.append(f"Tool Input: {_format_input(step.tool_input)}")
            lines.append(f"Tool Response: {step.observation}")
        return "\n".join(lines)

    def user_prompt(self, conversation: str) -> str:
        """
        Build the per-iteration user prompt.

        Args:
            conversation: Rendered memory, newest message last.

        Returns:
            Conversation delimited by ``---`` and the scratchpad
            delimited by triple quotes.
        """
        return (
            "Conversation so far (delimited by ---):\n"
            f"---\n{conversation}\n---\n\n"
            'Scratchpad (delimited by """):\n'
            f'"""\n{self.scratchpad_text()}\n"""'
        )


def _format_input(tool_input: dict) -> str:
    return ", ".join(f"{key}={value}" for key, value in tool_input.items())

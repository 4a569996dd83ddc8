"""
Decoding of raw model output into agent steps.

The model is asked for a JSON object carrying ``Thought`` and either
``Tool`` + ``Tool Input`` or ``Final Answer``. Decoding is a fixed
pipeline (sanitize, decode, validate) that returns a tagged result and
never guesses on ambiguous shapes.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Union

from ..errors import ParseError

logger = logging.getLogger(__name__)

# Values the model uses to mean "nothing here"
_EMPTY_MARKERS = frozenset({"", "null", "undefined", "none"})

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class FinalOutput:
    """The model answered the user."""

    answer: str
    thought: str = ""


@dataclass(frozen=True)
class ActionOutput:
    """The model asked for a tool call."""

    tool: str
    tool_input: dict = field(default_factory=dict)
    thought: str = ""


@dataclass(frozen=True)
class InvalidOutput:
    """The output matched neither shape."""

    reason: str
    raw: str = ""


AgentOutput = Union[FinalOutput, ActionOutput, InvalidOutput]


def sanitize_output(raw: str) -> str:
    """
    Clean up common model formatting noise before decoding.

    Drops single quotes and ``+`` signs (string concatenation the model
    sometimes emits), turns newlines into spaces and strips a Markdown
    code fence around the object.
    """
    text = raw.replace("'", "").replace("+", "")
    text = text.replace("\r", " ").replace("\n", " ").strip()
    match = _CODE_FENCE.match(text)
    if match:
        text = match.group(1).strip()
    return text


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in _EMPTY_MARKERS
    return False


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value)


def parse_agent_output(raw: str) -> AgentOutput:
    """
    Decode raw model text into a Final, Action or Invalid result.

    Args:
        raw: Model output as returned by the completion call.

    Returns:
        FinalOutput, ActionOutput or InvalidOutput. Never raises.
    """
    text = sanitize_output(raw or "")
    if not text:
        return InvalidOutput("empty output", raw)

    try:
        decoded = json.loads(text)
        # Some models wrap the object in a JSON string
        if isinstance(decoded, str):
            decoded = json.loads(decoded)
    except (json.JSONDecodeError, TypeError) as e:
        return InvalidOutput(f"not valid JSON: {e}", raw)

    if not isinstance(decoded, dict):
        return InvalidOutput(
            f"expected a JSON object, got {type(decoded).__name__}", raw
        )

    thought = _as_text(decoded.get("Thought"))

    final_answer = decoded.get("Final Answer")
    if not _is_empty(final_answer):
        return FinalOutput(answer=_as_text(final_answer), thought=thought)

    tool = decoded.get("Tool")
    tool_input = decoded.get("Tool Input")
    if not _is_empty(tool) and isinstance(tool_input, dict) and tool_input:
        return ActionOutput(
            tool=_as_text(tool), tool_input=tool_input, thought=thought
        )

    if not _is_empty(tool):
        return InvalidOutput(f"tool '{_as_text(tool)}' has no usable input", raw)
    return InvalidOutput("neither a final answer nor a tool call", raw)


def decode_agent_output(raw: str) -> Union[FinalOutput, ActionOutput]:
    """
    Decode raw model text, raising on anything that is not usable.

    Raises:
        ParseError: If the output is Invalid.
    """
    result = parse_agent_output(raw)
    if isinstance(result, InvalidOutput):
        logger.warning("Unparseable model output (%s): %.200s", result.reason, raw)
        raise ParseError(f"Error in parsing LLM output: {result.reason}", raw)
    return result

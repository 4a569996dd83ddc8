"""
Agent orchestration: conversation memory, prompt assembly, output
decoding and the bounded reasoning/acting loop.
"""

from .loop import Agent, AgentResponse, AgentStep
from .memory import ConversationBuffer, ConversationMemory, Message, Role, Transcript
from .parser import (
    ActionOutput,
    FinalOutput,
    InvalidOutput,
    decode_agent_output,
    parse_agent_output,
)
from .prompt import PromptBuilder
from .summarizer import ConversationSummarizer
from .tool_defs import build_tools_prompt_block

__all__ = [
    "Agent",
    "AgentResponse",
    "AgentStep",
    "ConversationBuffer",
    "ConversationMemory",
    "Message",
    "Role",
    "Transcript",
    "ActionOutput",
    "FinalOutput",
    "InvalidOutput",
    "decode_agent_output",
    "parse_agent_output",
    "PromptBuilder",
    "ConversationSummarizer",
    "build_tools_prompt_block",
]

"""
Agent Coordinator - topic-routed conversational agents

This package provides:
- Conversation memory with token-budgeted summarization
- A bounded reasoning/acting loop for tool-using agents
- Confidence-based routing of each turn to the right agent
- Conversation sessions and an interactive CLI
"""

from .llm_call import LLMClient, LLMClientFactory
from .orchestration import Agent, AgentResponse, ConversationMemory
from .query_router import CentralCoordinator
from .session import Conversation, TurnResult, build_conversation

__all__ = [
    "Agent",
    "AgentResponse",
    "CentralCoordinator",
    "Conversation",
    "ConversationMemory",
    "LLMClient",
    "LLMClientFactory",
    "TurnResult",
    "build_conversation",
]

__version__ = "0.1.0"

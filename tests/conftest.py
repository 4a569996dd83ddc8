"""
Pytest configuration and fixtures for agent coordinator tests.
"""

import json
from unittest.mock import MagicMock

import pytest

from agent_coordinator.llm_call import Completion, LLMClient
from agent_coordinator.models import MemoryConfig, ModelSettings
from agent_coordinator.orchestration.memory import ConversationMemory
from agent_coordinator.retry import NetworkRetry
from agent_coordinator.usage import TokenUsage


def make_completion(
    text: str,
    model: str = "test-model",
    prompt_tokens: int = 10,
    completion_tokens: int = 5,
) -> Completion:
    """Build a Completion as an LLMClient would return it."""
    return Completion(
        text=text,
        usage=TokenUsage.for_model(model, prompt_tokens, completion_tokens),
    )


def final_answer(answer: str, thought: str = "I know the answer") -> str:
    """Model output carrying a final answer."""
    return json.dumps({"Thought": thought, "Final Answer": answer})


def tool_call(tool: str, tool_input: dict, thought: str = "I need a tool") -> str:
    """Model output carrying a tool call."""
    return json.dumps({"Thought": thought, "Tool": tool, "Tool Input": tool_input})


def make_client(outputs: list, model: str = "test-model") -> MagicMock:
    """
    Create a mock LLMClient answering with ``outputs`` in order.

    Strings become completions; exceptions are raised.
    """
    client = MagicMock(spec=LLMClient)
    client.model = model
    client.settings = ModelSettings(model=model)
    client.get_completion.side_effect = [
        item if isinstance(item, Exception) else make_completion(item, model)
        for item in outputs
    ]
    return client


@pytest.fixture
def no_wait_retry():
    """A retry policy that never sleeps."""
    return NetworkRetry(max_attempts=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def memory():
    """Memory without summarization."""
    return ConversationMemory(MemoryConfig(capacity=6, buffer_size=3))

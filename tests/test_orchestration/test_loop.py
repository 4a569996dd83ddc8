"""Tests for the agent reasoning/acting loop."""

from unittest.mock import MagicMock

import pytest
from conftest import final_answer, make_client, tool_call

from agent_coordinator.cancellation import CancellationToken
from agent_coordinator.errors import (
    LoopLimitExceeded,
    ParseError,
    ProviderError,
    ToolExecutionError,
    TurnCancelled,
    UnknownToolError,
)
from agent_coordinator.models import MemoryConfig
from agent_coordinator.orchestration.loop import Agent, AgentResponse, AgentStep
from agent_coordinator.orchestration.memory import ConversationMemory, Role
from agent_coordinator.orchestration.summarizer import ConversationSummarizer
from agent_coordinator.tools import FunctionTool, ToolRegistry
from agent_coordinator.usage import ModelTokenUsage, TokenUsage


def _registry(func=None) -> ToolRegistry:
    return ToolRegistry(
        [
            FunctionTool(
                "check_hours",
                "Look up opening hours",
                {"date": "date in YYYY-MM-DD format"},
                func or (lambda tool_input: f"Open 8am-10pm on {tool_input['date']}"),
            ),
            FunctionTool(
                "search_books",
                "Search the catalog",
                {"query": "search terms"},
                lambda tool_input: "3 books found",
            ),
        ]
    )


def _agent(outputs, memory=None, registry=None, limit=5) -> Agent:
    return Agent(
        name="librarian",
        client=make_client(outputs),
        registry=registry if registry is not None else _registry(),
        memory=memory if memory is not None else ConversationMemory(MemoryConfig(capacity=10)),
        llm_call_limit=limit,
    )


class TestAgentStep:
    """Tests for AgentStep dataclass."""

    def test_default_values(self):
        """Test default values for AgentStep."""
        step = AgentStep(step_number=1)
        assert step.thought is None
        assert step.action is None
        assert step.is_final is False
        assert step.final_answer is None


class TestFinalAnswer:
    """Turns that end without tools."""

    def test_final_after_zero_tools(self):
        """A direct final answer returns no actions and one response line."""
        agent = _agent([final_answer("Hello! How can I help?")])

        result = agent.run("Hi")

        assert isinstance(result, AgentResponse)
        assert result.actions == []
        assert result.response == ["Hello! How can I help?"]
        assert result.token_usage["test-model"] == ModelTokenUsage(15, 10, 5)

    def test_answer_split_into_lines(self):
        """Multi-line answers become a list of lines."""
        agent = _agent([final_answer("line one\nline two")])
        assert agent.run("Hi").response == ["line one", "line two"]

    def test_memory_records_both_sides(self):
        """User input and the answer are appended to memory."""
        memory = ConversationMemory(MemoryConfig(capacity=10))
        agent = _agent([final_answer("Hello!")], memory=memory)

        agent.run("Hi")

        assert memory.render().text == "User: Hi\nAssistant: Hello!"

    def test_record_input_false(self):
        """Callers that recorded the input themselves skip the append."""
        memory = ConversationMemory(MemoryConfig(capacity=10))
        memory.append(Role.USER, "Hi")
        agent = _agent([final_answer("Hello!")], memory=memory)

        agent.run("Hi", record_input=False)

        assert [m.text for m in memory.messages()] == ["Hi", "Hello!"]

    def test_conversation_in_prompt(self):
        """The rendered memory is part of the user prompt."""
        agent = _agent([final_answer("ok")])
        agent.run("When do you open?")

        user_text = agent.client.get_completion.call_args.args[1]
        assert "User: When do you open?" in user_text


class TestToolCalls:
    """Turns that call tools."""

    def test_tool_then_final(self):
        """A tool result feeds the next call's scratchpad."""
        agent = _agent(
            [
                tool_call("check_hours", {"date": "2024-05-01"}),
                final_answer("We open at 8am."),
            ]
        )

        result = agent.run("When do you open on May 1st?")

        assert result.actions == ["check_hours"]
        assert result.response == ["We open at 8am."]
        second_prompt = agent.client.get_completion.call_args_list[1].args[1]
        assert "Tool Response: Open 8am-10pm on 2024-05-01" in second_prompt
        assert result.token_usage["test-model"].total_tokens == 30

    def test_actions_deduplicated_in_order(self):
        """Each tool is listed once, in first-use order."""
        agent = _agent(
            [
                tool_call("search_books", {"query": "python"}),
                tool_call("check_hours", {"date": "2024-05-01"}),
                tool_call("search_books", {"query": "java"}),
                final_answer("done"),
            ]
        )
        assert agent.run("x").actions == ["search_books", "check_hours"]

    def test_scratchpad_resets_between_turns(self):
        """Tool results of a previous turn are not in the next prompt."""
        agent = _agent(
            [
                tool_call("check_hours", {"date": "2024-05-01"}),
                final_answer("8am"),
                final_answer("You're welcome"),
            ]
        )
        agent.run("When do you open?")
        agent.run("Thanks")

        last_prompt = agent.client.get_completion.call_args_list[2].args[1]
        assert "Tool Response" not in last_prompt

    def test_unknown_tool(self):
        """A tool missing from the registry aborts the turn."""
        agent = _agent([tool_call("book_room", {"room": "101"})])
        with pytest.raises(UnknownToolError) as exc_info:
            agent.run("Book room 101")
        assert exc_info.value.tool_name == "book_room"

    def test_tool_failure_wrapped(self):
        """Tool exceptions surface as ToolExecutionError with the cause."""

        def broken(tool_input):
            raise RuntimeError("backend down")

        agent = _agent(
            [tool_call("check_hours", {"date": "2024-05-01"})],
            registry=_registry(broken),
        )
        with pytest.raises(ToolExecutionError) as exc_info:
            agent.run("hours?")
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert agent.client.get_completion.call_count == 1

    def test_failed_tool_not_recorded(self):
        """Only successful tool calls count as actions."""

        def broken(tool_input):
            raise RuntimeError("backend down")

        agent = _agent(
            [tool_call("check_hours", {"date": "x"})], registry=_registry(broken)
        )
        with pytest.raises(ToolExecutionError):
            agent.run("hours?")
        assert agent._actions == []


class TestLoopLimits:
    """Tests for the call limit and failure modes."""

    def test_limit_exceeded_on_sixth_call(self):
        """Five tool calls without a final answer fail before a sixth call."""
        outputs = [tool_call("check_hours", {"date": f"d{i}"}) for i in range(6)]
        agent = _agent(outputs, limit=5)

        with pytest.raises(LoopLimitExceeded) as exc_info:
            agent.run("loop forever")

        assert exc_info.value.limit == 5
        assert agent.client.get_completion.call_count == 5

    def test_limit_is_configurable(self):
        """A limit of one allows exactly one call."""
        agent = _agent([tool_call("check_hours", {"date": "x"})], limit=1)
        with pytest.raises(LoopLimitExceeded):
            agent.run("hours?")
        assert agent.client.get_completion.call_count == 1

    def test_invalid_limit(self):
        """The limit must be positive."""
        with pytest.raises(ValueError):
            _agent([], limit=0)

    def test_malformed_output_raises_parse_error(self):
        """Unrepairable output aborts without a retry."""
        agent = _agent(['{"Final Answer": "oops" + ', final_answer("never used")])
        with pytest.raises(ParseError):
            agent.run("Hi")
        assert agent.client.get_completion.call_count == 1

    def test_provider_error_propagates(self):
        """Provider failures abort the turn."""
        agent = _agent([ProviderError("down")])
        with pytest.raises(ProviderError):
            agent.run("Hi")

    def test_cancelled_before_call(self):
        """A fired token stops the turn before any LLM call."""
        agent = _agent([final_answer("never")])
        token = CancellationToken()
        token.cancel()
        with pytest.raises(TurnCancelled):
            agent.run("Hi", cancel=token)
        agent.client.get_completion.assert_not_called()


class TestSummaryUsage:
    """Summarization cost joins the turn's usage."""

    def test_summary_usage_included(self):
        """Usage from memory summarization is part of the turn usage."""
        summarizer = MagicMock(spec=ConversationSummarizer)
        summarizer.summarize.return_value = (
            "earlier talk",
            TokenUsage.for_model("summary-model", 30, 10),
        )
        memory = ConversationMemory(
            MemoryConfig(capacity=6, buffer_size=1, token_limit=1), summarizer
        )
        memory.append(Role.USER, "an older question about the library")
        memory.append(Role.ASSISTANT, "an older answer")

        agent = _agent([final_answer("ok")], memory=memory)
        result = agent.run("new question")

        assert result.token_usage["summary-model"].total_tokens == 40
        assert result.token_usage["test-model"].total_tokens == 15
        user_text = agent.client.get_completion.call_args.args[1]
        assert "earlier talk\nUser: new question" in user_text


class TestTrace:
    """Tests for get_trace."""

    def test_trace_lists_steps(self):
        """Each LLM call appears as a step dict."""
        agent = _agent(
            [tool_call("check_hours", {"date": "x"}), final_answer("done")]
        )
        agent.run("hours?")

        trace = agent.get_trace()
        assert [step["step"] for step in trace] == [1, 2]
        assert trace[0]["action"] == "check_hours"
        assert trace[1]["is_final"] is True
        assert trace[1]["final_answer"] == "done"

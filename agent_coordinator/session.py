"""
Conversation sessions.

A Conversation owns one memory, one coordinator and the agents it routes
between, and processes its turns strictly one at a time. Distinct
conversations share nothing but the LLM client factory.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from .cancellation import CancellationToken
from .errors import LoopLimitExceeded, TurnCancelled
from .llm_call import LLMClientFactory
from .models import AppConfig
from .orchestration.loop import Agent
from .orchestration.memory import ConversationMemory, Role
from .orchestration.summarizer import ConversationSummarizer
from .query_router.classifier import ClassificationProvider, CohereClassifier
from .query_router.router import CentralCoordinator
from .retry import NetworkRetry
from .tools.registry import Tool, ToolRegistry
from .tools.web_search import WebSearchTool
from .tracing import TracingContext
from .usage import TokenUsage

logger = logging.getLogger(__name__)

ToolBuilder = Callable[[], Tool]


@dataclass
class TurnResult:
    """What a turn hands back to the surrounding application."""

    agent: str
    actions: list[str] = field(default_factory=list)
    response: list[str] = field(default_factory=list)
    token_usage: TokenUsage = field(default_factory=TokenUsage)

    def to_dict(self) -> dict:
        return {
            "agent": self.agent,
            "actions": list(self.actions),
            "response": list(self.response),
            "tokenUsage": self.token_usage.to_dict(),
        }


class Conversation:
    """One conversation: sequential turns over shared memory."""

    def __init__(
        self,
        memory: ConversationMemory,
        coordinator: CentralCoordinator,
        conversation_id: Optional[str] = None,
    ):
        self.memory = memory
        self.coordinator = coordinator
        self.conversation_id = conversation_id or uuid.uuid4().hex[:12]
        self._lock = threading.Lock()
        self._active: Optional[CancellationToken] = None
        self._token_usage = TokenUsage()
        self.last_agent: Optional[Agent] = None

    @property
    def token_usage(self) -> TokenUsage:
        """Usage of every turn so far, summarization included."""
        return self._token_usage

    def handle_turn(self, text: str, timeout: Optional[float] = None) -> TurnResult:
        """
        Record the user's message, route it and run the chosen agent.

        Args:
            text: The user's message.
            timeout: Seconds before the turn is cancelled; None for no limit.

        Returns:
            TurnResult of the agent that handled the turn.

        Raises:
            CoordinatorError: Whatever aborted the turn (routing failures
                never do; they fall back to the default agent).
        """
        with self._lock:
            cancel = CancellationToken(timeout)
            self._active = cancel
            turn_id = f"{self.conversation_id}-{uuid.uuid4().hex[:8]}"
            tracing = TracingContext(turn_id=turn_id, session_id=self.conversation_id)
            tracing.start_trace(user_input=text)
            status, outcome = "error", None

            try:
                self.memory.append(Role.USER, text)
                agent = self.coordinator.coordinate_agent(cancel)
                self.last_agent = agent
                tracing.set_agent(agent.name)
                logger.info("[%s] Turn handled by agent '%s'", turn_id, agent.name)

                response = agent.run(
                    text, cancel=cancel, record_input=False, tracing_context=tracing
                )
                status = "success"
            except TurnCancelled as e:
                logger.warning("[%s] Turn cancelled: %s", turn_id, e)
                status, outcome = "cancelled", str(e)
                raise
            except LoopLimitExceeded as e:
                status, outcome = "non_convergence", str(e)
                raise
            except Exception as e:
                logger.error("[%s] Turn failed: %s", turn_id, e)
                outcome = str(e)
                raise
            finally:
                self._active = None
                if status != "success":
                    tracing.end_trace(output=outcome, status=status)

            self._token_usage = self._token_usage + response.token_usage
            result = TurnResult(
                agent=agent.name,
                actions=response.actions,
                response=response.response,
                token_usage=response.token_usage,
            )
            tracing.end_trace(
                output="\n".join(result.response), usage=result.token_usage
            )
            return result

    def cancel(self, reason: str = "cancelled by caller") -> bool:
        """
        Cancel the in-flight turn, if any.

        Cancellation is cooperative. Retry waits stop at once, but an LLM,
        classifier or tool request already on the wire runs until it
        returns or hits its own timeout. The turn then raises
        TurnCancelled at the next check instead of continuing.

        Returns:
            True if a turn was running.
        """
        active = self._active
        if active is None:
            return False
        active.cancel(reason)
        return True

    def reset(self) -> None:
        """Forget the conversation so far."""
        with self._lock:
            self.memory.clear()
            self._token_usage = TokenUsage()


def default_tool_builders(
    app_config: AppConfig, retry: NetworkRetry
) -> dict[str, ToolBuilder]:
    """Tools available to agents by name."""
    return {
        WebSearchTool.name: lambda: WebSearchTool(app_config.tools.searxng, retry),
    }


def build_conversation(
    app_config: AppConfig,
    factory: LLMClientFactory,
    tool_builders: Optional[dict[str, ToolBuilder]] = None,
    classifier: Optional[ClassificationProvider] = None,
    conversation_id: Optional[str] = None,
) -> Conversation:
    """
    Wire one conversation from configuration.

    Args:
        app_config: Loaded application configuration.
        factory: Shared LLM client factory.
        tool_builders: Tool name -> constructor; defaults to the bundled tools.
        classifier: Routing classifier; defaults to Cohere.
        conversation_id: Identifier used in logs and traces.

    Returns:
        A Conversation with its own memory, agents and coordinator.

    Raises:
        ValueError: If there is no default agent or an agent names an
            unknown tool.
    """
    retry = NetworkRetry(
        max_attempts=app_config.retry.max_attempts,
        base_delay=app_config.retry.base_delay,
        max_delay=app_config.retry.max_delay,
    )
    if tool_builders is None:
        tool_builders = default_tool_builders(app_config, retry)

    memory_config = app_config.memory
    summarizer = ConversationSummarizer(
        factory.get(memory_config.summary_model),
        max_chars=memory_config.max_summary_chars,
    )
    memory = ConversationMemory(memory_config, summarizer)

    default_config = app_config.default_agent
    if default_config is None:
        raise ValueError("No default agent configured")

    agents: list[Agent] = []
    default_agent: Optional[Agent] = None
    for agent_config in app_config.agents:
        registry = ToolRegistry()
        for tool_name in agent_config.tools:
            builder = tool_builders.get(tool_name)
            if builder is None:
                raise ValueError(
                    f"Agent '{agent_config.name}' uses unknown tool '{tool_name}'"
                )
            registry.register(builder())

        agent = Agent(
            name=agent_config.name,
            client=factory.get(agent_config.model),
            registry=registry,
            memory=memory,
            llm_call_limit=agent_config.llm_call_limit,
            description=agent_config.description or None,
        )
        agents.append(agent)
        if agent_config is default_config:
            default_agent = agent

    assert default_agent is not None
    coordinator = CentralCoordinator(
        memory=memory,
        default_agent=default_agent,
        agents=agents,
        classifier=classifier or CohereClassifier(app_config.classifier),
        routing=app_config.routing,
        retry=retry,
    )
    for agent_config in app_config.agents:
        if agent_config.examples:
            coordinator.add_agent(agent_config.name, agent_config.examples)

    logger.debug(
        "Built conversation with agents %s (default '%s')",
        [agent.name for agent in agents],
        default_agent.name,
    )
    return Conversation(memory, coordinator, conversation_id)

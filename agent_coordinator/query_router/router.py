"""
Central Coordinator - topic-based routing between agents.

Classifies the most recent part of the conversation against example
utterances of each agent and picks the agent the conversation is about.
The narrowest window (the latest message alone) is tried first; the
window only widens while the signal is ambiguous. When nothing clears
the confidence threshold the default agent handles the turn.
"""

import logging
from typing import TYPE_CHECKING, Optional

from ..cancellation import CancellationToken
from ..errors import (
    ClassificationError,
    TurnCancelled,
    UnknownAgentError,
)
from ..models import RoutingConfig
from ..orchestration.memory import ConversationMemory
from ..retry import NetworkRetry
from .classifier import ClassificationExample, ClassificationProvider

if TYPE_CHECKING:
    from ..orchestration.loop import Agent

logger = logging.getLogger(__name__)


class CentralCoordinator:
    """
    Picks which agent handles the current turn.

    Routing state (agents, examples) belongs to one conversation and is
    never shared across conversations.
    """

    def __init__(
        self,
        memory: ConversationMemory,
        default_agent: "Agent",
        agents: list["Agent"],
        classifier: ClassificationProvider,
        routing: Optional[RoutingConfig] = None,
        retry: Optional[NetworkRetry] = None,
    ):
        self.memory = memory
        self.default_agent = default_agent
        self.classifier = classifier
        self.routing = routing or RoutingConfig()
        self.retry = retry or NetworkRetry()
        self._agents: dict[str, "Agent"] = {agent.name: agent for agent in agents}
        self._examples: list[ClassificationExample] = []

    def add_agent(self, label: str, examples: list[str]) -> None:
        """
        Register example utterances for an agent.

        Raises:
            UnknownAgentError: If no agent was registered under ``label``.
        """
        if label not in self._agents:
            raise UnknownAgentError(label)
        self._examples.extend(
            ClassificationExample(text=text, label=label) for text in examples
        )
        logger.debug("Added %d examples for agent '%s'", len(examples), label)

    def agent_names(self) -> list[str]:
        return list(self._agents)

    def get_agent(self, name: str) -> Optional["Agent"]:
        if name == self.default_agent.name:
            return self.default_agent
        return self._agents.get(name)

    @property
    def examples(self) -> list[ClassificationExample]:
        return list(self._examples)

    def classify(
        self, text: str, cancel: Optional[CancellationToken] = None
    ) -> dict["Agent", float]:
        """
        Score a text against every registered agent.

        Args:
            text: Text to classify.
            cancel: Token aborting the call and its retries.

        Returns:
            Agent -> confidence. Labels without a registered agent are
            dropped.

        Raises:
            ClassificationError: If the call fails or the response is unusable.
            TurnCancelled: If the token fires.
        """
        cancel = cancel or CancellationToken.none()

        def attempt() -> list[dict[str, float]]:
            return self.classifier.classify(
                self.routing.classifier_model,
                [text],
                self._examples,
                timeout=cancel.remaining(),
            )

        try:
            results = self.retry.call(
                attempt,
                cancel=cancel,
                fatal=(ClassificationError,),
                description="classification",
            )
        except (TurnCancelled, ClassificationError):
            raise
        except Exception as e:
            raise ClassificationError(f"Classification call failed: {e}") from e

        if not results:
            raise ClassificationError("Classification returned no results")

        scores: dict["Agent", float] = {}
        for label, confidence in results[0].items():
            agent = self._agents.get(label)
            if agent is None:
                logger.debug("Ignoring unknown classification label '%s'", label)
                continue
            scores[agent] = confidence
        return scores

    def coordinate_agent(self, cancel: Optional[CancellationToken] = None) -> "Agent":
        """
        Choose the agent for the current conversation state.

        Reads memory without summarizing, so repeated calls on an unchanged
        conversation give the same answer for a deterministic classifier.
        Routing failures never abort the turn; they fall back to the
        default agent.

        Raises:
            TurnCancelled: If the token fires.
        """
        if not self._examples or len(self.memory) == 0:
            return self.default_agent

        try:
            return self._select_agent(cancel)
        except ClassificationError as e:
            logger.warning(
                "Routing failed, falling back to default agent '%s': %s",
                self.default_agent.name,
                e,
            )
            return self.default_agent

    def _select_agent(self, cancel: Optional[CancellationToken]) -> "Agent":
        threshold = self.routing.confidence_threshold
        margin = self.routing.margin
        widest = min(self.routing.max_window, len(self.memory))
        best: Optional["Agent"] = None

        for start in range(-1, -widest - 1, -1):
            window = self.memory.render(start, -1, summarize=False).text
            scores = self.classify(window, cancel)
            if not scores:
                continue

            ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
            top_agent, top = ranked[0]
            runner_up = ranked[1][1] if len(ranked) > 1 else 0.0

            if top >= threshold:
                best = top_agent
                if top - runner_up > margin:
                    logger.info(
                        "Routed to '%s' (%.2f vs %.2f) on a %d-message window",
                        top_agent.name,
                        top,
                        runner_up,
                        -start,
                    )
                    return top_agent
            logger.debug(
                "Ambiguous routing on a %d-message window: %s (%.2f vs %.2f)",
                -start,
                top_agent.name,
                top,
                runner_up,
            )

        if best is not None:
            logger.info("Routed to '%s' without a clear margin", best.name)
            return best
        logger.info("No confident route, using default agent '%s'", self.default_agent.name)
        return self.default_agent

"""Tests for topic routing between agents."""

from unittest.mock import MagicMock

import pytest
import requests

from agent_coordinator.cancellation import CancellationToken
from agent_coordinator.errors import (
    ClassificationError,
    TurnCancelled,
    UnknownAgentError,
)
from agent_coordinator.models import ClassifierConfig, MemoryConfig, RoutingConfig
from agent_coordinator.orchestration.memory import ConversationMemory, Role
from agent_coordinator.query_router import (
    CentralCoordinator,
    ClassificationExample,
    CohereClassifier,
)
from agent_coordinator.retry import NetworkRetry


def _agent(name: str) -> MagicMock:
    agent = MagicMock()
    agent.name = name
    return agent


@pytest.fixture
def agents():
    return {name: _agent(name) for name in ("general", "A", "B")}


@pytest.fixture
def conversation_memory():
    memory = ConversationMemory(MemoryConfig(capacity=10))
    memory.append(Role.USER, "I need books about birds")
    memory.append(Role.ASSISTANT, "Sure, which kind?")
    memory.append(Role.USER, "Parrots please")
    return memory


def _coordinator(memory, agents, responses, with_examples=True):
    classifier = MagicMock()
    classifier.classify.side_effect = responses
    coordinator = CentralCoordinator(
        memory=memory,
        default_agent=agents["general"],
        agents=[agents["A"], agents["B"]],
        classifier=classifier,
        routing=RoutingConfig(confidence_threshold=0.85, margin=0.1, max_window=3),
        retry=NetworkRetry(max_attempts=3, base_delay=0.0, max_delay=0.0),
    )
    if with_examples:
        coordinator.add_agent("A", ["find me a book"])
        coordinator.add_agent("B", ["cite this website"])
    return coordinator


class TestAddAgent:
    """Tests for example registration."""

    def test_examples_recorded(self, conversation_memory, agents):
        """Examples are stored with their label."""
        coordinator = _coordinator(conversation_memory, agents, [])
        assert coordinator.examples == [
            ClassificationExample("find me a book", "A"),
            ClassificationExample("cite this website", "B"),
        ]

    def test_unknown_label(self, conversation_memory, agents):
        """Examples for an unregistered agent are rejected."""
        coordinator = _coordinator(conversation_memory, agents, [])
        with pytest.raises(UnknownAgentError) as exc_info:
            coordinator.add_agent("C", ["anything"])
        assert "Does not exist agent with name C" in str(exc_info.value)


class TestCoordinateAgent:
    """Tests for agent selection."""

    def test_clear_winner_on_latest_message(self, conversation_memory, agents):
        """A confident, well separated score is accepted at once."""
        coordinator = _coordinator(
            conversation_memory, agents, [[{"A": 0.95, "B": 0.80}]]
        )

        assert coordinator.coordinate_agent() is agents["A"]
        assert coordinator.classifier.classify.call_count == 1
        inputs = coordinator.classifier.classify.call_args.args[1]
        assert inputs == ["User: Parrots please"]

    def test_ambiguous_widens_window(self, conversation_memory, agents):
        """A narrow margin widens the window up to the maximum."""
        coordinator = _coordinator(
            conversation_memory,
            agents,
            [[{"A": 0.86, "B": 0.84}]] * 3,
        )

        assert coordinator.coordinate_agent() is agents["A"]
        calls = coordinator.classifier.classify.call_args_list
        assert len(calls) == 3
        assert calls[2].args[1] == [
            "User: I need books about birds\n"
            "Assistant: Sure, which kind?\n"
            "User: Parrots please"
        ]

    def test_wider_window_breaks_tie(self, conversation_memory, agents):
        """A wider window that separates the scores decides."""
        coordinator = _coordinator(
            conversation_memory,
            agents,
            [[{"A": 0.86, "B": 0.84}], [{"A": 0.30, "B": 0.92}]],
        )
        assert coordinator.coordinate_agent() is agents["B"]
        assert coordinator.classifier.classify.call_count == 2

    def test_below_threshold_uses_default(self, conversation_memory, agents):
        """Nothing confident in any window falls back to the default."""
        coordinator = _coordinator(
            conversation_memory, agents, [[{"A": 0.5, "B": 0.4}]] * 3
        )
        assert coordinator.coordinate_agent() is agents["general"]

    def test_window_limited_by_memory(self, agents):
        """The window never grows past the stored messages."""
        memory = ConversationMemory(MemoryConfig(capacity=10))
        memory.append(Role.USER, "hello")
        coordinator = _coordinator(memory, agents, [[{"A": 0.5, "B": 0.4}]])

        assert coordinator.coordinate_agent() is agents["general"]
        assert coordinator.classifier.classify.call_count == 1

    def test_single_candidate(self, conversation_memory, agents):
        """A lone label is compared against a zero runner-up."""
        coordinator = _coordinator(conversation_memory, agents, [[{"B": 0.9}]])
        assert coordinator.coordinate_agent() is agents["B"]

    def test_unknown_labels_ignored(self, conversation_memory, agents):
        """Labels without an agent are dropped from the scores."""
        coordinator = _coordinator(
            conversation_memory, agents, [[{"ghost": 0.99, "A": 0.9, "B": 0.1}]]
        )
        assert coordinator.coordinate_agent() is agents["A"]

    def test_no_examples(self, conversation_memory, agents):
        """Without examples the default agent is used, no call made."""
        coordinator = _coordinator(
            conversation_memory, agents, [], with_examples=False
        )
        assert coordinator.coordinate_agent() is agents["general"]
        coordinator.classifier.classify.assert_not_called()

    def test_empty_memory(self, agents):
        """An empty conversation goes to the default agent."""
        coordinator = _coordinator(ConversationMemory(), agents, [])
        assert coordinator.coordinate_agent() is agents["general"]
        coordinator.classifier.classify.assert_not_called()

    def test_idempotent(self, conversation_memory, agents):
        """Same conversation, same classifier output, same agent."""
        coordinator = _coordinator(
            conversation_memory, agents, [[{"A": 0.95, "B": 0.1}]] * 2
        )
        assert coordinator.coordinate_agent() is coordinator.coordinate_agent()

    def test_does_not_touch_memory(self, conversation_memory, agents):
        """Routing never appends or summarizes."""
        coordinator = _coordinator(
            conversation_memory, agents, [[{"A": 0.95, "B": 0.1}]]
        )
        coordinator.coordinate_agent()
        assert len(conversation_memory) == 3
        assert conversation_memory.summary is None

    def test_classification_error_falls_back(self, conversation_memory, agents):
        """An unusable classifier response routes to the default agent."""
        coordinator = _coordinator(
            conversation_memory, agents, ClassificationError("bad shape")
        )
        assert coordinator.coordinate_agent() is agents["general"]
        assert coordinator.classifier.classify.call_count == 1

    def test_network_errors_retried(self, conversation_memory, agents):
        """Transient failures are retried before giving up."""
        coordinator = _coordinator(
            conversation_memory,
            agents,
            [
                requests.ConnectionError("reset"),
                [{"A": 0.95, "B": 0.1}],
            ],
        )
        assert coordinator.coordinate_agent() is agents["A"]
        assert coordinator.classifier.classify.call_count == 2

    def test_retries_exhausted_falls_back(self, conversation_memory, agents):
        """Exhausted retries fall back to the default agent."""
        coordinator = _coordinator(
            conversation_memory, agents, requests.ConnectionError("down")
        )
        assert coordinator.coordinate_agent() is agents["general"]
        assert coordinator.classifier.classify.call_count == 3

    def test_cancellation_propagates(self, conversation_memory, agents):
        """A fired token is not swallowed by the fallback."""
        coordinator = _coordinator(conversation_memory, agents, [])
        token = CancellationToken()
        token.cancel()
        with pytest.raises(TurnCancelled):
            coordinator.coordinate_agent(token)


class TestCohereClassifier:
    """Tests for the HTTP classification provider."""

    def _response(self, payload):
        response = MagicMock()
        response.json.return_value = payload
        response.raise_for_status.return_value = None
        return response

    def test_request_and_parsing(self):
        """Payload, headers and confidences round through the endpoint."""
        session = MagicMock()
        session.post.return_value = self._response(
            {
                "classifications": [
                    {
                        "input": "hi",
                        "prediction": "A",
                        "labels": {"A": {"confidence": 0.9}, "B": {"confidence": 0.1}},
                    }
                ]
            }
        )
        classifier = CohereClassifier(
            ClassifierConfig(url="https://classify.test", api_key="key", timeout=5),
            session=session,
        )

        result = classifier.classify(
            "embed-english-v2.0", ["hi"], [ClassificationExample("hello", "A")]
        )

        assert result == [{"A": 0.9, "B": 0.1}]
        args, kwargs = session.post.call_args
        assert args[0] == "https://classify.test"
        assert kwargs["json"] == {
            "model": "embed-english-v2.0",
            "inputs": ["hi"],
            "examples": [{"text": "hello", "label": "A"}],
        }
        assert kwargs["headers"]["Authorization"] == "Bearer key"
        assert kwargs["timeout"] == 5

    def test_timeout_capped_by_config(self):
        """A shorter remaining time wins over the configured timeout."""
        session = MagicMock()
        session.post.return_value = self._response(
            {"classifications": [{"labels": {}}]}
        )
        classifier = CohereClassifier(ClassifierConfig(timeout=30), session=session)

        classifier.classify("m", ["x"], [], timeout=2.5)

        assert session.post.call_args.kwargs["timeout"] == 2.5

    def test_malformed_response(self):
        """A response with the wrong shape raises ClassificationError."""
        session = MagicMock()
        session.post.return_value = self._response({"unexpected": True})
        classifier = CohereClassifier(session=session)

        with pytest.raises(ClassificationError):
            classifier.classify("m", ["x"], [])

    def test_count_mismatch(self):
        """One classification per input is required."""
        session = MagicMock()
        session.post.return_value = self._response({"classifications": []})
        classifier = CohereClassifier(session=session)

        with pytest.raises(ClassificationError):
            classifier.classify("m", ["x"], [])

    def test_http_error_propagates(self):
        """HTTP failures surface as requests exceptions for the retry."""
        session = MagicMock()
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("503")
        session.post.return_value = response
        classifier = CohereClassifier(session=session)

        with pytest.raises(requests.HTTPError):
            classifier.classify("m", ["x"], [])

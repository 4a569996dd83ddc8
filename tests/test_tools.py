"""
Tests for the web search tool.

Network calls are mocked via the tool's requests session.
"""

from unittest.mock import MagicMock, Mock

import pytest
import requests

from agent_coordinator.errors import ToolExecutionError
from agent_coordinator.models import SearxngConfig
from agent_coordinator.retry import NetworkRetry
from agent_coordinator.tools import WebSearchTool


def _response(payload) -> Mock:
    response = Mock()
    response.raise_for_status = Mock()
    response.json = Mock(return_value=payload)
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def tool(session):
    return WebSearchTool(
        SearxngConfig(url="http://searx.test/search", timeout=5),
        retry=NetworkRetry(max_attempts=2, base_delay=0.0, max_delay=0.0),
        session=session,
    )


class TestWebSearchTool:
    """Tests for WebSearchTool.run."""

    def test_formats_results(self, tool, session):
        """Results are formatted for the model."""
        session.get.return_value = _response(
            {
                "query": "python",
                "results": [
                    {"title": "Python", "url": "https://python.org", "content": "The language"},
                ],
            }
        )

        result = tool.run({"query": "python"})

        assert "Search results for 'python'" in result
        assert "1. Python" in result
        assert "URL: https://python.org" in result
        params = session.get.call_args.kwargs["params"]
        assert params == {"q": "python", "format": "json"}

    def test_limits_results(self, tool, session):
        """num_results caps the number of hits."""
        hits = [{"title": f"T{i}", "url": f"https://x/{i}"} for i in range(10)]
        session.get.return_value = _response({"results": hits})

        result = tool.run({"query": "x", "num_results": 2})

        assert "2. T1" in result
        assert "3. T2" not in result

    def test_no_results(self, tool, session):
        """An empty result list is reported plainly."""
        session.get.return_value = _response({"results": []})
        assert tool.run({"query": "nothing"}) == "No results found."

    def test_empty_query_rejected(self, tool, session):
        """An empty query raises without a network call."""
        with pytest.raises(ToolExecutionError, match="empty"):
            tool.run({"query": "  "})
        session.get.assert_not_called()

    @pytest.mark.parametrize("count", [0, -3, "-1"])
    def test_non_positive_num_results_rejected(self, tool, session, count):
        """num_results below one raises without a network call."""
        with pytest.raises(ToolExecutionError, match="at least 1"):
            tool.run({"query": "python", "num_results": count})
        session.get.assert_not_called()

    def test_malformed_response(self, tool, session):
        """A response without results raises ToolExecutionError."""
        session.get.return_value = _response({"unexpected": True})
        with pytest.raises(ToolExecutionError, match="malformed"):
            tool.run({"query": "python"})

    def test_network_failure_retried_then_raised(self, tool, session):
        """Network errors are retried, then wrapped."""
        session.get.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(ToolExecutionError, match="refused"):
            tool.run({"query": "python"})
        assert session.get.call_count == 2

    def test_categories_forwarded(self, tool, session):
        """The optional category is passed to SearXNG."""
        session.get.return_value = _response({"results": []})
        tool.run({"query": "python", "categories": "news"})
        assert session.get.call_args.kwargs["params"]["categories"] == "news"

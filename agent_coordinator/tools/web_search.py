"""
SearXNG Web Search Tool

Provides web search capabilities via a SearXNG instance.
"""

import logging
from typing import Optional

import requests
from pydantic import BaseModel, ValidationError

from ..cancellation import CancellationToken
from ..errors import ToolExecutionError, TurnCancelled
from ..models import SearxngConfig
from ..retry import NetworkRetry
from .registry import Tool

logger = logging.getLogger(__name__)


class SearchHit(BaseModel):
    """One result entry of the SearXNG JSON API."""

    title: str = ""
    url: str
    content: Optional[str] = ""
    engine: Optional[str] = ""


class SearchResponse(BaseModel):
    """Top level of the SearXNG JSON API response."""

    query: str = ""
    results: list[SearchHit]


def format_results_for_llm(query: str, hits: list[SearchHit]) -> str:
    """
    Format search results into a string suitable for LLM consumption.

    Args:
        query: The query that was searched
        hits: Validated search results

    Returns:
        Formatted string of search results
    """
    if not hits:
        return "No results found."

    formatted = f"Search results for '{query}':\n\n"
    for i, hit in enumerate(hits, 1):
        formatted += f"{i}. {hit.title}\n"
        formatted += f"   URL: {hit.url}\n"
        if hit.content:
            formatted += f"   {hit.content[:200]}...\n"
        formatted += "\n"
    return formatted


class WebSearchTool(Tool):
    """Search the web through a SearXNG instance."""

    name = "web_search"
    description = "Search the web for current information"
    parameters = {
        "query": "search query, a non-empty string",
        "categories": "optional category (general, images, news)",
        "num_results": "optional max results to return (default 5)",
    }

    def __init__(
        self,
        config: Optional[SearxngConfig] = None,
        retry: Optional[NetworkRetry] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or SearxngConfig()
        self.retry = retry or NetworkRetry()
        self.session = session or requests.Session()

    def run(
        self, tool_input: dict, cancel: Optional[CancellationToken] = None
    ) -> str:
        cancel = cancel or CancellationToken.none()

        query = str(tool_input.get("query") or "").strip()
        if not query:
            raise ToolExecutionError(
                self.name,
                'Search query is empty. Expected input: {"query": "your search terms"}',
            )
        raw_count = tool_input.get("num_results")
        try:
            num_results = 5 if raw_count in (None, "") else int(raw_count)
        except (TypeError, ValueError):
            raise ToolExecutionError(self.name, "num_results must be an integer")
        if num_results < 1:
            raise ToolExecutionError(self.name, "num_results must be at least 1")

        params = {"q": query, "format": "json"}
        if tool_input.get("categories"):
            params["categories"] = tool_input["categories"]

        def attempt() -> dict:
            timeout = cancel.remaining()
            if timeout is None or timeout > self.config.timeout:
                timeout = self.config.timeout
            response = self.session.get(
                self.config.url, params=params, timeout=timeout
            )
            response.raise_for_status()
            return response.json()

        try:
            data = self.retry.call(
                attempt, cancel=cancel, description=f"web search '{query}'"
            )
        except TurnCancelled:
            raise
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Search failed: {e}")
            raise ToolExecutionError(self.name, str(e)) from e

        try:
            parsed = SearchResponse.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed search response: {e}")
            raise ToolExecutionError(
                self.name, "search provider returned a malformed response"
            ) from e

        hits = parsed.results[:num_results]
        logger.debug(f"Search '{query}' returned {len(hits)} results")
        return format_results_for_llm(query, hits)

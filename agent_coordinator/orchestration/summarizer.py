"""
Conversation summarizer for memory compaction.

Condenses the older part of a conversation into a short summary once it
no longer fits the memory token budget.
"""

import logging
from typing import TYPE_CHECKING, Optional

from ..cancellation import CancellationToken
from ..usage import TokenUsage

if TYPE_CHECKING:
    from ..llm_call import LLMClient

logger = logging.getLogger(__name__)

MAX_SUMMARY_CHARS = 1600

SUMMARIZATION_PROMPT = (
    "You are trying to shorten the following conversation by summarizing it. "
    "Include any vital details like email, name, code, date, etc in the summary.\n"
)


class ConversationSummarizer:
    """
    Summarizes a rendered transcript with one LLM call.

    The returned summary is capped at ``max_chars`` so the cached summary
    cannot keep growing across resummarizations.
    """

    def __init__(self, client: "LLMClient", max_chars: int = MAX_SUMMARY_CHARS):
        self._client = client
        self._max_chars = max_chars

    @property
    def model(self) -> str:
        return self._client.model

    def summarize(
        self, transcript: str, cancel: Optional[CancellationToken] = None
    ) -> tuple[str, TokenUsage]:
        """
        Summarize a transcript.

        Args:
            transcript: Newline-joined ``Role: text`` lines.
            cancel: Token aborting the completion call.

        Returns:
            Tuple of (summary, usage of the summarization call).

        Raises:
            ProviderError: If the completion call fails.
        """
        completion = self._client.get_completion(
            SUMMARIZATION_PROMPT, transcript, cancel=cancel
        )
        summary = self._ensure_length(completion.text.strip())
        logger.debug(
            "Summarized %d chars of conversation into %d chars",
            len(transcript),
            len(summary),
        )
        return summary, completion.usage

    def _ensure_length(self, summary: str) -> str:
        """Ensure summary is within length limits."""
        if len(summary) <= self._max_chars:
            return summary

        # Truncate at word boundary
        truncated = summary[: self._max_chars]
        last_space = truncated.rfind(" ")
        if last_space > self._max_chars // 2:
            truncated = truncated[:last_space]

        return truncated + "..."

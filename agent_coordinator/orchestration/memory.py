"""
Conversation memory with token-budgeted summarization.

Holds a bounded FIFO of conversation messages. Reads render an inclusive,
slice-style index range as ``Role: text`` lines. A summarizing read keeps
the newest ``buffer_size`` messages verbatim and, once the older part of
the range outgrows the token budget, replaces that part with an LLM
summary. A cooldown limits how often the summary is regenerated.
"""

import enum
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from ..cancellation import CancellationToken
from ..errors import ConstraintError, MemoryRangeError
from ..models import MemoryConfig
from ..usage import TokenUsage
from .summarizer import ConversationSummarizer

logger = logging.getLogger(__name__)

# Rough approximation: 1 token ~ 4 characters.
CHARS_PER_TOKEN = 4


class Role(str, enum.Enum):
    """Speaker of a message; the value is the transcript label."""

    USER = "User"
    ASSISTANT = "Assistant"


@dataclass(frozen=True)
class Message:
    """A single conversation entry. Immutable once appended."""

    role: Role
    text: str

    def render(self) -> str:
        return f"{self.role.value}: {self.text}"


@dataclass(frozen=True)
class Transcript:
    """Rendered conversation text plus the tokens spent producing it."""

    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)


def render_messages(messages: list[Message]) -> str:
    """Join messages as ``Role: text`` lines, oldest first."""
    return "\n".join(message.render() for message in messages)


def estimate_tokens(text: str) -> int:
    """Estimate token count from character length."""
    return len(text) // CHARS_PER_TOKEN


class ConversationBuffer:
    """Fixed-capacity FIFO of messages."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._messages: deque[Message] = deque(maxlen=capacity)

    def append(self, message: Message) -> Optional[Message]:
        """
        Append a message, evicting the oldest one when full.

        Returns:
            The evicted message, or None if nothing was evicted.
        """
        evicted = None
        if len(self._messages) == self.capacity:
            evicted = self._messages[0]
        self._messages.append(message)
        return evicted

    def snapshot(self) -> list[Message]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]


class ConversationMemory:
    """
    Rolling memory for one conversation.

    Not safe for concurrent turns; the owning conversation serializes
    access.
    """

    def __init__(
        self,
        config: Optional[MemoryConfig] = None,
        summarizer: Optional[ConversationSummarizer] = None,
    ):
        self.config = config or MemoryConfig()
        self._summarizer = summarizer
        self._buffer = ConversationBuffer(self.config.capacity)
        self._summary: Optional[str] = None
        self._token_usage = TokenUsage()
        self.message_count = 0
        # Start out cooled down so the first summarization may run at once
        self.appends_since_summary = self.config.summary_cooldown

        if self.config.token_limit is not None and summarizer is None:
            logger.warning(
                "Memory has a token limit but no summarizer; "
                "history will always be rendered verbatim"
            )

    @property
    def summary(self) -> Optional[str]:
        """The cached summary, if any summarization has happened."""
        return self._summary

    @property
    def token_usage(self) -> TokenUsage:
        """Cumulative usage of every summarization call."""
        return self._token_usage

    def append(self, role: Role, text: str) -> Message:
        """Append a message, evicting the oldest when at capacity."""
        message = Message(role=Role(role), text=text)
        evicted = self._buffer.append(message)
        if evicted is not None:
            logger.debug("Evicted oldest message from memory: %s", evicted.role.value)
        self.message_count += 1
        self.appends_since_summary += 1
        return message

    def messages(self) -> list[Message]:
        """Copy of the stored messages, oldest first."""
        return self._buffer.snapshot()

    def clear(self) -> None:
        """Forget every message and the cached summary."""
        self._buffer.clear()
        self._summary = None
        self.appends_since_summary = self.config.summary_cooldown

    def __len__(self) -> int:
        return len(self._buffer)

    def _normalize(self, index: int) -> int:
        size = len(self._buffer)
        if not -size <= index < size:
            raise MemoryRangeError(
                f"Index {index} out of range for memory of {size} messages"
            )
        return index if index >= 0 else size + index

    def render(
        self,
        start: int = 0,
        end: int = -1,
        summarize: bool = False,
        cancel: Optional[CancellationToken] = None,
    ) -> Transcript:
        """
        Render messages ``start`` through ``end`` (inclusive) as text.

        Negative indices count from the newest message.

        Args:
            start: First message index.
            end: Last message index; must be the newest when summarizing.
            summarize: Allow older history to be replaced by a summary.
            cancel: Token aborting a summarization call.

        Returns:
            Transcript with the text and the usage of any summarization.

        Raises:
            MemoryRangeError: If either index is out of range.
            ConstraintError: If summarizing and ``end`` is not the newest.
            ProviderError: If a summarization call fails.
        """
        first = self._normalize(start)
        last = self._normalize(end)

        if summarize and last != len(self._buffer) - 1:
            raise ConstraintError(
                "A summarizing render must end at the newest message"
            )
        if first > last:
            return Transcript("")

        selected = self._buffer.snapshot()[first : last + 1]
        if not summarize:
            return Transcript(render_messages(selected))
        return self._render_summarized(selected, cancel)

    def _render_summarized(
        self, selected: list[Message], cancel: Optional[CancellationToken]
    ) -> Transcript:
        recent_count = min(self.config.buffer_size, len(selected))
        stale = selected[: len(selected) - recent_count]
        recent = selected[len(selected) - recent_count :]

        stale_text = render_messages(stale)
        if (
            not stale
            or self._summarizer is None
            or self.config.token_limit is None
            or estimate_tokens(stale_text) < self.config.token_limit
        ):
            return Transcript(render_messages(selected))

        usage = TokenUsage()
        if (
            self._summary is None
            or self.appends_since_summary >= self.config.summary_cooldown
        ):
            self._summary, usage = self._summarizer.summarize(stale_text, cancel)
            self._token_usage = self._token_usage + usage
            self.appends_since_summary = 0
            logger.info(
                "Summarized %d older messages (~%d tokens)",
                len(stale),
                estimate_tokens(stale_text),
            )
        else:
            logger.debug(
                "Reusing cached summary, cooldown at %d/%d",
                self.appends_since_summary,
                self.config.summary_cooldown,
            )
            # The cached summary stops where it was taken; everything
            # appended since then stays verbatim alongside the buffer.
            kept = min(
                len(selected), self.config.buffer_size + self.appends_since_summary
            )
            recent = selected[len(selected) - kept :]

        parts = [self._summary]
        if recent:
            parts.append(render_messages(recent))
        return Transcript("\n".join(parts), usage)

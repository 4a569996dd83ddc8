"""
Configuration models for the agent coordinator.

Defines dataclasses for the unified YAML configuration file.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ModelSettings:
    """
    Sampling settings for one chat-completion model.

    Frozen and hashable: value-equal settings share one client.
    """
    model: str = "gpt-3.5-turbo"
    temperature: float = 0.0
    top_p: float = 0.1
    max_tokens: Optional[int] = None


@dataclass
class OpenAIConfig:
    """Connection details for the chat-completion provider."""
    base_url: str = ""
    api_key: str = ""
    organization: str = ""
    timeout: float = 60.0


@dataclass
class RetryConfig:
    """Bounded retry settings shared by every network boundary."""
    max_attempts: int = 5
    base_delay: float = 0.5
    max_delay: float = 8.0


@dataclass
class MemoryConfig:
    """
    Conversation memory settings.

    capacity: messages kept before FIFO eviction.
    buffer_size: newest messages that are never summarized.
    token_limit: estimated tokens of older history that trigger
        summarization (None disables summarization).
    summary_cooldown: appends required between two summarizations.
    max_summary_chars: hard cap on the cached summary length.
    """
    capacity: int = 6
    buffer_size: int = 3
    token_limit: Optional[int] = None
    summary_cooldown: int = 1
    max_summary_chars: int = 1600
    summary_model: ModelSettings = field(default_factory=ModelSettings)

    def __post_init__(self):
        if self.capacity < 1:
            raise ValueError("memory capacity must be at least 1")
        if self.buffer_size < 0:
            raise ValueError("memory buffer_size must be non-negative")
        if self.summary_cooldown < 0:
            raise ValueError("memory summary_cooldown must be non-negative")
        if self.token_limit is not None and self.token_limit < 0:
            raise ValueError("memory token_limit must be non-negative")
        if self.max_summary_chars < 1:
            raise ValueError("memory max_summary_chars must be positive")


@dataclass
class RoutingConfig:
    """
    Topic routing thresholds.

    The defaults carry over from the first deployment and have no
    empirical tuning behind them; override per deployment.
    """
    confidence_threshold: float = 0.85
    margin: float = 0.1
    max_window: int = 3
    classifier_model: str = "embed-english-v2.0"

    def __post_init__(self):
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be within [0, 1]")
        if not 0.0 <= self.margin <= 1.0:
            raise ValueError("margin must be within [0, 1]")
        if self.max_window < 1:
            raise ValueError("max_window must be at least 1")


@dataclass
class ClassifierConfig:
    """Endpoint for the few-shot classification provider."""
    url: str = "https://api.cohere.ai/v1/classify"
    api_key: str = ""
    timeout: float = 30.0


@dataclass
class SearxngConfig:
    """Configuration for the SearXNG web search tool."""
    url: str = "http://localhost:8080/search"
    timeout: int = 30


@dataclass
class ToolsConfig:
    """Configuration for tool endpoints."""
    searxng: SearxngConfig = field(default_factory=SearxngConfig)


@dataclass
class AgentConfig:
    """One specialized assistant and the utterances that route to it."""
    name: str
    description: str = ""
    model: ModelSettings = field(default_factory=ModelSettings)
    llm_call_limit: int = 5
    tools: list[str] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    default: bool = False


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    enabled: bool = False
    public_key: str = ""
    secret_key: str = ""
    host: str = "https://cloud.langfuse.com"
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        """Check if Langfuse is configured (both keys present)."""
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """
    Unified application configuration container.

    Holds all configuration sections loaded from config/config.yaml.
    """
    version: str = "1.0"
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)
    agents: list[AgentConfig] = field(default_factory=list)

    @property
    def default_agent(self) -> Optional[AgentConfig]:
        """The agent used when routing finds no confident match."""
        for agent in self.agents:
            if agent.default:
                return agent
        return None

    @property
    def log_level(self) -> str:
        """Shortcut for logging.level."""
        return self.logging.level

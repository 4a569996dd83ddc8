"""
Data models for the agent coordinator.
"""

from .config import (
    ModelSettings,
    OpenAIConfig,
    RetryConfig,
    MemoryConfig,
    RoutingConfig,
    ClassifierConfig,
    SearxngConfig,
    ToolsConfig,
    AgentConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)

__all__ = [
    "ModelSettings",
    "OpenAIConfig",
    "RetryConfig",
    "MemoryConfig",
    "RoutingConfig",
    "ClassifierConfig",
    "SearxngConfig",
    "ToolsConfig",
    "AgentConfig",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
]

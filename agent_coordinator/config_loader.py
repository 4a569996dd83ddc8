"""
Configuration loader for the agent coordinator.

Loads configuration from YAML files with support for
environment variable interpolation.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .config import config as env_config
from .models import (
    AgentConfig,
    AppConfig,
    ClassifierConfig,
    LangfuseConfig,
    LoggingConfig,
    MemoryConfig,
    ModelSettings,
    OpenAIConfig,
    RetryConfig,
    RoutingConfig,
    SearxngConfig,
    ToolsConfig,
)

logger = logging.getLogger(__name__)

# Default config path relative to project root
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Singleton cache for app config
_app_config: Optional[AppConfig] = None


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with env vars resolved
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """
    Recursively substitute environment variables in a data structure.

    Args:
        data: Any data structure (dict, list, str, etc.)

    Returns:
        Data structure with env vars resolved
    """
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _parse_bool(value: Any, default: bool = False) -> bool:
    """Accept YAML booleans and 'true'/'false' strings from env interpolation."""
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _parse_optional_int(value: Any) -> Optional[int]:
    """Parse an int that may be absent or an empty interpolated string."""
    if value is None or value == "":
        return None
    return int(value)


def _parse_model_settings(data: Any) -> ModelSettings:
    """Parse model settings; a bare string is taken as the model name."""
    if isinstance(data, str):
        return ModelSettings(model=data)
    data = data or {}
    return ModelSettings(
        model=data.get("model", "gpt-3.5-turbo"),
        temperature=float(data.get("temperature", 0.0)),
        top_p=float(data.get("top_p", 0.1)),
        max_tokens=_parse_optional_int(data.get("max_tokens")),
    )


def _parse_openai_config(data: dict) -> OpenAIConfig:
    """Parse provider connection, falling back to environment credentials."""
    return OpenAIConfig(
        base_url=data.get("base_url") or env_config.openai.base_url,
        api_key=data.get("api_key") or env_config.openai.api_key,
        organization=data.get("organization") or env_config.openai.organization,
        timeout=float(data.get("timeout", 60.0)),
    )


def _parse_retry_config(data: dict) -> RetryConfig:
    """Parse retry configuration from dict."""
    return RetryConfig(
        max_attempts=int(data.get("max_attempts", 5)),
        base_delay=float(data.get("base_delay", 0.5)),
        max_delay=float(data.get("max_delay", 8.0)),
    )


def _parse_memory_config(data: dict) -> MemoryConfig:
    """Parse conversation memory configuration from dict."""
    return MemoryConfig(
        capacity=int(data.get("capacity", 6)),
        buffer_size=int(data.get("buffer_size", 3)),
        token_limit=_parse_optional_int(data.get("token_limit")),
        summary_cooldown=int(data.get("summary_cooldown", 1)),
        max_summary_chars=int(data.get("max_summary_chars", 1600)),
        summary_model=_parse_model_settings(data.get("summary_model")),
    )


def _parse_routing_config(data: dict) -> RoutingConfig:
    """Parse routing thresholds from dict."""
    return RoutingConfig(
        confidence_threshold=float(data.get("confidence_threshold", 0.85)),
        margin=float(data.get("margin", 0.1)),
        max_window=int(data.get("max_window", 3)),
        classifier_model=data.get("classifier_model", "embed-english-v2.0"),
    )


def _parse_classifier_config(data: dict) -> ClassifierConfig:
    """Parse classifier endpoint, falling back to environment credentials."""
    return ClassifierConfig(
        url=data.get("url") or env_config.classifier.url,
        api_key=data.get("api_key") or env_config.classifier.api_key,
        timeout=float(data.get("timeout", 30.0)),
    )


def _parse_tools_config(data: dict) -> ToolsConfig:
    """Parse tools configuration from dict."""
    searxng_data = data.get("searxng", {}) or {}
    return ToolsConfig(
        searxng=SearxngConfig(
            url=searxng_data.get("url", "http://localhost:8080/search"),
            timeout=int(searxng_data.get("timeout", 30)),
        )
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration from dict."""
    return LoggingConfig(
        level=data.get("level", env_config.log_level),
    )


def _parse_langfuse_config(data: dict) -> LangfuseConfig:
    """Parse Langfuse configuration from dict."""
    return LangfuseConfig(
        enabled=_parse_bool(data.get("enabled"), False),
        public_key=data.get("public_key") or env_config.langfuse.public_key,
        secret_key=data.get("secret_key") or env_config.langfuse.secret_key,
        host=data.get("host") or env_config.langfuse.host or "https://cloud.langfuse.com",
        debug=_parse_bool(data.get("debug"), False),
    )


def _parse_agent(name: str, data: dict) -> AgentConfig:
    """Parse a single agent configuration from dict."""
    data = data or {}
    return AgentConfig(
        name=name,
        description=data.get("description", ""),
        model=_parse_model_settings(data.get("model")),
        llm_call_limit=int(data.get("llm_call_limit", 5)),
        tools=list(data.get("tools", []) or []),
        examples=list(data.get("examples", []) or []),
        default=_parse_bool(data.get("default"), False),
    )


def _parse_agents(data: dict) -> list[AgentConfig]:
    """Parse the agents section, keyed by agent name."""
    agents = []
    for name, agent_data in (data or {}).items():
        try:
            agents.append(_parse_agent(name, agent_data))
            logger.debug(f"Loaded agent: {name}")
        except Exception as e:
            logger.error(f"Failed to parse agent '{name}': {e}")
            raise ValueError(f"Invalid agent configuration for '{name}': {e}") from e
    return agents


def validate_app_config(app_config: AppConfig) -> list[str]:
    """
    Validate an application configuration.

    Args:
        app_config: Configuration to validate

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    defaults = [agent.name for agent in app_config.agents if agent.default]
    if len(defaults) != 1:
        errors.append(
            f"Exactly one default agent is required, found {len(defaults)}"
        )

    for agent in app_config.agents:
        if agent.llm_call_limit < 1:
            errors.append(f"Agent '{agent.name}': llm_call_limit must be positive")
        if not agent.model.model:
            errors.append(f"Agent '{agent.name}': missing model")
        if not agent.default and not agent.examples:
            errors.append(
                f"Agent '{agent.name}': no examples, it can never be routed to"
            )

    if app_config.memory.buffer_size > app_config.memory.capacity:
        errors.append("memory.buffer_size exceeds memory.capacity")

    return errors


def parse_app_config(raw_config: dict) -> AppConfig:
    """
    Build an AppConfig from an already-loaded YAML mapping.

    Raises:
        ValueError: If any section is invalid
    """
    raw_config = _substitute_env_vars_recursive(raw_config)

    return AppConfig(
        version=str(raw_config.get("version", "1.0")),
        openai=_parse_openai_config(raw_config.get("openai", {}) or {}),
        retry=_parse_retry_config(raw_config.get("retry", {}) or {}),
        memory=_parse_memory_config(raw_config.get("memory", {}) or {}),
        routing=_parse_routing_config(raw_config.get("routing", {}) or {}),
        classifier=_parse_classifier_config(raw_config.get("classifier", {}) or {}),
        tools=_parse_tools_config(raw_config.get("tools", {}) or {}),
        logging=_parse_logging_config(raw_config.get("logging", {}) or {}),
        langfuse=_parse_langfuse_config(raw_config.get("langfuse", {}) or {}),
        agents=_parse_agents(raw_config.get("agents", {})),
    )


def load_app_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """
    Load unified application configuration from a YAML file.

    Uses a singleton pattern - subsequent calls return the cached config
    unless reload=True is specified.

    Args:
        path: Path to the YAML configuration file. If None, uses
              CONFIG_PATH env var or the default path (config/config.yaml).
        reload: If True, force reload from disk instead of using cache.

    Returns:
        AppConfig with all configuration loaded

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config is invalid
    """
    global _app_config

    # Return cached config if available and not reloading
    if _app_config is not None and not reload:
        return _app_config

    if path is None:
        path = env_config.config_path or str(DEFAULT_CONFIG_PATH)

    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found at {config_path}. "
            f"Create one from config/config.yaml or set CONFIG_PATH env var."
        )

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raise ValueError(f"Configuration file {config_path} is empty")

    app_config = parse_app_config(raw_config)

    errors = validate_app_config(app_config)
    if errors:
        for error in errors:
            logger.error(f"Config validation error: {error}")
        raise ValueError("; ".join(errors))

    _app_config = app_config

    logger.debug(
        f"Configuration loaded: version={app_config.version}, "
        f"agents={[agent.name for agent in app_config.agents]}"
    )

    return app_config


def reset_config_cache() -> None:
    """Reset the configuration cache, forcing a reload on next access."""
    global _app_config
    _app_config = None
    logger.debug("Configuration cache reset")

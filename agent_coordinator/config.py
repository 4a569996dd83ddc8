"""
Environment configuration for the agent coordinator.

Loads process-level settings (credentials, endpoints, config file path)
from environment variables with sensible defaults for local development.
Structured settings such as agents and routing thresholds live in the
YAML file handled by config_loader.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class OpenAIEnvConfig:
    """Credentials for the chat-completion provider."""
    api_key: str = os.getenv("OPENAI_API_KEY", "")
    base_url: str = os.getenv("OPENAI_BASE_URL", "")
    organization: str = os.getenv("OPENAI_ORGANIZATION_ID", "")


@dataclass
class ClassifierEnvConfig:
    """Credentials for the classification provider."""
    api_key: str = os.getenv("COHERE_API_KEY", "")
    url: str = os.getenv("CLASSIFIER_URL", "https://api.cohere.ai/v1/classify")


@dataclass
class LangfuseEnvConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = os.getenv("LANGFUSE_PUBLIC_KEY", "")
    secret_key: str = os.getenv("LANGFUSE_SECRET_KEY", "")
    host: str = os.getenv("LANGFUSE_HOST", "")

    @property
    def enabled(self) -> bool:
        """Auto-enable when both keys are configured."""
        return bool(self.public_key and self.secret_key)


@dataclass
class Config:
    """Main configuration container."""
    openai: OpenAIEnvConfig
    classifier: ClassifierEnvConfig
    langfuse: LangfuseEnvConfig
    config_path: str = os.getenv("CONFIG_PATH", "")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def get_config() -> Config:
    """Get the environment configuration."""
    return Config(
        openai=OpenAIEnvConfig(),
        classifier=ClassifierEnvConfig(),
        langfuse=LangfuseEnvConfig(),
    )


# Global config instance
config = get_config()

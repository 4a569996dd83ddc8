"""
LLM Call Interface for the agent coordinator.

Wraps an OpenAI-compatible chat-completion endpoint behind a small
contract: system text + user text in, generated text + token usage out.
Clients are handed out by a factory so that identical settings share one
client value.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from openai import OpenAI

from .cancellation import CancellationToken
from .errors import ProviderError, TurnCancelled
from .models import ModelSettings
from .retry import NetworkRetry
from .usage import TokenUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Completion:
    """Generated text plus the tokens it cost."""

    text: str
    usage: TokenUsage


class _EmptyCompletion(Exception):
    """Provider answered but without any content."""


class LLMClient:
    """Chat-completion client bound to one set of model settings."""

    def __init__(
        self,
        settings: ModelSettings,
        openai_client: OpenAI,
        retry: Optional[NetworkRetry] = None,
        default_timeout: Optional[float] = None,
    ):
        self.settings = settings
        self._client = openai_client
        self._retry = retry or NetworkRetry()
        self._default_timeout = default_timeout

    @property
    def model(self) -> str:
        return self.settings.model

    def get_completion(
        self,
        system_text: str,
        user_text: str,
        cancel: Optional[CancellationToken] = None,
    ) -> Completion:
        """
        Ask the model for a completion.

        Args:
            system_text: System prompt.
            user_text: User prompt.
            cancel: Token aborting the call (and its retries).

        Returns:
            Completion with text and usage (zero-filled if not reported).

        Raises:
            ProviderError: On retry exhaustion or an empty response.
            TurnCancelled: If the token fires.
        """
        cancel = cancel or CancellationToken.none()

        messages = [
            {"role": "system", "content": system_text},
            {"role": "user", "content": user_text},
        ]

        def attempt() -> Completion:
            create_kwargs: dict = {
                "model": self.settings.model,
                "messages": messages,
                "temperature": self.settings.temperature,
                "top_p": self.settings.top_p,
            }
            if self.settings.max_tokens is not None:
                create_kwargs["max_tokens"] = self.settings.max_tokens
            timeout = cancel.remaining()
            if timeout is None:
                timeout = self._default_timeout
            if timeout is not None:
                create_kwargs["timeout"] = timeout

            response = self._client.chat.completions.create(**create_kwargs)
            reported_model = getattr(response, "model", None) or self.settings.model
            usage = TokenUsage.from_openai(
                reported_model, getattr(response, "usage", None)
            )
            choices = getattr(response, "choices", None) or []
            content = choices[0].message.content if choices else None
            if not content:
                raise _EmptyCompletion("No response from the model")
            return Completion(text=content, usage=usage)

        try:
            return self._retry.call(
                attempt,
                cancel=cancel,
                fatal=(_EmptyCompletion,),
                description=f"completion ({self.settings.model})",
            )
        except TurnCancelled:
            raise
        except _EmptyCompletion as e:
            logger.error("Provider failure: %s returned no content", self.settings.model)
            raise ProviderError(str(e)) from e
        except Exception as e:
            logger.error("Provider failure calling %s: %s", self.settings.model, e)
            raise ProviderError(
                f"Cannot get a completion from {self.settings.model}: {e}"
            ) from e


class LLMClientFactory:
    """
    Hands out LLMClients keyed by their settings.

    Owned by the composition root; value-equal settings always return the
    same client, and every client shares one underlying OpenAI transport.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        organization: Optional[str] = None,
        retry: Optional[NetworkRetry] = None,
        timeout: Optional[float] = None,
        openai_client: Optional[OpenAI] = None,
    ):
        if openai_client is None:
            kwargs: dict = {"api_key": api_key or "not-needed"}
            if base_url:
                kwargs["base_url"] = base_url
            if organization:
                kwargs["organization"] = organization
            openai_client = OpenAI(**kwargs)
        self._openai = openai_client
        self._retry = retry or NetworkRetry()
        self._timeout = timeout
        self._clients: dict[ModelSettings, LLMClient] = {}
        self._lock = threading.Lock()

    def get(self, settings: ModelSettings) -> LLMClient:
        """Return the shared client for these settings, creating it once."""
        with self._lock:
            client = self._clients.get(settings)
            if client is None:
                client = LLMClient(
                    settings,
                    self._openai,
                    retry=self._retry,
                    default_timeout=self._timeout,
                )
                self._clients[settings] = client
                logger.debug("Created LLM client for %s", settings)
            return client

    def __len__(self) -> int:
        return len(self._clients)

    def close(self) -> None:
        """Close the underlying OpenAI client."""
        try:
            self._openai.close()
        except Exception as e:
            logger.debug("Error closing OpenAI client: %s", e)

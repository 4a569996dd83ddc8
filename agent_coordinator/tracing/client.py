"""
Langfuse connection for conversation tracing.

Tracing is optional: without credentials, or when the Langfuse server
rejects the auth check, the client stays disabled and every turn trace
built on it records nothing.
"""

import logging
from typing import Any, Optional

from langfuse import Langfuse

from ..models import LangfuseConfig

logger = logging.getLogger(__name__)


class TracingClient:
    """Owns the Langfuse SDK client shared by every conversation."""

    def __init__(self, config: Optional[LangfuseConfig] = None):
        config = config or LangfuseConfig()
        self._langfuse: Optional[Langfuse] = None
        self.error: Optional[str] = None

        if not config.is_configured:
            self.error = "Langfuse credentials not configured"
            logger.debug("Tracing disabled: %s", self.error)
            return

        try:
            langfuse = Langfuse(
                public_key=config.public_key,
                secret_key=config.secret_key,
                host=config.host or None,
                debug=config.debug,
            )
            authenticated = langfuse.auth_check()
        except Exception as e:
            self.error = f"Langfuse unavailable: {e}"
            logger.warning("Tracing disabled: %s", self.error)
            return

        if not authenticated:
            self.error = f"Langfuse auth_check() failed against {config.host}"
            logger.warning("Tracing disabled: %s", self.error)
            return

        self._langfuse = langfuse
        logger.info("Langfuse tracing enabled (host: %s)", config.host)

    @property
    def enabled(self) -> bool:
        return self._langfuse is not None

    @property
    def client(self) -> Optional[Langfuse]:
        """The Langfuse SDK client, None while disabled."""
        return self._langfuse

    def start_observation(self, **attributes: Any):
        """Open a Langfuse span or generation; returns its context manager."""
        assert self._langfuse is not None
        return self._langfuse.start_as_current_observation(**attributes)

    def shutdown(self) -> None:
        """Flush pending turn traces and close the client."""
        if self._langfuse is None:
            return
        try:
            self._langfuse.shutdown()
        except Exception as e:
            logger.warning("Error during tracing shutdown: %s", e)
        self._langfuse = None


_tracing_client: Optional[TracingClient] = None


def init_tracing_client(config: Optional[LangfuseConfig] = None) -> TracingClient:
    """Create the process-wide tracing client."""
    global _tracing_client
    _tracing_client = TracingClient(config)
    return _tracing_client


def get_tracing_client() -> Optional[TracingClient]:
    return _tracing_client


def shutdown_tracing() -> None:
    """Shut down and forget the process-wide tracing client."""
    global _tracing_client
    if _tracing_client:
        _tracing_client.shutdown()
        _tracing_client = None

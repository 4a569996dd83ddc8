"""
Langfuse tracing of conversation turns: one trace per turn, with the
agent run, its LLM calls and its tool calls nested underneath.
"""

from .client import (
    TracingClient,
    get_tracing_client,
    init_tracing_client,
    shutdown_tracing,
)
from .context import Observation, TracingContext, usage_details

__all__ = [
    "TracingClient",
    "init_tracing_client",
    "get_tracing_client",
    "shutdown_tracing",
    "Observation",
    "TracingContext",
    "usage_details",
]

"""
Per-turn conversation traces.

A turn is one Langfuse trace whose root span holds the user message and
the routed agent. The agent's LLM calls become generations and its tool
calls spans under that root. Children are linked to the root through an
explicit TraceContext, so nesting does not depend on OTEL context state.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from langfuse.types import TraceContext

from ..usage import TokenUsage
from .client import TracingClient, get_tracing_client

logger = logging.getLogger(__name__)


def usage_details(usage: TokenUsage) -> dict[str, int]:
    """Langfuse usage counts: the turn total plus one entry per model."""
    total = usage.total()
    details = {
        "input": total.prompt_tokens,
        "output": total.completion_tokens,
        "total": total.total_tokens,
    }
    for model, counts in usage.items():
        details[f"{model}_total"] = counts.total_tokens
    return details


class Observation:
    """
    A span or generation inside a turn.

    Records nothing when it was never opened (tracing disabled, or the
    SDK refused to start it).
    """

    def __init__(self, name: str):
        self.name = name
        self.status = "success"
        self.output: Any = None
        self.usage: Optional[TokenUsage] = None
        self._manager: Any = None
        self._handle: Any = None
        self._started = time.monotonic()

    @property
    def recording(self) -> bool:
        return self._handle is not None

    def open(self, manager: Any) -> None:
        self._manager = manager
        self._handle = manager.__enter__()
        self._started = time.monotonic()

    def set_output(self, output: Any) -> None:
        self.output = output

    def set_status(self, status: str) -> None:
        self.status = status

    def set_usage(self, usage: TokenUsage) -> None:
        self.usage = usage

    def close(self) -> None:
        if self._handle is None:
            return
        update: dict[str, Any] = {
            "metadata": {
                "status": self.status,
                "duration_ms": round((time.monotonic() - self._started) * 1000, 2),
            }
        }
        if self.output is not None:
            update["output"] = self.output
        if self.usage is not None:
            update["usage_details"] = usage_details(self.usage)
        try:
            self._handle.update(**update)
            self._manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning("Failed to close observation '%s': %s", self.name, e)
        finally:
            self._handle = None


class TracingContext:
    """
    Trace of one conversation turn.

    Every method is a no-op when tracing is disabled. Observations that
    exit with an exception are closed with status ``error``.
    """

    def __init__(
        self,
        turn_id: str,
        session_id: Optional[str] = None,
        client: Optional[TracingClient] = None,
    ):
        self.turn_id = turn_id
        self.session_id = session_id
        self._client = client or get_tracing_client()
        self._root: Optional[Observation] = None
        self._trace_id: Optional[str] = None
        self._root_id: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return self._client is not None and self._client.enabled

    def start_trace(
        self, user_input: Optional[str] = None, name: str = "conversation_turn"
    ) -> None:
        """Open the root span of the turn."""
        if not self.enabled:
            return
        root = Observation(name)
        try:
            root.open(
                self._client.start_observation(
                    as_type="span",
                    name=name,
                    input={"user_input": user_input} if user_input else None,
                    metadata={"turn_id": self.turn_id},
                )
            )
            root._handle.update_trace(session_id=self.session_id)
        except Exception as e:
            logger.warning("[%s] Failed to start trace: %s", self.turn_id, e)
            return
        self._root = root
        self._trace_id = getattr(root._handle, "trace_id", None)
        self._root_id = getattr(root._handle, "id", None)
        logger.debug("[%s] Trace started", self.turn_id)

    def set_agent(self, agent_name: str) -> None:
        """Tag the trace with the agent the turn was routed to."""
        if self._root is None:
            return
        try:
            self._root._handle.update_trace(
                tags=[agent_name], metadata={"agent": agent_name}
            )
        except Exception as e:
            logger.warning("[%s] Failed to tag trace: %s", self.turn_id, e)

    def get_trace_context(self) -> Optional[TraceContext]:
        """TraceContext linking children to the root span, if started."""
        if not self._trace_id or not self._root_id:
            return None
        return TraceContext(trace_id=self._trace_id, parent_span_id=self._root_id)

    def end_trace(
        self,
        output: Optional[Any] = None,
        status: str = "success",
        usage: Optional[TokenUsage] = None,
    ) -> None:
        """
        Close the root span.

        Args:
            output: Answer or error text of the turn.
            status: success, error, cancelled or non_convergence.
            usage: Token usage of the whole turn, itemised per model.
        """
        if self._root is None:
            return
        self._root.set_status(status)
        self._root.set_output(output)
        if usage is not None:
            self._root.set_usage(usage)
        self._root.close()
        self._root = None

    @contextmanager
    def span(
        self,
        name: str,
        metadata: Optional[dict] = None,
        input: Optional[Any] = None,
    ) -> Iterator[Observation]:
        """Span for an agent run or a tool call."""
        with self._observe("span", name, metadata=metadata, input=input) as span:
            yield span

    @contextmanager
    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        model_parameters: Optional[dict] = None,
    ) -> Iterator[Observation]:
        """Generation for one LLM call (e.g. "research_call_2")."""
        with self._observe(
            "generation",
            name,
            model=model,
            input=input,
            model_parameters=model_parameters,
        ) as generation:
            yield generation

    @contextmanager
    def _observe(self, as_type: str, name: str, **attributes: Any) -> Iterator[Observation]:
        observation = Observation(name)
        if self.enabled:
            try:
                observation.open(
                    self._client.start_observation(
                        trace_context=self.get_trace_context(),
                        as_type=as_type,
                        name=name,
                        **attributes,
                    )
                )
            except Exception as e:
                logger.warning("[%s] Failed to start '%s': %s", self.turn_id, name, e)
        try:
            yield observation
        except BaseException:
            observation.set_status("error")
            raise
        finally:
            observation.close()

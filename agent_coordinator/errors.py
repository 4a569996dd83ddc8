"""
Error taxonomy for the coordinator.

Network failures are retried where they happen; everything here is what
escapes to the caller once that local handling is done.
"""


class CoordinatorError(Exception):
    """Base class for all coordinator errors."""


class ProviderError(CoordinatorError):
    """A completion call exhausted its retries or returned nothing usable."""


class ParseError(CoordinatorError):
    """Model output did not decode to a final answer or a tool action."""

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output


class UnknownToolError(CoordinatorError):
    """The model named a tool that is not in the agent's registry."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool '{tool_name}' does not exist")
        self.tool_name = tool_name


class ToolExecutionError(CoordinatorError):
    """A registered tool raised while running."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class LoopLimitExceeded(CoordinatorError):
    """The agent did not reach a final answer within its call limit."""

    def __init__(self, limit: int):
        super().__init__(
            f"Too many LLM calls (limit {limit}). Possible infinite loop"
        )
        self.limit = limit


class MemoryRangeError(CoordinatorError, IndexError):
    """A conversation index is outside the stored messages."""


class ConstraintError(CoordinatorError, ValueError):
    """A memory read violated a usage constraint."""


class ClassificationError(CoordinatorError):
    """The routing classifier failed or returned an unusable response."""


class UnknownAgentError(CoordinatorError, KeyError):
    """Examples were added for an agent label that was never registered."""

    def __init__(self, label: str):
        super().__init__(f"Does not exist agent with name {label}")
        self.label = label

    def __str__(self) -> str:
        return str(self.args[0])


class TurnCancelled(CoordinatorError):
    """The turn was cancelled or ran past its deadline."""

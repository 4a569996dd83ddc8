"""
Token usage accounting.

Usage is tracked per model so that turns mixing several models (the
agent's model and the summarization model, for instance) stay itemised.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional


@dataclass(frozen=True)
class ModelTokenUsage:
    """Token counts for a single model."""

    total_tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0

    def __add__(self, other: "ModelTokenUsage") -> "ModelTokenUsage":
        return ModelTokenUsage(
            total_tokens=self.total_tokens + other.total_tokens,
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )


@dataclass(frozen=True)
class TokenUsage(Mapping[str, ModelTokenUsage]):
    """
    Immutable mapping of model name to token counts.

    Combining two usages adds the counts of matching models and keeps the
    rest, so ``TokenUsage()`` is the identity.
    """

    by_model: Mapping[str, ModelTokenUsage] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze a private copy so callers can't mutate us through their dict
        object.__setattr__(self, "by_model", dict(self.by_model))

    @classmethod
    def for_model(
        cls,
        model: str,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        total_tokens: Optional[int] = None,
    ) -> "TokenUsage":
        """Build a single-model usage; total defaults to prompt + completion."""
        if total_tokens is None:
            total_tokens = prompt_tokens + completion_tokens
        return cls(
            {
                model: ModelTokenUsage(
                    total_tokens=total_tokens,
                    prompt_tokens=prompt_tokens,
                    completion_tokens=completion_tokens,
                )
            }
        )

    @classmethod
    def from_openai(cls, model: str, usage: Any) -> "TokenUsage":
        """
        Build usage from an OpenAI chat completion ``usage`` block.

        Missing blocks or fields count as zero.
        """
        if usage is None:
            return cls.for_model(model)
        prompt = getattr(usage, "prompt_tokens", None) or 0
        completion = getattr(usage, "completion_tokens", None) or 0
        total = getattr(usage, "total_tokens", None)
        return cls.for_model(
            model,
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=total if total is not None else prompt + completion,
        )

    def combine(self, other: "TokenUsage") -> "TokenUsage":
        """Pairwise addition per model."""
        merged = dict(self.by_model)
        for model, counts in other.by_model.items():
            merged[model] = merged.get(model, ModelTokenUsage()) + counts
        return TokenUsage(merged)

    __add__ = combine

    def total(self) -> ModelTokenUsage:
        """Collapse every model into a single count."""
        result = ModelTokenUsage()
        for counts in self.by_model.values():
            result = result + counts
        return result

    def to_dict(self) -> dict[str, dict[str, int]]:
        """Render as plain dicts for the surrounding application."""
        return {
            model: {
                "totalTokens": counts.total_tokens,
                "promptTokens": counts.prompt_tokens,
                "completionTokens": counts.completion_tokens,
            }
            for model, counts in self.by_model.items()
        }

    def __getitem__(self, model: str) -> ModelTokenUsage:
        return self.by_model[model]

    def __iter__(self) -> Iterator[str]:
        return iter(self.by_model)

    def __len__(self) -> int:
        return len(self.by_model)

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.by_model.items())))

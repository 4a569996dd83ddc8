"""
Few-shot classification providers for topic routing.

A provider scores each input text against labelled example utterances
and returns, per input, a label -> confidence mapping.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import requests
from pydantic import BaseModel, ValidationError

from ..errors import ClassificationError
from ..models import ClassifierConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationExample:
    """A labelled example utterance."""

    text: str
    label: str

    def to_dict(self) -> dict:
        return {"text": self.text, "label": self.label}


class ClassificationProvider(Protocol):
    """Anything that can score texts against labelled examples."""

    def classify(
        self,
        model: str,
        inputs: list[str],
        examples: list[ClassificationExample],
        timeout: Optional[float] = None,
    ) -> list[dict[str, float]]:
        """Return one label -> confidence mapping per input."""
        ...


class _LabelScore(BaseModel):
    confidence: float


class _Classification(BaseModel):
    input: Optional[str] = None
    prediction: Optional[str] = None
    labels: dict[str, _LabelScore]


class _ClassifyResponse(BaseModel):
    classifications: list[_Classification]


class CohereClassifier:
    """
    Cohere classify endpoint over plain HTTP.

    Network failures surface as ``requests`` exceptions so the caller's
    retry can handle them; a response with the wrong shape raises
    ClassificationError.
    """

    def __init__(
        self,
        config: Optional[ClassifierConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or ClassifierConfig()
        self.session = session or requests.Session()

    def classify(
        self,
        model: str,
        inputs: list[str],
        examples: list[ClassificationExample],
        timeout: Optional[float] = None,
    ) -> list[dict[str, float]]:
        """
        Classify texts against examples.

        Args:
            model: Classification model identifier.
            inputs: Texts to classify.
            examples: Labelled examples.
            timeout: Request timeout; defaults to the configured one.

        Returns:
            One label -> confidence mapping per input, in input order.

        Raises:
            requests.RequestException: On network or HTTP failure.
            ClassificationError: If the response shape is unusable.
        """
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        payload = {
            "model": model,
            "inputs": inputs,
            "examples": [example.to_dict() for example in examples],
        }
        if timeout is None or timeout > self.config.timeout:
            timeout = self.config.timeout

        response = self.session.post(
            self.config.url, json=payload, headers=headers, timeout=timeout
        )
        response.raise_for_status()

        try:
            parsed = _ClassifyResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error("Malformed classification response: %s", e)
            raise ClassificationError(
                f"Unusable classification response: {e}"
            ) from e

        if len(parsed.classifications) != len(inputs):
            raise ClassificationError(
                f"Expected {len(inputs)} classifications, "
                f"got {len(parsed.classifications)}"
            )

        return [
            {label: score.confidence for label, score in item.labels.items()}
            for item in parsed.classifications
        ]

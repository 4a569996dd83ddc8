"""
Topic routing: chooses which agent handles each conversation turn.
"""

from .classifier import ClassificationExample, ClassificationProvider, CohereClassifier
from .router import CentralCoordinator

__all__ = [
    "CentralCoordinator",
    "ClassificationExample",
    "ClassificationProvider",
    "CohereClassifier",
]

"""Pipeline stages, in execution order."""

from .architecture import ArchitectureStage
from .base import BaseStage
from .implementation import ImplementationStage
from .requirements import MAX_CLARIFYING_QUESTIONS, RequirementsStage
from .review import ReviewStage
from .specification import SpecificationStage

__all__ = [
    "ArchitectureStage",
    "BaseStage",
    "ImplementationStage",
    "MAX_CLARIFYING_QUESTIONS",
    "RequirementsStage",
    "ReviewStage",
    "SpecificationStage",
]

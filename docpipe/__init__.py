"""docpipe - requirements to architecture to test stubs to source stubs."""

from .config import PipelineConfig
from .errors import (
    AnswersRequired,
    EmptyNameError,
    InvalidSlugError,
    MalformedDocumentError,
    NotFoundError,
    OverwriteDeclinedError,
    PartialGenerationError,
    PipelineError,
)
from .models import PipelineState, Stage
from .questions import ConsoleAnswerer, PendingAnswerer, ScriptedAnswerer
from .slug import derive_slug
from .workflow import WorkflowManager

__all__ = [
    "AnswersRequired",
    "ConsoleAnswerer",
    "EmptyNameError",
    "InvalidSlugError",
    "MalformedDocumentError",
    "NotFoundError",
    "OverwriteDeclinedError",
    "PartialGenerationError",
    "PendingAnswerer",
    "PipelineConfig",
    "PipelineError",
    "PipelineState",
    "ScriptedAnswerer",
    "Stage",
    "WorkflowManager",
    "derive_slug",
]

"""Error taxonomy for the docpipe pipeline.

Every stage raises one of these (or a plain ``OSError`` for filesystem
failures). The workflow facade turns them into user-facing messages with a
suggested next step; nothing here is retried automatically.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    suggestion: str = "Check the command arguments and try again"
    next_step: Optional[str] = None


class EmptyNameError(PipelineError, ValueError):
    """A feature name normalizes to an empty slug."""

    suggestion = "Provide a feature name containing at least one letter or digit"
    next_step = "refine-requirements"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Feature name {name!r} does not contain any letters or digits")


class InvalidSlugError(PipelineError, ValueError):
    """A slug argument is not a canonical kebab-case slug."""

    suggestion = "Pass the slug printed by refine-requirements, for example 'user-login'"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Invalid feature slug {slug!r}; expected lowercase words joined by hyphens")


class NotFoundError(PipelineError, FileNotFoundError):
    """A stage was invoked before its prerequisite document exists."""

    def __init__(self, message: str, *, stage: Optional[str] = None, slug: Optional[str] = None,
                 next_step: Optional[str] = None):
        self.stage = stage
        self.slug = slug
        self.next_step = next_step
        super().__init__(message)

    @property
    def suggestion(self) -> str:  # type: ignore[override]
        if self.next_step and self.slug:
            return f"Run '{self.next_step} {self.slug}' first"
        if self.next_step:
            return f"Run '{self.next_step}' first"
        return "Check the feature slug"


class MalformedDocumentError(PipelineError, ValueError):
    """A stage document exists but lacks the structure the parser needs."""

    suggestion = "Regenerate the document or fix the reported section by hand"

    def __init__(self, path: Any, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed document {path}: {reason}")


class OverwriteDeclinedError(PipelineError):
    """The user chose not to replace an existing document."""

    suggestion = "Existing document left untouched"

    def __init__(self, path: Any):
        self.path = path
        super().__init__(f"Overwrite of {path} declined")


class PartialGenerationError(PipelineError):
    """Generation of one module's specification failed.

    Collected on the specification bundle rather than raised, so a single bad
    module does not abort the remaining ones.
    """

    def __init__(self, module: str, reason: str):
        self.module = module
        self.reason = reason
        super().__init__(f"Specification for module '{module}' failed: {reason}")

    def to_dict(self) -> Dict[str, str]:
        return {"module": self.module, "reason": self.reason}


class AnswersRequired(PipelineError):
    """Raised by a non-interactive answerer when prompts are still unanswered."""

    suggestion = "Answer the listed questions and call the command again with 'answers'"

    def __init__(self, questions: List[Any]):
        self.questions = list(questions)
        super().__init__(f"{len(self.questions)} question(s) need answers before continuing")

"""Shared plumbing for pipeline stages."""

from __future__ import annotations

import logging
from typing import Optional

from ..config import PipelineConfig
from ..errors import OverwriteDeclinedError
from ..models import Question, Stage
from ..pipeline_logging import observability_hooks
from ..questions import CONFIRM_OPTIONS, QuestionAnswerer, ScriptedAnswerer, is_affirmative
from ..store import DocumentStore


def overwrite_question(relative_path: str, summary: str) -> Question:
    return Question(
        prompt=f"{relative_path} already exists. Overwrite it?",
        options=list(CONFIRM_OPTIONS),
        context=summary,
    )


class BaseStage:
    """A pipeline stage bound to one project root."""

    stage: Stage = Stage.REQUIREMENTS

    def __init__(
        self,
        config: PipelineConfig,
        answerer: Optional[QuestionAnswerer] = None,
        *,
        store: Optional[DocumentStore] = None,
    ):
        self.config = config
        self.answerer = answerer or ScriptedAnswerer()
        self.store = store or DocumentStore(config)
        self.logger = logging.getLogger(f"docpipe.stages.{self.stage.name.lower()}")

    def confirm_overwrite(self, slug: str, summary: str, *, store: Optional[DocumentStore] = None) -> None:
        """Ask before replacing the stage's existing output for ``slug``.

        Returns silently when there is nothing to replace or the user agreed;
        raises :class:`OverwriteDeclinedError` otherwise.
        """
        store = store or self.store
        if not store.exists(self.stage, slug):
            return

        relative = store.relative(store.path(self.stage, slug))
        question = overwrite_question(relative, summary)
        answer = self.answerer.ask([question]).get(question.prompt, "")
        if not is_affirmative(answer):
            observability_hooks.log_workflow_event(
                "overwrite_declined", slug=slug, stage=self.stage.value, path=relative
            )
            raise OverwriteDeclinedError(relative)
        self.logger.info(f"Replacing {relative}")

"""Requirements refinement: free-text description to ``docs/requirements/<slug>.md``."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence

from ..heuristics import RequirementsExtractor, RuleBasedExtractor, one_line, split_sentences
from ..markdown import render_requirements
from ..models import FunctionalRequirement, Priority, Question, RequirementsDocument, Stage
from ..pipeline_logging import log_operation, log_performance, log_requirements_generation
from ..slug import derive_slug
from .base import BaseStage

MAX_CLARIFYING_QUESTIONS = 5
FEATURE_NAME_WORDS = 8

_PRIORITY_ANSWER = re.compile(r"^(FR-\d+)\b")


def feature_name_from(description: str) -> str:
    """Short display name taken from the first sentence of ``description``."""
    sentences = split_sentences(description)
    first = sentences[0] if sentences else one_line(description)
    name = " ".join(first.rstrip(".!?").split()[:FEATURE_NAME_WORDS])
    return name[:1].upper() + name[1:]


class RequirementsStage(BaseStage):
    """Turn a feature description into a numbered requirements document."""

    stage = Stage.REQUIREMENTS

    def __init__(self, config, answerer=None, *, store=None, extractor: Optional[RequirementsExtractor] = None):
        super().__init__(config, answerer, store=store)
        self.extractor = extractor or RuleBasedExtractor()

    @log_performance("refine_requirements")
    def refine(self, description: str, feature_name: Optional[str] = None) -> RequirementsDocument:
        """Draft, clarify and persist the requirements for a feature.

        The slug comes from ``feature_name`` when given, otherwise from the
        description itself. Every question (clarifications, then the
        overwrite confirmation) is asked before anything is written.
        """
        description = (description or "").strip()
        slug = derive_slug(feature_name or one_line(description))
        name = (feature_name or "").strip() or feature_name_from(description)

        with log_operation("refine_requirements", slug=slug, description_length=len(description)):
            functional = self.extractor.extract_requirements(description)
            if not functional:
                functional = self.extractor.extract_requirements(name)

            questions = self.extractor.clarifying_questions(description, functional)[:MAX_CLARIFYING_QUESTIONS]
            answers = self.answerer.ask(questions) if questions else {}
            assumptions, open_questions = self._record_answers(questions, answers)
            self._apply_priority_answers(functional, answers)

            document = RequirementsDocument(
                slug=slug,
                feature_name=name,
                description=description,
                overview=self._overview(name, description, functional),
                functional_requirements=functional,
                non_functional_requirements=self.extractor.extract_non_functional(description),
                constraints=self.extractor.extract_constraints(description),
                assumptions=assumptions,
                open_questions=open_questions,
            )
            for issue in document.validate():
                self.logger.warning(f"{slug}: {issue}")

            self.confirm_overwrite(slug, self._summary(document))
            path = self.store.write(self.stage, slug, render_requirements(document))
            self.logger.info(f"Requirements for '{slug}' written to {self.store.relative(path)}")
            log_requirements_generation(
                slug,
                len(functional),
                question_count=len(questions),
                open_question_count=len(open_questions),
            )
        return document

    @staticmethod
    def _record_answers(questions: Sequence[Question], answers: Dict[str, str]):
        assumptions: List[str] = []
        open_questions: List[str] = []
        for question in questions:
            answer = (answers.get(question.prompt) or "").strip()
            if answer:
                assumptions.append(f"{question.prompt} -> {answer}")
            else:
                open_questions.append(question.prompt)
        return assumptions, open_questions

    @staticmethod
    def _apply_priority_answers(functional: List[FunctionalRequirement], answers: Dict[str, str]) -> None:
        # "FR-2: ..." picked as most important promotes that requirement
        for answer in answers.values():
            match = _PRIORITY_ANSWER.match((answer or "").strip())
            if not match:
                continue
            for fr in functional:
                if fr.identifier == match.group(1):
                    fr.priority = Priority.MUST_HAVE

    @staticmethod
    def _overview(name: str, description: str, functional: List[FunctionalRequirement]) -> str:
        summary = one_line(description) or name
        return (
            f"{name}: {summary}\n\n"
            f"This document lists {len(functional)} functional requirement(s) derived from the "
            f"feature description. Each requirement is numbered and traced through the later stages."
        )

    @staticmethod
    def _summary(document: RequirementsDocument) -> str:
        lines = [f"New requirements for '{document.feature_name}':"]
        lines.extend(f"  {fr.identifier} [{fr.priority.value}] {fr.title}" for fr in document.functional_requirements)
        if document.open_questions:
            lines.append(f"  {len(document.open_questions)} open question(s)")
        return "\n".join(lines)

"""Architecture design: requirements document to ``docs/architecture/<slug>.md``."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..heuristics import ModuleClassifier, RuleBasedClassifier, traceability_for
from ..markdown import parse_requirements, render_architecture
from ..models import ArchitectureDocument, Depth, Module, Question, RequirementsDocument, Stage
from ..pipeline_logging import log_architecture_generation, log_operation, log_performance
from .base import BaseStage

MAX_TRADE_OFF_QUESTIONS = 5
UNDECIDED = "Undecided"

DEPLOYMENT_QUESTION = Question(
    "How will this feature be deployed?",
    ["Inside the existing application", "As a standalone service", "As a reusable library"],
)
ERROR_QUESTION = Question(
    "How should modules report failures to their callers?",
    ["Typed exceptions", "Result values", "Error codes"],
)
PERSISTENCE_OPTIONS = ["In-memory only", "Local files", "Relational database", "Key-value store"]


class ArchitectureStage(BaseStage):
    """Group requirements into modules and trace every requirement to them."""

    stage = Stage.ARCHITECTURE

    def __init__(self, config, answerer=None, *, store=None, classifier: Optional[ModuleClassifier] = None):
        super().__init__(config, answerer, store=store)
        self.classifier = classifier or RuleBasedClassifier()

    @log_performance("design_architecture")
    def design(self, slug: str) -> ArchitectureDocument:
        """Design the module structure for the requirements of ``slug``.

        Raises NotFoundError, without writing anything, when the requirements
        document does not exist yet.
        """
        with log_operation("design_architecture", slug=slug):
            requirements_path = self.store.path(Stage.REQUIREMENTS, slug)
            relative_requirements = self.store.relative(requirements_path)
            requirements = parse_requirements(self.store.read(Stage.REQUIREMENTS, slug), relative_requirements)

            modules = self.classifier.group_modules(requirements)
            questions = self.trade_off_questions(modules)[:MAX_TRADE_OFF_QUESTIONS]
            answers = self.answerer.ask(questions) if questions else {}
            decisions = [
                f"{question.prompt} -> {(answers.get(question.prompt) or '').strip() or UNDECIDED}"
                for question in questions
            ]
            self._apply_persistence_answer(modules, questions, answers)

            covered = traceability_for(modules)
            traceability = {rid: covered.get(rid, []) for rid in requirements.requirement_ids}
            for rid, names in covered.items():
                traceability.setdefault(rid, names)

            document = ArchitectureDocument(
                slug=slug,
                feature_name=requirements.feature_name,
                requirements_path=relative_requirements,
                overview=self._overview(requirements, modules),
                modules=modules,
                domain_entities=[
                    entity for entity in self.classifier.domain_entities(requirements)
                    if entity not in {module.name for module in modules}
                ],
                decisions=decisions,
                traceability=traceability,
            )

            missing = document.missing_requirements(requirements.requirement_ids)
            if missing:
                self.logger.warning(f"{slug}: requirements without a module: {', '.join(missing)}")
            for issue in document.validate():
                self.logger.warning(f"{slug}: {issue}")

            self.confirm_overwrite(slug, self._summary(document))
            path = self.store.write(self.stage, slug, render_architecture(document))
            self.logger.info(f"Architecture for '{slug}' written to {self.store.relative(path)}")
            log_architecture_generation(slug, len(modules), missing_requirements=missing)
        return document

    @staticmethod
    def trade_off_questions(modules: List[Module]) -> List[Question]:
        questions = [Question(DEPLOYMENT_QUESTION.prompt, list(DEPLOYMENT_QUESTION.options))]
        stateful = [module.name for module in modules if module.is_stateful]
        if stateful:
            questions.append(
                Question(
                    f"Where should {', '.join(stateful)} keep state?",
                    list(PERSISTENCE_OPTIONS),
                    context="These modules persist or count data between calls.",
                )
            )
        questions.append(Question(ERROR_QUESTION.prompt, list(ERROR_QUESTION.options)))
        return questions

    @staticmethod
    def _apply_persistence_answer(modules: List[Module], questions: List[Question], answers: Dict[str, str]) -> None:
        for question in questions:
            if question.options != PERSISTENCE_OPTIONS:
                continue
            answer = (answers.get(question.prompt) or "").strip()
            if not answer:
                return
            for module in modules:
                if module.is_stateful:
                    module.hidden_complexity = f"{module.hidden_complexity} State backend: {answer}.".strip()

    @staticmethod
    def _overview(requirements: RequirementsDocument, modules: List[Module]) -> str:
        deep = sum(1 for module in modules if module.depth is Depth.DEEP)
        return (
            f"{requirements.feature_name} is organised as {len(modules)} module(s) covering "
            f"{len(requirements.functional_requirements)} functional requirement(s); "
            f"{deep} of them are deep modules that hide most of the feature's complexity."
        )

    @staticmethod
    def _summary(document: ArchitectureDocument) -> str:
        lines = [f"New architecture for '{document.feature_name}':"]
        lines.extend(
            f"  {module.name} [{module.depth.value}] {', '.join(module.requirement_ids)}"
            for module in document.modules
        )
        return "\n".join(lines)

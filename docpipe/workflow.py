"""Workflow management for docpipe.

This module is the facade used by the MCP server and the command line. It
runs a stage, turns its result into a plain dict with a suggested next
step, and reports failures the same way instead of raising.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .config import PipelineConfig
from .errors import AnswersRequired, OverwriteDeclinedError, PipelineError
from .models import PipelineState, Stage, WORKFLOW_STEPS
from .pipeline_logging import log_error_with_context, observability_hooks
from .questions import QuestionAnswerer, ScriptedAnswerer
from .stages import (
    ArchitectureStage,
    ImplementationStage,
    RequirementsStage,
    ReviewStage,
    SpecificationStage,
)
from .store import DocumentStore

logger = logging.getLogger("docpipe.workflow")

# Command to run once a slug has reached each state
NEXT_COMMAND = {
    PipelineState.CREATED: "refine-requirements",
    PipelineState.REQUIREMENTS_DRAFTED: "design-architecture",
    PipelineState.ARCHITECTURE_DRAFTED: "specify",
    PipelineState.SPECIFIED: "implement-functional",
    PipelineState.IMPLEMENTED: "review-functional",
}


class WorkflowManager:
    """Runs pipeline stages for one project root and reports dict results."""

    def __init__(self, config: PipelineConfig | Path | str, answerer: Optional[QuestionAnswerer] = None):
        if not isinstance(config, PipelineConfig):
            config = PipelineConfig.from_env(str(config))
        self.config = config
        self.answerer = answerer or ScriptedAnswerer()
        self.store = DocumentStore(config)

    # ------------------------------------------------------------------
    # Stage commands
    # ------------------------------------------------------------------

    def refine_requirements(self, description: str, feature_name: Optional[str] = None) -> Dict[str, Any]:
        """Run the requirements stage."""
        def run() -> Dict[str, Any]:
            stage = RequirementsStage(self.config, self.answerer, store=self.store)
            document = stage.refine(description, feature_name)
            path = self.store.path(Stage.REQUIREMENTS, document.slug)
            return {
                "slug": document.slug,
                "requirements_path": str(path),
                "document": document.to_dict(),
                "next_suggested_step": "design-architecture",
                "workflow_tip": f"Next: design the module structure with design-architecture {document.slug}",
                "message": (
                    f"Requirements written to {self.store.relative(path)} with "
                    f"{len(document.functional_requirements)} functional requirement(s) and "
                    f"{len(document.open_questions)} open question(s)."
                ),
            }

        return self._run("refine-requirements", run, slug=None)

    def design_architecture(self, slug: str) -> Dict[str, Any]:
        """Run the architecture stage for ``slug``."""
        def run() -> Dict[str, Any]:
            stage = ArchitectureStage(self.config, self.answerer, store=self.store)
            document = stage.design(slug)
            path = self.store.path(Stage.ARCHITECTURE, slug)
            missing = document.missing_requirements(list(document.traceability))
            result = {
                "slug": slug,
                "architecture_path": str(path),
                "document": document.to_dict(),
                "missing_requirements": missing,
                "next_suggested_step": "specify",
                "workflow_tip": f"Next: generate test stubs with specify {slug}",
                "message": f"Architecture written to {self.store.relative(path)} with {len(document.modules)} module(s).",
            }
            if missing:
                result["warning"] = f"Requirements without a module: {', '.join(missing)}"
            return result

        return self._run("design-architecture", run, slug=slug)

    def specify(self, slug: str) -> Dict[str, Any]:
        """Run the specification stage for ``slug``."""
        def run() -> Dict[str, Any]:
            stage = SpecificationStage(self.config, self.answerer, store=self.store)
            bundle = stage.specify(slug)
            result = {
                "slug": slug,
                "bundle": bundle.to_dict(),
                "readme_path": str(bundle.readme_path),
                "generated": [self.store.relative(path) for path in bundle.files],
                "failures": [failure.to_dict() for failure in bundle.failures],
                "next_suggested_step": "implement-functional",
                "workflow_tip": f"Next: scaffold source stubs with implement-functional {slug}",
                "message": (
                    f"Specification bundle written with {len(bundle.files)} stub file(s)"
                    + (f" and {len(bundle.failures)} failed module(s)." if bundle.failures else ".")
                ),
            }
            return result

        return self._run("specify", run, slug=slug)

    def implement_functional(self, slug: str) -> Dict[str, Any]:
        """Run the implementation stage for ``slug``."""
        def run() -> Dict[str, Any]:
            stage = ImplementationStage(self.config, self.answerer, store=self.store)
            stubs = stage.implement(slug)
            return {
                "slug": slug,
                "stubs": [
                    {"type_name": stub.type_name, "kind": stub.kind, "path": str(stub.path), "source": stub.source}
                    for stub in stubs
                ],
                "next_suggested_step": "review-functional",
                "workflow_tip": f"Next: check coverage with review-functional {slug}, then fill in the TODOs",
                "message": f"Generated {len(stubs)} source stub(s).",
            }

        return self._run("implement-functional", run, slug=slug)

    def review_functional(self, slug: str) -> Dict[str, Any]:
        """Review every stage output of ``slug``. Never writes."""
        def run() -> Dict[str, Any]:
            report = ReviewStage(self.config, store=self.store).review(slug)
            result = report.to_dict()
            result["next_suggested_step"] = self._next_step(report.state, report.stale)
            result["message"] = (
                "All checks passed" if report.passed else f"{len(report.issues)} issue(s) found"
            ) + (f"; stale: {', '.join(report.stale)}" if report.stale else "")
            return result

        return self._run("review-functional", run, slug=slug)

    # ------------------------------------------------------------------
    # Status and guidance
    # ------------------------------------------------------------------

    def feature_status(self, slug: str) -> Dict[str, Any]:
        """Report which stage outputs exist for ``slug`` and what to run next."""
        def run() -> Dict[str, Any]:
            review = ReviewStage(self.config, store=self.store)
            state = review.state(slug)
            stale = review.stale_artifacts(slug)
            artifacts = {
                stage.value: {
                    "path": str(self.store.path(stage, slug)),
                    "exists": self.store.exists(stage, slug),
                }
                for stage in Stage
            }
            return {
                "slug": slug,
                "state": state.value,
                "artifacts": artifacts,
                "stale": stale,
                "next_suggested_step": self._next_step(state, stale),
            }

        return self._run("status", run, slug=slug)

    def list_features(self) -> Dict[str, Any]:
        """List every slug with a requirements document."""
        review = ReviewStage(self.config, store=self.store)
        features = [
            {"slug": slug, "state": review.state(slug).value}
            for slug in self.store.list_slugs(Stage.REQUIREMENTS)
        ]
        return {
            "features": features,
            "count": len(features),
            "message": (
                f"Found {len(features)} features" if features
                else "No features yet. Use refine-requirements to start one."
            ),
        }

    def get_workflow_guide(self) -> Dict[str, Any]:
        """Get comprehensive workflow guidance."""
        return {
            "workflow_overview": "Feature pipeline: requirements, architecture, specification, implementation stubs",
            "steps": [step.to_dict() for step in WORKFLOW_STEPS],
            "tips": [
                "Run the stages in order; each one reads the previous stage's markdown",
                "Every stage asks before overwriting an existing document",
                "Re-running an earlier stage marks later outputs as stale instead of deleting them",
                "Use review-functional to find requirements missing from the traceability tables",
            ],
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _next_step(state: PipelineState, stale) -> str:
        if stale:
            return {
                Stage.ARCHITECTURE.value: "design-architecture",
                Stage.SPECIFICATION.value: "specify",
                Stage.IMPLEMENTATION.value: "implement-functional",
            }.get(stale[0], NEXT_COMMAND[state])
        return NEXT_COMMAND[state]

    def _run(self, command: str, run: Callable[[], Dict[str, Any]], *, slug: Optional[str]) -> Dict[str, Any]:
        try:
            result = run()
        except AnswersRequired as e:
            logger.info(f"{command}: waiting for {len(e.questions)} answer(s)")
            return {
                "status": "needs_answers",
                "questions": [question.to_dict() for question in e.questions],
                "suggestion": e.suggestion,
                "next_suggested_step": command,
                "message": str(e),
            }
        except OverwriteDeclinedError as e:
            logger.info(f"{command}: {e}")
            return {
                "status": "declined",
                "path": str(e.path),
                "next_suggested_step": command,
                "message": f"{e}. {e.suggestion}.",
            }
        except (PipelineError, OSError, ValueError) as e:
            log_error_with_context(e, {"operation": command, "slug": slug, "root": str(self.config.root)})
            suggestion = e.suggestion if isinstance(e, PipelineError) else "Check that the project root exists and is writable"
            next_step = getattr(e, "next_step", None) or command
            return {
                "error": str(e),
                "error_type": type(e).__name__,
                "suggestion": suggestion,
                "next_suggested_step": next_step,
                "message": f"Error: {e}",
            }

        result.setdefault("status", "ok")
        observability_hooks.log_workflow_event("command_completed", slug=result.get("slug", slug), command=command)
        return result

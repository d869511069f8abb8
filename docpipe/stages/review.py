"""Read-only completeness review over every stage output of a slug."""

from __future__ import annotations

from typing import List, Optional

from ..errors import MalformedDocumentError
from ..markdown import parse_architecture, parse_bundle_index, parse_requirements
from ..models import ArchitectureDocument, PipelineState, RequirementsDocument, ReviewReport, Stage
from ..pipeline_logging import log_operation, observability_hooks
from ..store import PRODUCING_COMMAND
from .base import BaseStage

STAGE_ORDER = (Stage.REQUIREMENTS, Stage.ARCHITECTURE, Stage.SPECIFICATION, Stage.IMPLEMENTATION)

_STATE_AFTER = {
    Stage.REQUIREMENTS: PipelineState.REQUIREMENTS_DRAFTED,
    Stage.ARCHITECTURE: PipelineState.ARCHITECTURE_DRAFTED,
    Stage.SPECIFICATION: PipelineState.SPECIFIED,
    Stage.IMPLEMENTATION: PipelineState.IMPLEMENTED,
}


class ReviewStage(BaseStage):
    """Check traceability and staleness without writing anything."""

    stage = Stage.SPECIFICATION

    def state(self, slug: str) -> PipelineState:
        """Furthest stage reached without a gap in the chain."""
        state = PipelineState.CREATED
        for stage in STAGE_ORDER:
            if not self.store.exists(stage, slug):
                break
            state = _STATE_AFTER[stage]
        return state

    def stale_artifacts(self, slug: str) -> List[str]:
        """Stages whose output is older than some upstream stage's output."""
        stale: List[str] = []
        newest_upstream: Optional[float] = None
        for stage in STAGE_ORDER:
            modified = self.store.modified_at(stage, slug)
            if modified is None:
                continue
            if newest_upstream is not None and modified < newest_upstream:
                stale.append(stage.value)
            newest_upstream = modified if newest_upstream is None else max(newest_upstream, modified)
        return stale

    def review(self, slug: str) -> ReviewReport:
        with log_operation("review_functional", slug=slug):
            report = ReviewReport(slug=slug, state=self.state(slug))
            if report.state is PipelineState.CREATED:
                report.issues.append(f"No requirements document; run '{PRODUCING_COMMAND[Stage.REQUIREMENTS]} {slug}'")
                return report

            requirements = self._check_requirements(slug, report)
            requirement_ids = requirements.requirement_ids if requirements else []

            if self.store.exists(Stage.ARCHITECTURE, slug):
                architecture = self._check_architecture(slug, requirement_ids, report)
            else:
                architecture = None
                report.warnings.append(f"No architecture yet; next step is '{PRODUCING_COMMAND[Stage.ARCHITECTURE]}'")

            if self.store.exists(Stage.SPECIFICATION, slug):
                self._check_specification(slug, requirement_ids, architecture, report)

            for stage_name in self.stale_artifacts(slug):
                report.stale.append(stage_name)
                report.warnings.append(
                    f"{stage_name} output is older than an upstream document; "
                    f"re-run '{PRODUCING_COMMAND[Stage(stage_name)]} {slug}'"
                )

            observability_hooks.log_workflow_event(
                "review_completed",
                slug=slug,
                state=report.state.value,
                issue_count=len(report.issues),
                stale=list(report.stale),
            )
        return report

    def _check_requirements(self, slug: str, report: ReviewReport) -> Optional[RequirementsDocument]:
        path = self.store.relative(self.store.path(Stage.REQUIREMENTS, slug))
        try:
            document = parse_requirements(self.store.read(Stage.REQUIREMENTS, slug), path)
        except MalformedDocumentError as e:
            report.issues.append(str(e))
            return None
        report.issues.extend(f"{path}: {issue}" for issue in document.validate())
        return document

    def _check_architecture(
        self, slug: str, requirement_ids: List[str], report: ReviewReport
    ) -> Optional[ArchitectureDocument]:
        path = self.store.relative(self.store.path(Stage.ARCHITECTURE, slug))
        try:
            document = parse_architecture(self.store.read(Stage.ARCHITECTURE, slug), path)
        except MalformedDocumentError as e:
            report.issues.append(str(e))
            return None

        report.issues.extend(f"{path}: {issue}" for issue in document.validate())
        for rid in document.missing_requirements(requirement_ids):
            report.issues.append(f"{path}: {rid} is not assigned to any module")
        for module in document.modules:
            for issue in module.validate():
                report.warnings.append(f"{path}: {module.name}: {issue}")
            if not module.requirement_ids:
                report.warnings.append(f"{path}: {module.name} does not trace to any requirement")
        return document

    def _check_specification(
        self,
        slug: str,
        requirement_ids: List[str],
        architecture: Optional[ArchitectureDocument],
        report: ReviewReport,
    ) -> None:
        path = self.store.relative(self.store.path(Stage.SPECIFICATION, slug))
        try:
            bundle = parse_bundle_index(
                self.store.read(Stage.SPECIFICATION, slug), self.store.bundle_dir(slug), path
            )
        except MalformedDocumentError as e:
            report.issues.append(str(e))
            return

        covered = {row.requirement_id for row in bundle.traceability}
        for rid in requirement_ids:
            if rid not in covered:
                report.issues.append(f"{path}: {rid} is missing from the traceability matrix")
        for spec_path in bundle.files:
            if not spec_path.exists():
                report.issues.append(f"{path}: listed file {self.store.relative(spec_path)} does not exist")

        if architecture is not None:
            contracted = {spec.module for spec in bundle.contracts}
            for module in architecture.modules:
                if module.name not in contracted:
                    report.warnings.append(f"{path}: no contract spec for module {module.name}")

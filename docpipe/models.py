"""Data models for docpipe stage documents.

This module contains the core data structures passed between the pipeline
stages: requirements, architecture modules, specification bundles,
implementation stubs and the workflow step guide.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import PartialGenerationError


_REQUIREMENT_ID_PATTERN = re.compile(r"^FR-(\d+)$")

STATEFUL_KEYWORDS = (
    "persist",
    "storage",
    "store",
    "save",
    "count",
    "history",
    "record",
    "cache",
    "track",
)

# Keywords match at the start of a word, so "stored" counts but "account" does not
STATEFUL_PATTERN = re.compile(r"\b(?:" + "|".join(STATEFUL_KEYWORDS) + r")\w*", re.IGNORECASE)


class Priority(str, Enum):
    """MoSCoW-style priority of a functional requirement."""

    MUST_HAVE = "MustHave"
    SHOULD_HAVE = "ShouldHave"
    NICE_TO_HAVE = "NiceToHave"


class Depth(str, Enum):
    """Editorial label for how much complexity a module's interface hides."""

    DEEP = "Deep"
    MEDIUM = "Medium"
    SHALLOW = "Shallow"


class Stage(str, Enum):
    """Pipeline stages, in execution order."""

    REQUIREMENTS = "requirements"
    ARCHITECTURE = "architecture"
    SPECIFICATION = "specifications"
    IMPLEMENTATION = "implementation"


class PipelineState(str, Enum):
    """Forward-only lifecycle of a feature slug."""

    CREATED = "Created"
    REQUIREMENTS_DRAFTED = "RequirementsDrafted"
    ARCHITECTURE_DRAFTED = "ArchitectureDrafted"
    SPECIFIED = "Specified"
    IMPLEMENTED = "Implemented"


def _today() -> str:
    return datetime.utcnow().strftime("%Y-%m-%d")


@dataclass(slots=True)
class Question:
    """A clarifying question put to the user."""

    prompt: str
    options: List[str] = field(default_factory=list)
    context: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"prompt": self.prompt, "options": list(self.options), "context": self.context}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        return cls(
            prompt=data["prompt"],
            options=data.get("options", []),
            context=data.get("context", ""),
        )


# ---------------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class FunctionalRequirement:
    """A single ``FR-<n>`` entry of a requirements document."""

    identifier: str
    title: str
    description: str
    acceptance_criteria: List[str] = field(default_factory=list)
    priority: Priority = Priority.MUST_HAVE

    @property
    def number(self) -> int:
        match = _REQUIREMENT_ID_PATTERN.match(self.identifier)
        return int(match.group(1)) if match else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "title": self.title,
            "description": self.description,
            "acceptance_criteria": list(self.acceptance_criteria),
            "priority": self.priority.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FunctionalRequirement":
        return cls(
            identifier=data["identifier"],
            title=data["title"],
            description=data["description"],
            acceptance_criteria=data.get("acceptance_criteria", []),
            priority=Priority(data.get("priority", Priority.MUST_HAVE.value)),
        )


@dataclass(slots=True)
class NonFunctionalRequirement:
    """A single ``NFR-<n>`` entry."""

    identifier: str
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {"identifier": self.identifier, "description": self.description}


@dataclass(slots=True)
class RequirementsDocument:
    """Structured content of ``docs/requirements/<slug>.md``."""

    slug: str
    feature_name: str
    description: str
    overview: str
    functional_requirements: List[FunctionalRequirement] = field(default_factory=list)
    non_functional_requirements: List[NonFunctionalRequirement] = field(default_factory=list)
    constraints: List[str] = field(default_factory=list)
    assumptions: List[str] = field(default_factory=list)
    open_questions: List[str] = field(default_factory=list)
    created: str = field(default_factory=_today)

    SECTIONS = (
        "Overview",
        "Functional Requirements",
        "Non-Functional Requirements",
        "Constraints",
        "Assumptions",
        "Open Questions",
    )

    @property
    def requirement_ids(self) -> List[str]:
        return [fr.identifier for fr in self.functional_requirements]

    def requirement(self, identifier: str) -> Optional[FunctionalRequirement]:
        for fr in self.functional_requirements:
            if fr.identifier == identifier:
                return fr
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "feature_name": self.feature_name,
            "description": self.description,
            "overview": self.overview,
            "functional_requirements": [fr.to_dict() for fr in self.functional_requirements],
            "non_functional_requirements": [nfr.to_dict() for nfr in self.non_functional_requirements],
            "constraints": list(self.constraints),
            "assumptions": list(self.assumptions),
            "open_questions": list(self.open_questions),
            "created": self.created,
        }

    def validate(self) -> List[str]:
        """Validate the document and return any issues."""
        issues = []

        if not self.slug:
            issues.append("Slug is required")
        if not self.feature_name:
            issues.append("Feature name is required")
        if not self.functional_requirements:
            issues.append("At least one functional requirement is required")

        previous = 0
        seen = set()
        for fr in self.functional_requirements:
            if not _REQUIREMENT_ID_PATTERN.match(fr.identifier):
                issues.append(f"Invalid requirement identifier '{fr.identifier}'")
                continue
            if fr.identifier in seen:
                issues.append(f"Duplicate requirement identifier '{fr.identifier}'")
            elif fr.number <= previous:
                issues.append(f"Requirement identifiers must increase ({fr.identifier} after FR-{previous})")
            seen.add(fr.identifier)
            previous = max(previous, fr.number)
            if not fr.acceptance_criteria:
                issues.append(f"{fr.identifier} has no acceptance criteria")

        return issues


# ---------------------------------------------------------------------------
# Architecture
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class InterfaceMethod:
    """One operation on a module's public interface."""

    name: str
    requirement_id: str = ""
    summary: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "requirement_id": self.requirement_id, "summary": self.summary}


@dataclass(slots=True)
class Module:
    """An architecture module entry."""

    name: str
    responsibility: str
    interface: List[InterfaceMethod] = field(default_factory=list)
    hidden_complexity: str = ""
    depth: Depth = Depth.SHALLOW
    requirement_ids: List[str] = field(default_factory=list)

    @property
    def is_stateful(self) -> bool:
        return bool(STATEFUL_PATTERN.search(self.responsibility))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "responsibility": self.responsibility,
            "interface": [method.to_dict() for method in self.interface],
            "hidden_complexity": self.hidden_complexity,
            "depth": self.depth.value,
            "requirement_ids": list(self.requirement_ids),
            "stateful": self.is_stateful,
        }

    def validate(self) -> List[str]:
        """Validate the module entry and return any issues."""
        issues = []
        if not self.name or not re.match(r"^[A-Za-z][A-Za-z0-9]*$", self.name):
            issues.append(f"Module name '{self.name}' is not a valid type name")
        if not self.responsibility:
            issues.append("Responsibility is required")
        if not self.interface:
            issues.append("At least one interface method is required")
        return issues


@dataclass(slots=True)
class ArchitectureDocument:
    """Structured content of ``docs/architecture/<slug>.md``."""

    slug: str
    feature_name: str
    requirements_path: str
    overview: str
    modules: List[Module] = field(default_factory=list)
    domain_entities: List[str] = field(default_factory=list)
    decisions: List[str] = field(default_factory=list)
    traceability: Dict[str, List[str]] = field(default_factory=dict)
    created: str = field(default_factory=_today)

    def module(self, name: str) -> Optional[Module]:
        for module in self.modules:
            if module.name == name:
                return module
        return None

    def missing_requirements(self, requirement_ids: List[str]) -> List[str]:
        """Requirement ids with no module in the traceability table."""
        return [rid for rid in requirement_ids if not self.traceability.get(rid)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "feature_name": self.feature_name,
            "requirements_path": self.requirements_path,
            "overview": self.overview,
            "modules": [module.to_dict() for module in self.modules],
            "domain_entities": list(self.domain_entities),
            "decisions": list(self.decisions),
            "traceability": {rid: list(names) for rid, names in self.traceability.items()},
            "created": self.created,
        }

    def validate(self) -> List[str]:
        issues = []
        names = [module.name for module in self.modules]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        for name in duplicates:
            issues.append(f"Duplicate module name '{name}'")
        for rid, module_names in self.traceability.items():
            for name in module_names:
                if name not in names:
                    issues.append(f"{rid} traces to unknown module '{name}'")
        return issues


# ---------------------------------------------------------------------------
# Specification bundle
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ContractSpec:
    """Interface-obligation test stub for one module."""

    name: str
    module: str
    path: Path
    methods: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "module": self.module, "path": str(self.path), "methods": list(self.methods)}


@dataclass(slots=True)
class BehaviorSpec:
    """Acceptance-criteria test stub for one functional requirement."""

    name: str
    requirement_id: str
    path: Path
    criteria: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "requirement_id": self.requirement_id,
            "path": str(self.path),
            "criteria": list(self.criteria),
        }


@dataclass(slots=True)
class PropertySpec:
    """Invariant test stub for one stateful module."""

    name: str
    module: str
    path: Path

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "module": self.module, "path": str(self.path)}


@dataclass(slots=True)
class TraceabilityRow:
    """One requirement-to-artifact row of the bundle matrix."""

    requirement_id: str
    module: str = ""
    contract: str = ""
    behavior: str = ""
    property_spec: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "requirement_id": self.requirement_id,
            "module": self.module,
            "contract": self.contract,
            "behavior": self.behavior,
            "property": self.property_spec,
        }


@dataclass(slots=True)
class SpecificationBundle:
    """Everything written under ``docs/specifications/<slug>/``."""

    slug: str
    root: Path
    language: str
    contracts: List[ContractSpec] = field(default_factory=list)
    behaviors: List[BehaviorSpec] = field(default_factory=list)
    properties: List[PropertySpec] = field(default_factory=list)
    domain_types: List[str] = field(default_factory=list)
    traceability: List[TraceabilityRow] = field(default_factory=list)
    failures: List[PartialGenerationError] = field(default_factory=list)
    readme_path: Optional[Path] = None

    @property
    def files(self) -> List[Path]:
        paths: List[Path] = [spec.path for spec in self.contracts]
        paths.extend(spec.path for spec in self.behaviors)
        paths.extend(spec.path for spec in self.properties)
        return paths

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "root": str(self.root),
            "language": self.language,
            "contracts": [spec.to_dict() for spec in self.contracts],
            "behaviors": [spec.to_dict() for spec in self.behaviors],
            "properties": [spec.to_dict() for spec in self.properties],
            "domain_types": list(self.domain_types),
            "traceability": [row.to_dict() for row in self.traceability],
            "failures": [failure.to_dict() for failure in self.failures],
            "readme_path": str(self.readme_path) if self.readme_path else None,
        }


@dataclass(slots=True)
class ImplementationStub:
    """A generated source file for one interface or value type."""

    type_name: str
    kind: str  # 'interface' or 'value'
    path: Path
    source: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"type_name": self.type_name, "kind": self.kind, "path": str(self.path), "source": self.source}


@dataclass(slots=True)
class ReviewReport:
    """Read-only completeness report over a slug's artifacts."""

    slug: str
    state: PipelineState
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    stale: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "state": self.state.value,
            "passed": self.passed,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "stale": list(self.stale),
        }


# ---------------------------------------------------------------------------
# Workflow guide
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class WorkflowStep:
    """Represents a single step in the docpipe workflow."""

    step_number: int
    name: str
    command: str
    description: str
    purpose: str
    prerequisites: List[str] = field(default_factory=list)
    expected_output: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_number": self.step_number,
            "name": self.name,
            "command": self.command,
            "description": self.description,
            "purpose": self.purpose,
            "prerequisites": list(self.prerequisites),
            "expected_output": self.expected_output,
        }

    def can_execute(self, completed_steps: List[str]) -> bool:
        """Check if this step can be executed based on prerequisites."""
        return all(prereq in completed_steps for prereq in self.prerequisites)


WORKFLOW_STEPS = [
    WorkflowStep(
        step_number=1,
        name="Requirements Refinement",
        command="refine-requirements",
        description="Turn a free-text feature description into numbered functional requirements",
        purpose="Agree on what the feature must do before designing it",
        expected_output="docs/requirements/{slug}.md",
    ),
    WorkflowStep(
        step_number=2,
        name="Architecture Design",
        command="design-architecture",
        description="Group requirements into modules with interfaces and depth labels",
        purpose="Decide the module boundaries and trace every requirement to a module",
        prerequisites=["Requirements Refinement"],
        expected_output="docs/architecture/{slug}.md",
    ),
    WorkflowStep(
        step_number=3,
        name="Specification",
        command="specify",
        description="Emit contract, behavior and property test stubs plus a traceability index",
        purpose="Fix the names and structure of the tests before any code exists",
        prerequisites=["Architecture Design"],
        expected_output="docs/specifications/{slug}/README.md",
    ),
    WorkflowStep(
        step_number=4,
        name="Implementation Scaffolding",
        command="implement-functional",
        description="Emit interface and value-type source stubs for the specified contracts",
        purpose="Give the tests something to compile against",
        prerequisites=["Specification"],
        expected_output="src/.../{Type}.<ext>",
    ),
    WorkflowStep(
        step_number=5,
        name="Review",
        command="review-functional",
        description="Check traceability coverage and staleness across all stage outputs",
        purpose="Catch missing requirements and outdated downstream artifacts",
        prerequisites=["Requirements Refinement"],
        expected_output="Review report",
    ),
]

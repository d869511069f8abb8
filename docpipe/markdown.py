"""Markdown rendering and parsing for stage documents.

Each stage reads the markdown its predecessor wrote, so every renderer here
has a matching parser. Only section names, ordering and the list/table
shapes are significant; surrounding prose is free-form.
"""

from __future__ import annotations

import logging
import re
import textwrap
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import MalformedDocumentError
from .models import (
    ArchitectureDocument,
    BehaviorSpec,
    ContractSpec,
    Depth,
    FunctionalRequirement,
    InterfaceMethod,
    Module,
    NonFunctionalRequirement,
    Priority,
    PropertySpec,
    RequirementsDocument,
    SpecificationBundle,
    TraceabilityRow,
)

logger = logging.getLogger("docpipe.markdown")

NONE_ITEM = "None identified"
EMPTY_CELL = "-"

_HEADING_PATTERN = re.compile(r"^## (?P<name>.+?)\s*$")
_META_PATTERN = re.compile(r"^\*\*(?P<key>[A-Za-z ]+)\*\*:\s*(?P<value>.*?)\s*$")
_BULLET_PATTERN = re.compile(r"^- (?P<item>.+)$")
_FIELD_PATTERN = re.compile(r"^- \*\*(?P<key>[A-Za-z ]+)\*\*:\s*(?P<value>.*)$")
_SUB_BULLET_PATTERN = re.compile(r"^\s{2,}- (?P<item>.+)$")
_FR_HEADING_PATTERN = re.compile(r"^### (?P<id>FR-\d+):\s*(?P<title>.+?)\s*$")
_NFR_PATTERN = re.compile(r"^- \*\*(?P<id>NFR-\d+)\*\*:\s*(?P<text>.+)$")
_MODULE_HEADING_PATTERN = re.compile(r"^### (?P<name>\S+)\s*$")
_METHOD_PATTERN = re.compile(r"^\s{2,}- `(?P<name>\w+)\(\)`(?: \((?P<rid>FR-\d+)\))?(?::\s*(?P<summary>.*))?$")
_TABLE_ROW_PATTERN = re.compile(r"^\|(?P<cells>.+)\|\s*$")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _one_line(text: str) -> str:
    return " ".join(text.split())


def _bullets(items: List[str]) -> str:
    return "\n".join(f"- {item}" for item in items) if items else f"- {NONE_ITEM}"


def _scan_headings(text: str) -> Iterator[Tuple[str, Optional[str]]]:
    """Yield each line with its ``## section`` name, or None. Code fences hide headings."""
    in_fence = False
    for line in text.splitlines():
        if line.startswith("```"):
            in_fence = not in_fence
        match = None if in_fence else _HEADING_PATTERN.match(line)
        yield line, match.group("name") if match else None


def _split_sections(text: str) -> Tuple[List[str], "Dict[str, List[str]]"]:
    """Return header lines and a mapping of ``## section`` name to body lines."""
    header: List[str] = []
    sections: Dict[str, List[str]] = {}
    current: Optional[List[str]] = None
    for line, name in _scan_headings(text):
        if name is not None:
            current = sections.setdefault(name, [])
            continue
        (current if current is not None else header).append(line)
    return header, sections


def _section_order(text: str) -> List[str]:
    return [name for _line, name in _scan_headings(text) if name is not None]


def _meta(lines: List[str]) -> Dict[str, str]:
    meta: Dict[str, str] = {}
    for line in lines:
        match = _META_PATTERN.match(line.strip())
        if match:
            meta[match.group("key").strip().lower()] = match.group("value").strip().strip("`").strip('"')
    return meta


def _title(lines: List[str], prefix: str) -> str:
    for line in lines:
        if line.startswith(f"# {prefix}:"):
            return line.split(":", 1)[1].strip()
    return ""


def _list_items(lines: List[str]) -> List[str]:
    items = []
    for line in lines:
        match = _BULLET_PATTERN.match(line)
        if match and match.group("item").strip() != NONE_ITEM:
            items.append(match.group("item").strip())
    return items


def _paragraph(lines: List[str]) -> str:
    return "\n".join(lines).strip()


def _table_rows(lines: List[str]) -> List[List[str]]:
    """Body rows of the first markdown table in ``lines``."""
    rows: List[List[str]] = []
    seen_header = False
    for line in lines:
        match = _TABLE_ROW_PATTERN.match(line.strip())
        if not match:
            continue
        cells = [cell.strip() for cell in match.group("cells").split("|")]
        if all(re.fullmatch(r":?-{3,}:?", cell) for cell in cells):
            continue
        if not seen_header:
            seen_header = True
            continue
        rows.append(cells)
    return rows


def _cell_list(cell: str) -> List[str]:
    if cell in ("", EMPTY_CELL):
        return []
    return [part.strip() for part in cell.split(",") if part.strip()]


def _require_sections(path: object, text: str, required: Tuple[str, ...]) -> None:
    order = [name for name in _section_order(text) if name in required]
    missing = [name for name in required if name not in order]
    if missing:
        raise MalformedDocumentError(path, f"missing section(s): {', '.join(missing)}")
    if order != list(required):
        raise MalformedDocumentError(path, f"sections out of order: {', '.join(order)}")


# ---------------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------------


def render_requirements(document: RequirementsDocument) -> str:
    blocks: List[str] = []
    for fr in document.functional_requirements:
        criteria = "\n".join(f"  - {criterion}" for criterion in fr.acceptance_criteria)
        blocks.append(
            f"### {fr.identifier}: {fr.title}\n"
            f"- **Priority**: {fr.priority.value}\n"
            f"- **Description**: {fr.description}\n"
            f"- **Acceptance Criteria**:\n{criteria}"
        )
    functional_block = "\n\n".join(blocks)
    nfr_block = "\n".join(
        f"- **{nfr.identifier}**: {nfr.description}" for nfr in document.non_functional_requirements
    ) or f"- {NONE_ITEM}"

    return (
        f"# Requirements: {document.feature_name}\n\n"
        f"**Slug**: `{document.slug}`  \n"
        f"**Created**: {document.created}  \n"
        f"**Status**: Draft  \n"
        f"**Input**: \"{_one_line(document.description)}\"\n\n"
        f"## Overview\n{document.overview.strip()}\n\n"
        f"## Functional Requirements\n\n{functional_block}\n\n"
        f"## Non-Functional Requirements\n{nfr_block}\n\n"
        f"## Constraints\n{_bullets(document.constraints)}\n\n"
        f"## Assumptions\n{_bullets(document.assumptions)}\n\n"
        f"## Open Questions\n{_bullets(document.open_questions)}\n"
    )


def parse_requirements(text: str, path: object = "<requirements>") -> RequirementsDocument:
    """Parse a requirements document written by :func:`render_requirements`."""
    _require_sections(path, text, RequirementsDocument.SECTIONS)
    header, sections = _split_sections(text)
    meta = _meta(header)
    slug = meta.get("slug", "")
    if not slug:
        raise MalformedDocumentError(path, "missing **Slug** line")

    functional: List[FunctionalRequirement] = []
    current: Optional[FunctionalRequirement] = None
    in_criteria = False
    for line in sections["Functional Requirements"]:
        heading = _FR_HEADING_PATTERN.match(line)
        if heading:
            current = FunctionalRequirement(heading.group("id"), heading.group("title"), "")
            functional.append(current)
            in_criteria = False
            continue
        if current is None:
            continue
        field_match = _FIELD_PATTERN.match(line)
        if field_match:
            key = field_match.group("key").strip().lower()
            value = field_match.group("value").strip()
            in_criteria = key == "acceptance criteria"
            if key == "priority":
                try:
                    current.priority = Priority(value)
                except ValueError:
                    logger.warning(f"{path}: unknown priority '{value}' on {current.identifier}, using MustHave")
            elif key == "description":
                current.description = value
            continue
        sub = _SUB_BULLET_PATTERN.match(line)
        if sub and in_criteria:
            current.acceptance_criteria.append(sub.group("item").strip())

    non_functional = [
        NonFunctionalRequirement(m.group("id"), m.group("text").strip())
        for m in (_NFR_PATTERN.match(line) for line in sections["Non-Functional Requirements"])
        if m
    ]

    return RequirementsDocument(
        slug=slug,
        feature_name=_title(header, "Requirements") or slug,
        description=meta.get("input", ""),
        overview=_paragraph(sections["Overview"]),
        functional_requirements=functional,
        non_functional_requirements=non_functional,
        constraints=_list_items(sections["Constraints"]),
        assumptions=_list_items(sections["Assumptions"]),
        open_questions=_list_items(sections["Open Questions"]),
        created=meta.get("created", ""),
    )


# ---------------------------------------------------------------------------
# Architecture
# ---------------------------------------------------------------------------

ARCHITECTURE_SECTIONS = (
    "Overview",
    "Modules",
    "Module Diagram",
    "Domain Entities",
    "Decisions",
    "Requirements Traceability",
)


def render_module_diagram(document: ArchitectureDocument) -> str:
    lines = ["```mermaid", "graph TD", f'    feature["{document.feature_name}"]']
    for module in document.modules:
        lines.append(f'    feature --> {module.name}["{module.name} ({module.depth.value})"]')
        if module.is_stateful:
            lines.append(f"    {module.name} --> {module.name}State[({module.name} state)]")
    lines.append("```")
    return "\n".join(lines)


def render_architecture(document: ArchitectureDocument) -> str:
    module_blocks: List[str] = []
    for module in document.modules:
        methods = "\n".join(
            f"  - `{method.name}()`" + (f" ({method.requirement_id})" if method.requirement_id else "")
            + (f": {method.summary}" if method.summary else "")
            for method in module.interface
        )
        module_blocks.append(
            f"### {module.name}\n"
            f"- **Responsibility**: {module.responsibility}\n"
            f"- **Depth**: {module.depth.value}\n"
            f"- **Stateful**: {'yes' if module.is_stateful else 'no'}\n"
            f"- **Requirements**: {', '.join(module.requirement_ids) or EMPTY_CELL}\n"
            f"- **Interface**:\n{methods}\n"
            f"- **Hidden Complexity**: {module.hidden_complexity}"
        )

    trace_rows = "\n".join(
        f"| {rid} | {', '.join(names) or EMPTY_CELL} |" for rid, names in document.traceability.items()
    )

    return (
        f"# Architecture: {document.feature_name}\n\n"
        f"**Slug**: `{document.slug}`  \n"
        f"**Created**: {document.created}  \n"
        f"**Requirements**: `{document.requirements_path}`\n\n"
        f"## Overview\n{document.overview.strip()}\n\n"
        f"## Modules\n\n" + "\n\n".join(module_blocks) + "\n\n"
        f"## Module Diagram\n{render_module_diagram(document)}\n\n"
        f"## Domain Entities\n{_bullets(document.domain_entities)}\n\n"
        f"## Decisions\n{_bullets(document.decisions)}\n\n"
        f"## Requirements Traceability\n"
        f"| Requirement | Module(s) |\n"
        f"|-------------|-----------|\n"
        f"{trace_rows}\n"
    )


def parse_architecture(text: str, path: object = "<architecture>") -> ArchitectureDocument:
    """Parse an architecture document.

    Module entries are parsed leniently: a module with missing fields is kept
    so the specification stage can report it as a partial failure instead of
    losing it silently.
    """
    _require_sections(path, text, ("Overview", "Modules", "Requirements Traceability"))
    header, sections = _split_sections(text)
    meta = _meta(header)
    slug = meta.get("slug", "")
    if not slug:
        raise MalformedDocumentError(path, "missing **Slug** line")

    modules: List[Module] = []
    current: Optional[Module] = None
    in_interface = False
    for line in sections["Modules"]:
        heading = _MODULE_HEADING_PATTERN.match(line)
        if heading:
            current = Module(name=heading.group("name"), responsibility="")
            modules.append(current)
            in_interface = False
            continue
        if current is None:
            continue
        field_match = _FIELD_PATTERN.match(line)
        if field_match:
            key = field_match.group("key").strip().lower()
            value = field_match.group("value").strip()
            in_interface = key == "interface"
            if key == "responsibility":
                current.responsibility = value
            elif key == "depth":
                try:
                    current.depth = Depth(value)
                except ValueError:
                    logger.warning(f"{path}: unknown depth '{value}' on {current.name}, using Shallow")
            elif key == "requirements":
                current.requirement_ids = _cell_list(value)
            elif key == "hidden complexity":
                current.hidden_complexity = value
            continue
        method = _METHOD_PATTERN.match(line)
        if method and in_interface:
            current.interface.append(
                InterfaceMethod(
                    name=method.group("name"),
                    requirement_id=method.group("rid") or "",
                    summary=(method.group("summary") or "").strip(),
                )
            )

    traceability: Dict[str, List[str]] = {}
    for cells in _table_rows(sections["Requirements Traceability"]):
        if len(cells) >= 2 and cells[0]:
            traceability[cells[0]] = _cell_list(cells[1])

    return ArchitectureDocument(
        slug=slug,
        feature_name=_title(header, "Architecture") or slug,
        requirements_path=meta.get("requirements", ""),
        overview=_paragraph(sections["Overview"]),
        modules=modules,
        domain_entities=_list_items(sections.get("Domain Entities", [])),
        decisions=_list_items(sections.get("Decisions", [])),
        traceability=traceability,
        created=meta.get("created", ""),
    )


# ---------------------------------------------------------------------------
# Specification bundle index
# ---------------------------------------------------------------------------


def render_bundle_index(bundle: SpecificationBundle, feature_name: str, architecture_path: str) -> str:
    def rel(path: Path) -> str:
        return Path(path).relative_to(bundle.root).as_posix()

    contract_rows = "\n".join(
        f"| {spec.module} | {rel(spec.path)} | {', '.join(spec.methods) or EMPTY_CELL} |"
        for spec in bundle.contracts
    )
    behavior_rows = "\n".join(
        f"| {spec.requirement_id} | {rel(spec.path)} | {len(spec.criteria)} |" for spec in bundle.behaviors
    )
    property_rows = "\n".join(f"| {spec.module} | {rel(spec.path)} |" for spec in bundle.properties)
    trace_rows = "\n".join(
        f"| {row.requirement_id} | {row.module or EMPTY_CELL} | {row.contract or EMPTY_CELL} | "
        f"{row.behavior or EMPTY_CELL} | {row.property_spec or EMPTY_CELL} |"
        for row in bundle.traceability
    )
    failures = [f"{failure.module}: {failure.reason}" for failure in bundle.failures]
    file_count = len(bundle.files)

    content = f"""# Specification Bundle: {feature_name}

**Slug**: `{bundle.slug}`
**Architecture**: `{architecture_path}`
**Language**: {bundle.language}
**Files**: {file_count}

All test bodies are placeholders. Replace each `TODO` with a real assertion
before implementing the corresponding module.

## Contracts
| Module | File | Methods |
|--------|------|---------|
{contract_rows}

## Behaviors
| Requirement | File | Criteria |
|-------------|------|----------|
{behavior_rows}

## Properties
| Module | File |
|--------|------|
{property_rows}

## Domain Types
{_bullets(bundle.domain_types)}

## Traceability Matrix
| Requirement | Module | Contract | Behavior | Property |
|-------------|--------|----------|----------|----------|
{trace_rows}

## Generation Failures
{_bullets(failures)}
"""
    return textwrap.dedent(content).replace("\n\n\n", "\n\n").strip() + "\n"


def parse_bundle_index(text: str, root: Path, path: object = "<bundle>") -> SpecificationBundle:
    """Parse a bundle README back into a :class:`SpecificationBundle`."""
    _require_sections(path, text, ("Contracts", "Traceability Matrix"))
    header, sections = _split_sections(text)
    meta = _meta(header)
    slug = meta.get("slug", "")
    if not slug:
        raise MalformedDocumentError(path, "missing **Slug** line")

    bundle = SpecificationBundle(slug=slug, root=Path(root), language=meta.get("language", "kotlin"))
    for cells in _table_rows(sections["Contracts"]):
        if len(cells) >= 3:
            bundle.contracts.append(
                ContractSpec(
                    name=Path(cells[1]).stem,
                    module=cells[0],
                    path=bundle.root / cells[1],
                    methods=_cell_list(cells[2]),
                )
            )
    for cells in _table_rows(sections.get("Behaviors", [])):
        if len(cells) >= 2:
            bundle.behaviors.append(
                BehaviorSpec(name=Path(cells[1]).stem, requirement_id=cells[0], path=bundle.root / cells[1])
            )
    for cells in _table_rows(sections.get("Properties", [])):
        if len(cells) >= 2:
            bundle.properties.append(
                PropertySpec(name=Path(cells[1]).stem, module=cells[0], path=bundle.root / cells[1])
            )
    bundle.domain_types = _list_items(sections.get("Domain Types", []))
    for cells in _table_rows(sections["Traceability Matrix"]):
        if len(cells) >= 5:
            values = ["" if cell == EMPTY_CELL else cell for cell in cells]
            bundle.traceability.append(TraceabilityRow(*values[:5]))
    return bundle

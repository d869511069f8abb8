"""Specification: architecture document to a bundle of test stubs plus index."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from ..errors import MalformedDocumentError, NotFoundError, PartialGenerationError
from ..markdown import parse_architecture, parse_requirements, render_bundle_index
from ..models import (
    ArchitectureDocument,
    BehaviorSpec,
    ContractSpec,
    FunctionalRequirement,
    Module,
    PropertySpec,
    RequirementsDocument,
    SpecificationBundle,
    Stage,
    TraceabilityRow,
)
from ..naming import pascal_case, unique
from ..pipeline_logging import log_operation, log_performance, log_specification_generation
from ..templates import StubTemplates, templates_for
from .base import BaseStage

CONTRACTS_DIR = "contracts"
BEHAVIORS_DIR = "behaviors"
PROPERTIES_DIR = "properties"


def _requirement_sort_key(identifier: str):
    fr = FunctionalRequirement(identifier, "", "")
    return (fr.number == 0, fr.number, identifier)


class SpecificationStage(BaseStage):
    """Emit contract, behavior and property stubs for an architecture."""

    stage = Stage.SPECIFICATION

    @log_performance("specify")
    def specify(self, slug: str) -> SpecificationBundle:
        """Generate the specification bundle for ``slug``.

        A module whose entry cannot be turned into stubs is recorded in
        ``bundle.failures`` and the remaining modules are still generated.
        """
        with log_operation("specify", slug=slug, language=self.config.language):
            architecture_path = self.store.relative(self.store.path(Stage.ARCHITECTURE, slug))
            architecture = parse_architecture(self.store.read(Stage.ARCHITECTURE, slug), architecture_path)
            requirements = self._load_requirements(slug)

            templates = templates_for(self.config.language)
            package = self.config.package_for(slug)
            bundle = SpecificationBundle(
                slug=slug,
                root=self.store.bundle_dir(slug),
                language=templates.language,
            )
            contents: Dict[Path, str] = {}

            for module in architecture.modules:
                try:
                    self._generate_module(module, bundle, templates, package, contents)
                except PartialGenerationError as failure:
                    self.logger.warning(str(failure))
                    bundle.failures.append(failure)

            requirement_list = self._requirements_for(architecture, requirements)
            self._generate_behaviors(requirement_list, bundle, templates, package, contents)

            module_names = {module.name for module in architecture.modules}
            bundle.domain_types = [entity for entity in architecture.domain_entities if entity not in module_names]
            bundle.traceability = self._traceability(architecture, requirement_list, bundle)
            bundle.readme_path = self.store.path(Stage.SPECIFICATION, slug)

            self.confirm_overwrite(slug, self._summary(bundle))
            self.store.fs.remove_tree(bundle.root)
            for path, content in contents.items():
                self.store.write_file(path, content, slug=slug, stage=self.stage)
            self.store.write(
                self.stage,
                slug,
                render_bundle_index(bundle, architecture.feature_name, architecture_path),
            )

            self.logger.info(
                f"Specification for '{slug}': {len(bundle.contracts)} contract(s), "
                f"{len(bundle.behaviors)} behavior(s), {len(bundle.properties)} property spec(s), "
                f"{len(bundle.failures)} failure(s)"
            )
            log_specification_generation(slug, len(bundle.files), len(bundle.failures))
        return bundle

    def _load_requirements(self, slug: str) -> Optional[RequirementsDocument]:
        """Requirements are optional here; they only supply criteria text."""
        try:
            text = self.store.read(Stage.REQUIREMENTS, slug)
        except NotFoundError:
            self.logger.info(f"No requirements document for '{slug}'; behaviors use module summaries")
            return None
        try:
            return parse_requirements(text, self.store.relative(self.store.path(Stage.REQUIREMENTS, slug)))
        except MalformedDocumentError as e:
            self.logger.warning(f"Ignoring requirements for '{slug}': {e}")
            return None

    def _generate_module(
        self,
        module: Module,
        bundle: SpecificationBundle,
        templates: StubTemplates,
        package: str,
        contents: Dict[Path, str],
    ) -> None:
        issues = module.validate()
        if issues:
            raise PartialGenerationError(module.name or "<unnamed>", "; ".join(issues))

        name = f"{module.name}ContractSpec"
        path = bundle.root / CONTRACTS_DIR / templates.spec_file_name(name)
        contract_source = templates.contract_spec(package, module)
        property_spec = None
        property_source = ""
        if module.is_stateful:
            property_name = f"{module.name}PropertySpec"
            property_spec = PropertySpec(
                name=property_name,
                module=module.name,
                path=bundle.root / PROPERTIES_DIR / templates.spec_file_name(property_name),
            )
            property_source = templates.property_spec(package, module)

        # Register only once every template for the module rendered
        bundle.contracts.append(
            ContractSpec(name=name, module=module.name, path=path, methods=[m.name for m in module.interface])
        )
        contents[path] = contract_source
        if property_spec is not None:
            bundle.properties.append(property_spec)
            contents[property_spec.path] = property_source

    def _requirements_for(
        self, architecture: ArchitectureDocument, requirements: Optional[RequirementsDocument]
    ) -> List[FunctionalRequirement]:
        """Functional requirements to write behavior specs for.

        Requirements named only in the architecture get a placeholder entry
        built from the first interface method traced to them.
        """
        known: Dict[str, FunctionalRequirement] = {}
        if requirements is not None:
            for fr in requirements.functional_requirements:
                known[fr.identifier] = fr

        identifiers = set(known)
        identifiers.update(architecture.traceability)
        for module in architecture.modules:
            identifiers.update(module.requirement_ids)
            identifiers.update(m.requirement_id for m in module.interface if m.requirement_id)

        result: List[FunctionalRequirement] = []
        for rid in sorted(identifiers, key=_requirement_sort_key):
            if rid in known:
                result.append(known[rid])
                continue
            summary = next(
                (m.summary for module in architecture.modules for m in module.interface
                 if m.requirement_id == rid and m.summary),
                rid,
            )
            result.append(FunctionalRequirement(rid, summary, ""))
        return result

    def _generate_behaviors(
        self,
        requirement_list: List[FunctionalRequirement],
        bundle: SpecificationBundle,
        templates: StubTemplates,
        package: str,
        contents: Dict[Path, str],
    ) -> None:
        taken: List[str] = []
        for fr in requirement_list:
            base = pascal_case(fr.title) or pascal_case(fr.identifier)
            name = unique(f"{base}BehaviorSpec", taken)
            taken.append(name)
            path = bundle.root / BEHAVIORS_DIR / templates.spec_file_name(name)
            criteria = list(fr.acceptance_criteria) or [f"{fr.title} is satisfied"]
            contents[path] = templates.behavior_spec(package, name, fr)
            bundle.behaviors.append(BehaviorSpec(name=name, requirement_id=fr.identifier, path=path, criteria=criteria))

    @staticmethod
    def _traceability(
        architecture: ArchitectureDocument,
        requirement_list: List[FunctionalRequirement],
        bundle: SpecificationBundle,
    ) -> List[TraceabilityRow]:
        """One row per (requirement, module) pair, one per unassigned requirement."""
        contracts = {spec.module: spec.name for spec in bundle.contracts}
        properties = {spec.module: spec.name for spec in bundle.properties}
        behaviors = {spec.requirement_id: spec.name for spec in bundle.behaviors}

        rows: List[TraceabilityRow] = []
        for fr in requirement_list:
            modules = list(architecture.traceability.get(fr.identifier, []))
            for module in architecture.modules:
                if fr.identifier in module.requirement_ids and module.name not in modules:
                    modules.append(module.name)
            if not modules:
                rows.append(TraceabilityRow(fr.identifier, behavior=behaviors.get(fr.identifier, "")))
                continue
            for name in modules:
                rows.append(
                    TraceabilityRow(
                        requirement_id=fr.identifier,
                        module=name,
                        contract=contracts.get(name, ""),
                        behavior=behaviors.get(fr.identifier, ""),
                        property_spec=properties.get(name, ""),
                    )
                )
        return rows

    @staticmethod
    def _summary(bundle: SpecificationBundle) -> str:
        lines = [
            f"New specification bundle for '{bundle.slug}':",
            f"  {len(bundle.contracts)} contract spec(s), {len(bundle.behaviors)} behavior spec(s), "
            f"{len(bundle.properties)} property spec(s)",
        ]
        lines.extend(f"  failed: {failure.module} ({failure.reason})" for failure in bundle.failures)
        return "\n".join(lines)

"""Implementation scaffolding: specification bundle to source stubs."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import MalformedDocumentError, NotFoundError
from ..markdown import parse_architecture, parse_bundle_index
from ..models import ArchitectureDocument, ImplementationStub, InterfaceMethod, Module, Stage
from ..pipeline_logging import log_implementation_generation, log_operation, log_performance
from ..store import DocumentStore
from ..templates import templates_for
from .base import BaseStage


class ImplementationStage(BaseStage):
    """Emit one interface stub per contract and one value type per domain type."""

    stage = Stage.IMPLEMENTATION

    @log_performance("implement_functional")
    def implement(self, slug: str) -> List[ImplementationStub]:
        with log_operation("implement_functional", slug=slug):
            readme_path = self.store.path(Stage.SPECIFICATION, slug)
            bundle = parse_bundle_index(
                self.store.read(Stage.SPECIFICATION, slug),
                self.store.bundle_dir(slug),
                self.store.relative(readme_path),
            )
            architecture = self._load_architecture(slug)

            # Stubs follow the language the bundle was generated for
            store = self.store
            if bundle.language != self.config.language:
                self.logger.info(f"Using bundle language '{bundle.language}' for '{slug}'")
                store = DocumentStore(replace(self.config, language=bundle.language), self.store.fs)
            templates = templates_for(bundle.language)
            package = store.config.package_for(slug)
            directory = store.package_dir(slug)

            stubs: List[ImplementationStub] = []
            contents: Dict[Path, str] = {}
            interface_names = set()
            for contract in bundle.contracts:
                module = architecture.module(contract.module) if architecture else None
                if module is None:
                    module = Module(
                        name=contract.module,
                        responsibility="",
                        interface=[InterfaceMethod(name) for name in contract.methods],
                    )
                path = directory / templates.source_file_name(module.name)
                contents[path] = templates.interface_stub(package, module)
                stubs.append(
                    ImplementationStub(module.name, "interface", path, source=self.store.relative(contract.path))
                )
                interface_names.add(module.name)

            for type_name in bundle.domain_types:
                if type_name in interface_names:
                    continue
                path = directory / templates.source_file_name(type_name)
                contents[path] = templates.value_stub(package, type_name, f"domain entity of {slug}")
                stubs.append(ImplementationStub(type_name, "value", path, source=self.store.relative(readme_path)))

            summary = "\n".join(
                [f"New source stubs for '{slug}' in {store.relative(directory)}:"]
                + [f"  {stub.kind} {stub.type_name}" for stub in stubs]
            )
            self.confirm_overwrite(slug, summary, store=store)
            for path, content in contents.items():
                store.write_file(path, content, slug=slug, stage=self.stage)

            self.logger.info(f"Implementation stubs for '{slug}': {len(stubs)} file(s)")
            log_implementation_generation(slug, len(stubs), package=package)
        return stubs

    def _load_architecture(self, slug: str) -> Optional[ArchitectureDocument]:
        try:
            text = self.store.read(Stage.ARCHITECTURE, slug)
            return parse_architecture(text, self.store.relative(self.store.path(Stage.ARCHITECTURE, slug)))
        except (NotFoundError, MalformedDocumentError) as e:
            self.logger.warning(f"Architecture for '{slug}' unavailable, using contract method names only: {e}")
            return None

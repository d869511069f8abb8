"""Shared fixtures for docpipe tests."""

import logging
from typing import List

import pytest

from docpipe.config import (
    DOCS_DIR_ENV,
    LANGUAGE_ENV,
    LOG_FILE_ENV,
    LOG_LEVEL_ENV,
    PACKAGE_ENV,
    ROOT_ENV,
    SOURCE_DIR_ENV,
    PipelineConfig,
)
from docpipe.heuristics import traceability_for
from docpipe.markdown import render_architecture
from docpipe.models import ArchitectureDocument, InterfaceMethod, Module, Stage
from docpipe.pipeline_logging import LOGGER_NAME, observability_hooks, performance_monitor
from docpipe.store import DocumentStore


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's DOCPIPE_* settings out of the tests."""
    for name in (ROOT_ENV, DOCS_DIR_ENV, SOURCE_DIR_ENV, LANGUAGE_ENV, PACKAGE_ENV, LOG_LEVEL_ENV, LOG_FILE_ENV):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_observability():
    performance_monitor.clear()
    yield
    observability_hooks.hooks.clear()
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(root=tmp_path)


@pytest.fixture
def python_config(tmp_path):
    return PipelineConfig(root=tmp_path, language="python")


@pytest.fixture
def store(config):
    return DocumentStore(config)


def build_module(name: str, responsibility: str, *requirement_ids: str) -> Module:
    """A module with one interface method per requirement id."""
    methods = [
        InterfaceMethod(name=f"handle{rid.replace('-', '')}", requirement_id=rid, summary=f"Handle {rid}")
        for rid in requirement_ids
    ]
    return Module(
        name=name,
        responsibility=responsibility,
        interface=methods,
        hidden_complexity="Validation and error mapping.",
        requirement_ids=list(requirement_ids),
    )


def build_architecture(slug: str, modules: List[Module], entities: List[str] = None) -> ArchitectureDocument:
    return ArchitectureDocument(
        slug=slug,
        feature_name="Recipe Box",
        requirements_path=f"docs/requirements/{slug}.md",
        overview="Hand-written architecture used by the tests.",
        modules=modules,
        domain_entities=list(entities or []),
        decisions=["How will this feature be deployed? -> As a reusable library"],
        traceability=traceability_for(modules),
    )


@pytest.fixture
def make_module():
    return build_module


@pytest.fixture
def make_architecture():
    return build_architecture


@pytest.fixture
def write_architecture(store):
    """Write an architecture document straight to disk, skipping the stage."""
    def write(document: ArchitectureDocument):
        return store.write(Stage.ARCHITECTURE, document.slug, render_architecture(document))
    return write

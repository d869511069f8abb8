"""MCP server exposing the docpipe feature pipeline as tools."""

from __future__ import annotations

from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from docpipe.config import PipelineConfig
from docpipe.pipeline_logging import setup_logging
from docpipe.questions import PendingAnswerer
from docpipe.workflow import WorkflowManager

mcp = FastMCP("docpipe")


def _manager(root: Optional[str], answers: Optional[Dict[str, str]] = None) -> WorkflowManager:
    """Workflow bound to the resolved project root.

    Questions a stage asks are answered from ``answers``; anything left
    unanswered comes back as ``{"status": "needs_answers", "questions": [...]}``
    and the caller repeats the tool call with the answers filled in.
    """
    return WorkflowManager(PipelineConfig.from_env(root), PendingAnswerer(answers))


@mcp.tool()
def refine_requirements(
    description: str,
    feature_name: Optional[str] = None,
    answers: Optional[Dict[str, str]] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 1: Turn a free-text feature description into docs/requirements/<slug>.md.
    Asks up to 5 clarifying questions; call again with 'answers' keyed by question prompt."""

    return _manager(root, answers).refine_requirements(description, feature_name)


@mcp.tool()
def design_architecture(
    slug: str,
    answers: Optional[Dict[str, str]] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 2: Group the requirements of a feature into modules and write docs/architecture/<slug>.md.
    Requires refine_requirements to have run for the slug."""

    return _manager(root, answers).design_architecture(slug)


@mcp.tool()
def specify(
    slug: str,
    answers: Optional[Dict[str, str]] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 3: Emit contract, behavior and property test stubs under docs/specifications/<slug>/.
    Requires design_architecture to have run for the slug."""

    return _manager(root, answers).specify(slug)


@mcp.tool()
def implement_functional(
    slug: str,
    answers: Optional[Dict[str, str]] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 4: Emit interface and value-type source stubs for a specified feature."""

    return _manager(root, answers).implement_functional(slug)


@mcp.tool()
def review_functional(slug: str, root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 5: Check traceability coverage and flag stale outputs. Read-only."""

    return _manager(root).review_functional(slug)


@mcp.tool()
def feature_status(slug: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Report the pipeline state, stage outputs and stale artifacts of a feature."""

    return _manager(root).feature_status(slug)


@mcp.tool()
def list_features(root: Optional[str] = None) -> Dict[str, Any]:
    """Enumerate features that have a requirements document."""

    return _manager(root).list_features()


@mcp.tool()
def get_workflow_guide() -> Dict[str, Any]:
    """Describe the pipeline steps in the order they must run."""

    return WorkflowManager(PipelineConfig.from_env()).get_workflow_guide()


@mcp.resource("docpipe://features")
def resource_features() -> str:
    """Resource view listing features and their pipeline state."""

    listing = _manager(None).list_features()
    if not listing["features"]:
        return listing["message"]

    lines = ["docpipe features"]
    for feature in listing["features"]:
        lines.append(f"- {feature['slug']}: {feature['state']}")
    return "\n".join(lines)


if __name__ == "__main__":
    config = PipelineConfig.from_env()
    setup_logging(config.log_level, config.log_file)
    mcp.run(transport="stdio")

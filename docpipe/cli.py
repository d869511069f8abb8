"""docpipe command line entrypoint."""

import os
import sys
import json
import argparse
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from docpipe.config import LOG_LEVEL_ENV, PipelineConfig
from docpipe.models import Stage
from docpipe.pipeline_logging import setup_logging
from docpipe.questions import ConsoleAnswerer
from docpipe.slug import is_valid_slug
from docpipe.store import README_NAME
from docpipe.workflow import WorkflowManager

MAX_NAME_PROMPTS = 3


def build_config(args) -> PipelineConfig:
    config = PipelineConfig.from_env(args.root)
    if args.language:
        config = replace(config, language=args.language)
    return config


def resolve_slug(manager: WorkflowManager, argument: Optional[str], stage: Stage) -> Optional[str]:
    """Slug named by ``argument``, or the most recent one ``stage`` produced.

    A path resolves to its file stem; a bundle README or directory resolves
    to the bundle directory name.
    """
    if not argument:
        return manager.store.latest_slug(stage)
    if is_valid_slug(argument):
        return argument
    path = Path(argument)
    if path.name == README_NAME:
        return path.parent.name
    if path.suffix:
        return path.stem
    return path.name


def print_result(result: Dict[str, Any], as_json: bool) -> int:
    if as_json:
        print(json.dumps(result, indent=2, default=str))
    else:
        if "error" in result:
            print(f"ERROR: {result['error']}")
            if result.get("suggestion"):
                print(f"  {result['suggestion']}")
        elif result.get("message"):
            print(result["message"])
        for warning in result.get("warnings", []) or ([result["warning"]] if result.get("warning") else []):
            print(f"WARNING: {warning}")
        for issue in result.get("issues", []):
            print(f"ISSUE: {issue}")
        for failure in result.get("failures", []):
            print(f"FAILED: {failure['module']}: {failure['reason']}")
        if result.get("next_suggested_step") and "error" not in result:
            print(f"Next: {result['next_suggested_step']}")
    if "error" in result:
        return 1
    return 0 if result.get("passed", True) else 1


def description_file(text: Optional[str]) -> Optional[Path]:
    """``text`` as an existing file path, or None when it is prose."""
    if not text or "\n" in text:
        return None
    path = Path(text)
    try:
        return path if path.is_file() else None
    except (OSError, ValueError):
        # Too long for a file name, or contains a NUL byte
        return None


def cmd_refine(args, manager: WorkflowManager, ask: Callable[[str], str]) -> Dict[str, Any]:
    description = args.input
    feature_name = args.name
    path = description_file(description)
    if path is not None:
        feature_name = feature_name or path.stem
        description = path.read_text(encoding="utf-8")
    if not description:
        description = ask("Describe the feature: ")

    result = manager.refine_requirements(description, feature_name)
    attempts = 0
    # An unusable name is recoverable: ask for another one
    while result.get("error_type") == "EmptyNameError" and attempts < MAX_NAME_PROMPTS:
        attempts += 1
        print(f"ERROR: {result['error']}")
        feature_name = ask("Feature name: ")
        result = manager.refine_requirements(description, feature_name)
    return result


def _stage_command(stage: Stage, method: str):
    def command(args, manager: WorkflowManager, ask: Callable[[str], str]) -> Dict[str, Any]:
        slug = resolve_slug(manager, args.slug, stage)
        if not slug:
            return {
                "error": f"No {stage.value} output found to continue from",
                "suggestion": "Pass a slug explicitly",
                "next_suggested_step": args.command,
            }
        return getattr(manager, method)(slug)
    return command


cmd_design = _stage_command(Stage.REQUIREMENTS, "design_architecture")
cmd_specify = _stage_command(Stage.ARCHITECTURE, "specify")
cmd_implement = _stage_command(Stage.SPECIFICATION, "implement_functional")
cmd_review = _stage_command(Stage.REQUIREMENTS, "review_functional")


def cmd_status(args, manager: WorkflowManager, ask: Callable[[str], str]) -> Dict[str, Any]:
    if not args.slug:
        listing = manager.list_features()
        for feature in listing["features"]:
            print(f"  {feature['slug']}: {feature['state']}")
        return listing
    status = manager.feature_status(resolve_slug(manager, args.slug, Stage.REQUIREMENTS))
    if "error" in status:
        return status
    for stage_name, artifact in status["artifacts"].items():
        marker = "x" if artifact["exists"] else " "
        stale = " (stale)" if stage_name in status["stale"] else ""
        print(f"  [{marker}] {stage_name}: {artifact['path']}{stale}")
    status["message"] = f"{status['slug']}: {status['state']}"
    return status


def main(argv=None, input_func: Callable[[str], str] = input) -> int:
    parser = argparse.ArgumentParser(prog='docpipe', description='Feature document pipeline')
    parser.add_argument('--root', '-r', help='Project root (defaults to DOCPIPE_PROJECT_ROOT or auto-detect)')
    parser.add_argument('--language', '-l', help='Stub language: kotlin or python')
    parser.add_argument('--json', action='store_true', help='Print the raw result as JSON')
    parser.add_argument('--log-level', help='Log level (defaults to DOCPIPE_LOG_LEVEL or WARNING)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # docpipe refine-requirements
    p_refine = subparsers.add_parser('refine-requirements', help='Draft requirements from a description')
    p_refine.add_argument('input', nargs='?', help='Feature description, or a file containing it')
    p_refine.add_argument('--name', '-n', help='Feature name (defaults to the file stem or first sentence)')
    p_refine.set_defaults(func=cmd_refine)

    # docpipe design-architecture
    p_design = subparsers.add_parser('design-architecture', help='Design modules for a requirements document')
    p_design.add_argument('slug', nargs='?', help='Slug or requirements path (latest if omitted)')
    p_design.set_defaults(func=cmd_design)

    # docpipe specify
    p_specify = subparsers.add_parser('specify', help='Generate test stubs for an architecture')
    p_specify.add_argument('slug', nargs='?', help='Slug or architecture path (latest if omitted)')
    p_specify.set_defaults(func=cmd_specify)

    # docpipe implement-functional
    p_implement = subparsers.add_parser('implement-functional', help='Generate source stubs for a bundle')
    p_implement.add_argument('slug', nargs='?', help='Slug or specification path (latest if omitted)')
    p_implement.set_defaults(func=cmd_implement)

    # docpipe review-functional
    p_review = subparsers.add_parser('review-functional', help='Check traceability and staleness')
    p_review.add_argument('slug', nargs='?', help='Slug (latest if omitted)')
    p_review.set_defaults(func=cmd_review)

    # docpipe status
    p_status = subparsers.add_parser('status', help='Show pipeline state for one or all features')
    p_status.add_argument('slug', nargs='?', help='Slug (lists all features if omitted)')
    p_status.set_defaults(func=cmd_status)

    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 2

    setup_logging((args.log_level or os.getenv(LOG_LEVEL_ENV) or "WARNING").upper(), config.log_file)
    manager = WorkflowManager(config, ConsoleAnswerer(input_func=input_func))

    try:
        result = args.func(args, manager, input_func)
    except (EOFError, KeyboardInterrupt):
        print("\nAborted.")
        return 130
    return print_result(result, args.json)


if __name__ == '__main__':
    sys.exit(main())

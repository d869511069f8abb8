"""Environment-driven configuration and project root discovery."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Optional

ROOT_ENV = "DOCPIPE_PROJECT_ROOT"
DOCS_DIR_ENV = "DOCPIPE_DOCS_DIR"
SOURCE_DIR_ENV = "DOCPIPE_SOURCE_DIR"
LANGUAGE_ENV = "DOCPIPE_LANGUAGE"
PACKAGE_ENV = "DOCPIPE_PACKAGE"
LOG_LEVEL_ENV = "DOCPIPE_LOG_LEVEL"
LOG_FILE_ENV = "DOCPIPE_LOG_FILE"

SUPPORTED_LANGUAGES = ("kotlin", "python")

# A directory holding either of these is treated as a project root
PROJECT_MARKERS = ("docs/requirements", ".git")


@dataclass(slots=True)
class PipelineConfig:
    """Settings shared by every stage."""

    root: Path
    docs_dir: str = "docs"
    source_dir: str = "src"
    language: str = "kotlin"
    base_package: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    def __post_init__(self):
        self.root = Path(self.root).expanduser().resolve()
        self.language = self.language.lower()
        if self.language not in SUPPORTED_LANGUAGES:
            raise ValueError(
                f"Unsupported language '{self.language}'. Choose one of: {', '.join(SUPPORTED_LANGUAGES)}"
            )

    @property
    def docs_root(self) -> Path:
        return self.root / self.docs_dir

    @property
    def source_root(self) -> Path:
        return self.root / self.source_dir

    def package_for(self, slug: str) -> str:
        """Dotted package name the stubs of ``slug`` live in."""
        if self.base_package:
            return self.base_package
        if slug[:1].isdigit():
            slug = f"feature-{slug}"
        if self.language == "python":
            return slug.replace("-", "_")
        return "com.example." + slug.replace("-", "")

    def with_root(self, root: Path | str) -> "PipelineConfig":
        return replace(self, root=Path(root))

    @classmethod
    def from_env(cls, root: Optional[str] = None) -> "PipelineConfig":
        """Build a config from environment variables.

        ``root`` wins over ``DOCPIPE_PROJECT_ROOT``, which wins over
        auto-detection from the working directory.
        """
        log_file = os.getenv(LOG_FILE_ENV)
        return cls(
            root=resolve_root(root),
            docs_dir=os.getenv(DOCS_DIR_ENV, "docs"),
            source_dir=os.getenv(SOURCE_DIR_ENV, "src"),
            language=os.getenv(LANGUAGE_ENV, "kotlin"),
            base_package=os.getenv(PACKAGE_ENV) or None,
            log_level=os.getenv(LOG_LEVEL_ENV, "INFO").upper(),
            log_file=Path(log_file) if log_file else None,
        )


def _candidate_bases(start: Optional[Path] = None) -> List[Path]:
    cwd = (start or Path.cwd()).resolve()
    return [cwd, *cwd.parents]


def locate_project_root(start: Optional[Path] = None) -> Optional[Path]:
    """Walk upward from ``start`` looking for a project marker."""
    for base in _candidate_bases(start):
        for marker in PROJECT_MARKERS:
            if (base / marker).exists():
                return base
    return None


def resolve_root(root: Optional[str] = None) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv(ROOT_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {ROOT_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    return locate_project_root() or Path.cwd().resolve()

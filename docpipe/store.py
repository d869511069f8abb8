"""Document storage for docpipe stage outputs.

Stage documents live on the filesystem under the project's ``docs/`` tree.
:class:`DocumentStore` is the only place that knows the layout; stages ask it
for ``(stage, slug)`` paths instead of joining path strings themselves.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List, Optional

from .config import PipelineConfig
from .errors import InvalidSlugError, NotFoundError
from .models import Stage
from .pipeline_logging import observability_hooks
from .slug import is_valid_slug

logger = logging.getLogger("docpipe.store")

README_NAME = "README.md"

# Command that produces each stage's document, used in NotFoundError guidance
PRODUCING_COMMAND = {
    Stage.REQUIREMENTS: "refine-requirements",
    Stage.ARCHITECTURE: "design-architecture",
    Stage.SPECIFICATION: "specify",
    Stage.IMPLEMENTATION: "implement-functional",
}


def checked_slug(slug: str) -> str:
    """Return ``slug`` unchanged, or raise InvalidSlugError.

    Every path the store builds passes its slug through here.
    """
    if not isinstance(slug, str) or not is_valid_slug(slug):
        raise InvalidSlugError(str(slug))
    return slug


class LocalFileSystem:
    """File reader/writer collaborator backed by the local disk."""

    def read(self, path: Path) -> str:
        try:
            return Path(path).read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFoundError(f"No file at {path}") from None

    def write(self, path: Path, content: str) -> None:
        path = Path(path)
        self.mkdir_all(path.parent)
        path.write_text(content, encoding="utf-8")

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def mkdir_all(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def remove_tree(self, path: Path) -> None:
        path = Path(path)
        if path.is_dir():
            shutil.rmtree(path)


class DocumentStore:
    """Read and write stage documents keyed by ``(stage, slug)``."""

    def __init__(self, config: PipelineConfig, filesystem: Optional[LocalFileSystem] = None):
        self.config = config
        self.fs = filesystem or LocalFileSystem()

    @property
    def root(self) -> Path:
        return self.config.root

    def stage_dir(self, stage: Stage) -> Path:
        if stage is Stage.IMPLEMENTATION:
            return self.config.source_root
        return self.config.docs_root / stage.value

    def path(self, stage: Stage, slug: str) -> Path:
        """Primary document of ``stage`` for ``slug``.

        The specification stage's primary document is the bundle README; the
        implementation stage has no single document, so its package directory
        is returned.
        """
        if stage is Stage.REQUIREMENTS or stage is Stage.ARCHITECTURE:
            return self.stage_dir(stage) / f"{checked_slug(slug)}.md"
        if stage is Stage.SPECIFICATION:
            return self.bundle_dir(slug) / README_NAME
        return self.package_dir(slug)

    def bundle_dir(self, slug: str) -> Path:
        return self.stage_dir(Stage.SPECIFICATION) / checked_slug(slug)

    def package_dir(self, slug: str) -> Path:
        package = self.config.package_for(checked_slug(slug))
        base = self.config.source_root
        if self.config.language == "kotlin":
            base = base / "main" / "kotlin"
        return base.joinpath(*package.split("."))

    def relative(self, path: Path) -> str:
        path = Path(path)
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)

    def exists(self, stage: Stage, slug: str) -> bool:
        path = self.path(stage, slug)
        if stage is Stage.IMPLEMENTATION:
            return path.is_dir() and any(path.iterdir())
        return self.fs.exists(path)

    def read(self, stage: Stage, slug: str) -> str:
        """Return the document text or raise NotFoundError with guidance."""
        path = self.path(stage, slug)
        if not self.fs.exists(path):
            raise NotFoundError(
                f"No {stage.value} document for '{slug}' at {self.relative(path)}",
                stage=stage.value,
                slug=slug,
                next_step=PRODUCING_COMMAND[stage],
            )
        return self.fs.read(path)

    def write(self, stage: Stage, slug: str, content: str) -> Path:
        path = self.path(stage, slug)
        return self.write_file(path, content, slug=slug, stage=stage)

    def write_file(self, path: Path, content: str, *, slug: str, stage: Stage) -> Path:
        """Write ``content`` to ``path``, creating parents. OSError propagates."""
        self.fs.write(path, content)
        logger.debug(f"Wrote {self.relative(path)}")
        observability_hooks.log_workflow_event(
            "document_written",
            slug=slug,
            stage=stage.value,
            path=self.relative(path),
            content_length=len(content),
        )
        return path

    def modified_at(self, stage: Stage, slug: str) -> Optional[float]:
        """Newest mtime among the stage's files for ``slug``, if any exist."""
        if stage is Stage.SPECIFICATION:
            directory = self.bundle_dir(slug)
        elif stage is Stage.IMPLEMENTATION:
            directory = self.package_dir(slug)
        else:
            path = self.path(stage, slug)
            return path.stat().st_mtime if path.exists() else None
        if not directory.exists():
            return None
        mtimes = [p.stat().st_mtime for p in directory.rglob("*") if p.is_file()]
        return max(mtimes) if mtimes else None

    def list_slugs(self, stage: Stage = Stage.REQUIREMENTS) -> List[str]:
        directory = self.stage_dir(stage)
        if not directory.exists():
            return []
        if stage is Stage.SPECIFICATION:
            return sorted(
                p.name for p in directory.iterdir() if is_valid_slug(p.name) and (p / README_NAME).exists()
            )
        if stage is Stage.IMPLEMENTATION:
            return []
        return sorted(p.stem for p in directory.glob("*.md") if is_valid_slug(p.stem))

    def latest_slug(self, stage: Stage) -> Optional[str]:
        """Slug whose ``stage`` document was written most recently."""
        candidates = [(self.modified_at(stage, slug) or 0.0, slug) for slug in self.list_slugs(stage)]
        if not candidates:
            return None
        return max(candidates)[1]

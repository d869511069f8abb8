"""Unit tests for DocumentStore.

This module tests the stage document layout, reads with guidance for
missing prerequisites, and slug discovery by modification time.
"""

import os

import pytest

from docpipe.errors import InvalidSlugError, NotFoundError
from docpipe.models import Stage
from docpipe.pipeline_logging import observability_hooks
from docpipe.store import DocumentStore, LocalFileSystem


class TestPaths:
    """Test cases for the document layout."""

    def test_document_paths(self, store, tmp_path):
        root = tmp_path.resolve()

        assert store.path(Stage.REQUIREMENTS, "user-login") == root / "docs/requirements/user-login.md"
        assert store.path(Stage.ARCHITECTURE, "user-login") == root / "docs/architecture/user-login.md"
        assert store.path(Stage.SPECIFICATION, "user-login") == root / "docs/specifications/user-login/README.md"
        assert store.bundle_dir("user-login") == root / "docs/specifications/user-login"

    def test_kotlin_package_dir(self, store, tmp_path):
        assert store.path(Stage.IMPLEMENTATION, "user-login") == (
            tmp_path.resolve() / "src/main/kotlin/com/example/userlogin"
        )

    def test_python_package_dir(self, python_config, tmp_path):
        store = DocumentStore(python_config)

        assert store.package_dir("user-login") == tmp_path.resolve() / "src/user_login"

    def test_relative(self, store, tmp_path):
        assert store.relative(tmp_path.resolve() / "docs" / "x.md") == "docs/x.md"
        assert store.relative("/elsewhere/x.md") == "/elsewhere/x.md"

    @pytest.mark.parametrize("slug", ["../requirements/user-login", "..", "user_login", "User-Login", "a/b", ""])
    def test_rejects_non_canonical_slugs(self, store, slug):
        """Every path builder refuses a slug that could leave its stage directory."""
        for build in (
            lambda: store.path(Stage.REQUIREMENTS, slug),
            lambda: store.path(Stage.ARCHITECTURE, slug),
            lambda: store.bundle_dir(slug),
            lambda: store.package_dir(slug),
        ):
            with pytest.raises(InvalidSlugError):
                build()

    def test_rejected_slug_writes_nothing(self, store, tmp_path):
        with pytest.raises(InvalidSlugError):
            store.write(Stage.ARCHITECTURE, "../requirements/user-login", "x")

        assert not (tmp_path / "docs").exists()


class TestReadWrite:
    """Test cases for reading and writing stage documents."""

    def test_read_missing_document(self, store):
        """A missing prerequisite names the command that produces it."""
        with pytest.raises(NotFoundError) as exc_info:
            store.read(Stage.ARCHITECTURE, "user-login")

        error = exc_info.value
        assert error.next_step == "design-architecture"
        assert error.suggestion == "Run 'design-architecture user-login' first"
        assert "docs/architecture/user-login.md" in str(error)

    def test_write_creates_parents(self, store):
        path = store.write(Stage.REQUIREMENTS, "user-login", "# Requirements: User login\n")

        assert path.exists()
        assert store.exists(Stage.REQUIREMENTS, "user-login")
        assert store.read(Stage.REQUIREMENTS, "user-login") == "# Requirements: User login\n"

    def test_write_emits_event(self, store):
        events = []
        observability_hooks.register_hook("document_written", lambda **data: events.append(data))

        store.write(Stage.REQUIREMENTS, "user-login", "abc")

        assert events[0]["path"] == "docs/requirements/user-login.md"
        assert events[0]["content_length"] == 3
        assert events[0]["stage"] == "requirements"

    def test_implementation_exists_only_with_files(self, store):
        package_dir = store.package_dir("user-login")
        package_dir.mkdir(parents=True)

        assert not store.exists(Stage.IMPLEMENTATION, "user-login")

        (package_dir / "LoginService.kt").write_text("interface LoginService")
        assert store.exists(Stage.IMPLEMENTATION, "user-login")

    def test_remove_tree(self, tmp_path):
        fs = LocalFileSystem()
        target = tmp_path / "bundle"
        fs.write(target / "contracts" / "A.kt", "x")

        fs.remove_tree(target)
        fs.remove_tree(target)

        assert not target.exists()


class TestDiscovery:
    """Test cases for slug listing and modification times."""

    def test_list_slugs(self, store):
        assert store.list_slugs() == []

        store.write(Stage.REQUIREMENTS, "b-feature", "x")
        store.write(Stage.REQUIREMENTS, "a-feature", "x")
        store.write_file(store.bundle_dir("a-feature") / "README.md", "x", slug="a-feature", stage=Stage.SPECIFICATION)
        store.bundle_dir("orphan").mkdir(parents=True)
        (store.stage_dir(Stage.REQUIREMENTS) / "Notes.md").write_text("scratch")

        assert store.list_slugs() == ["a-feature", "b-feature"]
        assert store.list_slugs(Stage.SPECIFICATION) == ["a-feature"]

    def test_latest_slug_uses_modification_time(self, store):
        older = store.write(Stage.REQUIREMENTS, "zeta", "x")
        newer = store.write(Stage.REQUIREMENTS, "alpha", "x")
        os.utime(older, (1_000_000, 1_000_000))
        os.utime(newer, (2_000_000, 2_000_000))

        assert store.latest_slug(Stage.REQUIREMENTS) == "alpha"
        assert store.latest_slug(Stage.ARCHITECTURE) is None

    def test_modified_at_bundle_is_newest_file(self, store):
        bundle = store.bundle_dir("user-login")
        first = store.write_file(bundle / "README.md", "x", slug="user-login", stage=Stage.SPECIFICATION)
        second = store.write_file(bundle / "contracts" / "A.kt", "x", slug="user-login", stage=Stage.SPECIFICATION)
        os.utime(first, (1_000_000, 1_000_000))
        os.utime(second, (3_000_000, 3_000_000))

        assert store.modified_at(Stage.SPECIFICATION, "user-login") == 3_000_000
        assert store.modified_at(Stage.ARCHITECTURE, "user-login") is None
        assert store.modified_at(Stage.IMPLEMENTATION, "user-login") is None

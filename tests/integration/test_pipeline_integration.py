"""
Integration tests for the docpipe pipeline:
a feature description is taken through every stage via the MCP tools, the
workflow facade and the command line, and the files on disk are checked.
"""

import json

import pytest

import main
from docpipe.cli import main as cli_main
from docpipe.config import ROOT_ENV
from docpipe.questions import ScriptedAnswerer
from docpipe.workflow import WorkflowManager

RECIPES = (
    "Users must be able to save recipes. Users must be able to search recipes. "
    "Admins must be able to delete reviews."
)


def answer_all(questions):
    """Pick the first option of every question, or a short reply for free text."""
    return {q["prompt"]: (q["options"][0] if q["options"] else "web shoppers") for q in questions}


class TestMcpTools:
    """Integration tests calling the MCP tool functions directly."""

    def test_two_phase_pipeline(self, tmp_path):
        """
        Integration Test: A client answers questions between calls.

        Given: An empty project
        When: Each tool is called, first without answers and then with them
        Then: Every stage writes its output and review passes
        """
        root = str(tmp_path)

        first = main.refine_requirements("user login", root=root)
        assert first["status"] == "needs_answers"
        assert not (tmp_path / "docs").exists()

        refined = main.refine_requirements("user login", root=root, answers=answer_all(first["questions"]))
        assert refined["status"] == "ok"
        assert refined["slug"] == "user-login"

        pending = main.design_architecture("user-login", root=root)
        assert pending["status"] == "needs_answers"
        assert len(pending["questions"]) == 2
        designed = main.design_architecture("user-login", root=root, answers=answer_all(pending["questions"]))
        assert designed["status"] == "ok"
        assert designed["missing_requirements"] == []

        specified = main.specify("user-login", root=root)
        assert specified["status"] == "ok"
        assert specified["failures"] == []

        implemented = main.implement_functional("user-login", root=root)
        assert implemented["status"] == "ok"
        assert (tmp_path / "src/main/kotlin/com/example/userlogin/LoginService.kt").exists()

        review = main.review_functional("user-login", root=root)
        assert review["passed"] is True
        assert main.feature_status("user-login", root=root)["state"] == "Implemented"

    def test_rerun_asks_before_overwriting(self, tmp_path):
        root = str(tmp_path)
        first = main.refine_requirements("Track parcels", root=root)
        main.refine_requirements("Track parcels", root=root, answers=answer_all(first["questions"]))

        again = main.refine_requirements("Track parcels", root=root, answers=answer_all(first["questions"]))

        assert again["status"] == "needs_answers"
        assert again["questions"][-1]["options"] == ["yes", "no"]

    def test_listing_and_resource(self, tmp_path, monkeypatch):
        monkeypatch.setenv(ROOT_ENV, str(tmp_path))
        assert main.resource_features() == main.list_features()["message"]

        first = main.refine_requirements("Track parcels")
        main.refine_requirements("Track parcels", answers=answer_all(first["questions"]))

        assert main.list_features()["features"] == [{"slug": "track-parcels", "state": "RequirementsDrafted"}]
        assert main.resource_features() == "docpipe features\n- track-parcels: RequirementsDrafted"

    def test_workflow_guide(self, tmp_path, monkeypatch):
        monkeypatch.setenv(ROOT_ENV, str(tmp_path))

        guide = main.get_workflow_guide()

        assert [step["command"] for step in guide["steps"]] == [
            "refine-requirements", "design-architecture", "specify", "implement-functional", "review-functional",
        ]

    def test_error_result(self, tmp_path):
        result = main.specify("missing", root=str(tmp_path))

        assert result["error_type"] == "NotFoundError"
        assert result["next_suggested_step"] == "design-architecture"


class TestPythonProject:
    """Integration tests for a feature generated as Python stubs."""

    @pytest.fixture
    def manager(self, python_config):
        return WorkflowManager(python_config, ScriptedAnswerer())

    def test_recipe_box(self, manager, tmp_path):
        """
        Integration Test: Python layout end to end.

        Given: A three-sentence description covering two subjects
        When: Every stage runs with the python language
        Then: Test stubs and source stubs land in the python layout
        """
        assert manager.refine_requirements(RECIPES, "Recipe Box")["status"] == "ok"
        design = manager.design_architecture("recipe-box")
        specify = manager.specify("recipe-box")
        implement = manager.implement_functional("recipe-box")

        assert [m["name"] for m in design["document"]["modules"]] == ["RecipesService", "ReviewsService"]
        assert specify["generated"] == [
            "docs/specifications/recipe-box/contracts/RecipesServiceContractSpec.py",
            "docs/specifications/recipe-box/contracts/ReviewsServiceContractSpec.py",
            "docs/specifications/recipe-box/behaviors/SaveRecipesBehaviorSpec.py",
            "docs/specifications/recipe-box/behaviors/SearchRecipesBehaviorSpec.py",
            "docs/specifications/recipe-box/behaviors/DeleteReviewsBehaviorSpec.py",
            "docs/specifications/recipe-box/properties/RecipesServicePropertySpec.py",
        ]
        package = tmp_path / "src/recipe_box"
        assert sorted(p.name for p in package.iterdir()) == [
            "recipes.py", "recipes_service.py", "reviews.py", "reviews_service.py",
        ]
        assert [stub["kind"] for stub in implement["stubs"]] == ["interface", "interface", "value", "value"]

        service = (package / "recipes_service.py").read_text()
        assert "class RecipesService(Protocol):" in service
        assert "def save_recipes(self) -> None:" in service

        readme = (tmp_path / "docs/specifications/recipe-box/README.md").read_text()
        assert "**Language**: python" in readme

        assert manager.review_functional("recipe-box")["passed"] is True


class TestCommandLine:
    """Integration tests for the docpipe command."""

    def test_pipeline_with_json_output(self, tmp_path, capsys):
        def replies(prompt):
            return ""

        base = ["--root", str(tmp_path), "--json"]
        assert cli_main([*base, "refine-requirements", RECIPES], input_func=replies) == 0
        assert cli_main([*base, "design-architecture"], input_func=replies) == 0
        assert cli_main([*base, "specify"], input_func=replies) == 0
        assert cli_main([*base, "implement-functional"], input_func=replies) == 0
        capsys.readouterr()

        assert cli_main([*base, "review-functional"], input_func=replies) == 0

        result = json.loads(capsys.readouterr().out)
        assert result["passed"] is True
        slug = result["slug"]
        assert (tmp_path / f"docs/architecture/{slug}.md").exists()

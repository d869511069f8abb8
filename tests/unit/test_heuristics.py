"""Unit tests for the rule-based requirement extractor and module classifier."""

import pytest

from docpipe.heuristics import (
    RuleBasedClassifier,
    RuleBasedExtractor,
    detect_actor,
    detect_priority,
    extract_goal,
    is_stateful_text,
    one_line,
    split_sentences,
    subject_of,
    traceability_for,
)
from docpipe.models import Depth, Priority, RequirementsDocument

TWO_ACTORS = "Users must be able to search products. Admins must be able to delete reviews."


def _document(description):
    extractor = RuleBasedExtractor()
    return RequirementsDocument(
        slug="shop",
        feature_name="Shop",
        description=description,
        overview="",
        functional_requirements=extractor.extract_requirements(description),
    )


class TestTextUtilities:
    """Test cases for the sentence and phrase helpers."""

    def test_split_sentences_handles_bullets(self):
        text = "- Users can log in.\n2. Users can log out! Admins can ban users\n\n"

        assert split_sentences(text) == ["Users can log in.", "Users can log out!", "Admins can ban users"]

    def test_split_sentences_skips_markdown_headings(self):
        text = "# Recipes\n## Overview\nUsers must be able to save recipes.\n\n### Notes\n#hashtags stay\n"

        assert split_sentences(text) == ["Users must be able to save recipes.", "#hashtags stay"]

    def test_one_line_drops_headings(self):
        assert one_line("## Overview\nSave recipes.\n\n  Share them.\n") == "Save recipes. Share them."

    @pytest.mark.parametrize(
        "text, stateful",
        [
            ("Owns accounts operations: open accounts.", False),
            ("Restores the default layout.", False),
            ("Keeps stored searches.", True),
            ("Counts page views.", True),
        ],
    )
    def test_stateful_keywords_match_word_starts(self, text, stateful):
        assert is_stateful_text(text) is stateful

    @pytest.mark.parametrize(
        "sentence, goal",
        [
            ("Users must be able to search products.", "search products"),
            ("The system should send weekly digests", "send weekly digests"),
            ("Allow customers to export invoices.", "export invoices"),
            ("Support for dark mode.", "dark mode"),
            ("user login", "user login"),
        ],
    )
    def test_extract_goal(self, sentence, goal):
        assert extract_goal(sentence) == goal

    def test_detect_actor(self):
        assert detect_actor("Admins must be able to delete reviews") == "administrators"
        assert detect_actor("Track parcels") == "users"

    def test_detect_priority(self):
        assert detect_priority("Users must log in") is Priority.MUST_HAVE
        assert detect_priority("Users should see history") is Priority.SHOULD_HAVE
        assert detect_priority("Users could export data") is Priority.NICE_TO_HAVE

    def test_subject_of_skips_leading_verb(self):
        assert subject_of("search products") == "products"
        assert subject_of("user login") == "login"
        assert subject_of("") == "feature"


class TestRuleBasedExtractor:
    """Test cases for RuleBasedExtractor."""

    def test_single_phrase(self):
        requirements = RuleBasedExtractor().extract_requirements("user login")

        assert len(requirements) == 1
        assert requirements[0].identifier == "FR-1"
        assert requirements[0].title == "User login"
        assert requirements[0].description == "The system MUST enable users to user login."
        assert len(requirements[0].acceptance_criteria) == 2
        assert requirements[0].acceptance_criteria[0].startswith("Given valid input, when users user login")

    def test_sequential_identifiers_and_actors(self):
        requirements = RuleBasedExtractor().extract_requirements(TWO_ACTORS)

        assert [fr.identifier for fr in requirements] == ["FR-1", "FR-2"]
        assert [fr.title for fr in requirements] == ["Search products", "Delete reviews"]
        assert "administrators" in requirements[1].description

    def test_duplicate_goals_collapse(self):
        requirements = RuleBasedExtractor().extract_requirements("Users can log in. Users must log in.")

        assert len(requirements) == 1

    def test_constraints_and_non_functional(self):
        description = "Search must be fast and secure. Exports are limited to 1000 rows."
        extractor = RuleBasedExtractor()

        assert extractor.extract_constraints(description) == ["Exports are limited to 1000 rows"]
        assert [nfr.identifier for nfr in extractor.extract_non_functional(description)] == ["NFR-1", "NFR-2"]
        assert [fr.title for fr in extractor.extract_requirements(description)] == ["Search must be fast and secure"]

    def test_login_question(self):
        extractor = RuleBasedExtractor()

        questions = extractor.clarifying_questions("user login", extractor.extract_requirements("user login"))

        assert [q.prompt for q in questions] == ["Which authentication method should be supported?"]
        assert questions[0].options == ["email and password", "single sign-on", "OAuth provider"]

    def test_priority_question_for_several_requirements(self):
        extractor = RuleBasedExtractor()

        questions = extractor.clarifying_questions(TWO_ACTORS, extractor.extract_requirements(TWO_ACTORS))

        assert len(questions) == 1
        assert questions[0].options == ["FR-1: Search products", "FR-2: Delete reviews"]

    def test_primary_users_question_when_no_actor(self):
        extractor = RuleBasedExtractor()

        questions = extractor.clarifying_questions("Track parcels", [])

        assert [q.prompt for q in questions] == ["Who are the primary users of this feature?"]
        assert questions[0].options == []


class TestRuleBasedClassifier:
    """Test cases for RuleBasedClassifier."""

    def test_one_module_per_subject(self):
        modules = RuleBasedClassifier().group_modules(_document(TWO_ACTORS))

        assert [m.name for m in modules] == ["ProductsService", "ReviewsService"]
        assert [m.requirement_ids for m in modules] == [["FR-1"], ["FR-2"]]
        assert modules[0].interface[0].name == "searchProducts"
        assert modules[0].interface[0].requirement_id == "FR-1"
        assert not any(m.is_stateful for m in modules)
        assert modules[0].depth is Depth.SHALLOW

    def test_login_module(self):
        document = _document("user login")
        classifier = RuleBasedClassifier()

        modules = classifier.group_modules(document)

        assert [m.name for m in modules] == ["LoginService"]
        assert modules[0].interface[0].name == "login"
        assert classifier.domain_entities(document) == ["Login"]

    def test_stateful_module_is_deep(self):
        modules = RuleBasedClassifier().group_modules(_document("Users must be able to save recipes."))

        assert modules[0].is_stateful
        assert modules[0].depth is Depth.DEEP
        assert "state consistent" in modules[0].hidden_complexity

    def test_shared_subject_groups_requirements(self):
        description = "Users can create invoices. Users can send invoices."

        modules = RuleBasedClassifier().group_modules(_document(description))

        assert len(modules) == 1
        assert modules[0].requirement_ids == ["FR-1", "FR-2"]
        assert modules[0].depth is Depth.MEDIUM
        assert [m.name for m in modules[0].interface] == ["createInvoices", "sendInvoices"]

    def test_traceability_for(self):
        modules = RuleBasedClassifier().group_modules(_document(TWO_ACTORS))

        assert traceability_for(modules) == {"FR-1": ["ProductsService"], "FR-2": ["ReviewsService"]}

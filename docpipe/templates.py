"""Source templates for generated test and implementation stubs.

Every body emitted here is a placeholder. The templates fix names,
packages and traceability headers; they never contain real assertions or
business logic.
"""

from __future__ import annotations

import re
import textwrap
from typing import Dict, List, Optional, Sequence

from .models import FunctionalRequirement, Module
from .naming import snake_case, words

PROPERTY_SEED = 42
PROPERTY_ITERATIONS = 100

_GIVEN_WHEN_THEN = re.compile(r"^given\s+(?P<given>.+?),?\s+when\s+(?P<when>.+?),?\s+then\s+(?P<then>.+)$",
                              re.IGNORECASE)


def split_criterion(criterion: str) -> Optional[Dict[str, str]]:
    """Split a given/when/then sentence into its three clauses."""
    match = _GIVEN_WHEN_THEN.match(criterion.strip().rstrip("."))
    return match.groupdict() if match else None


def _trace(module: Module) -> str:
    return f"module {module.name}" + (f" ({', '.join(module.requirement_ids)})" if module.requirement_ids else "")


def _escape(text: str) -> str:
    """Escape text for a Kotlin string literal, including template markers."""
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")


class StubTemplates:
    """Base class for per-language stub templates."""

    language = ""
    extension = ""

    def spec_file_name(self, type_name: str) -> str:
        return f"{type_name}{self.extension}"

    def source_file_name(self, type_name: str) -> str:
        return f"{type_name}{self.extension}"

    def test_name(self, text: str) -> str:
        raise NotImplementedError

    def contract_spec(self, package: str, module: Module) -> str:
        raise NotImplementedError

    def behavior_spec(self, package: str, class_name: str, requirement: FunctionalRequirement) -> str:
        raise NotImplementedError

    def property_spec(self, package: str, module: Module) -> str:
        raise NotImplementedError

    def interface_stub(self, package: str, module: Module) -> str:
        raise NotImplementedError

    def value_stub(self, package: str, type_name: str, source: str) -> str:
        raise NotImplementedError


class KotlinTemplates(StubTemplates):
    language = "kotlin"
    extension = ".kt"

    def test_name(self, text: str) -> str:
        return " ".join(word.lower() for word in words(text))[:120]

    def _test(self, name: str, body: Sequence[str]) -> str:
        lines = "\n".join(f"        {line}" for line in body)
        return f"    @Test\n    fun `{self.test_name(name)}`() {{\n{lines}\n    }}"

    def contract_spec(self, package: str, module: Module) -> str:
        tests: List[str] = []
        for method in module.interface:
            note = _escape(f"{method.requirement_id} {method.summary}".strip())
            tests.append(self._test(f"{method.name} honours its contract on valid input",
                                    [f'TODO("NotImplemented: {note}")']))
            tests.append(self._test(f"{method.name} reports an error on invalid input",
                                    ['TODO("NotImplemented")']))
        body = "\n\n".join(tests)
        return (
            f"package {package}.contracts\n\n"
            f"import kotlin.test.Test\n\n"
            f"/**\n"
            f" * Contract tests for {module.name}.\n"
            f" *\n"
            f" * Traceability: {_trace(module)}\n"
            f" */\n"
            f"class {module.name}ContractSpec {{\n\n{body}\n}}\n"
        )

    def behavior_spec(self, package: str, class_name: str, requirement: FunctionalRequirement) -> str:
        tests: List[str] = []
        for criterion in requirement.acceptance_criteria or [f"{requirement.title} is satisfied"]:
            clauses = split_criterion(criterion)
            body: List[str] = []
            if clauses:
                body.extend([
                    f"// Given {clauses['given']}",
                    f"// When {clauses['when']}",
                    f"// Then {clauses['then']}",
                ])
            body.append('TODO("NotImplemented")')
            tests.append(self._test(criterion, body))
        return (
            f"package {package}.behaviors\n\n"
            f"import kotlin.test.Test\n\n"
            f"/**\n"
            f" * Behavior tests for {requirement.identifier}: {requirement.title}\n"
            f" *\n"
            f" * Traceability: requirement {requirement.identifier}\n"
            f" */\n"
            f"class {class_name} {{\n\n" + "\n\n".join(tests) + "\n}\n"
        )

    def property_spec(self, package: str, module: Module) -> str:
        loop = [
            "val random = generator()",
            f"repeat({PROPERTY_ITERATIONS}) {{",
            '    TODO("NotImplemented")',
            "}",
        ]
        tests = "\n\n".join([
            self._test(f"{module.name} roundtrip preserves state", loop),
            self._test(f"{module.name} repeated operations are idempotent", loop),
            self._test(f"{module.name} invariants hold after any operation sequence", loop),
        ])
        return (
            f"package {package}.properties\n\n"
            f"import kotlin.random.Random\n"
            f"import kotlin.test.Test\n\n"
            f"/**\n"
            f" * Property tests for {module.name}.\n"
            f" *\n"
            f" * Traceability: {_trace(module)}\n"
            f" */\n"
            f"class {module.name}PropertySpec {{\n\n"
            f"    private val seed = {PROPERTY_SEED}L\n\n"
            f"    private fun generator(): Random = Random(seed)\n\n"
            f"{tests}\n}}\n"
        )

    def interface_stub(self, package: str, module: Module) -> str:
        declarations = []
        overrides = []
        for method in module.interface:
            doc = f"{method.requirement_id}: {method.summary}".strip(": ") or method.name
            declarations.append(f"    /** {doc} */\n    fun {method.name}(): Unit")
            overrides.append(f'    override fun {method.name}(): Unit = TODO("unimplemented I/O")')
        return (
            f"package {package}\n\n"
            f"/**\n"
            f" * {module.name}\n"
            f" *\n"
            f" * Purpose: {module.responsibility or 'TODO'}\n"
            f" * Preconditions: TODO\n"
            f" * Postconditions: TODO\n"
            f" *\n"
            f" * Traceability: {', '.join(module.requirement_ids) or 'none'}\n"
            f" */\n"
            f"interface {module.name} {{\n" + "\n\n".join(declarations) + "\n}\n\n"
            f"class Default{module.name} : {module.name} {{\n" + "\n".join(overrides) + "\n}\n"
        )

    def value_stub(self, package: str, type_name: str, source: str) -> str:
        return textwrap.dedent(f"""\
            package {package}

            /**
             * {type_name} value type.
             *
             * Source: {source}
             */
            data class {type_name}(val value: String) {{
                init {{
                    require(value.isNotBlank()) {{ "{type_name} must not be blank" }}
                    // TODO: domain validation rules
                }}
            }}
            """)


class PythonTemplates(StubTemplates):
    language = "python"
    extension = ".py"

    def source_file_name(self, type_name: str) -> str:
        return f"{snake_case(type_name)}{self.extension}"

    def test_name(self, text: str) -> str:
        return f"test_{snake_case(text)}"[:100].rstrip("_")

    def _test(self, name: str, body: Sequence[str]) -> str:
        lines = "\n".join(f"    {line}" for line in body)
        return f"def {self.test_name(name)}():\n{lines}"

    def contract_spec(self, package: str, module: Module) -> str:
        tests: List[str] = []
        for method in module.interface:
            note = f"{method.requirement_id} {method.summary}".strip()
            tests.append(self._test(f"{method.name} honours its contract on valid input",
                                    [f"raise NotImplementedError({note!r})"]))
            tests.append(self._test(f"{method.name} reports an error on invalid input",
                                    ['raise NotImplementedError("TODO")']))
        return (
            f'"""Contract tests for {module.name}.\n\n'
            f"Traceability: {_trace(module)}\n"
            f'"""\n\n\n' + "\n\n\n".join(tests) + "\n"
        )

    def behavior_spec(self, package: str, class_name: str, requirement: FunctionalRequirement) -> str:
        tests: List[str] = []
        for criterion in requirement.acceptance_criteria or [f"{requirement.title} is satisfied"]:
            clauses = split_criterion(criterion)
            body: List[str] = []
            if clauses:
                body.extend([
                    f"# Given {clauses['given']}",
                    f"# When {clauses['when']}",
                    f"# Then {clauses['then']}",
                ])
            body.append('raise NotImplementedError("TODO")')
            tests.append(self._test(criterion, body))
        return (
            f'"""{class_name}: behavior tests for {requirement.identifier}.\n\n'
            f"{requirement.title}\n\n"
            f"Traceability: requirement {requirement.identifier}\n"
            f'"""\n\n\n' + "\n\n\n".join(tests) + "\n"
        )

    def property_spec(self, package: str, module: Module) -> str:
        loop = [
            "rng = generator()",
            f"for _ in range({PROPERTY_ITERATIONS}):",
            '    raise NotImplementedError("TODO")',
        ]
        tests = "\n\n\n".join([
            self._test(f"{module.name} roundtrip preserves state", loop),
            self._test(f"{module.name} repeated operations are idempotent", loop),
            self._test(f"{module.name} invariants hold after any operation sequence", loop),
        ])
        return (
            f'"""Property tests for {module.name}.\n\n'
            f"Traceability: {_trace(module)}\n"
            f'"""\n\n'
            f"import random\n\n"
            f"SEED = {PROPERTY_SEED}\n\n\n"
            f"def generator() -> random.Random:\n"
            f"    return random.Random(SEED)\n\n\n"
            f"{tests}\n"
        )

    def interface_stub(self, package: str, module: Module) -> str:
        declarations = []
        implementations = []
        for method in module.interface:
            name = snake_case(method.name)
            doc = f"{method.requirement_id}: {method.summary}".strip(": ") or name
            declarations.append(f"    def {name}(self) -> None:\n        \"\"\"{doc}\"\"\"\n        ...")
            implementations.append(
                f"    def {name}(self) -> None:\n        raise NotImplementedError(\"unimplemented I/O\")"
            )
        return (
            f'"""{module.name} interface.\n\n'
            f"Purpose: {module.responsibility or 'TODO'}\n"
            f"Preconditions: TODO\n"
            f"Postconditions: TODO\n"
            f"Traceability: {', '.join(module.requirement_ids) or 'none'}\n"
            f'"""\n\n'
            f"from __future__ import annotations\n\n"
            f"from typing import Protocol\n\n\n"
            f"class {module.name}(Protocol):\n" + "\n\n".join(declarations) + "\n\n\n"
            f"class Default{module.name}:\n" + "\n\n".join(implementations) + "\n"
        )

    def value_stub(self, package: str, type_name: str, source: str) -> str:
        return textwrap.dedent(f'''\
            """{type_name} value type.

            Source: {source}
            """

            from __future__ import annotations

            from dataclasses import dataclass


            @dataclass(frozen=True)
            class {type_name}:
                value: str

                def __post_init__(self):
                    if not self.value.strip():
                        raise ValueError("{type_name} must not be blank")
                    # TODO: domain validation rules
            ''')


_TEMPLATES = {
    "kotlin": KotlinTemplates,
    "python": PythonTemplates,
}


def templates_for(language: str) -> StubTemplates:
    try:
        return _TEMPLATES[language.lower()]()
    except KeyError:
        raise ValueError(f"No stub templates for language '{language}'") from None

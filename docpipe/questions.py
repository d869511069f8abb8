"""Question/answer collaborators.

Stages never talk to the user directly. They hand an ordered list of
:class:`~docpipe.models.Question` to an answerer and get back one answer per
prompt, which keeps the pipeline testable with canned answers.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Protocol, Sequence

from .errors import AnswersRequired
from .models import Question


CONFIRM_OPTIONS = ["yes", "no"]


class QuestionAnswerer(Protocol):
    def ask(self, questions: Sequence[Question]) -> Dict[str, str]:
        """Return an answer for every prompt in ``questions``."""
        ...


def is_affirmative(answer: str) -> bool:
    return answer.strip().lower() in {"y", "yes", "true", "1", "ok", "overwrite"}


class ScriptedAnswerer:
    """Answer from a fixed mapping.

    Prompts without a scripted answer fall back to the first option, or to an
    empty string for free-text questions. Every question asked is recorded in
    ``asked`` so callers can inspect what the stage wanted to know.
    """

    def __init__(self, answers: Optional[Mapping[str, str]] = None):
        self.answers = dict(answers or {})
        self.asked: List[Question] = []

    def ask(self, questions: Sequence[Question]) -> Dict[str, str]:
        self.asked.extend(questions)
        result: Dict[str, str] = {}
        for question in questions:
            if question.prompt in self.answers:
                result[question.prompt] = self.answers[question.prompt]
            elif question.options:
                result[question.prompt] = question.options[0]
            else:
                result[question.prompt] = ""
        return result


class PendingAnswerer:
    """Answer from a mapping, or stop the stage until the user replies.

    Used where the user cannot be prompted synchronously (an MCP tool call):
    the unanswered questions travel back in :class:`AnswersRequired` and the
    caller re-invokes the command with ``answers`` filled in.
    """

    def __init__(self, answers: Optional[Mapping[str, str]] = None):
        self.answers = dict(answers or {})

    def ask(self, questions: Sequence[Question]) -> Dict[str, str]:
        missing = [question for question in questions if question.prompt not in self.answers]
        if missing:
            raise AnswersRequired(missing)
        return {question.prompt: self.answers[question.prompt] for question in questions}


class ConsoleAnswerer:
    """Interactive answerer for the command line."""

    def __init__(self, input_func: Callable[[str], str] = input, output_func: Callable[[str], None] = print):
        self._input = input_func
        self._output = output_func

    def ask(self, questions: Sequence[Question]) -> Dict[str, str]:
        answers: Dict[str, str] = {}
        for index, question in enumerate(questions, start=1):
            if question.context:
                self._output(question.context)
            self._output(f"[{index}/{len(questions)}] {question.prompt}")
            for number, option in enumerate(question.options, start=1):
                self._output(f"    {number}) {option}")
            raw = self._input("> ").strip()
            answers[question.prompt] = self._resolve(question, raw)
        return answers

    @staticmethod
    def _resolve(question: Question, raw: str) -> str:
        if not question.options:
            return raw
        if not raw:
            return question.options[0]
        if raw.isdigit() and 1 <= int(raw) <= len(question.options):
            return question.options[int(raw) - 1]
        return raw

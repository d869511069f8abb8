"""Rule-based stand-ins for the pipeline's judgment steps.

Extracting requirements from prose and grouping them into modules are
editorial decisions. The stages depend only on the
:class:`RequirementsExtractor` and :class:`ModuleClassifier` protocols, so a
human-in-the-loop or model-backed implementation can replace the keyword
rules below without touching file layout or template code.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from typing import Dict, Iterable, List, Protocol, Sequence

from .models import (
    Depth,
    FunctionalRequirement,
    InterfaceMethod,
    Module,
    NonFunctionalRequirement,
    Priority,
    Question,
    RequirementsDocument,
    STATEFUL_PATTERN,
)
from .naming import camel_case, pascal_case, unique


class RequirementsExtractor(Protocol):
    def extract_requirements(self, description: str) -> List[FunctionalRequirement]: ...

    def extract_non_functional(self, description: str) -> List[NonFunctionalRequirement]: ...

    def extract_constraints(self, description: str) -> List[str]: ...

    def clarifying_questions(
        self, description: str, requirements: Sequence[FunctionalRequirement]
    ) -> List[Question]: ...


class ModuleClassifier(Protocol):
    def group_modules(self, document: RequirementsDocument) -> List[Module]: ...

    def domain_entities(self, document: RequirementsDocument) -> List[str]: ...


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

ACTOR_KEYWORDS = {
    "administrators": ("admin", "administrator", "admins"),
    "operators": ("operator", "operators"),
    "customers": ("customer", "customers"),
    "team members": ("team", "teams", "teammate", "teammates"),
    "managers": ("manager", "managers"),
    "developers": ("developer", "developers", "engineer", "engineers"),
    "analysts": ("analyst", "analysts"),
    "moderators": ("moderator", "moderators"),
}

# term -> (non-functional requirement, clarifying question)
QUALITY_HINTS = {
    "fast": ("Responses MUST meet a measurable latency target.",
             "What measurable response time defines 'fast'?"),
    "quick": ("User-facing operations MUST complete within an agreed time budget.",
              "What concrete speed target defines 'quick'?"),
    "responsive": ("The interface MUST stay usable on all target devices.",
                   "Which devices and response thresholds define 'responsive'?"),
    "secure": ("Access MUST be authenticated and authorized; sensitive data MUST be protected.",
               "Which security controls are required (authentication, encryption, compliance)?"),
    "scalable": ("The system MUST sustain the agreed user and data volumes.",
                 "What user count, data volume and concurrency must be supported?"),
    "reliable": ("The system MUST meet an agreed availability target.",
                 "What uptime or error budget is expected?"),
    "accessible": ("The interface MUST satisfy the agreed accessibility standard.",
                   "Which accessibility standard (for example WCAG level) applies?"),
    "compliant": ("The system MUST satisfy the applicable compliance regimes.",
                  "Which compliance regimes apply (for example GDPR, SOC2)?"),
    "intuitive": ("Core tasks MUST be completable without training.",
                  "What usability measure defines 'intuitive'?"),
}

TOPIC_QUESTIONS = (
    (("login", "log in", "sign in", "authentication", "password"),
     Question("Which authentication method should be supported?",
              ["email and password", "single sign-on", "OAuth provider"])),
    (("notification", "notify", "alert"),
     Question("Which channels should notifications use?", ["email", "push", "in-app"])),
    (("report", "export"),
     Question("What format should reports or exports use?", ["CSV", "PDF", "JSON"])),
    (("upload", "attachment", "file"),
     Question("What file size limit applies to uploads?")),
)

CONSTRAINT_PATTERN = re.compile(
    r"\b(must not|cannot|can't|only|at most|no more than|within|limited to|never)\b", re.IGNORECASE
)

_LEADING_SUBJECT = re.compile(
    r"^(?:the\s+)?(?:system|app|application|service|platform|users?|customers?|admins?|administrators?|"
    r"operators?|managers?|developers?|teams?)\s+"
    r"(?:must|should|shall|can|could|may|will|needs? to|wants? to)\s+(?:be able to\s+)?",
    re.IGNORECASE,
)
_LEADING_ENABLER = re.compile(
    r"^(?:allow|enable|let|help)s?\s+(?:the\s+)?(?:users?|customers?|admins?|administrators?|operators?|"
    r"managers?|developers?|teams?)\s+(?:to\s+)?",
    re.IGNORECASE,
)
_LEADING_PROVIDER = re.compile(r"^(?:support|provide)s?\s+(?:for\s+)?", re.IGNORECASE)

STOPWORDS = {
    "a", "an", "the", "to", "of", "in", "on", "for", "and", "or", "with", "by", "from", "at", "as",
    "their", "his", "her", "its", "our", "my", "your", "own", "them", "it", "they", "be", "is", "are",
    "that", "this", "these", "those", "via", "into", "all", "any", "each", "every", "new", "when",
    "user", "users", "customer", "customers", "admin", "admins", "system", "able", "can", "must",
    "should", "will", "so", "some", "up", "out",
}

VERBS = {
    "access", "add", "approve", "book", "browse", "cancel", "change", "check", "comment", "configure",
    "count", "create", "delete", "disable", "display", "download", "edit", "enable", "export", "filter",
    "find", "follow", "generate", "get", "import", "invite", "list", "log", "manage", "notify", "pay",
    "rate", "read", "receive", "record", "register", "reject", "remove", "reset", "review", "save",
    "schedule", "search", "see", "send", "set", "share", "show", "sign", "sort", "store", "submit",
    "subscribe", "track", "update", "upload", "use", "view", "write",
}


# ---------------------------------------------------------------------------
# Text utilities
# ---------------------------------------------------------------------------


_HEADING_LINE = re.compile(r"^\s{0,3}#{1,6}(?:\s|$)")


def strip_headings(text: str) -> str:
    """Drop markdown heading lines, keeping the prose under them."""
    return "\n".join(line for line in text.splitlines() if not _HEADING_LINE.match(line))


def one_line(text: str) -> str:
    return " ".join(strip_headings(text).split())


def split_sentences(text: str) -> List[str]:
    """Split prose and bullet lists into individual statements.

    Markdown headings are section labels, not statements, and are skipped.
    """
    sentences: List[str] = []
    for line in strip_headings(text).splitlines():
        cleaned = re.sub(r"^\s*(?:[-*+]|\d+[.)])\s+", "", line).strip()
        if not cleaned:
            continue
        for sentence in re.split(r"(?<=[.!?;])\s+", cleaned):
            sentence = sentence.strip()
            if sentence:
                sentences.append(sentence)
    return sentences


def significant_words(text: str) -> List[str]:
    return [w for w in re.findall(r"[a-z0-9]+", text.lower()) if w not in STOPWORDS]


def detect_actor(text: str) -> str:
    lower = text.lower()
    for canonical, variants in ACTOR_KEYWORDS.items():
        if any(re.search(rf"\b{re.escape(term)}\b", lower) for term in variants):
            return canonical
    return "users"


def extract_goal(sentence: str) -> str:
    """Reduce a requirement sentence to its verb phrase."""
    goal = sentence.strip().rstrip(".!?;").strip()
    for pattern in (_LEADING_SUBJECT, _LEADING_ENABLER, _LEADING_PROVIDER):
        goal = pattern.sub("", goal, count=1)
    goal = goal.strip()
    return goal[:1].lower() + goal[1:] if goal else sentence.strip().rstrip(".!?;")


def detect_priority(sentence: str) -> Priority:
    lower = sentence.lower()
    if re.search(r"\b(could|may|nice to have|optional(ly)?|ideally)\b", lower):
        return Priority.NICE_TO_HAVE
    if re.search(r"\bshould\b", lower):
        return Priority.SHOULD_HAVE
    return Priority.MUST_HAVE


def subject_of(goal: str) -> str:
    """Primary subject noun of a goal, used to group requirements."""
    tokens = significant_words(goal)
    if not tokens:
        return "feature"
    if tokens[0] in VERBS:
        for token in tokens[1:]:
            if token not in VERBS:
                return token
    return tokens[0]


def is_stateful_text(text: str) -> bool:
    return bool(STATEFUL_PATTERN.search(text))


_MODAL = {
    Priority.MUST_HAVE: "MUST",
    Priority.SHOULD_HAVE: "SHOULD",
    Priority.NICE_TO_HAVE: "MAY",
}


# ---------------------------------------------------------------------------
# Default implementations
# ---------------------------------------------------------------------------


class RuleBasedExtractor:
    """Keyword rules for requirement extraction."""

    def extract_requirements(self, description: str) -> List[FunctionalRequirement]:
        sentences = split_sentences(description)
        candidates = [s for s in sentences if not CONSTRAINT_PATTERN.search(s)] or sentences
        if not candidates and one_line(description):
            candidates = [one_line(description)]

        requirements: List[FunctionalRequirement] = []
        seen_goals = set()
        for sentence in candidates:
            goal = extract_goal(sentence)
            if not goal or goal.lower() in seen_goals:
                continue
            seen_goals.add(goal.lower())
            actor = detect_actor(sentence)
            priority = detect_priority(sentence)
            identifier = f"FR-{len(requirements) + 1}"
            title = " ".join(goal.split()[:8])
            requirements.append(
                FunctionalRequirement(
                    identifier=identifier,
                    title=title[:1].upper() + title[1:],
                    description=f"The system {_MODAL[priority]} enable {actor} to {goal}.",
                    acceptance_criteria=[
                        f"Given valid input, when {actor} {goal}, then the system completes the request",
                        f"Given invalid input, when {actor} {goal}, then the system rejects the request with a clear error",
                    ],
                    priority=priority,
                )
            )
        return requirements

    def extract_non_functional(self, description: str) -> List[NonFunctionalRequirement]:
        lower = description.lower()
        found: List[NonFunctionalRequirement] = []
        for term, (requirement, _question) in QUALITY_HINTS.items():
            if re.search(rf"\b{term}\b", lower):
                found.append(NonFunctionalRequirement(f"NFR-{len(found) + 1}", requirement))
        return found

    def extract_constraints(self, description: str) -> List[str]:
        return [s.rstrip(".") for s in split_sentences(description) if CONSTRAINT_PATTERN.search(s)]

    def clarifying_questions(
        self, description: str, requirements: Sequence[FunctionalRequirement]
    ) -> List[Question]:
        lower = description.lower()
        questions: List[Question] = []
        for triggers, question in TOPIC_QUESTIONS:
            if any(trigger in lower for trigger in triggers):
                questions.append(Question(question.prompt, list(question.options)))
        for term, (_requirement, prompt) in QUALITY_HINTS.items():
            if re.search(rf"\b{term}\b", lower):
                questions.append(Question(prompt))
        if detect_actor(description) == "users" and not re.search(r"\busers?\b", lower):
            questions.append(Question("Who are the primary users of this feature?"))
        if len(requirements) > 1:
            questions.append(
                Question(
                    "Which requirement matters most for the first release?",
                    [f"{fr.identifier}: {fr.title}" for fr in requirements],
                )
            )
        return questions


class RuleBasedClassifier:
    """Group requirements by their subject noun."""

    def group_modules(self, document: RequirementsDocument) -> List[Module]:
        groups: "OrderedDict[str, List[FunctionalRequirement]]" = OrderedDict()
        for fr in document.functional_requirements:
            subject = subject_of(self._goal_of(fr))
            groups.setdefault(subject, []).append(fr)

        modules: List[Module] = []
        for subject, requirements in groups.items():
            goals = [self._goal_of(fr) for fr in requirements]
            name = unique(f"{pascal_case(subject)}Service", [m.name for m in modules])
            responsibility = f"Owns {subject} operations: {'; '.join(goals)}."
            stateful = is_stateful_text(responsibility)

            methods: List[InterfaceMethod] = []
            for fr, goal in zip(requirements, goals):
                method_name = camel_case(" ".join(significant_words(goal)[:3])) or "handle"
                methods.append(
                    InterfaceMethod(
                        name=unique(method_name, [m.name for m in methods]),
                        requirement_id=fr.identifier,
                        summary=fr.title,
                    )
                )

            if stateful:
                hidden = (f"Keeps {subject} state consistent between calls; storage format, "
                          f"caching and concurrent updates stay internal.")
            else:
                hidden = f"Input validation and error mapping for {subject} requests."

            modules.append(
                Module(
                    name=name,
                    responsibility=responsibility,
                    interface=methods,
                    hidden_complexity=hidden,
                    depth=self._depth(len(requirements), stateful),
                    requirement_ids=[fr.identifier for fr in requirements],
                )
            )
        return modules

    def domain_entities(self, document: RequirementsDocument) -> List[str]:
        entities: List[str] = []
        for fr in document.functional_requirements:
            entity = pascal_case(subject_of(self._goal_of(fr)))
            if entity and entity not in entities:
                entities.append(entity)
        return entities[:8]

    @staticmethod
    def _goal_of(fr: FunctionalRequirement) -> str:
        match = re.match(r"^The system \w+ enable [\w ]+? to (.+?)\.?$", fr.description)
        return match.group(1) if match else extract_goal(fr.title)

    @staticmethod
    def _depth(requirement_count: int, stateful: bool) -> Depth:
        if requirement_count >= 3 or stateful:
            return Depth.DEEP
        if requirement_count == 2:
            return Depth.MEDIUM
        return Depth.SHALLOW


def traceability_for(modules: Iterable[Module]) -> Dict[str, List[str]]:
    """Map each requirement id to the modules that implement it."""
    table: Dict[str, List[str]] = {}
    for module in modules:
        for rid in module.requirement_ids:
            table.setdefault(rid, []).append(module.name)
    return table

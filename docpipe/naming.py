"""Identifier helpers shared by the stages and stub templates."""

from __future__ import annotations

import re
from typing import Iterable, List

_WORD = re.compile(r"[A-Za-z0-9]+")


def words(text: str) -> List[str]:
    return _WORD.findall(text)


def pascal_case(text: str) -> str:
    result = "".join(word[:1].upper() + word[1:] for word in words(text))
    if result[:1].isdigit():
        result = "N" + result
    return result


def camel_case(text: str) -> str:
    pascal = pascal_case(text)
    return pascal[:1].lower() + pascal[1:]


def snake_case(text: str) -> str:
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", text)
    result = "_".join(word.lower() for word in words(spaced))
    if result[:1].isdigit():
        result = "n_" + result
    return result


def unique(name: str, taken: Iterable[str]) -> str:
    """Append a counter to ``name`` until it is not in ``taken``."""
    existing = set(taken)
    if name not in existing:
        return name
    counter = 2
    while f"{name}{counter}" in existing:
        counter += 1
    return f"{name}{counter}"

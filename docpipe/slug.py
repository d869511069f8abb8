"""Feature slug derivation.

A slug is the join key shared by every stage output of a feature, so it must
be stable: deriving a slug from an already-valid slug returns it unchanged.
"""

from __future__ import annotations

import re
import unicodedata

from .errors import EmptyNameError

MAX_SLUG_LENGTH = 64

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
_SEPARATOR_RUN = re.compile(r"[^a-z0-9]+")


def derive_slug(name: str) -> str:
    """Convert a free-text feature name into a kebab-case slug.

    Raises:
        EmptyNameError: if nothing alphanumeric survives normalization.
    """
    folded = unicodedata.normalize("NFKD", name or "").encode("ascii", "ignore").decode("ascii")
    slug = _SEPARATOR_RUN.sub("-", folded.lower()).strip("-")
    slug = slug[:MAX_SLUG_LENGTH].rstrip("-")
    if not slug:
        raise EmptyNameError(name)
    return slug


def is_valid_slug(value: str) -> bool:
    """Check whether ``value`` is already a canonical slug."""
    return bool(value) and len(value) <= MAX_SLUG_LENGTH and bool(SLUG_PATTERN.match(value))

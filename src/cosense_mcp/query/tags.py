"""Tag query construction for the Cosense native search syntax."""

import re
from collections.abc import Sequence

from ..errors import ErrorCode, ValidationError

_TAG_DECORATION = re.compile(r"[\[\]#]")


def normalize_tag(tag: str) -> str:
    """Strip bracket and hash decoration: "[idea]" and "#idea" become "idea"."""
    return _TAG_DECORATION.sub("", tag)


def build_tag_query(tags: Sequence[str]) -> str:
    """Compile tags into one query matching pages that carry all of them.

    Each tag matches either link notation, "[tag]", or hashtag notation,
    "#tag". The store ANDs space-separated terms.

    Raises:
        ValidationError: If no tags are given.
    """
    if not tags:
        raise ValidationError("No tags provided for search", code=ErrorCode.NO_TAGS)

    clauses = []
    for tag in tags:
        clean = normalize_tag(tag)
        clauses.append(f"([{clean}] OR #{clean})")
    return " ".join(clauses)


def line_mentions_tag(line: str, tags: Sequence[str]) -> bool:
    """True if the line contains any of the tags in either notation."""
    for tag in tags:
        clean = normalize_tag(tag)
        if f"[{clean}]" in line or f"#{clean}" in line:
            return True
    return False

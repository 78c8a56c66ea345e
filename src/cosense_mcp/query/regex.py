"""Regular expression compilation and page scanning."""

import re

from ..errors import ErrorCode, PatternError, ValidationError
from ..models import MatchRecord, PageDetail, PageSummary

DEFAULT_FLAGS = "i"

# Flag letters as MCP hosts send them (JavaScript RegExp notation).
# "g" and "u" are accepted and change nothing: every line reports its first
# match and Python patterns are Unicode-aware already.
_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "g": 0,
    "u": 0,
    "y": 0,
}


class CompiledPattern:
    """A compiled pattern plus the sticky (anchored) flag re cannot express."""

    def __init__(self, regex: re.Pattern[str], sticky: bool = False):
        self.regex = regex
        self.sticky = sticky

    def first_match(self, text: str) -> str | None:
        found = self.regex.match(text) if self.sticky else self.regex.search(text)
        return found.group(0) if found else None


def compile_pattern(pattern: str, flags: str | None = None) -> CompiledPattern:
    """Compile a pattern with JavaScript-style flag letters.

    Omitted or empty flags default to case-insensitive matching.

    Raises:
        ValidationError: If the pattern is empty.
        PatternError: If the flags or the pattern are invalid.
    """
    if not pattern:
        raise ValidationError("No regex pattern provided", code=ErrorCode.INVALID_PATTERN)

    letters = flags or DEFAULT_FLAGS
    re_flags = 0
    seen: set[str] = set()
    for letter in letters:
        if letter not in _FLAG_MAP:
            raise PatternError(pattern, f"Invalid flags supplied: '{letters}'")
        if letter in seen:
            raise PatternError(pattern, f"Duplicate flag '{letter}' in '{letters}'")
        seen.add(letter)
        re_flags |= _FLAG_MAP[letter]

    try:
        regex = re.compile(pattern, re_flags)
    except re.error as e:
        raise PatternError(pattern, str(e)) from e

    return CompiledPattern(regex, sticky="y" in seen)


def scan_page(summary: PageSummary, detail: PageDetail, pattern: CompiledPattern) -> list[MatchRecord]:
    """Collect every match in a page's title and body lines.

    The title is tested first and recorded as line 0. Body lines are numbered
    from 1 in page order, one record per matching line.
    """
    matches: list[MatchRecord] = []

    title_match = pattern.first_match(summary.title)
    if title_match is not None:
        matches.append(
            MatchRecord(line_number=0, line=f"[Title] {summary.title}", match=title_match)
        )

    for number, line in enumerate(detail.lines, start=1):
        found = pattern.first_match(line.text)
        if found is not None:
            matches.append(MatchRecord(line_number=number, line=line.text, match=found))

    return matches

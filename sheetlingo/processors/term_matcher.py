# sheetlingo/processors/term_matcher.py
"""
Dictionary matching shared by the extractor and the rewrite engine.

TermMatcher: exact lookup table + flexible substitution rules, compiled once per rewrite
Formula helpers: locate and re-quote string literals inside formula text
"""

import logging
import re
from typing import Callable, Iterable, Iterator

from sheetlingo.models.types import MatchPolicy, TermEntry
from sheetlingo.services.exceptions import FormatError

logger = logging.getLogger(__name__)

# Optional minus, digits, optional fraction. "1,000" and "50%" are NOT numeric.
_RE_PURELY_NUMERIC = re.compile(r'^-?\d+(\.\d+)?$')

# Content between consecutive double quotes, one pair at a time
FORMULA_STRING_LITERAL = re.compile(r'"([^"]*)"')

# Excel limits a string constant inside a formula to 255 characters
FORMULA_LITERAL_MAX_LENGTH = 255


def is_purely_numeric(text: str) -> bool:
    """Check if text (after trimming) is an integer or decimal number."""
    text = text.strip()
    if not text:
        return False
    return _RE_PURELY_NUMERIC.match(text) is not None


def normalize_term(text: str) -> str:
    """Key used for exact matching: trimmed and case-folded."""
    return text.strip().lower()


def clean_term(text: str) -> str:
    """
    Return the trimmed text if it belongs in the dictionary, else "".

    Blank and purely numeric strings are not translatable.
    """
    text = text.strip()
    if not text or is_purely_numeric(text):
        return ""
    return text


def iter_formula_literals(formula: str) -> Iterator[str]:
    """Yield the raw (unquoted) content of every string literal in a formula."""
    for match in FORMULA_STRING_LITERAL.finditer(formula):
        yield match.group(1)


def quote_formula_literal(content: str) -> str:
    """
    Quote text as an Excel formula string constant.

    Embedded double quotes are doubled.

    Raises:
        FormatError: if the constant would exceed Excel's length limit
    """
    if len(content) > FORMULA_LITERAL_MAX_LENGTH:
        raise FormatError(
            f"Formula string literal is longer than {FORMULA_LITERAL_MAX_LENGTH} characters "
            f"after translation: {content[:40]!r}..."
        )
    return '"' + content.replace('"', '""') + '"'


def replace_formula_literals(formula: str, translate: Callable[[str], str]) -> str:
    """
    Rewrite every non-blank string literal of a formula through translate().

    Blank or whitespace-only literals are kept verbatim.
    """
    def _replace(match: re.Match) -> str:
        content = match.group(1)
        if not content.strip():
            return match.group(0)
        return quote_formula_literal(translate(content))

    return FORMULA_STRING_LITERAL.sub(_replace, formula)


class TermMatcher:
    """
    Two-tier matcher built from a dictionary.

    Priority:
    1. Exact: trimmed, lowercased text found in the lookup table (all policies)
    2. Flexible: every FLEXIBLE entry, longest source first, replaced as a
       case-insensitive literal substring wherever it currently occurs

    Entries without a target are ignored so untranslated rows never erase text.
    """

    def __init__(self, entries: Iterable[TermEntry]):
        self._exact: dict[str, str] = {}
        flexible: list[TermEntry] = []

        for entry in entries:
            if not entry.target.strip():
                continue
            self._exact[normalize_term(entry.source)] = entry.target
            if entry.policy == MatchPolicy.FLEXIBLE and entry.source:
                flexible.append(entry)

        # Longest first so a phrase wins over a shorter phrase it contains
        flexible.sort(key=lambda e: len(e.source), reverse=True)
        self._flexible_rules: list[tuple[re.Pattern, str]] = [
            (re.compile(re.escape(entry.source), re.IGNORECASE), entry.target)
            for entry in flexible
        ]

        logger.debug(
            "TermMatcher compiled: %d exact keys, %d flexible rules",
            len(self._exact), len(self._flexible_rules),
        )

    @property
    def is_empty(self) -> bool:
        return not self._exact

    def exact(self, text: str) -> str | None:
        """Exact lookup only. Returns None when the text is not a dictionary key."""
        return self._exact.get(normalize_term(text))

    def translate(self, text: str) -> str:
        """Exact match first, otherwise apply every flexible rule in order."""
        exact = self.exact(text)
        if exact is not None:
            return exact

        result = text
        for pattern, target in self._flexible_rules:
            # Callable replacement keeps backslashes in the target literal
            result = pattern.sub(lambda _m, t=target: t, result)
        return result

"""
Free-text extraction — recovers bot and patient names from call summaries.

Each matcher is a pure function ``text -> str | None``. Matchers are kept in
ordered tuples and tried first to last; add a pattern by appending to the
tuple, call sites never change.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable, Optional

Matcher = Callable[[str], Optional[str]]

# A capitalised name of one to three words: "Sarah", "Mary Ann Lee", "O'Neil"
_NAME = r"([A-Z][\w'\-]*(?:\s+[A-Z][\w'\-]*){0,2})"

MAX_NAME_LENGTH = 100


def regex_matcher(pattern: str, flags: int = 0) -> Matcher:
    """Build a matcher returning the first capture group of ``pattern``."""
    compiled = re.compile(pattern, flags)

    def match(text: str) -> Optional[str]:
        found = compiled.search(text)
        if not found:
            return None
        name = found.group(1).strip()
        if not name or len(name) > MAX_NAME_LENGTH:
            return None
        return name

    return match


BOT_NAME_MATCHERS: tuple[Matcher, ...] = (
    # "The agent (Sarah) greeted the caller"
    regex_matcher(r"(?i:\bagent)\s*\(\s*([^()\n]+?)\s*\)"),
    # "...identifying herself as Sarah from the clinic"
    regex_matcher(r"(?i:\bidentif(?:ying|ied)\s+(?:itself\s+|herself\s+|himself\s+)?as)\s+" + _NAME),
    # "An AI assistant named Max called..."
    regex_matcher(r"(?i:\bassistant\s+named)\s+" + _NAME),
)

PATIENT_NAME_MATCHERS: tuple[Matcher, ...] = (
    # "The agent identified the patient as John Smith."
    regex_matcher(r"(?i:\bpatient\s+as)\s+([^.,;\n]+?)\s*\."),
    # "Spoke with a patient named John Smith about..."
    regex_matcher(r"(?i:\bpatient\s+named)\s+" + _NAME),
)


def extract_first(text: Optional[str], matchers: Iterable[Matcher]) -> Optional[str]:
    """Run ``matchers`` in order over ``text``; first non-None result wins."""
    if not text:
        return None
    for matcher in matchers:
        result = matcher(text)
        if result:
            return result
    return None


def extract_bot_name(summary: Optional[str]) -> Optional[str]:
    return extract_first(summary, BOT_NAME_MATCHERS)


def extract_patient_name(summary: Optional[str]) -> Optional[str]:
    return extract_first(summary, PATIENT_NAME_MATCHERS)

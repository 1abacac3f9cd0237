"""
Tag and content matching for notes.

Two independent filters, combined with AND by callers:

- match_tags: every comma-separated query token must occur (as a
  substring, case-insensitively) in the note's tag string.
- match_content: the pattern must match the title, content or tags,
  literally (substring or exact, optionally case-insensitive) or as a
  regular expression (optionally word-bounded, case-insensitive,
  multi-line).

Nothing here raises for a bad pattern; it simply does not match.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .protocol import Matcher, RegexEngine
from .types import MAX_SEARCH_LEN, MAX_TAGS_LEN, Note

logger = logging.getLogger(__name__)

# Room reserved for the \b...\b wrapper in the regex budget.
_WORD_BOUNDARY_OVERHEAD = 16
MAX_REGEX_LEN = MAX_SEARCH_LEN * 4


@dataclass(frozen=True)
class SearchQuery:
    """Filter settings for list/search. Everything is optional."""
    pattern: Optional[str] = None
    tags: Optional[str] = None
    case_insensitive: bool = False
    regex_mode: bool = False
    exact_match: bool = False
    word_boundary: bool = False
    multiline_mode: bool = False


class _CompiledMatcher:
    """Matcher over a compiled ``re`` pattern."""

    def __init__(self, regex: re.Pattern):
        self._regex = regex

    def test(self, text: str) -> bool:
        return self._regex.search(text) is not None


class PythonRegexEngine:
    """
    RegexEngine backed by the standard ``re`` module.

    Mirrors POSIX extended semantics: without multi-line, ``.`` also
    matches newlines and ``^``/``$`` anchor to the whole text. With
    multi-line, anchors bind at line breaks and ``.`` stops at newlines.
    """

    def compile(
        self,
        pattern: str,
        *,
        ignore_case: bool = False,
        multiline: bool = False,
    ) -> Matcher:
        flags = re.MULTILINE if multiline else re.DOTALL
        if ignore_case:
            flags |= re.IGNORECASE
        try:
            return _CompiledMatcher(re.compile(pattern, flags))
        except re.error as e:
            raise ValueError(f"Invalid pattern {pattern!r}: {e}") from e


DEFAULT_ENGINE: RegexEngine = PythonRegexEngine()


def split_tags(tags: str) -> list[str]:
    """Split a comma-separated tag string into trimmed, non-empty tokens."""
    return [t.strip() for t in tags.split(",") if t.strip()]


def match_tags(note_tags: Optional[str], query_tags: Optional[str]) -> bool:
    """
    True if every query tag token occurs in ``note_tags``.

    An empty query matches everything. Matching is case-insensitive and
    by substring, so a note with extra tags still matches.
    """
    if not query_tags:
        return True
    if len(query_tags.encode("utf-8")) >= MAX_TAGS_LEN:
        return False

    tokens = split_tags(query_tags.lower())
    if not tokens:
        return True

    haystack = (note_tags or "").lower()
    return all(token in haystack for token in tokens)


def _compile_query(query: SearchQuery, engine: RegexEngine) -> Optional[Matcher]:
    pattern = query.pattern
    if len(pattern) + _WORD_BOUNDARY_OVERHEAD > MAX_REGEX_LEN:
        logger.debug("Pattern too long (%d chars)", len(pattern))
        return None
    if query.word_boundary:
        pattern = rf"\b{pattern}\b"
    try:
        return engine.compile(
            pattern,
            ignore_case=query.case_insensitive,
            multiline=query.multiline_mode,
        )
    except ValueError as e:
        logger.debug("Pattern rejected: %s", e)
        return None


def _match_literal(note: Note, query: SearchQuery) -> bool:
    pattern = query.pattern
    fields = (note.title, note.content, note.tags)

    if query.case_insensitive:
        if len(pattern) > MAX_SEARCH_LEN:
            return False
        pattern = pattern.lower()
        fields = tuple(f.lower() for f in fields)

    if query.exact_match:
        return any(f == pattern for f in fields)
    return any(pattern in f for f in fields)


def match_content(
    note: Note,
    query: SearchQuery,
    engine: Optional[RegexEngine] = None,
) -> bool:
    """
    True if the query pattern matches the note's title, content or tags.

    An empty pattern matches everything. In regex mode the fields are
    tried in that order and the first hit wins; an invalid or oversized
    pattern matches nothing.
    """
    if not query.pattern:
        return True

    if not query.regex_mode:
        return _match_literal(note, query)

    matcher = _compile_query(query, engine or DEFAULT_ENGINE)
    if matcher is None:
        return False
    return (
        matcher.test(note.title)
        or matcher.test(note.content)
        or matcher.test(note.tags)
    )


def note_matches(
    note: Note,
    query: SearchQuery,
    engine: Optional[RegexEngine] = None,
) -> bool:
    """A note qualifies when both the content and the tag filter accept it."""
    return match_content(note, query, engine) and match_tags(note.tags, query.tags)


def filter_notes(
    notes: Iterable[Note],
    query: SearchQuery,
    engine: Optional[RegexEngine] = None,
) -> list[Note]:
    """
    Notes accepted by ``query``, in input order.

    The pattern is compiled once for the whole pass.
    """
    notes = list(notes)
    if query.regex_mode and query.pattern:
        matcher = _compile_query(query, engine or DEFAULT_ENGINE)
        if matcher is None:
            return []
        return [
            n for n in notes
            if (matcher.test(n.title) or matcher.test(n.content) or matcher.test(n.tags))
            and match_tags(n.tags, query.tags)
        ]
    return [n for n in notes if note_matches(n, query, engine)]

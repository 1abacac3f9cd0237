"""
Tests for tag and content matching.
"""

import pytest

from cheatnote.protocol import Matcher, RegexEngine
from cheatnote.search import (
    MAX_REGEX_LEN,
    PythonRegexEngine,
    SearchQuery,
    filter_notes,
    match_content,
    match_tags,
    note_matches,
    split_tags,
)
from cheatnote.types import MAX_SEARCH_LEN, MAX_TAGS_LEN, Note


def _note(title="title", content="content", tags="") -> Note:
    return Note(id=1, title=title, content=content, tags=tags)


class TestMatchTags:
    """Every query tag must occur in the note's tags."""

    @pytest.mark.parametrize("note_tags,query,expected", [
        ("git,cli", "git", True),
        ("git,cli", "cli,git", True),
        ("git", "svn", False),
        ("git,cli", "", True),
        ("", "", True),
        ("git,cli", None, True),
        ("Git,CLI", "cli", True),
        ("git,cli", "GIT", True),
        ("github", "git", True),
        ("git", "git,svn", False),
        ("git,cli", " git , cli ", True),
        ("git", ",,", True),
        ("", "git", False),
    ])
    def test_cases(self, note_tags, query, expected):
        assert match_tags(note_tags, query) is expected

    def test_none_note_tags(self):
        assert not match_tags(None, "git")

    def test_oversized_query(self):
        assert not match_tags("x" * 600, "x" * MAX_TAGS_LEN)

    def test_split_tags(self):
        assert split_tags(" git, ,cli,") == ["git", "cli"]


class TestLiteral:
    """Substring and exact matching without regex."""

    def test_case_insensitive_substring(self):
        note = _note(title="Git Status")
        assert match_content(note, SearchQuery(pattern="GIT", case_insensitive=True))
        assert not match_content(note, SearchQuery(pattern="GIT"))

    def test_exact_vs_substring(self):
        exact = _note(content="status")
        longer = _note(content="git status")
        query = SearchQuery(pattern="status", exact_match=True)
        assert match_content(exact, query)
        assert not match_content(longer, query)
        assert match_content(longer, SearchQuery(pattern="status"))

    def test_exact_case_insensitive(self):
        note = _note(title="Status")
        assert match_content(note, SearchQuery(pattern="STATUS", exact_match=True, case_insensitive=True))

    def test_matches_tags_field(self):
        assert match_content(_note(tags="docker"), SearchQuery(pattern="dock"))

    def test_empty_pattern_matches(self):
        assert match_content(_note(), SearchQuery())
        assert match_content(_note(), SearchQuery(pattern=""))

    def test_regex_chars_are_literal(self):
        note = _note(content="a.b")
        assert match_content(note, SearchQuery(pattern="a.b"))
        assert not match_content(_note(content="axb"), SearchQuery(pattern="a.b"))

    def test_long_case_insensitive_pattern(self):
        pattern = "x" * (MAX_SEARCH_LEN + 1)
        note = _note(content=pattern)
        assert match_content(note, SearchQuery(pattern=pattern))
        assert not match_content(note, SearchQuery(pattern=pattern, case_insensitive=True))


class TestRegex:
    """Regex mode."""

    def test_word_boundary(self):
        query = SearchQuery(pattern="cat", regex_mode=True, word_boundary=True)
        assert match_content(_note(content="a cat sat"), query)
        assert not match_content(_note(content="concatenate"), query)

    def test_without_word_boundary(self):
        query = SearchQuery(pattern="cat", regex_mode=True)
        assert match_content(_note(content="concatenate"), query)

    def test_case_insensitive(self):
        query = SearchQuery(pattern="^git", regex_mode=True, case_insensitive=True)
        assert match_content(_note(title="Git status"), query)

    def test_anchors_without_multiline(self):
        note = _note(content="first line\ngit push")
        assert not match_content(note, SearchQuery(pattern="^git", regex_mode=True))
        assert match_content(note, SearchQuery(pattern="^git", regex_mode=True, multiline_mode=True))

    def test_dollar_without_multiline(self):
        note = _note(content="end here\nmore")
        assert not match_content(note, SearchQuery(pattern="here$", regex_mode=True))
        assert match_content(note, SearchQuery(pattern="here$", regex_mode=True, multiline_mode=True))

    def test_alternation(self):
        query = SearchQuery(pattern="docker|podman", regex_mode=True)
        assert match_content(_note(content="podman ps"), query)

    def test_invalid_pattern_no_match(self):
        query = SearchQuery(pattern="(unclosed", regex_mode=True)
        assert not match_content(_note(content="(unclosed"), query)

    def test_oversized_pattern_no_match(self):
        pattern = "a" * (MAX_REGEX_LEN - 10)
        query = SearchQuery(pattern=pattern, regex_mode=True)
        assert not match_content(_note(content=pattern), query)

    def test_tags_field_searched(self):
        query = SearchQuery(pattern="^k8s$", regex_mode=True)
        assert match_content(_note(tags="k8s"), query)

    def test_exact_flag_ignored(self):
        query = SearchQuery(pattern="stat", regex_mode=True, exact_match=True)
        assert match_content(_note(content="status"), query)


class TestEngine:
    """The regex engine is pluggable."""

    def test_default_engine_satisfies_protocol(self):
        engine = PythonRegexEngine()
        assert isinstance(engine, RegexEngine)
        assert isinstance(engine.compile("x"), Matcher)

    def test_invalid_pattern_raises_value_error(self):
        with pytest.raises(ValueError):
            PythonRegexEngine().compile("[")

    def test_custom_engine_used(self):
        calls = []

        class Always:
            def test(self, text):
                return True

        class Recording:
            def compile(self, pattern, *, ignore_case=False, multiline=False):
                calls.append((pattern, ignore_case, multiline))
                return Always()

        query = SearchQuery(pattern="cat", regex_mode=True, word_boundary=True, multiline_mode=True)
        assert match_content(_note(), query, engine=Recording())
        assert calls == [(r"\bcat\b", False, True)]


class TestFilter:
    """Combining both filters over a collection."""

    @pytest.fixture
    def notes(self):
        return [
            Note(1, "Git status", "git status -s", "git,cli"),
            Note(2, "List files", "ls -la", "shell"),
            Note(3, "Docker ps", "docker ps -a", "docker,cli"),
        ]

    def test_no_filters(self, notes):
        assert filter_notes(notes, SearchQuery()) == notes

    def test_tags_and_pattern(self, notes):
        query = SearchQuery(pattern="ps", tags="cli")
        assert [n.id for n in filter_notes(notes, query)] == [3]

    def test_tags_only(self, notes):
        assert [n.id for n in filter_notes(notes, SearchQuery(tags="cli"))] == [1, 3]

    def test_regex(self, notes):
        query = SearchQuery(pattern=r"-[a-z]$", regex_mode=True)
        assert [n.id for n in filter_notes(notes, query)] == [1, 3]

    def test_invalid_regex_empty(self, notes):
        assert filter_notes(notes, SearchQuery(pattern="*", regex_mode=True)) == []

    def test_note_matches_agrees(self, notes):
        query = SearchQuery(pattern="s", tags="cli")
        assert [n for n in notes if note_matches(n, query)] == filter_notes(notes, query)

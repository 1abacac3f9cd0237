"""
Protocol definitions for pluggable collaborators.

The match engine only needs two things from a regular-expression library:
compile a pattern with a couple of flags, and test a string. Any engine
satisfying these protocols can be passed to search.match_content().
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Matcher(Protocol):
    """A compiled pattern."""

    def test(self, text: str) -> bool: ...


@runtime_checkable
class RegexEngine(Protocol):
    """
    Compiles extended regular expressions.

    Implemented by:
    - search.PythonRegexEngine (stdlib ``re``)
    """

    def compile(
        self,
        pattern: str,
        *,
        ignore_case: bool = False,
        multiline: bool = False,
    ) -> Matcher:
        """
        Compile ``pattern``.

        With ``multiline``, ``^`` and ``$`` bind at line breaks; without it
        they bind only to the whole text.

        Raises:
            ValueError: If the pattern is invalid
        """
        ...

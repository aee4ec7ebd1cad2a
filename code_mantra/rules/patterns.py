"""PatternMatcher — glob-like file patterns compiled once and cached.

Syntax
------
``**``      any sequence, path separators included (``**/`` may also match
            zero directories, so ``**/*.ts`` matches ``a.ts``)
``*``       any sequence without a path separator
``?``       exactly one character, a path separator included
``{a,b}``   alternation between literal-or-wildcard branches (not nested)

Every other character is literal.  Backslashes are normalised to ``/`` in
both the pattern and the tested path, so one pattern behaves the same under
either separator convention.  Matching is anchored on the whole path.
"""

from __future__ import annotations

import re

from code_mantra.exceptions import PatternCompileError
from code_mantra.logging import get_logger

log = get_logger(__name__)


class Matcher:
    """A compiled pattern.  ``test()`` is pure and safe to call repeatedly."""

    def __init__(self, pattern: str | None, regex: re.Pattern[str] | None) -> None:
        self.pattern = pattern
        self._regex = regex

    def test(self, path: str) -> bool:
        if self._regex is None:
            return True
        return self._regex.fullmatch(normalize_path(path)) is not None

    def __repr__(self) -> str:
        return f"Matcher({self.pattern!r})"


class NeverMatcher(Matcher):
    """Stand-in for a pattern that failed to compile."""

    def __init__(self, pattern: str, error: str) -> None:
        super().__init__(pattern, None)
        self.error = error

    def test(self, path: str) -> bool:
        return False


_ALWAYS = Matcher(None, None)
_cache: dict[str, Matcher] = {}


def normalize_path(path: str) -> str:
    return path.replace("\\", "/")


def translate(pattern: str) -> str:
    """Translate a glob into an anchored-by-fullmatch regular expression.

    Raises:
        PatternCompileError: on unbalanced or nested braces.
    """
    pat = normalize_path(pattern)
    out: list[str] = []
    in_brace = False
    i, n = 0, len(pat)
    while i < n:
        c = pat[i]
        if c == "*":
            if i + 1 < n and pat[i + 1] == "*":
                i += 2
                if i < n and pat[i] == "/":
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append(".")
        elif c == "{":
            if in_brace:
                raise PatternCompileError(pattern, f"nested '{{' at position {i}")
            in_brace = True
            out.append("(?:")
        elif c == "}":
            if not in_brace:
                raise PatternCompileError(pattern, f"unmatched '}}' at position {i}")
            in_brace = False
            out.append(")")
        elif c == "," and in_brace:
            out.append("|")
        else:
            out.append(re.escape(c))
        i += 1
    if in_brace:
        raise PatternCompileError(pattern, "unterminated '{'")
    return "".join(out)


def compile_pattern(pattern: str | None) -> Matcher:
    """Return the cached matcher for *pattern*, compiling it on first use.

    An empty or absent pattern matches every path.  A pattern that cannot be
    compiled yields a matcher that never matches; the failure is logged once
    (the failed matcher is cached like any other).
    """
    if not pattern:
        return _ALWAYS
    cached = _cache.get(pattern)
    if cached is not None:
        return cached
    try:
        matcher = Matcher(pattern, re.compile(translate(pattern), re.DOTALL))
    except (PatternCompileError, re.error) as exc:
        reason = exc.message if isinstance(exc, PatternCompileError) else str(exc)
        log.warning("pattern_compile_failed", pattern=pattern, error=reason)
        matcher = NeverMatcher(pattern, reason)
    _cache[pattern] = matcher
    return matcher


def matches(pattern: str | None, path: str) -> bool:
    """Shorthand for ``compile_pattern(pattern).test(path)``."""
    return compile_pattern(pattern).test(path)


def clear_pattern_cache() -> None:
    """Drop every cached matcher (engine deactivation)."""
    _cache.clear()


def cache_size() -> int:
    return len(_cache)

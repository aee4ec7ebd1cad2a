"""Unit tests — rules/patterns.py."""

from __future__ import annotations

import pytest

from code_mantra.exceptions import PatternCompileError
from code_mantra.rules.patterns import (
    NeverMatcher,
    cache_size,
    clear_pattern_cache,
    compile_pattern,
    matches,
    translate,
)


@pytest.mark.unit
class TestGlobSyntax:
    @pytest.mark.parametrize(
        "pattern,path",
        [
            ("**/*.ts", "/home/dev/project/src/app.ts"),
            ("**/*.ts", "app.ts"),
            ("src/*.py", "src/main.py"),
            ("src/**", "src/a/b/c.txt"),
            ("**/test_?.py", "/repo/tests/test_a.py"),
            ("**/*.{ts,js,tsx}", "/repo/web/index.tsx"),
            ("/repo/**/README.md", "/repo/docs/guide/README.md"),
        ],
    )
    def test_matches(self, pattern: str, path: str) -> None:
        assert compile_pattern(pattern).test(path) is True

    @pytest.mark.parametrize(
        "pattern,path",
        [
            ("src/*.py", "src/pkg/main.py"),   # * stops at separators
            ("**/*.ts", "/repo/app.tsx"),
            ("**/test_?.py", "/repo/tests/test_ab.py"),
            ("**/*.{ts,js}", "/repo/app.py"),
            ("**/a+b.txt", "/repo/aab.txt"),   # regex metacharacters are literal
        ],
    )
    def test_does_not_match(self, pattern: str, path: str) -> None:
        assert compile_pattern(pattern).test(path) is False

    def test_question_mark_matches_any_single_character(self) -> None:
        assert matches("a?b", "a-b") is True
        assert matches("a?b", "a/b") is True
        assert matches("src?a.ts", "src/a.ts") is True
        assert matches("a?b", "a--b") is False


@pytest.mark.unit
class TestSeparators:
    def test_backslash_path_is_normalised(self) -> None:
        matcher = compile_pattern("**/src/*.cs")
        assert matcher.test("C:\\work\\proj\\src\\Program.cs") is True
        assert matcher.test("C:/work/proj/src/Program.cs") is True

    def test_backslash_pattern_is_normalised(self) -> None:
        assert matches("**\\*.cs", "/work/Program.cs") is True


@pytest.mark.unit
class TestEmptyPattern:
    @pytest.mark.parametrize("pattern", [None, ""])
    def test_empty_pattern_matches_everything(self, pattern: str | None) -> None:
        matcher = compile_pattern(pattern)
        assert matcher.test("/any/file.txt") is True
        assert matcher.test("") is True

    def test_empty_pattern_is_not_cached(self) -> None:
        clear_pattern_cache()
        compile_pattern("")
        assert cache_size() == 0


@pytest.mark.unit
class TestCache:
    def test_same_pattern_returns_same_matcher(self) -> None:
        assert compile_pattern("**/*.md") is compile_pattern("**/*.md")

    def test_repeated_tests_are_stable(self) -> None:
        matcher = compile_pattern("**/deep/**/*.go")
        path = "/a/deep/b/c/d/main.go"
        results = {matcher.test(path) for _ in range(50)}
        assert results == {True}
        assert compile_pattern("**/deep/**/*.go").test(path) is True

    def test_clear_empties_cache(self) -> None:
        compile_pattern("**/*.rs")
        assert cache_size() >= 1
        clear_pattern_cache()
        assert cache_size() == 0


@pytest.mark.unit
class TestInvalidPatterns:
    @pytest.mark.parametrize("pattern", ["**/*.{ts,js", "*.ts}", "{a,{b,c}}"])
    def test_translate_raises(self, pattern: str) -> None:
        with pytest.raises(PatternCompileError):
            translate(pattern)

    def test_invalid_pattern_never_matches(self) -> None:
        matcher = compile_pattern("**/*.{ts,js")
        assert isinstance(matcher, NeverMatcher)
        assert matcher.test("/repo/a.ts") is False
        assert matcher.test("/repo/a.{ts,js") is False

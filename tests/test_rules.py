"""Tests for filter parsing and matching."""

from __future__ import annotations

import pytest

from tdfix.errors import FilterSyntaxError
from tdfix.manifest import Transformation
from tdfix.rules import is_excluded, matches, parse_filter


def _t(filter: str) -> Transformation:
    return Transformation(filter=filter)


class TestMatches:
    def test_includes_with_exclude(self) -> None:
        t = _t("*.go|*.yml|!*.out")
        assert matches("main.go", t)
        assert matches("config.yml", t)
        assert not matches("report.out", t)
        assert not matches("main.go.out", t)

    def test_uses_base_name_only(self) -> None:
        t = _t("*.go")
        assert matches("/deep/nested/dir/main.go", t)
        assert not matches("/src.go/readme.md", _t("*.go"))

    def test_empty_filter_matches_everything(self) -> None:
        assert matches("anything.bin", _t(""))
        assert matches("Makefile", _t("   "))

    def test_exclude_only_filter_includes_the_rest(self) -> None:
        t = _t("!*.md")
        assert matches("a.txt", t)
        assert not matches("README.md", t)

    def test_exclude_wins_over_include(self) -> None:
        t = _t("*.go|!main.go")
        assert not matches("main.go", t)
        assert matches("util.go", t)

    def test_include_does_not_rescue_excluded_name(self) -> None:
        # Order of patterns inside the filter does not matter
        t = _t("!main.go|main.go")
        assert not matches("main.go", t)

    def test_whitespace_around_patterns_is_ignored(self) -> None:
        t = _t(" *.go | *.yml ")
        assert matches("a.yml", t)

    def test_case_sensitive(self) -> None:
        assert not matches("MAIN.GO", _t("*.go"))


class TestParseFilter:
    def test_split_into_sets(self) -> None:
        rule = parse_filter("*.go|!*_test.go|*.mod")
        assert rule.include == ("*.go", "*.mod")
        assert rule.exclude == ("*_test.go",)

    @pytest.mark.parametrize("text", ["*.go||*.yml", "|", "*.go|", "!", "*.go|! "])
    def test_malformed(self, text: str) -> None:
        with pytest.raises(FilterSyntaxError):
            parse_filter(text)

    def test_excluded_by_reports_pattern(self) -> None:
        rule = parse_filter("*|!*.lock|!package*")
        assert rule.excluded_by("package.lock") == ("*.lock", "package*")
        assert rule.excluded_by("main.py") == ()


class TestWalkExclude:
    def test_matches_base_name(self) -> None:
        assert is_excluded("/repo/.git", ".git|node_modules")
        assert is_excluded("node_modules", ".git|node_modules")
        assert not is_excluded("/repo/src", ".git|node_modules")

    def test_empty_excludes_nothing(self) -> None:
        assert not is_excluded(".git", "")

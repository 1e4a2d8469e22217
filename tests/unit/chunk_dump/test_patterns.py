from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from chunk_dump.exceptions import PatternError
from chunk_dump.patterns import (
    MAX_BRACE_DEPTH,
    MatchMode,
    PatternSet,
    PatternUsage,
    collect_patterns,
    expand,
    expand_braces,
    load_pattern_file,
    matches,
    normalize_pattern,
)

if TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.unit
def test_expand_braces_two_alternatives() -> None:
    assert expand_braces("site03/{.env,composer.json}") == ["site03/.env", "site03/composer.json"]
    assert expand(["site03/{.env,composer.json}"]) == {"site03/.env", "site03/composer.json"}


@pytest.mark.unit
def test_expand_braces_cartesian_product() -> None:
    assert expand_braces("{a,b}/{x,y}.py") == ["a/x.py", "a/y.py", "b/x.py", "b/y.py"]


@pytest.mark.unit
def test_expand_braces_nested_groups() -> None:
    assert expand_braces("src/{a,b{1,2}}.c") == ["src/a.c", "src/b1.c", "src/b2.c"]


@pytest.mark.unit
def test_expand_braces_without_braces_is_identity() -> None:
    assert expand_braces("src/main.php") == ["src/main.php"]


@pytest.mark.unit
def test_expand_braces_single_alternative_stays_literal() -> None:
    assert expand_braces("a{x}b") == ["a{x}b"]


@pytest.mark.unit
def test_expand_braces_drops_duplicates() -> None:
    assert expand_braces("{a,a,b}") == ["a", "b"]


@pytest.mark.unit
@pytest.mark.parametrize("pattern", ["a/{b,c", "a}b", "{a,b}}"])
def test_expand_braces_rejects_unbalanced(pattern: str) -> None:
    with pytest.raises(PatternError) as exc_info:
        expand_braces(pattern)

    assert exc_info.value.pattern == pattern
    assert "unmatched" in exc_info.value.reason


@pytest.mark.unit
def test_expand_braces_rejects_deep_nesting() -> None:
    depth = MAX_BRACE_DEPTH + 1
    pattern = "{a," * depth + "b" + "}" * depth

    with pytest.raises(PatternError, match="nesting"):
        expand_braces(pattern)


@pytest.mark.unit
def test_expand_braces_rejects_expansion_blowup() -> None:
    with pytest.raises(PatternError, match="expands to more than"):
        expand_braces("{a,b}" * 11)


@pytest.mark.unit
def test_expand_keeps_malformed_pattern_as_literal() -> None:
    assert expand(["a/{b,c", "x/{1,2}"]) == {"a/{b,c", "x/1", "x/2"}


@pytest.mark.unit
def test_expand_is_order_independent() -> None:
    assert expand(["b", "{a,c}"]) == expand(["{c,a}", "b"])


@pytest.mark.unit
def test_normalize_pattern() -> None:
    assert normalize_pattern("  ./src\\app  ") == "src/app"
    assert not normalize_pattern("   ")


@pytest.mark.unit
def test_exclude_matches_whole_components_only() -> None:
    assert matches("test/a.php", ["test"], MatchMode.EXCLUDE)
    assert matches("src/test/a.php", ["test"], MatchMode.EXCLUDE)
    assert not matches("latest_test.php", ["test"], MatchMode.EXCLUDE)
    assert not matches("src/tests/a.php", ["test"], MatchMode.EXCLUDE)


@pytest.mark.unit
def test_exclude_with_slash_matches_component_run() -> None:
    assert matches("site/app/cache/x.php", ["app/cache"], MatchMode.EXCLUDE)
    assert not matches("site/app/cachex/x.php", ["app/cache"], MatchMode.EXCLUDE)
    assert not matches("site/cache/app/x.php", ["app/cache"], MatchMode.EXCLUDE)


@pytest.mark.unit
def test_include_matches_substrings() -> None:
    assert matches("site03/.env", [".env"], MatchMode.INCLUDE)
    assert matches("site03/composer.json", ["site03/composer.json"], MatchMode.INCLUDE)
    assert matches("site03/latest_test.php", ["test"], MatchMode.INCLUDE)
    assert not matches("site03/index.php", [".env"], MatchMode.INCLUDE)


@pytest.mark.unit
def test_matches_records_every_matching_pattern() -> None:
    usage = PatternUsage()

    hit = matches("src/test/a.php", ["test", "src", "vendor"], MatchMode.EXCLUDE, usage)

    assert hit
    assert usage.count(MatchMode.EXCLUDE, "test") == 1
    assert usage.count(MatchMode.EXCLUDE, "src") == 1
    assert not usage.was_used(MatchMode.EXCLUDE, "vendor")
    assert not usage.was_used(MatchMode.INCLUDE, "test")


@pytest.mark.unit
def test_pattern_set_tracks_origin_and_unused() -> None:
    usage = PatternUsage()
    rules = PatternSet(["site03/{.env,composer.json}", "site03/.env", " "], MatchMode.INCLUDE)

    assert rules.raw == ["site03/{.env,composer.json}", "site03/.env"]
    assert rules.patterns == ["site03/.env", "site03/composer.json"]
    assert rules.origin["site03/composer.json"] == "site03/{.env,composer.json}"

    assert rules.matches("site03/.env", usage)
    assert rules.unused(usage) == ["site03/composer.json"]
    assert usage.as_dict() == {"include": {"site03/.env": 1}, "exclude": {}}


@pytest.mark.unit
def test_empty_pattern_set_is_falsy() -> None:
    rules = PatternSet([], MatchMode.EXCLUDE)

    assert not rules
    assert not rules.matches("anything/at/all")


@pytest.mark.unit
def test_load_pattern_file_skips_blank_and_comment_lines(tmp_path: Path) -> None:
    pattern_file = tmp_path / "patterns.txt"
    pattern_file.write_text("# secrets\n.env\n\n  vendor  \n{a,b}.php\n", encoding="utf-8")

    assert load_pattern_file(pattern_file) == [".env", "vendor", "{a,b}.php"]
    assert collect_patterns(["cache"], [pattern_file]) == ["cache", ".env", "vendor", "{a,b}.php"]

"""Include/exclude rule sets with brace expansion.

Include and exclude rules deliberately match differently:

- an include pattern matches when it occurs anywhere in the path string, so
  ``.env`` picks up ``site03/.env`` and ``site03/.env.local`` alike;
- an exclude pattern matches whole ``/``-delimited components only, so ``test``
  drops ``test/a.php`` but keeps ``latest_test.php``. A pattern with a ``/``
  matches a contiguous run of components (``app/cache`` drops
  ``site/app/cache/x.php``).

Patterns are brace-expanded once, up front: ``site03/{.env,composer.json}``
becomes ``site03/.env`` and ``site03/composer.json``. Malformed braces are not
fatal, the raw pattern is kept as literal text.
"""

from __future__ import annotations

from collections import Counter
from enum import StrEnum, auto
from pathlib import Path
from typing import TYPE_CHECKING

from chunk_dump.exceptions import PatternError
from chunk_dump.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

MAX_BRACE_DEPTH = 8
MAX_EXPANSIONS = 1024


class MatchMode(StrEnum):
    """How a rule set tests a path."""

    INCLUDE = auto()
    EXCLUDE = auto()


class PatternUsage:
    """Per-pattern hit counters, owned by the run that evaluates the rules.

    A pattern counts one hit every time it turns a decision true. Counters are
    kept per mode, so the same text used as include and exclude is tracked twice.
    """

    def __init__(self) -> None:
        self._hits: Counter[tuple[MatchMode, str]] = Counter()

    def record(self, mode: MatchMode, pattern: str) -> None:
        self._hits[mode, pattern] += 1

    def count(self, mode: MatchMode, pattern: str) -> int:
        return self._hits[mode, pattern]

    def was_used(self, mode: MatchMode, pattern: str) -> bool:
        return self._hits[mode, pattern] > 0

    def as_dict(self) -> dict[str, dict[str, int]]:
        out: dict[str, dict[str, int]] = {m.value: {} for m in MatchMode}
        for (mode, pattern), hits in sorted(self._hits.items()):
            out[mode.value][pattern] = hits
        return out


def normalize_pattern(pattern: str) -> str:
    """Normalize a raw pattern: trim whitespace, use POSIX separators, drop a leading ``./``.

    Args:
        pattern (str): the raw pattern

    Returns:
        str: the normalized pattern, possibly empty
    """
    p = (pattern or "").strip().replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    return p


def check_braces(pattern: str, max_depth: int = MAX_BRACE_DEPTH) -> None:
    """Validate brace balance and nesting depth.

    Args:
        pattern (str): the pattern to check
        max_depth (int): deepest allowed brace nesting

    Raises:
        PatternError: on an unmatched ``{`` or ``}``, or nesting deeper than `max_depth`
    """
    depth = 0
    for ch in pattern:
        if ch == "{":
            depth += 1
            if depth > max_depth:
                raise PatternError(pattern=pattern, reason=f"brace nesting deeper than {max_depth}")
        elif ch == "}":
            depth -= 1
            if depth < 0:
                raise PatternError(pattern=pattern, reason="unmatched '}'")
    if depth:
        raise PatternError(pattern=pattern, reason="unmatched '{'")


def _closing_brace(pattern: str, start: int) -> int:
    depth = 0
    for i in range(start, len(pattern)):
        if pattern[i] == "{":
            depth += 1
        elif pattern[i] == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _split_alternatives(body: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    cur: list[str] = []
    for ch in body:
        if ch == "," and depth == 0:
            parts.append("".join(cur))
            cur = []
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        cur.append(ch)
    parts.append("".join(cur))
    return parts


def _expand(pattern: str) -> list[str]:
    start = pattern.find("{")
    if start == -1:
        return [pattern]
    end = _closing_brace(pattern, start)
    prefix, body, suffix = pattern[:start], pattern[start + 1 : end], pattern[end + 1 :]
    alternatives = _split_alternatives(body)
    if len(alternatives) == 1:
        # "{x}" has nothing to choose from and stays literal.
        middles = ["{" + m + "}" for m in _expand(body)]
    else:
        middles = [m for alt in alternatives for m in _expand(alt)]
    tails = _expand(suffix)
    if len(middles) * len(tails) > MAX_EXPANSIONS:
        raise PatternError(pattern=pattern, reason=f"expands to more than {MAX_EXPANSIONS} patterns")
    return [prefix + m + t for m in middles for t in tails]


def expand_braces(pattern: str, max_depth: int = MAX_BRACE_DEPTH) -> list[str]:
    """Expand ``{a,b}`` alternatives into concrete patterns.

    Several groups produce their Cartesian product and nested groups expand
    recursively. A pattern without braces expands to itself.

    Args:
        pattern (str): the pattern to expand
        max_depth (int): deepest allowed brace nesting

    Raises:
        PatternError: if the braces are unbalanced, nested too deep, or expand to
            more than ``MAX_EXPANSIONS`` patterns

    Returns:
        list[str]: the expanded patterns in order, without duplicates
    """
    check_braces(pattern, max_depth=max_depth)
    return list(dict.fromkeys(_expand(pattern)))


def expand(raw_patterns: Iterable[str]) -> set[str]:
    """Expand a whole rule set.

    Malformed patterns are logged and kept verbatim.

    Args:
        raw_patterns (Iterable[str]): raw patterns from flags and pattern files

    Returns:
        set[str]: the flat set of concrete patterns
    """
    return set(PatternSet(raw_patterns, MatchMode.INCLUDE).patterns)


def _components(path: str) -> list[str]:
    return [part for part in path.split("/") if part and part != "."]


def include_matches(path: str, pattern: str) -> bool:
    """Substring match: a path is included when the pattern occurs anywhere in it."""
    return bool(pattern) and pattern in path


def exclude_matches(path: str, pattern: str) -> bool:
    """Component match: the pattern's components appear as a contiguous run of the path's."""
    wanted = _components(pattern)
    if not wanted:
        return False
    parts = _components(path)
    if len(wanted) == 1:
        return wanted[0] in parts
    n = len(wanted)
    return any(parts[i : i + n] == wanted for i in range(len(parts) - n + 1))


def matches(
    path: str,
    patterns: Iterable[str],
    mode: MatchMode,
    usage: PatternUsage | None = None,
) -> bool:
    """Check a path against expanded patterns.

    Every pattern is evaluated (no short circuit) so that all patterns taking
    part in a decision are recorded in `usage`.

    Args:
        path (str): POSIX path to test
        patterns (Iterable[str]): expanded patterns
        mode (MatchMode): include (substring) or exclude (path component) semantics
        usage (PatternUsage | None): counters updated for every matching pattern

    Returns:
        bool: True if any pattern matches
    """
    path = path.replace("\\", "/")
    test = include_matches if mode is MatchMode.INCLUDE else exclude_matches
    hit = False
    for pattern in patterns:
        if test(path, pattern):
            hit = True
            if usage is not None:
                usage.record(mode, pattern)
    return hit


class PatternSet:
    """An expanded rule set bound to one match mode.

    Attributes:
        mode: Include or exclude semantics.
        raw: Normalized raw patterns, in the order given.
        patterns: Expanded patterns, in first-seen order.
        origin: Raw pattern each expanded pattern came from.
    """

    def __init__(self, raw_patterns: Iterable[str], mode: MatchMode) -> None:
        self.mode = mode
        self.raw: list[str] = []
        self.origin: dict[str, str] = {}
        for raw in raw_patterns:
            pattern = normalize_pattern(raw)
            if not pattern or pattern in self.raw:
                continue
            self.raw.append(pattern)
            try:
                expanded = expand_braces(pattern)
            except PatternError as e:
                logger.warning("pattern_kept_literal", pattern=pattern, reason=e.reason, mode=mode.value)
                expanded = [pattern]
            for item in expanded:
                self.origin.setdefault(item, pattern)
        self.patterns: list[str] = list(self.origin)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)

    def __iter__(self) -> Iterator[str]:
        return iter(self.patterns)

    def matches(self, path: str, usage: PatternUsage | None = None) -> bool:
        return matches(path, self.patterns, self.mode, usage)

    def unused(self, usage: PatternUsage) -> list[str]:
        """Expanded patterns that never turned a decision true."""
        return [p for p in self.patterns if not usage.was_used(self.mode, p)]


def load_pattern_file(path: str | Path) -> list[str]:
    """Read one literal pattern per line.

    Blank lines and lines starting with ``#`` are ignored.

    Args:
        path (str | Path): the pattern file

    Returns:
        list[str]: the patterns, surrounding whitespace stripped
    """
    lines = Path(path).read_text(encoding="utf-8", errors="replace").splitlines()
    out: list[str] = []
    for ln in lines:
        s = ln.strip()
        if not s or s.startswith("#"):
            continue
        out.append(s)
    return out


def collect_patterns(flags: Sequence[str], files: Sequence[str | Path]) -> list[str]:
    """Merge patterns given on the command line with those read from pattern files."""
    out = list(flags)
    for f in files:
        out.extend(load_pattern_file(f))
    return out

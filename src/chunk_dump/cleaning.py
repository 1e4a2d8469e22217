"""Comment and blank-line removal that leaves string and char literals untouched.

The scan is a single left-to-right pass driven by `step`, which maps the current
`ScanState` and position to a `Transition` (what to emit, how much input was
consumed, and the next state). A second pass trims trailing whitespace and drops
whitespace-only lines. Cleaning is best effort: unterminated comments and
literals run to end of input, and files without a known profile pass through
unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chunk_dump.config import LanguageProfile

ESCAPE = "\\"
LINE_BREAKS = ("\n", "\r")
MAX_CHAR_LITERAL = 12


class ScanState(Enum):
    """Where the scanner currently is."""

    CODE = auto()
    IN_LINE_COMMENT = auto()
    IN_BLOCK_COMMENT = auto()
    IN_STRING = auto()
    IN_CHAR = auto()


@dataclass(frozen=True)
class Transition:
    """Result of one scanner step.

    Attributes:
        state: State after the step.
        emit: Text copied to the output.
        consumed: Number of input characters used (always at least 1).
        delimiter: Closing delimiter while inside a literal, None otherwise.
    """

    state: ScanState
    emit: str
    consumed: int
    delimiter: str | None = None


def _char_literal_length(text: str, pos: int, delimiter: str) -> int:
    """Length of the char literal opening at `pos`, 0 when the quote starts none."""
    if text.startswith(ESCAPE, pos + 1):
        end = text.find(delimiter, pos + 3)
        if end == -1 or end - pos >= MAX_CHAR_LITERAL or "\n" in text[pos:end]:
            return 0
        return end - pos + 1
    if pos + 2 < len(text) and text[pos + 2] == delimiter and text[pos + 1] not in (delimiter, "\n"):
        return 3
    return 0


def _step_code(text: str, pos: int, profile: LanguageProfile) -> Transition:
    if profile.block_comment and text.startswith(profile.block_comment[0], pos):
        return Transition(ScanState.IN_BLOCK_COMMENT, "", len(profile.block_comment[0]))
    if profile.line_comment and text.startswith(profile.line_comment, pos):
        return Transition(ScanState.IN_LINE_COMMENT, "", len(profile.line_comment))
    ch = text[pos]
    if ch in profile.string_delimiters or ch in profile.raw_string_delimiters:
        return Transition(ScanState.IN_STRING, ch, 1, delimiter=ch)
    if ch == profile.char_delimiter and _char_literal_length(text, pos, ch):
        return Transition(ScanState.IN_CHAR, ch, 1, delimiter=ch)
    return Transition(ScanState.CODE, ch, 1)


def _step_literal(state: ScanState, text: str, pos: int, delimiter: str, *, raw: bool = False) -> Transition:
    ch = text[pos]
    if ch == ESCAPE and not raw:
        escaped = text[pos : pos + 2]
        return Transition(state, escaped, len(escaped), delimiter=delimiter)
    if ch == delimiter:
        return Transition(ScanState.CODE, ch, 1)
    # Copy the whole run up to the next escape or delimiter in one go.
    stops = (delimiter,) if raw else (ESCAPE, delimiter)
    end = pos + 1
    while end < len(text) and text[end] not in stops:
        end += 1
    return Transition(state, text[pos:end], end - pos, delimiter=delimiter)


def step(
    state: ScanState,
    text: str,
    pos: int,
    profile: LanguageProfile,
    delimiter: str | None = None,
) -> Transition:
    """Advance the scanner by one token.

    Args:
        state (ScanState): current state
        text (str): the whole input
        pos (int): index of the next unread character, ``pos < len(text)``
        profile (LanguageProfile): comment and literal delimiters of the language
        delimiter (str | None): closing delimiter when `state` is a literal state

    Returns:
        Transition: the emitted text, the number of characters consumed and the next state
    """
    if state is ScanState.CODE:
        return _step_code(text, pos, profile)
    if state is ScanState.IN_LINE_COMMENT:
        ends = [i for i in (text.find(brk, pos) for brk in LINE_BREAKS) if i != -1]
        if not ends:
            return Transition(ScanState.CODE, "", len(text) - pos)
        end = min(ends)
        return Transition(ScanState.CODE, text[end], end - pos + 1)
    if state is ScanState.IN_BLOCK_COMMENT:
        close = profile.block_comment[1] if profile.block_comment else ""
        end = text.find(close, pos) if close else -1
        if end == -1:
            return Transition(ScanState.CODE, "", len(text) - pos)
        return Transition(ScanState.CODE, "", end - pos + len(close))
    delimiter = delimiter or text[pos]
    return _step_literal(state, text, pos, delimiter, raw=delimiter in profile.raw_string_delimiters)


def strip_comments(text: str, profile: LanguageProfile) -> str:
    """Remove comments, copying code and literals through verbatim."""
    out: list[str] = []
    state = ScanState.CODE
    delimiter: str | None = None
    pos = 0
    while pos < len(text):
        tr = step(state, text, pos, profile, delimiter)
        out.append(tr.emit)
        pos += tr.consumed
        state, delimiter = tr.state, tr.delimiter
    return "".join(out)


def collapse_blank_lines(text: str) -> str:
    """Trim trailing whitespace on every line and drop whitespace-only lines entirely.

    Lines are split on line feeds only, so form feeds and other separators inside
    literals survive; the carriage return ending a CRLF line is trimmed with the rest.
    """
    return "\n".join(ln.rstrip() for ln in text.split("\n") if ln.strip())


def clean_text(text: str, profile: LanguageProfile | None) -> str:
    """Strip comments and blank lines from decoded source.

    Args:
        text (str): the source text
        profile (LanguageProfile | None): the language profile; None leaves the text as is

    Returns:
        str: the cleaned text, or `text` unchanged when there is no profile
    """
    if profile is None:
        return text
    return collapse_blank_lines(strip_comments(text, profile))


def clean(data: bytes, profile: LanguageProfile | None) -> bytes:
    """Byte-level wrapper around `clean_text`; invalid UTF-8 is decoded lossily."""
    if profile is None:
        return data
    return clean_text(data.decode("utf-8", errors="replace"), profile).encode("utf-8")

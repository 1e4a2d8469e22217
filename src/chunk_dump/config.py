from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, computed_field


class CommentFamily(StrEnum):
    """Language families grouped by comment and string delimiter syntax."""

    C_STYLE = auto()
    JS_STYLE = auto()
    SCRIPT = auto()
    SQL = auto()
    CSS = auto()
    MARKUP = auto()


class LanguageProfile(BaseModel):
    """Comment and literal delimiters used to clean one language family.

    Attributes:
        family: The family this profile describes.
        line_comment: Token opening a comment that runs to end of line, if any.
        block_comment: ``(open, close)`` tokens of a non-nesting block comment, if any.
        string_delimiters: Characters opening a string literal closed by the same character.
        raw_string_delimiters: Characters opening a string in which a backslash is not an escape (Go raw strings).
        char_delimiter: Character opening a char literal (C-family ``'x'``), if any. A quote that does
            not start a complete char literal (Rust lifetimes such as ``'a``) is plain code.
    """

    model_config = ConfigDict(frozen=True)

    family: CommentFamily
    line_comment: str | None = None
    block_comment: tuple[str, str] | None = None
    string_delimiters: tuple[str, ...] = ()
    raw_string_delimiters: tuple[str, ...] = ()
    char_delimiter: str | None = None


PROFILES: dict[CommentFamily, LanguageProfile] = {
    CommentFamily.C_STYLE: LanguageProfile(
        family=CommentFamily.C_STYLE,
        line_comment="//",
        block_comment=("/*", "*/"),
        string_delimiters=('"',),
        raw_string_delimiters=("`",),
        char_delimiter="'",
    ),
    CommentFamily.JS_STYLE: LanguageProfile(
        family=CommentFamily.JS_STYLE,
        line_comment="//",
        block_comment=("/*", "*/"),
        string_delimiters=('"', "'", "`"),
    ),
    CommentFamily.SCRIPT: LanguageProfile(
        family=CommentFamily.SCRIPT,
        line_comment="#",
        string_delimiters=('"', "'"),
    ),
    CommentFamily.SQL: LanguageProfile(
        family=CommentFamily.SQL,
        line_comment="--",
        block_comment=("/*", "*/"),
        string_delimiters=('"', "'"),
    ),
    CommentFamily.CSS: LanguageProfile(
        family=CommentFamily.CSS,
        block_comment=("/*", "*/"),
        string_delimiters=('"', "'"),
    ),
    CommentFamily.MARKUP: LanguageProfile(
        family=CommentFamily.MARKUP,
        block_comment=("<!--", "-->"),
    ),
}

EXT2FAMILY: dict[str, CommentFamily] = {
    ".bash": CommentFamily.SCRIPT,
    ".c": CommentFamily.C_STYLE,
    ".cc": CommentFamily.C_STYLE,
    ".cfg": CommentFamily.SCRIPT,
    ".conf": CommentFamily.SCRIPT,
    ".cpp": CommentFamily.C_STYLE,
    ".cs": CommentFamily.C_STYLE,
    ".css": CommentFamily.CSS,
    ".cxx": CommentFamily.C_STYLE,
    ".dart": CommentFamily.JS_STYLE,
    ".env": CommentFamily.SCRIPT,
    ".go": CommentFamily.C_STYLE,
    ".h": CommentFamily.C_STYLE,
    ".hpp": CommentFamily.C_STYLE,
    ".htm": CommentFamily.MARKUP,
    ".html": CommentFamily.MARKUP,
    ".java": CommentFamily.C_STYLE,
    ".js": CommentFamily.JS_STYLE,
    ".jsx": CommentFamily.JS_STYLE,
    ".kt": CommentFamily.C_STYLE,
    ".less": CommentFamily.JS_STYLE,
    ".mjs": CommentFamily.JS_STYLE,
    ".php": CommentFamily.JS_STYLE,
    ".pl": CommentFamily.SCRIPT,
    ".py": CommentFamily.SCRIPT,
    ".r": CommentFamily.SCRIPT,
    ".rb": CommentFamily.SCRIPT,
    ".rs": CommentFamily.C_STYLE,
    ".scss": CommentFamily.JS_STYLE,
    ".sh": CommentFamily.SCRIPT,
    ".sql": CommentFamily.SQL,
    ".svg": CommentFamily.MARKUP,
    ".swift": CommentFamily.C_STYLE,
    ".toml": CommentFamily.SCRIPT,
    ".ts": CommentFamily.JS_STYLE,
    ".tsx": CommentFamily.JS_STYLE,
    ".xml": CommentFamily.MARKUP,
    ".yaml": CommentFamily.SCRIPT,
    ".yml": CommentFamily.SCRIPT,
    ".zsh": CommentFamily.SCRIPT,
}

NAME2FAMILY: dict[str, CommentFamily] = {
    ".env": CommentFamily.SCRIPT,
    ".gitignore": CommentFamily.SCRIPT,
    "dockerfile": CommentFamily.SCRIPT,
    "makefile": CommentFamily.SCRIPT,
}

# VCS metadata is never part of a dump.
DEFAULT_EXCLUDES = {
    ".git",
    ".hg",
    ".svn",
}


def guess_profile(path: str | Path) -> LanguageProfile | None:
    """Pick the comment profile for a file from its name or extension.

    Exact file names (``Dockerfile``, ``.env``) win over extensions. Files without
    an extension use the script profile; unknown extensions get no profile, which
    means their content is never cleaned.

    Args:
        path (str | Path): the file path (only the name is inspected)

    Returns:
        LanguageProfile | None: the profile, or None when cleaning is not possible
    """
    p = PurePosixPath(str(path).replace("\\", "/"))
    family = NAME2FAMILY.get(p.name.lower())
    if family is None:
        suffix = p.suffix.lower()
        family = CommentFamily.SCRIPT if not suffix else EXT2FAMILY.get(suffix)
    return PROFILES[family] if family is not None else None


class SourcePath(BaseModel):
    """A discovered file, before reading.

    Attributes:
        path: Location on disk.
        rel: POSIX path relative to the scanned directory, used for the tree and excludes.
        display: POSIX path shown in the entry header and matched by includes.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="File location on disk")
    rel: str = Field(..., description="Path relative to the scanned directory")
    display: str = Field(..., description="Path printed in the FILE header")

    @computed_field
    @property
    def extension(self) -> str:
        """Lowercase extension without the dot, empty when there is none."""
        return PurePosixPath(self.rel).suffix.lower().lstrip(".")


class SourceEntry(BaseModel):
    """One accepted file with its raw content, ready to be cleaned and placed in a chunk."""

    model_config = ConfigDict(frozen=True)

    display_path: str = Field(..., description="Path printed in the FILE header")
    raw_bytes: bytes = Field(..., description="File content as read from disk")
    profile: LanguageProfile | None = Field(default=None, description="Comment profile, None if unknown")

    @property
    def text(self) -> str:
        """Content decoded as UTF-8, invalid sequences replaced."""
        return self.raw_bytes.decode("utf-8", errors="replace")

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ChunkDumpError(Exception):
    """Base exception for errors in the chunk_dump module."""

    def __str__(self) -> str:
        return getattr(self, "message", self.__class__.__name__)


@dataclass(frozen=True)
class PatternError(ChunkDumpError):
    """Raised when an include/exclude pattern has malformed brace syntax."""

    pattern: str
    reason: str
    message: str = "Malformed brace expansion in pattern."

    def __str__(self) -> str:
        return f"{self.message} pattern={self.pattern!r} reason={self.reason}"


@dataclass(frozen=True)
class SourceReadError(ChunkDumpError):
    """Raised when a discovered source file cannot be read."""

    path: Path
    reason: str
    message: str = "The source file could not be read."

    def __str__(self) -> str:
        return f"{self.message} path={self.path} reason={self.reason}"


@dataclass(frozen=True)
class SourceDirectoryError(ChunkDumpError):
    """Raised when the directory to scan does not exist."""

    folder: Path
    message: str = "The source directory does not exist or is not a directory."


@dataclass(frozen=True)
class OutputPatternError(ChunkDumpError):
    """Raised when the output path pattern cannot be used."""

    pattern: str
    message: str = "The output pattern must name a file."


@dataclass(frozen=True)
class UnsafeOutputError(ChunkDumpError):
    """Raised when wiping the output directory would delete the source directory."""

    output_dir: Path
    source: Path
    message: str = "Output folder contains the source folder."

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from chunk_dump.exceptions import OutputPatternError
from chunk_dump.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable

SEPARATOR = "=" * 42
INDEX_PLACEHOLDER = "*"
TYPE_PLACEHOLDER = "{type}"


def format_entry(display_path: str, content: str) -> str:
    """Render one file as a chunk entry.

    Args:
        display_path (str): path printed in the header, quoted and escaped like a JSON string
        content (str): the (possibly cleaned) file content

    Returns:
        str: ``\\n--- FILE: "<path>" ---\\n<content>\\n``
    """
    return f"\n--- FILE: {json.dumps(display_path, ensure_ascii=False)} ---\n{content}\n"


def format_tree_header(source_label: str, tree: str) -> str:
    """Render the project structure header placed at the start of the first chunk."""
    return (
        f"PROJECT STRUCTURE: {json.dumps(source_label, ensure_ascii=False)}\n"
        f"{SEPARATOR}\n"
        f"{tree}\n"
        f"{SEPARATOR}\n\n"
    )


@dataclass
class Chunk:
    """One output segment: an ordered buffer of text and its running length.

    Attributes:
        index: 1-based position of the chunk in the output sequence.
        parts: Prologue (first chunk only) followed by entries, in order.
        length: Total number of characters in `parts`.
        entries: Number of entries (the prologue is not an entry).
    """

    index: int
    parts: list[str] = field(default_factory=list)
    length: int = 0
    entries: int = 0

    def append(self, text: str, *, entry: bool = True) -> None:
        self.parts.append(text)
        self.length += len(text)
        if entry:
            self.entries += 1

    @property
    def text(self) -> str:
        return "".join(self.parts)


@dataclass(frozen=True)
class ChunkAssignment:
    """Where an offered entry was placed.

    Attributes:
        chunk_index: 1-based index of the chunk now holding the entry.
        sealed: The chunk closed to make room for the entry, if any.
    """

    chunk_index: int
    sealed: Chunk | None = None

    @property
    def started_new_chunk(self) -> bool:
        return self.sealed is not None


class ChunkWriter:
    """Place entries into size-bounded chunks without ever splitting one.

    A chunk holding no entry yet accepts the next entry whatever its size, so a
    file longer than `limit` gets a chunk of its own and is never truncated. A
    chunk that already holds entries takes another one only while the total stays
    within `limit`; otherwise it is sealed and a new chunk is started.

    The `prologue` (project tree) opens the first chunk and counts toward its
    length. Sealed chunks are handed to `on_seal` as soon as they are closed.
    """

    def __init__(
        self,
        limit: int,
        prologue: str = "",
        on_seal: Callable[[Chunk], None] | None = None,
    ) -> None:
        if limit <= 0:
            msg = f"Chunk limit must be positive, got {limit}"
            raise ValueError(msg)
        self.limit = limit
        self.prologue = prologue
        self.on_seal = on_seal
        self.sealed: list[Chunk] = []
        self.current: Chunk | None = None
        self._finished = False

    def _new_chunk(self) -> Chunk:
        chunk = Chunk(index=len(self.sealed) + 1)
        if chunk.index == 1 and self.prologue:
            chunk.append(self.prologue, entry=False)
        return chunk

    def _seal(self, chunk: Chunk) -> None:
        self.sealed.append(chunk)
        logger.info("chunk_sealed", index=chunk.index, length=chunk.length, entries=chunk.entries)
        if self.on_seal is not None:
            self.on_seal(chunk)

    def offer(self, entry_text: str) -> ChunkAssignment:
        """Place an entry in the current chunk or in a new one.

        Args:
            entry_text (str): the complete formatted entry

        Returns:
            ChunkAssignment: the chunk receiving the entry and the chunk sealed on the way, if any
        """
        if self._finished:
            msg = "ChunkWriter already finished"
            raise RuntimeError(msg)
        if self.current is None:
            self.current = self._new_chunk()
        sealed: Chunk | None = None
        if self.current.entries and self.current.length + len(entry_text) > self.limit:
            sealed = self.current
            self._seal(sealed)
            self.current = self._new_chunk()
        self.current.append(entry_text)
        return ChunkAssignment(chunk_index=self.current.index, sealed=sealed)

    def finish(self) -> list[Chunk]:
        """Seal the last chunk and return every chunk in order.

        When no entry was ever offered, a non-empty prologue still yields a single
        chunk so the tree is not lost.

        Returns:
            list[Chunk]: all chunks, 1-based indices in order
        """
        if not self._finished:
            if self.current is None and self.prologue:
                self.current = self._new_chunk()
            if self.current is not None:
                self._seal(self.current)
                self.current = None
            self._finished = True
        return list(self.sealed)


def output_path_for(pattern: str, index: int, display_ext: str = "") -> Path:
    """Compute the file name of a chunk.

    ``{type}`` is replaced by `display_ext` and ``*`` by the 1-based `index`. A
    pattern without ``*`` gets ``_<index>`` appended to its stem
    (``dump.txt`` -> ``dump_1.txt``).

    Args:
        pattern (str): the output path pattern
        index (int): 1-based chunk number
        display_ext (str): extension substituted for ``{type}``, e.g. ".php"

    Raises:
        OutputPatternError: if the pattern does not name a file

    Returns:
        Path: the chunk file path
    """
    filename = pattern.replace(TYPE_PLACEHOLDER, display_ext)
    if INDEX_PLACEHOLDER in filename:
        return Path(filename.replace(INDEX_PLACEHOLDER, str(index)))
    path = Path(filename)
    if not path.name or filename.endswith(("/", "\\")):
        raise OutputPatternError(pattern=pattern)
    return path.with_name(f"{path.stem}_{index}{path.suffix}")


def write_chunk(chunk: Chunk, pattern: str, display_ext: str = "") -> Path:
    """Write one chunk verbatim as UTF-8, creating parent directories.

    Returns:
        Path: the written file
    """
    path = output_path_for(pattern, chunk.index, display_ext)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(chunk.text, encoding="utf-8")
    print(f"Saved chunk: {path}")
    return path

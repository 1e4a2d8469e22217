from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tqdm import tqdm

from chunk_dump.cleaning import clean_text
from chunk_dump.exceptions import SourceReadError
from chunk_dump.file_manipulation import load_entry, render_tree
from chunk_dump.logging import logger
from chunk_dump.output_construction import Chunk, ChunkWriter, format_entry, format_tree_header
from chunk_dump.patterns import MatchMode, PatternSet, PatternUsage

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from chunk_dump.config import SourceEntry, SourcePath


@dataclass
class DumpResult:
    """Everything a run produces for the caller.

    Attributes:
        chunks: Output segments in order, the first one opening with the tree.
        tree: The rendered project tree.
        accepted: Files that passed the include/exclude rules, in discovery order.
        skipped: Accepted files left out of the chunks (unreadable or empty after cleaning).
        usage: Hit counters of every include and exclude pattern.
    """

    chunks: list[Chunk]
    tree: str
    accepted: list[SourcePath]
    skipped: list[SourcePath] = field(default_factory=list)
    usage: PatternUsage = field(default_factory=PatternUsage)


class DumpPipeline:
    """Filter, clean and chunk discovered files in discovery order.

    Both rule types see the display path (the source directory as given joined
    with the relative path), so `site03/vendor` excludes and `site03/.env`
    includes while scanning `site03`. A file is dropped when an exclude pattern
    matches. A remaining file is accepted when its extension is one of
    `extensions` or an include pattern matches; with neither extensions nor
    includes configured, every remaining file is accepted.
    """

    def __init__(
        self,
        *,
        source_label: str,
        limit: int,
        clean: bool = False,
        includes: Iterable[str] = (),
        excludes: Iterable[str] = (),
        extensions: Iterable[str] = (),
        usage: PatternUsage | None = None,
    ) -> None:
        self.source_label = source_label
        self.limit = limit
        self.clean = clean
        self.includes = PatternSet(includes, MatchMode.INCLUDE)
        self.excludes = PatternSet(excludes, MatchMode.EXCLUDE)
        self.extensions = {e.strip().lstrip(".").lower() for e in extensions if e.strip()}
        self.usage = usage if usage is not None else PatternUsage()

    def accepts(self, candidate: SourcePath) -> bool:
        """Apply the exclude rules, then the extension and include rules."""
        if self.excludes.matches(candidate.display, self.usage):
            return False
        if not self.extensions and not self.includes:
            return True
        by_type = candidate.extension in self.extensions
        by_include = self.includes.matches(candidate.display, self.usage)
        return by_type or by_include

    def select(self, candidates: Iterable[SourcePath]) -> list[SourcePath]:
        """Accepted candidates, in the order given, each path once."""
        out: list[SourcePath] = []
        seen: set[str] = set()
        for candidate in candidates:
            if candidate.display in seen:
                continue
            if self.accepts(candidate):
                seen.add(candidate.display)
                out.append(candidate)
        return out

    def render_entry(self, entry: SourceEntry) -> str | None:
        """Format an entry, cleaning it first when enabled.

        Returns:
            str | None: the formatted entry, or None when nothing is left to dump
        """
        content = entry.text
        if self.clean:
            content = clean_text(content, entry.profile)
        if not content:
            return None
        return format_entry(entry.display_path, content)

    def run(
        self,
        candidates: Sequence[SourcePath],
        *,
        on_seal: Callable[[Chunk], None] | None = None,
        progress: bool = False,
    ) -> DumpResult:
        """Filter `candidates` and pack the accepted files into chunks.

        Args:
            candidates (Sequence[SourcePath]): discovered files, in discovery order
            on_seal (Callable[[Chunk], None] | None): called with each chunk once it is complete
            progress (bool): show a progress bar over the accepted files

        Returns:
            DumpResult: the chunks, the tree, the accepted and skipped files and pattern usage
        """
        return self.process(self.select(candidates), on_seal=on_seal, progress=progress)

    def process(
        self,
        accepted: Sequence[SourcePath],
        *,
        on_seal: Callable[[Chunk], None] | None = None,
        progress: bool = False,
    ) -> DumpResult:
        """Pack already selected files into chunks.

        The tree of `accepted` is rendered before any entry is placed and opens the
        first chunk. Unreadable files are logged and skipped.
        """
        tree = render_tree(sp.rel for sp in accepted)
        result = DumpResult(chunks=[], tree=tree, accepted=list(accepted), usage=self.usage)
        if not accepted:
            logger.info("nothing_to_dump", source=self.source_label)
            return result

        writer = ChunkWriter(self.limit, prologue=format_tree_header(self.source_label, tree), on_seal=on_seal)
        for sp in tqdm(accepted, disable=not progress, unit="file"):
            try:
                entry = load_entry(sp)
            except SourceReadError as e:
                logger.warning("source_unreadable", path=str(e.path), reason=e.reason)
                result.skipped.append(sp)
                continue
            text = self.render_entry(entry)
            if text is None:
                logger.info("empty_entry_skipped", path=sp.display)
                result.skipped.append(sp)
                continue
            writer.offer(text)
        result.chunks = writer.finish()
        return result

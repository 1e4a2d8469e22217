"""
chunk_dump: package a source tree into size-limited text files for an LLM.

Overview
--------
Walks `--path`, keeps the files of the main `--type` plus anything matched by
`--include`, drops anything under an `--exclude` path component, optionally
strips comments and blank lines (`--clean`), and writes the result as numbered
text files of at most `--limit` characters. The first file opens with the
project tree. A file is never split across two outputs; a file longer than the
limit gets an output of its own.

Usage
-----
    chunk-dump --path site03 --type .php --clean --out "site03/dump/dump_*.txt"
    chunk-dump --path . --type py --include "{pyproject.toml,.env}" --exclude tests --out "out/ctx_*.txt"
    chunk-dump --path . --out "dump/{type}_*.txt" --type .ts --limit 60000 --progress

Patterns support brace expansion (``a/{x,y}.ext``) and can be read from files
with one pattern per line (`--include-file`, `--exclude-file`).
"""

from __future__ import annotations

import argparse
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Any

from chunk_dump import __version__
from chunk_dump.exceptions import ChunkDumpError, SourceDirectoryError, UnsafeOutputError
from chunk_dump.file_manipulation import find_external_includes, walk_files
from chunk_dump.logging import logger, setup_logging
from chunk_dump.output_construction import output_path_for, write_chunk
from chunk_dump.patterns import MatchMode, collect_patterns
from chunk_dump.pipeline import DumpPipeline
from chunk_dump.settings import Settings, load_config_file

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chunk_dump.output_construction import Chunk
    from chunk_dump.patterns import PatternSet, PatternUsage


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = argparse.ArgumentParser(
        prog="chunk-dump",
        description="Dump a source tree into size-limited text files (tree header + file entries).",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", type=str, default=None, help="YAML file with default settings.")
    p.add_argument("--path", type=str, default=None, help="Source directory path to search.")
    p.add_argument(
        "--type",
        type=str,
        default=None,
        metavar="EXTENSION",
        help="Main file extension(s) to dump, e.g. .php (comma separated).",
    )
    p.add_argument("--clean", action="store_true", default=None, help="Remove comments and empty lines.")
    p.add_argument("--out", type=str, default=None, help='Output path pattern, e.g. "site03/dump/dump_*.txt".')
    p.add_argument("--progress", action="store_true", default=None, help="Show a progress bar.")
    p.add_argument("--limit", type=int, default=None, help="Character limit per output file.")
    p.add_argument(
        "--exclude",
        action="append",
        default=None,
        help=(
            "Exclude paths containing these components, matched against the path as shown "
            "(--path prefix included), comma separated, repeatable."
        ),
    )
    p.add_argument(
        "--include",
        action="append",
        default=None,
        help=(
            "Also include these file names, paths or substrings of the path as shown "
            "(--path prefix included), comma separated, repeatable."
        ),
    )
    p.add_argument(
        "--include-file",
        action="append",
        default=None,
        help="File listing include patterns, one per line (repeatable).",
    )
    p.add_argument(
        "--exclude-file",
        action="append",
        default=None,
        help="File listing exclude patterns, one per line (repeatable).",
    )
    p.add_argument("--log-file", type=str, default=None, help="Log file path.")
    args = p.parse_args(argv)

    values: dict[str, Any] = {}
    if args.config:
        values.update(load_config_file(args.config))
    values.update({k: v for k, v in vars(args).items() if k != "config" and v is not None})
    missing = [name for name in ("path", "out") if name not in values]
    if missing:
        p.error("the following arguments are required: " + ", ".join(f"--{m}" for m in missing))
    return Settings(**values)


def prepare_output_dir(out_pattern: str, source: Path, display_ext: str = "") -> Path | None:
    """Empty the output directory before a run.

    The parent directory of the first chunk is wiped and recreated when it exists,
    unless it is the current directory or it contains the source directory. A
    missing parent directory is created.

    Args:
        out_pattern (str): the output path pattern
        source (Path): the directory being dumped
        display_ext (str): extension substituted for ``{type}``

    Returns:
        Path | None: the output directory, or None when chunks go to the current directory
    """
    parent = output_path_for(out_pattern, 1, display_ext).parent
    if parent in {Path(), Path(".")}:
        return None
    if not parent.exists():
        parent.mkdir(parents=True, exist_ok=True)
        return parent
    try:
        check_output_safety(parent, source)
    except UnsafeOutputError as e:
        logger.warning("output_wipe_skipped", output_dir=str(e.output_dir), source=str(e.source))
        print(f"WARNING: Skipping deletion: {e.message} ({e.output_dir})")
        return parent
    print(f"!!! WIPING DIRECTORY: {parent} !!!")
    shutil.rmtree(parent)
    parent.mkdir(parents=True, exist_ok=True)
    return parent


def check_output_safety(output_dir: Path, source: Path) -> None:
    """Refuse to treat a directory as disposable when the source lives inside it.

    Raises:
        UnsafeOutputError: if `source` is `output_dir` or one of its descendants
    """
    out_abs = output_dir.resolve()
    src_abs = source.resolve()
    if src_abs == out_abs or out_abs in src_abs.parents:
        raise UnsafeOutputError(output_dir=output_dir, source=source)


def warn_unused_patterns(patterns: PatternSet, usage: PatternUsage) -> list[str]:
    """Print a warning for every pattern that never matched.

    Returns:
        list[str]: the unused patterns
    """
    unused = patterns.unused(usage)
    kind = "Include" if patterns.mode is MatchMode.INCLUDE else "Exclude"
    for pattern in unused:
        origin = patterns.origin.get(pattern, pattern)
        suffix = f" (from '{origin}')" if origin != pattern else ""
        print(f"WARNING: {kind} pattern '{pattern}'{suffix} was NOT found.")
        logger.warning("pattern_unused", mode=patterns.mode.value, pattern=pattern, origin=origin)
    return unused


def run(settings: Settings) -> int:
    source = Path(settings.path)
    if not source.is_dir():
        raise SourceDirectoryError(folder=source)

    output_dir = prepare_output_dir(settings.out, source, settings.display_ext)

    includes = collect_patterns(settings.include, settings.include_file)
    excludes = collect_patterns(settings.exclude, settings.exclude_file)
    pipeline = DumpPipeline(
        source_label=source.as_posix(),
        limit=settings.limit,
        clean=settings.clean,
        includes=includes,
        excludes=excludes,
        extensions=settings.extensions,
    )

    print(f"Scanning: {source.as_posix()} | Type: {settings.display_ext or '*'} | Includes: {includes}")
    candidates = walk_files(source, skip=[output_dir] if output_dir else [])
    for sp in find_external_includes(pipeline.includes.patterns, candidates):
        print(f"(+) Added external include: {sp.display}")
        candidates.append(sp)

    accepted = pipeline.select(candidates)
    print(f"Found {len(accepted)} files to process.")

    def on_seal(chunk: Chunk) -> None:
        write_chunk(chunk, settings.out, settings.display_ext)

    result = pipeline.process(accepted, on_seal=on_seal, progress=settings.progress)

    warn_unused_patterns(pipeline.includes, result.usage)
    warn_unused_patterns(pipeline.excludes, result.usage)
    print(f"Processing complete. Parts created: {len(result.chunks)}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)
    try:
        return run(settings)
    except ChunkDumpError as e:
        logger.error("run_failed", error=str(e))
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())

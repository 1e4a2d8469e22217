from __future__ import annotations

import os
import posixpath
import stat
from pathlib import Path
from typing import TYPE_CHECKING, Any

from chunk_dump.config import DEFAULT_EXCLUDES, SourceEntry, SourcePath, guess_profile
from chunk_dump.exceptions import SourceReadError
from chunk_dump.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

_FILES_KEY = "__files__"


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return str(path.relative_to(root)).replace("\\", "/")
    except ValueError:
        return str(path).replace("\\", "/")


def display_path(source: Path, rel: str) -> str:
    """Path shown in the entry header: the source directory as given, joined with `rel`."""
    return (source / rel).as_posix()


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.stat()
        return stat.S_ISREG(st.st_mode)
    except OSError:
        return False


def walk_files(source: Path, skip: Iterable[Path] = ()) -> list[SourcePath]:
    """Walk the directory tree rooted at `source` in a stable order.

    Symlinks are followed. Names are sorted within each directory so discovery
    order does not depend on the file system. VCS directories (`DEFAULT_EXCLUDES`)
    and the directories in `skip` are pruned.

    Args:
        source (Path): the directory to walk, as given on the command line
        skip (Iterable[Path]): directories never descended into (e.g. the output folder)

    Returns:
        list[SourcePath]: every regular file found, in discovery order
    """
    skipped = {p.resolve() for p in skip}
    results: list[SourcePath] = []
    for root, dirs, files in os.walk(source, followlinks=True):
        root_path = Path(root)
        dirs[:] = sorted(
            (d for d in dirs if d not in DEFAULT_EXCLUDES and (root_path / d).resolve() not in skipped),
            key=lambda d: (d.lower(), d),
        )
        for f in sorted(files, key=lambda n: (n.lower(), n)):
            p = root_path / f
            if not is_regular_file(p):
                continue
            rel = relpath(p, source)
            results.append(SourcePath(path=p, rel=rel, display=display_path(source, rel)))
    return results


def find_external_includes(includes: Sequence[str], found: Sequence[SourcePath]) -> list[SourcePath]:
    """Resolve include patterns that name an existing file the walk did not reach.

    Such a file (e.g. ``site03/.env`` given while scanning ``site03/app``) is added
    to the dump under the path exactly as written.

    Args:
        includes (Sequence[str]): normalized include patterns
        found (Sequence[SourcePath]): files already discovered

    Returns:
        list[SourcePath]: the extra files, in include order, without duplicates
    """
    seen = {_resolved(sp.path) for sp in found}
    extra: list[SourcePath] = []
    for inc in includes:
        p = Path(inc)
        if not is_regular_file(p):
            continue
        key = _resolved(p)
        if key in seen:
            continue
        seen.add(key)
        posix = p.as_posix()
        extra.append(SourcePath(path=p, rel=external_rel(posix), display=posix))
        logger.info("external_include_added", path=posix)
    return extra


def external_rel(include: str) -> str:
    """Tree path of an external include: normalized, without the root or leading ``..`` parts.

    ``../shared/.env`` is shown as ``shared/.env`` and ``/etc/app.conf`` as ``etc/app.conf``.
    """
    parts = posixpath.normpath(include.replace("\\", "/")).split("/")
    while parts and parts[0] in {"", ".", ".."}:
        parts.pop(0)
    return "/".join(parts)


def _resolved(path: Path) -> Path:
    try:
        return path.resolve()
    except OSError:
        return path.absolute()


def load_entry(source_path: SourcePath) -> SourceEntry:
    """Read a discovered file into a `SourceEntry`.

    Args:
        source_path (SourcePath): the file to read

    Raises:
        SourceReadError: if the file cannot be opened or read

    Returns:
        SourceEntry: the raw bytes with the display path and comment profile
    """
    try:
        data = source_path.path.read_bytes()
    except OSError as e:
        raise SourceReadError(path=source_path.path, reason=str(e)) from e
    return SourceEntry(
        display_path=source_path.display,
        raw_bytes=data,
        profile=guess_profile(source_path.path.name),
    )


def _sort_key(name: str) -> tuple[str, str]:
    return (name.lower(), name)


def build_tree(rel_paths: Iterable[str]) -> dict[str, Any]:
    """Nest POSIX paths into a mapping of directory name to subtree.

    Files of a directory are collected under the ``"__files__"`` key.

    Args:
        rel_paths (Iterable[str]): relative paths using ``/`` separators

    Returns:
        dict[str, Any]: the nested tree
    """
    tree: dict[str, Any] = {}
    for raw in rel_paths:
        rp = raw.replace("\\", "/").strip("/")
        parts = [p for p in rp.split("/") if p and p != "."]
        if not parts:
            continue
        cur = tree
        for part in parts[:-1]:
            cur = cur.setdefault(part, {})
        cur.setdefault(_FILES_KEY, set()).add(parts[-1])
    return tree


def render_tree(rel_paths: Iterable[str], root_name: str | None = None) -> str:
    """Build a visual tree representation of file paths.

    Within each directory, sub-directories come first, then files; both groups are
    sorted case-insensitively with the exact name breaking ties. The output only
    depends on the set of paths, never on their order.

    Args:
        rel_paths (Iterable[str]): file paths relative to the root, using POSIX separators (e.g. "src/main.py")
        root_name (str | None): optional first line naming the root

    Returns:
        str: the tree, one node per line, without a trailing newline
    """
    tree = build_tree(rel_paths)
    lines: list[str] = [root_name] if root_name else []

    def walk(node: dict[str, Any], prefix: str) -> None:
        dirs = sorted((k for k in node if k != _FILES_KEY), key=_sort_key)
        files = sorted(node.get(_FILES_KEY, set()), key=_sort_key)
        entries: list[tuple[str, Any]] = [(d + "/", node[d]) for d in dirs]
        entries.extend((f, None) for f in files)
        for idx, (name, child) in enumerate(entries):
            last = idx == len(entries) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + name)
            if child is not None:
                walk(child, prefix + ("    " if last else "│   "))

    walk(tree, "")
    return "\n".join(lines)

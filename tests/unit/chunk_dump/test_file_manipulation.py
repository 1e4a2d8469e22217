from __future__ import annotations

import itertools
from pathlib import Path

import pytest

from chunk_dump.config import CommentFamily, SourcePath
from chunk_dump.exceptions import SourceReadError
from chunk_dump.file_manipulation import (
    build_tree,
    display_path,
    external_rel,
    find_external_includes,
    load_entry,
    relpath,
    render_tree,
    walk_files,
)

PATHS = ["src/main.py", "README.md", "src/util/helpers.py", "tests/test_main.py"]

EXPECTED_TREE = "\n".join(
    [
        "├── src/",
        "│   ├── util/",
        "│   │   └── helpers.py",
        "│   └── main.py",
        "├── tests/",
        "│   └── test_main.py",
        "└── README.md",
    ],
)


@pytest.mark.unit
def test_render_tree_directories_before_files() -> None:
    assert render_tree(PATHS) == EXPECTED_TREE


@pytest.mark.unit
def test_render_tree_is_independent_of_discovery_order() -> None:
    outputs = {render_tree(list(perm)) for perm in itertools.permutations(PATHS)}

    assert outputs == {EXPECTED_TREE}


@pytest.mark.unit
def test_render_tree_collapses_duplicates_and_normalizes_separators() -> None:
    assert render_tree(["src\\a.py", "src/a.py", "/src/a.py"]) == "└── src/\n    └── a.py"


@pytest.mark.unit
def test_render_tree_case_insensitive_with_exact_tie_break() -> None:
    assert render_tree(["b.txt", "B.txt", "a.txt"]) == "├── a.txt\n├── B.txt\n└── b.txt"


@pytest.mark.unit
def test_render_tree_with_root_name_and_empty_input() -> None:
    assert render_tree(["a.py"], root_name="project") == "project\n└── a.py"
    assert not render_tree([])


@pytest.mark.unit
def test_build_tree_nests_directories() -> None:
    assert build_tree(["a/b/c.py", "a/d.py"]) == {"a": {"b": {"__files__": {"c.py"}}, "__files__": {"d.py"}}}


@pytest.mark.unit
def test_relpath_and_display_path(tmp_path: Path) -> None:
    assert relpath(tmp_path / "src" / "a.py", tmp_path) == "src/a.py"
    assert display_path(Path("site03"), "app/x.php") == "site03/app/x.php"
    assert display_path(Path(), "x.php") == "x.php"


@pytest.mark.unit
def test_walk_files_is_sorted_and_skips_vcs_and_output(tmp_path: Path) -> None:
    for rel in ["b.php", "A.php", "lib/z.php", ".git/config", "dump/old_1.txt"]:
        p = tmp_path / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text("x", encoding="utf-8")

    found = walk_files(tmp_path, skip=[tmp_path / "dump"])

    assert [sp.rel for sp in found] == ["A.php", "b.php", "lib/z.php"]
    assert found[2].display == (tmp_path / "lib" / "z.php").as_posix()


@pytest.mark.unit
def test_find_external_includes_adds_files_outside_the_walk(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "site03" / "app").mkdir(parents=True)
    (tmp_path / "site03" / ".env").write_text("A=1\n", encoding="utf-8")
    (tmp_path / "site03" / "app" / "x.php").write_text("<?php", encoding="utf-8")
    found = walk_files(Path("site03/app"))

    extra = find_external_includes(["site03/.env", "site03/app/x.php", "missing.cfg", "site03/.env"], found)

    assert [sp.display for sp in extra] == ["site03/.env"]
    assert extra[0].rel == "site03/.env"


@pytest.mark.unit
def test_load_entry_reads_bytes_and_profile(tmp_path: Path) -> None:
    p = tmp_path / "index.php"
    p.write_bytes(b"<?php echo 1; \xff")

    entry = load_entry(SourcePath(path=p, rel="index.php", display="site/index.php"))

    assert entry.display_path == "site/index.php"
    assert entry.raw_bytes.endswith(b"\xff")
    assert entry.text.endswith("\ufffd")
    assert entry.profile is not None
    assert entry.profile.family is CommentFamily.JS_STYLE


@pytest.mark.unit
def test_load_entry_raises_for_missing_file(tmp_path: Path) -> None:
    missing = tmp_path / "gone.php"

    with pytest.raises(SourceReadError) as exc_info:
        load_entry(SourcePath(path=missing, rel="gone.php", display="gone.php"))

    assert exc_info.value.path == missing


@pytest.mark.unit
@pytest.mark.parametrize(
    ("include", "rel"),
    [
        ("site03/.env", "site03/.env"),
        ("../shared/.env", "shared/.env"),
        ("../../a/./b/../c.cfg", "a/c.cfg"),
        ("/etc/app.conf", "etc/app.conf"),
    ],
)
def test_external_rel_drops_root_and_parent_parts(include: str, rel: str) -> None:
    assert external_rel(include) == rel


@pytest.mark.unit
def test_external_include_from_parent_directory_stays_inside_the_tree(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    (tmp_path / "shared").mkdir()
    (tmp_path / "shared" / ".env").write_text("A=1\n", encoding="utf-8")
    (tmp_path / "proj").mkdir()
    (tmp_path / "proj" / "main.py").write_text("x = 1\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path / "proj")
    found = walk_files(Path("."))

    extra = find_external_includes(["../shared/.env"], found)

    assert [(sp.display, sp.rel) for sp in extra] == [("../shared/.env", "shared/.env")]
    tree = render_tree(sp.rel for sp in [*found, *extra])
    assert tree == "├── shared/\n│   └── .env\n└── main.py"

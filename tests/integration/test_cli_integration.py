from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from chunk_dump import cli
from chunk_dump.config import SourcePath
from chunk_dump.settings import Settings


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.integration
def test_main_dumps_files_returned_by_the_walk(
    tmp_path: Path,
    mocker: MockerFixture,
) -> None:
    source = tmp_path / "site"
    app = _write(source / "app.php", "<?php echo 1;\n")
    lib = _write(source / "lib" / "util.php", "<?php echo 2;\n")

    walked = [
        SourcePath(path=lib, rel="lib/util.php", display=f"{source.as_posix()}/lib/util.php"),
        SourcePath(path=app, rel="app.php", display=f"{source.as_posix()}/app.php"),
    ]
    walk = mocker.patch.object(cli, "walk_files", return_value=walked)

    out_pattern = str(tmp_path / "dump" / "part_*.txt")
    exit_code = cli.main(["--path", str(source), "--type", "php", "--out", out_pattern])

    assert exit_code == 0
    walk.assert_called_once()
    text = (tmp_path / "dump" / "part_1.txt").read_text(encoding="utf-8")
    assert text.index("lib/util.php\" ---") < text.index("app.php\" ---")
    assert not (tmp_path / "dump" / "part_2.txt").exists()


@pytest.mark.integration
def test_run_writes_each_chunk_once_in_order(
    tmp_path: Path,
    mocker: MockerFixture,
    capsys: pytest.CaptureFixture[str],
) -> None:
    source = tmp_path / "site"
    for name in ["a.py", "b.py", "c.py"]:
        _write(source / name, f"print({name!r})\n")
    write_chunk = mocker.patch.object(cli, "write_chunk")

    settings = Settings(path=source, out=str(tmp_path / "out" / "ctx_*.txt"), type="py", limit=1)
    exit_code = cli.run(settings)

    assert exit_code == 0
    indices = [call.args[0].index for call in write_chunk.call_args_list]
    assert indices == [1, 2, 3]
    assert all(call.args[1:] == (settings.out, ".py") for call in write_chunk.call_args_list)
    out = capsys.readouterr().out
    assert "Found 3 files to process." in out
    assert "Processing complete. Parts created: 3" in out


@pytest.mark.integration
def test_run_skips_the_output_folder_inside_the_source(tmp_path: Path) -> None:
    source = tmp_path / "site"
    _write(source / "index.php", "<?php\n")
    _write(source / "dump" / "dump_7.txt", "stale\n")

    settings = Settings(path=source, out=str(source / "dump" / "dump_*.txt"))
    assert cli.run(settings) == 0

    produced = sorted(p.name for p in (source / "dump").iterdir())
    assert produced == ["dump_1.txt"]
    text = (source / "dump" / "dump_1.txt").read_text(encoding="utf-8")
    assert "dump_7.txt" not in text
    assert "index.php" in text

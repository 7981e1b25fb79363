#!filepath: tests/utils/test_filesystem.py
from amtest.utils.filesystem import FileSystem


def test_ensure_dir(tmp_path):
    new_dir = tmp_path / "new_folder"
    assert not new_dir.exists()

    FileSystem.ensure_dir(new_dir)
    assert new_dir.is_dir()


def test_safe_write_replaces_content(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("old: 1\nlonger: content\n")

    FileSystem.safe_write(path, "new: 2\n")

    assert path.read_text() == "new: 2\n"
    assert not (tmp_path / "config.yml.tmp").exists()


def test_remove_file_dir_and_missing(tmp_path):
    f = tmp_path / "a.txt"
    f.write_text("x")
    d = tmp_path / "d"
    (d / "sub").mkdir(parents=True)

    FileSystem.remove(f)
    FileSystem.remove(d)
    FileSystem.remove(tmp_path / "missing")
    FileSystem.remove(None)

    assert not f.exists()
    assert not d.exists()


def test_temp_artifacts():
    f = FileSystem.temp_file(prefix="amtest_", suffix=".yml")
    d = FileSystem.temp_dir(prefix="amtest_")
    try:
        assert f.is_file() and f.name.endswith(".yml")
        assert d.is_dir()
    finally:
        FileSystem.remove(f)
        FileSystem.remove(d)


def test_tail(tmp_path):
    log = tmp_path / "out.log"
    log.write_text("\n".join(str(i) for i in range(100)))

    assert FileSystem.tail(log, n=3) == "97\n98\n99"
    assert FileSystem.tail(tmp_path / "missing.log") == ""

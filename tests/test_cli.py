import json
import logging
from pathlib import Path

import pytest

from bookmarkplus.cli import main


@pytest.fixture
def run(tmp_path: Path, capsys):
    store = tmp_path / "store.sqlite"

    def _run(*args, store_path=None):
        capsys.readouterr()
        code = main(["--store", str(store_path or store), "--offline", "--no-color", *args])
        return code, capsys.readouterr().out

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield _run
    # main() reconfigures the root logger; put back what pytest installed.
    root.handlers[:] = handlers
    root.setLevel(level)


def test_add_then_ls_json(run):
    code, out = run("add", "https://example.com/", "--title", "Example", "--tag", "a", "--tag", "b")
    assert code == 0
    assert "Example" in out

    code, out = run("ls", "--json")
    assert code == 0
    rows = json.loads(out)
    assert [r["url"] for r in rows] == ["https://example.com/"]
    assert rows[0]["tags"] == ["a", "b"]
    assert rows[0]["favicon"].startswith("data:image/svg+xml,")


def test_duplicate_add_is_input_error(run):
    assert run("add", "https://example.com/")[0] == 0
    assert run("add", "https://example.com/")[0] == 2


def test_refused_operations_exit_1(run):
    assert run("rm", "bm_missing")[0] == 1
    assert run("rename-folder", "root", "Nope")[0] == 1
    assert run("rmdir", "root")[0] == 1


def test_folders_and_recursive_rmdir(run):
    code, out = run("mkdir", "Dev")
    assert code == 0
    dev_id = out.split()[0]
    code, out = run("mkdir", "Python", "--parent", dev_id)
    py_id = out.split()[0]
    assert run("add", "https://docs.python.org/", "--folder", py_id)[0] == 0

    code, out = run("tree", "--json")
    tree = json.loads(out)
    assert tree["childFolders"][0]["childFolders"][0]["bookmarks"][0]["url"] == "https://docs.python.org/"

    assert run("rmdir", dev_id, "-r")[0] == 0
    code, out = run("tree", "--json")
    tree = json.loads(out)
    assert tree["childFolders"] == []
    assert json.loads(run("ls", "--json", "--folder", py_id)[1]) == []


def test_export_import_roundtrip_between_stores(run, tmp_path: Path):
    run("add", "https://a.example/", "--title", "A", "--tag", "x")
    out_file = tmp_path / "export.json"
    assert run("export", "--out", str(out_file))[0] == 0
    doc = json.loads(out_file.read_text(encoding="utf-8"))
    assert doc["bookmarks"][0]["url"] == "https://a.example/"

    other = tmp_path / "other.sqlite"
    code, out = run("import", str(out_file), store_path=other)
    assert code == 0
    assert "Imported 1 bookmarks" in out
    rows = json.loads(run("ls", "--json", store_path=other)[1])
    assert rows[0]["title"] == "A"


def test_import_failures(run, tmp_path: Path):
    assert run("import", str(tmp_path / "missing.json"))[0] == 2

    newer = tmp_path / "newer.json"
    newer.write_text(json.dumps({"version": "9.0.0", "bookmarks": []}), encoding="utf-8")
    assert run("import", str(newer))[0] == 1
    assert run("import", str(newer), "--no-version-check")[0] == 0


def test_search_json_and_visit_without_browser(run):
    code, out = run("add", "https://docs.python.org/", "--title", "Python docs")
    bid = out.split()[0]

    rows = json.loads(run("search", "python", "--json")[1])
    assert rows[0]["matchType"] == "title"
    assert rows[0]["bookmark"]["id"] == bid

    assert run("visit", bid, "--no-open")[0] == 0
    rows = json.loads(run("ls", "--json")[1])
    assert rows[0]["visitCount"] == 1

from bookmarkplus.model import Bookmark, Folder, make_root_folder
from bookmarkplus.tree import (
    descendants_bottom_up,
    folder_hierarchy,
    folder_path,
    format_folder_path,
    orphaned_folders,
)


def _folders():
    root = make_root_folder()
    root.children = ["dev"]
    return [
        root,
        Folder(id="dev", name="Dev", parent_id="root", children=["py"]),
        Folder(id="py", name="Python", parent_id="dev", children=["async"]),
        Folder(id="async", name="Async", parent_id="py"),
    ]


def test_folder_path_and_format():
    folders = _folders()
    assert [f.id for f in folder_path(folders, "async")] == ["root", "dev", "py", "async"]
    assert format_folder_path(folders, "py") == "/ › Dev › Python"
    assert format_folder_path(folders, "missing") == ""


def test_folder_path_stops_at_missing_ancestor():
    folders = [f for f in _folders() if f.id != "dev"]
    assert [f.id for f in folder_path(folders, "async")] == ["py", "async"]
    assert [f.id for f in orphaned_folders(folders)] == ["py"]


def test_folder_path_survives_parent_cycle():
    folders = [
        make_root_folder(),
        Folder(id="a", name="A", parent_id="b"),
        Folder(id="b", name="B", parent_id="a"),
    ]
    assert [f.id for f in folder_path(folders, "a")] == ["b", "a"]


def test_folder_hierarchy_nests_folders_and_bookmarks():
    bookmarks = [
        Bookmark(id="b1", title="t1", url="https://1.example/", folder_id="py"),
        Bookmark(id="b2", title="t2", url="https://2.example/", folder_id="root"),
    ]
    tree = folder_hierarchy(_folders(), bookmarks)
    assert tree.folder.id == "root"
    assert [b.id for b in tree.bookmarks] == ["b2"]
    py = tree.child_folders[0].child_folders[0]
    assert py.folder.id == "py"
    assert [b.id for b in py.bookmarks] == ["b1"]
    assert py.child_folders[0].folder.id == "async"

    d = tree.to_dict()
    assert d["childFolders"][0]["name"] == "Dev"
    assert d["bookmarks"][0]["id"] == "b2"

    assert folder_hierarchy(_folders(), bookmarks, "nope") is None


def test_descendants_bottom_up_lists_deepest_first():
    folders = _folders() + [Folder(id="go", name="Go", parent_id="dev")]
    got = descendants_bottom_up(folders, "dev")
    assert set(got) == {"py", "async", "go"}
    assert got.index("async") < got.index("py")
    assert descendants_bottom_up(folders, "async") == []

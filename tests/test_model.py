from datetime import datetime, timedelta, timezone

import pytest

from bookmarkplus.model import (
    Bookmark,
    Folder,
    OpenGraph,
    item_from_dict,
    parse_iso,
    unique_tags,
    utc_now_iso,
)


def test_bookmark_from_dict_is_tolerant():
    b = Bookmark.from_dict(
        {
            "id": "b1",
            "url": "https://x/",
            "tags": [" a", None, "a", "", "b"],
            "visitCount": -4,
            "dateAdded": "2024-01-01T00:00:00.000Z",
            "openGraph": {"title": "T", "siteName": "Site", "description": ""},
        }
    )
    assert b.title == ""
    assert b.folder_id == "root"
    assert b.tags == ["a", "b"]
    assert b.visit_count == 0
    assert b.date_updated == "2024-01-01T00:00:00.000Z"
    assert b.open_graph == OpenGraph(title="T", site_name="Site")
    assert b.has_rich_preview is False

    assert Bookmark.from_dict({"id": "b2", "url": "https://y/", "tags": "oops"}).tags == []


def test_bookmark_wire_shape_is_camel_case():
    b = Bookmark(id="b1", title="T", url="https://x/", open_graph=OpenGraph(image="https://x/i.png", site_name="X"))
    d = b.to_dict()
    assert d["folderId"] == "root"
    assert d["visitCount"] == 0
    assert d["hasRichPreview"] is True
    assert d["openGraph"] == {"image": "https://x/i.png", "siteName": "X"}
    assert "openGraph" not in Bookmark(id="b2", title="T", url="https://y/").to_dict()


def test_item_from_dict_dispatches_on_type_or_kind():
    assert isinstance(item_from_dict({"type": "bookmark", "id": "b", "url": "https://x/"}), Bookmark)
    f = item_from_dict({"kind": "folder", "id": "root", "name": "/", "parentId": "elsewhere"})
    assert isinstance(f, Folder)
    assert f.parent_id is None
    with pytest.raises(ValueError):
        item_from_dict({"type": "separator"})


def test_unique_tags_keeps_first_occurrence():
    assert unique_tags([" b ", "a", "b", "", "  ", "A"]) == ["b", "a", "A"]
    assert unique_tags(None) == []


def test_timestamps():
    now = datetime(2024, 5, 1, 14, 30, 5, 123456, tzinfo=timezone(timedelta(hours=2)))
    assert utc_now_iso(now) == "2024-05-01T12:30:05.123Z"
    assert parse_iso("2024-05-01T12:30:05.123Z") == datetime(2024, 5, 1, 12, 30, 5, 123000, tzinfo=timezone.utc)
    assert parse_iso("2024-05-01T12:30:05").tzinfo == timezone.utc
    assert parse_iso("yesterday") is None
    assert parse_iso("") is None


def test_folder_without_parent_hangs_under_root():
    f = Folder.from_dict({"id": "f1", "name": "A"})
    assert f.parent_id == "root"
    assert Folder.from_dict({"id": "f2", "name": "B", "parentId": None}).parent_id == "root"
    assert Folder.from_dict({"id": "root", "name": "/"}).parent_id is None

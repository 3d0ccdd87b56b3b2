import json
from datetime import datetime, timezone

import pytest

from bookmarkplus.errors import ImportDataError, VersionMismatchError
from bookmarkplus.model import Bookmark, Folder, make_root_folder
from bookmarkplus.transfer import (
    build_export,
    check_version,
    dump_export,
    export_filename,
    load_import_document,
    parse_version,
)


def _doc(**overrides) -> str:
    data = {
        "bookmarks": [{"id": "b1", "title": "One", "url": "https://one.example/", "tags": ["x"]}],
        "folders": [{"id": "root", "name": "/", "parentId": None, "children": []}],
        "tags": ["x"],
        "version": "1.0.0",
    }
    data.update(overrides)
    return json.dumps(data)


def test_parse_version_is_lenient():
    assert parse_version("1.2.3") == (1, 2, 3)
    assert parse_version("2") == (2, 0, 0)
    assert parse_version("1.x.9") == (1, 0, 9)


def test_check_version_gates_on_major_only():
    check_version("1.9.9", "1.0.0")
    check_version("0.1.0", "1.0.0")
    with pytest.raises(VersionMismatchError) as ei:
        check_version("2.0.0", "1.0.0")
    assert "2.0.0" in str(ei.value)


def test_export_document_shape():
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    data = build_export(
        [Bookmark(id="b1", title="One", url="https://one.example/", date_added="2024-05-01T00:00:00.000Z")],
        [make_root_folder(), Folder(id="f1", name="Work")],
        ["x"],
        now=now,
    )
    doc = json.loads(dump_export(data))
    assert set(doc) == {"bookmarks", "folders", "tags", "exportDate", "version", "appVersion"}
    assert doc["exportDate"] == "2024-05-01T12:00:00.000Z"
    assert doc["bookmarks"][0]["folderId"] == "root"
    assert doc["bookmarks"][0]["type"] == "bookmark"
    assert doc["folders"][0]["parentId"] is None
    assert doc["folders"][1]["type"] == "folder"
    assert export_filename(now) == "bookmark+-export-2024-05-01.json"


def test_load_import_document_parses_entities():
    doc = load_import_document(_doc())
    assert doc.version == "1.0.0"
    assert doc.bookmarks[0].url == "https://one.example/"
    assert doc.bookmarks[0].tags == ["x"]
    assert doc.folders[0].is_root
    assert doc.raw_counts == {"bookmarks": 1, "folders": 1, "tags": 1}


def test_absent_collections_stay_none():
    doc = load_import_document(json.dumps({"tags": ["a"]}))
    assert doc.bookmarks is None
    assert doc.folders is None
    assert doc.version is None


def test_newer_major_version_rejected_unless_disabled():
    with pytest.raises(VersionMismatchError):
        load_import_document(_doc(version="2.0.0"))
    doc = load_import_document(_doc(version="2.0.0"), validate_version=False)
    assert doc.version == "2.0.0"


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[]",
        _doc(bookmarks={"b1": {}}),
        _doc(bookmarks=[{"id": "b1", "title": "One"}]),
        _doc(bookmarks=[{"id": "b1", "title": "", "url": "https://x/"}]),
        _doc(bookmarks=[{"id": "b1", "title": "One", "url": "https://x/", "tags": "x"}]),
        _doc(bookmarks=[{"id": "b1", "title": "A", "url": "https://x/"}, {"id": "b1", "title": "B", "url": "https://y/"}]),
        _doc(bookmarks=[{"id": "b1", "title": "A", "url": "https://x/"}, {"id": "b2", "title": "B", "url": "https://x/"}]),
        _doc(folders=[{"id": "f1"}]),
        _doc(folders=[{"id": "f1", "name": "A"}, {"id": "f1", "name": "B"}]),
        _doc(tags="x"),
        _doc(tags=[None, "ok"]),
        _doc(folders=[{"id": "f1", "name": "A", "children": 5}]),
        _doc(bookmarks=[{"id": "b1", "title": "One", "url": "https://x/", "openGraph": "preview"}]),
    ],
)
def test_malformed_documents_are_rejected(text):
    with pytest.raises(ImportDataError):
        load_import_document(text)

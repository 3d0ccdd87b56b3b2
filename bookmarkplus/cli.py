from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from . import __version__
from .config import Settings, load_settings
from .errors import BookmarkPlusError
from .log import LogConfig, get_logger, setup_logging
from .manager import BookmarkManager
from .model import ROOT_FOLDER_ID, FolderTree, ImportOptions
from .storage import SqliteStore
from .tabs import BrowserTabs
from .tree import descendants_bottom_up

log = get_logger(__name__)


def main(argv: List[str] | None = None) -> int:
    p = _build_parser()
    args = p.parse_args(argv)
    cfg = load_settings(args.config)
    if args.store:
        cfg.store_path = args.store
    if args.log_level:
        cfg.log_level = args.log_level
    if args.no_color:
        cfg.no_color = True
    setup_logging(LogConfig(level=cfg.log_level, no_color=cfg.no_color))
    return asyncio.run(_run(args, cfg))


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="bookmarkplus", description="Personal bookmark organizer.")
    p.add_argument("-V", "--version", action="version", version=f"bookmarkplus {__version__}")
    p.add_argument("--config", default=None, help="YAML config file (optional). Env vars override defaults.")
    p.add_argument("--store", default=None, help="SQLite store path (overrides BMP_STORE_PATH/config).")
    p.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR (overrides env/config).")
    p.add_argument("--no-color", action="store_true", help="Disable colored output.")
    p.add_argument("--offline", action="store_true", help="Skip favicon/OpenGraph network lookups.")
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("add", help="Add a bookmark.")
    s.add_argument("url")
    s.add_argument("--title", default="")
    s.add_argument("--folder", default=ROOT_FOLDER_ID)
    s.add_argument("--tag", action="append", default=[], help="Repeat for several tags.")

    s = sub.add_parser("rm", help="Delete a bookmark.")
    s.add_argument("id")

    s = sub.add_parser("edit", help="Edit title, tags or folder of a bookmark.")
    s.add_argument("id")
    s.add_argument("--title", default=None)
    s.add_argument("--tags", default=None, help="Comma separated; replaces all tags.")
    s.add_argument("--folder", default=None)

    s = sub.add_parser("mv", help="Move a bookmark to another folder.")
    s.add_argument("id")
    s.add_argument("folder")

    s = sub.add_parser("ls", help="List bookmarks in a folder.")
    s.add_argument("--folder", default=ROOT_FOLDER_ID)
    s.add_argument("--json", action="store_true")

    s = sub.add_parser("tree", help="Show the folder tree.")
    s.add_argument("--folder", default=ROOT_FOLDER_ID)
    s.add_argument("--json", action="store_true")

    s = sub.add_parser("mkdir", help="Create a folder.")
    s.add_argument("name")
    s.add_argument("--parent", default=ROOT_FOLDER_ID)

    s = sub.add_parser("rename-folder", help="Rename a folder.")
    s.add_argument("id")
    s.add_argument("name")

    s = sub.add_parser("rmdir", help="Delete a folder AND every bookmark in it.")
    s.add_argument("id")
    s.add_argument("-r", "--recursive", action="store_true", help="Delete subfolders (deepest first) too.")

    s = sub.add_parser("tag", help="Add a tag to a bookmark.")
    s.add_argument("id")
    s.add_argument("tag")

    s = sub.add_parser("untag", help="Remove a tag from a bookmark.")
    s.add_argument("id")
    s.add_argument("tag")

    s = sub.add_parser("tags", help="List known tags.")
    s.add_argument("--cleanup", action="store_true", help="Drop tags no bookmark uses.")

    s = sub.add_parser("search", help="Search titles, tags, descriptions and URLs.")
    s.add_argument("query")
    s.add_argument("--json", action="store_true")

    s = sub.add_parser("reorder", help="Move a bookmark within its folder.")
    s.add_argument("folder")
    s.add_argument("from_index", type=int)
    s.add_argument("to_index", type=int)

    s = sub.add_parser("visit", help="Open a bookmark in the browser and record the visit.")
    s.add_argument("id")
    s.add_argument("--no-open", action="store_true", help="Only record the visit.")

    s = sub.add_parser("refresh-favicon", help="Resolve the favicon again.")
    s.add_argument("id")

    s = sub.add_parser("refresh-og", help="Fetch the OpenGraph preview again.")
    s.add_argument("id")

    s = sub.add_parser("export", help="Export everything to a JSON document.")
    s.add_argument("--out", default=None, help="Output path ('-' for stdout). Default: dated file in cwd.")

    s = sub.add_parser("import", help="Import a JSON export document.")
    s.add_argument("path")
    s.add_argument("--merge", action="store_true", help="Keep existing data and add new ids only.")
    s.add_argument("--no-version-check", action="store_true")
    return p


async def _run(args, cfg: Settings) -> int:
    console = Console(no_color=cfg.no_color, highlight=False)
    store = SqliteStore(cfg.store_path)
    if args.offline:
        mgr = BookmarkManager(store, tabs=BrowserTabs(), settings=cfg)
    else:
        mgr = BookmarkManager.from_settings(cfg, store, tabs=BrowserTabs())
    try:
        await mgr.init()
        return await _dispatch(args, mgr, console)
    except BookmarkPlusError as e:
        log.error("%s", e)
        return 2
    finally:
        await mgr.aclose()


async def _dispatch(args, mgr: BookmarkManager, console: Console) -> int:
    cmd = args.cmd
    if cmd == "add":
        b = await mgr.create_bookmark(args.title, args.url, args.folder, args.tag)
        console.print(f"{b.id}\t{escape(b.title)}")
        return 0

    if cmd == "rm":
        return _report(await mgr.delete_bookmark(args.id), f"No bookmark {args.id}")

    if cmd == "edit":
        tags = args.tags.split(",") if args.tags is not None else None
        b = await mgr.update_bookmark(args.id, title=args.title, tags=tags, folder_id=args.folder)
        if b is None:
            log.error("No bookmark %s", args.id)
            return 1
        console.print(f"{b.id}\t{escape(b.title)}\t{escape(', '.join(b.tags))}")
        return 0

    if cmd == "mv":
        return _report(await mgr.move_bookmark(args.id, args.folder), f"Cannot move {args.id} to {args.folder}")

    if cmd == "ls":
        bookmarks = mgr.get_bookmarks_by_folder(args.folder)
        if args.json:
            print(json.dumps([b.to_dict() for b in bookmarks], ensure_ascii=False, indent=2))
            return 0
        table = Table(title=escape(mgr.format_folder_path(args.folder) or args.folder))
        table.add_column("#", justify="right")
        table.add_column("id")
        table.add_column("title")
        table.add_column("url")
        table.add_column("tags")
        table.add_column("visits", justify="right")
        for i, b in enumerate(bookmarks):
            table.add_row(str(i), b.id, escape(b.title), escape(b.url), escape(", ".join(b.tags)), str(b.visit_count))
        console.print(table)
        return 0

    if cmd == "tree":
        tree = mgr.get_folder_hierarchy(args.folder)
        if tree is None:
            log.error("No folder %s", args.folder)
            return 1
        if args.json:
            print(json.dumps(tree.to_dict(), ensure_ascii=False, indent=2))
            return 0
        console.print(_render_tree(tree))
        orphans = mgr.get_orphaned_folders()
        if orphans:
            console.print(f"{len(orphans)} orphaned folder(s): " + ", ".join(f"{f.name} ({f.id})" for f in orphans))
        return 0

    if cmd == "mkdir":
        f = await mgr.create_folder(args.name, args.parent)
        console.print(f"{f.id}\t{escape(mgr.format_folder_path(f.id))}")
        return 0

    if cmd == "rename-folder":
        return _report(await mgr.update_folder(args.id, args.name), f"Cannot rename folder {args.id}")

    if cmd == "rmdir":
        if args.recursive and args.id != ROOT_FOLDER_ID:
            for child_id in descendants_bottom_up(mgr.get_folders(), args.id):
                await mgr.delete_folder(child_id)
        return _report(await mgr.delete_folder(args.id), f"Cannot delete folder {args.id}")

    if cmd == "tag":
        return _report(await mgr.add_tag_to_bookmark(args.id, args.tag), f"No bookmark {args.id}")

    if cmd == "untag":
        return _report(await mgr.remove_tag_from_bookmark(args.id, args.tag), f"No bookmark {args.id}")

    if cmd == "tags":
        if args.cleanup:
            removed = await mgr.cleanup_orphan_tags()
            if removed:
                log.info("Removed %d orphaned tag(s): %s", len(removed), ", ".join(removed))
        for tag in mgr.get_all_tags():
            console.print(tag)
        return 0

    if cmd == "search":
        results = mgr.global_search(args.query)
        if args.json:
            rows = [{"matchType": r.match_type.value, "bookmark": r.bookmark.to_dict()} for r in results]
            print(json.dumps(rows, ensure_ascii=False, indent=2))
            return 0
        table = Table()
        table.add_column("match")
        table.add_column("id")
        table.add_column("title")
        table.add_column("url")
        for r in results:
            table.add_row(r.match_type.value, r.bookmark.id, escape(r.bookmark.title), escape(r.bookmark.url))
        console.print(table)
        return 0

    if cmd == "reorder":
        ok = await mgr.reorder_bookmarks(args.folder, args.from_index, args.to_index)
        return _report(ok, "Invalid reorder indices")

    if cmd == "visit":
        if args.no_open:
            b = await mgr.update_bookmark_on_visit(args.id)
            return _report(b is not None, f"No bookmark {args.id}")
        return _report(await mgr.open_bookmark(args.id), f"Could not open bookmark {args.id}")

    if cmd == "refresh-favicon":
        return _report(await mgr.refresh_favicon(args.id), f"No bookmark {args.id}")

    if cmd == "refresh-og":
        return _report(await mgr.refresh_open_graph(args.id), f"No OpenGraph data for {args.id}")

    if cmd == "export":
        text = mgr.export_json()
        if args.out == "-":
            print(text)
            return 0
        out = Path(args.out) if args.out else Path(mgr.export_filename())
        out.write_text(text + "\n", encoding="utf-8")
        log.info("Exported %d bookmarks to %s", len(mgr.get_bookmarks()), out)
        return 0

    if cmd == "import":
        if args.path == "-":
            text = sys.stdin.read()
        else:
            path = Path(args.path)
            if not path.exists():
                log.error("Input file not found: %s", path)
                return 2
            text = path.read_text(encoding="utf-8")
        res = await mgr.import_json(text, ImportOptions(merge=args.merge, validate_version=not args.no_version_check))
        if not res.success:
            log.error("Import failed: %s", res.error)
            return 1
        c = res.imported
        console.print(f"Imported {c.bookmarks} bookmarks, {c.folders} folders, {c.tags} tags (version {res.version}).")
        return 0

    return 2


def _report(ok: bool, failure: str) -> int:
    if ok:
        return 0
    log.error("%s", failure)
    return 1


def _render_tree(node: FolderTree, parent: Tree | None = None) -> Tree:
    label = f"[bold]{escape(node.folder.name)}[/bold] ({node.folder.id})"
    branch = Tree(label) if parent is None else parent.add(label)
    for child in node.child_folders:
        _render_tree(child, branch)
    for b in node.bookmarks:
        branch.add(f"{escape(b.title)} [dim]{escape(b.url)}[/dim]")
    return branch

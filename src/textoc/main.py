#!/usr/bin/env python
"""Command line entry point for textoc."""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from textoc import __version__
from textoc.config import config
from textoc.exceptions import TextocError
from textoc.observability import configure_logging
from textoc.services.file_sync_service import FileSyncService
from textoc.services.git_sync_service import GitSyncService
from textoc.services.workspace import Workspace
from textoc.storage import Store, StoreConnection
from textoc.storage.markdown_mirror import NoteFileMirror

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(prog="textoc", description="textoc note workspace")
    parser.add_argument("--version", action="version", version=f"textoc {__version__}")
    parser.add_argument(
        "--notes-dir",
        help="Directory for the markdown mirror (git repository root)",
        type=str,
        default=os.environ.get("TEXTOC_NOTES_DIR"),
    )
    parser.add_argument(
        "--database-path",
        help="SQLite database file path",
        type=str,
        default=os.environ.get("TEXTOC_DATABASE_PATH"),
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("TEXTOC_LOG_LEVEL", config.log_level).upper(),
    )
    sub = parser.add_subparsers(dest="command", required=True)

    notes = sub.add_parser("notes", help="List notes")
    notes.add_argument("--notebook", help="Only notes in this notebook (id)")
    notes.add_argument("--tag", help="Only notes carrying this tag (name)")
    notes.add_argument("--search", default="", help="Case-insensitive text filter")
    notes.add_argument("--unfiled", action="store_true", help="Only notes without a notebook")

    sub.add_parser("notebooks", help="Show the notebook tree")
    sub.add_parser("tags", help="List tags with note counts")

    new_note = sub.add_parser("new-note", help="Create a note")
    new_note.add_argument("title")
    new_note.add_argument("--content", default="", help="Body text")
    new_note.add_argument("--content-file", type=Path, help="Read the body from a file")
    new_note.add_argument("--notebook", help="Notebook id")

    new_notebook = sub.add_parser("new-notebook", help="Create a notebook")
    new_notebook.add_argument("name")
    new_notebook.add_argument("--parent", help="Parent notebook id")

    tag = sub.add_parser("tag", help="Attach a tag to a note")
    tag.add_argument("note_id")
    tag.add_argument("name")

    sub.add_parser("export", help="Rewrite the markdown mirror from the store")
    sub.add_parser("drift", help="List notes whose mirror file is stale")
    sub.add_parser("sync", help="Mirror notes and commit/push them with git")
    return parser


def update_config(args) -> None:
    """Update the global config with command line arguments."""
    if args.notes_dir:
        config.notes_dir = Path(args.notes_dir)
    if args.database_path:
        config.database_path = Path(args.database_path)
    config.log_level = args.log_level


def build_file_sync(store: Store) -> FileSyncService:
    notes_dir = config.get_notes_dir()
    git_sync = None
    if config.git_enabled:
        git_sync = GitSyncService(
            notes_dir,
            remote=config.git_remote,
            branch=config.git_branch,
            timeout=config.git_timeout,
        )
    return FileSyncService(store, NoteFileMirror(notes_dir), git_sync)


def _cmd_notes(workspace: Workspace, args) -> int:
    if args.unfiled:
        notes = workspace.unfiled_notes()
    else:
        if args.notebook:
            workspace.select_notebook(args.notebook)
        elif args.tag:
            tag = workspace.store.tags.get_tag_by_name(args.tag)
            if tag is None:
                print(f"No tag named '{args.tag}'", file=sys.stderr)
                return 1
            workspace.select_tag(tag.id)
        workspace.set_search_query(args.search)
        notes = workspace.filtered_notes()
    for note in notes:
        location = " / ".join(workspace.forest.path_names(note.notebook_id)) or "(unfiled)"
        print(f"{note.id}  {note.title}  [{location}]")
    return 0


def _cmd_notebooks(workspace: Workspace, args) -> int:
    for notebook, depth in workspace.forest.flatten():
        print(f"{'  ' * depth}{notebook.name}  ({notebook.id})")
    return 0


def _cmd_tags(workspace: Workspace, args) -> int:
    counts = {}
    for assoc in workspace.note_tags:
        counts[assoc.tag_id] = counts.get(assoc.tag_id, 0) + 1
    for tag in workspace.tags:
        print(f"{tag.name}  {counts.get(tag.id, 0)}")
    return 0


def _cmd_new_note(workspace: Workspace, args) -> int:
    content = args.content
    if args.content_file:
        content = args.content_file.read_text(encoding="utf-8")
    note = workspace.create_note(args.title, content, notebook_id=args.notebook)
    print(note.id)
    return 0


def _cmd_new_notebook(workspace: Workspace, args) -> int:
    notebook = workspace.create_notebook(args.name, parent_id=args.parent)
    print(notebook.id)
    return 0


def _cmd_tag(workspace: Workspace, args) -> int:
    tag = workspace.tag_note(args.note_id, args.name)
    print(tag.id)
    return 0


def _cmd_export(workspace: Workspace, args) -> int:
    count = build_file_sync(workspace.store).mirror_all()
    print(f"Mirrored {count} note(s) to {config.get_notes_dir()}")
    return 0


def _cmd_drift(workspace: Workspace, args) -> int:
    drifted = build_file_sync(workspace.store).detect_drift()
    for note_id in drifted:
        print(note_id)
    return 1 if drifted else 0


def _cmd_sync(workspace: Workspace, args) -> int:
    result = build_file_sync(workspace.store).sync()
    if not result.success:
        print(f"Sync failed: {result.error}", file=sys.stderr)
        return 1
    print(
        f"Mirrored {result.mirrored} note(s); committed={result.committed} "
        f"pushed={result.pushed}"
    )
    return 0


_COMMANDS = {
    "notes": _cmd_notes,
    "notebooks": _cmd_notebooks,
    "tags": _cmd_tags,
    "new-note": _cmd_new_note,
    "new-notebook": _cmd_new_notebook,
    "tag": _cmd_tag,
    "export": _cmd_export,
    "drift": _cmd_drift,
    "sync": _cmd_sync,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Run one textoc command and return its exit status."""
    args = build_parser().parse_args(argv)
    update_config(args)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        configure_logging(
            log_dir=config.get_absolute_path(Path("logs")), level=log_level, console=False
        )
    except Exception as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logger.warning(f"Failed to configure file logging: {e}")

    connection = StoreConnection()
    workspace = Workspace(Store.from_connection(connection))
    try:
        workspace.refresh()
        return _COMMANDS[args.command](workspace, args)
    except TextocError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        workspace.close()
        connection.dispose()


if __name__ == "__main__":
    sys.exit(main())

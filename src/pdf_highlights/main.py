#!/usr/bin/env python3
"""
PDF Highlights - Command Line Interface
Export, import and inspect stored highlights and drain the sync queue
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .config import HighlightConfig
from .errors import HighlightError
from .pdf_processor.annotation_importer import import_into_repository
from .pdf_processor.pdf_annotator import export_owner_highlights
from .storage import BookmarkRepository, HighlightRepository, LocalStore, SyncQueue
from .sync import RemoteAnnotationClient, SyncProcessor
from .utils.file_utils import (
    create_backup,
    owner_key_for,
    read_highlights_json,
    write_highlights_json,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pdf-highlights", description="PDF Highlights CLI")
    parser.add_argument("--db", help="Path to the local highlight database")
    parser.add_argument("--api-url", help="Base URL of the remote annotation service")
    parser.add_argument("--token", help="Bearer token for the remote annotation service")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("export", help="Bake stored highlights into a copy of a PDF")
    p.add_argument("pdf_file", help="Path to the source PDF")
    p.add_argument("--owner", help="Owner key (defaults to the PDF file name)")
    p.add_argument("--output", help="Output PDF path (defaults to <name>_highlighted.pdf)")

    p = sub.add_parser("import", help="Read highlights and bookmarks out of an annotated PDF")
    p.add_argument("pdf_file", help="Path to the annotated PDF")
    p.add_argument("--owner", help="Owner key (defaults to the PDF file name)")

    p = sub.add_parser("list", help="List stored highlights")
    p.add_argument("--owner", required=True, help="Owner key")
    p.add_argument("--page", type=int, help="Only this page (1-based)")

    p = sub.add_parser("dump", help="Write stored highlights to a JSON file")
    p.add_argument("--owner", required=True, help="Owner key")
    p.add_argument("--output", required=True, help="JSON output path")

    p = sub.add_parser("load", help="Add highlights from a JSON dump")
    p.add_argument("json_file", help="JSON dump written by 'dump'")
    p.add_argument("--owner", help="Store under this owner instead of the dumped one")

    p = sub.add_parser("cleanup", help="Remove stored duplicates, keeping the most recent")
    p.add_argument("--owner", required=True, help="Owner key")

    p = sub.add_parser("sync", help="Retry queued remote operations")
    p.add_argument("--watch", action="store_true", help="Keep draining every poll interval")

    sub.add_parser("pending", help="Show the number of queued remote operations")

    p = sub.add_parser("clear-queue", help="Drop queued remote operations without sending them")
    p.add_argument("--item", type=int, help="Only this queue item")

    return parser


def _owner(args) -> str:
    return args.owner or owner_key_for(args.pdf_file)


def cmd_export(args, store: LocalStore, config: HighlightConfig) -> int:
    if not Path(args.pdf_file).exists():
        print(f"Error: PDF file does not exist: {args.pdf_file}")
        return 1
    owner = _owner(args)
    source = Path(args.pdf_file)
    output = args.output or str(source.with_name(f"{source.stem}_highlighted.pdf"))

    data = export_owner_highlights(HighlightRepository(store), owner, str(source),
                                   BookmarkRepository(store), title=config.annotation_title)
    if Path(output).exists():
        create_backup(output)
    Path(output).write_bytes(data)
    print(f"Exported highlights for '{owner}' to {output}")
    return 0


def cmd_import(args, store: LocalStore, config: HighlightConfig) -> int:
    if not Path(args.pdf_file).exists():
        print(f"Error: PDF file does not exist: {args.pdf_file}")
        return 1
    owner = _owner(args)
    result = import_into_repository(HighlightRepository(store), owner, args.pdf_file,
                                    BookmarkRepository(store))
    print(f"Imported {len(result.highlights)} highlights and {len(result.bookmarks)} bookmarks "
          f"into '{owner}'")
    if result.skipped:
        print(f"  Skipped {result.skipped} unreadable annotations")
    return 0


def cmd_list(args, store: LocalStore, config: HighlightConfig) -> int:
    repository = HighlightRepository(store)
    if args.page:
        highlights = repository.list_by_page(args.owner, args.page)
    else:
        highlights = repository.list_deduplicated(args.owner)

    print(f"{len(highlights)} highlights for '{args.owner}'")
    for h in highlights:
        state = "synced" if h.synced else "local"
        text = f" {h.text[:50]!r}" if h.text else ""
        print(f"  p{h.page} {h.kind.value:<4} {h.color} [{state}] {h.id}{text}")
    return 0


def cmd_dump(args, store: LocalStore, config: HighlightConfig) -> int:
    highlights = HighlightRepository(store).list_by_owner(args.owner)
    count = write_highlights_json(highlights, args.output)
    print(f"Wrote {count} highlights to {args.output}")
    return 0


def cmd_load(args, store: LocalStore, config: HighlightConfig) -> int:
    if not Path(args.json_file).exists():
        print(f"Error: JSON file does not exist: {args.json_file}")
        return 1
    repository = HighlightRepository(store)
    added = 0
    for highlight in read_highlights_json(args.json_file, args.owner):
        if repository.get(highlight.id) is None and repository.add(highlight) is not None:
            added += 1
    print(f"Loaded {added} highlights from {args.json_file}")
    return 0


def cmd_cleanup(args, store: LocalStore, config: HighlightConfig) -> int:
    removed = HighlightRepository(store).cleanup_duplicates(args.owner)
    print(f"Removed {len(removed)} duplicate highlights for '{args.owner}'")
    return 0


def cmd_sync(args, store: LocalStore, config: HighlightConfig) -> int:
    if not config.api_base_url:
        print("Error: no remote annotation service configured (--api-url or PDF_HIGHLIGHTS_API_BASE_URL)")
        return 1
    client = RemoteAnnotationClient(config.api_base_url, config.auth_token, config.request_timeout)
    processor = SyncProcessor(SyncQueue(store), HighlightRepository(store), client,
                              poll_interval=config.poll_interval)

    if args.watch:
        print(f"Draining the sync queue every {config.poll_interval:g}s (Ctrl+C to stop)")
        try:
            asyncio.run(processor.run_forever(asyncio.Event()))
        except KeyboardInterrupt:
            print("Stopped")
        return 0

    report = asyncio.run(processor.drain())
    print(f"Sync: {report.succeeded} succeeded, {report.failed} failed, "
          f"{processor.pending_count()} pending")
    for error in report.errors:
        print(f"  - {error}")
    return 0 if report.failed == 0 else 2


def cmd_pending(args, store: LocalStore, config: HighlightConfig) -> int:
    queue = SyncQueue(store)
    items = queue.pending()
    print(f"{len(items)} pending")
    for item in items:
        target = item.local_id if item.action.value == "save" else item.target_id
        error = f" last error: {item.last_error}" if item.last_error else ""
        print(f"  #{item.id} {item.action.value} {target} retries={item.retry_count}{error}")
    return 0


def cmd_clear_queue(args, store: LocalStore, config: HighlightConfig) -> int:
    removed = SyncQueue(store).clear(args.item)
    print(f"Removed {removed} queue items")
    return 0


COMMANDS = {
    "export": cmd_export,
    "import": cmd_import,
    "list": cmd_list,
    "dump": cmd_dump,
    "load": cmd_load,
    "cleanup": cmd_cleanup,
    "sync": cmd_sync,
    "pending": cmd_pending,
    "clear-queue": cmd_clear_queue,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Command line interface main function"""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = HighlightConfig.from_env(db_path=args.db, api_base_url=args.api_url,
                                          auth_token=args.token)
    except ValidationError as e:
        print(f"Error: invalid configuration: {e}")
        return 1
    store = LocalStore(config.db_path)
    try:
        return COMMANDS[args.command](args, store, config)
    except HighlightError as e:
        print(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""CLI interface for capturing and transferring conversations."""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

from .config import get_config
from .constants import (
    CLI_TABLE_DATE_WIDTH,
    CLI_TABLE_ID_WIDTH,
    CLI_TABLE_SOURCE_WIDTH,
    CLI_TABLE_TITLE_WIDTH,
    DATETIME_FORMAT,
)
from .document import HtmlDocument
from .exceptions import ConfigError, ExtractorError
from .extractor import ConversationExtractor
from .extractors.platforms import PROFILES, get_profile
from .logging_config import get_logger, setup_logging
from .paste import PasteWatcher, is_conversational
from .records import ConversationRecord
from .scheduler import AsyncioScheduler, VirtualScheduler
from .storage import JsonFileStore
from .store import ConversationStore
from .transfer import Injector, InjectionTarget, TransferFormatter

logger = get_logger("cli")


class StreamTarget(InjectionTarget):
    """Injection target that writes the final text to a stream."""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.value = ""

    def get_text(self) -> str:
        return self.value

    def set_text(self, text: str) -> None:
        self.value = text

    def focus(self) -> None:
        pass

    def move_caret_to_end(self) -> None:
        pass

    def dispatch(self, event: str) -> None:
        if event == "change":
            print(self.value, file=self.stream)


def _notify(message: str) -> None:
    print(message, file=sys.stderr)


def _read_input(path: Path) -> str:
    if str(path) == "-":
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


def _resolve_record(store: ConversationStore, record_id: Optional[str]) -> Optional[ConversationRecord]:
    if record_id:
        return store.get(record_id)
    return store.get_selected()


def _format_date(created_at: int) -> str:
    return datetime.fromtimestamp(created_at / 1000).strftime(DATETIME_FORMAT)


def cmd_extract(args, store: ConversationStore):
    """Extract a conversation from a saved HTML page."""
    document = HtmlDocument(_read_input(args.file), url=args.url or "")
    profile = get_profile(args.platform) if args.platform else None
    extractor = ConversationExtractor(document, store, VirtualScheduler(), profile=profile)

    try:
        turns = extractor.scan()
    except ExtractorError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    if not turns:
        print(f"No messages found for {extractor.profile.display_name}.", file=sys.stderr)
        sys.exit(1)

    record = extractor.save(turns)
    if record is None or extractor.last_record is None:
        print("Failed to store conversation.", file=sys.stderr)
        sys.exit(1)
    print(f"Stored {record.turn_count} turns from {record.source}")
    print(f"ID: {record.id}")


async def _watch(args, store: ConversationStore) -> ConversationExtractor:
    path: Path = args.file
    document = HtmlDocument(path.read_text(encoding="utf-8"), url=args.url or "")
    profile = get_profile(args.platform) if args.platform else None
    extractor = ConversationExtractor(document, store, AsyncioScheduler(), profile=profile)
    extractor.start(delay=0)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.duration if args.duration else None
    mtime = path.stat().st_mtime
    try:
        while deadline is None or loop.time() < deadline:
            await asyncio.sleep(args.interval)
            current = path.stat().st_mtime
            if current != mtime:
                mtime = current
                logger.debug("%s changed, reloading", path)
                document.update(path.read_text(encoding="utf-8"))
    finally:
        extractor.cancel()
    return extractor


def cmd_watch(args, store: ConversationStore):
    """Extract from an HTML file and re-extract whenever it changes."""
    print(f"Watching {args.file} (Ctrl+C to stop)")
    try:
        extractor = asyncio.run(_watch(args, store))
    except KeyboardInterrupt:
        print("Stopped.")
        return
    if extractor.last_record is not None:
        print(f"Last stored: {extractor.last_record.id} ({extractor.last_record.turn_count} turns)")
    else:
        print(f"No conversation stored ({extractor.state}).")


def cmd_list(args, store: ConversationStore):
    """List stored conversations."""
    records = store.list_records()

    if not records:
        print("No conversations stored.")
        return

    selected = store.get_selected_id()
    print(
        f"  {'ID':<{CLI_TABLE_ID_WIDTH}} {'Source':<{CLI_TABLE_SOURCE_WIDTH}} "
        f"{'Title':<{CLI_TABLE_TITLE_WIDTH}} {'Created':<{CLI_TABLE_DATE_WIDTH}}"
    )
    print("-" * (CLI_TABLE_ID_WIDTH + CLI_TABLE_SOURCE_WIDTH + CLI_TABLE_TITLE_WIDTH
                 + CLI_TABLE_DATE_WIDTH + 5))

    for r in records:
        marker = "*" if r.id == selected else " "
        title = r.title[:CLI_TABLE_TITLE_WIDTH]
        print(
            f"{marker} {r.id:<{CLI_TABLE_ID_WIDTH}} {r.source[:CLI_TABLE_SOURCE_WIDTH]:<{CLI_TABLE_SOURCE_WIDTH}} "
            f"{title:<{CLI_TABLE_TITLE_WIDTH}} {_format_date(r.created_at):<{CLI_TABLE_DATE_WIDTH}}"
        )


def cmd_show(args, store: ConversationStore):
    """Show a stored conversation."""
    record = store.get(args.id)
    if record is None:
        print(f"Conversation not found: {args.id}", file=sys.stderr)
        sys.exit(1)

    print(f"# {record.title}")
    print(f"Source: {record.source}")
    if record.url:
        print(f"URL: {record.url}")
    print(f"Created: {_format_date(record.created_at)}")
    print()
    for turn in record.turns:
        print(turn.render())
        print()


def cmd_select(args, store: ConversationStore):
    """Select the conversation used for transfer."""
    if not store.select(args.id):
        print(f"Conversation not found: {args.id}", file=sys.stderr)
        sys.exit(1)
    print(f"Selected {args.id}")


def cmd_format(args, store: ConversationStore):
    """Print a conversation in transfer format."""
    record = _resolve_record(store, args.id)
    if record is None:
        print("No conversation available.", file=sys.stderr)
        sys.exit(1)
    print(args.formatter.format(record))


def cmd_paste(args, store: ConversationStore):
    """Store conversation-shaped text from a file or stdin."""
    text = _read_input(args.file)
    if not is_conversational(text):
        print("Text does not look like a conversation.", file=sys.stderr)
        sys.exit(1)

    def confirm(_text: str, turns: list) -> bool:
        if args.yes:
            return True
        answer = input(f"Found {len(turns)} messages. Save this conversation? [y/N] ")
        return answer.strip().lower() in ("y", "yes")

    watcher = PasteWatcher(store, confirm, notifier=_notify)
    record = watcher.on_paste(text)
    if record is None:
        print("Conversation not saved.")
        return
    print(f"Stored {record.turn_count} turns")
    print(f"ID: {record.id}")


def cmd_transfer(args, store: ConversationStore):
    """Stage a conversation for pickup on another platform."""
    record = _resolve_record(store, args.id)
    if record is None:
        print("No conversation available.", file=sys.stderr)
        sys.exit(1)

    slot = store.put_transfer(args.formatter.format(record), args.platform, record.source)
    if slot is None:
        sys.exit(1)
    print(f"Staged {record.title!r} for {get_profile(args.platform).display_name}")


def cmd_receive(args, store: ConversationStore):
    """Print the pending transfer (or the selected conversation) for a platform."""
    scheduler = VirtualScheduler()
    target = StreamTarget(sys.stdout)
    injector = Injector(
        args.platform,
        store,
        find_target=lambda: target,
        scheduler=scheduler,
        formatter=args.formatter,
        notifier=lambda message: logger.info(message),
    )
    if not injector.start():
        print("No conversation available.", file=sys.stderr)
        sys.exit(1)
    scheduler.run_until_idle()


def cmd_clear(args, store: ConversationStore):
    """Remove all stored conversations."""
    if not args.yes:
        answer = input("Delete all stored conversations? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return
    if not store.clear_all():
        sys.exit(1)
    print("Cleared all conversations.")


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(
        prog="twirl",
        description="Capture AI chat conversations and carry them between front ends"
    )
    parser.add_argument(
        "--dir", "-d",
        type=Path,
        help="Data directory (default: ~/.local/share/twirl or $TWIRL_DATA_DIR)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)
    platforms = sorted(PROFILES)

    # extract
    p_extract = subparsers.add_parser("extract", help="Extract a conversation from an HTML file")
    p_extract.add_argument("file", type=Path, help="HTML file ('-' for stdin)")
    p_extract.add_argument("--url", "-u", help="Page URL, used for platform detection")
    p_extract.add_argument("--platform", "-p", choices=platforms, help="Override detection")

    # watch
    p_watch = subparsers.add_parser("watch", help="Re-extract whenever an HTML file changes")
    p_watch.add_argument("file", type=Path, help="HTML file")
    p_watch.add_argument("--url", "-u", help="Page URL, used for platform detection")
    p_watch.add_argument("--platform", "-p", choices=platforms, help="Override detection")
    p_watch.add_argument("--interval", type=float, default=1.0, help="Poll interval in seconds")
    p_watch.add_argument("--duration", type=float, default=0.0,
                         help="Stop after this many seconds (default: run until interrupted)")

    # list
    subparsers.add_parser("list", help="List stored conversations")

    # show
    p_show = subparsers.add_parser("show", help="Show a stored conversation")
    p_show.add_argument("id", help="Conversation ID")

    # select
    p_select = subparsers.add_parser("select", help="Select the conversation to transfer")
    p_select.add_argument("id", help="Conversation ID")

    # format
    p_format = subparsers.add_parser("format", help="Print a conversation in transfer format")
    p_format.add_argument("id", nargs="?", help="Conversation ID (default: selected)")

    # paste
    p_paste = subparsers.add_parser("paste", help="Store pasted conversation text")
    p_paste.add_argument("file", type=Path, help="Text file ('-' for stdin)")
    p_paste.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    # transfer
    p_transfer = subparsers.add_parser("transfer", help="Stage a conversation for another platform")
    p_transfer.add_argument("platform", choices=platforms, help="Target platform")
    p_transfer.add_argument("id", nargs="?", help="Conversation ID (default: selected)")

    # receive
    p_receive = subparsers.add_parser("receive", help="Print the conversation staged for a platform")
    p_receive.add_argument("platform", choices=platforms, help="Receiving platform")

    # clear
    p_clear = subparsers.add_parser("clear", help="Delete all stored conversations")
    p_clear.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    args = parser.parse_args(argv)

    try:
        config = get_config()
        setup_logging(log_file=config.log_file, debug=args.debug or config.debug)
        storage_path = args.dir / config.STORAGE_FILE_NAME if args.dir else config.storage_path
        store = ConversationStore(JsonFileStore(storage_path), config.max_chats, notifier=_notify)
        args.formatter = TransferFormatter.from_config(config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Dispatch commands
    commands = {
        "extract": cmd_extract,
        "watch": cmd_watch,
        "list": cmd_list,
        "show": cmd_show,
        "select": cmd_select,
        "format": cmd_format,
        "paste": cmd_paste,
        "transfer": cmd_transfer,
        "receive": cmd_receive,
        "clear": cmd_clear,
    }

    commands[args.command](args, store)


if __name__ == "__main__":
    main()

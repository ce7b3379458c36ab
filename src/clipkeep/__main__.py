import argparse
import logging
import sys

from clipkeep.config import DB_PATH, IMAGE_DIR, IS_PRO, LOG_PATH
from clipkeep.history import HistoryStore
from clipkeep.models import ClipboardEntry, ContentKind
from clipkeep.search import SearchEngine
from clipkeep.storage import StorageManager
from clipkeep.utils import ensure_dirs, truncate_text


def setup_logging(level: int = logging.INFO) -> None:
    ensure_dirs()
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_PATH),
            logging.StreamHandler(sys.stderr),
        ],
    )


def format_entry(entry: ClipboardEntry) -> str:
    uses = f" x{entry.use_count}" if entry.use_count else ""
    return f"{entry.id[:8]}  {entry.kind.display_name:<6}  {truncate_text(entry.preview, 60)}{uses}"


def open_store(is_pro: bool) -> tuple[StorageManager, HistoryStore]:
    ensure_dirs()
    storage = StorageManager(DB_PATH, IMAGE_DIR)
    return storage, HistoryStore(storage, is_pro=lambda: is_pro)


def list_history(is_pro: bool, limit: int | None = None) -> int:
    storage, store = open_store(is_pro)
    with storage:
        entries = store.fetch_all(min(limit, store.effective_limit) if limit else None)
        if not entries:
            print("(No clipboard history)")
            return 0
        for entry in entries:
            print(format_entry(entry))
    return 0


def search_history(is_pro: bool, query: str, kind: str | None = None) -> int:
    storage, store = open_store(is_pro)
    with storage:
        results = SearchEngine.filter_view(
            store.fetch_all(),
            query,
            kind=ContentKind(kind) if kind else None,
        )
        if not results:
            print(f'No results for "{query}"')
            return 1
        for entry in results:
            print(format_entry(entry))
    return 0


def clear_history(is_pro: bool) -> int:
    storage, store = open_store(is_pro)
    with storage:
        count = store.count()
        store.clear()
    print(f"Cleared {count} entries.")
    return 0


def run_app(is_pro: bool) -> None:
    """Run the ClipKeep menu-bar application."""
    setup_logging()

    from clipkeep.app import ClipKeepApp

    app = ClipKeepApp(is_pro=is_pro)
    app.run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ClipKeep - Clipboard history manager for macOS",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  clipkeep                  # Run the menu-bar app
  clipkeep list -n 5        # Show the five most recent entries
  clipkeep search invoice   # Fuzzy search the history
  clipkeep clear            # Remove all history
""",
    )
    parser.add_argument("--pro", action="store_true", default=IS_PRO, help="Use the pro history limit")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Run the menu-bar app (default)")

    list_parser = sub.add_parser("list", help="List recent entries")
    list_parser.add_argument("-n", "--limit", type=int, default=None, help="Maximum entries to show")

    search_parser = sub.add_parser("search", help="Fuzzy search the history")
    search_parser.add_argument("query")
    search_parser.add_argument("--kind", choices=[k.value for k in ContentKind], default=None)

    sub.add_parser("clear", help="Remove all history")
    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "list":
        if args.limit is not None and args.limit < 1:
            parser.error("--limit must be at least 1")
        sys.exit(list_history(args.pro, args.limit))
    elif args.command == "search":
        sys.exit(search_history(args.pro, args.query, args.kind))
    elif args.command == "clear":
        sys.exit(clear_history(args.pro))
    else:
        run_app(args.pro)


if __name__ == "__main__":
    main()

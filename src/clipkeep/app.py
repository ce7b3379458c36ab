import logging
from dataclasses import dataclass
from typing import Callable

import rumps

from clipkeep import __version__
from clipkeep.config import DB_PATH, IMAGE_DIR, IS_PRO, MENU_DISPLAY_COUNT, MENU_TITLE_LENGTH, THUMBNAIL_SIZE
from clipkeep.enrich import URLTitleFetcher
from clipkeep.friction import FrictionDetector
from clipkeep.history import HistoryStore
from clipkeep.models import ClipboardEntry, ContentKind, FileListPayload, ImagePayload
from clipkeep.monitor import ClipboardWatcher
from clipkeep.pasteboard import MacPasteboard
from clipkeep.search import SearchEngine
from clipkeep.service import ClipboardService
from clipkeep.storage import StorageManager
from clipkeep.utils import create_thumbnail, ensure_dirs, truncate_text

logger = logging.getLogger(__name__)

ENTRY_KEY_PREFIX = "clipkeep_entry_"


@dataclass
class MenuItemSpec:
    """Plain description of one menu row; rendered into rumps objects separately."""

    title: str
    callback: Callable | None = None
    icon: str | None = None
    dimensions: tuple[int, int] | None = None
    template: bool | None = None
    entry_id: str | None = None
    is_submenu: bool = False
    children: list["MenuItemSpec | None"] | None = None


def entry_title(entry: ClipboardEntry) -> str:
    """Menu label for an entry, prefixed by the page title for enriched URLs."""
    if entry.kind == ContentKind.URL and entry.url_title:
        return truncate_text(f"{entry.url_title} ({entry.display_text})", MENU_TITLE_LENGTH)
    return truncate_text(entry.preview, MENU_TITLE_LENGTH)


def render_spec(spec: MenuItemSpec | None) -> rumps.MenuItem | None:
    """Turn one menu specification into a rumps item, or None for a separator."""
    if spec is None:
        return None

    if spec.is_submenu:
        parent = rumps.MenuItem(spec.title)
        for child in spec.children or []:
            parent.add(render_spec(child))
        return parent

    options = {
        name: value
        for name, value in (("icon", spec.icon), ("dimensions", spec.dimensions), ("template", spec.template))
        if value is not None
    }
    item = rumps.MenuItem(spec.title, callback=spec.callback, **options)
    if spec.entry_id is not None:
        item._id = f"{ENTRY_KEY_PREFIX}{spec.entry_id}"
    return item


class ClipKeepApp(rumps.App):
    def __init__(self, is_pro: bool = IS_PRO):
        super().__init__("ClipKeep", title="📋", quit_button=None)
        self._is_pro = is_pro
        self._init_app()

    def _init_app(self) -> None:
        """Wire storage, pasteboard and the service together. Kept out of __init__ for tests."""
        ensure_dirs()
        self._storage = StorageManager(DB_PATH, IMAGE_DIR)
        self._pasteboard = MacPasteboard()
        self._service = ClipboardService(
            HistoryStore(self._storage, is_pro=lambda: self._is_pro),
            watcher=ClipboardWatcher(self._pasteboard),
            friction=FrictionDetector(state_store=self._storage),
            title_fetcher=URLTitleFetcher(),
            source_app_provider=self._pasteboard.frontmost_app,
            on_change=self._refresh_menu,
        )
        self._entry_ids: dict[str, str] = {}
        self._build_menu()
        self._service.start_watching()

    def _build_menu(self) -> None:
        """Rebuild the whole menu from current history."""
        self.menu.clear()
        self._entry_ids.clear()
        self._render_menu_specs(self._compute_menu_specs())

    def _compute_menu_specs(self) -> list[MenuItemSpec | None]:
        """Menu specifications for the main history view, without touching rumps."""
        tier = "Pro" if self._is_pro else "Free"
        entries = self._service.items()
        specs: list[MenuItemSpec | None] = [
            MenuItemSpec(f"ClipKeep v{__version__} ({tier}, {len(entries)}/{self._service.store.effective_limit})"),
            None,
            MenuItemSpec("Search...", callback=self._on_search),
            None,
        ]

        frequent = SearchEngine.filter_view(entries, frequent_only=True)
        if frequent:
            children: list[MenuItemSpec | None] = [self._compute_entry_spec(e) for e in frequent]
            specs.append(MenuItemSpec("★ Frequently Used", is_submenu=True, children=children))
            specs.append(None)

        if not entries:
            specs.append(MenuItemSpec("(No clipboard history)"))
        else:
            specs.extend(self._compute_entry_spec(e) for e in entries[:MENU_DISPLAY_COUNT])

        specs.extend([
            None,
            MenuItemSpec("Clear History", callback=self._on_clear),
            None,
            MenuItemSpec("Quit ClipKeep", callback=self._on_quit),
        ])
        return specs

    def _compute_entry_spec(self, entry: ClipboardEntry) -> MenuItemSpec:
        """Menu specification for one history entry, with a thumbnail for images."""
        self._entry_ids[f"{ENTRY_KEY_PREFIX}{entry.id}"] = entry.id
        spec = MenuItemSpec(title=entry_title(entry), callback=self._on_entry_click, entry_id=entry.id)

        if entry.kind == ContentKind.IMAGE:
            thumb_path = self._ensure_thumbnail(entry)
            if thumb_path:
                spec.icon = thumb_path
                spec.dimensions = THUMBNAIL_SIZE
                spec.template = False
        return spec

    def _render_menu_specs(self, specs: list[MenuItemSpec | None]) -> None:
        """Replace the menu with rendered specifications."""
        self.menu = [render_spec(spec) for spec in specs]

    def _ensure_thumbnail(self, entry: ClipboardEntry) -> str | None:
        """Path to the entry's thumbnail, creating it on first use."""
        image_path = self._storage.image_path_for(entry.content_hash)
        if not image_path.exists():
            return None
        thumb_path = image_path.with_name(image_path.stem + "_thumb.png")
        if thumb_path.exists() or create_thumbnail(str(image_path), str(thumb_path), THUMBNAIL_SIZE):
            return str(thumb_path)
        return None

    def _refresh_menu(self) -> None:
        self._build_menu()

    def _on_entry_click(self, sender) -> None:
        """Put the clicked entry back on the clipboard and record the reuse."""
        entry_id = self._entry_ids.get(getattr(sender, "_id", ""))
        if entry_id is None:
            return
        entry = self._service.get(entry_id)
        if entry is None:
            return

        try:
            if isinstance(entry.payload, ImagePayload):
                self._pasteboard.write_image(entry.payload.data)
            elif isinstance(entry.payload, FileListPayload):
                self._pasteboard.write_string(entry.display_text)
            else:
                self._pasteboard.write_string(entry.payload.text)
        except Exception:
            logger.exception("Error copying entry to clipboard")
            return

        self._service.sync_change_count()
        self._service.track_activation(entry_id)
        rumps.notification("ClipKeep", "", "Copied to clipboard", sound=False)

        if self._service.should_show_friction_guide:
            self._offer_guide()

    def _offer_guide(self) -> None:
        """Show the repeated-reuse guide and record the user's answer."""
        accepted = rumps.alert(
            "ClipKeep",
            "You keep coming back for the same items. Open ClipKeep from the menu bar "
            "and pick an entry to put it straight back on the clipboard.",
            ok="Got it",
            cancel="Maybe Later",
        )
        if accepted:
            self._service.accept_friction_guide()
        else:
            self._service.dismiss_friction_guide()

    def _prompt_query(self) -> str | None:
        """Ask for a search query; None when cancelled or blank."""
        window = rumps.Window(
            title="ClipKeep Search",
            message="Type part of a copied item. Letters may be scattered.",
            ok="Search",
            cancel="Cancel",
            dimensions=(320, 24),
        )
        response = window.run()
        query = response.text.strip() if response.clicked else ""
        return query or None

    def _on_search(self, _sender) -> None:
        """Run a fuzzy search and show the matches in place of the history."""
        query = self._prompt_query()
        if query is None:
            return
        results = self._service.search(query)[:MENU_DISPLAY_COUNT]
        if not results:
            rumps.alert("ClipKeep Search", f'Nothing in history matches "{query}"')
            return
        self.menu.clear()
        self._entry_ids.clear()
        self._render_menu_specs(self._compute_search_results_specs(query, results))

    def _compute_search_results_specs(self, query: str, results: list[ClipboardEntry]) -> list[MenuItemSpec | None]:
        """Menu specifications for a search results view."""
        noun = "match" if len(results) == 1 else "matches"
        return [
            MenuItemSpec(f'{len(results)} {noun} for "{query}"'),
            None,
            MenuItemSpec("Back to History", callback=lambda _: self._refresh_menu()),
            None,
            *(self._compute_entry_spec(e) for e in results),
            None,
            MenuItemSpec("Quit ClipKeep", callback=self._on_quit),
        ]

    def _on_clear(self, _sender) -> None:
        """Clear all history after confirmation."""
        if rumps.alert("ClipKeep", "Clear all clipboard history?", ok="Clear", cancel="Cancel"):
            self._service.clear()

    def _on_quit(self, _sender) -> None:
        """Stop watching, close storage and exit."""
        self._service.shutdown()
        self._storage.close()
        rumps.quit_application()

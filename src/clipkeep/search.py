from collections.abc import Sequence

from clipkeep.fuzzy import fuzzy_match
from clipkeep.models import ClipboardEntry, ContentKind


class SearchEngine:
    """Linear fuzzy ranking over a snapshot of history entries."""

    @staticmethod
    def filter(entries: Sequence[ClipboardEntry], query: str) -> list[ClipboardEntry]:
        trimmed = query.strip()
        if not trimmed:
            return list(entries)

        scored: list[tuple[int, ClipboardEntry]] = []
        for entry in entries:
            best: int | None = None
            for candidate in SearchEngine._candidates(entry):
                matches, score = fuzzy_match(candidate, trimmed)
                if matches and (best is None or score > best):
                    best = score
            if best is not None:
                scored.append((best, entry))

        # sorted() is stable, so equal scores keep their input order
        scored = sorted(scored, key=lambda pair: pair[0], reverse=True)
        return [entry for _, entry in scored]

    @staticmethod
    def simple_filter(entries: Sequence[ClipboardEntry], query: str) -> list[ClipboardEntry]:
        if not query:
            return list(entries)
        needle = query.lower()
        return [
            e for e in entries
            if needle in e.display_text.lower() or needle in e.preview.lower()
        ]

    @staticmethod
    def filter_view(
        entries: Sequence[ClipboardEntry],
        query: str = "",
        kind: ContentKind | None = None,
        frequent_only: bool = False,
    ) -> list[ClipboardEntry]:
        result = list(entries)
        if frequent_only:
            result = sorted((e for e in result if e.is_frequent), key=lambda e: e.use_count, reverse=True)
        if kind is not None:
            result = [e for e in result if e.kind == kind]
        return SearchEngine.filter(result, query)

    @staticmethod
    def _candidates(entry: ClipboardEntry) -> list[str]:
        return [entry.display_text, entry.preview]


def available_kinds(entries: Sequence[ClipboardEntry]) -> list[ContentKind]:
    present = {e.kind for e in entries}
    return [kind for kind in ContentKind if kind in present]

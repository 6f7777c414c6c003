"""Cross-query deduplication of message ids."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from .models import Category


@dataclass
class DedupResult:
    """Unique ``(message_id, category)`` pairs plus how many ids were dropped."""

    items: list[tuple[str, Category]] = field(default_factory=list)
    dropped: int = 0


def deduplicate(results: Mapping[Category, Sequence[str]]) -> DedupResult:
    """Merge per-category search results, first-seen-wins.

    Categories are visited in ``Category`` declaration order, so an id
    matched by several queries is tagged with the highest-priority one.
    """
    seen: set[str] = set()
    out = DedupResult()

    for category in Category:
        for message_id in results.get(category, ()):
            if message_id in seen:
                out.dropped += 1
                continue
            seen.add(message_id)
            out.items.append((message_id, category))

    return out

"""Category suggestion for staged rows.

Precedence is fixed: the user's own past decisions (exact, then partial
history matches) outrank the generic merchant dictionary. Everything here
works on descriptions normalized by :func:`normalize_description`.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from .config import ImportConfig, KeywordEntry, default_config
from .logging_setup import get_logger
from .models import Category, Confidence, HistoricalTransaction, MatchResult
from .text import contains_phrase, normalize_description

_logger = get_logger("statement_import.matcher")

_NO_MATCH = MatchResult(category_id=None, confidence=Confidence.LOW, source=None)


@dataclass(frozen=True, slots=True)
class HistoryIndex:
    """Read-only map of normalized historical description to category id.

    Built once per import session. When the same normalized description was
    categorized more than once the latest entry wins, while iteration keeps
    first-seen order.
    """

    entries: Mapping[str, str]

    @classmethod
    def build(
        cls, history: Iterable[HistoricalTransaction], *, min_length: int = 3
    ) -> HistoryIndex:
        index: dict[str, str] = {}
        for item in history:
            key = normalize_description(item.description)
            if len(key) >= min_length:
                index[key] = item.category_id
        return cls(entries=MappingProxyType(index))

    @classmethod
    def empty(cls) -> HistoryIndex:
        return cls(entries=MappingProxyType({}))

    def lookup(self, normalized: str) -> str | None:
        return self.entries.get(normalized)

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(self.entries.items())

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, normalized: object) -> bool:
        return normalized in self.entries


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


def _shares_prefix(a: str, b: str, cfg: ImportConfig) -> bool:
    head = " ".join(a.split()[: cfg.prefix_tokens])
    return len(head) >= cfg.min_prefix_length and head == " ".join(b.split()[: cfg.prefix_tokens])


def _partial_history_match(
    normalized: str, index: HistoryIndex, known_ids: frozenset[str], cfg: ImportConfig
) -> str | None:
    for key, category_id in index.items():
        if category_id not in known_ids:
            continue
        if key in normalized or normalized in key or _shares_prefix(key, normalized, cfg):
            return category_id
    return None


# ---------------------------------------------------------------------------
# Keyword dictionary
# ---------------------------------------------------------------------------


def _category_labels(category: Category) -> tuple[str, ...]:
    labels = (
        normalize_description(category.top_level_label),
        normalize_description(category.sub_label),
    )
    return tuple(label for label in labels if label)


def find_unassigned(
    categories: Sequence[Category], *, config: ImportConfig | None = None
) -> Category | None:
    """Return the first category named like "Sin Asignar"/"Unassigned", if any."""

    cfg = config or default_config()
    for category in categories:
        if any(label in cfg.unassigned_labels for label in _category_labels(category)):
            return category
    return None


def _category_for_entry(
    entry: KeywordEntry, labelled: Sequence[tuple[Category, tuple[str, ...]]]
) -> Category | None:
    for category, names in labelled:
        for label in entry.labels:
            if any(label in name or name in label for name in names):
                return category
    return None


def _keyword_match(
    normalized: str, categories: Sequence[Category], cfg: ImportConfig
) -> MatchResult | None:
    labelled = [
        (c, names)
        for c in categories
        if (names := _category_labels(c)) and not any(n in cfg.unassigned_labels for n in names)
    ]
    best: tuple[str, Category] | None = None
    for entry in cfg.keyword_categories:
        hits = [kw for kw in entry.keywords if contains_phrase(normalized, kw)]
        if not hits:
            continue
        category = _category_for_entry(entry, labelled)
        if category is None:
            continue
        keyword = max(hits, key=len)
        if best is None or len(keyword) > len(best[0]):
            best = (keyword, category)

    if best is None:
        return None
    keyword, category = best
    confidence = (
        Confidence.HIGH if len(keyword) > cfg.high_confidence_keyword_length else Confidence.MEDIUM
    )
    _logger.debug("match:keyword keyword=%s category=%s", keyword, category.id)
    return MatchResult(category_id=category.id, confidence=confidence, source="keyword")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def match(
    description: str,
    categories: Sequence[Category],
    history_index: HistoryIndex,
    *,
    config: ImportConfig | None = None,
) -> MatchResult:
    """Suggest a category for ``description``.

    Order of precedence:

    1. exact history hit (``HIGH``);
    2. partial history hit: substring either way, or the same first
       ``prefix_tokens`` tokens spanning at least ``min_prefix_length``
       characters (``HIGH``);
    3. keyword dictionary, longest keyword wins (``HIGH`` for long keywords,
       ``MEDIUM`` otherwise);
    4. no suggestion (``LOW``).

    History pointing at categories missing from ``categories`` is ignored.
    The function is pure: the same inputs always give the same result.
    """

    cfg = config or default_config()
    normalized = normalize_description(description)
    if not normalized:
        return _NO_MATCH

    known_ids = frozenset(c.id for c in categories)

    exact = history_index.lookup(normalized)
    if exact is not None and exact in known_ids:
        return MatchResult(category_id=exact, confidence=Confidence.HIGH, source="history")

    if len(normalized) >= cfg.min_history_length:
        partial = _partial_history_match(normalized, history_index, known_ids, cfg)
        if partial is not None:
            return MatchResult(category_id=partial, confidence=Confidence.HIGH, source="history")

    return _keyword_match(normalized, categories, cfg) or _NO_MATCH


__all__ = ["HistoryIndex", "find_unassigned", "match", "normalize_description"]

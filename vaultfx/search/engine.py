"""Filter engine for vaultfx - ranked, type-filtered view over vault items.

The filtered view is always recomputed from the working set, the text query
and the type filter; it is never patched incrementally. Matching:

1. No query: favorites first, then case-insensitive name order
2. Fuzzy mode: ordered subsequence match, scored by match quality
3. Substring mode: containment, earlier matches rank higher

Security: only name, username and URI domain are searched. Passwords, OTP
seeds, card data and notes never take part in matching.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from dataclasses import field as dataclass_field

from vaultfx.core.models import ItemType, VaultItem

# Fuzzy scoring weights. Only the relative ranking matters.
SCORE_MATCH = 16
BONUS_CONSECUTIVE = 8
BONUS_BOUNDARY = 10
PENALTY_GAP_START = 3
PENALTY_GAP_EXTENSION = 1
MAX_LEADING_PENALTY = 20

# Substring mode: score = SUBSTRING_BASE - offset of the match
SUBSTRING_BASE = 1000

_BOUNDARY_CHARS = frozenset(" -_./@:")


@dataclass
class FilterEngine:
    """Working set of vault items plus its filtered, ordered view.

    Attributes:
        fuzzy: Use fuzzy subsequence matching (substring matching otherwise).
        case_sensitive: Match the query without lower-casing.
    """

    fuzzy: bool = True
    case_sensitive: bool = False
    _items: list[VaultItem] = dataclass_field(default_factory=list)
    _view: list[VaultItem] = dataclass_field(default_factory=list)
    _query: str = ""
    _type_filter: ItemType | None = None
    _selected: int | None = None

    # --- Read accessors ---

    @property
    def items(self) -> list[VaultItem]:
        """The working set, in load order."""
        return list(self._items)

    @property
    def view(self) -> list[VaultItem]:
        """The filtered view, in display order."""
        return list(self._view)

    @property
    def query(self) -> str:
        return self._query

    @property
    def type_filter(self) -> ItemType | None:
        return self._type_filter

    @property
    def selected_index(self) -> int | None:
        """Index into the view, or None when the view is empty."""
        return self._selected

    @property
    def selected_item(self) -> VaultItem | None:
        if self._selected is None:
            return None
        return self._view[self._selected]

    def __len__(self) -> int:
        return len(self._view)

    # --- Inputs (recompute the view) ---

    def load(self, items: list[VaultItem]) -> None:
        """Replace the working set.

        The previously selected item stays selected if it is still visible;
        otherwise the selection index is clamped to the new view.
        """
        previous = self.selected_item
        previous_index = self._selected
        self._items = list(items)
        self._recompute()

        if not self._view:
            return
        if previous is not None:
            for i, item in enumerate(self._view):
                if item.id == previous.id:
                    self._selected = i
                    return
        if previous_index is not None:
            self._selected = min(previous_index, len(self._view) - 1)

    def set_query(self, text: str) -> None:
        """Set the text query and move the selection to the best match."""
        self._query = text
        self._recompute()

    def append_query(self, char: str) -> None:
        self.set_query(self._query + char)

    def delete_query_char(self) -> None:
        self.set_query(self._query[:-1])

    def clear_query(self) -> None:
        self.set_query("")

    def set_type_filter(self, item_type: ItemType | None) -> None:
        """Restrict the view to one item type, or None for all types."""
        self._type_filter = item_type
        self._recompute()

    # --- Navigation (selection only) ---

    def select(self, index: int) -> None:
        """Select an index, clamping out-of-range values into the view."""
        if not self._view:
            return
        self._selected = max(0, min(index, len(self._view) - 1))

    def next(self) -> None:
        """Move down one row, wrapping from the last row to the first."""
        if self._selected is None:
            return
        self._selected = (self._selected + 1) % len(self._view)

    def previous(self) -> None:
        """Move up one row, wrapping from the first row to the last."""
        if self._selected is None:
            return
        self._selected = (self._selected - 1) % len(self._view)

    def page_up(self, page_size: int) -> None:
        if self._selected is None:
            return
        self._selected = max(0, self._selected - page_size)

    def page_down(self, page_size: int) -> None:
        if self._selected is None:
            return
        self._selected = min(len(self._view) - 1, self._selected + page_size)

    def home(self) -> None:
        if self._view:
            self._selected = 0

    def end(self) -> None:
        if self._view:
            self._selected = len(self._view) - 1

    # --- Internals ---

    def _recompute(self) -> None:
        self._view = self._filter(self._items)
        self._selected = 0 if self._view else None

    def _filter(self, items: list[VaultItem]) -> list[VaultItem]:
        if self._type_filter is not None:
            items = [item for item in items if item.type == self._type_filter]

        if not self._query:
            # Two stable passes: name order, then favorites first
            ordered = sorted(items, key=lambda item: item.name.lower())
            ordered.sort(key=lambda item: not item.favorite)
            return ordered

        query = _normalize_text(self._query, self.case_sensitive)
        scored: list[tuple[int, VaultItem]] = []
        for item in items:
            text = searchable_text(item, self.case_sensitive)
            if self.fuzzy:
                score = fuzzy_score(text, query)
            else:
                score = substring_score(text, query)
            if score is not None:
                scored.append((score, item))

        # Python's sort is stable: equal scores keep working-set order
        scored.sort(key=lambda pair: -pair[0])
        return [item for _, item in scored]


def searchable_text(item: VaultItem, case_sensitive: bool = False) -> str:
    """Build the composite "name username domain" string for matching."""
    parts = [item.name]
    if item.username:
        parts.append(item.username)
    domain = item.domain
    if domain:
        parts.append(domain)
    return _normalize_text(" ".join(parts), case_sensitive)


def fuzzy_score(text: str, pattern: str) -> int | None:
    """Score an ordered subsequence match of ``pattern`` in ``text``.

    Every start position of the first pattern character is tried and the
    best greedy alignment wins. Consecutive runs and matches at word
    boundaries score higher; gaps and late starts cost points.

    Returns:
        The score, or None when ``pattern`` is not a subsequence of ``text``.
    """
    if not pattern:
        return 0

    best: int | None = None
    start = text.find(pattern[0])
    while start != -1:
        score = _score_alignment(text, pattern, start)
        if score is None:
            # Later starts only see a suffix of the text, so they fail too
            break
        if best is None or score > best:
            best = score
        start = text.find(pattern[0], start + 1)
    return best


def _score_alignment(text: str, pattern: str, start: int) -> int | None:
    """Greedy alignment of ``pattern`` in ``text`` beginning at ``start``."""
    score = -min(start, MAX_LEADING_PENALTY)
    prev = -1
    pos = start
    for i, char in enumerate(pattern):
        idx = start if i == 0 else text.find(char, pos)
        if idx == -1:
            return None

        score += SCORE_MATCH
        if prev >= 0:
            gap = idx - prev - 1
            if gap == 0:
                score += BONUS_CONSECUTIVE
            else:
                score -= PENALTY_GAP_START + PENALTY_GAP_EXTENSION * (gap - 1)
        if idx == 0 or text[idx - 1] in _BOUNDARY_CHARS:
            score += BONUS_BOUNDARY

        prev = idx
        pos = idx + 1
    return score


def substring_score(text: str, pattern: str) -> int | None:
    """Score a substring match; earlier matches score higher."""
    offset = text.find(pattern)
    if offset == -1:
        return None
    return SUBSTRING_BASE - offset


def _normalize_text(text: str, case_sensitive: bool = False) -> str:
    """Normalize text for matching.

    - Unicode normalization (NFKD) with accent marks removed
    - Lowercase unless case-sensitive
    - Collapse whitespace
    """
    text = unicodedata.normalize("NFKD", text)
    text = "".join(c for c in text if not unicodedata.combining(c))
    if not case_sensitive:
        text = text.lower()
    return " ".join(text.split())

"""
Position resolution strategies.

Each strategy maps (fen, indexes) to the indexed FENs it matches, or an
empty list. ``resolve_direct`` tries them in order and stops at the first
that matches; continuations are looked up independently.
"""

import unicodedata
from typing import Callable

from indexes import MasterIndexes
from models import OpeningSummary
from positions import position_fen

Strategy = Callable[[str, MasterIndexes], list[str]]


def match_exact(fen: str, indexes: MasterIndexes) -> list[str]:
    """The FEN itself, if it has games."""
    return [fen] if indexes.fen_index.get(fen) else []


def match_position(fen: str, indexes: MasterIndexes) -> list[str]:
    """Every indexed FEN with the same board layout (castling, turn etc. ignored)."""
    position = position_fen(fen)
    if not position:
        return []
    return list(indexes.fens_by_position.get(position, []))


DIRECT_STRATEGIES: list[tuple[Strategy, str]] = [
    (match_exact, "exact"),
    (match_position, "position"),
]


def resolve_direct(
    fen: str,
    indexes: MasterIndexes,
    strategies: list[tuple[Strategy, str]] = DIRECT_STRATEGIES,
) -> tuple[list[str], str | None]:
    """Returns (matched FENs, label of the strategy that matched)."""
    for strategy, label in strategies:
        matched = strategy(fen, indexes)
        if matched:
            return matched, label
    return [], None


def find_continuations(fen: str, indexes: MasterIndexes, exclude: list[str] | None = None) -> list[str]:
    """
    Indexed FENs one ply ahead of ``fen`` via the transition graph, plus any
    recorded descendants when ``fen`` is an unindexed ancestor.
    """
    position = position_fen(fen)
    found: dict[str, None] = {}

    for next_fen in indexes.graph.next_fens(position):
        matched, _ = resolve_direct(next_fen, indexes)
        for m in matched:
            found[m] = None

    for descendant_fen in indexes.ancestor_index.get(position, []):
        if indexes.fen_index.get(descendant_fen):
            found[descendant_fen] = None

    skip = set(exclude or [])
    return [f for f in found if f not in skip]


def name_sort_key(name: str):
    """
    Case- and accent-insensitive ordering, ties broken by the raw string.

    Approximates locale collation with NFKD folding only: letters such as
    "ø" or "æ" that do not decompose sort after "z", and no
    language-specific rules (Swedish "å" after "z", for one) apply.
    """
    folded = unicodedata.normalize("NFKD", name)
    folded = "".join(c for c in folded if not unicodedata.combining(c)).casefold()
    return (folded, name)


def openings_for_fens(fens: list[str], indexes: MasterIndexes) -> list[OpeningSummary]:
    """Openings at the given FENs, deduplicated by (name, eco, fen), sorted by name."""
    seen: dict[tuple[str, str, str], OpeningSummary] = {}
    for fen in fens:
        for opening in indexes.openings_by_fen.get(fen, []):
            seen.setdefault(opening.key(), opening)
    return sorted(seen.values(), key=lambda o: name_sort_key(o.name))

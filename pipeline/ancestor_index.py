#!/usr/bin/env python3
"""
Phase 2 — Ancestor Index

Maps every unindexed ancestor position to the indexed FENs that descend
from it, so a query for an intermediate position (e.g. 1.e4 e5) can list
the named variations that branch from it.

Usage:
  python ancestor_index.py
  python ancestor_index.py --graph data/fromToPositionIndexed.json --store data/indexes
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Iterable

sys.path.insert(0, str(Path(__file__).resolve().parent))
from blob_store import (
    ANCESTOR_INDEX_KEY,
    NAME_INDEX_KEY,
    TRANSITION_GRAPH_KEY,
    BlobStore,
    get_blob_store,
)
from positions import position_fen
from transition_graph import TransitionGraph


def find_ancestors(position: str, graph: TransitionGraph) -> list[str]:
    """All FENs reachable backward from a position, each position walked once."""
    ancestors = []
    visited = set()
    stack = [position]
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        for parent_fen in graph.previous_fens(current):
            ancestors.append(parent_fen)
            parent_position = position_fen(parent_fen)
            if parent_position not in visited:
                stack.append(parent_position)
    return ancestors


def build_ancestor_index(indexed_fens: Iterable[str], graph: TransitionGraph) -> dict[str, list[str]]:
    """
    Walk back from every indexed FEN ("leaf") and record it under each
    ancestor position that has no games of its own.
    """
    leaves = list(dict.fromkeys(indexed_fens))
    leaf_positions = {position_fen(fen) for fen in leaves}
    descendants: dict[str, dict[str, None]] = {}

    for processed, leaf_fen in enumerate(leaves, start=1):
        for ancestor_fen in find_ancestors(position_fen(leaf_fen), graph):
            ancestor_position = position_fen(ancestor_fen)
            if ancestor_position in leaf_positions:
                continue
            descendants.setdefault(ancestor_position, {})[leaf_fen] = None
        if processed % 500 == 0:
            print(f"Processed {processed}/{len(leaves)} positions...", file=sys.stderr)

    return {position: list(fens) for position, fens in descendants.items()}


def indexed_fens_from_name_index(name_index: dict) -> list[str]:
    return list(dict.fromkeys(entry["fen"] for entry in name_index.values() if entry.get("gameIds")))


async def run(store: BlobStore, graph: TransitionGraph | None = None) -> dict[str, list[str]]:
    name_index = await store.get_json(NAME_INDEX_KEY)
    if name_index is None:
        raise FileNotFoundError(f"{NAME_INDEX_KEY} not found in {store!r}. Run index_builder.py first.")
    if graph is None:
        graph_data = await store.get_json(TRANSITION_GRAPH_KEY)
        if graph_data is None:
            raise FileNotFoundError(f"{TRANSITION_GRAPH_KEY} not found in {store!r}.")
        graph = TransitionGraph.from_dict(graph_data)

    fens = indexed_fens_from_name_index(name_index)
    print(f"Found {len(fens)} unique positions with master games", file=sys.stderr)
    index = build_ancestor_index(fens, graph)
    await store.put_json(ANCESTOR_INDEX_KEY, index)

    total = sum(len(v) for v in index.values())
    avg = total / len(index) if index else 0.0
    print(f"Found {len(index)} ancestor positions (avg {avg:.1f} descendants each).")
    return index


async def main_async():
    parser = argparse.ArgumentParser(description="Build ancestor-to-descendants index")
    parser.add_argument("--store", default=None, help="Store location (default: $MASTER_GAMES_STORE)")
    parser.add_argument("--graph", default=None, help="Transition graph JSON (default: read from store)")
    args = parser.parse_args()

    store = get_blob_store(args.store)
    graph = TransitionGraph.load(args.graph) if args.graph else None
    try:
        await run(store, graph)
    finally:
        await store.aclose()


def main():
    asyncio.run(main_async())


if __name__ == "__main__":
    main()

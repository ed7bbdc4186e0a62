#!/usr/bin/env python3
"""
Phase 1 — Index Building

Builds the master-games indexes from a corpus of classified games:
chunks + manifest, opening-by-name, opening-by-eco, game-to-players,
then the ancestor index (Phase 2) from the transition graph.

Usage:
  python index_builder.py --input data/processed-games.json --graph data/fromToPositionIndexed.json
  MASTER_GAMES_STORE=postgres python index_builder.py --input games.json --graph graph.json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))
from ancestor_index import build_ancestor_index
from blob_store import (
    ANCESTOR_INDEX_KEY,
    ECO_INDEX_KEY,
    GAME_TO_PLAYERS_KEY,
    MANIFEST_KEY,
    NAME_INDEX_KEY,
    TRANSITION_GRAPH_KEY,
    BlobStore,
    chunk_key,
    get_blob_store,
)
from models import CHUNK_SIZE, Chunk, ChunkManifest, ChunkRef, GameRecord, OpeningIndexEntry
from transition_graph import TransitionGraph


def load_games(path: str | Path) -> list[GameRecord]:
    """Read processed games ({"games": [...]}) and order them by sequence index."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    raw = data["games"] if isinstance(data, dict) else data
    games = sorted((GameRecord.from_dict(g) for g in raw), key=lambda g: g.idx)
    seen = set()
    for game in games:
        if game.idx < 0:
            raise ValueError(f"Negative sequence index {game.idx}")
        if game.idx in seen:
            raise ValueError(f"Duplicate sequence index {game.idx}")
        seen.add(game.idx)
    return games


def build_chunks(games: list[GameRecord], chunk_size: int = CHUNK_SIZE) -> tuple[list[Chunk], ChunkManifest]:
    """Partition games by floor(idx / chunk_size). Empty index ranges produce no chunk."""
    if not games:
        return [], ChunkManifest()

    last_idx = max(g.idx for g in games)
    total_chunks = last_idx // chunk_size + 1
    by_id: dict[int, Chunk] = {}
    for game in sorted(games, key=lambda g: g.idx):
        chunk_id = game.idx // chunk_size
        chunk = by_id.get(chunk_id)
        if chunk is None:
            start = chunk_id * chunk_size
            chunk = Chunk(
                chunkId=chunk_id,
                startIdx=start,
                endIdx=min(start + chunk_size, last_idx + 1),
                totalChunks=total_chunks,
            )
            by_id[chunk_id] = chunk
        chunk.games.append(game)

    chunks = [by_id[i] for i in sorted(by_id)]
    manifest = ChunkManifest(
        totalGames=len(games),
        totalChunks=total_chunks,
        chunks=[
            ChunkRef(
                id=c.chunkId,
                blobKey=chunk_key(c.chunkId),
                startIdx=c.startIdx,
                endIdx=c.endIdx,
                gameCount=len(c.games),
            )
            for c in chunks
        ],
    )
    return chunks, manifest


def build_name_index(games: list[GameRecord]) -> dict[str, OpeningIndexEntry]:
    """
    One entry per classified opening name, game ids in ingestion order.
    First-seen wins when a name appears at two FENs or two names share a FEN.
    """
    index: dict[str, OpeningIndexEntry] = {}
    name_by_fen: dict[str, str] = {}

    for game in games:
        if not game.is_classified:
            continue
        name, fen = game.ecoJsonOpening, game.ecoJsonFen
        entry = index.get(name)
        if entry is None:
            canonical = name_by_fen.get(fen)
            if canonical is not None:
                print(
                    f"Warning: '{name}' shares FEN with '{canonical}'; merging game {game.idx}",
                    file=sys.stderr,
                )
                index[canonical].gameIds.append(game.idx)
                continue
            entry = OpeningIndexEntry(fen=fen, eco=game.ecoJsonEco or "")
            index[name] = entry
            name_by_fen[fen] = name
        elif entry.fen != fen:
            print(
                f"Warning: '{name}' seen at a second FEN in game {game.idx}; keeping {entry.fen}",
                file=sys.stderr,
            )
        entry.gameIds.append(game.idx)

    return index


def build_eco_index(games: list[GameRecord]) -> dict[str, list[int]]:
    """ECO code from the PGN header -> game ids."""
    index: dict[str, list[int]] = {}
    for game in games:
        if game.eco:
            index.setdefault(game.eco, []).append(game.idx)
    return index


def build_game_to_players(games: list[GameRecord]) -> tuple[list[list[str]], int]:
    """Players array indexed by game idx. Returns (array, gaps filled with ["", ""])."""
    players: list[list[str]] = []
    gaps = 0
    for game in sorted(games, key=lambda g: g.idx):
        while len(players) < game.idx:
            players.append(["", ""])
            gaps += 1
        players.append([game.white, game.black])
    return players, gaps


async def build_indexes(
    games: list[GameRecord],
    store: BlobStore,
    graph: TransitionGraph,
    chunk_size: int = CHUNK_SIZE,
) -> dict[str, int]:
    """Build and write every artifact. Returns bytes written per key."""
    sizes: dict[str, int] = {}

    print(f"Building chunks ({chunk_size} games each)...", file=sys.stderr)
    chunks, manifest = build_chunks(games, chunk_size)
    for chunk in chunks:
        key = chunk_key(chunk.chunkId)
        sizes[key] = await store.put_json(key, chunk.to_dict())
        print(f"  Chunk {chunk.chunkId}: {len(chunk.games)} games (idx {chunk.startIdx}-{chunk.endIdx - 1})", file=sys.stderr)
    sizes[MANIFEST_KEY] = await store.put_json(MANIFEST_KEY, manifest.to_dict(), indent=2)

    print("Building opening-by-name index...", file=sys.stderr)
    name_index = build_name_index(games)
    unclassified = sum(1 for g in games if not g.is_classified)
    if unclassified:
        print(f"Warning: {unclassified} games have no opening classification", file=sys.stderr)
    sizes[NAME_INDEX_KEY] = await store.put_json(
        NAME_INDEX_KEY, {name: entry.to_dict() for name, entry in name_index.items()}
    )

    print("Building opening-by-eco index...", file=sys.stderr)
    sizes[ECO_INDEX_KEY] = await store.put_json(ECO_INDEX_KEY, build_eco_index(games))

    print("Building game-to-players index...", file=sys.stderr)
    players, gaps = build_game_to_players(games)
    if gaps:
        print(f"Warning: {gaps} missing sequence indices padded in game-to-players", file=sys.stderr)
    sizes[GAME_TO_PLAYERS_KEY] = await store.put_json(GAME_TO_PLAYERS_KEY, players)

    print("Building ancestor-to-descendants index...", file=sys.stderr)
    indexed_fens = [entry.fen for entry in name_index.values()]
    sizes[ANCESTOR_INDEX_KEY] = await store.put_json(ANCESTOR_INDEX_KEY, build_ancestor_index(indexed_fens, graph))
    sizes[TRANSITION_GRAPH_KEY] = await store.put_json(TRANSITION_GRAPH_KEY, graph.to_dict())

    return sizes


def print_size_summary(sizes: dict[str, int]) -> None:
    chunk_total = sum(v for k, v in sizes.items() if "/chunk-" in k)
    index_total = sum(v for k, v in sizes.items() if "/chunk-" not in k)
    for key, size in sizes.items():
        if "/chunk-" not in key:
            print(f"  {key:45} {size / 1024:10.2f} KB")
    print(f"  {'Total indexes:':45} {index_total / 1024:10.2f} KB")
    print(f"  {'Total chunks:':45} {chunk_total / 1024:10.2f} KB")


async def main_async():
    parser = argparse.ArgumentParser(description="Build master-games indexes")
    parser.add_argument("--input", required=True, help="Processed games JSON")
    parser.add_argument("--graph", required=True, help="Transition graph JSON ({to, from})")
    parser.add_argument("--store", default=None, help="Store location (default: $MASTER_GAMES_STORE)")
    parser.add_argument("--chunk-size", type=int, default=CHUNK_SIZE)
    args = parser.parse_args()

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: input {input_path} does not exist.", file=sys.stderr)
        sys.exit(1)

    games = load_games(input_path)
    print(f"Found {len(games)} games", file=sys.stderr)
    graph = TransitionGraph.load(args.graph)

    store = get_blob_store(args.store)
    try:
        sizes = await build_indexes(games, store, graph, args.chunk_size)
    finally:
        await store.aclose()
    print(f"Wrote {len(sizes)} artifacts to {store!r}.")
    print_size_summary(sizes)


def main():
    asyncio.run(main_async())


if __name__ == "__main__":
    main()

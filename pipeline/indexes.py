"""Read-only index set shared by all queries in a process."""

import asyncio
import sys
from dataclasses import dataclass, field

from blob_store import (
    ANCESTOR_INDEX_KEY,
    ECO_INDEX_KEY,
    GAME_TO_PLAYERS_KEY,
    MANIFEST_KEY,
    NAME_INDEX_KEY,
    TRANSITION_GRAPH_KEY,
    BlobStore,
)
from models import ChunkManifest, OpeningIndexEntry, OpeningSummary
from positions import position_fen
from transition_graph import TransitionGraph


@dataclass
class MasterIndexes:
    name_index: dict[str, OpeningIndexEntry] = field(default_factory=dict)
    eco_index: dict[str, list[int]] = field(default_factory=dict)
    game_to_players: list[list[str]] = field(default_factory=list)
    ancestor_index: dict[str, list[str]] = field(default_factory=dict)
    graph: TransitionGraph = field(default_factory=TransitionGraph)

    # Derived projections, filled by __post_init__
    fen_index: dict[str, list[int]] = field(default_factory=dict, init=False)
    openings_by_fen: dict[str, list[OpeningSummary]] = field(default_factory=dict, init=False)
    fens_by_position: dict[str, list[str]] = field(default_factory=dict, init=False)

    def __post_init__(self):
        # FEN -> game ids is the inverse of the name index
        for name, entry in self.name_index.items():
            self.fen_index.setdefault(entry.fen, []).extend(entry.gameIds)
            self.openings_by_fen.setdefault(entry.fen, []).append(
                OpeningSummary(name=name, fen=entry.fen, eco=entry.eco, gameCount=len(entry.gameIds))
            )
        for fen in self.fen_index:
            self.fens_by_position.setdefault(position_fen(fen), []).append(fen)

    @classmethod
    async def load(cls, store: BlobStore) -> "MasterIndexes":
        """Fetch all index artifacts concurrently. A missing name index is fatal."""
        name_data, eco_data, players, ancestors, graph_data, manifest_data = await asyncio.gather(
            store.get_json(NAME_INDEX_KEY),
            store.get_json(ECO_INDEX_KEY),
            store.get_json(GAME_TO_PLAYERS_KEY),
            store.get_json(ANCESTOR_INDEX_KEY),
            store.get_json(TRANSITION_GRAPH_KEY),
            store.get_json(MANIFEST_KEY),
        )
        if name_data is None:
            raise FileNotFoundError(f"{NAME_INDEX_KEY} not found in {store!r}")

        players = players or []
        # Padded slots are indistinguishable from nameless games, so count against the manifest
        if manifest_data is not None:
            gaps = len(players) - ChunkManifest.from_dict(manifest_data).totalGames
        else:
            gaps = 0
        if gaps > 0:
            print(f"Warning: game-to-players has {gaps} empty placeholder entries", file=sys.stderr)

        return cls(
            name_index={name: OpeningIndexEntry.from_dict(d) for name, d in name_data.items()},
            eco_index=eco_data or {},
            game_to_players=players,
            ancestor_index=ancestors or {},
            graph=TransitionGraph.from_dict(graph_data),
        )

    def players_for(self, game_id: int) -> tuple[str, str] | None:
        if 0 <= game_id < len(self.game_to_players):
            pair = self.game_to_players[game_id]
            if pair:
                return pair[0], pair[1]
        return None

    def game_ids_for_fens(self, fens: list[str]) -> list[int]:
        """Union of game ids across FENs, first-seen order."""
        ids: dict[int, None] = {}
        for fen in fens:
            for game_id in self.fen_index.get(fen, []):
                ids[game_id] = None
        return list(ids)

    def game_ids_for_openings(self, names: list[str]) -> list[int]:
        ids: dict[int, None] = {}
        for name in names:
            entry = self.name_index.get(name)
            if entry:
                for game_id in entry.gameIds:
                    ids[game_id] = None
        return list(ids)

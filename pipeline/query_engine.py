"""
Query engine over the master-games indexes.

Endpoints in api/main.py are thin wrappers around these methods:
  resolve_position                   - openings, continuations and players through a position
  list_games_at_position             - paginated games at an exact position, best games first
  list_openings_by_eco_category      - openings grouped by ECO letter and code
  list_games_for_player_and_openings - one player's games within selected openings
  list_players_for_openings          - players aggregated over selected openings
  get_game_moves                     - move text and headers for one game
  get_transitions                    - transition-graph neighbourhood of a position
"""

import sys
from typing import Iterable

from blob_store import BlobStore
from chunk_store import ChunkStore
from indexes import MasterIndexes
from models import CHUNK_SIZE, GameRecord, OpeningSummary, PlayerCount
from resolution import find_continuations, name_sort_key, openings_for_fens, resolve_direct

SORT_FIELDS = ("name", "gameCount")
SORT_ORDERS = ("asc", "desc")
ECO_CATEGORIES = ("A", "B", "C", "D", "E")

TITLE_RANK = {
    "GM": 1,
    "IM": 2,
    "FM": 3,
    "WGM": 4,
    "WIM": 5,
    "WFM": 6,
    "CM": 7,
    "WCM": 8,
    "NM": 9,
    "WNM": 10,
}
UNRANKED = 99


class MalformedInputError(ValueError):
    """A required parameter is missing or invalid."""


def validate_paging(page: int, page_size: int) -> None:
    if page < 0:
        raise MalformedInputError("page must be >= 0")
    if page_size < 1:
        raise MalformedInputError("pageSize must be >= 1")


def validate_sort(sort_by: str, sort_order: str) -> None:
    if sort_by not in SORT_FIELDS:
        raise MalformedInputError(f"sortBy must be one of {', '.join(SORT_FIELDS)}")
    if sort_order not in SORT_ORDERS:
        raise MalformedInputError(f"sortOrder must be one of {', '.join(SORT_ORDERS)}")


def clean_opening_names(names: Iterable[str] | None) -> list[str]:
    cleaned = [n.strip() for n in (names or []) if n and n.strip()]
    if not cleaned:
        raise MalformedInputError("Missing required parameter: openings")
    return list(dict.fromkeys(cleaned))


def paginate(items: list, page: int, page_size: int) -> list:
    """Zero-based page slice; pages past the end are empty."""
    start = page * page_size
    return items[start:start + page_size]


def aggregate_players(game_ids: Iterable[int], indexes: MasterIndexes) -> list[PlayerCount]:
    """Games per player, counting white and black appearances together."""
    counts: dict[str, int] = {}
    for game_id in game_ids:
        players = indexes.players_for(game_id)
        if not players:
            continue
        for player in players:
            if player:
                counts[player] = counts.get(player, 0) + 1
    return [PlayerCount(playerName=name, gameCount=n) for name, n in counts.items()]


def sort_players(players: list[PlayerCount], sort_by: str = "name", sort_order: str = "asc") -> list[PlayerCount]:
    reverse = sort_order == "desc"
    ordered = sorted(players, key=lambda p: name_sort_key(p.playerName))
    if sort_by == "gameCount":
        return sorted(ordered, key=lambda p: p.gameCount, reverse=reverse)
    return list(reversed(ordered)) if reverse else ordered


def title_rank(game: GameRecord) -> int:
    return min(TITLE_RANK.get(game.whiteTitle or "", UNRANKED), TITLE_RANK.get(game.blackTitle or "", UNRANKED))


def average_elo(game: GameRecord) -> float:
    return ((game.whiteElo or 0) + (game.blackElo or 0)) / 2


def game_to_summary(game: GameRecord, include_moves: bool = True) -> dict:
    out = {
        "idx": game.idx,
        "white": game.white,
        "black": game.black,
        "whiteElo": game.whiteElo,
        "blackElo": game.blackElo,
        "whiteTitle": game.whiteTitle,
        "blackTitle": game.blackTitle,
        "result": game.result,
        "date": game.date,
        "event": game.event,
        "eco": game.eco,
        "opening": game.ecoJsonOpening or game.opening,
        "ply": game.ply,
        "source": game.source,
    }
    if include_moves:
        out["moves"] = game.moves
    return out


def moves_with_result(moves: str, result: str) -> str:
    """Append the result token unless the move text already ends with it."""
    moves = moves.rstrip()
    if not result or moves.endswith(result):
        return moves
    return f"{moves} {result}" if moves else result


def summaries_to_dicts(openings: list[OpeningSummary]) -> list[dict]:
    return [
        {"name": o.name, "fen": o.fen, "eco": o.eco, "gameCount": o.gameCount}
        for o in openings
    ]


def pick_root(openings: list[OpeningSummary]) -> OpeningSummary:
    """The family opening of a code: prefer names without a ':' variation suffix, then the shortest."""
    return min(openings, key=lambda o: (":" in o.name, len(o.name), name_sort_key(o.name)))


class QueryEngine:
    """
    Long-lived query object. Indexes load on first use and are then shared
    read-only; a cold-start race may load them twice, which is harmless.
    """

    def __init__(self, store: BlobStore, chunk_size: int = CHUNK_SIZE, indexes: MasterIndexes | None = None):
        self.store = store
        self.chunks = ChunkStore(store, chunk_size)
        self._indexes = indexes

    async def indexes(self) -> MasterIndexes:
        if self._indexes is None:
            self._indexes = await MasterIndexes.load(self.store)
        return self._indexes

    async def resolve_position(
        self,
        fen: str,
        fallback_fen: str | None = None,
        page: int = 0,
        page_size: int = 25,
        sort_by: str = "name",
        sort_order: str = "asc",
    ) -> dict:
        if not fen or not fen.strip():
            raise MalformedInputError("Missing required parameter: fen")
        validate_paging(page, page_size)
        validate_sort(sort_by, sort_order)
        fen = fen.strip()
        indexes = await self.indexes()

        direct_fens, _ = resolve_direct(fen, indexes)
        continuation_fens = find_continuations(fen, indexes, exclude=direct_fens)

        used_fallback = False
        if not direct_fens and not continuation_fens and fallback_fen and fallback_fen.strip():
            direct_fens, _ = resolve_direct(fallback_fen.strip(), indexes)
            used_fallback = bool(direct_fens)

        direct_ids = indexes.game_ids_for_fens(direct_fens)
        continuation_ids = indexes.game_ids_for_fens(continuation_fens)
        all_ids = list(dict.fromkeys(direct_ids + continuation_ids))

        masters = sort_players(aggregate_players(all_ids, indexes), sort_by, sort_order)

        return {
            "openings": summaries_to_dicts(openings_for_fens(direct_fens, indexes)),
            "continuations": summaries_to_dicts(openings_for_fens(continuation_fens, indexes)),
            "masters": [{"playerName": p.playerName, "gameCount": p.gameCount} for p in paginate(masters, page, page_size)],
            "totalMasters": len(masters),
            "totalGames": len(all_ids),
            "directGames": len(direct_ids),
            "continuationGames": len(continuation_ids),
            "page": page,
            "pageSize": page_size,
            "hasDescendants": bool(continuation_fens),
            "usedFallbackFen": used_fallback,
        }

    async def list_games_at_position(self, fen: str, page: int = 0, page_size: int = 20) -> dict:
        if not fen or not fen.strip():
            raise MalformedInputError("Missing required parameter: fen")
        validate_paging(page, page_size)
        indexes = await self.indexes()

        matched, _ = resolve_direct(fen.strip(), indexes)
        game_ids = indexes.game_ids_for_fens(matched)
        if not game_ids:
            return {"games": [], "total": 0, "page": page, "pageSize": page_size, "found": False}

        games = await self.chunks.get_games(paginate(game_ids, page, page_size))
        games.sort(key=lambda g: (title_rank(g), -average_elo(g)))

        return {
            "games": [game_to_summary(g) for g in games],
            "total": len(game_ids),
            "page": page,
            "pageSize": page_size,
            "found": True,
        }

    async def list_openings_by_eco_category(self) -> dict:
        indexes = await self.indexes()

        by_code: dict[str, list[OpeningSummary]] = {}
        for name, entry in indexes.name_index.items():
            if not entry.eco:
                continue
            by_code.setdefault(entry.eco, []).append(
                OpeningSummary(name=name, fen=entry.fen, eco=entry.eco, gameCount=len(entry.gameIds))
            )

        grouped: dict[str, list[dict]] = {letter: [] for letter in ECO_CATEGORIES}
        for code in sorted(by_code):
            letter = code[0].upper()
            if letter not in grouped:
                continue
            openings = by_code[code]
            root = pick_root(openings)
            children = sorted((o for o in openings if o is not root), key=lambda o: name_sort_key(o.name))
            total = len(indexes.game_ids_for_openings([o.name for o in openings]))

            header_total = indexes.eco_index.get(code)
            if header_total is not None and len(header_total) != total:
                print(
                    f"Warning: ECO {code} game count mismatch: {total} classified vs {len(header_total)} by header",
                    file=sys.stderr,
                )

            grouped[letter].append({
                "code": code,
                "rootName": root.name,
                "rootFen": root.fen,
                "rootOpening": summaries_to_dicts([root])[0],
                "children": summaries_to_dicts(children),
                "totalGames": total,
            })

        return {"openings": grouped, "totalOpenings": len(indexes.name_index)}

    async def list_games_for_player_and_openings(self, player: str, opening_names: list[str]) -> dict:
        if not player or not player.strip():
            raise MalformedInputError("Missing required parameter: player")
        names = clean_opening_names(opening_names)
        player = player.strip()
        indexes = await self.indexes()

        player_ids = []
        for game_id in indexes.game_ids_for_openings(names):
            players = indexes.players_for(game_id)
            if players and player in players:
                player_ids.append(game_id)

        games = await self.chunks.get_games(player_ids)

        def opponent(game: GameRecord) -> str:
            return game.black if game.white == player else game.white

        games.sort(key=lambda g: name_sort_key(opponent(g)))
        return {
            "games": [game_to_summary(g, include_moves=False) for g in games],
            "total": len(games),
            "player": player,
            "openings": names,
        }

    async def list_players_for_openings(
        self,
        opening_names: list[str],
        page: int = 0,
        page_size: int = 25,
        sort_by: str = "name",
        sort_order: str = "asc",
    ) -> dict:
        names = clean_opening_names(opening_names)
        validate_paging(page, page_size)
        validate_sort(sort_by, sort_order)
        indexes = await self.indexes()

        game_ids = indexes.game_ids_for_openings(names)
        masters = sort_players(aggregate_players(game_ids, indexes), sort_by, sort_order)
        return {
            "masters": [{"playerName": p.playerName, "gameCount": p.gameCount} for p in paginate(masters, page, page_size)],
            "total": len(masters),
            "page": page,
            "pageSize": page_size,
            "totalGames": len(game_ids),
        }

    async def get_game_moves(self, game_id: int) -> dict | None:
        """Move text plus headers, or None if the game (or its moves) is missing."""
        if game_id is None or game_id < 0:
            raise MalformedInputError("Missing or invalid gameId parameter")
        game = await self.chunks.get_game(game_id)
        if game is None or not game.moves:
            return None
        return {
            "gameId": game.idx,
            "moves": moves_with_result(game.moves, game.result),
            "white": game.white,
            "black": game.black,
            "whiteElo": game.whiteElo,
            "blackElo": game.blackElo,
            "whiteTitle": game.whiteTitle,
            "blackTitle": game.blackTitle,
            "event": game.event,
            "date": game.date,
            "result": game.result,
        }

    async def get_transitions(self, fen: str) -> dict:
        if not fen or not fen.strip():
            raise MalformedInputError("Missing required parameter: fen")
        indexes = await self.indexes()
        return indexes.graph.transitions(fen.strip())

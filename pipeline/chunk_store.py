"""Read-through cache over the chunked game store."""

import asyncio
from typing import Iterable

from blob_store import BlobStore, chunk_key
from models import CHUNK_SIZE, Chunk, GameRecord


class ChunkStore:
    """
    Loads chunks on first access and keeps them for the life of the process.

    Chunks are immutable, so concurrent first reads of one chunk may both
    fetch it; the second write to the cache is a harmless overwrite.
    """

    def __init__(self, store: BlobStore, chunk_size: int = CHUNK_SIZE):
        self.store = store
        self.chunk_size = chunk_size
        self._cache: dict[int, Chunk | None] = {}

    def chunk_id_for(self, game_id: int) -> int:
        return game_id // self.chunk_size

    async def get(self, chunk_id: int) -> Chunk | None:
        """Chunk by id, or None if the store has no such chunk."""
        if chunk_id not in self._cache:
            data = await self.store.get_json(chunk_key(chunk_id))
            self._cache[chunk_id] = Chunk.from_dict(data) if data is not None else None
        return self._cache[chunk_id]

    async def get_game(self, game_id: int) -> GameRecord | None:
        chunk = await self.get(self.chunk_id_for(game_id))
        return self._find(chunk, game_id)

    async def get_games(self, game_ids: Iterable[int]) -> list[GameRecord]:
        """
        Games for a batch of ids, in the order given. Distinct chunks are
        fetched concurrently first; a failed fetch fails the whole batch.
        Ids that resolve to nothing are dropped.
        """
        game_ids = list(game_ids)
        chunk_ids = list(dict.fromkeys(self.chunk_id_for(g) for g in game_ids))
        await asyncio.gather(*(self.get(c) for c in chunk_ids))

        games = []
        for game_id in game_ids:
            game = self._find(self._cache.get(self.chunk_id_for(game_id)), game_id)
            if game is not None:
                games.append(game)
        return games

    @staticmethod
    def _find(chunk: Chunk | None, game_id: int) -> GameRecord | None:
        if chunk is None:
            return None
        for game in chunk.games:
            if game.idx == game_id:
                return game
        return None

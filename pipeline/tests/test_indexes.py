"""Tests for indexes.py"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from blob_store import GAME_TO_PLAYERS_KEY, MANIFEST_KEY, NAME_INDEX_KEY, FileBlobStore
from indexes import MasterIndexes
from models import ChunkManifest


async def write_store(tmp_path, players, total_games):
    store = FileBlobStore(tmp_path)
    await store.put_json(NAME_INDEX_KEY, {})
    await store.put_json(GAME_TO_PLAYERS_KEY, players)
    await store.put_json(MANIFEST_KEY, ChunkManifest(totalGames=total_games).to_dict())
    return store


@pytest.mark.asyncio
async def test_load_warns_about_padded_slots(tmp_path, capsys):
    store = await write_store(tmp_path, [["A", "B"], ["", ""], ["C", "D"]], total_games=2)

    indexes = await MasterIndexes.load(store)

    assert "1 empty placeholder" in capsys.readouterr().err
    assert indexes.players_for(2) == ("C", "D")


@pytest.mark.asyncio
async def test_game_without_player_names_is_not_a_gap(tmp_path, capsys):
    store = await write_store(tmp_path, [["", ""], ["A", "B"]], total_games=2)

    await MasterIndexes.load(store)

    assert "placeholder" not in capsys.readouterr().err


@pytest.mark.asyncio
async def test_load_reads_built_store(built_store, fens):
    indexes = await MasterIndexes.load(built_store)

    assert indexes.fen_index[fens["e4"]] == [0, 1, 2]
    assert indexes.game_ids_for_openings(["Sicilian Defense", "Queen's Pawn Game"]) == [3, 4, 6]
    assert indexes.players_for(99) is None


@pytest.mark.asyncio
async def test_load_without_name_index_fails(tmp_path):
    with pytest.raises(FileNotFoundError):
        await MasterIndexes.load(FileBlobStore(tmp_path))

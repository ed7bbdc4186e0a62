"""Pytest configuration and a small master-games corpus shared by the tests."""

import asyncio
import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from blob_store import FileBlobStore
from index_builder import build_indexes
from models import GameRecord
from query_engine import QueryEngine
from transition_graph import TransitionGraph


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: mark test as requiring a live database (skipped in CI by default)"
    )


os.environ.setdefault("DATABASE_URL", "postgresql://localhost:5432/master_games?user=postgres&password=postgres")

START = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"
E4_E5 = "rnbqkbnr/pppp1ppp/8/4p3/4P3/8/PPPP1PPP/RNBQKBNR w KQkq e6 0 2"
E4_C5 = "rnbqkbnr/pp1ppppp/8/2p5/4P3/8/PPPP1PPP/RNBQKBNR w KQkq c6 0 2"
E4_C5_BC4 = "rnbqkbnr/pp1ppppp/8/2p5/2B1P3/8/PPPP1PPP/RNBQK1NR b KQkq - 1 2"
E4_E5_NF3 = "rnbqkbnr/pppp1ppp/8/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R b KQkq - 1 2"
E4_E5_NF3_NC6 = "r1bqkbnr/pppp1ppp/2n5/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R w KQkq - 2 3"
D4 = "rnbqkbnr/pppppppp/8/8/3P4/8/PPP1PPPP/RNBQKBNR b KQkq d3 0 1"

FENS = {
    "start": START,
    "e4": E4,
    "e4_e5": E4_E5,
    "e4_c5": E4_C5,
    "e4_c5_bc4": E4_C5_BC4,
    "e4_e5_nf3": E4_E5_NF3,
    "e4_e5_nf3_nc6": E4_E5_NF3_NC6,
    "d4": D4,
}

TEST_CHUNK_SIZE = 4


def pos(fen: str) -> str:
    return fen.split(" ")[0]


def make_game(idx: int, white: str, black: str, **kwargs) -> GameRecord:
    defaults = dict(
        idx=idx,
        white=white,
        black=black,
        whiteElo=2700,
        blackElo=2700,
        whiteTitle="GM",
        blackTitle="GM",
        result="1-0",
        date="2024.01.15",
        event="Tata Steel Masters",
        site="Wijk aan Zee NED",
        moves="1. e4 e5 2. Nf3 Nc6",
        ply=4,
        source="pgnmentor",
        sourceFile="Carlsen.zip",
    )
    defaults.update(kwargs)
    return GameRecord(**defaults)


def classified(fen: str, name: str, eco: str) -> dict:
    return {"ecoJsonFen": fen, "ecoJsonOpening": name, "ecoJsonEco": eco}


def corpus_games() -> list[GameRecord]:
    kpg = classified(E4, "King's Pawn Game", "B00")
    sicilian = classified(E4_C5, "Sicilian Defense", "B20")
    return [
        make_game(0, "Carlsen, Magnus", "Caruana, Fabiano", whiteElo=2830, blackElo=2800,
                  eco="B00", moves="1. e4 e5 2. Nf3 Nf6", **kpg),
        make_game(1, "Caruana, Fabiano", "Nakamura, Hikaru", whiteElo=2800, blackElo=2850,
                  result="1/2-1/2", eco="B00", **kpg),
        make_game(2, "Firouzja, Alireza", "Nakamura, Hikaru", whiteElo=2900, blackElo=2900,
                  whiteTitle=None, blackTitle="IM", result="0-1", eco="B00",
                  moves="1. e4 e5 2. Nf3 Nc6 0-1", **kpg),
        make_game(3, "Nakamura, Hikaru", "Carlsen, Magnus", eco="B20", **sicilian),
        make_game(4, "Ding, Liren", "Caruana, Fabiano", eco="B21", **sicilian),
        make_game(5, "Carlsen, Magnus", "Ding, Liren", eco="C40",
                  **classified(E4_E5_NF3, "King's Knight Opening", "C40")),
        make_game(6, "Anand, Viswanathan", "Carlsen, Magnus", eco="A40",
                  **classified(D4, "Queen's Pawn Game", "A40")),
        make_game(7, "Anand, Viswanathan", "Ding, Liren", eco="A00", moves="1. g4 d5"),
        make_game(8, "Carlsen, Magnus", "Anand, Viswanathan", eco="B20",
                  **classified(E4_C5_BC4, "Sicilian Defense: Bowdler Attack", "B20")),
    ]


def corpus_graph() -> TransitionGraph:
    return TransitionGraph.from_dict({
        "to": {
            pos(START): [E4, D4],
            pos(E4): [E4_E5, E4_C5],
            pos(E4_C5): [E4_C5_BC4],
            pos(E4_E5): [E4_E5_NF3],
            pos(E4_E5_NF3): [E4_E5_NF3_NC6],
        },
        "from": {
            pos(E4): [START],
            pos(D4): [START],
            pos(E4_E5): [E4],
            pos(E4_C5): [E4],
            pos(E4_C5_BC4): [E4_C5],
            pos(E4_E5_NF3): [E4_E5],
            pos(E4_E5_NF3_NC6): [E4_E5_NF3],
        },
    })


@pytest.fixture
def fens():
    return dict(FENS)


@pytest.fixture
def games():
    return corpus_games()


@pytest.fixture
def graph():
    return corpus_graph()


@pytest.fixture
def built_store(tmp_path):
    """A file store with every index artifact built from the corpus."""
    store = FileBlobStore(tmp_path / "indexes")
    asyncio.run(build_indexes(corpus_games(), store, corpus_graph(), chunk_size=TEST_CHUNK_SIZE))
    return store


@pytest.fixture
def engine(built_store):
    return QueryEngine(built_store, chunk_size=TEST_CHUNK_SIZE)

"""
FastAPI Query API for the Master Games index

Endpoints:
  GET  /position?fen=...                 - Openings, continuations and players through a position
  GET  /position/games?fen=...           - Games at an exact position, best first
  GET  /position/transitions?fen=...     - Next/previous positions from the transition graph
  GET  /openings/eco                     - Openings grouped by ECO category
  POST /openings/players                 - Players across selected openings
  POST /openings/games                   - One player's games across selected openings
  GET  /games/{game_id}/moves            - Moves and headers for a game
"""

import sys
import traceback
from pathlib import Path
from typing import Literal

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from blob_store import get_blob_store
from positions import is_valid_position
from query_engine import MalformedInputError, QueryEngine

app = FastAPI(title="Master Games Index API", version="1.0.0")

SortBy = Literal["name", "gameCount"]
SortOrder = Literal["asc", "desc"]


class PlayersForOpeningsRequest(BaseModel):
    openings: list[str]
    page: int = Field(0, ge=0)
    pageSize: int = Field(25, ge=1, le=500)
    sortBy: SortBy = "name"
    sortOrder: SortOrder = "asc"


class PlayerGamesRequest(BaseModel):
    player: str
    openings: list[str]


def get_engine() -> QueryEngine:
    """One engine per process, built from MASTER_GAMES_STORE on first request."""
    engine = getattr(app.state, "engine", None)
    if engine is None:
        engine = QueryEngine(get_blob_store())
        app.state.engine = engine
    return engine


def require_fen(fen: str | None, param: str = "fen") -> str:
    if not fen or not fen.strip():
        raise HTTPException(status_code=400, detail=f"Missing required parameter: {param}")
    fen = fen.replace("_", " ").strip()
    if not is_valid_position(fen):
        raise HTTPException(status_code=400, detail=f"Invalid FEN: {param}")
    return fen


@app.exception_handler(MalformedInputError)
async def malformed_input_handler(request: Request, exc: MalformedInputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Query and body validation failures are client-input errors like any other: 400."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    print(f"Error handling {request.url.path}: {exc}", file=sys.stderr)
    traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/position")
async def resolve_position(
    fen: str | None = Query(None),
    fallbackFen: str | None = Query(None),
    page: int = Query(0, ge=0),
    pageSize: int = Query(25, ge=1, le=500),
    sortBy: SortBy = Query("name"),
    sortOrder: SortOrder = Query("asc"),
    engine: QueryEngine = Depends(get_engine),
):
    """Openings at a position (with fallbacks), continuations and aggregated players."""
    fen = require_fen(fen)
    fallback = require_fen(fallbackFen, "fallbackFen") if fallbackFen else None
    return await engine.resolve_position(fen, fallback, page, pageSize, sortBy, sortOrder)


@app.get("/position/games")
async def list_games_at_position(
    fen: str | None = Query(None),
    page: int = Query(0, ge=0),
    pageSize: int = Query(20, ge=1, le=200),
    engine: QueryEngine = Depends(get_engine),
):
    """Games indexed at this exact position (position-only fallback), sorted by title then rating."""
    return await engine.list_games_at_position(require_fen(fen), page, pageSize)


@app.get("/position/transitions")
async def get_transitions(fen: str | None = Query(None), engine: QueryEngine = Depends(get_engine)):
    return await engine.get_transitions(require_fen(fen))


@app.get("/openings/eco")
async def list_openings_by_eco_category(engine: QueryEngine = Depends(get_engine)):
    return await engine.list_openings_by_eco_category()


@app.post("/openings/players")
async def list_players_for_openings(body: PlayersForOpeningsRequest, engine: QueryEngine = Depends(get_engine)):
    return await engine.list_players_for_openings(
        body.openings, body.page, body.pageSize, body.sortBy, body.sortOrder
    )


@app.post("/openings/games")
async def list_games_for_player_and_openings(body: PlayerGamesRequest, engine: QueryEngine = Depends(get_engine)):
    return await engine.list_games_for_player_and_openings(body.player, body.openings)


@app.get("/games/{game_id}/moves")
async def get_game_moves(game_id: int, engine: QueryEngine = Depends(get_engine)):
    result = await engine.get_game_moves(game_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return result


@app.get("/health")
def health():
    return {"status": "ok"}

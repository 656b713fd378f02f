"""
Strategy Service - FastAPI Application
Provides heatmap, move recommendation, network export and history endpoints
"""

import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .ai.recommender import recommend, tie_set
from .ai.value_engine import ValueEngine
from .board_rules import BoardRules
from .config import load_config
from .errors import MalformedPositionError, ValidationError
from .models import Cell, Mark, Position, ScoreMap
from .petri.builder import NetworkBuilder
from .replay.history import format_moves, parse_moves, parse_preferred_cell, reconstruct

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Strategy Service",
    description="ODE-based strategic value heatmap for tic-tac-toe",
    version="1.0.0"
)

cors_origins = os.getenv("CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

config = load_config()
engine = ValueEngine(config=config)
builder = NetworkBuilder()


class BoardRequest(BaseModel):
    """Board given as rows of "X", "O" or "" (empty board when omitted)"""
    board: Optional[List[List[str]]] = None


class RecommendRequest(BoardRequest):
    preferred: Optional[str] = None


class NetworkRequest(BoardRequest):
    move: Optional[str] = None


class ReconstructRequest(BaseModel):
    moves: str = ""
    index: Optional[int] = None


class HeatmapResponse(BaseModel):
    values: Dict[str, float]
    details: Dict[str, Dict[str, Any]]
    current_player: str


class RecommendResponse(BaseModel):
    cell: Optional[str]
    tie_set: List[str]
    values: Dict[str, float]
    current_player: str


class ReconstructResponse(BaseModel):
    board: List[List[str]]
    events: List[str]
    moves: str
    current_player: str
    winner: Optional[str] = None


def _position_from_board(board: Optional[List[List[str]]]) -> Position:
    if board is None:
        return Position.empty()
    if not board or any(len(row) != len(board) for row in board):
        raise MalformedPositionError(
            "Board must be a non-empty square grid",
            context={"rows": len(board)},
        )
    rows = []
    for r, row in enumerate(board):
        normalized = []
        for c, value in enumerate(row):
            value = (value or "").strip().upper()
            if value not in (Mark.X.value, Mark.O.value, Mark.EMPTY.value):
                raise MalformedPositionError(f"Unknown mark {value!r}", row=r, col=c)
            normalized.append(value)
        rows.append(normalized)
    position = Position.from_rows(rows)
    BoardRules.validate_position(position)
    return position


def _details(score_map: ScoreMap) -> Dict[str, Dict[str, Any]]:
    return {
        key: {
            "WinX": detail.win_x,
            "WinO": detail.win_o,
            "score": detail.score,
            "failed": detail.failed,
        }
        for key, detail in score_map.details.items()
    }


@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "service": "Strategy Service",
        "status": "running",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    """Health check for container orchestration"""
    return {"status": "healthy"}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@app.post("/api/heatmap", response_model=HeatmapResponse)
async def heatmap(request: Optional[BoardRequest] = None):
    """
    Strategic value of every cell for the player to move.

    Occupied cells carry 0. With no body the empty board is evaluated.
    """
    try:
        position = _position_from_board(request.board if request else None)
        score_map = await engine.evaluate(position)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    return HeatmapResponse(
        values=score_map.values,
        details=_details(score_map),
        current_player=score_map.player.value,
    )


@app.post("/api/recommend", response_model=RecommendResponse)
async def recommend_move(request: RecommendRequest):
    try:
        position = _position_from_board(request.board)
        score_map = await engine.evaluate(position)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    preferred = parse_preferred_cell(request.preferred, position.size)
    cell = recommend(score_map, position, preferred, config.tie_epsilon)
    tied = tie_set(score_map, position, config.tie_epsilon)
    return RecommendResponse(
        cell=cell.to_key() if cell else None,
        tie_set=[c.to_key() for c in tied],
        values=score_map.values,
        current_player=score_map.player.value,
    )


@app.post("/api/network")
async def network(request: NetworkRequest):
    """JSON-LD export of the network for a position and optional move"""
    try:
        position = _position_from_board(request.board)
        move = None
        if request.move:
            try:
                move = Cell.from_key(request.move)
            except ValueError as e:
                raise MalformedPositionError(str(e), context={"move": request.move})
        net = builder.build(position, move)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    return net.to_dict()


@app.post("/api/reconstruct", response_model=ReconstructResponse)
async def reconstruct_position(request: ReconstructRequest):
    """Board after the first `index + 1` moves of a compact move list"""
    events = parse_moves(request.moves)
    index = len(events) - 1 if request.index is None else request.index
    try:
        position = reconstruct(events, index)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    prefix = events[: index + 1]
    return ReconstructResponse(
        board=position.to_rows(),
        events=[e.event_type for e in prefix],
        moves=format_moves(prefix),
        current_player=BoardRules.player_to_move(position).value,
        winner=BoardRules.winner(position),
    )


if __name__ == "__main__":
    import uvicorn

    port_str = os.getenv("STRATEGY_SERVICE_PORT", "8002")
    try:
        port = int(port_str)
    except ValueError:
        port = 8002

    uvicorn.run(app, host="0.0.0.0", port=port)

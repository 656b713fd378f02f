#!/usr/bin/env python
"""Print the strategic-value heatmap for a position.

Usage:
    python -m strategy_service.cli --moves X11,O00
    python -m strategy_service.cli --moves X11,O00,X22 --index 1 --best 22
    python -m strategy_service.cli --moves X00 --horizon 3.0 --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import replace
from typing import List, Optional

from .ai.recommender import recommend, tie_set
from .ai.value_engine import ValueEngine
from .board_rules import BoardRules
from .config import load_config
from .errors import StrategyError
from .models import Cell, Mark, Position, ScoreMap
from .replay.history import format_moves, parse_moves, parse_preferred_cell, reconstruct

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Tic-tac-toe strategic value heatmap")
    parser.add_argument("--moves", default="", help="Comma-separated moves, e.g. X11,O00")
    parser.add_argument(
        "--index",
        type=int,
        default=None,
        help="Show the position after this many moves minus one (default: all)",
    )
    parser.add_argument("--best", default=None, help="Preferred cell on ties, e.g. 22")
    parser.add_argument("--horizon", type=float, default=None, help="ODE integration horizon")
    parser.add_argument("--step-size", type=float, default=None, help="ODE step size")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a grid")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def format_grid(position: Position, score_map: ScoreMap, best: Optional[Cell]) -> str:
    lines = []
    for r in range(position.size):
        cells = []
        for c in range(position.size):
            mark = position.mark_at(r, c)
            if mark != Mark.EMPTY:
                cells.append(f"{mark.value:^8}")
                continue
            cell = Cell(row=r, col=c)
            marker = "*" if best == cell else " "
            cells.append(f"{score_map.value(cell):7.4f}{marker}")
        lines.append("|".join(cells))
    return "\n".join(lines)


async def run(args: argparse.Namespace) -> int:
    config = load_config()
    if args.horizon is not None:
        config = replace(config, horizon=args.horizon)
    if args.step_size is not None:
        config = replace(config, step_size=args.step_size)

    events = parse_moves(args.moves)
    index = len(events) - 1 if args.index is None else args.index
    position = reconstruct(events, index)
    preferred = parse_preferred_cell(args.best, position.size)

    engine = ValueEngine(config=config)
    try:
        score_map = await engine.evaluate(position)
    finally:
        engine.close()

    best = recommend(score_map, position, preferred, config.tie_epsilon)
    if args.json:
        print(json.dumps({
            "moves": format_moves(events[: index + 1]),
            "board": position.to_rows(),
            "current_player": score_map.player.value,
            "values": score_map.values,
            "best": best.to_key() if best else None,
            "tie_set": [c.to_key() for c in tie_set(score_map, position, config.tie_epsilon)],
            "winner": BoardRules.winner(position),
        }, indent=2))
        return 0

    print(f"Moves: {format_moves(events[: index + 1]) or '(none)'}")
    print(f"To move: {score_map.player.value}")
    print(format_grid(position, score_map, best))
    winner = BoardRules.winner(position)
    if winner:
        print(f"Result: {winner}")
    print(f"Recommended: {best.to_key() if best else 'none'}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        return asyncio.run(run(args))
    except StrategyError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

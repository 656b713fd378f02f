"""Move history, reconstruction and revert-by-replay."""

from .history import (
    events_from_backend,
    format_moves,
    parse_moves,
    parse_preferred_cell,
    reconstruct,
)
from .session import GameSession, SessionManager

__all__ = [
    "GameSession",
    "SessionManager",
    "events_from_backend",
    "format_moves",
    "parse_moves",
    "parse_preferred_cell",
    "reconstruct",
]

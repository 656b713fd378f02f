"""Game sessions backed by the workflow service, with revert-and-replay.

Reverting never edits the backend's log. It opens a brand-new instance and
replays the kept prefix move by move, so the new instance's state comes from
the same rules that produced the original log. If the backend rejects any
replayed move the revert is aborted and the caller keeps its old session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from ..backend_client import GameBackend, GameSnapshot
from ..board_rules import BoardRules
from ..errors import IllegalMoveError, MoveRejectedError, ReplayInconsistencyError
from ..metrics import REPLAYED_MOVES, REVERTS
from ..models import (
    DEFAULT_BOARD_SIZE,
    RESET_MOVE_ID,
    Cell,
    Mark,
    MoveEvent,
    Position,
    move_id_for,
)
from .history import events_from_backend, reconstruct

logger = logging.getLogger(__name__)

__all__ = ["GameSession", "SessionManager"]


@dataclass
class GameSession:
    """Client-side view of one backend game instance.

    After a revert, `events` still holds the full log and `reverted_to_index`
    marks the last event the backend instance has seen. The tail is dropped
    on the next move.
    """

    game_id: str
    events: List[MoveEvent] = field(default_factory=list)
    position: Position = field(default_factory=Position.empty)
    enabled: List[str] = field(default_factory=list)
    reverted_to_index: Optional[int] = None
    preferred_cell: Optional[Cell] = None

    @property
    def is_reverted(self) -> bool:
        return self.reverted_to_index is not None

    @property
    def active_events(self) -> List[MoveEvent]:
        """Events the backend instance actually holds."""
        if self.reverted_to_index is None:
            return list(self.events)
        return list(self.events[: self.reverted_to_index + 1])

    @property
    def current_player(self) -> Mark:
        """Mover from the enabled moves, or from mark parity if they don't say."""
        x_moves = any(m.startswith("x_") for m in self.enabled)
        o_moves = any(m.startswith("o_") for m in self.enabled)
        if x_moves and not o_moves:
            return Mark.X
        if o_moves and not x_moves:
            return Mark.O
        return BoardRules.player_to_move(self.position)

    @property
    def game_over(self) -> bool:
        return not any(m.startswith(("x_", "o_")) for m in self.enabled)

    @property
    def winner(self) -> Optional[str]:
        return BoardRules.winner(self.position)


class SessionManager:
    def __init__(self, backend: GameBackend, size: int = DEFAULT_BOARD_SIZE):
        self.backend = backend
        self.size = size

    async def new_game(self, preferred_cell: Optional[Cell] = None) -> GameSession:
        snapshot = await self.backend.create_game()
        return GameSession(
            game_id=snapshot.game_id,
            position=Position.empty(self.size),
            enabled=list(snapshot.enabled),
            preferred_cell=preferred_cell,
        )

    async def revert_to(self, session: GameSession, index: int) -> GameSession:
        """Return a new session whose backend instance holds events[0..index]."""
        position = reconstruct(session.events, index, self.size)

        snapshot = await self.backend.create_game()
        logger.info(
            "Reverting game %s to event %d on new instance %s",
            session.game_id,
            index,
            snapshot.game_id,
        )
        snapshot = await self._replay(snapshot, session.events[: index + 1])
        REVERTS.labels("success").inc()

        return GameSession(
            game_id=snapshot.game_id,
            events=list(session.events),
            position=position,
            enabled=list(snapshot.enabled),
            reverted_to_index=index,
            preferred_cell=session.preferred_cell,
        )

    async def _replay(self, snapshot: GameSnapshot, events: List[MoveEvent]) -> GameSnapshot:
        game_id = snapshot.game_id
        for i, event in enumerate(events):
            move_id = event.transition_id
            try:
                snapshot = await self.backend.apply_move(game_id, move_id)
            except MoveRejectedError as e:
                REVERTS.labels("inconsistent").inc()
                logger.error(
                    "Replay rejected at event %d (%s) on instance %s: %s",
                    i,
                    move_id,
                    game_id,
                    e.message,
                )
                raise ReplayInconsistencyError(
                    f"Backend rejected replayed move {move_id}",
                    event_index=i,
                    move_id=move_id,
                    original_error=e,
                ) from e
            REPLAYED_MOVES.inc()
        return snapshot

    async def play(self, session: GameSession, cell: Cell) -> GameSession:
        """Apply a move for whichever player the backend currently enables."""
        BoardRules.validate_move(session.position, cell)

        mover = session.current_player
        candidates = [
            move_id_for(mover, cell.row, cell.col),
            move_id_for(mover.opponent, cell.row, cell.col),
        ]
        move_id = next((m for m in candidates if m in session.enabled), None)
        if move_id is None:
            raise IllegalMoveError(
                f"No enabled move for cell {cell.to_key()}",
                move_id=candidates[0],
                context={"enabled": list(session.enabled)},
            )

        if session.is_reverted:
            logger.info(
                "Resuming play after event %d; dropping %d later event(s)",
                session.reverted_to_index,
                len(session.events) - session.reverted_to_index - 1,
            )

        snapshot = await self.backend.apply_move(session.game_id, move_id)
        return await self._sync(session, snapshot)

    async def reset(self, session: GameSession) -> GameSession:
        if RESET_MOVE_ID not in session.enabled:
            raise IllegalMoveError(
                "Reset is only available once the game is over",
                move_id=RESET_MOVE_ID,
            )
        snapshot = await self.backend.apply_move(session.game_id, RESET_MOVE_ID)
        return await self._sync(session, snapshot)

    async def refresh(self, session: GameSession) -> GameSession:
        """Re-read enabled moves (and, unless reverted, the event log)."""
        snapshot = await self.backend.get_state(session.game_id)
        if session.is_reverted:
            # Keep the full log on display until play resumes.
            return replace(session, enabled=list(snapshot.enabled))
        return await self._sync(session, snapshot)

    async def _sync(self, session: GameSession, snapshot: GameSnapshot) -> GameSession:
        events = events_from_backend(await self.backend.fetch_events(session.game_id))
        return GameSession(
            game_id=session.game_id,
            events=events,
            position=reconstruct(events, len(events) - 1, self.size),
            enabled=list(snapshot.enabled),
            preferred_cell=session.preferred_cell,
        )

"""Client for the tic-tac-toe workflow backend.

The backend is the authority for live games: it owns the event log, decides
which moves are enabled and rejects anything else. This module only speaks
its JSON API:

    POST {base}/api/tictactoe                 -> new instance
    POST {base}/api/{move_id}                 -> apply a move
    GET  {base}/api/tictactoe/{id}            -> state + enabled moves
    GET  {base}/api/tictactoe/{id}/events     -> event log
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from .config import EngineConfig
from .errors import BackendError, MoveRejectedError

logger = logging.getLogger(__name__)

__all__ = ["GameBackend", "GameSnapshot", "WorkflowClient"]


@dataclass
class GameSnapshot:
    """Backend view of one game instance after a call."""

    game_id: str
    enabled: List[str] = field(default_factory=list)
    state: Dict[str, Any] = field(default_factory=dict)


class GameBackend(ABC):
    """Operations the session manager needs from a game backend."""

    @abstractmethod
    async def create_game(self) -> GameSnapshot:
        ...

    @abstractmethod
    async def apply_move(self, game_id: str, move_id: str) -> GameSnapshot:
        """Fire `move_id`; raises MoveRejectedError if it is not enabled."""

    @abstractmethod
    async def get_state(self, game_id: str) -> GameSnapshot:
        ...

    @abstractmethod
    async def fetch_events(self, game_id: str) -> List[Dict[str, Any]]:
        """Raw event entries, oldest first."""

    async def close(self) -> None:
        return None


def _snapshot(game_id: str, body: Dict[str, Any]) -> GameSnapshot:
    enabled = body.get("enabled_transitions") or []
    state = body.get("state") or {}
    return GameSnapshot(game_id=game_id, enabled=list(enabled), state=dict(state))


class WorkflowClient(GameBackend):
    """aiohttp implementation of GameBackend."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        config: Optional[EngineConfig] = None,
    ):
        config = config or EngineConfig()
        self.base_url = (base_url or config.backend_url).rstrip("/")
        self.timeout = timeout if timeout is not None else config.backend_timeout_sec
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "WorkflowClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Tuple[int, Any]:
        session = await self._get_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.request(method, url, json=payload) as resp:
                status = resp.status
                try:
                    body = await resp.json(content_type=None)
                except ValueError:
                    body = None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise BackendError(f"Backend request failed: {e}", url=url) from e

        if status >= 500:
            raise BackendError(f"Backend error {status}", status=status, url=url)
        logger.debug("%s %s -> %d", method, url, status)
        return status, body

    def _expect_object(self, status: int, body: Any, path: str) -> Dict[str, Any]:
        if status >= 400 or not isinstance(body, dict):
            raise BackendError(
                f"Unexpected backend response {status}",
                status=status,
                url=f"{self.base_url}{path}",
            )
        return body

    async def create_game(self) -> GameSnapshot:
        path = "/api/tictactoe"
        status, body = await self._request("POST", path, {})
        body = self._expect_object(status, body, path)
        game_id = body.get("aggregate_id")
        if not game_id:
            raise BackendError("Backend did not return an aggregate_id", url=self.base_url + path)
        logger.info("Created game instance %s", game_id)
        return _snapshot(str(game_id), body)

    async def apply_move(self, game_id: str, move_id: str) -> GameSnapshot:
        path = f"/api/{move_id}"
        status, body = await self._request(
            "POST", path, {"aggregate_id": game_id, "data": {}}
        )
        if 400 <= status < 500:
            detail = None
            if isinstance(body, dict):
                detail = body.get("error") or body.get("message")
            raise MoveRejectedError(
                detail or f"Move rejected with status {status}",
                move_id=move_id,
                instance_id=game_id,
                context={"status": status},
            )
        body = self._expect_object(status, body, path)
        if body.get("error"):
            raise MoveRejectedError(
                str(body["error"]), move_id=move_id, instance_id=game_id
            )
        return _snapshot(game_id, body)

    async def get_state(self, game_id: str) -> GameSnapshot:
        path = f"/api/tictactoe/{game_id}"
        status, body = await self._request("GET", path)
        return _snapshot(game_id, self._expect_object(status, body, path))

    async def fetch_events(self, game_id: str) -> List[Dict[str, Any]]:
        path = f"/api/tictactoe/{game_id}/events"
        status, body = await self._request("GET", path)
        body = self._expect_object(status, body, path)
        events = body.get("events") or []
        return [e for e in events if isinstance(e, dict)]

"""
Strategy Service Error Hierarchy

Unified exception hierarchy for consistent error handling across the service.
All custom exceptions inherit from StrategyError for easy catching and filtering.

Usage:
    from strategy_service.errors import MalformedPositionError, ReplayInconsistencyError

    try:
        session = await manager.revert_to(session, index)
    except ReplayInconsistencyError as e:
        logger.error(f"Revert aborted: {e.message}, move: {e.context.get('move_id')}")
"""

from typing import Any

__all__ = [
    # Backend errors
    "BackendError",
    "ConfigurationError",
    "HistoryIndexError",
    "IllegalMoveError",
    # Position errors
    "MalformedPositionError",
    "MoveRejectedError",
    # Replay errors
    "ReplayInconsistencyError",
    "RetryableError",
    # Solver errors
    "SolverError",
    # Base error
    "StrategyError",
    # Validation errors
    "ValidationError",
]


class StrategyError(Exception):
    """Base exception for all strategy service errors.

    Attributes:
        code: Machine-readable error code for categorization
        message: Human-readable error description
        context: Additional context for debugging
    """
    code: str = "STRATEGY_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(StrategyError):
    """Base class for input validation errors."""
    code: str = "VALIDATION_ERROR"


class MalformedPositionError(ValidationError):
    """Position or move input that cannot be evaluated.

    Raised synchronously, before any network is built or any solver call is
    made, when the caller supplies a non-square grid, an unknown mark, an
    impossible mark count, an out-of-range coordinate or an occupied cell.

    Attributes:
        row/col: Offending coordinate, when the error is about a cell
    """
    code: str = "MALFORMED_POSITION"

    def __init__(
        self,
        message: str,
        row: int | None = None,
        col: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        if row is not None:
            self.context["row"] = row
        if col is not None:
            self.context["col"] = col


class IllegalMoveError(ValidationError):
    """Move that is well-formed but not currently enabled.

    Raised when the cell is empty but the backend's enabled-move set offers
    no transition for it (wrong turn, game over).
    """
    code: str = "ILLEGAL_MOVE"

    def __init__(
        self,
        message: str,
        move_id: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        if move_id:
            self.context["move_id"] = move_id


class HistoryIndexError(ValidationError):
    """Event-log index outside the recorded history."""
    code: str = "HISTORY_INDEX"

    def __init__(
        self,
        message: str,
        index: int | None = None,
        log_length: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        if index is not None:
            self.context["index"] = index
        if log_length is not None:
            self.context["log_length"] = log_length


class ConfigurationError(ValidationError):
    """Invalid configuration."""
    code: str = "CONFIGURATION_ERROR"


# =============================================================================
# Solver Errors
# =============================================================================


class SolverError(StrategyError):
    """Numeric integration failed.

    Raised by integrators. The value engine recovers from it per cell by
    scoring that cell 0, so it is never surfaced to a user.
    """
    code: str = "SOLVER_ERROR"

    def __init__(
        self,
        message: str,
        net_name: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        if net_name:
            self.context["net_name"] = net_name


# =============================================================================
# Backend Errors
# =============================================================================


class RetryableError(StrategyError):
    """Error that can be retried (network issues, transient failures)."""
    code: str = "RETRYABLE_ERROR"


class BackendError(RetryableError):
    """Workflow backend unreachable or answered with a server error."""
    code: str = "BACKEND_ERROR"

    def __init__(
        self,
        message: str,
        status: int | None = None,
        url: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        if status is not None:
            self.context["status"] = status
        if url:
            self.context["url"] = url


class MoveRejectedError(StrategyError):
    """Backend refused to apply a move that is not currently enabled."""
    code: str = "MOVE_REJECTED"

    def __init__(
        self,
        message: str,
        move_id: str | None = None,
        instance_id: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.move_id = move_id
        if move_id:
            self.context["move_id"] = move_id
        if instance_id:
            self.context["instance_id"] = instance_id


# =============================================================================
# Replay Errors
# =============================================================================


class ReplayInconsistencyError(StrategyError):
    """A replayed move was rejected while reverting.

    Client-side and server-side rules disagree about a recorded move. The
    revert is aborted and the caller keeps its previous session; retrying
    silently cannot fix this.

    Attributes:
        event_index: Position of the rejected event in the log
        move_id: Backend move identifier that was rejected
    """
    code: str = "REPLAY_INCONSISTENCY"

    def __init__(
        self,
        message: str,
        event_index: int | None = None,
        move_id: str | None = None,
        original_error: Exception | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.event_index = event_index
        self.original_error = original_error
        if event_index is not None:
            self.context["event_index"] = event_index
        if move_id:
            self.context["move_id"] = move_id
        if original_error:
            self.context["original_error"] = str(original_error)

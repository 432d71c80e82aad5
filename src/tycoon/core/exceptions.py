"""
Custom exception hierarchy for the turn engine, services and runner.

Provides typed errors that can be handled consistently across
the core engine, services, and API layer.
"""


class MonopolyError(Exception):
    """Base exception for all game-related errors."""

    retryable = False


class InvalidStateError(MonopolyError):
    """A referenced row is missing or the game is not in a playable state."""


class GameNotFoundError(InvalidStateError):
    """Game does not exist."""


class NotYourTurnError(MonopolyError):
    """The seat does not hold the turn."""


class AlreadyRolledError(MonopolyError):
    """The seat has already rolled this round."""


class InvalidMoveError(MonopolyError):
    """A claimed move disagrees with the movement rules."""


class InvalidActionError(MonopolyError):
    """Action is not legal in the current state."""


class TransientLockTimeoutError(MonopolyError):
    """Lock contention or a serialization conflict; retry the whole operation."""

    retryable = True


class RunnerTickError(MonopolyError):
    """An autonomous tick failed."""

    def __init__(self, game_id: int, cause: BaseException):
        super().__init__(f"Tick failed for game {game_id}: {cause}")
        self.game_id = game_id
        self.cause = cause


class DecisionSourceError(MonopolyError):
    """A decision source could not produce a decision."""


class LLMError(DecisionSourceError):
    """LLM agent communication failed."""

"""
Error taxonomy for UNO game operations.

Every failed operation raises a GameError subclass before any state is
mutated. The transport layer turns the error into an ``error`` notification
that is sent to the initiating player only.
"""

from typing import Optional

from notifications import Notification, error


class GameError(Exception):
    """
    Base exception for rejected game operations.

    Attributes:
        kind: Stable machine-readable error kind (sent to clients).
        message: Human-readable explanation.
    """

    kind: str = "game_error"
    default_message: str = "Game error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_notification(self) -> Notification:
        """Build the ``error`` notification addressed to the initiator."""
        return error(self.kind, self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class NotYourTurn(GameError):
    kind = "not_your_turn"
    default_message = "Not your turn!"


class CardNotInHand(GameError):
    kind = "card_not_in_hand"
    default_message = "Card not in hand!"


class IllegalMove(GameError):
    kind = "illegal_move"
    default_message = "Cannot play that card!"


class InsufficientPlayers(GameError):
    kind = "insufficient_players"
    default_message = "Need at least 2 players"


class SessionNotFound(GameError):
    kind = "session_not_found"
    default_message = "Game not found"


class SessionFull(GameError):
    kind = "session_full"
    default_message = "Game is full"


class EmptyDeck(GameError):
    """No card can be drawn: draw pile empty and nothing to reshuffle."""

    kind = "empty_deck"
    default_message = "No cards left to draw"


class AlreadyStarted(GameError):
    kind = "already_started"
    default_message = "Game already in progress"


class NotSessionCreator(GameError):
    kind = "not_session_creator"
    default_message = "Only the game creator can do that"


class InvalidMessage(GameError):
    kind = "invalid_message"
    default_message = "Malformed message"


class AlreadyInSession(GameError):
    kind = "already_in_session"
    default_message = "You are already in another game"

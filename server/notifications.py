"""
Outbound notifications produced by game session transitions.

Every state transition returns an ordered list of notifications. The session
delivers them in that order: broadcast notifications go to every connected
player in the session, targeted ones (e.g. the drawn card) only to their
recipient. Notifications are plain data so the transport can serialize them
without knowing anything about game objects.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class NotificationType(str, Enum):
    """All notification types a session can emit (wire names)."""

    # Lobby / lifecycle
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    GAME_STARTED = "game_started"
    GAME_FINISHED = "game_finished"
    SESSION_DELETED = "session_deleted"

    # Gameplay
    CARD_PLAYED = "card_played"
    CARD_DRAWN = "card_drawn"
    PLAYER_DREW_CARD = "player_drew_card"
    PLAYER_SKIPPED = "player_skipped"
    TURN_CHANGED = "turn_changed"
    TURN_TIMED_OUT = "turn_timed_out"

    # Sent to the initiating player only
    ERROR = "error"


@dataclass
class Notification:
    """
    A single outbound message.

    Attributes:
        type: Notification type (wire name).
        data: Type-specific payload fields.
        target: Player ID of the sole recipient, or None to broadcast.
    """

    type: NotificationType
    data: dict = field(default_factory=dict)
    target: Optional[str] = None

    @property
    def is_broadcast(self) -> bool:
        return self.target is None

    def to_dict(self) -> dict:
        """Serialize for the wire: ``{"type": ..., **data}``."""
        return {"type": self.type.value, **self.data}


# =============================================================================
# Factory Functions
# =============================================================================
# Card arguments are already-serialized card dicts (see Card.to_dict).


def game_started(current_player: str, players: list[str]) -> Notification:
    return Notification(
        NotificationType.GAME_STARTED,
        {
            "message": "Game has started!",
            "current_player": current_player,
            "players": players,
        },
    )


def player_joined(player_id: str, username: str) -> Notification:
    return Notification(
        NotificationType.PLAYER_JOINED,
        {
            "player_id": player_id,
            "username": username,
            "message": f"{username} joined the game",
        },
    )


def player_left(player_id: str, username: str, current_player: Optional[str] = None) -> Notification:
    return Notification(
        NotificationType.PLAYER_LEFT,
        {
            "player_id": player_id,
            "username": username,
            "current_player": current_player,
            "message": f"{username} has left the game",
        },
    )


def card_played(
    player_id: str,
    card: dict,
    next_player: str,
    cards_left: int,
    special_action: str = "",
) -> Notification:
    """
    Create a CardPlayed notification.

    Args:
        player_id: Player who played the card.
        card: The card as placed on the discard pile (wilds carry their chosen color).
        next_player: Player whose turn it now is (after skips and penalties).
        cards_left: Cards remaining in the player's hand.
        special_action: Effect label ("Skip", "Reverse", "Draw 2", "Wild Draw 4" or "").
    """
    return Notification(
        NotificationType.CARD_PLAYED,
        {
            "player_id": player_id,
            "card": card,
            "next_player": next_player,
            "cards_left": cards_left,
            "special_action": special_action,
        },
    )


def card_drawn(player_id: str, card: dict) -> Notification:
    """The drawn card itself, visible to the drawer only."""
    return Notification(
        NotificationType.CARD_DRAWN,
        {"card": card},
        target=player_id,
    )


def player_drew_card(player_id: str, cards_left: int) -> Notification:
    return Notification(
        NotificationType.PLAYER_DREW_CARD,
        {"player_id": player_id, "cards_left": cards_left},
    )


def player_skipped(player_id: str, cards_drawn: int, cards_left: int) -> Notification:
    return Notification(
        NotificationType.PLAYER_SKIPPED,
        {
            "player_id": player_id,
            "cards_drawn": cards_drawn,
            "cards_left": cards_left,
            "message": f"Player drew {cards_drawn} cards and was skipped",
        },
    )


def turn_changed(current_player: str) -> Notification:
    return Notification(
        NotificationType.TURN_CHANGED,
        {"current_player": current_player},
    )


def turn_timed_out(player_id: str, cards_left: int) -> Notification:
    return Notification(
        NotificationType.TURN_TIMED_OUT,
        {
            "player_id": player_id,
            "cards_left": cards_left,
            "message": "Turn timed out - drew a card and turn skipped",
        },
    )


def game_finished(winner_id: str) -> Notification:
    return Notification(
        NotificationType.GAME_FINISHED,
        {"winner_id": winner_id, "message": "Game Over!"},
    )


def session_deleted(reason: str, auto_deleted: bool = False) -> Notification:
    return Notification(
        NotificationType.SESSION_DELETED,
        {"reason": reason, "auto_deleted": auto_deleted},
    )


def error(kind: str, message: str, target: Optional[str] = None) -> Notification:
    return Notification(
        NotificationType.ERROR,
        {"kind": kind, "message": message},
        target=target,
    )


def notification_types(notifications: list[Notification]) -> list[str]:
    """Wire names of a notification list, in order (handy for logs and tests)."""
    return [n.type.value for n in notifications]


def find(notifications: list[Notification], ntype: NotificationType) -> Optional[Notification]:
    """First notification of the given type, or None."""
    for n in notifications:
        if n.type == ntype:
            return n
    return None


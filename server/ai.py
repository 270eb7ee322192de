"""AI decision-making for computer-controlled UNO players."""

import logging
import os
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from cards import Card, Color
from constants import AI_NAME_PREFIX, COLOR_PRIORITY
from rules import can_play

if TYPE_CHECKING:
    from session import GameSession


# Debug logging configuration
# Set AI_DEBUG=1 environment variable to enable detailed AI decision logging
AI_DEBUG = os.environ.get("AI_DEBUG", "0") == "1"

# Create a dedicated logger for AI decisions
ai_logger = logging.getLogger("uno.ai")
if AI_DEBUG:
    ai_logger.setLevel(logging.DEBUG)
    # Add console handler if not already present
    if not ai_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [AI] %(message)s", datefmt="%H:%M:%S"
        ))
        ai_logger.addHandler(handler)


def ai_log(message: str):
    """Log AI decision info when AI_DEBUG is enabled."""
    if AI_DEBUG:
        ai_logger.debug(message)


def ai_player_name(number: int) -> str:
    """Display name for the n-th AI player added to a session."""
    return f"{AI_NAME_PREFIX}{number}"


@dataclass(frozen=True)
class AIMove:
    """
    The AI's decision for one turn.

    Attributes:
        card: Card to play, or None to draw.
        chosen_color: Color to name when `card` is a wild.
        reason: Short explanation for debug logs.
    """

    card: Optional[Card] = None
    chosen_color: Optional[Color] = None
    reason: str = ""

    @property
    def is_draw(self) -> bool:
        return self.card is None


class UnoAI:
    """
    Fixed-priority UNO strategy.

    Given the same hand and top card the AI always makes the same move:
    dump action cards first, then follow color, then anything legal, and
    draw only when nothing can be played.
    """

    @staticmethod
    def legal_cards(hand: list[Card], top_card: Card) -> list[Card]:
        return [card for card in hand if can_play(card, top_card)]

    @staticmethod
    def choose_wild_color(hand: list[Card]) -> Color:
        """
        Pick the color the AI holds most of.

        Wild cards in the hand do not count. Ties (and a hand with no
        colored cards) go to the latest color in COLOR_PRIORITY.
        """
        counts = Counter(
            card.color.value for card in hand
            if not card.is_wild and card.color != Color.WILD
        )
        best = max(reversed(COLOR_PRIORITY), key=lambda color: counts[color])
        return Color(best)

    @classmethod
    def choose_move(cls, hand: list[Card], top_card: Card) -> AIMove:
        """
        Decide what to do this turn.

        Args:
            hand: The AI player's cards, in hand order.
            top_card: Top card of the discard pile.

        Returns:
            AIMove to play a card (with a color for wilds) or to draw.
        """
        legal = cls.legal_cards(hand, top_card)
        if not legal:
            return AIMove(reason="no legal card")

        choice = next((card for card in legal if card.is_action), None)
        reason = "action card"
        if choice is None:
            choice = next(
                (card for card in legal if not card.is_wild and card.color == top_card.color),
                None,
            )
            reason = "color match"
        if choice is None:
            choice = legal[0]
            reason = "first legal card"

        chosen_color = None
        if choice.is_wild:
            remaining = list(hand)
            remaining.remove(choice)
            chosen_color = cls.choose_wild_color(remaining)

        return AIMove(card=choice, chosen_color=chosen_color, reason=reason)


async def process_ai_turn(session: "GameSession", ai_player_id: str) -> None:
    """
    Take an AI player's turn in a session.

    The move goes through the same session transition a human action would,
    under the session lock. If the turn has already moved on (a stale
    scheduled callback) nothing happens.
    """
    player = session.players.get(ai_player_id)
    name = player.username if player else ai_player_id
    ai_log(f"{name} taking turn in {session.session_id}")
    await session.run_ai_turn(ai_player_id)

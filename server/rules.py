"""
Stateless UNO rule functions.

Everything here is a pure function of its arguments: legality of a play, seat
arithmetic for turn order, and the effect of special cards. The Game state
machine composes these; nothing in this module mutates game state.
"""

from enum import Enum
from typing import Optional

from cards import Card, Color, Rank
from constants import DRAW_PENALTIES, SPECIAL_ACTION_LABELS
from errors import IllegalMove


class Direction(str, Enum):
    """Turn order direction."""

    CLOCKWISE = "clockwise"
    COUNTERCLOCKWISE = "counterclockwise"


def can_play(card: Card, top_card: Card) -> bool:
    """
    Check whether a card may be played on the current top card.

    A card is legal if it is a wild (by color or rank), matches the top
    card's color, or matches its rank. A played wild on the discard pile
    carries its chosen color, so color matching works against it normally.

    Args:
        card: Card from the player's hand.
        top_card: Top card of the discard pile.

    Returns:
        True if the play is legal.
    """
    if card.color == Color.WILD or card.is_wild:
        return True
    return card.color == top_card.color or card.rank == top_card.rank


def step(index: int, direction: Direction, count: int, num_players: int) -> int:
    """Move `count` seats from `index` in `direction`, wrapping around the table."""
    sign = 1 if direction == Direction.CLOCKWISE else -1
    return (index + sign * count) % num_players


def next_player_index(
    num_players: int,
    current_index: int,
    direction: Direction,
    played_card: Optional[Card] = None,
) -> int:
    """
    Seat of the next player after `played_card`.

    A skip jumps one extra seat; with two players that lands back on the
    player who played it. Reverse must already be applied to `direction` by
    the caller. Draw penalties are handled separately (see draw_penalty).
    """
    offset = 2 if played_card is not None and played_card.rank == Rank.SKIP else 1
    return step(current_index, direction, offset, num_players)


def flip_direction(direction: Direction) -> Direction:
    if direction == Direction.CLOCKWISE:
        return Direction.COUNTERCLOCKWISE
    return Direction.CLOCKWISE


def draw_penalty(card: Card) -> int:
    """Cards the next player must draw: 2 for draw2, 4 for wild_draw4, else 0."""
    return DRAW_PENALTIES.get(card.rank.value, 0)


def special_action_label(card: Card) -> str:
    return SPECIAL_ACTION_LABELS.get(card.rank.value, "")


def resolve_played_card(card: Card, chosen_color: Optional[Color] = None) -> Card:
    """
    Produce the card value that goes on the discard pile.

    Wilds take the chosen color. Non-wild cards ignore any chosen color.

    Raises:
        IllegalMove: A wild was played without a concrete color.
    """
    if not card.is_wild:
        return card
    if chosen_color is None or chosen_color == Color.WILD:
        raise IllegalMove("Choose a color for the wild card")
    return card.with_color(chosen_color)

"""
Card and deck model for UNO.

Cards are immutable values compared structurally by (color, rank). A wild card
in the deck has color WILD; once played it is replaced on the discard pile by a
new value carrying the color its player chose (e.g. Card(RED, WILD)). When the
discard pile is reshuffled into the draw pile those colored wilds turn back
into generic wilds, so the 108-card multiset never changes during a game.

Pile orientation:
    - draw pile: index 0 is the next card drawn
    - discard pile: the last element is the top card
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from constants import COPIES_PER_COLOR, WILD_COPIES, CARD_SYMBOLS, ACTION_RANKS, WILD_RANKS
from errors import EmptyDeck


class Color(str, Enum):
    """Card colors. WILD marks an uncolored wild card."""

    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"
    WILD = "wild"

    @classmethod
    def playable(cls) -> list["Color"]:
        """The four concrete colors, in deck-building order."""
        return [cls.RED, cls.YELLOW, cls.GREEN, cls.BLUE]


class Rank(str, Enum):
    """Card ranks (wire values)."""

    ZERO = "0"
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    SKIP = "skip"
    REVERSE = "reverse"
    DRAW2 = "draw2"
    WILD = "wild"
    WILD_DRAW4 = "wild_draw4"


NUMBER_RANKS: list[Rank] = [
    Rank.ZERO, Rank.ONE, Rank.TWO, Rank.THREE, Rank.FOUR,
    Rank.FIVE, Rank.SIX, Rank.SEVEN, Rank.EIGHT, Rank.NINE,
]


@dataclass(frozen=True)
class Card:
    """
    An UNO card.

    Attributes:
        color: Card color (WILD for an unplayed wild card).
        rank: Number, action or wild rank.
    """

    color: Color
    rank: Rank

    @property
    def is_wild(self) -> bool:
        """True for wild and wild draw 4, whatever color they carry."""
        return self.rank.value in WILD_RANKS

    @property
    def is_action(self) -> bool:
        return self.rank.value in ACTION_RANKS

    def with_color(self, color: Color) -> "Card":
        """Return this card recolored (used when a wild is played)."""
        return Card(color, self.rank)

    def generic(self) -> "Card":
        """Return the deck form of this card (played wilds lose their color)."""
        if self.is_wild:
            return Card(Color.WILD, self.rank)
        return self

    def label(self) -> str:
        """Short display string, e.g. 'red 7', 'blue +2', 'wild +4'."""
        symbol = CARD_SYMBOLS.get(self.rank.value, self.rank.value)
        if self.color == Color.WILD:
            return symbol
        return f"{self.color.value} {symbol}"

    def to_dict(self) -> dict:
        """Convert card to dictionary for JSON serialization."""
        return {"color": self.color.value, "rank": self.rank.value}

    @classmethod
    def from_dict(cls, d: dict) -> "Card":
        """
        Build a card from its dictionary form.

        Raises:
            ValueError: If color or rank is not a known value.
        """
        return cls(Color(d["color"]), Rank(d["rank"]))

    def __str__(self) -> str:
        return self.label()


def build_deck() -> list[Card]:
    """
    Build the 108-card deck in a fixed, unshuffled order.

    Per color: one 0, two each of 1-9, two each of skip/reverse/draw2.
    Then four wild and four wild draw 4 cards.
    """
    cards: list[Card] = []
    for color in Color.playable():
        cards.append(Card(color, Rank.ZERO))
        for rank in NUMBER_RANKS[1:]:
            cards.extend(Card(color, rank) for _ in range(COPIES_PER_COLOR))

    for color in Color.playable():
        for rank in (Rank.SKIP, Rank.REVERSE, Rank.DRAW2):
            cards.extend(Card(color, rank) for _ in range(COPIES_PER_COLOR))

    for _ in range(WILD_COPIES):
        cards.append(Card(Color.WILD, Rank.WILD))
        cards.append(Card(Color.WILD, Rank.WILD_DRAW4))

    return cards


def reshuffle_from_discard(
    discard_pile: list[Card],
    rng: random.Random,
) -> tuple[list[Card], list[Card]]:
    """
    Turn the discard pile (minus its top card) into a fresh draw pile.

    Args:
        discard_pile: Current discard pile (top card last). Not modified.
        rng: Random source used for the shuffle.

    Returns:
        (new_draw_pile, new_discard_pile) where the new discard pile holds
        only the old top card.

    Raises:
        EmptyDeck: If the discard pile has one card or fewer.
    """
    if len(discard_pile) <= 1:
        raise EmptyDeck("Draw pile is empty and there is nothing to reshuffle")

    top_card = discard_pile[-1]
    new_draw_pile = [card.generic() for card in discard_pile[:-1]]
    rng.shuffle(new_draw_pile)
    return new_draw_pile, [top_card]


class Deck:
    """
    The draw pile: a freshly built deck, shuffled once at construction.

    The deck owns its own random.Random instance so seeded games shuffle
    deterministically without touching the global random state.
    """

    def __init__(self, seed: Optional[int] = None, cards: Optional[list[Card]] = None) -> None:
        """
        Initialize a new deck.

        Args:
            seed: Optional random seed for deterministic shuffling.
                  If None, a random seed is generated and stored.
            cards: Existing draw pile to adopt as-is (restoring a snapshot).
                   If None, a full deck is built and shuffled.
        """
        self.seed: int = seed if seed is not None else random.randint(0, 2**31 - 1)
        self.rng = random.Random(self.seed)
        if cards is None:
            self.cards: list[Card] = build_deck()
            self.shuffle()
        else:
            self.cards = list(cards)

    def shuffle(self, cards: Optional[list[Card]] = None) -> None:
        """
        Randomize a card list in place (Fisher-Yates).

        Args:
            cards: List to shuffle. Defaults to the remaining deck.
        """
        self.rng.shuffle(self.cards if cards is None else cards)

    def draw(self) -> Optional[Card]:
        """
        Draw the top card.

        Returns:
            The drawn Card, or None if the deck is empty.
        """
        if self.cards:
            return self.cards.pop(0)
        return None

    def cards_remaining(self) -> int:
        """Return the number of cards left in the deck."""
        return len(self.cards)

    def refill_from_discard(self, discard_pile: list[Card]) -> list[Card]:
        """
        Replace the (empty) draw pile with the reshuffled discard pile.

        Args:
            discard_pile: Current discard pile.

        Returns:
            The new discard pile (just the previous top card).

        Raises:
            EmptyDeck: If there is nothing to reshuffle.
        """
        new_cards, new_discard = reshuffle_from_discard(discard_pile, self.rng)
        self.cards.extend(new_cards)
        return new_discard

"""
Deck composition and rule constants for UNO.

This module is the single source of truth for the fixed rule variant the
server plays. Timing values that operators may want to tune live in config.py.

Deck composition (108 cards):
    - Per color (red, yellow, green, blue): one 0, two each of 1-9,
      two each of Skip, Reverse and Draw 2 (25 cards x 4 = 100)
    - 4 Wild and 4 Wild Draw 4
"""

# =============================================================================
# Deck
# =============================================================================

DECK_SIZE: int = 108

# Cards dealt to each player at game start
HAND_SIZE: int = 7

# Copies of each numbered card 1-9 and each action card, per color
COPIES_PER_COLOR: int = 2

# Copies of each wild rank in the deck
WILD_COPIES: int = 4

MIN_PLAYERS: int = 2


# =============================================================================
# Special Cards
# =============================================================================

# Cards forced onto the next player by draw cards (they also lose their turn)
DRAW_PENALTIES: dict[str, int] = {
    "draw2": 2,
    "wild_draw4": 4,
}

# Ranks the AI prefers to dump first
ACTION_RANKS: frozenset[str] = frozenset({"skip", "reverse", "draw2", "wild_draw4"})

WILD_RANKS: frozenset[str] = frozenset({"wild", "wild_draw4"})

# Label sent with card_played so clients can announce the effect
SPECIAL_ACTION_LABELS: dict[str, str] = {
    "draw2": "Draw 2",
    "wild_draw4": "Wild Draw 4",
    "skip": "Skip",
    "reverse": "Reverse",
}

# Short symbols used in logs and card labels
CARD_SYMBOLS: dict[str, str] = {
    "skip": "skip",
    "reverse": "rev",
    "draw2": "+2",
    "wild": "wild",
    "wild_draw4": "wild +4",
}


# =============================================================================
# AI
# =============================================================================

# Colors in counting order when the AI picks a color for a wild card.
# Ties go to the later color.
COLOR_PRIORITY: tuple[str, ...] = ("red", "blue", "green", "yellow")

# Username prefix for computer-controlled players
AI_NAME_PREFIX: str = "AI_Player_"

"""
Game logic for UNO.

This module is the authoritative state machine for a single UNO game: player
seating, hands, the draw and discard piles, turn order and direction, special
card effects and win detection. It knows nothing about sockets, timers or
locks; GameSession wraps it with those.

Every operation validates first and mutates only once all checks have passed,
so a rejected operation (any GameError) leaves the game untouched. Successful
operations return the ordered list of notifications the session must deliver.

Rules Summary:
    - 108-card deck, 7 cards dealt to each player in join order
    - Play a card matching the top card's color or rank, or any wild
    - Skip: next player loses their turn
    - Reverse: direction flips
    - Draw 2 / Wild Draw 4: next player draws and loses their turn
    - Drawing a card ends your turn
    - First player to empty their hand wins

Phase Flow:
    WAITING -> ACTIVE -> FINISHED (terminal)
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import notifications as notify
from cards import Card, Color, Deck, Rank
from constants import HAND_SIZE, MIN_PLAYERS
from errors import (
    AlreadyStarted,
    CardNotInHand,
    EmptyDeck,
    IllegalMove,
    InsufficientPlayers,
    NotYourTurn,
)
from notifications import Notification
from rules import (
    Direction,
    can_play,
    draw_penalty,
    flip_direction,
    next_player_index,
    resolve_played_card,
    special_action_label,
    step,
)


class GamePhase(str, Enum):
    """
    Phases of an UNO game.

    Flow: WAITING -> ACTIVE -> FINISHED
    """

    WAITING = "waiting"    # Lobby, waiting for players to join
    ACTIVE = "active"      # Cards dealt, taking turns
    FINISHED = "finished"  # Someone emptied their hand


@dataclass
class Game:
    """
    Main game state and logic controller for UNO.

    Attributes:
        players: Player IDs in join order (seating order once started).
        hands: Player ID -> cards held.
        deck: The draw pile (None until the game starts).
        discard_pile: Played cards, top card last.
        current_player_index: Seat of the player whose turn it is.
        direction: Turn order direction.
        phase: Current game phase.
        winner_id: Player who emptied their hand first.
        game_id: Unique identifier for logs and snapshots.
    """

    players: list[str] = field(default_factory=list)
    hands: dict[str, list[Card]] = field(default_factory=dict)
    deck: Optional[Deck] = None
    discard_pile: list[Card] = field(default_factory=list)
    current_player_index: int = 0
    direction: Direction = Direction.CLOCKWISE
    phase: GamePhase = GamePhase.WAITING
    winner_id: Optional[str] = None
    game_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    # -------------------------------------------------------------------------
    # Player Management
    # -------------------------------------------------------------------------

    def add_player(self, player_id: str) -> None:
        """
        Seat a player. Re-adding a seated player is a no-op.

        Raises:
            AlreadyStarted: The game is no longer in the lobby.
        """
        if player_id in self.players:
            return
        if self.phase != GamePhase.WAITING:
            raise AlreadyStarted()
        self.players.append(player_id)
        self.hands[player_id] = []

    def remove_player(self, player_id: str) -> list[Notification]:
        """
        Remove a player from the game by ID.

        In the lobby the player is simply unseated. Once cards are dealt, the
        leaver's hand goes to the bottom of the draw pile so no card leaves
        the game. If the leaver held the turn it passes to the next seat in
        the current direction, and if only one player remains that player
        wins.

        Args:
            player_id: The unique ID of the player to remove.

        Returns:
            TurnChanged or GameFinished notifications caused by the departure.
            Empty if the player was not seated.
        """
        if player_id not in self.players:
            return []

        seat = self.players.index(player_id)
        was_current = self.phase == GamePhase.ACTIVE and seat == self.current_player_index

        self.players.pop(seat)
        hand = self.hands.pop(player_id, [])
        if self.deck is not None:
            self.deck.cards.extend(hand)

        if self.phase != GamePhase.ACTIVE:
            return []

        if len(self.players) == 1:
            self.phase = GamePhase.FINISHED
            self.winner_id = self.players[0]
            self.current_player_index = 0
            return [notify.game_finished(self.winner_id)]

        if seat < self.current_player_index:
            self.current_player_index -= 1
        elif was_current:
            # The player after the leaver now sits at `seat` (clockwise);
            # counterclockwise the next player is the one before it.
            if self.direction == Direction.CLOCKWISE:
                self.current_player_index = seat % len(self.players)
            else:
                self.current_player_index = (seat - 1) % len(self.players)
            return [notify.turn_changed(self.current_player())]

        return []

    def current_player(self) -> Optional[str]:
        """Get the ID of the player whose turn it currently is."""
        if self.phase == GamePhase.ACTIVE and self.players:
            return self.players[self.current_player_index]
        return None

    def hand(self, player_id: str) -> list[Card]:
        return self.hands.get(player_id, [])

    # -------------------------------------------------------------------------
    # Game Lifecycle
    # -------------------------------------------------------------------------

    def start(self, seed: Optional[int] = None, deck: Optional[Deck] = None) -> list[Notification]:
        """
        Shuffle, deal and open the discard pile.

        The first non-wild card from the top of the remaining deck becomes the
        starting discard; if every remaining card is wild, the top card is
        used as-is. The first player to join moves first, clockwise.

        Args:
            seed: Optional shuffle seed for reproducible games.
            deck: Pre-arranged deck to deal from instead of a fresh shuffle.

        Raises:
            AlreadyStarted: The game has already been started.
            InsufficientPlayers: Fewer than two players are seated.
        """
        if self.phase != GamePhase.WAITING:
            raise AlreadyStarted()
        if len(self.players) < MIN_PLAYERS:
            raise InsufficientPlayers()

        self.deck = deck if deck is not None else Deck(seed=seed)
        self.hands = {player_id: [] for player_id in self.players}
        for player_id in self.players:
            for _ in range(HAND_SIZE):
                self.hands[player_id].append(self.deck.draw())

        start_index = next(
            (i for i, card in enumerate(self.deck.cards) if not card.is_wild),
            0,
        )
        self.discard_pile = [self.deck.cards.pop(start_index)]

        self.current_player_index = 0
        self.direction = Direction.CLOCKWISE
        self.phase = GamePhase.ACTIVE
        self.winner_id = None

        return [notify.game_started(self.current_player(), list(self.players))]

    # -------------------------------------------------------------------------
    # Player Actions
    # -------------------------------------------------------------------------

    def play_card(
        self,
        player_id: str,
        card: Card,
        chosen_color: Optional[Color] = None,
    ) -> list[Notification]:
        """
        Play a card from the current player's hand.

        Wild cards are matched in the hand by rank alone and go onto the
        discard pile carrying `chosen_color`, or the color the played card
        already carries when none is given. Reverse flips direction before
        the next seat is computed; skip jumps a seat; draw cards make the
        next player draw and lose their turn.

        Args:
            player_id: ID of the player acting.
            card: The card to play.
            chosen_color: Color for a wild card (ignored otherwise). Overrides
                the color of an already-colored wild.

        Returns:
            [PlayerSkipped]? then GameFinished if the hand is now empty,
            else CardPlayed.

        Raises:
            NotYourTurn: Game not active or another player's turn.
            CardNotInHand: The player does not hold the card.
            IllegalMove: The card does not match, or a wild lacks a color.
        """
        self._require_turn(player_id)

        hand = self.hands[player_id]
        hand_index = self._find_in_hand(hand, card)
        if hand_index is None:
            raise CardNotInHand()

        held = hand[hand_index]
        if not can_play(held, self.top_card()):
            raise IllegalMove()
        if chosen_color is None and card.is_wild and card.color != Color.WILD:
            chosen_color = card.color
        placed = resolve_played_card(held, chosen_color)

        # Validation complete - mutate
        hand.pop(hand_index)
        self.discard_pile.append(placed)

        if placed.rank == Rank.REVERSE:
            self.direction = flip_direction(self.direction)

        result: list[Notification] = []
        num_players = len(self.players)
        next_index = next_player_index(num_players, self.current_player_index, self.direction, placed)

        penalty = draw_penalty(placed)
        if penalty:
            victim = self.players[next_index]
            drawn = self._draw_into_hand(victim, penalty)
            result.append(notify.player_skipped(victim, drawn, len(self.hands[victim])))
            next_index = step(next_index, self.direction, 1, num_players)

        self.current_player_index = next_index

        if not hand:
            self.phase = GamePhase.FINISHED
            self.winner_id = player_id
            result.append(notify.game_finished(player_id))
            return result

        result.append(notify.card_played(
            player_id,
            placed.to_dict(),
            self.players[next_index],
            len(hand),
            special_action_label(placed),
        ))
        return result

    def draw_card(self, player_id: str) -> list[Notification]:
        """
        Draw one card and end the turn.

        Returns:
            [CardDrawn (drawer only), PlayerDrewCard, TurnChanged]

        Raises:
            NotYourTurn: Game not active or another player's turn.
            EmptyDeck: Nothing left to draw, even after reshuffling.
        """
        self._require_turn(player_id)
        if not self.can_draw():
            raise EmptyDeck()

        card = self._draw_one()
        hand = self.hands[player_id]
        hand.append(card)
        self._advance()

        return [
            notify.card_drawn(player_id, card.to_dict()),
            notify.player_drew_card(player_id, len(hand)),
            notify.turn_changed(self.current_player()),
        ]

    def timeout_turn(self, expected_player: str) -> list[Notification]:
        """
        Force a draw for a player whose turn countdown expired.

        A no-op unless the game is active and `expected_player` still holds
        the turn, so a stale or duplicate timeout changes nothing. When no
        card can be drawn the turn is still skipped.

        Returns:
            [CardDrawn (drawer only), TurnTimedOut, TurnChanged], or [] if stale.
        """
        if self.current_player() != expected_player:
            return []

        result: list[Notification] = []
        hand = self.hands[expected_player]
        if self.can_draw():
            card = self._draw_one()
            hand.append(card)
            result.append(notify.card_drawn(expected_player, card.to_dict()))

        self._advance()
        result.append(notify.turn_timed_out(expected_player, len(hand)))
        result.append(notify.turn_changed(self.current_player()))
        return result

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _require_turn(self, player_id: str) -> None:
        if self.phase != GamePhase.ACTIVE or self.current_player() != player_id:
            raise NotYourTurn()

    @staticmethod
    def _find_in_hand(hand: list[Card], card: Card) -> Optional[int]:
        for i, held in enumerate(hand):
            if card.is_wild:
                if held.rank == card.rank:
                    return i
            elif held == card:
                return i
        return None

    def _advance(self) -> None:
        self.current_player_index = step(
            self.current_player_index, self.direction, 1, len(self.players)
        )

    def can_draw(self) -> bool:
        """True if a card can be drawn now (directly or after a reshuffle)."""
        if self.deck is None:
            return False
        return bool(self.deck.cards) or len(self.discard_pile) > 1

    def _draw_one(self) -> Card:
        """
        Draw the next card, reshuffling the discard pile into the deck first
        if the deck is empty.

        Raises:
            EmptyDeck: If neither pile can supply a card.
        """
        if not self.deck.cards:
            self.discard_pile = self.deck.refill_from_discard(self.discard_pile)
        return self.deck.draw()

    def _draw_into_hand(self, player_id: str, count: int) -> int:
        """Draw up to `count` cards for a penalty. Returns how many were drawn."""
        drawn = 0
        hand = self.hands[player_id]
        while drawn < count and self.can_draw():
            hand.append(self._draw_one())
            drawn += 1
        return drawn

    # -------------------------------------------------------------------------
    # State Queries
    # -------------------------------------------------------------------------

    @property
    def draw_pile(self) -> list[Card]:
        return self.deck.cards if self.deck is not None else []

    def top_card(self) -> Optional[Card]:
        """Get the top card of the discard pile (if any)."""
        if self.discard_pile:
            return self.discard_pile[-1]
        return None

    def card_count(self) -> int:
        """Cards in hands, draw pile and discard pile combined."""
        return (
            sum(len(hand) for hand in self.hands.values())
            + len(self.draw_pile)
            + len(self.discard_pile)
        )

    def get_state(self, for_player_id: str) -> dict:
        """
        Get the game state as seen by one player.

        Only the requesting player's own hand is included; everyone else is
        reduced to a card count.

        Args:
            for_player_id: The player who will receive this state.

        Returns:
            Dict suitable for JSON serialization.
        """
        top = self.top_card()
        return {
            "game_id": self.game_id,
            "phase": self.phase.value,
            "players": [
                {
                    "id": player_id,
                    "card_count": len(self.hands.get(player_id, [])),
                    "is_current": player_id == self.current_player(),
                }
                for player_id in self.players
            ],
            "hand": [card.to_dict() for card in self.hands.get(for_player_id, [])],
            "top_card": top.to_dict() if top else None,
            "draw_pile_count": len(self.draw_pile),
            "direction": self.direction.value,
            "current_player": self.current_player(),
            "winner_id": self.winner_id,
        }

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Full server-side snapshot (includes every hand and pile order)."""
        return {
            "game_id": self.game_id,
            "players": list(self.players),
            "hands": {
                player_id: [card.to_dict() for card in hand]
                for player_id, hand in self.hands.items()
            },
            "seed": self.deck.seed if self.deck is not None else None,
            "draw_pile": [card.to_dict() for card in self.draw_pile],
            "discard_pile": [card.to_dict() for card in self.discard_pile],
            "current_player_index": self.current_player_index,
            "direction": self.direction.value,
            "phase": self.phase.value,
            "winner_id": self.winner_id,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Game":
        """Rebuild a game from a to_dict() snapshot."""
        phase = GamePhase(d["phase"])
        deck = None
        if phase != GamePhase.WAITING:
            deck = Deck(
                seed=d.get("seed"),
                cards=[Card.from_dict(c) for c in d.get("draw_pile", [])],
            )
        return cls(
            players=list(d["players"]),
            hands={
                player_id: [Card.from_dict(c) for c in cards]
                for player_id, cards in d.get("hands", {}).items()
            },
            deck=deck,
            discard_pile=[Card.from_dict(c) for c in d.get("discard_pile", [])],
            current_player_index=d.get("current_player_index", 0),
            direction=Direction(d.get("direction", Direction.CLOCKWISE.value)),
            phase=phase,
            winner_id=d.get("winner_id"),
            game_id=d.get("game_id") or str(uuid.uuid4()),
        )

"""
Test suite for the AI move policy in ai.py.

Covers:
- legal_cards(): color, rank and wild matching
- choose_move(): action cards first, then color match, then first legal card
- choose_move(): drawing when nothing is playable
- choose_wild_color(): majority color, tie-breaks, wilds ignored
- Determinism: same hand and top card always give the same move
- A full game played by the AI alone stays legal

Run with: pytest test_ai_decisions.py -v
"""

import pytest

from ai import AIMove, UnoAI, ai_player_name
from cards import Card, Color, Rank
from constants import DECK_SIZE
from game import Game, GamePhase
from rules import can_play


# =============================================================================
# Helpers
# =============================================================================

def c(color, rank):
    """Shorthand card constructor: c("red", "5")."""
    return Card(Color(color), Rank(rank))


WILD = c("wild", "wild")
WILD_DRAW4 = c("wild", "wild_draw4")


# =============================================================================
# Legal cards
# =============================================================================

class TestLegalCards:

    def test_filters_by_color_and_rank(self):
        hand = [c("red", "1"), c("blue", "5"), c("green", "9"), WILD]
        legal = UnoAI.legal_cards(hand, c("red", "5"))
        assert legal == [c("red", "1"), c("blue", "5"), WILD]

    def test_nothing_legal(self):
        hand = [c("blue", "1"), c("green", "2")]
        assert UnoAI.legal_cards(hand, c("red", "5")) == []


# =============================================================================
# Move priority
# =============================================================================

class TestChooseMove:

    def test_draws_when_nothing_playable(self):
        move = UnoAI.choose_move([c("blue", "1"), c("green", "2")], c("red", "5"))
        assert move.is_draw
        assert move.card is None
        assert move.chosen_color is None

    def test_prefers_action_card(self):
        hand = [c("red", "3"), c("red", "skip"), c("red", "7")]
        move = UnoAI.choose_move(hand, c("red", "5"))
        assert move.card == c("red", "skip")

    def test_wild_draw4_counts_as_action(self):
        hand = [c("red", "3"), WILD_DRAW4, c("blue", "2"), c("blue", "8")]
        move = UnoAI.choose_move(hand, c("red", "5"))
        assert move.card == WILD_DRAW4
        assert move.chosen_color == Color.BLUE

    def test_first_action_card_in_hand_order(self):
        hand = [c("blue", "draw2"), c("red", "reverse")]
        move = UnoAI.choose_move(hand, c("red", "draw2"))
        assert move.card == c("blue", "draw2")

    def test_plain_wild_is_not_an_action(self):
        hand = [WILD, c("red", "3")]
        move = UnoAI.choose_move(hand, c("red", "5"))
        assert move.card == c("red", "3")

    def test_color_match_before_rank_match(self):
        hand = [c("blue", "5"), c("red", "8")]
        move = UnoAI.choose_move(hand, c("red", "5"))
        assert move.card == c("red", "8")

    def test_color_match_on_colored_wild_top(self):
        hand = [c("blue", "9"), c("green", "4")]
        move = UnoAI.choose_move(hand, Card(Color.GREEN, Rank.WILD))
        assert move.card == c("green", "4")

    def test_falls_back_to_first_legal(self):
        hand = [c("green", "1"), c("blue", "5"), c("yellow", "5")]
        move = UnoAI.choose_move(hand, c("red", "5"))
        assert move.card == c("blue", "5")
        assert move.chosen_color is None

    def test_wild_when_only_option(self):
        hand = [c("blue", "1"), WILD, c("blue", "2"), c("green", "3")]
        move = UnoAI.choose_move(hand, c("red", "5"))
        assert move.card == WILD
        assert move.chosen_color == Color.BLUE

    def test_move_is_always_legal(self):
        hand = [c("yellow", "0"), c("green", "skip"), WILD, c("red", "9")]
        for top in (c("red", "5"), c("green", "1"), c("blue", "skip"), c("yellow", "7")):
            move = UnoAI.choose_move(hand, top)
            assert move.card is not None
            assert can_play(move.card, top)

    def test_deterministic(self):
        hand = [c("blue", "5"), WILD, c("red", "5"), c("green", "reverse")]
        top = c("yellow", "5")
        moves = {UnoAI.choose_move(hand, top) for _ in range(10)}
        assert len(moves) == 1

    def test_does_not_modify_hand(self):
        hand = [WILD, c("blue", "2")]
        UnoAI.choose_move(hand, c("red", "5"))
        assert hand == [WILD, c("blue", "2")]


# =============================================================================
# Wild color choice
# =============================================================================

class TestChooseWildColor:

    def test_majority_color(self):
        hand = [c("green", "1"), c("green", "2"), c("red", "3")]
        assert UnoAI.choose_wild_color(hand) == Color.GREEN

    def test_tie_goes_to_later_color(self):
        # Counting order: red, blue, green, yellow
        assert UnoAI.choose_wild_color([c("red", "1"), c("blue", "2")]) == Color.BLUE
        assert UnoAI.choose_wild_color([c("yellow", "1"), c("blue", "2")]) == Color.YELLOW
        hand = [c("red", "1"), c("red", "2"), c("green", "3"), c("green", "4"), c("yellow", "5")]
        assert UnoAI.choose_wild_color(hand) == Color.GREEN

    def test_empty_hand_picks_yellow(self):
        assert UnoAI.choose_wild_color([]) == Color.YELLOW

    def test_wilds_do_not_count(self):
        hand = [WILD, WILD_DRAW4, c("yellow", "4")]
        assert UnoAI.choose_wild_color(hand) == Color.YELLOW

    def test_only_wilds_left(self):
        assert UnoAI.choose_wild_color([WILD, WILD]) == Color.YELLOW

    @pytest.mark.parametrize("color", ["red", "yellow", "green", "blue"])
    def test_never_returns_wild(self, color):
        hand = [c(color, "1"), WILD]
        assert UnoAI.choose_wild_color(hand) == Color(color)


# =============================================================================
# Misc
# =============================================================================

class TestNaming:

    def test_ai_names(self):
        assert ai_player_name(1) == "AI_Player_1"
        assert ai_player_name(3) == "AI_Player_3"

    def test_draw_move(self):
        assert AIMove().is_draw
        assert not AIMove(card=WILD, chosen_color=Color.RED).is_draw


class TestAIOnlyGame:
    """Let the AI policy drive every seat through a whole game."""

    @pytest.mark.parametrize("seed", [11, 22, 33])
    def test_ai_plays_a_legal_game(self, seed):
        game = Game()
        for i in range(3):
            game.add_player(f"ai{i}")
        game.start(seed=seed)

        for _ in range(3000):
            if game.phase == GamePhase.FINISHED:
                break
            player_id = game.current_player()
            move = UnoAI.choose_move(game.hand(player_id), game.top_card())
            if move.is_draw:
                if game.can_draw():
                    game.draw_card(player_id)
                else:
                    game.timeout_turn(player_id)
            else:
                game.play_card(player_id, move.card, move.chosen_color)
            assert game.card_count() == DECK_SIZE

        assert game.phase == GamePhase.FINISHED
        assert game.hand(game.winner_id) == []

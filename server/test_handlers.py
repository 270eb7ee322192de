"""
Test suite for WebSocket message handlers.

Tests dispatch, handler flows and payload validation using a mock WebSocket
and a real SessionDirectory.

Run with: pytest test_handlers.py -v
"""

import pytest

from cards import Card, Color, Rank
from config import SessionTiming
from directory import SessionDirectory
from handlers import ConnectionContext, dispatch


# =============================================================================
# Mock helpers
# =============================================================================

class MockWebSocket:
    """Mock WebSocket that collects sent messages."""

    def __init__(self):
        self.messages: list[dict] = []

    async def send_json(self, data: dict):
        self.messages.append(data)

    def last_message(self) -> dict:
        return self.messages[-1] if self.messages else {}

    def messages_of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.messages if m.get("type") == msg_type]


SLOW = SessionTiming(
    TURN_TIMEOUT_SECONDS=60.0,
    AI_THINKING_SECONDS=30.0,
    FINISHED_GRACE_SECONDS=60.0,
)


def make_ctx(player_id="test_player", websocket=None):
    """Create a ConnectionContext with sensible defaults."""
    return ConnectionContext(
        websocket=websocket or MockWebSocket(),
        connection_id=f"conn_{player_id}",
        player_id=player_id,
    )


def make_directory():
    return SessionDirectory(timing=SLOW)


async def make_lobby(directory, num_players=2):
    """Create a session through the handlers; returns contexts for p0..pN-1."""
    host = make_ctx("p0")
    await dispatch({"type": "create_session", "username": "Host"}, host, directory=directory)
    session_id = host.websocket.last_message()["session_id"]
    contexts = [host]
    for i in range(1, num_players):
        ctx = make_ctx(f"p{i}")
        await dispatch(
            {"type": "join_session", "session_id": session_id, "username": f"Player {i}"},
            ctx,
            directory=directory,
        )
        contexts.append(ctx)
    return contexts


async def make_started(directory, num_players=2):
    contexts = await make_lobby(directory, num_players)
    await dispatch({"type": "start_session"}, contexts[0], directory=directory)
    for ctx in contexts:
        ctx.websocket.messages.clear()
    return contexts


def rig_top(session, hand_cards, top):
    """Give p0 `hand_cards` and put `top` on the discard pile, keeping 108 cards."""
    game = session.game
    pool = game.deck.cards
    for player_id in game.players:
        pool.extend(game.hands[player_id])
        game.hands[player_id] = []
    pool.extend(card.generic() for card in game.discard_pile)
    for card in hand_cards + [top]:
        pool.remove(card)
    game.discard_pile = [top]
    for player_id in game.players:
        game.hands[player_id] = list(hand_cards) if player_id == "p0" else [pool.pop() for _ in range(7)]


# =============================================================================
# Dispatch
# =============================================================================

class TestDispatch:

    @pytest.mark.asyncio
    async def test_unknown_message_type(self):
        ctx = make_ctx()
        await dispatch({"type": "fly_to_moon"}, ctx, directory=make_directory())

        msg = ctx.websocket.last_message()
        assert msg["type"] == "error"
        assert msg["kind"] == "invalid_message"

    @pytest.mark.asyncio
    async def test_missing_type(self):
        ctx = make_ctx()
        await dispatch({}, ctx, directory=make_directory())
        assert ctx.websocket.last_message()["kind"] == "invalid_message"

    @pytest.mark.asyncio
    async def test_requires_session(self):
        ctx = make_ctx()
        await dispatch({"type": "draw_card"}, ctx, directory=make_directory())

        msg = ctx.websocket.last_message()
        assert msg["kind"] == "session_not_found"
        assert msg["message"] == "You are not in a game"


# =============================================================================
# Lobby handlers
# =============================================================================

class TestCreateSession:

    @pytest.mark.asyncio
    async def test_creates_session(self):
        directory = make_directory()
        ctx = make_ctx("p0")

        await dispatch({"type": "create_session", "username": "Alice", "max_players": 3}, ctx, directory=directory)

        msg = ctx.websocket.last_message()
        assert msg["type"] == "session_created"
        assert msg["player_id"] == "p0"
        assert msg["max_players"] == 3
        assert msg["players"] == [{"id": "p0", "username": "Alice", "is_ai": False, "is_creator": True}]
        assert ctx.current_session is directory.get_session(msg["session_id"])

    @pytest.mark.asyncio
    async def test_invalid_payload(self):
        ctx = make_ctx()
        await dispatch({"type": "create_session", "username": ""}, ctx, directory=make_directory())

        msg = ctx.websocket.last_message()
        assert msg["kind"] == "invalid_message"
        assert msg["message"] == "Invalid create_session message"
        assert ctx.current_session is None


class TestJoinSession:

    @pytest.mark.asyncio
    async def test_join(self):
        directory = make_directory()
        host, guest = await make_lobby(directory, 2)

        joined = guest.websocket.last_message()
        assert joined["type"] == "session_joined"
        assert [p["id"] for p in joined["players"]] == ["p0", "p1"]
        assert joined["state"]["phase"] == "waiting"
        assert host.websocket.messages_of_type("player_joined")[-1]["player_id"] == "p1"
        assert guest.current_session is host.current_session

    @pytest.mark.asyncio
    async def test_join_lowercase_code(self):
        directory = make_directory()
        host, = await make_lobby(directory, 1)
        ctx = make_ctx("p1")

        code = host.current_session.session_id.lower()
        await dispatch({"type": "join_session", "session_id": code, "username": "Bob"}, ctx, directory=directory)

        assert ctx.websocket.last_message()["type"] == "session_joined"

    @pytest.mark.asyncio
    async def test_join_unknown(self):
        ctx = make_ctx()
        await dispatch(
            {"type": "join_session", "session_id": "ZZZZ", "username": "Bob"},
            ctx,
            directory=make_directory(),
        )
        assert ctx.websocket.last_message()["kind"] == "session_not_found"

    @pytest.mark.asyncio
    async def test_join_full(self):
        directory = make_directory()
        host = make_ctx("p0")
        await dispatch({"type": "create_session", "username": "Host", "max_players": 2}, host, directory=directory)
        code = host.current_session.session_id
        await dispatch({"type": "join_session", "session_id": code, "username": "B"}, make_ctx("p1"), directory=directory)

        late = make_ctx("p2")
        await dispatch({"type": "join_session", "session_id": code, "username": "C"}, late, directory=directory)

        assert late.websocket.last_message()["kind"] == "session_full"
        assert late.current_session is None

    @pytest.mark.asyncio
    async def test_cannot_join_second_session(self):
        directory = make_directory()
        host, guest = await make_lobby(directory, 2)
        other = make_ctx("p9")
        await dispatch({"type": "create_session", "username": "Other"}, other, directory=directory)
        first = guest.current_session

        await dispatch(
            {"type": "join_session", "session_id": other.current_session.session_id, "username": "B"},
            guest,
            directory=directory,
        )

        assert guest.websocket.last_message()["kind"] == "already_in_session"
        assert guest.current_session is first
        assert "p1" not in other.current_session.players

    @pytest.mark.asyncio
    async def test_cannot_create_while_seated(self):
        directory = make_directory()
        host, = await make_lobby(directory, 1)

        await dispatch({"type": "create_session", "username": "Host"}, host, directory=directory)

        assert host.websocket.last_message()["kind"] == "already_in_session"
        assert len(directory.sessions) == 1


class TestAddAI:

    @pytest.mark.asyncio
    async def test_creator_adds_ai(self):
        directory = make_directory()
        host, guest = await make_lobby(directory, 2)

        await dispatch({"type": "add_ai_player"}, host, directory=directory)

        joined = guest.websocket.messages_of_type("player_joined")[-1]
        assert joined["username"] == "AI_Player_1"
        assert len(host.current_session.players) == 3

    @pytest.mark.asyncio
    async def test_non_creator_rejected(self):
        directory = make_directory()
        host, guest = await make_lobby(directory, 2)
        host.websocket.messages.clear()

        await dispatch({"type": "add_ai_player"}, guest, directory=directory)

        assert guest.websocket.last_message()["kind"] == "not_session_creator"
        assert host.websocket.messages == []


class TestStartSession:

    @pytest.mark.asyncio
    async def test_start_sends_private_state(self):
        directory = make_directory()
        host, guest = await make_lobby(directory, 2)

        await dispatch({"type": "start_session"}, guest, directory=directory)

        session = host.current_session
        for ctx in (host, guest):
            assert ctx.websocket.messages_of_type("game_started")
            state = ctx.websocket.messages_of_type("game_state")[-1]["state"]
            own = [c.to_dict() for c in session.game.hand(ctx.player_id)]
            assert state["hand"] == own
            assert state["current_player"] == "p0"
        await directory.close()

    @pytest.mark.asyncio
    async def test_start_alone(self):
        directory = make_directory()
        host, = await make_lobby(directory, 1)

        await dispatch({"type": "start_session"}, host, directory=directory)

        assert host.websocket.last_message()["kind"] == "insufficient_players"

    @pytest.mark.asyncio
    async def test_get_state(self):
        directory = make_directory()
        host, guest = await make_started(directory)

        await dispatch({"type": "get_state"}, guest, directory=directory)

        msg = guest.websocket.last_message()
        assert msg["type"] == "game_state"
        assert len(msg["state"]["hand"]) == 7
        assert host.websocket.messages == []
        await directory.close()


# =============================================================================
# Gameplay handlers
# =============================================================================

class TestPlayCard:

    @pytest.mark.asyncio
    async def test_play_card(self):
        directory = make_directory()
        host, guest = await make_started(directory)
        red_5 = Card(Color.RED, Rank.FIVE)
        rig_top(host.current_session, [red_5, Card(Color.BLUE, Rank.SEVEN)], Card(Color.RED, Rank.THREE))

        await dispatch({"type": "play_card", "card": {"color": "red", "rank": "5"}}, host, directory=directory)

        played = guest.websocket.messages_of_type("card_played")
        assert played[0]["player_id"] == "p0"
        assert played[0]["card"] == {"color": "red", "rank": "5"}
        assert played[0]["next_player"] == "p1"
        await directory.close()

    @pytest.mark.asyncio
    async def test_play_wild_with_color(self):
        directory = make_directory()
        host, guest = await make_started(directory)
        wild = Card(Color.WILD, Rank.WILD)
        rig_top(host.current_session, [wild, Card(Color.BLUE, Rank.SEVEN)], Card(Color.RED, Rank.THREE))

        await dispatch(
            {"type": "play_card", "card": {"color": "wild", "rank": "wild"}, "chosen_color": "green"},
            host,
            directory=directory,
        )

        played = guest.websocket.messages_of_type("card_played")[0]
        assert played["card"] == {"color": "green", "rank": "wild"}
        await directory.close()

    @pytest.mark.asyncio
    async def test_play_colored_wild_without_chosen_color(self):
        directory = make_directory()
        host, guest = await make_started(directory)
        wild = Card(Color.WILD, Rank.WILD)
        rig_top(host.current_session, [wild, Card(Color.BLUE, Rank.SEVEN)], Card(Color.RED, Rank.THREE))

        await dispatch({"type": "play_card", "card": {"color": "blue", "rank": "wild"}}, host, directory=directory)

        played = guest.websocket.messages_of_type("card_played")[0]
        assert played["card"] == {"color": "blue", "rank": "wild"}
        assert host.current_session.game.hands["p0"] == [Card(Color.BLUE, Rank.SEVEN)]
        await directory.close()

    @pytest.mark.asyncio
    async def test_wild_without_color(self):
        directory = make_directory()
        host, guest = await make_started(directory)
        wild = Card(Color.WILD, Rank.WILD)
        rig_top(host.current_session, [wild, Card(Color.BLUE, Rank.SEVEN)], Card(Color.RED, Rank.THREE))

        await dispatch({"type": "play_card", "card": {"color": "wild", "rank": "wild"}}, host, directory=directory)

        assert host.websocket.last_message()["kind"] == "illegal_move"
        assert guest.websocket.messages == []
        await directory.close()

    @pytest.mark.asyncio
    async def test_illegal_card_only_tells_sender(self):
        directory = make_directory()
        host, guest = await make_started(directory)
        rig_top(host.current_session, [Card(Color.BLUE, Rank.SEVEN)], Card(Color.RED, Rank.THREE))

        await dispatch({"type": "play_card", "card": {"color": "blue", "rank": "7"}}, host, directory=directory)

        assert host.websocket.last_message()["kind"] == "illegal_move"
        assert guest.websocket.messages == []
        await directory.close()

    @pytest.mark.asyncio
    async def test_not_your_turn(self):
        directory = make_directory()
        host, guest = await make_started(directory)

        await dispatch({"type": "play_card", "card": {"color": "red", "rank": "5"}}, guest, directory=directory)

        assert guest.websocket.last_message()["kind"] == "not_your_turn"
        await directory.close()

    @pytest.mark.asyncio
    async def test_malformed_card(self):
        directory = make_directory()
        host, guest = await make_started(directory)

        await dispatch({"type": "play_card", "card": {"color": "purple", "rank": "5"}}, host, directory=directory)

        msg = host.websocket.last_message()
        assert msg["kind"] == "invalid_message"
        assert msg["message"] == "Invalid play_card message"
        await directory.close()


class TestDrawCard:

    @pytest.mark.asyncio
    async def test_draw(self):
        directory = make_directory()
        host, guest = await make_started(directory)

        await dispatch({"type": "draw_card"}, host, directory=directory)

        assert [m["type"] for m in host.websocket.messages] == ["card_drawn", "player_drew_card", "turn_changed"]
        assert [m["type"] for m in guest.websocket.messages] == ["player_drew_card", "turn_changed"]
        await directory.close()

    @pytest.mark.asyncio
    async def test_draw_out_of_turn(self):
        directory = make_directory()
        host, guest = await make_started(directory)

        await dispatch({"type": "draw_card"}, guest, directory=directory)

        assert guest.websocket.last_message()["kind"] == "not_your_turn"
        assert host.websocket.messages == []
        await directory.close()


# =============================================================================
# Leave / Delete handlers
# =============================================================================

class TestLeaveAndDelete:

    @pytest.mark.asyncio
    async def test_leave(self):
        directory = make_directory()
        host, guest = await make_lobby(directory, 2)
        code = host.current_session.session_id

        await dispatch({"type": "leave_session"}, guest, directory=directory)

        assert guest.websocket.last_message() == {"type": "session_left", "session_id": code}
        assert guest.current_session is None
        assert host.websocket.messages_of_type("player_left")[-1]["player_id"] == "p1"

    @pytest.mark.asyncio
    async def test_creator_cannot_leave_lobby(self):
        directory = make_directory()
        host, guest = await make_lobby(directory, 2)

        await dispatch({"type": "leave_session"}, host, directory=directory)

        assert host.websocket.last_message()["kind"] == "not_session_creator"
        assert host.current_session is not None

    @pytest.mark.asyncio
    async def test_delete(self):
        directory = make_directory()
        host, guest = await make_lobby(directory, 2)
        code = host.current_session.session_id

        await dispatch({"type": "delete_session"}, host, directory=directory)

        for ctx in (host, guest):
            assert ctx.websocket.messages_of_type("session_deleted")[0]["auto_deleted"] is False
        assert host.current_session is None
        assert code not in directory.sessions

        # The guest's connection still points at the closed session
        await dispatch({"type": "get_state"}, guest, directory=directory)
        assert guest.websocket.last_message()["kind"] == "session_not_found"

    @pytest.mark.asyncio
    async def test_delete_by_guest(self):
        directory = make_directory()
        host, guest = await make_lobby(directory, 2)

        await dispatch({"type": "delete_session"}, guest, directory=directory)

        assert guest.websocket.last_message()["kind"] == "not_session_creator"
        assert not host.current_session.closed

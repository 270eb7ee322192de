"""
Live game sessions for multiplayer UNO.

A GameSession wraps one Game with everything needed to run it on a server:
the connected players and their WebSockets, a per-session asyncio.Lock, the
turn countdown, scheduled AI moves and the post-game teardown.

Every state change runs as one transition under the session lock:

    1. reject if the session has been torn down (SessionNotFound)
    2. validate and mutate through Game (GameError leaves state untouched)
    3. re-arm the turn timer for a human, or schedule the AI's move
    4. schedule teardown if the game just finished
    5. deliver the resulting notifications
    6. save a snapshot to the store

Timer and AI callbacks take the same lock and re-check that the turn they
were scheduled for is still current, so stale callbacks are harmless.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from fastapi import WebSocket

import notifications as notify
from ai import UnoAI, ai_log, ai_player_name, process_ai_turn
from cards import Card, Color
from config import SessionTiming, config
from errors import AlreadyStarted, GameError, NotSessionCreator, SessionFull, SessionNotFound
from game import Game, GamePhase
from logging_config import get_logger
from notifications import Notification
from stores.session_store import SessionStore
from timers import Scheduler, TurnTimer

logger = get_logger(__name__)


@dataclass
class SessionPlayer:
    """
    A player in a game session (connection-level representation).

    Game tracks seats and hands by player ID; SessionPlayer tracks what the
    server needs to talk to the player.

    Attributes:
        id: Unique player identifier.
        username: Display name.
        is_ai: Whether this is a computer-controlled player.
        websocket: WebSocket connection (None for AI or disconnected players).
    """

    id: str
    username: str
    is_ai: bool = False
    websocket: Optional[WebSocket] = None

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "is_ai": self.is_ai}


class GameSession:
    """
    One running UNO game and its players.

    Attributes:
        session_id: Short join code (e.g., "ABCD").
        creator_id: Player who created the session (may add AI, delete it).
        max_players: Seat limit.
        players: Player ID -> SessionPlayer, in join order.
        game: The authoritative game state.
        lock: Serializes every transition on this session.
        closed: Set once the session has been torn down.
        last_activity: Clock reading of the last successful transition.
    """

    def __init__(
        self,
        session_id: str,
        creator_id: str,
        max_players: int = 4,
        timing: Optional[SessionTiming] = None,
        store: Optional[SessionStore] = None,
        clock: Callable[[], float] = time.monotonic,
        on_finished: Optional[Callable[[str], Awaitable[None]]] = None,
    ) -> None:
        self.session_id = session_id
        self.creator_id = creator_id
        self.max_players = max_players
        self.timing = timing or config.timing
        self.store = store
        self.clock = clock
        self.on_finished = on_finished

        self.players: dict[str, SessionPlayer] = {}
        self.game = Game()
        self.lock = asyncio.Lock()
        self.closed = False
        self.last_activity = clock()

        self.timer = TurnTimer(self.timing.TURN_TIMEOUT_SECONDS, self.handle_timeout, name=session_id)
        self.scheduler = Scheduler(name=session_id)
        self._ai_task: Optional[asyncio.Task] = None
        self.log = logger.with_context(session_id=session_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def phase(self) -> GamePhase:
        return self.game.phase

    def get_player(self, player_id: str) -> Optional[SessionPlayer]:
        """Get a player by ID, or None if not found."""
        return self.players.get(player_id)

    def human_count(self) -> int:
        """Count the number of human (non-AI) players."""
        return sum(1 for p in self.players.values() if not p.is_ai)

    def is_full(self) -> bool:
        return len(self.players) >= self.max_players

    def idle_seconds(self) -> float:
        return self.clock() - self.last_activity

    def touch(self) -> None:
        self.last_activity = self.clock()

    def player_list(self) -> list[dict]:
        """Players for client display, in join order."""
        return [
            {**p.to_dict(), "is_creator": p.id == self.creator_id}
            for p in self.players.values()
        ]

    def get_state(self, for_player_id: str) -> dict:
        """Game state for one player, plus session-level info."""
        state = self.game.get_state(for_player_id)
        usernames = {p.id: p.username for p in self.players.values()}
        for player in state["players"]:
            player["username"] = usernames.get(player["id"], player["id"])
        state.update({
            "session_id": self.session_id,
            "creator_id": self.creator_id,
            "max_players": self.max_players,
        })
        return state

    # -------------------------------------------------------------------------
    # Lobby
    # -------------------------------------------------------------------------

    async def join(
        self,
        player_id: str,
        username: str,
        websocket: Optional[WebSocket] = None,
    ) -> list[Notification]:
        """
        Seat a human player.

        Joining again (e.g. a reconnect) only swaps in the new WebSocket.

        Raises:
            SessionNotFound: The session has been torn down.
            AlreadyStarted: The game is past the lobby.
            SessionFull: No free seat.
        """
        async with self.lock:
            self._ensure_open()
            existing = self.players.get(player_id)
            if existing is not None:
                if websocket is not None:
                    existing.websocket = websocket
                return []
            if self.game.phase != GamePhase.WAITING:
                raise AlreadyStarted()
            if self.is_full():
                raise SessionFull()

            player = SessionPlayer(id=player_id, username=username, websocket=websocket)
            return await self._commit("join", lambda: self._seat(player), schedule_turn=False)

    async def add_ai_player(self, requester_id: str) -> SessionPlayer:
        """
        Seat a new AI player (creator only, lobby only).

        Returns:
            The created SessionPlayer.
        """
        async with self.lock:
            self._ensure_open()
            if requester_id != self.creator_id:
                raise NotSessionCreator("Only the game creator can add AI players")
            if self.game.phase != GamePhase.WAITING:
                raise AlreadyStarted("Cannot add AI to a game that has already started")
            if self.is_full():
                raise SessionFull()

            number = sum(1 for p in self.players.values() if p.is_ai) + 1
            player = SessionPlayer(
                id=f"ai_{uuid.uuid4().hex[:8]}",
                username=ai_player_name(number),
                is_ai=True,
            )
            await self._commit("add_ai", lambda: self._seat(player), schedule_turn=False)
            return player

    def detach(self, player_id: str, websocket: WebSocket) -> None:
        """Forget a closed connection; the player keeps their seat and may rejoin."""
        player = self.players.get(player_id)
        if player is not None and player.websocket is websocket:
            player.websocket = None

    def _seat(self, player: SessionPlayer) -> list[Notification]:
        self.game.add_player(player.id)
        self.players[player.id] = player
        return [notify.player_joined(player.id, player.username)]

    async def leave(self, player_id: str) -> list[Notification]:
        """
        Remove a player from the session.

        The creator of a session that has not started must delete it
        instead. Leaving mid-game returns the player's cards to the deck and
        may pass the turn or end the game.

        Returns:
            Notifications delivered (empty if the player was not seated).
        """
        async with self.lock:
            self._ensure_open()
            player = self.players.get(player_id)
            if player is None:
                return []
            if player_id == self.creator_id and self.game.phase == GamePhase.WAITING:
                raise NotSessionCreator("Game creators must delete the game instead of leaving")
            return await self._commit("leave", lambda: self._unseat(player), schedule_turn=False)

    def _unseat(self, player: SessionPlayer) -> list[Notification]:
        del self.players[player.id]
        consequences = self.game.remove_player(player.id)
        if consequences:
            self._schedule_turn()
        departure = notify.player_left(player.id, player.username, self.game.current_player())
        return [departure] + consequences

    # -------------------------------------------------------------------------
    # Gameplay
    # -------------------------------------------------------------------------

    async def start(self, seed: Optional[int] = None) -> list[Notification]:
        async with self.lock:
            self._ensure_open()
            return await self._commit("start", lambda: self.game.start(seed))

    async def play_card(
        self,
        player_id: str,
        card: Card,
        chosen_color: Optional[Color] = None,
    ) -> list[Notification]:
        async with self.lock:
            self._ensure_open()
            return await self._commit(
                "play_card",
                lambda: self.game.play_card(player_id, card, chosen_color),
            )

    async def draw_card(self, player_id: str) -> list[Notification]:
        async with self.lock:
            self._ensure_open()
            return await self._commit("draw_card", lambda: self.game.draw_card(player_id))

    async def handle_timeout(self, player_id: str) -> list[Notification]:
        """
        Turn countdown callback: force a draw if `player_id` still holds the turn.

        Stale timeouts (turn already moved on, session closed) do nothing.
        """
        async with self.lock:
            if self.closed:
                return []
            result = await self._commit("timeout", lambda: self.game.timeout_turn(player_id))
            if result:
                self.log.info(f"Turn timed out for {player_id}")
            return result

    async def run_ai_turn(self, ai_player_id: str) -> list[Notification]:
        """
        Make the AI's move if it still holds the turn.

        The move runs through the same transition path as a human action.
        """
        async with self.lock:
            if self.closed or self.game.current_player() != ai_player_id:
                return []
            player = self.players.get(ai_player_id)
            if player is None or not player.is_ai:
                return []

            move = UnoAI.choose_move(self.game.hand(ai_player_id), self.game.top_card())
            if move.is_draw:
                ai_log(f"{player.username} draws ({move.reason})")
                if self.game.can_draw():
                    operation = lambda: self.game.draw_card(ai_player_id)
                else:
                    # Nothing left to draw: the turn passes as on a timeout
                    operation = lambda: self.game.timeout_turn(ai_player_id)
            else:
                color = f" as {move.chosen_color.value}" if move.chosen_color else ""
                ai_log(f"{player.username} plays {move.card.label()}{color} ({move.reason})")
                operation = lambda: self.game.play_card(ai_player_id, move.card, move.chosen_color)

            return await self._commit("ai_turn", operation)

    # -------------------------------------------------------------------------
    # Transition plumbing
    # -------------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionNotFound()

    async def _commit(
        self,
        action: str,
        operation: Callable[[], list[Notification]],
        schedule_turn: bool = True,
    ) -> list[Notification]:
        """
        Apply one transition. Caller must hold self.lock.

        GameErrors propagate untouched (Game validates before mutating).
        Any other exception rolls the session back to its state before the
        transition, is logged, and re-raised.
        """
        snapshot = self.to_dict()
        try:
            result = operation()
            if not result:
                return result
            self.touch()
            if schedule_turn:
                self._schedule_turn()
        except GameError:
            raise
        except Exception:
            self.log.exception(f"{action} failed, restoring previous session state")
            self._restore(snapshot)
            raise

        self.log.debug(f"{action}: {notify.notification_types(result)}")
        await self.deliver(result)
        await self.save()
        return result

    def _schedule_turn(self) -> None:
        """Arm the turn timer or queue the AI for whoever holds the turn now."""
        if self.game.phase == GamePhase.FINISHED:
            self.timer.cancel()
            self._cancel_ai()
            self.scheduler.schedule(
                self.timing.FINISHED_GRACE_SECONDS,
                self._finished_teardown,
                label="finished_teardown",
            )
            return

        current = self.game.current_player()
        if current is None:
            self.timer.cancel()
            return

        player = self.players.get(current)
        self._cancel_ai()
        if player is not None and player.is_ai:
            self.timer.cancel()
            self._ai_task = self.scheduler.schedule(
                self.timing.AI_THINKING_SECONDS,
                lambda: process_ai_turn(self, current),
                label=f"ai_turn:{current}",
            )
        else:
            self.timer.arm(current)

    def _cancel_ai(self) -> None:
        task = self._ai_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._ai_task = None

    async def _finished_teardown(self) -> None:
        if self.on_finished is not None:
            await self.on_finished(self.session_id)

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    async def deliver(self, notifications: list[Notification]) -> None:
        """Send notifications in order: targeted ones to their recipient only."""
        for notification in notifications:
            message = notification.to_dict()
            if notification.is_broadcast:
                await self.broadcast(message)
            else:
                await self.send_to(notification.target, message)

    async def broadcast(self, message: dict, exclude: Optional[str] = None) -> None:
        """
        Send a message to all connected human players in the session.

        Args:
            message: JSON-serializable message dict.
            exclude: Optional player ID to skip.
        """
        for player_id, player in list(self.players.items()):
            if player_id != exclude and player.websocket and not player.is_ai:
                await self._send(player, message)

    async def send_to(self, player_id: str, message: dict) -> None:
        """
        Send a message to a specific player.

        Args:
            player_id: ID of the recipient player.
            message: JSON-serializable message dict.
        """
        player = self.players.get(player_id)
        if player and player.websocket and not player.is_ai:
            await self._send(player, message)

    async def _send(self, player: SessionPlayer, message: dict) -> None:
        try:
            await player.websocket.send_json(message)
        except Exception as e:
            self.log.warning(f"Failed to send {message.get('type')} to {player.id}: {e}")

    # -------------------------------------------------------------------------
    # Teardown & persistence
    # -------------------------------------------------------------------------

    async def close(self, reason: str, auto_deleted: bool = False) -> bool:
        """
        Tear the session down under its lock.

        Cancels all scheduled work and tells connected players. Later
        transitions fail with SessionNotFound.

        Returns:
            False if the session was already closed.
        """
        async with self.lock:
            if self.closed:
                return False
            self.closed = True
            self.timer.cancel()
            self._cancel_ai()
            self.scheduler.cancel_all()
            await self.deliver([notify.session_deleted(reason, auto_deleted)])
            self.log.info(f"Session closed: {reason}")
            return True

    async def save(self) -> None:
        """Save a snapshot. Store failures are logged, never raised."""
        if self.store is None:
            return
        try:
            await self.store.save(self.session_id, self.to_dict())
        except Exception as e:
            self.log.warning(f"Failed to save session snapshot: {e}")

    async def resume(self) -> None:
        """Re-arm timers and AI moves after restoring from a snapshot."""
        async with self.lock:
            self._ensure_open()
            if self.game.phase != GamePhase.WAITING:
                self._schedule_turn()

    def to_dict(self) -> dict:
        """Snapshot of the session (WebSockets excluded)."""
        return {
            "session_id": self.session_id,
            "creator_id": self.creator_id,
            "max_players": self.max_players,
            "players": [p.to_dict() for p in self.players.values()],
            "game": self.game.to_dict(),
        }

    def _restore(self, snapshot: dict) -> None:
        connections = {pid: p.websocket for pid, p in self.players.items()}
        self.players = {
            p["id"]: SessionPlayer(
                id=p["id"],
                username=p["username"],
                is_ai=p.get("is_ai", False),
                websocket=connections.get(p["id"]),
            )
            for p in snapshot["players"]
        }
        self.game = Game.from_dict(snapshot["game"])

    @classmethod
    def from_dict(
        cls,
        snapshot: dict,
        timing: Optional[SessionTiming] = None,
        store: Optional[SessionStore] = None,
        clock: Callable[[], float] = time.monotonic,
        on_finished: Optional[Callable[[str], Awaitable[None]]] = None,
    ) -> "GameSession":
        """Rebuild a session from a to_dict() snapshot. Players start disconnected."""
        session = cls(
            session_id=snapshot["session_id"],
            creator_id=snapshot["creator_id"],
            max_players=snapshot.get("max_players", config.DEFAULT_MAX_PLAYERS),
            timing=timing,
            store=store,
            clock=clock,
            on_finished=on_finished,
        )
        session._restore(snapshot)
        return session

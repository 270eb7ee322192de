"""
Directory of live game sessions.

The SessionDirectory owns the session map: it creates sessions with unique
join codes, routes player operations to the right GameSession, and tears
sessions down (on request, after a finished game, when the last human
leaves, or when a session sits idle too long).

A single SessionDirectory instance is used by the server.
"""

import asyncio
import logging
import random
import string
import time
from typing import Callable, Optional

from fastapi import WebSocket

from cards import Card, Color
from config import SessionTiming, config
from constants import MIN_PLAYERS
from errors import AlreadyInSession, NotSessionCreator, SessionNotFound
from game import GamePhase
from notifications import Notification
from session import GameSession, SessionPlayer
from stores.session_store import SessionStore

logger = logging.getLogger(__name__)


class SessionDirectory:
    """
    Manages all active game sessions.

    Provides session creation with unique codes, lookup, operation routing
    and cleanup.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        clock: Callable[[], float] = time.monotonic,
        timing: Optional[SessionTiming] = None,
    ) -> None:
        self.sessions: dict[str, GameSession] = {}
        self.store = store
        self.clock = clock
        self.timing = timing or config.timing
        self._sweeper_task: Optional[asyncio.Task] = None

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate a unique session code."""
        for _ in range(max_attempts):
            code = "".join(random.choices(string.ascii_uppercase, k=config.SESSION_CODE_LENGTH))
            if code not in self.sessions:
                return code
        raise RuntimeError("Could not generate unique session code")

    def _new_session(self, session_id: str, creator_id: str, max_players: int) -> GameSession:
        return GameSession(
            session_id=session_id,
            creator_id=creator_id,
            max_players=max_players,
            timing=self.timing,
            store=self.store,
            clock=self.clock,
            on_finished=self._teardown_finished,
        )

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_session(self, session_id: str) -> GameSession:
        """
        Get a session by its code (case-insensitive).

        Raises:
            SessionNotFound: No live session with that code.
        """
        session = self.sessions.get(session_id.upper())
        if session is None or session.closed:
            raise SessionNotFound()
        return session

    def find_player_session(self, player_id: str) -> Optional[GameSession]:
        """
        Find which unfinished session a player is in.

        Finished sessions waiting for teardown are ignored.

        Args:
            player_id: The player ID to search for.

        Returns:
            The GameSession containing the player, or None.
        """
        for session in self.sessions.values():
            if session.closed or session.phase == GamePhase.FINISHED:
                continue
            if player_id in session.players:
                return session
        return None

    def _ensure_free(self, player_id: str, joining: Optional[GameSession] = None) -> None:
        """Reject a player still seated in another unfinished session."""
        current = self.find_player_session(player_id)
        if current is not None and current is not joining:
            raise AlreadyInSession(f"You are already in game {current.session_id}")

    # -------------------------------------------------------------------------
    # Lobby operations
    # -------------------------------------------------------------------------

    async def create_session(
        self,
        creator_id: str,
        username: str,
        max_players: Optional[int] = None,
        websocket: Optional[WebSocket] = None,
    ) -> GameSession:
        """
        Create a new session with a unique code; the creator joins it.

        Args:
            creator_id: Player creating the session.
            username: Creator's display name.
            max_players: Seat limit, clamped to 2..MAX_PLAYERS_PER_SESSION.
            websocket: Creator's connection.

        Returns:
            The newly created GameSession.
        """
        self._ensure_free(creator_id)

        if max_players is None:
            max_players = config.DEFAULT_MAX_PLAYERS
        max_players = max(MIN_PLAYERS, min(max_players, config.MAX_PLAYERS_PER_SESSION))

        session_id = self._generate_code()
        session = self._new_session(session_id, creator_id, max_players)
        self.sessions[session_id] = session
        await session.join(creator_id, username, websocket)

        logger.info(f"Session {session_id} created by {creator_id} (max {max_players} players)")
        return session

    async def join_session(
        self,
        session_id: str,
        player_id: str,
        username: str,
        websocket: Optional[WebSocket] = None,
    ) -> GameSession:
        session = self.get_session(session_id)
        self._ensure_free(player_id, joining=session)
        await session.join(player_id, username, websocket)
        return session

    async def add_ai_player(self, session_id: str, requester_id: str) -> SessionPlayer:
        return await self.get_session(session_id).add_ai_player(requester_id)

    async def leave_session(self, session_id: str, player_id: str) -> list[Notification]:
        """
        Remove a player; tear the session down if no human is left.

        Raises:
            SessionNotFound: Unknown or closed session.
            NotSessionCreator: The creator tried to leave a session in the lobby.
        """
        session = self.get_session(session_id)
        result = await session.leave(player_id)
        if session.human_count() == 0:
            await self.teardown(session.session_id, "All players left", auto_deleted=True)
        return result

    async def delete_session(self, session_id: str, requester_id: str) -> None:
        """
        Delete a session at its creator's request.

        Raises:
            SessionNotFound: Unknown or closed session.
            NotSessionCreator: The requester did not create the session.
        """
        session = self.get_session(session_id)
        if session.creator_id != requester_id:
            raise NotSessionCreator("Only the game creator can delete the game")
        await self.teardown(session.session_id, "This game has been deleted by the creator")

    # -------------------------------------------------------------------------
    # Gameplay routing
    # -------------------------------------------------------------------------

    async def start_session(self, session_id: str, seed: Optional[int] = None) -> list[Notification]:
        return await self.get_session(session_id).start(seed)

    async def play_card(
        self,
        session_id: str,
        player_id: str,
        card: Card,
        chosen_color: Optional[Color] = None,
    ) -> list[Notification]:
        return await self.get_session(session_id).play_card(player_id, card, chosen_color)

    async def draw_card(self, session_id: str, player_id: str) -> list[Notification]:
        return await self.get_session(session_id).draw_card(player_id)

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def teardown(
        self,
        session_id: str,
        reason: str,
        auto_deleted: bool = False,
        keep_snapshot: bool = False,
    ) -> bool:
        """
        Close a session and forget it. Safe to call more than once.

        With keep_snapshot the stored snapshot survives so the session can
        be restored by the next process.

        Returns:
            True if this call closed the session.
        """
        session = self.sessions.get(session_id.upper())
        if session is None:
            return False

        closed = await session.close(reason, auto_deleted)
        if self.sessions.get(session.session_id) is session:
            del self.sessions[session.session_id]
        if closed and self.store is not None and not keep_snapshot:
            try:
                await self.store.delete(session.session_id)
            except Exception as e:
                logger.warning(f"Failed to delete snapshot for {session.session_id}: {e}")
        return closed

    async def _teardown_finished(self, session_id: str) -> None:
        await self.teardown(session_id, "Game finished", auto_deleted=True)

    async def sweep_inactive(self) -> list[str]:
        """
        Tear down unfinished sessions idle longer than the inactivity timeout.

        Returns:
            Codes of the sessions removed.
        """
        timeout = self.timing.INACTIVITY_TIMEOUT_SECONDS
        stale = [
            session.session_id
            for session in list(self.sessions.values())
            if session.phase != GamePhase.FINISHED and session.idle_seconds() > timeout
        ]
        removed = []
        for session_id in stale:
            if await self.teardown(session_id, "Game inactive", auto_deleted=True):
                removed.append(session_id)
        if removed:
            logger.info(f"Removed {len(removed)} inactive session(s): {', '.join(removed)}")
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.timing.INACTIVITY_SWEEP_SECONDS)
            try:
                await self.sweep_inactive()
            except Exception:
                logger.exception("Inactivity sweep failed")

    def start_sweeper(self) -> None:
        """Start the periodic inactivity sweep (idempotent)."""
        if self._sweeper_task is None or self._sweeper_task.done():
            self._sweeper_task = asyncio.create_task(self._sweep_loop(), name="inactivity_sweeper")

    async def close(self) -> None:
        """Stop the sweeper and tear down every session, keeping snapshots (server shutdown)."""
        if self._sweeper_task is not None:
            self._sweeper_task.cancel()
            try:
                await self._sweeper_task
            except asyncio.CancelledError:
                pass
            self._sweeper_task = None

        for session_id in list(self.sessions):
            await self.teardown(
                session_id, "Server shutting down", auto_deleted=True, keep_snapshot=True
            )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def restore_session(self, session_id: str) -> GameSession:
        """
        Load a session from the store and resume its timers.

        Returns the live session if it is already loaded.

        Raises:
            SessionNotFound: No snapshot for that code.
        """
        session_id = session_id.upper()
        existing = self.sessions.get(session_id)
        if existing is not None and not existing.closed:
            return existing
        if self.store is None:
            raise SessionNotFound()

        snapshot = await self.store.load(session_id)
        if snapshot is None:
            raise SessionNotFound()

        session = GameSession.from_dict(
            snapshot,
            timing=self.timing,
            store=self.store,
            clock=self.clock,
            on_finished=self._teardown_finished,
        )
        self.sessions[session_id] = session
        await session.resume()
        logger.info(f"Restored session {session_id} ({session.phase.value})")
        return session

    async def restore_all(self) -> int:
        """Restore every session with a stored snapshot. Returns how many loaded."""
        if self.store is None:
            return 0
        restored = 0
        for session_id in await self.store.active_sessions():
            try:
                await self.restore_session(session_id)
                restored += 1
            except SessionNotFound:
                logger.warning(f"Snapshot for {session_id} disappeared before restore")
        return restored

    def stats(self) -> dict:
        """Session counts by phase (for /metrics)."""
        counts = {phase.value: 0 for phase in GamePhase}
        for session in self.sessions.values():
            counts[session.phase.value] += 1
        return {
            "sessions": len(self.sessions),
            "by_phase": counts,
            "players": sum(len(s.players) for s in self.sessions.values()),
        }

"""
Deferred work for game sessions: turn countdowns and delayed callbacks.

Both classes wrap plain asyncio tasks that sleep and then await a callback.
Callbacks must re-check their own preconditions when they run: a task that
had already woken up when it was cancelled may still be waiting on the
session lock, and the session state it was armed for may be gone.

Cancellation never targets the task that is currently running, so a callback
may safely re-arm or cancel the timer that invoked it.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


def _is_current(task: Optional[asyncio.Task]) -> bool:
    try:
        return task is not None and task is asyncio.current_task()
    except RuntimeError:
        # No running event loop
        return False


class Scheduler:
    """
    Runs callbacks after a delay and keeps track of the pending ones.

    Used by a session for AI moves and teardown after a finished game.
    Exceptions raised by a callback are logged, never propagated into the
    event loop.
    """

    def __init__(self, name: str = "session"):
        self.name = name
        self._tasks: set[asyncio.Task] = set()

    def schedule(
        self,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        label: str = "callback",
    ) -> asyncio.Task:
        """
        Run `callback` after `delay` seconds.

        Args:
            delay: Seconds to wait.
            callback: Coroutine function taking no arguments.
            label: Short description for the task name and logs.

        Returns:
            The created task.
        """
        task = asyncio.create_task(
            self._run(delay, callback, label),
            name=f"{self.name}:{label}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, delay: float, callback: Callable[[], Awaitable[None]], label: str) -> None:
        await asyncio.sleep(delay)
        try:
            await callback()
        except Exception:
            logger.exception(f"Scheduled {label} failed for {self.name}")

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def cancel_all(self) -> None:
        """Cancel every pending callback except the one currently running."""
        for task in list(self._tasks):
            if not task.done() and not _is_current(task):
                task.cancel()
            self._tasks.discard(task)


class TurnTimer:
    """
    Countdown for the current human player's turn.

    At most one countdown is outstanding; arming a new one cancels the old.
    When it expires `on_expire(player_id)` is awaited with the player the
    countdown was armed for, letting the callee ignore it if the turn has
    moved on in the meantime.
    """

    def __init__(self, timeout: float, on_expire: Callable[[str], Awaitable[None]], name: str = "session"):
        self.timeout = timeout
        self.on_expire = on_expire
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._expected_player: Optional[str] = None

    @property
    def expected_player(self) -> Optional[str]:
        """Player the outstanding countdown was armed for (None if idle)."""
        return self._expected_player

    @property
    def is_armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self, player_id: str) -> None:
        """Start a fresh countdown for `player_id`, replacing any previous one."""
        self.cancel()
        self._expected_player = player_id
        self._task = asyncio.create_task(
            self._countdown(player_id),
            name=f"{self.name}:turn_timer:{player_id}",
        )

    def cancel(self) -> None:
        if self._task is not None and not self._task.done() and not _is_current(self._task):
            self._task.cancel()
        self._task = None
        self._expected_player = None

    async def _countdown(self, player_id: str) -> None:
        await asyncio.sleep(self.timeout)
        logger.debug(f"Turn timer expired for {player_id} in {self.name}")
        try:
            await self.on_expire(player_id)
        except Exception:
            logger.exception(f"Turn timeout handling failed for {player_id} in {self.name}")

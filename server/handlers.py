"""WebSocket message handlers for the UNO game.

Each handler corresponds to a single message type from the client.
Handlers are dispatched via the HANDLERS dict (see dispatch()).

Payloads are validated with pydantic models. A rejected operation (any
GameError) or a malformed payload is answered with an ``error`` message sent
to the requesting connection only; other players never see it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket
from pydantic import BaseModel, Field, ValidationError

from cards import Card, Color, Rank
from errors import GameError, InvalidMessage, SessionNotFound
from logging_config import set_log_context
from session import GameSession

logger = logging.getLogger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    connection_id: str
    player_id: str
    current_session: Optional[GameSession] = None

    def require_session(self) -> GameSession:
        if self.current_session is None or self.current_session.closed:
            raise SessionNotFound("You are not in a game")
        return self.current_session


# ---------------------------------------------------------------------------
# Message payloads
# ---------------------------------------------------------------------------

class CreateSessionMessage(BaseModel):
    username: str = Field("Player", min_length=1, max_length=32)
    max_players: Optional[int] = Field(None, ge=1)


class JoinSessionMessage(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=16)
    username: str = Field("Player", min_length=1, max_length=32)


class CardPayload(BaseModel):
    color: Color
    rank: Rank

    def to_card(self) -> Card:
        return Card(self.color, self.rank)


class PlayCardMessage(BaseModel):
    card: CardPayload
    chosen_color: Optional[Color] = None


async def send_game_state(session: GameSession) -> None:
    """Send every connected player their own view of the game."""
    for player in list(session.players.values()):
        if player.websocket and not player.is_ai:
            await session.send_to(player.id, {
                "type": "game_state",
                "state": session.get_state(player.id),
            })


# ---------------------------------------------------------------------------
# Lobby / Session handlers
# ---------------------------------------------------------------------------

async def handle_create_session(data: dict, ctx: ConnectionContext, *, directory, **kw) -> None:
    msg = CreateSessionMessage.model_validate(data)
    session = await directory.create_session(
        ctx.player_id, msg.username, msg.max_players, websocket=ctx.websocket,
    )
    ctx.current_session = session
    set_log_context(session_id=session.session_id)

    await ctx.websocket.send_json({
        "type": "session_created",
        "session_id": session.session_id,
        "player_id": ctx.player_id,
        "max_players": session.max_players,
        "players": session.player_list(),
    })


async def handle_join_session(data: dict, ctx: ConnectionContext, *, directory, **kw) -> None:
    msg = JoinSessionMessage.model_validate(data)
    session = await directory.join_session(
        msg.session_id, ctx.player_id, msg.username, websocket=ctx.websocket,
    )
    ctx.current_session = session
    set_log_context(session_id=session.session_id)

    await ctx.websocket.send_json({
        "type": "session_joined",
        "session_id": session.session_id,
        "player_id": ctx.player_id,
        "players": session.player_list(),
        "state": session.get_state(ctx.player_id),
    })


async def handle_add_ai_player(data: dict, ctx: ConnectionContext, *, directory, **kw) -> None:
    session = ctx.require_session()
    await directory.add_ai_player(session.session_id, ctx.player_id)


async def handle_start_session(data: dict, ctx: ConnectionContext, *, directory, **kw) -> None:
    session = ctx.require_session()
    await directory.start_session(session.session_id)
    await send_game_state(session)


async def handle_get_state(data: dict, ctx: ConnectionContext, **kw) -> None:
    session = ctx.require_session()
    await ctx.websocket.send_json({
        "type": "game_state",
        "state": session.get_state(ctx.player_id),
    })


# ---------------------------------------------------------------------------
# Gameplay handlers
# ---------------------------------------------------------------------------

async def handle_play_card(data: dict, ctx: ConnectionContext, *, directory, **kw) -> None:
    session = ctx.require_session()
    msg = PlayCardMessage.model_validate(data)
    await directory.play_card(session.session_id, ctx.player_id, msg.card.to_card(), msg.chosen_color)


async def handle_draw_card(data: dict, ctx: ConnectionContext, *, directory, **kw) -> None:
    session = ctx.require_session()
    await directory.draw_card(session.session_id, ctx.player_id)


# ---------------------------------------------------------------------------
# Leave / Delete handlers
# ---------------------------------------------------------------------------

async def handle_leave_session(data: dict, ctx: ConnectionContext, *, directory, **kw) -> None:
    session = ctx.require_session()
    await directory.leave_session(session.session_id, ctx.player_id)
    ctx.current_session = None
    await ctx.websocket.send_json({"type": "session_left", "session_id": session.session_id})


async def handle_delete_session(data: dict, ctx: ConnectionContext, *, directory, **kw) -> None:
    session = ctx.require_session()
    await directory.delete_session(session.session_id, ctx.player_id)
    ctx.current_session = None


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "create_session": handle_create_session,
    "join_session": handle_join_session,
    "add_ai_player": handle_add_ai_player,
    "start_session": handle_start_session,
    "get_state": handle_get_state,
    "play_card": handle_play_card,
    "draw_card": handle_draw_card,
    "leave_session": handle_leave_session,
    "delete_session": handle_delete_session,
}


async def send_error(ctx: ConnectionContext, error: GameError) -> None:
    await ctx.websocket.send_json(error.to_notification().to_dict())


async def dispatch(data: dict, ctx: ConnectionContext, **deps) -> None:
    """
    Route one inbound message to its handler.

    Errors caused by the request are reported to the sender only.
    """
    msg_type = data.get("type") if isinstance(data, dict) else None
    handler = HANDLERS.get(msg_type)
    if handler is None:
        await send_error(ctx, InvalidMessage(f"Unknown message type: {msg_type}"))
        return

    try:
        await handler(data, ctx, **deps)
    except GameError as e:
        logger.debug(f"{msg_type} rejected for {ctx.player_id}: {e.kind}")
        await send_error(ctx, e)
    except ValidationError as e:
        logger.debug(f"Invalid {msg_type} payload from {ctx.player_id}: {e.error_count()} error(s)")
        await send_error(ctx, InvalidMessage(f"Invalid {msg_type} message"))

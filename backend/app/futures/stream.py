"""WebSocket endpoint and message protocol for live series subscriptions."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .exceptions import ValidationError
from .models import SeriesKind
from .provider import normalize_symbol
from .subscriptions import ClientSession, SubscriptionRegistry

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = "Connected. Send subscribe messages to start receiving data."


def create_stream_router(registry: SubscriptionRegistry) -> APIRouter:
    """Create the WebSocket router bound to a subscription registry.

    This factory pattern lets us inject the registry without globals.
    """
    router = APIRouter(tags=["streaming"])

    @router.websocket("/ws")
    async def stream_series(websocket: WebSocket) -> None:
        """Live kline / KD / MACD feed.

        Protocol (JSON text frames):

            -> {"type": "subscribe", "symbol": "MA2601", "dataType": "kline"}
            -> {"type": "unsubscribe", "symbol": "MA2601", "dataType": "kline"}
            -> {"type": "ping"}
            <- {"type": "data", "dataType": "kline", "symbol": "MA2601", "data": {...}}
            <- {"type": "data", "message": "..."}
            <- {"type": "error", "message": "..."}
            <- {"type": "pong"}

        Data is pushed by the BroadcastLoop only when it changed since the
        last push to this connection.
        """
        await websocket.accept()
        session = registry.connect(websocket.send_json)
        try:
            await session.send({"type": "data", "message": WELCOME_MESSAGE})
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                frame = message.get("text")
                if frame is None:
                    frame = message.get("bytes") or b""
                await handle_client_message(session, frame)
        except WebSocketDisconnect:
            pass
        finally:
            registry.disconnect(session.connection_id)

    return router


async def handle_client_message(session: ClientSession, text: str | bytes) -> None:
    """Apply one inbound message to a session and send the reply.

    Binary frames are decoded as UTF-8 and handled like text frames. Bad
    input never closes the connection; it is answered with an ``error``
    message and leaves the session's subscriptions unchanged.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError:
            await _error(session, "Invalid message: binary frame is not valid UTF-8")
            return
    try:
        msg = json.loads(text)
    except json.JSONDecodeError as e:
        await _error(session, f"Invalid message: {e}")
        return
    if not isinstance(msg, dict):
        await _error(session, "Invalid message: expected a JSON object")
        return

    msg_type = msg.get("type")
    if msg_type == "ping":
        await session.send({"type": "pong"})
    elif msg_type in ("subscribe", "unsubscribe"):
        await _handle_subscription(session, msg_type, msg)
    else:
        await _error(session, f"Unknown message type: {msg_type}")


async def _handle_subscription(session: ClientSession, action: str, msg: dict) -> None:
    raw_symbol = msg.get("symbol")
    raw_kind = msg.get("dataType")
    if not raw_symbol or not raw_kind:
        await _error(session, f"{action.capitalize()} failed: symbol and dataType are required")
        return

    try:
        symbol = normalize_symbol(raw_symbol)
        kind = SeriesKind(raw_kind)
    except (ValidationError, ValueError):
        await _error(
            session,
            f"{action.capitalize()} failed: invalid symbol {raw_symbol!r} or dataType {raw_kind!r} "
            f"(expected one of {', '.join(k.value for k in SeriesKind)})",
        )
        return

    if action == "subscribe":
        added = session.subscribe(symbol, kind)
        logger.info("Client %d subscribed to %s:%s%s", session.connection_id, symbol, kind.value, "" if added else " (already)")
        await session.send({"type": "data", "message": f"Subscribed to {symbol} {kind.value} data"})
    else:
        removed = session.unsubscribe(symbol, kind)
        logger.info("Client %d unsubscribed from %s:%s%s", session.connection_id, symbol, kind.value, "" if removed else " (not subscribed)")
        await session.send({"type": "data", "message": f"Unsubscribed from {symbol} {kind.value} data"})


async def _error(session: ClientSession, message: str) -> None:
    await session.send({"type": "error", "message": message})

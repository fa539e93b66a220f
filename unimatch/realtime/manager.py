"""
UniMatch — WebSocket Connection Manager

Holds the registry of live sockets, keyed by user id.  A user has at most
one active connection: opening a new one evicts and closes the previous
socket.  Deregistration is identity-checked so an evicted socket that
finishes closing late cannot remove its replacement.

Live delivery is best-effort.  A send to a socket that has gone away is
logged, the stale entry is dropped, and the caller carries on; messages
are already persisted by then and the recipient catches up via history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from unimatch.schemas.realtime import connection_frame, notification_frame

logger = structlog.get_logger("unimatch.realtime.manager")


@dataclass
class Connection:
    user_id: str
    websocket: WebSocket
    is_admin: bool = False
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ConnectionManager:
    """In-process registry of one WebSocket per user."""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def connect(
        self,
        user_id: str,
        websocket: WebSocket,
        *,
        is_admin: bool = False,
    ) -> Connection:
        """Accept ``websocket`` and make it the user's only live connection."""
        await websocket.accept()

        previous = self._connections.get(user_id)
        connection = Connection(user_id=user_id, websocket=websocket, is_admin=is_admin)
        self._connections[user_id] = connection

        if previous is not None and previous.websocket is not websocket:
            logger.info("connection_evicted", user_id=user_id)
            await self._close(previous.websocket, reason="Replaced by a newer connection")

        logger.info("user_connected", user_id=user_id, total=len(self._connections))
        await self.send_to(user_id, connection_frame(user_id, is_admin))
        return connection

    def disconnect(self, user_id: str, websocket: WebSocket) -> bool:
        """Remove the registry entry only if it still points at ``websocket``."""
        current = self._connections.get(user_id)
        if current is None or current.websocket is not websocket:
            return False
        del self._connections[user_id]
        logger.info("user_disconnected", user_id=user_id, total=len(self._connections))
        return True

    async def close_all(self) -> None:
        """Close every live socket; used on application shutdown."""
        connections = list(self._connections.values())
        self._connections.clear()
        for connection in connections:
            await self._close(connection.websocket, reason="Server shutting down",
                              code=status.WS_1001_GOING_AWAY)
        if connections:
            logger.info("connections_closed", count=len(connections))

    # ── Delivery ──────────────────────────────────────────────────────────

    async def send_to(self, user_id: str, payload: dict[str, Any]) -> bool:
        """Push ``payload`` to the user if online.  Returns whether it was sent."""
        connection = self._connections.get(user_id)
        if connection is None:
            return False

        websocket = connection.websocket
        if websocket.application_state != WebSocketState.CONNECTED:
            self.disconnect(user_id, websocket)
            return False

        try:
            await websocket.send_json(payload)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            logger.warning(
                "send_failed",
                user_id=user_id,
                frame_type=payload.get("type"),
                error=str(exc),
            )
            self.disconnect(user_id, websocket)
            return False
        return True

    async def send_notification(self, user_id: str, kind: str, **payload: Any) -> bool:
        return await self.send_to(user_id, notification_frame(kind, **payload))

    async def broadcast(self, payload: dict[str, Any], *, admins_only: bool = False) -> int:
        """Send to every live connection (or only admin ones).  Returns the count reached."""
        targets = [
            c.user_id for c in list(self._connections.values())
            if c.is_admin or not admins_only
        ]
        sent = 0
        for user_id in targets:
            if await self.send_to(user_id, payload):
                sent += 1
        return sent

    # ── Introspection ─────────────────────────────────────────────────────

    def is_online(self, user_id: str) -> bool:
        return user_id in self._connections

    def online_count(self) -> int:
        return len(self._connections)

    # ── Private helpers ───────────────────────────────────────────────────

    async def _close(
        self,
        websocket: WebSocket,
        *,
        reason: str,
        code: int = status.WS_1000_NORMAL_CLOSURE,
    ) -> None:
        if websocket.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await websocket.close(code=code, reason=reason)
        except (RuntimeError, OSError) as exc:
            logger.warning("close_failed", error=str(exc))


manager = ConnectionManager()


def get_connection_manager() -> ConnectionManager:
    """FastAPI dependency returning the process-wide connection manager."""
    return manager

"""
UniMatch — Reconnecting chat client.

A small asyncio client for the ``/ws`` endpoint, used by the load-test
script and the test-suite.  Connection handling is an explicit state
machine::

    DISCONNECTED -> CONNECTING -> CONNECTED
         ^              |             |
         |              v             | (socket dropped)
         |        RECONNECTING(n) ----+---> CONNECTING ...
         |              |
         +---------- GAVE_UP   (after ``max_attempts`` failed attempts)

Retry delays grow as ``initial_delay * 2 ** (n - 1)`` and are capped at
``max_delay``.  A connection that drops after being established starts
again with a fresh attempt counter.
"""

from __future__ import annotations

import asyncio
import enum
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlencode

import structlog
import websockets
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = structlog.get_logger("unimatch.realtime.client")

RETRYABLE_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    GAVE_UP = "gave_up"


@dataclass(frozen=True)
class ReconnectPolicy:
    """Backoff parameters.  ``max_attempts`` counts the first attempt too."""

    initial_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: int = 6

    def delay_for(self, retry: int) -> float:
        """Delay before reconnect attempt ``retry`` (1-based)."""
        return min(self.initial_delay * 2 ** (retry - 1), self.max_delay)


StateListener = Callable[[ConnectionState, int], Any]
FrameListener = Callable[[dict[str, Any]], Awaitable[None]]


class ChatClient:
    """WebSocket chat client with exponential-backoff reconnects."""

    def __init__(
        self,
        base_url: str,
        user_id: str,
        *,
        is_admin: bool = False,
        policy: ReconnectPolicy | None = None,
        connect: Optional[Callable[[str], Awaitable[Any]]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_frame: Optional[FrameListener] = None,
        on_state_change: Optional[StateListener] = None,
        on_give_up: Optional[Callable[[BaseException | None], Any]] = None,
    ) -> None:
        self.user_id = user_id
        self.url = f"{base_url}?{urlencode({'userId': user_id, 'isAdmin': str(is_admin).lower()})}"
        self.policy = policy or ReconnectPolicy()
        self._connect = connect or websockets.connect
        self._sleep = sleep
        self._on_frame = on_frame
        self._on_state_change = on_state_change
        self._on_give_up = on_give_up

        self._ws: Any = None
        self._state = ConnectionState.DISCONNECTED
        self._retry = 0
        self._closing = False

    # ── State ─────────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry(self) -> int:
        """Reconnect attempt number; 0 while on the first attempt or connected."""
        return self._retry

    def _set_state(self, state: ConnectionState, retry: int = 0) -> None:
        self._state = state
        self._retry = retry
        logger.debug("client_state", user_id=self.user_id, state=state.value, retry=retry)
        if self._on_state_change is not None:
            self._on_state_change(state, retry)

    # ── Connecting ────────────────────────────────────────────────────────

    async def connect(self) -> bool:
        """Open the socket, retrying with backoff.

        Returns ``True`` once connected, ``False`` after giving up.
        """
        self._closing = False
        policy = self.policy

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(RETRYABLE_ERRORS),
                stop=stop_after_attempt(policy.max_attempts),
                wait=wait_exponential(
                    multiplier=policy.initial_delay,
                    max=policy.max_delay,
                    exp_base=2,
                ),
                sleep=self._sleep,
            ):
                with attempt:
                    number = attempt.retry_state.attempt_number
                    if number == 1:
                        self._set_state(ConnectionState.CONNECTING)
                    else:
                        self._set_state(ConnectionState.RECONNECTING, number - 1)
                    self._ws = await self._connect(self.url)
        except RetryError as retry_err:
            last_error = retry_err.last_attempt.exception()
            logger.error(
                "client_gave_up",
                user_id=self.user_id,
                attempts=policy.max_attempts,
                last_error=str(last_error),
            )
            self._ws = None
            self._set_state(ConnectionState.GAVE_UP, policy.max_attempts - 1)
            if self._on_give_up is not None:
                self._on_give_up(last_error)
            return False

        self._set_state(ConnectionState.CONNECTED)
        logger.info("client_connected", user_id=self.user_id)
        return True

    async def run(self) -> None:
        """Connect and dispatch frames until closed or the client gives up."""
        while not self._closing:
            if not await self.connect():
                return
            try:
                async for raw in self._ws:
                    await self._dispatch(raw)
            except ConnectionClosed as exc:
                logger.warning("client_connection_lost", user_id=self.user_id, code=exc.code)
            self._ws = None
            if not self._closing:
                self._set_state(ConnectionState.DISCONNECTED)
        self._set_state(ConnectionState.DISCONNECTED)

    async def close(self) -> None:
        self._closing = True
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
        self._set_state(ConnectionState.DISCONNECTED)

    # ── Frames ────────────────────────────────────────────────────────────

    async def send(self, frame: dict[str, Any]) -> None:
        if self._ws is None or self._state != ConnectionState.CONNECTED:
            raise ConnectionError(f"Client for {self.user_id} is not connected")
        await self._ws.send(json.dumps(frame))

    async def receive(self) -> dict[str, Any]:
        if self._ws is None:
            raise ConnectionError(f"Client for {self.user_id} is not connected")
        return json.loads(await self._ws.recv())

    async def send_message(self, match_id: str, content: str) -> None:
        await self.send({"type": "send_message", "matchId": match_id, "content": content})

    async def mark_read(self, match_id: str) -> None:
        await self.send({"type": "mark_read", "matchId": match_id})

    async def typing(self, match_id: str, is_typing: bool = True) -> None:
        await self.send({"type": "typing", "matchId": match_id, "isTyping": is_typing})

    async def ping(self) -> None:
        await self.send({"type": "ping"})

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.warning("client_bad_frame", user_id=self.user_id)
            return
        if self._on_frame is not None:
            await self._on_frame(frame)

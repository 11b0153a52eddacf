"""
Client connection management for rein.

This module owns the single logical WebSocket connection of a client process:
connect, fixed-delay reconnect, frame encoding/decoding, and teardown.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from rein.common.settings import settings
from rein.common.types import ConnectionState
from rein.protocol.message import InputMessage, message_decode, message_encode

logger = logging.getLogger(__name__)

__all__ = [
    "ConnectionManager",
    "serverUrl_build",
]

ConnectFunc = Callable[[str], Awaitable[Any]]
StateCallback = Callable[[ConnectionState], None]
MessageCallback = Callable[[InputMessage], None]

# Failures that send a session down the close/reconnect path
TRANSPORT_ERRORS = (OSError, WebSocketException)


def serverUrl_build(host: str, port: int, path: str = settings.WEBSOCKET_PATH) -> str:
    """
    Build the relay WebSocket URL.

    Args:
        host:
            Server host.
        port:
            Server port.
        path:
            Endpoint path.

    Returns:
        `ws://` URL.
    """
    return f"ws://{host}:{port}{path}"


async def websocket_connect(url: str) -> Any:
    """
    Open a WebSocket with the relay's frame size limit.

    Args:
        url:
            Relay URL.

    Returns:
        Open client connection.
    """
    return await connect(url, max_size=settings.MAX_MESSAGE_SIZE)


class ConnectionManager:
    """
    Owner of at most one live relay connection.

    Every socket session carries a generation number. Replacing or tearing
    down a socket bumps the generation first, which detaches the old
    session: its open, message, and close handling become no-ops, so a
    late close of an old socket can never trigger a second reconnect.

    State machine::

        DISCONNECTED --connect()--> CONNECTING --open--> CONNECTED
        CONNECTED --close/error--> DISCONNECTED --timer--> CONNECTING
    """

    def __init__(
        self,
        url: str,
        reconnect_delay: float = settings.RECONNECT_DELAY_SEC,
        state_changed: StateCallback | None = None,
        message_received: MessageCallback | None = None,
        connect_func: ConnectFunc = websocket_connect,
    ) -> None:
        """
        Initialize connection manager.

        Args:
            url:
                Relay WebSocket URL.
            reconnect_delay:
                Fixed delay in seconds between a close and the next attempt.
            state_changed:
                Optional observer of state transitions.
            message_received:
                Optional consumer of decoded inbound messages.
            connect_func:
                Coroutine function opening a transport for a URL.
        """
        self.url: str = url
        self.reconnect_delay: float = reconnect_delay
        self.state: ConnectionState = ConnectionState.DISCONNECTED
        self.reconnects_scheduled: int = 0

        self._state_changed: StateCallback | None = state_changed
        self._message_received: MessageCallback | None = message_received
        self._connect_func: ConnectFunc = connect_func

        self._generation: int = 0
        self._websocket: Any = None
        self._session_task: asyncio.Task | None = None
        self._start_handle: asyncio.TimerHandle | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._closing_tasks: set[asyncio.Task] = set()
        self._torn_down: bool = False

    def start(self) -> None:
        """
        Schedule the first connect on the next loop iteration.

        A start immediately followed by teardown() never creates a socket.
        """
        if self._torn_down or self._start_handle is not None:
            return
        self._start_handle = asyncio.get_running_loop().call_later(0, self.startTimer_fire)

    def startTimer_fire(self) -> None:
        """Run the deferred first connect."""
        self._start_handle = None
        self.connect()

    def connect(self) -> None:
        """
        Replace any current socket with a fresh connection attempt.

        Must be called from the running event loop. Ignored after teardown.
        """
        if self._torn_down:
            return
        self.timer_cancel()
        self.session_detach()
        self.state_set(ConnectionState.CONNECTING)
        logger.info("Connecting to %s", self.url)
        generation: int = self._generation
        self._session_task = asyncio.get_running_loop().create_task(self.session_run(generation))

    def retarget(self, url: str) -> None:
        """
        Point the connection at a new address and reconnect.

        Args:
            url:
                New relay URL.
        """
        logger.info("Switching server to %s", url)
        self.url = url
        self.connect()

    async def send(self, message: InputMessage) -> bool:
        """
        Send a message if connected; drop it otherwise.

        No queuing: messages produced while not connected are lost.

        Args:
            message:
                Message to send.

        Returns:
            `True` when the frame was handed to the transport.
        """
        websocket: Any = self._websocket
        if self.state != ConnectionState.CONNECTED or websocket is None:
            logger.debug("Dropping %s while %s", message.msg_type.value, self.state.value)
            return False
        try:
            await websocket.send(message_encode(message))
        except (ConnectionClosed, *TRANSPORT_ERRORS) as exc:
            logger.warning("Send failed, closing connection: %s", exc)
            self.socketClose_background(websocket)
            return False
        return True

    async def teardown(self) -> None:
        """
        Shut the connection down for good.

        Cancels pending timers and detaches the session before closing, so
        no state transition or callback happens afterwards. Idempotent.
        """
        if self._torn_down:
            return
        self._torn_down = True
        if self._start_handle is not None:
            self._start_handle.cancel()
            self._start_handle = None
        self.timer_cancel()

        self._generation += 1
        websocket: Any = self._websocket
        task: asyncio.Task | None = self._session_task
        self._websocket = None
        self._session_task = None

        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if websocket is not None:
            await self.socket_close(websocket)
        if self._closing_tasks:
            await asyncio.gather(*self._closing_tasks, return_exceptions=True)
        logger.info("Connection torn down")

    async def session_run(self, generation: int) -> None:
        """
        Drive one socket from connect to close.

        Args:
            generation:
                Generation this session belongs to.
        """
        try:
            websocket: Any = await self._connect_func(self.url)
        except TRANSPORT_ERRORS as exc:
            logger.warning("Connection to %s failed: %s", self.url, exc)
            self.socketClose_handle(generation)
            return

        if generation != self._generation:
            await self.socket_close(websocket)
            return
        self._websocket = websocket
        self.socketOpen_handle(generation)

        try:
            async for raw in websocket:
                message: InputMessage | None = message_decode(raw)
                if message is None or generation != self._generation:
                    continue
                if self._message_received is not None:
                    self._message_received(message)
        except ConnectionClosed as exc:
            logger.info("Connection closed: %s", exc)
        except TRANSPORT_ERRORS as exc:
            logger.warning("Transport error: %s", exc)
        finally:
            if generation == self._generation:
                self._websocket = None
                await self.socket_close(websocket)
                self.socketClose_handle(generation)

    def socketOpen_handle(self, generation: int) -> None:
        """Mark the session connected unless it has been detached."""
        if generation != self._generation or self._torn_down:
            return
        self.state_set(ConnectionState.CONNECTED)

    def socketClose_handle(self, generation: int) -> None:
        """Mark disconnected and schedule exactly one reconnect."""
        if generation != self._generation or self._torn_down:
            return
        self.state_set(ConnectionState.DISCONNECTED)
        self.reconnect_schedule()

    def reconnect_schedule(self) -> None:
        """Arm the fixed-delay reconnect timer."""
        self.timer_cancel()
        self.reconnects_scheduled += 1
        logger.info("Reconnecting in %.1fs", self.reconnect_delay)
        self._reconnect_handle = asyncio.get_running_loop().call_later(
            self.reconnect_delay, self.reconnectTimer_fire
        )

    def reconnectTimer_fire(self) -> None:
        """Run a scheduled reconnect."""
        self._reconnect_handle = None
        self.connect()

    def timer_cancel(self) -> None:
        """Cancel a pending reconnect, if any."""
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def session_detach(self) -> None:
        """Detach the current session and close its socket in the background."""
        self._generation += 1
        websocket: Any = self._websocket
        task: asyncio.Task | None = self._session_task
        self._websocket = None
        self._session_task = None
        if task is not None and not task.done():
            task.cancel()
        if websocket is not None:
            self.socketClose_background(websocket)

    def socketClose_background(self, websocket: Any) -> None:
        """Close a socket without awaiting it."""
        task: asyncio.Task = asyncio.get_running_loop().create_task(self.socket_close(websocket))
        self._closing_tasks.add(task)
        task.add_done_callback(self._closing_tasks.discard)

    async def socket_close(self, websocket: Any) -> None:
        """
        Close a socket, logging close errors.

        Args:
            websocket:
                Socket to close.
        """
        try:
            await websocket.close()
        except TRANSPORT_ERRORS as exc:
            logger.debug("Error closing socket: %s", exc)

    def state_set(self, state: ConnectionState) -> None:
        """
        Transition state and notify the observer on change.

        Args:
            state:
                New state.
        """
        if state == self.state:
            return
        self.state = state
        logger.info("Connection %s", state.value)
        if self._state_changed is not None:
            self._state_changed(state)

"""WebSocket relay server for rein input messages"""

import asyncio
import logging
from http import HTTPStatus
from typing import Optional, Set, Tuple

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from rein.common.settings import settings
from rein.protocol.message import InputMessage, message_decode, message_encode
from rein.server.dispatcher import InputDispatcher

logger = logging.getLogger(__name__)

QueuedMessage = Tuple[ServerConnection, InputMessage]


class RelayServer:
    """Accepts client connections and feeds one ordered dispatch loop"""

    def __init__(
        self,
        host: str,
        port: int,
        dispatcher: InputDispatcher,
        path: str = settings.WEBSOCKET_PATH,
    ) -> None:
        """
        Initialize relay server

        Args:
            host: Host address to bind to
            port: Port to listen on (0 picks a free port)
            dispatcher: Input dispatcher consuming decoded messages
            path: HTTP path of the WebSocket endpoint
        """
        self.host: str = host
        self.port: int = port
        self.path: str = path
        self._dispatcher: InputDispatcher = dispatcher
        self._server: Optional[Server] = None
        self._queue: Optional["asyncio.Queue[QueuedMessage]"] = None
        self._dispatch_task: Optional[asyncio.Task] = None
        self.clients: Set[ServerConnection] = set()
        self.is_running: bool = False

    async def server_start(self) -> None:
        """
        Start listening and launch the dispatch loop

        Raises:
            OSError: If unable to bind to address
        """
        self._queue = asyncio.Queue()
        self._server = await serve(
            self.connection_handle,
            self.host,
            self.port,
            process_request=self.request_process,
            max_size=settings.MAX_MESSAGE_SIZE,
        )
        self._dispatch_task = asyncio.create_task(self.dispatch_loop())
        self.is_running = True

        logger.info(f"Server listening on ws://{self.host}:{self.boundPort_get()}{self.path}")

    async def server_stop(self) -> None:
        """Stop accepting clients, close connections and stop the dispatch loop"""
        self.is_running = False

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        if self._dispatch_task is not None:
            self._dispatch_task.cancel()
            await asyncio.gather(self._dispatch_task, return_exceptions=True)
            self._dispatch_task = None

        logger.info("Server stopped")

    async def serve_forever(self) -> None:
        """Run until cancelled"""
        await self.server_start()
        try:
            await asyncio.Future()
        finally:
            await self.server_stop()

    def boundPort_get(self) -> int:
        """
        Get the port actually bound (differs from self.port when it is 0)

        Raises:
            RuntimeError: If the server is not started
        """
        if self._server is None:
            raise RuntimeError("Server not started")
        return next(iter(self._server.sockets)).getsockname()[1]

    def request_process(
        self, connection: ServerConnection, request: Request
    ) -> Optional[Response]:
        """
        Reject handshakes for any path other than the relay endpoint

        Args:
            connection: Connection being opened
            request: Opening HTTP request

        Returns:
            404 response for foreign paths, None to accept the handshake
        """
        if request.path.split("?", 1)[0] != self.path:
            logger.warning(f"Rejecting {connection.remote_address} for path {request.path}")
            return connection.respond(HTTPStatus.NOT_FOUND, "Not found\n")
        return None

    async def connection_handle(self, connection: ServerConnection) -> None:
        """
        Read frames from one client and queue them in arrival order

        Invalid frames are dropped by the codec; the connection stays open.

        Args:
            connection: Client connection
        """
        address = connection.remote_address
        self.clients.add(connection)
        logger.info(f"Client connected: {address} ({self.clients_count()} connected)")
        try:
            async for raw in connection:
                message = message_decode(raw)
                if message is None:
                    continue
                await self._queue.put((connection, message))
        except ConnectionClosed as e:
            logger.warning(f"Client {address} connection error: {e}")
        finally:
            self.clients.discard(connection)
            logger.info(f"Client disconnected: {address}")

    async def dispatch_loop(self) -> None:
        """Consume queued messages one at a time and send replies to their sender"""
        while True:
            connection, message = await self._queue.get()
            try:
                reply = await self._dispatcher.message_dispatch(message)
                if reply is not None:
                    await self.reply_send(connection, reply)
            except Exception as e:
                # the loop outlives any single message
                logger.error(f"Failed to handle {message.msg_type.value}: {e}")
            finally:
                self._queue.task_done()

    async def reply_send(self, connection: ServerConnection, reply: InputMessage) -> None:
        """
        Send a reply to one client

        Args:
            connection: Originating client
            reply: Reply message
        """
        try:
            await connection.send(message_encode(reply))
        except ConnectionClosed as e:
            logger.warning(f"Could not reply to {connection.remote_address}: {e}")

    def clients_count(self) -> int:
        """
        Get number of connected clients

        Returns:
            Number of connected clients
        """
        return len(self.clients)

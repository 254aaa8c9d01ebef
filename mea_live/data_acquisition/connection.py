"""WebSocket connection to the live MEA server."""

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from ..core.models import RawResponse
from ..core.exceptions import (
    InvalidEndpointError,
    MalformedFrameError,
    ProtocolMismatchError,
    TransportClosedError,
    TransportTimeoutError,
    UnreachableError,
)
from ..protocols import socketio

logger = logging.getLogger(__name__)


def validate_endpoint(url: str) -> str:
    """
    Check that ``url`` is a WebSocket URL with a host.

    Raises:
        InvalidEndpointError: If the URL is malformed
    """
    if not isinstance(url, str) or not url:
        raise InvalidEndpointError("Endpoint URL must be a non-empty string")
    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError as e:
        raise InvalidEndpointError(f"Malformed endpoint URL {url!r}: {e}")
    if parsed.scheme not in ("ws", "wss"):
        raise InvalidEndpointError(f"Endpoint URL must use ws:// or wss://, got {url!r}")
    if not parsed.hostname:
        raise InvalidEndpointError(f"Endpoint URL has no host: {url!r}")
    if port == 0:
        raise InvalidEndpointError(f"Endpoint URL has an invalid port: {url!r}")
    return url


class MEAConnection:
    """
    One Socket.IO session with the MEA server.

    Requests are strictly one at a time: ``send_and_receive`` writes a
    message and waits for the single application frame answering it. Text
    events other than ``data_event`` are skipped while waiting. A closure,
    timeout, cancellation or malformed frame faults the connection for good;
    a new one has to be opened with ``connect``.
    """

    def __init__(self, websocket, url: str, request_timeout: float,
                 handshake: Optional[Dict[str, Any]] = None,
                 data_event: Optional[str] = None):
        """
        Wrap an open, handshaken WebSocket. Use ``MEAConnection.connect``.

        Args:
            websocket: Open websockets client connection
            url: Endpoint the connection was opened to
            request_timeout: Bound on each request/response exchange in seconds
            handshake: Engine.IO open packet sent by the server
            data_event: Event carrying sample data; None accepts any event
        """
        self.url = url
        self.request_timeout = request_timeout
        self.handshake = handshake or {}
        self.data_event = data_event
        self._ws = websocket
        self._faulted = False
        self._closed = False
        self._requests = 0

    @classmethod
    async def connect(cls, url: str, *, connect_timeout: float = 10.0,
                      request_timeout: float = 10.0,
                      max_frame_size: Optional[int] = None,
                      data_event: Optional[str] = None) -> 'MEAConnection':
        """
        Open a connection and complete the Engine.IO/Socket.IO handshake.

        Raises:
            InvalidEndpointError: Malformed URL
            UnreachableError: DNS, TCP or WebSocket upgrade failure
            ProtocolMismatchError: Server does not speak Engine.IO v4
        """
        validate_endpoint(url)
        logger.info("Connecting to MEA server at %s", url)

        try:
            ws = await websockets.connect(
                url,
                open_timeout=connect_timeout,
                close_timeout=connect_timeout,
                max_size=max_frame_size,
            )
        except InvalidURI as e:
            raise InvalidEndpointError(f"Malformed endpoint URL {url!r}: {e}") from e
        except InvalidHandshake as e:
            raise ProtocolMismatchError(f"WebSocket upgrade rejected by {url}: {e}") from e
        except (OSError, asyncio.TimeoutError) as e:
            raise UnreachableError(f"Cannot reach MEA server at {url}: {e}") from e

        try:
            first = await asyncio.wait_for(ws.recv(), timeout=connect_timeout)
            handshake = socketio.parse_open_packet(first)
            await ws.send(socketio.CONNECT)
        except asyncio.TimeoutError as e:
            await ws.close()
            raise ProtocolMismatchError(f"No Engine.IO handshake from {url} within {connect_timeout}s") from e
        except ConnectionClosed as e:
            raise ProtocolMismatchError(f"Server closed the connection during handshake: {e}") from e
        except ProtocolMismatchError:
            await ws.close()
            raise

        logger.info("Connected to MEA server (sid=%s)", handshake.get("sid"))
        return cls(ws, url, request_timeout, handshake, data_event)

    @property
    def is_usable(self) -> bool:
        """False once the connection is faulted or closed."""
        return not (self._faulted or self._closed)

    @property
    def request_count(self) -> int:
        """Number of completed exchanges."""
        return self._requests

    async def send_and_receive(self, message: str) -> RawResponse:
        """
        Send one request and wait for its response frame.

        Only one request is ever outstanding. Anything that can leave part of
        an answer unread (timeout, cancellation, a malformed frame) faults the
        connection, so a later request never receives an earlier one's data.

        Args:
            message: Socket.IO text packet

        Returns:
            The first binary frame, binary event or data event received after sending

        Raises:
            TransportClosedError: Peer closed, or the connection is no longer usable
            TransportTimeoutError: No response within ``request_timeout``
            MalformedFrameError: A frame that is not valid Socket.IO
        """
        if not self.is_usable:
            raise TransportClosedError("Connection is closed or faulted")

        try:
            response = await asyncio.wait_for(self._exchange(message), timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            await self._fault(f"no response within {self.request_timeout}s")
            raise TransportTimeoutError(f"No response within {self.request_timeout}s") from e
        except asyncio.CancelledError:
            await self._fault("request cancelled")
            raise
        except ConnectionClosed as e:
            await self._fault(f"peer closed ({e})")
            raise TransportClosedError(f"Server closed connection: {e}") from e
        except (TransportClosedError, MalformedFrameError) as e:
            await self._fault(str(e))
            raise

        self._requests += 1
        return response

    async def _exchange(self, message: str) -> RawResponse:
        """Write the request, then read frames until the response arrives."""
        logger.debug("-> %s", message)
        await self._ws.send(message)

        while True:
            frame = await self._ws.recv()

            if isinstance(frame, (bytes, bytearray)):
                logger.debug("<- binary frame (%d bytes)", len(frame))
                return RawResponse.binary(frame)

            packet_type, data = socketio.parse_packet(frame)

            if packet_type == socketio.PING:
                await self._ws.send(socketio.PONG)
            elif packet_type in (socketio.PONG, socketio.CONNECT, socketio.ACK):
                continue
            elif packet_type == socketio.EVENT:
                event, args = socketio.parse_event(data)
                if not self._is_data_event(event):
                    logger.debug("<- skipping event %r", event)
                    continue
                logger.debug("<- event %r", event)
                return RawResponse.from_event(event, args)
            elif packet_type == socketio.BINARY_EVENT:
                response = await self._read_binary_event(data)
                if response is not None:
                    return response
            elif packet_type == socketio.BINARY_ACK:
                count, _ = socketio.parse_binary_header(data)
                await self._read_attachments(count)
            elif packet_type in (socketio.CLOSE, socketio.DISCONNECT):
                raise TransportClosedError("Server closed connection")
            elif packet_type == socketio.CONNECT_ERROR:
                raise TransportClosedError(f"Server rejected the session: {data}")
            else:
                raise MalformedFrameError(f"Unexpected {packet_type!r} packet while waiting for data")

    async def _read_binary_event(self, data: str) -> Optional[RawResponse]:
        """Read a binary event's attachments; None if it is not a data event."""
        count, event, args = socketio.parse_binary_event(data)
        attachments = await self._read_attachments(count)

        if not self._is_data_event(event):
            logger.debug("<- skipping binary event %r", event)
            return None

        index = socketio.placeholder_index(args)
        if index is None or not 0 <= index < count:
            raise MalformedFrameError(f"Binary event {event!r} does not reference an attachment")

        logger.debug("<- binary event %r (%d bytes)", event, len(attachments[index]))
        return RawResponse(payload=bytes(attachments[index]), event=event, args=args)

    async def _read_attachments(self, count: int) -> List[bytes]:
        """Read the binary frames announced by a binary packet header."""
        attachments = []
        for _ in range(count):
            frame = await self._ws.recv()
            if not isinstance(frame, (bytes, bytearray)):
                raise MalformedFrameError(f"Expected binary attachment, got text frame {frame[:16]!r}")
            attachments.append(frame)
        return attachments

    def _is_data_event(self, event: str) -> bool:
        return self.data_event is None or event == self.data_event

    async def _fault(self, reason: str) -> None:
        """Mark the connection unusable and drop the socket."""
        if self._faulted:
            return
        self._faulted = True
        logger.warning("MEA connection faulted: %s", reason)
        # Late responses to an abandoned request die with the socket
        await self._ws.close()

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._ws.close()
        logger.info("Disconnected from MEA server at %s", self.url)

"""
In-process mock of the live MEA server for tests.

Speaks the Engine.IO v4 handshake and answers every ``meaid`` event with
whatever the ``respond`` callback returns for it:

    respond(mea_index, request_number) -> frame | list of frames | DROP | SILENT | Delayed

Frames are sent as-is (bytes as binary frames, str as text frames).
"""

import asyncio
import json
from collections import namedtuple
from typing import Callable, List, Optional

import numpy as np
from websockets import serve
from websockets.exceptions import ConnectionClosed

from mea_live.core.constants import ELECTRODES_PER_MEA, SAMPLES_PER_ELECTRODE, MEA_COUNT
from mea_live.protocols import socketio

DROP = object()      # close the connection instead of answering
SILENT = object()    # never answer

# answer with ``reply`` after ``seconds``
Delayed = namedtuple("Delayed", ["seconds", "reply"])

HANDSHAKE = {"sid": "mock-sid", "upgrades": [], "pingInterval": 25000, "pingTimeout": 20000, "maxPayload": 1000000}


def binary_frame(value: float = 0.0, meas: int = 1, dtype: str = "<f4") -> bytes:
    """Binary frame of ``meas`` MEA blocks; block i is filled with value + i."""
    blocks = [np.full(ELECTRODES_PER_MEA * SAMPLES_PER_ELECTRODE, value + i, dtype=dtype) for i in range(meas)]
    return np.concatenate(blocks).tobytes()


def full_dataset_frame() -> bytes:
    """Binary frame for all MEAs, MEA block i filled with float(i + 1)."""
    return binary_frame(1.0, MEA_COUNT)


def matrix(value=0, electrodes: int = ELECTRODES_PER_MEA, samples: int = SAMPLES_PER_ELECTRODE) -> list:
    return [[value] * samples for _ in range(electrodes)]


def event_frame(data, event: str = "livedata", *extra) -> str:
    """Socket.IO event text frame carrying ``data``."""
    return socketio.EVENT + json.dumps([event, data, *extra])


def binary_event_frames(payload: bytes, event: str = "livedata") -> list:
    """Socket.IO binary event: placeholder header followed by its attachment."""
    return [socketio.encode_binary_event(event), payload]


def zeros_response(mea_index: int, request_number: int):
    return binary_frame(0.0)


class MockMEAServer:
    """Async context manager running a mock MEA server on a free local port."""

    def __init__(self, respond: Optional[Callable] = None, *, first_frame: Optional[str] = None,
                 ping_before_data: bool = False):
        self.respond = respond or zeros_response
        self.first_frame = first_frame if first_frame is not None else socketio.encode_open(HANDSHAKE)
        self.ping_before_data = ping_before_data
        self.requests: List[int] = []
        self.raw_requests: List[str] = []
        self.connections = 0
        self.pongs = 0
        self._server = None
        self.port = None

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.port}/socket.io/?EIO=4&transport=websocket"

    async def __aenter__(self) -> 'MockMEAServer':
        self._server = await serve(self._handler, "127.0.0.1", 0, max_size=None)
        self.port = list(self._server.sockets)[0].getsockname()[1]
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._server.close()
        await self._server.wait_closed()

    async def _handler(self, websocket) -> None:
        self.connections += 1
        try:
            await websocket.send(self.first_frame)
            async for message in websocket:
                if message == socketio.CONNECT:
                    await websocket.send(socketio.CONNECT + json.dumps({"sid": "mock-socket"}))
                    continue
                if message == socketio.PONG:
                    self.pongs += 1
                    continue
                if not message.startswith(socketio.EVENT):
                    continue

                self.raw_requests.append(message)
                _, args = socketio.parse_event(message[2:])
                self.requests.append(args[0])

                if self.ping_before_data:
                    await websocket.send(socketio.PING)
                    # give the client time to answer before the data arrives
                    await asyncio.sleep(0.05)

                reply = self.respond(args[0], len(self.requests))
                if isinstance(reply, Delayed):
                    await asyncio.sleep(reply.seconds)
                    reply = reply.reply
                if reply is DROP:
                    await websocket.close()
                    return
                if reply is SILENT:
                    continue
                for frame in (reply if isinstance(reply, list) else [reply]):
                    await websocket.send(frame)
        except ConnectionClosed:
            pass

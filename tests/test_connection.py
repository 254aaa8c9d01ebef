"""Tests for the MEA server connection."""

import asyncio
import socket

import pytest

from mea_live.core.exceptions import (
    InvalidEndpointError,
    MalformedFrameError,
    ProtocolMismatchError,
    TransportClosedError,
    TransportTimeoutError,
    UnreachableError,
)
from mea_live.data_acquisition.connection import MEAConnection, validate_endpoint
from mea_live.protocols import socketio
from tests.mock_mea_server import (
    DROP,
    SILENT,
    Delayed,
    MockMEAServer,
    binary_event_frames,
    binary_frame,
    event_frame,
    matrix,
)


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.parametrize("url", [
    "",
    "http://mea.local/live",
    "mea.local/live",
    "ws://",
    "ws://mea.local:notaport/live",
])
def test_validate_endpoint_rejects_malformed_urls(url):
    with pytest.raises(InvalidEndpointError):
        validate_endpoint(url)


def test_validate_endpoint_accepts_websocket_urls():
    assert validate_endpoint("ws://mea.local/live") == "ws://mea.local/live"
    assert validate_endpoint("wss://mea.local:8443/socket.io/?EIO=4") == "wss://mea.local:8443/socket.io/?EIO=4"


@pytest.mark.asyncio
async def test_connect_completes_socketio_handshake():
    async with MockMEAServer() as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0)
        try:
            assert connection.is_usable
            assert connection.handshake["sid"] == "mock-sid"
        finally:
            await connection.close()

    assert server.connections == 1


@pytest.mark.asyncio
async def test_connect_invalid_endpoint_never_touches_network():
    with pytest.raises(InvalidEndpointError):
        await MEAConnection.connect("https://mea.local/live")


@pytest.mark.asyncio
async def test_connect_unreachable():
    with pytest.raises(UnreachableError):
        await MEAConnection.connect(f"ws://127.0.0.1:{free_port()}/live", connect_timeout=2.0)


@pytest.mark.asyncio
async def test_connect_rejects_non_websocket_server():
    async def http_404(reader, writer):
        await reader.readuntil(b"\r\n\r\n")
        writer.write(b"HTTP/1.1 404 Not Found\r\nContent-Length: 0\r\nConnection: close\r\n\r\n")
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(http_404, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        with pytest.raises(ProtocolMismatchError):
            await MEAConnection.connect(f"ws://127.0.0.1:{port}/live", connect_timeout=2.0)
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_connect_rejects_server_without_engineio_handshake():
    async with MockMEAServer(first_frame="hello") as server:
        with pytest.raises(ProtocolMismatchError):
            await MEAConnection.connect(server.url, connect_timeout=2.0)


@pytest.mark.asyncio
async def test_send_and_receive_binary_frame():
    async with MockMEAServer() as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0)
        try:
            response = await connection.send_and_receive('42["meaid",0]')
        finally:
            await connection.close()

    assert response.is_binary
    assert response.payload == binary_frame(0.0)
    assert server.raw_requests == ['42["meaid",0]']
    assert connection.request_count == 1


@pytest.mark.asyncio
async def test_send_and_receive_event_frame():
    async with MockMEAServer(lambda index, n: event_frame(matrix(0), "livedata", "req-1")) as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0)
        try:
            response = await connection.send_and_receive('42["meaid",0]')
        finally:
            await connection.close()

    assert response.event == "livedata"
    assert len(response.args[0]) == 32
    assert response.args[1] == "req-1"


@pytest.mark.asyncio
async def test_pings_are_answered_while_waiting():
    async with MockMEAServer(ping_before_data=True) as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0)
        try:
            await connection.send_and_receive('42["meaid",0]')
            await connection.send_and_receive('42["meaid",0]')
        finally:
            await connection.close()

    assert server.pongs >= 1


@pytest.mark.asyncio
async def test_connection_reused_for_several_requests():
    async with MockMEAServer() as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0)
        try:
            for _ in range(3):
                await connection.send_and_receive('42["meaid",1]')
        finally:
            await connection.close()

    assert server.connections == 1
    assert server.requests == [1, 1, 1]


@pytest.mark.asyncio
async def test_peer_close_faults_connection():
    async with MockMEAServer(lambda index, n: DROP) as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0)

        with pytest.raises(TransportClosedError):
            await connection.send_and_receive('42["meaid",0]')

        assert not connection.is_usable
        with pytest.raises(TransportClosedError):
            await connection.send_and_receive('42["meaid",0]')

    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_socketio_disconnect_faults_connection():
    async with MockMEAServer(lambda index, n: "41") as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0)
        with pytest.raises(TransportClosedError):
            await connection.send_and_receive('42["meaid",0]')
        assert not connection.is_usable


@pytest.mark.asyncio
async def test_timeout_faults_connection():
    async with MockMEAServer(lambda index, n: SILENT) as server:
        connection = await MEAConnection.connect(server.url, request_timeout=0.2)

        with pytest.raises(TransportTimeoutError):
            await connection.send_and_receive('42["meaid",0]')

        assert not connection.is_usable




@pytest.mark.asyncio
async def test_close_is_idempotent():
    async with MockMEAServer() as server:
        connection = await MEAConnection.connect(server.url)
        await connection.close()
        await connection.close()

        assert not connection.is_usable
        with pytest.raises(TransportClosedError):
            await connection.send_and_receive('42["meaid",0]')


@pytest.mark.asyncio
async def test_malformed_frame_faults_connection():
    async with MockMEAServer(lambda index, n: ["garbage", binary_frame(float(n))]) as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0)

        with pytest.raises(MalformedFrameError):
            await connection.send_and_receive('42["meaid",0]')

        assert not connection.is_usable
        with pytest.raises(TransportClosedError):
            await connection.send_and_receive('42["meaid",0]')

    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_binary_event_attachment_is_the_response():
    async with MockMEAServer(lambda index, n: binary_event_frames(binary_frame(float(n)))) as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0, data_event="livedata")
        try:
            first = await connection.send_and_receive('42["meaid",0]')
            second = await connection.send_and_receive('42["meaid",0]')
        finally:
            await connection.close()

    assert first.is_binary and first.event == "livedata"
    assert first.payload == binary_frame(1.0)
    assert second.payload == binary_frame(2.0)


@pytest.mark.asyncio
async def test_unrelated_events_are_skipped():
    def respond(index, n):
        return [
            event_frame({"status": "busy"}, "status"),
            socketio.ACK + "0[]",
            *binary_event_frames(b"\x00" * 8, "thumbnail"),
            socketio.BINARY_ACK + '1-3[{"_placeholder":true,"num":0}]',
            b"\x01" * 8,
            event_frame(matrix(n), "livedata"),
        ]

    async with MockMEAServer(respond) as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0, data_event="livedata")
        try:
            first = await connection.send_and_receive('42["meaid",0]')
            second = await connection.send_and_receive('42["meaid",0]')
        finally:
            await connection.close()

    assert first.event == "livedata" and first.args[0][0][0] == 1
    assert second.event == "livedata" and second.args[0][0][0] == 2


@pytest.mark.asyncio
async def test_any_event_accepted_without_data_event():
    async with MockMEAServer(lambda index, n: event_frame(matrix(0), "samples")) as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0)
        try:
            response = await connection.send_and_receive('42["meaid",0]')
        finally:
            await connection.close()

    assert response.event == "samples"


@pytest.mark.asyncio
async def test_binary_event_without_attachment_reference_faults():
    header = socketio.BINARY_EVENT + '1-["livedata","no-placeholder"]'

    async with MockMEAServer(lambda index, n: [header, binary_frame(0.0)]) as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0, data_event="livedata")
        with pytest.raises(MalformedFrameError):
            await connection.send_and_receive('42["meaid",0]')
        assert not connection.is_usable


@pytest.mark.asyncio
@pytest.mark.parametrize("num", [-1, 1])
async def test_binary_event_attachment_number_out_of_range_faults(num):
    header = socketio.BINARY_EVENT + '1-["livedata",{"_placeholder":true,"num":%d}]' % num

    async with MockMEAServer(lambda index, n: [header, binary_frame(0.0)]) as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0, data_event="livedata")
        with pytest.raises(MalformedFrameError):
            await connection.send_and_receive('42["meaid",0]')
        assert not connection.is_usable


@pytest.mark.asyncio
async def test_cancelled_request_faults_connection():
    async with MockMEAServer(lambda index, n: Delayed(0.3, binary_frame(float(n)))) as server:
        connection = await MEAConnection.connect(server.url, request_timeout=2.0)

        task = asyncio.ensure_future(connection.send_and_receive('42["meaid",0]'))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not connection.is_usable
        with pytest.raises(TransportClosedError):
            await connection.send_and_receive('42["meaid",0]')

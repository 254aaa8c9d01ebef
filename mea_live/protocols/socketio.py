"""Engine.IO v4 / Socket.IO text packet framing.

The live MEA service runs Socket.IO over a plain WebSocket. Text frames
start with an Engine.IO packet type digit; message packets (``4``) carry a
Socket.IO packet type digit right after it:

    0{"sid": ..., "pingInterval": ..., "pingTimeout": ...}   open
    2 / 3                                                    ping / pong
    40 / 41 / 44{...}                                        connect / disconnect / connect error
    42["event", arg, ...]                                    event
    43<id>[...]                                              ack
    45<n>-["event", {"_placeholder": true, "num": 0}]        binary event header
    46<n>-<id>[...]                                          binary ack header

Binary event and binary ack headers are followed by ``n`` binary frames,
the attachments their placeholders refer to. Any namespace (``/ns,``) and
ack id between the packet type and the JSON body are skipped.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from ..core.exceptions import MalformedFrameError, ProtocolMismatchError

# Engine.IO packet types
OPEN = "0"
CLOSE = "1"
PING = "2"
PONG = "3"
MESSAGE = "4"

# Socket.IO packet types (inside an Engine.IO message)
CONNECT = "40"
DISCONNECT = "41"
EVENT = "42"
ACK = "43"
CONNECT_ERROR = "44"
BINARY_EVENT = "45"
BINARY_ACK = "46"

_SOCKETIO_TYPES = (CONNECT, DISCONNECT, EVENT, ACK, CONNECT_ERROR, BINARY_EVENT, BINARY_ACK)


def parse_packet(text: str) -> Tuple[str, str]:
    """
    Split a text frame into its packet type and data.

    Returns:
        (packet_type, data) where packet_type is one of the constants above

    Raises:
        MalformedFrameError: If the frame has no known packet type
    """
    if not text:
        raise MalformedFrameError("Empty text frame")

    if text[0] == MESSAGE:
        packet_type = text[:2]
        if packet_type not in _SOCKETIO_TYPES:
            raise MalformedFrameError(f"Unknown Socket.IO packet type: {text[:8]!r}")
        return packet_type, text[2:]

    if text[0] in (OPEN, CLOSE, PING, PONG):
        return text[0], text[1:]

    raise MalformedFrameError(f"Unknown Engine.IO packet type: {text[:8]!r}")


def parse_open_packet(text: str) -> Dict[str, Any]:
    """
    Parse the Engine.IO open packet sent by the server on connect.

    Raises:
        ProtocolMismatchError: If the frame is not a valid open packet
    """
    if not isinstance(text, str) or not text.startswith(OPEN):
        raise ProtocolMismatchError(f"Expected Engine.IO open packet, got {_preview(text)}")

    try:
        handshake = json.loads(text[1:])
    except json.JSONDecodeError as e:
        raise ProtocolMismatchError(f"Invalid Engine.IO handshake: {e}")

    if not isinstance(handshake, dict):
        raise ProtocolMismatchError("Engine.IO handshake is not a JSON object")
    return handshake


def parse_event(data: str) -> Tuple[str, List[Any]]:
    """
    Parse the data part of a ``42`` event packet.

    Returns:
        (event_name, args)
    """
    body = _parse_body(_skip_namespace_and_id(data))

    if not isinstance(body, list) or not body or not isinstance(body[0], str):
        raise MalformedFrameError("Event packet must be a JSON array starting with the event name")
    return body[0], body[1:]


def parse_binary_header(data: str) -> Tuple[int, str]:
    """
    Split the data part of a ``45``/``46`` packet into its attachment count
    and the remaining data.
    """
    count, sep, rest = data.partition("-")
    if not sep or not count.isdigit():
        raise MalformedFrameError(f"Binary packet without attachment count: {data[:16]!r}")
    return int(count), rest


def parse_binary_event(data: str) -> Tuple[int, str, List[Any]]:
    """
    Parse the data part of a ``45`` binary event header.

    Returns:
        (attachment_count, event_name, args), placeholders left in ``args``
    """
    count, rest = parse_binary_header(data)
    event, args = parse_event(rest)
    return count, event, args


def placeholder_index(value: Any) -> Optional[int]:
    """Attachment number of the first placeholder in ``value``, depth first."""
    if isinstance(value, dict):
        if value.get("_placeholder") is True:
            num = value.get("num")
            if isinstance(num, bool) or not isinstance(num, int):
                raise MalformedFrameError(f"Placeholder without attachment number: {value!r}")
            return num
        items = value.values()
    elif isinstance(value, list):
        items = value
    else:
        return None

    for item in items:
        index = placeholder_index(item)
        if index is not None:
            return index
    return None


def encode_event(name: str, *args: Any) -> str:
    """Encode a Socket.IO event packet."""
    return EVENT + json.dumps([name, *args], separators=(",", ":"))


def encode_binary_event(name: str, attachments: int = 1) -> str:
    """Encode a binary event header whose first argument is attachment 0 (used by test servers)."""
    placeholder = {"_placeholder": True, "num": 0}
    return f"{BINARY_EVENT}{attachments}-" + json.dumps([name, placeholder], separators=(",", ":"))


def encode_open(handshake: Dict[str, Any]) -> str:
    """Encode an Engine.IO open packet (server side, used by test servers)."""
    return OPEN + json.dumps(handshake)


def _skip_namespace_and_id(data: str) -> str:
    if data.startswith("/"):
        _, sep, data = data.partition(",")
        if not sep:
            raise MalformedFrameError("Namespace without terminating comma")
    i = 0
    while i < len(data) and data[i].isdigit():
        i += 1
    return data[i:]


def _parse_body(data: str) -> Any:
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise MalformedFrameError(f"Packet body is not valid JSON: {e}")


def _preview(frame: Any) -> str:
    if isinstance(frame, (bytes, bytearray)):
        return f"binary frame of {len(frame)} bytes"
    return repr(frame[:16]) if frame else repr(frame)

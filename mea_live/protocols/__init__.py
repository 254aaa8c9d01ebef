"""Protocol implementations for the live MEA client."""

from .socketio import encode_event, parse_event, parse_open_packet, parse_packet

__all__ = ["encode_event", "parse_event", "parse_open_packet", "parse_packet"]

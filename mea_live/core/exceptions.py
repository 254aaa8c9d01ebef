"""Custom exceptions for the live MEA client."""

from typing import List, Optional, Tuple


class MEALiveError(Exception):
    """Base exception for the live MEA client."""
    pass


class ConfigurationError(MEALiveError):
    """Raised when there's a configuration error."""
    pass


class ConnectError(MEALiveError):
    """Raised when a connection to the MEA server cannot be opened."""
    pass


class UnreachableError(ConnectError):
    """DNS, TCP or WebSocket handshake failure."""
    pass


class InvalidEndpointError(ConnectError):
    """Malformed endpoint URL."""
    pass


class ProtocolMismatchError(ConnectError):
    """Server did not speak the expected Engine.IO/Socket.IO protocol."""
    pass


class TransportError(MEALiveError):
    """Raised when a request/response exchange fails at the transport level."""
    pass


class TransportClosedError(TransportError):
    """Peer closed or reset the connection."""
    pass


class TransportTimeoutError(TransportError):
    """No response within the request timeout."""
    pass


class MalformedFrameError(TransportError):
    """Frame violates the Socket.IO framing rules."""
    pass


class EncodeError(MEALiveError):
    """Raised when a request cannot be encoded."""
    pass


class InvalidSelectorError(EncodeError):
    """MEA selector outside the valid range."""
    pass


class DecodeError(MEALiveError):
    """Raised when a response payload cannot be decoded."""
    pass


class MalformedPayloadError(DecodeError):
    """Payload is not parseable as the expected structure."""
    pass


class DimensionMismatchError(DecodeError):
    """Wrong electrode or sample count."""
    pass


class ValueOutOfRangeError(DecodeError):
    """Sample value outside the documented numeric range."""
    pass


class AcquisitionError(MEALiveError):
    """
    User-facing acquisition failure.

    The originating error is kept in ``cause`` (and in ``__cause__`` when
    raised with ``raise ... from``).
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    @property
    def is_input_error(self) -> bool:
        """True when the caller passed an invalid selector."""
        return isinstance(self.cause, EncodeError)

    @property
    def is_connect_error(self) -> bool:
        return isinstance(self.cause, ConnectError)

    @property
    def is_transport_error(self) -> bool:
        return isinstance(self.cause, TransportError)

    @property
    def is_decode_error(self) -> bool:
        return isinstance(self.cause, DecodeError)


class PartialAcquisitionError(AcquisitionError):
    """Raised by the collect policy when some samples of a run failed."""

    def __init__(self, message: str, samples: List, failures: List[Tuple[int, AcquisitionError]]):
        cause = failures[0][1] if failures else None
        super().__init__(message, cause)
        self.samples = samples
        self.failures = failures

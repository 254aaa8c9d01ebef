"""MEA Live - client for recording live data from networked MEA devices."""

__version__ = "0.1.0"

# Core imports for easy access
from .core.config import Config, ServerConfig, ProtocolConfig, AcquisitionConfig, FailurePolicy, ByteOrder
from .core.models import LiveData, SampleRequest, RawResponse, ConnectionState
from .core.exceptions import (
    MEALiveError,
    ConfigurationError,
    ConnectError,
    UnreachableError,
    InvalidEndpointError,
    ProtocolMismatchError,
    TransportError,
    TransportClosedError,
    TransportTimeoutError,
    MalformedFrameError,
    EncodeError,
    InvalidSelectorError,
    DecodeError,
    MalformedPayloadError,
    DimensionMismatchError,
    ValueOutOfRangeError,
    AcquisitionError,
    PartialAcquisitionError,
)
from .data_acquisition.connection import MEAConnection
from .data_acquisition.sample_codec import SampleCodec
from .data_acquisition.live_mea import LiveMEA

__all__ = [
    # Version info
    "__version__",

    # Configuration
    "Config",
    "ServerConfig",
    "ProtocolConfig",
    "AcquisitionConfig",
    "FailurePolicy",
    "ByteOrder",

    # Data models
    "LiveData",
    "SampleRequest",
    "RawResponse",
    "ConnectionState",

    # Exceptions
    "MEALiveError",
    "ConfigurationError",
    "ConnectError",
    "UnreachableError",
    "InvalidEndpointError",
    "ProtocolMismatchError",
    "TransportError",
    "TransportClosedError",
    "TransportTimeoutError",
    "MalformedFrameError",
    "EncodeError",
    "InvalidSelectorError",
    "DecodeError",
    "MalformedPayloadError",
    "DimensionMismatchError",
    "ValueOutOfRangeError",
    "AcquisitionError",
    "PartialAcquisitionError",

    # Core components
    "MEAConnection",
    "SampleCodec",
    "LiveMEA",
]

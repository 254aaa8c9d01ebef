"""Core module for the live MEA client."""

from .config import Config
from .models import LiveData, SampleRequest, RawResponse, ConnectionState
from .exceptions import MEALiveError, ConfigurationError, AcquisitionError

__all__ = ["Config", "LiveData", "SampleRequest", "RawResponse", "ConnectionState",
           "MEALiveError", "ConfigurationError", "AcquisitionError"]

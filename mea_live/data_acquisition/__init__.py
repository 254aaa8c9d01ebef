"""Data acquisition module for the live MEA client."""

from .connection import MEAConnection
from .sample_codec import SampleCodec
from .live_mea import LiveMEA

__all__ = ["MEAConnection", "SampleCodec", "LiveMEA"]

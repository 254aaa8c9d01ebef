"""Data models for the live MEA client."""

from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field, validator
from dataclasses import dataclass, field
from enum import Enum
import numpy as np

from .constants import ELECTRODES_PER_MEA, SAMPLES_PER_ELECTRODE


class ConnectionState(str, Enum):
    """Lifecycle of the connection owned by a LiveMEA client."""
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    FAULTED = "faulted"
    CLOSED = "closed"


class LiveData(BaseModel):
    """
    One sample frame recorded from an MEA.

    ``data`` holds 32 electrode rows of 4096 samples each (electrode-major).
    ``timestamp`` is the client-side capture time in RFC3339 format.
    """
    timestamp: str = Field(..., description="Capture time (RFC3339)")
    data: List[List[float]] = Field(..., description="Electrode data [32][4096]")

    class Config:
        """Pydantic configuration."""
        frozen = True

    @validator('timestamp')
    def validate_timestamp(cls, v):
        """Validate RFC3339 timestamp."""
        try:
            datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"Timestamp is not RFC3339: {v!r}")
        return v

    @validator('data')
    def validate_shape(cls, v):
        """Validate the fixed electrode x sample shape."""
        if len(v) != ELECTRODES_PER_MEA:
            raise ValueError(f"Expected {ELECTRODES_PER_MEA} electrodes, got {len(v)}")
        for i, row in enumerate(v):
            if len(row) != SAMPLES_PER_ELECTRODE:
                raise ValueError(
                    f"Electrode {i}: expected {SAMPLES_PER_ELECTRODE} samples, got {len(row)}"
                )
        return v

    @property
    def electrode_count(self) -> int:
        """Get number of electrodes."""
        return len(self.data)

    @property
    def samples_per_electrode(self) -> int:
        """Get number of samples per electrode."""
        return len(self.data[0])

    def electrode(self, index: int) -> List[float]:
        """Get samples for a single electrode."""
        if index < 0 or index >= ELECTRODES_PER_MEA:
            raise ValueError(f"Electrode index must be between 0 and {ELECTRODES_PER_MEA - 1}")
        return self.data[index]

    def to_numpy(self) -> np.ndarray:
        """Convert to a (32, 4096) float32 array."""
        return np.array(self.data, dtype=np.float32)

    @classmethod
    def from_numpy(cls, data: np.ndarray, timestamp: str) -> 'LiveData':
        """Create from a (32, 4096) array."""
        return cls(timestamp=timestamp, data=data.tolist())


class SampleRequest(BaseModel):
    """A request for one sample frame from one MEA."""
    mea_id: int = Field(..., ge=1, description="1-based MEA selector")

    class Config:
        """Pydantic configuration."""
        frozen = True

    @property
    def mea_index(self) -> int:
        """0-based index sent on the wire."""
        return self.mea_id - 1


@dataclass(frozen=True)
class RawResponse:
    """One application frame received from the server."""
    payload: Optional[bytes] = None
    event: Optional[str] = None
    args: List[Any] = field(default_factory=list)

    @property
    def is_binary(self) -> bool:
        return self.payload is not None

    @classmethod
    def binary(cls, payload: bytes) -> 'RawResponse':
        return cls(payload=bytes(payload))

    @classmethod
    def from_event(cls, event: str, args: List[Any]) -> 'RawResponse':
        return cls(event=event, args=list(args))

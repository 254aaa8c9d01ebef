"""Configuration management for the live MEA client."""

from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, ValidationError, validator
from enum import Enum

from .constants import (
    MEA_SERVER_URL,
    MEA_COUNT,
    ELECTRODES_PER_MEA,
    SAMPLES_PER_ELECTRODE,
    SAMPLE_EVENT,
    DATA_EVENT,
)
from .exceptions import ConfigurationError


class ByteOrder(str, Enum):
    """Byte order of binary sample frames."""
    LITTLE = "little"
    BIG = "big"


class FailurePolicy(str, Enum):
    """How record_n_samples reacts to a failed sample."""
    ABORT = "abort"
    COLLECT = "collect"


class ServerConfig(BaseModel):
    """MEA server endpoint configuration."""
    url: str = Field(default=MEA_SERVER_URL, description="WebSocket URL of the live MEA socket")
    request_timeout: float = Field(default=10.0, gt=0, description="Per-request timeout in seconds")
    connect_timeout: float = Field(default=10.0, gt=0, description="Connect and handshake timeout in seconds")
    max_frame_size: int = Field(default=4 * 1024 * 1024, ge=1024, description="Largest accepted frame in bytes")

    @validator('url')
    def validate_url(cls, v):
        """Validate endpoint URL."""
        if not v or not v.strip():
            raise ValueError("Server URL must be specified")
        return v.strip()


class ProtocolConfig(BaseModel):
    """Wire protocol configuration."""
    mea_count: int = Field(default=MEA_COUNT, ge=1, description="Number of MEAs served by the endpoint")
    electrodes_per_mea: int = Field(default=ELECTRODES_PER_MEA, ge=ELECTRODES_PER_MEA, le=ELECTRODES_PER_MEA,
                                    description="Electrodes per MEA (fixed by the hardware)")
    samples_per_electrode: int = Field(default=SAMPLES_PER_ELECTRODE, ge=SAMPLES_PER_ELECTRODE,
                                       le=SAMPLES_PER_ELECTRODE, description="Samples per electrode per frame")
    sample_event: str = Field(default=SAMPLE_EVENT, min_length=1, description="Socket.IO event used to request a frame")
    data_event: Optional[str] = Field(default=DATA_EVENT,
                                      description="Event carrying sample data (None accepts any event)")
    byte_order: ByteOrder = Field(default=ByteOrder.LITTLE, description="Byte order of float32 binary frames")
    value_min: Optional[float] = Field(default=None, description="Lowest valid sample value (None disables)")
    value_max: Optional[float] = Field(default=None, description="Highest valid sample value (None disables)")

    @validator('value_max')
    def validate_value_range(cls, v, values):
        """Validate sample value range."""
        low = values.get('value_min')
        if v is not None and low is not None and v < low:
            raise ValueError("value_max must not be lower than value_min")
        return v


class AcquisitionConfig(BaseModel):
    """Acquisition behaviour configuration."""
    default_mea_id: int = Field(default=1, ge=1, description="MEA selected when none is given")
    failure_policy: FailurePolicy = Field(default=FailurePolicy.ABORT,
                                          description="Multi-sample failure policy")


class Config(BaseModel):
    """Main configuration for the live MEA client."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    protocol: ProtocolConfig = Field(default_factory=ProtocolConfig)
    acquisition: AcquisitionConfig = Field(default_factory=AcquisitionConfig)

    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    enable_logging: bool = Field(default=True)

    class Config:
        """Pydantic configuration."""
        validate_assignment = True

    @validator('acquisition')
    def validate_default_mea(cls, v, values):
        """Default MEA must be one the server serves."""
        protocol = values.get('protocol')
        if protocol is not None and v.default_mea_id > protocol.mea_count:
            raise ValueError(
                f"default_mea_id {v.default_mea_id} outside 1..{protocol.mea_count}"
            )
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.dict()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create configuration from dictionary."""
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def create_default(cls, url: Optional[str] = None) -> 'Config':
        """Create default configuration, optionally for another endpoint."""
        server = ServerConfig(url=url) if url else ServerConfig()
        return cls(
            server=server,
            protocol=ProtocolConfig(),
            acquisition=AcquisitionConfig()
        )

"""Sample request encoding and response decoding for the live MEA client."""

import logging
from typing import Any, List

import numpy as np

from ..core.config import Config
from ..core.models import RawResponse, SampleRequest
from ..core.exceptions import (
    InvalidSelectorError,
    MalformedPayloadError,
    DimensionMismatchError,
    ValueOutOfRangeError,
)
from ..core.constants import SAMPLE_BYTES
from ..protocols.socketio import encode_event

logger = logging.getLogger(__name__)


class SampleCodec:
    """Translates between MEA selectors / sample frames and wire messages."""

    def __init__(self, config: Config):
        """
        Initialize sample codec.

        Args:
            config: Configuration object
        """
        self.config = config
        self._mea_count = config.protocol.mea_count
        self._electrodes = config.protocol.electrodes_per_mea
        self._samples = config.protocol.samples_per_electrode
        self._event = config.protocol.sample_event
        self._value_min = config.protocol.value_min
        self._value_max = config.protocol.value_max

        # Pre-compute binary layout
        byte_order = "<" if config.protocol.byte_order == "little" else ">"
        self._binary_dtype = np.dtype(f"{byte_order}f{SAMPLE_BYTES}")
        self._frame_values = self._electrodes * self._samples
        self._full_values = self._mea_count * self._frame_values

    def validate_selector(self, mea_id: Any) -> SampleRequest:
        """
        Validate an MEA selector.

        Args:
            mea_id: 1-based MEA id

        Returns:
            SampleRequest for the selector

        Raises:
            InvalidSelectorError: If the selector is not an int in 1..mea_count
        """
        if isinstance(mea_id, bool) or not isinstance(mea_id, (int, np.integer)):
            raise InvalidSelectorError(f"MEA ID must be an integer, got {type(mea_id).__name__}")
        if mea_id < 1 or mea_id > self._mea_count:
            raise InvalidSelectorError(f"MEA ID must be an integer in the range 1-{self._mea_count}")
        return SampleRequest(mea_id=int(mea_id))

    def encode_request(self, mea_id: Any) -> str:
        """
        Encode the request for one sample frame.

        Returns:
            Socket.IO event text, e.g. ``42["meaid",0]`` for MEA 1
        """
        request = self.validate_selector(mea_id)
        return encode_event(self._event, request.mea_index)

    def decode_response(self, response: RawResponse, mea_id: Any) -> np.ndarray:
        """
        Decode a server response into an electrode x sample matrix.

        Binary frames hold float32 values for either the selected MEA or all
        MEAs served by the endpoint (the selected block is sliced out). Event
        frames carry the matrix as a nested JSON array in their first
        argument.

        Args:
            response: Frame returned by the connection
            mea_id: MEA the request was made for

        Returns:
            (electrodes, samples) float64 array

        Raises:
            MalformedPayloadError: If the payload does not have the expected structure
            DimensionMismatchError: If the electrode or sample count is wrong
            ValueOutOfRangeError: If a value is non-finite or outside the configured range
        """
        request = self.validate_selector(mea_id)

        if response.is_binary:
            matrix = self._decode_binary(response.payload, request)
        else:
            matrix = self._decode_event(response.event, response.args)

        self._check_values(matrix)
        return matrix

    def _decode_binary(self, payload: bytes, request: SampleRequest) -> np.ndarray:
        """Decode a float32 binary frame."""
        if len(payload) % SAMPLE_BYTES != 0:
            raise MalformedPayloadError(
                f"Binary frame length {len(payload)} is not a multiple of {SAMPLE_BYTES}"
            )

        raw = np.frombuffer(payload, dtype=self._binary_dtype)

        if raw.size == self._frame_values:
            start = 0
        elif raw.size == self._full_values:
            logger.debug("Full dataset frame, extracting MEA %d", request.mea_id)
            start = request.mea_index * self._frame_values
        else:
            raise DimensionMismatchError(
                f"Unexpected data size: got {raw.size} values, "
                f"expected {self._frame_values} or {self._full_values}"
            )

        block = raw[start:start + self._frame_values]
        return block.reshape(self._electrodes, self._samples).astype(np.float64)

    def _decode_event(self, event: str, args: List[Any]) -> np.ndarray:
        """Decode a nested JSON matrix carried by an event packet."""
        if not args:
            raise MalformedPayloadError(f"Event {event!r} carries no data")

        rows = args[0]
        if isinstance(rows, dict):
            raise MalformedPayloadError(f"Event {event!r} data is an object, expected an array of electrodes")
        if not isinstance(rows, list):
            raise MalformedPayloadError(f"Event {event!r} data is not an array")

        if len(rows) != self._electrodes:
            raise DimensionMismatchError(f"Expected {self._electrodes} electrodes, got {len(rows)}")

        for i, row in enumerate(rows):
            if not isinstance(row, list):
                raise MalformedPayloadError(f"Electrode {i} is not an array")
            if len(row) != self._samples:
                raise DimensionMismatchError(
                    f"Electrode {i}: expected {self._samples} samples, got {len(row)}"
                )
            for value in row:
                # bool is a subclass of int
                if type(value) not in (int, float):
                    raise MalformedPayloadError(
                        f"Electrode {i} holds a non-numeric value: {value!r}"
                    )

        try:
            return np.array(rows, dtype=np.float64)
        except OverflowError as e:
            raise ValueOutOfRangeError(f"Sample value does not fit a float: {e}")

    def _check_values(self, matrix: np.ndarray) -> None:
        """Reject non-finite values and values outside the configured range."""
        if not np.all(np.isfinite(matrix)):
            raise ValueOutOfRangeError("Frame contains NaN or infinite values")

        if self._value_min is not None:
            low = float(matrix.min())
            if low < self._value_min:
                raise ValueOutOfRangeError(f"Sample value {low} below minimum {self._value_min}")

        if self._value_max is not None:
            high = float(matrix.max())
            if high > self._value_max:
                raise ValueOutOfRangeError(f"Sample value {high} above maximum {self._value_max}")

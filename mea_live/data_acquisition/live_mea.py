"""Live MEA acquisition client."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..core.config import Config, FailurePolicy
from ..core.models import ConnectionState, LiveData
from ..core.exceptions import (
    AcquisitionError,
    MEALiveError,
    PartialAcquisitionError,
)
from .connection import MEAConnection
from .sample_codec import SampleCodec

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Default capture clock."""
    return datetime.now(timezone.utc)


class LiveMEA:
    """
    Records live sample frames from the MEAs of a live MEA server.

    The client owns at most one connection. It is opened lazily by the first
    request and reused by every later one until ``close()``. A connection
    that is closed by the peer, times out, is cancelled mid-request or
    receives a malformed frame is dropped (state ``FAULTED``)
    and the next request opens a fresh one; errors are never retried within
    a call.

    Example:
        async with LiveMEA() as mea:
            sample = await mea.record_sample(1)
            samples = await mea.record_n_samples(1, 3)
    """

    def __init__(self, config: Optional[Config] = None, *,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the acquisition client.

        Args:
            config: Configuration object (defaults to the production server)
            clock: Returns the capture time; must be timezone-aware
        """
        self.config = config or Config.create_default()
        self.codec = SampleCodec(self.config)
        self._clock = clock or utc_now
        self._connection: Optional[MEAConnection] = None
        self._state = ConnectionState.UNCONNECTED
        self._lock = asyncio.Lock()
        self._last_capture: Optional[datetime] = None

        # Statistics
        self._connect_count = 0
        self._sample_count = 0
        self._error_count = 0

    async def __aenter__(self) -> 'LiveMEA':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def connect_count(self) -> int:
        """Number of connections opened so far."""
        return self._connect_count

    @property
    def sample_count(self) -> int:
        """Number of samples recorded so far."""
        return self._sample_count

    @property
    def error_count(self) -> int:
        return self._error_count

    async def record_sample(self, mea_id: Optional[int] = None) -> LiveData:
        """
        Record a single sample frame.

        Args:
            mea_id: MEA to record from (1-based); defaults to the configured MEA

        Returns:
            LiveData with 32 electrodes x 4096 samples

        Raises:
            AcquisitionError: Wrapping the connect, transport, encode or
                decode error that stopped the recording
        """
        mea_id = self._resolve_mea_id(mea_id)
        self._validate(mea_id)

        async with self._lock:
            self._check_open()
            try:
                return await self._record_one(mea_id)
            except MEALiveError as e:
                raise self._wrap(e, mea_id) from e

    async def record_n_samples(self, mea_id: Optional[int] = None, n: int = 1) -> List[LiveData]:
        """
        Record ``n`` sample frames one after another over the same connection.

        With the ``abort`` failure policy the first failure raises and no
        samples are returned. With ``collect`` every sample is attempted and
        a ``PartialAcquisitionError`` carrying the recorded samples and the
        per-sample failures is raised if any failed.

        Args:
            mea_id: MEA to record from (1-based); defaults to the configured MEA
            n: Number of samples; 0 returns an empty list without connecting

        Returns:
            List of ``n`` LiveData instances in recording order

        Raises:
            ValueError: If ``n`` is not a non-negative integer
            AcquisitionError: See the failure policy above
        """
        if isinstance(n, bool) or not isinstance(n, int) or n < 0:
            raise ValueError(f"Number of samples must be a non-negative integer, got {n!r}")

        mea_id = self._resolve_mea_id(mea_id)
        self._validate(mea_id)

        if n == 0:
            return []

        if self.config.acquisition.failure_policy == FailurePolicy.COLLECT:
            return await self._record_collecting(mea_id, n)

        samples = []
        async with self._lock:
            self._check_open()
            for i in range(n):
                try:
                    samples.append(await self._record_one(mea_id))
                except MEALiveError as e:
                    logger.warning("Sample %d/%d from MEA %d failed, aborting: %s", i + 1, n, mea_id, e)
                    raise self._wrap(e, mea_id) from e
        return samples

    async def _record_collecting(self, mea_id: int, n: int) -> List[LiveData]:
        """Attempt every sample, collecting failures."""
        samples = []
        failures = []
        async with self._lock:
            self._check_open()
            for i in range(n):
                try:
                    samples.append(await self._record_one(mea_id))
                except MEALiveError as e:
                    logger.warning("Sample %d/%d from MEA %d failed: %s", i + 1, n, mea_id, e)
                    failures.append((i, self._wrap(e, mea_id)))

        if failures:
            raise PartialAcquisitionError(
                f"{len(failures)} of {n} samples from MEA {mea_id} failed",
                samples,
                failures
            )
        return samples

    async def _record_one(self, mea_id: int) -> LiveData:
        """Request, receive and decode one frame. Caller holds the lock."""
        message = self.codec.encode_request(mea_id)
        connection = await self._ensure_connection()

        try:
            response = await connection.send_and_receive(message)
        finally:
            # also reached on cancellation
            if not connection.is_usable:
                self._state = ConnectionState.FAULTED

        matrix = self.codec.decode_response(response, mea_id)
        sample = LiveData(timestamp=self._capture_time(), data=matrix.tolist())
        self._sample_count += 1
        logger.debug("Recorded sample from MEA %d at %s", mea_id, sample.timestamp)
        return sample

    async def _ensure_connection(self) -> MEAConnection:
        """Return the open connection, opening a new one if needed."""
        if self._connection is not None and self._connection.is_usable:
            return self._connection

        if self._connection is not None:
            logger.info("Reconnecting after connection fault")
            self._connection = None

        server = self.config.server
        self._connection = await MEAConnection.connect(
            server.url,
            connect_timeout=server.connect_timeout,
            request_timeout=server.request_timeout,
            max_frame_size=server.max_frame_size,
            data_event=self.config.protocol.data_event,
        )
        self._connect_count += 1
        self._state = ConnectionState.CONNECTED
        return self._connection

    async def close(self) -> None:
        """Close the connection. The client cannot be used afterwards."""
        async with self._lock:
            if self._connection is not None:
                await self._connection.close()
                self._connection = None
            self._state = ConnectionState.CLOSED

    def _resolve_mea_id(self, mea_id: Optional[int]) -> int:
        if mea_id is None:
            return self.config.acquisition.default_mea_id
        return mea_id

    def _validate(self, mea_id: int) -> None:
        """Validate the selector before any network I/O."""
        try:
            self.codec.validate_selector(mea_id)
        except MEALiveError as e:
            raise self._wrap(e, mea_id) from e

    def _check_open(self) -> None:
        if self._state == ConnectionState.CLOSED:
            raise AcquisitionError("Client is closed")

    def _capture_time(self) -> str:
        """RFC3339 capture time, never earlier than the previous one."""
        now = self._clock()
        if self._last_capture is not None and now < self._last_capture:
            now = self._last_capture
        self._last_capture = now
        return now.isoformat()

    def _wrap(self, error: MEALiveError, mea_id) -> AcquisitionError:
        self._error_count += 1
        return AcquisitionError(
            f"Recording from MEA {mea_id} failed ({type(error).__name__}): {error}",
            error
        )

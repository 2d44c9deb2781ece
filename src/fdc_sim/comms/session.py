"""
FDC+ Serial Drive Link Session
==============================

This module drives the three controller-initiated exchanges of the FDC+
serial drive link over a `Channel`:

- **STAT**: report the selected drive and head load state, and learn which
  drives the server has an image mounted on.
- **READ**: request one track and receive it with its checksum.
- **WRIT**: ask the server to accept a track, send it, and collect the
  final write status.

Exchange Sequences
------------------
::

    STAT   ──STAT──▶                    ◀──STAT (rdata = mount bitmap)──
    READ   ──READ──▶                    ◀──track data + checksum──
    WRIT   ──WRIT──▶  ◀──WRIT (rcode)── ──track data + checksum──▶  ◀──WSTA (rcode)──

Session State Machine
---------------------
::

    IDLE ─▶ AWAITING_FRAME ─▶ IDLE                                   (STAT)
    IDLE ─▶ AWAITING_PAYLOAD ─▶ IDLE                                 (READ)
    IDLE ─▶ AWAITING_FRAME ─▶ READY_TO_SEND ─▶ AWAITING_WSTA ─▶ IDLE (WRIT)

Every exchange ends in IDLE, whether it succeeds or raises, and the
session is immediately ready for the next one.

Timeouts
--------
Reads are bounded per attempt: 500ms while collecting a ten byte frame,
100ms while collecting track data. Attempts are repeated until the
expected number of bytes is in hand. An attempt that returns nothing
ends the wait.

Error Recovery
--------------
Responses with an invalid checksum are ignored, exactly as if they had
never been sent; the session keeps listening for a good frame. There
are no automatic retries. Re-issuing a command after a timeout or a
checksum failure is the caller's decision, which matches how the server
side recovers: it drops bad commands and waits for the controller to
send them again.

Usage:
    port = open_serial_port('/dev/ttyUSB0', baud_rate=403200)
    session = LinkSession(SerialChannel(port))

    status = session.stat()
    print(status.mounted_drives)

    session.drives.select(0)
    track = session.read_track(12)
    session.write_track(12, track.data)
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum, auto
from typing import Final, Iterator, Optional

from fdc_sim.comms.channel import Channel
from fdc_sim.comms.checksum import CHECKSUM_SIZE
from fdc_sim.comms.drives import MAX_DRIVE, DriveState
from fdc_sim.comms.frame import (
    CMD_READ,
    CMD_STAT,
    CMD_WRIT,
    FRAME_SIZE,
    RESPONSE_TAGS,
    RSP_STAT,
    RSP_WRIT,
    RSP_WSTA,
    TAG_SIZE,
    CommandFrame,
    ResponseCode,
    decode_frame,
    encode_frame,
)
from fdc_sim.comms.track import (
    FORMAT_FILL_BYTE,
    MAX_BLOCK_LENGTH,
    DiskGeometry,
    append_checksum,
    pad_track,
    track_checksum,
    validate_track,
)
from fdc_sim.config import LinkConfig
from fdc_sim.errors import (
    FrameChecksumError,
    InvalidDriveError,
    LinkTimeoutError,
    PartialTransferError,
    RemoteRefusalError,
    TagMismatchError,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Protocol Constants
# =============================================================================

# Track number occupies the low 12 bits of READ/WRIT param1
TRACK_MASK: Final[int] = 0x0FFF

# Drive number occupies the high nibble of READ/WRIT param1
DRIVE_SHIFT: Final[int] = 12


# =============================================================================
# Session State and Results
# =============================================================================

class SessionState(Enum):
    """Where the session is within the current exchange."""

    IDLE = auto()              # No exchange in progress
    AWAITING_FRAME = auto()    # Waiting for a STAT or WRIT response frame
    AWAITING_PAYLOAD = auto()  # Receiving track data for READ
    READY_TO_SEND = auto()     # Server accepted WRIT, sending track data
    AWAITING_WSTA = auto()     # Track sent, waiting for the final status


@dataclass(frozen=True)
class DriveStatus:
    """
    Server drive status from a STAT response.

    Attributes:
        rcode: Response code word (ignored by the FDC, kept for display)
        mount_bitmap: Bit d set when drive d has an image mounted
    """

    rcode: int
    mount_bitmap: int

    def is_mounted(self, drive: int) -> bool:
        """Return True if the server reports `drive` as mounted."""
        return bool(self.mount_bitmap & (1 << drive))

    @property
    def mounted_drives(self) -> tuple[int, ...]:
        """Drive numbers the server reports as mounted."""
        return tuple(d for d in range(16) if self.is_mounted(d))

    def __str__(self) -> str:
        return f"STAT 0x{self.mount_bitmap:04X}"


@dataclass(frozen=True)
class TrackReadResult:
    """
    A track received by a READ exchange.

    Attributes:
        drive: Drive the track was read from
        track: Track number
        data: Track payload, checksum removed
        checksum: Checksum that arrived with (and matched) the payload
    """

    drive: int
    track: int
    data: bytes
    checksum: int

    @property
    def length(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class WriteResult:
    """
    Final status of a WRIT exchange, as carried by the WSTA response.

    The raw code is kept verbatim, including codes this package does not
    know about.

    Attributes:
        drive: Drive written
        track: Track number
        code: WSTA response code
    """

    drive: int
    track: int
    code: int

    @property
    def ok(self) -> bool:
        return self.code == ResponseCode.OK

    @property
    def description(self) -> str:
        return ResponseCode.describe(self.code)


# =============================================================================
# Link Session
# =============================================================================

class LinkSession:
    """
    Controller side of the FDC+ serial drive link.

    A session owns its channel for the duration of each exchange.
    Exchanges are serialized with a lock, so a session shared between
    threads never interleaves the byte streams of two commands. Each
    exchange blocks the calling thread; callers that need to stay
    responsive should run exchanges on a worker thread.

    Attributes:
        channel: Byte channel to the server
        config: Geometry and timing configuration
        drives: Local drive state reported by STAT
    """

    def __init__(
        self,
        channel: Channel,
        config: Optional[LinkConfig] = None,
        drives: Optional[DriveState] = None,
    ):
        """
        Initialize the session.

        Args:
            channel: Open channel to the server.
            config: Link configuration (defaults to LinkConfig()).
            drives: Drive state table (a fresh one if not given).
        """
        self.channel = channel
        self.config = config if config is not None else LinkConfig()
        self.drives = drives if drives is not None else DriveState()
        self._state = SessionState.IDLE
        self._lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        """Current position in the exchange state machine."""
        return self._state

    @property
    def geometry(self) -> DiskGeometry:
        """Disk geometry used for READ and WRIT."""
        return self.config.geometry

    @property
    def track_length(self) -> int:
        """Track length in bytes for the current geometry."""
        return self.config.geometry.track_length

    def set_geometry(self, geometry: DiskGeometry) -> None:
        """
        Change the disk geometry between exchanges.

        Waits for any exchange in progress to finish first.
        """
        with self._lock:
            if geometry != self.config.geometry:
                logger.info(
                    "Disk geometry: %s (%d tracks, %d bytes per track)",
                    geometry.label, geometry.tracks, geometry.track_length
                )
            self.config.geometry = geometry

    # -------------------------------------------------------------------------
    # Exchanges
    # -------------------------------------------------------------------------

    def stat(self) -> DriveStatus:
        """
        Perform a STAT exchange.

        Sends the selected drive (low byte, 0xFF for none) and the head
        load bitmap (high byte) in param1, zero in param2.

        Returns:
            Mount status reported by the server.

        Raises:
            LinkTimeoutError: If no valid response frame arrives.
            TagMismatchError: If the response is not tagged STAT.
            ChannelError: If the channel fails.
        """
        with self._exchange():
            self._send_frame(CMD_STAT, self.drives.stat_param1(), 0)
            frame = self._receive_frame(RSP_STAT, SessionState.AWAITING_FRAME)

        status = DriveStatus(rcode=frame.rcode, mount_bitmap=frame.rdata)
        logger.info("Received 'STAT' response 0x%04X", status.mount_bitmap)
        return status

    def read_track(self, track: int) -> TrackReadResult:
        """
        Perform a READ exchange for `track` on the selected drive.

        Args:
            track: Track number, 0 to geometry.tracks-1.

        Returns:
            The received track.

        Raises:
            InvalidDriveError: If no drive in 0 to MAX_DRIVE-1 is selected.
                Nothing is transmitted.
            ValueError: If `track` is out of range. Nothing is transmitted.
            PartialTransferError: If the transfer stalled short of
                track length + 2 bytes.
            TrackLengthError: If more bytes arrived than the block holds.
            TrackChecksumError: If the block arrived complete but its
                checksum does not match.
            ChannelError: If the channel fails.
        """
        with self._exchange():
            drive = self._require_drive()
            self._check_track(track)
            length = self.track_length
            expected = length + CHECKSUM_SIZE

            self._send_frame(CMD_READ, _track_param(drive, track), length)
            self._state = SessionState.AWAITING_PAYLOAD
            block = self._receive_block(expected)

            if len(block) < expected:
                logger.warning("Received %d of %d bytes", len(block), expected)
                raise PartialTransferError(len(block), expected, block)

            data = validate_track(block, length)
            self.drives.set_head_loaded(drive, True)

        logger.info("Received %d byte track (drive %d, track %d)", length, drive, track)
        return TrackReadResult(
            drive=drive, track=track, data=data, checksum=track_checksum(data)
        )

    def write_track(
        self,
        track: int,
        data: bytes,
        pad: bool = False,
        fill: int = FORMAT_FILL_BYTE,
    ) -> WriteResult:
        """
        Perform a WRIT exchange for `track` on the selected drive.

        The track is only sent once the server has answered the WRIT
        command with an OK response code.

        Args:
            track: Track number, 0 to geometry.tracks-1.
            data: Track payload. Must be exactly one track long unless
                `pad` is set.
            pad: Fill a short payload up to the track length.
            fill: Byte used for padding (0xE5, as on a formatted track).

        Returns:
            The final status from the WSTA response, verbatim.

        Raises:
            InvalidDriveError: If no drive in 0 to MAX_DRIVE-1 is selected.
                Nothing is transmitted.
            ValueError: If `track` or the payload size is wrong. Nothing
                is transmitted.
            RemoteRefusalError: If the WRIT response code is not OK. No
                track data is sent.
            TagMismatchError: If a response carries the wrong tag.
            LinkTimeoutError: If a response frame does not arrive.
            ChannelError: If the channel fails.
        """
        with self._exchange():
            drive = self._require_drive()
            self._check_track(track)
            length = self.track_length

            if pad:
                data = pad_track(data, length, fill)
            elif len(data) != length:
                raise ValueError(
                    f"Track data must be {length} bytes for {self.geometry.label} "
                    f"disks, got {len(data)}"
                )

            self._send_frame(CMD_WRIT, _track_param(drive, track), length)
            frame = self._receive_frame(RSP_WRIT, SessionState.AWAITING_FRAME)

            if frame.rcode != ResponseCode.OK:
                description = ResponseCode.describe(frame.rcode)
                logger.warning("Received %s WRIT response", description)
                raise RemoteRefusalError(frame.rcode, description)

            self._state = SessionState.READY_TO_SEND
            self.channel.write(append_checksum(data))
            frame = self._receive_frame(RSP_WSTA, SessionState.AWAITING_WSTA)
            self.drives.set_head_loaded(drive, True)

        result = WriteResult(drive=drive, track=track, code=frame.rcode)
        logger.info(
            "Received WSTA %s response (drive %d, track %d)",
            result.description, drive, track
        )
        return result

    # -------------------------------------------------------------------------
    # Low-Level I/O
    # -------------------------------------------------------------------------

    @contextmanager
    def _exchange(self) -> Iterator[None]:
        """Hold the channel for one exchange and always return to IDLE."""
        with self._lock:
            try:
                yield
            finally:
                self._state = SessionState.IDLE

    def _send_frame(self, command: str, param1: int, param2: int) -> None:
        wire = encode_frame(command, param1, param2)
        self.channel.write(wire)
        logger.debug("Sent %s: %s", command, wire.hex())

    def _receive_frame(self, expected: str, state: SessionState) -> CommandFrame:
        """
        Collect one valid ten byte frame.

        Frames with a bad checksum are dropped and listening continues,
        resynchronizing on the next response tag in the buffer. Dropped
        frames do not extend the wait beyond `config.response_timeout`.

        Raises:
            LinkTimeoutError: If a read returns nothing, or bad frames
                keep arriving past the response deadline.
            TagMismatchError: If a valid frame has the wrong tag.
        """
        self._state = state
        deadline = time.monotonic() + self.config.response_timeout
        buffer = bytearray()

        while True:
            chunk = self.channel.read(FRAME_SIZE - len(buffer), self.config.frame_timeout)
            if not chunk:
                raise LinkTimeoutError(expected, len(buffer))
            buffer.extend(chunk)

            if len(buffer) < FRAME_SIZE:
                continue

            try:
                frame = decode_frame(bytes(buffer))
            except FrameChecksumError as e:
                logger.warning("Ignoring '%s' response: %s", expected, e)
                logger.debug("Dropped frame: %s", buffer.hex())
                buffer = _resync(buffer)
                if time.monotonic() >= deadline:
                    raise LinkTimeoutError(
                        expected, len(buffer),
                        f"No valid '{expected}' response within "
                        f"{self.config.response_timeout}s"
                    ) from e
                continue

            if frame.command != expected:
                raise TagMismatchError(expected, frame.command)

            return frame

    def _receive_block(self, expected: int) -> bytes:
        """
        Collect track data until `expected` bytes arrive or a read is empty.

        Reads ask for as much as the largest track block holds, so a
        server sending more than expected is caught by validation.
        """
        buffer = bytearray()

        while len(buffer) < expected:
            chunk = self.channel.read(
                MAX_BLOCK_LENGTH - len(buffer), self.config.payload_timeout
            )
            if not chunk:
                break
            buffer.extend(chunk)
            logger.debug("Track buffer now %d of %d bytes", len(buffer), expected)

        return bytes(buffer)

    # -------------------------------------------------------------------------
    # Preconditions
    # -------------------------------------------------------------------------

    def _require_drive(self) -> int:
        if not self.drives.has_valid_selection:
            raise InvalidDriveError(self.drives.selected, MAX_DRIVE)
        return self.drives.selected

    def _check_track(self, track: int) -> None:
        if not 0 <= track < self.geometry.tracks:
            raise ValueError(
                f"Track must be 0-{self.geometry.tracks - 1} for "
                f"{self.geometry.label} disks, got {track}"
            )


# =============================================================================
# Helpers
# =============================================================================

def _track_param(drive: int, track: int) -> int:
    """Param1 of READ/WRIT: drive in the high nibble, track in the low 12 bits."""
    return (drive << DRIVE_SHIFT) | (track & TRACK_MASK)


def _resync(buffer: bytearray) -> bytearray:
    """
    Drop a bad frame, keeping anything from the next response tag on.

    A bad frame is often the tail of one frame joined to the head of the
    next. Without a complete later tag, a trailing partial tag (b"S",
    b"WS", ...) is kept so the frame it starts can still complete.
    """
    data = bytes(buffer)
    starts = [
        pos for pos in (data.find(tag.encode("ascii"), 1) for tag in RESPONSE_TAGS)
        if pos > 0
    ]
    if starts:
        return bytearray(data[min(starts):])

    for size in range(min(TAG_SIZE - 1, len(data) - 1), 0, -1):
        tail = data[-size:]
        if any(tag.encode("ascii").startswith(tail) for tag in RESPONSE_TAGS):
            return bytearray(tail)
    return bytearray()

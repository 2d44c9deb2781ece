"""
Track Transfer Codec
====================

READ and WRIT move a whole track at a time. On the wire a track block is
the raw track bytes followed by a little-endian 16-bit checksum of those
bytes:

    ┌──────────────────────────────┬──────────────┐
    │  track data (track length)   │ Checksum LE  │
    └──────────────────────────────┴──────────────┘

The transfer length sent in the command's param2 is the track length and
does NOT include the two checksum bytes.

Disk Geometry
-------------
Track length depends on the drive type and is fixed for a session until
the caller changes it:

    8 inch:    77 tracks x (137 x 32) = 4384 bytes per track
    Minidisk:  35 tracks x (137 x 16) = 2192 bytes per track
"""

import logging
from enum import Enum
from typing import Final

from fdc_sim.comms.checksum import (
    CHECKSUM_SIZE,
    checksum_from_bytes,
    checksum_to_bytes,
    sum16,
)
from fdc_sim.errors import TrackChecksumError, TrackLengthError

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Geometry Constants
# =============================================================================

# Bytes per sector on Altair disks
SECTOR_LENGTH: Final[int] = 137

# Fill byte of a freshly formatted track
FORMAT_FILL_BYTE: Final[int] = 0xE5


class DiskGeometry(Enum):
    """
    Supported disk geometries.

    Each member's value is (tracks, sectors per track). Track length is
    derived from the sector count.
    """

    EIGHT_INCH = (77, 32)
    MINIDISK = (35, 16)

    @property
    def tracks(self) -> int:
        """Number of tracks on the disk."""
        return self.value[0]

    @property
    def sectors(self) -> int:
        """Sectors per track."""
        return self.value[1]

    @property
    def track_length(self) -> int:
        """Bytes per track, not counting the transfer checksum."""
        return SECTOR_LENGTH * self.sectors

    @property
    def block_length(self) -> int:
        """Bytes per track block on the wire (track + checksum)."""
        return self.track_length + CHECKSUM_SIZE

    @property
    def label(self) -> str:
        """Short name used on the command line and in config."""
        return _GEOMETRY_LABELS[self]

    @classmethod
    def from_label(cls, label: str) -> "DiskGeometry":
        """
        Look up a geometry by its short name.

        Raises:
            ValueError: If the name is unknown.
        """
        for geometry, name in _GEOMETRY_LABELS.items():
            if name == label.lower():
                return geometry
        valid = ", ".join(_GEOMETRY_LABELS.values())
        raise ValueError(f"Unknown disk geometry: {label!r}. Valid geometries: {valid}")


_GEOMETRY_LABELS: Final[dict[DiskGeometry, str]] = {
    DiskGeometry.EIGHT_INCH: "8in",
    DiskGeometry.MINIDISK: "minidisk",
}

# Largest track any geometry produces; sizes the receive buffer
MAX_TRACK_LENGTH: Final[int] = max(g.track_length for g in DiskGeometry)

# Receive buffer size: largest track plus checksum
MAX_BLOCK_LENGTH: Final[int] = MAX_TRACK_LENGTH + CHECKSUM_SIZE


# =============================================================================
# Track Checksum
# =============================================================================

def track_checksum(payload: bytes) -> int:
    """
    Checksum of a track: 16-bit wrapping sum of every payload byte.

    Example:
        >>> track_checksum(bytes([0xFF]) * 257)
        65535
        >>> track_checksum(bytes([0x80]) * 512)
        0
    """
    return sum16(payload)


def append_checksum(payload: bytes) -> bytes:
    """
    Build a track block: payload followed by its LE checksum.

    Args:
        payload: Raw track bytes.

    Returns:
        `payload` with two checksum bytes appended.
    """
    checksum = track_checksum(payload)
    logger.debug("Track block: %d bytes, checksum=%04X", len(payload), checksum)
    return bytes(payload) + checksum_to_bytes(checksum)


def validate_track(data: bytes, expected_length: int) -> bytes:
    """
    Validate a received track block and return its payload.

    Args:
        data: Received bytes (track payload followed by checksum).
        expected_length: Track length, excluding the checksum.

    Returns:
        The first `expected_length` bytes of `data`.

    Raises:
        TrackLengthError: If `len(data) != expected_length + 2`, even
            when the bytes present happen to checksum correctly.
        TrackChecksumError: If the trailing checksum does not match.
    """
    expected_block = expected_length + CHECKSUM_SIZE
    if len(data) != expected_block:
        raise TrackLengthError(expected_block, len(data))

    payload = bytes(data[:expected_length])
    received = checksum_from_bytes(data[expected_length:])
    calculated = track_checksum(payload)

    if received != calculated:
        raise TrackChecksumError(received, calculated)

    return payload


def pad_track(data: bytes, length: int, fill: int = FORMAT_FILL_BYTE) -> bytes:
    """
    Extend `data` to `length` bytes with `fill`.

    Raises:
        ValueError: If `data` is already longer than `length`.
    """
    if len(data) > length:
        raise ValueError(f"Track data too large: {len(data)} bytes, maximum {length}")
    return bytes(data) + bytes([fill]) * (length - len(data))

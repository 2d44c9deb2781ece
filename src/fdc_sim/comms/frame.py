"""
FDC+ Command/Response Frame Codec
=================================

Every command from the controller and every response from the server is
a fixed ten byte frame:

    ┌──────────────┬──────────────┬──────────────┬──────────────┐
    │  Bytes 0-3   │  Bytes 4-5   │  Bytes 6-7   │  Bytes 8-9   │
    │  ASCII tag   │  Param 1 LE  │  Param 2 LE  │ Checksum LE  │
    └──────────────┴──────────────┴──────────────┴──────────────┘

In a response the two parameter words are called the response code
(`rcode`) and the response data (`rdata`). The checksum is the 16-bit
wrapping sum of bytes 0-7.

Commands (controller to server):
    STAT - report selected drive and head load state, request mount status
    READ - read a track; param1 = drive << 12 | track, param2 = track length
    WRIT - write a track; same parameters as READ

Responses (server to controller):
    STAT - rdata carries one mount bit per drive
    WRIT - rcode tells whether the server is ready to accept the track
    WSTA - rcode carries the final status of the write

A frame whose checksum does not verify is noise. `decode_frame()` never
returns the fields of such a frame; it raises FrameChecksumError instead.
"""

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Final

from fdc_sim.comms.checksum import sum16
from fdc_sim.errors import FrameChecksumError, FrameLengthError

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Frame Constants
# =============================================================================

# Complete frame size including checksum
FRAME_SIZE: Final[int] = 10

# Bytes covered by the checksum
FRAME_BODY_SIZE: Final[int] = 8

# Size of the ASCII command tag
TAG_SIZE: Final[int] = 4

# Frame layout: 4-char tag, two LE words, LE checksum
_FRAME_STRUCT: Final[struct.Struct] = struct.Struct("<4sHHH")

# Command tags (controller to server)
CMD_STAT: Final[str] = "STAT"
CMD_READ: Final[str] = "READ"
CMD_WRIT: Final[str] = "WRIT"

# Response tags (server to controller)
RSP_STAT: Final[str] = "STAT"
RSP_WRIT: Final[str] = "WRIT"
RSP_WSTA: Final[str] = "WSTA"

COMMAND_TAGS: Final[tuple[str, ...]] = (CMD_STAT, CMD_READ, CMD_WRIT)
RESPONSE_TAGS: Final[tuple[str, ...]] = (RSP_STAT, RSP_WRIT, RSP_WSTA)


# =============================================================================
# Response Codes
# =============================================================================

class ResponseCode(IntEnum):
    """
    Response codes carried in the rcode word of WRIT and WSTA responses.

    Any other value is reported as UNKNOWN, the raw code is always kept
    alongside so nothing the server sends is lost.
    """

    OK = 0x0000              # Request accepted / write completed
    NOT_READY = 0x0001       # e.g., write request to an unmounted drive
    CHECKSUM_ERROR = 0x0002  # Track data failed its checksum at the server
    WRITE_ERROR = 0x0003     # Server could not write the track to its image

    @classmethod
    def describe(cls, code: int) -> str:
        """Get the display name of a response code."""
        descriptions = {
            0x0000: "OK",
            0x0001: "NOT READY",
            0x0002: "CHECKSUM ERROR",
            0x0003: "WRITE ERROR",
        }
        return descriptions.get(code, "UNKNOWN")


# =============================================================================
# Frame Class
# =============================================================================

@dataclass(frozen=True)
class CommandFrame:
    """
    A single ten byte command or response frame.

    Frames are built fresh for every exchange and never reused. The
    checksum is not a field: it is always derived from the other three
    fields when the frame is serialized.

    Attributes:
        command: Four character ASCII tag (STAT, READ, WRIT, WSTA)
        param1: First parameter word (rcode in responses)
        param2: Second parameter word (rdata in responses)

    Example:
        frame = CommandFrame("READ", param1=(1 << 12) | 5, param2=4384)
        wire = frame.to_bytes()
        assert CommandFrame.from_bytes(wire) == frame
    """

    command: str
    param1: int = 0
    param2: int = 0

    def __post_init__(self) -> None:
        """Validate frame fields after initialization."""
        if len(self.command) != TAG_SIZE or not self.command.isascii():
            raise ValueError(
                f"Command tag must be {TAG_SIZE} ASCII characters, got {self.command!r}"
            )
        for name in ("param1", "param2"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFFFF:
                raise ValueError(f"{name} must be 0-0xFFFF, got {value}")

    @property
    def rcode(self) -> int:
        """Response code (alias of param1 for responses)."""
        return self.param1

    @property
    def rdata(self) -> int:
        """Response data (alias of param2 for responses)."""
        return self.param2

    @property
    def checksum(self) -> int:
        """Checksum this frame carries on the wire."""
        return frame_checksum(self._body())

    def _body(self) -> bytes:
        return struct.pack("<4sHH", self.command.encode("ascii"), self.param1, self.param2)

    def to_bytes(self) -> bytes:
        """Serialize the frame for transmission."""
        body = self._body()
        return body + struct.pack("<H", frame_checksum(body))

    @classmethod
    def from_bytes(cls, data: bytes) -> "CommandFrame":
        """Parse and validate a received frame. See `decode_frame()`."""
        return decode_frame(data)

    def __str__(self) -> str:
        return f"{self.command} {self.param1:04X} {self.param2:04X}"


# =============================================================================
# Encode / Decode
# =============================================================================

def frame_checksum(data: bytes) -> int:
    """
    Checksum of a frame: 16-bit sum of its first eight bytes.

    Args:
        data: Frame bytes (at least 8; anything past byte 7 is ignored).
    """
    return sum16(data[:FRAME_BODY_SIZE])


def encode_frame(command: str, param1: int = 0, param2: int = 0) -> bytes:
    """
    Build the ten wire bytes of a frame.

    Args:
        command: Four character ASCII tag.
        param1: First parameter word (0-0xFFFF).
        param2: Second parameter word (0-0xFFFF).

    Returns:
        Tag, LE param1, LE param2 and LE checksum of the first 8 bytes.

    Raises:
        ValueError: If the tag or a parameter is out of range.
    """
    frame = CommandFrame(command, param1, param2)
    wire = frame.to_bytes()
    logger.debug("Encoded frame: %s checksum=%04X", frame, frame.checksum)
    return wire


def decode_frame(data: bytes) -> CommandFrame:
    """
    Parse a received frame, verifying its checksum first.

    Args:
        data: Exactly ten bytes.

    Returns:
        The parsed frame.

    Raises:
        FrameLengthError: If `data` is not ten bytes.
        FrameChecksumError: If bytes 8-9 do not match the sum of bytes 0-7.
            The frame contents must then be treated as noise.
    """
    if len(data) != FRAME_SIZE:
        raise FrameLengthError(len(data))

    raw_tag, param1, param2, received = _FRAME_STRUCT.unpack(bytes(data))
    calculated = frame_checksum(data)
    if received != calculated:
        raise FrameChecksumError(received, calculated)

    # Non-printable tag bytes become '?' so the tag can still be reported
    command = "".join(chr(b) if 0x20 <= b < 0x7F else "?" for b in raw_tag)

    frame = CommandFrame(command, param1, param2)
    logger.debug("Decoded frame: %s", frame)
    return frame

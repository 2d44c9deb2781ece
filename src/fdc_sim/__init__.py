"""
fdc-sim - FDC+ Serial Drive Link for the Altair 8800
====================================================

This package implements the controller side of the link between an
Altair FDC+ Enhanced Floppy Disk Controller (serial drive modes 6 and 7)
and a disk server on the other end of a serial line. It can stand in for
the FDC+ to exercise and debug a disk server.

Main Components
---------------
- **comms**: link protocol engine
    Frame and track codecs, the byte channel contract, drive state and the
    STAT / READ / WRIT exchange session

- **config**: link configuration
    Port, baud rate, disk geometry and timeouts

- **cli**: command-line tool (fdclink)
    Issue STAT, READ and WRIT from the shell, or poll STAT

Quick Start
-----------
    >>> from fdc_sim import LinkSession, SerialChannel, open_serial_port
    >>> port = open_serial_port("/dev/ttyUSB0")
    >>> session = LinkSession(SerialChannel(port))
    >>> session.stat().mounted_drives
    (0, 1)

Or use the command-line tool:
    $ fdclink --port /dev/ttyUSB0 stat
    $ fdclink read 0 12 -o track12.bin
"""

__version__ = "1.0.0"
__author__ = "fdc-sim Contributors"

# =============================================================================
# Public API Exports
# =============================================================================

from fdc_sim.comms import (
    Channel,
    CommandFrame,
    DiskGeometry,
    DriveState,
    DriveStatus,
    LinkSession,
    ResponseCode,
    SerialChannel,
    SessionState,
    TrackReadResult,
    WriteResult,
    open_serial_port,
)
from fdc_sim.config import LinkConfig
from fdc_sim.errors import (
    FDCError,
    CommsError,
    ConnectionError,
    ChannelError,
    LinkTimeoutError,
    InvalidDriveError,
    ProtocolError,
    TagMismatchError,
    FrameLengthError,
    TransferError,
    ChecksumError,
    FrameChecksumError,
    TrackChecksumError,
    TrackLengthError,
    PartialTransferError,
    RemoteRefusalError,
)

__all__ = [
    # Version
    "__version__",
    # Session
    "LinkSession",
    "SessionState",
    "DriveStatus",
    "TrackReadResult",
    "WriteResult",
    "DriveState",
    "Channel",
    "SerialChannel",
    "open_serial_port",
    # Codecs
    "CommandFrame",
    "ResponseCode",
    "DiskGeometry",
    # Configuration
    "LinkConfig",
    # Errors
    "FDCError",
    "CommsError",
    "ConnectionError",
    "ChannelError",
    "LinkTimeoutError",
    "InvalidDriveError",
    "ProtocolError",
    "TagMismatchError",
    "FrameLengthError",
    "TransferError",
    "ChecksumError",
    "FrameChecksumError",
    "TrackChecksumError",
    "TrackLengthError",
    "PartialTransferError",
    "RemoteRefusalError",
]

"""
FDC+ Serial Drive Communication Module
======================================

This module implements the controller side of the FDC+ serial drive
link: the fixed ten byte command/response frames, whole-track transfers
with a trailing checksum, and the timeout rules that govern both.

Protocol Architecture
---------------------
All transactions are initiated by the controller (FDC). The disk server
only ever answers:

- **STAT**: controller reports drive/head state, server answers with the
  mount bitmap.
- **READ**: controller requests a track, server streams it back.
- **WRIT**: controller asks to write a track, server answers WRIT when
  ready, controller streams the track, server answers WSTA.

Module Structure
----------------
- **checksum**: 16-bit wrapping byte sum
- **frame**: ten byte frame codec
- **track**: track block codec and disk geometries
- **channel**: byte channel contract and pyserial adapter
- **drives**: selected drive and head load state
- **serial**: serial port utilities (detection, configuration)
- **session**: exchange state machine

Quick Start
-----------
    from fdc_sim.comms import LinkSession, SerialChannel, open_serial_port

    port = open_serial_port('/dev/ttyUSB0', baud_rate=403200)
    session = LinkSession(SerialChannel(port))

    status = session.stat()
    print(f"Mounted drives: {status.mounted_drives}")

    session.drives.select(0)
    result = session.read_track(0)

    port.close()

Error Handling
--------------
All communication errors inherit from `CommsError`. See
`fdc_sim.errors` for the full hierarchy.

Thread Safety
-------------
A LinkSession serializes its own exchanges. The DriveState it owns is
not locked and should only be changed between exchanges.
"""

# =============================================================================
# Public API Exports
# =============================================================================

# Checksum utilities
from fdc_sim.comms.checksum import (
    CHECKSUM_SIZE,
    checksum_from_bytes,
    checksum_to_bytes,
    sum16,
    verify_checksum,
)

# Frame codec
from fdc_sim.comms.frame import (
    CMD_READ,
    CMD_STAT,
    CMD_WRIT,
    FRAME_SIZE,
    RSP_STAT,
    RSP_WRIT,
    RSP_WSTA,
    CommandFrame,
    ResponseCode,
    decode_frame,
    encode_frame,
    frame_checksum,
)

# Track codec
from fdc_sim.comms.track import (
    FORMAT_FILL_BYTE,
    MAX_BLOCK_LENGTH,
    MAX_TRACK_LENGTH,
    DiskGeometry,
    append_checksum,
    pad_track,
    track_checksum,
    validate_track,
)

# Channel
from fdc_sim.comms.channel import Channel, SerialChannel

# Drive state
from fdc_sim.comms.drives import MAX_DRIVE, NO_DRIVE, DriveState

# Serial port utilities
from fdc_sim.comms.serial import (
    PortInfo,
    close_serial_port,
    find_serial_port,
    format_port_list,
    list_serial_ports,
    open_serial_port,
)

# Session
from fdc_sim.comms.session import (
    DriveStatus,
    LinkSession,
    SessionState,
    TrackReadResult,
    WriteResult,
)

__all__ = [
    # Checksum
    "CHECKSUM_SIZE",
    "sum16",
    "checksum_to_bytes",
    "checksum_from_bytes",
    "verify_checksum",
    # Frame
    "FRAME_SIZE",
    "CMD_STAT",
    "CMD_READ",
    "CMD_WRIT",
    "RSP_STAT",
    "RSP_WRIT",
    "RSP_WSTA",
    "CommandFrame",
    "ResponseCode",
    "encode_frame",
    "decode_frame",
    "frame_checksum",
    # Track
    "FORMAT_FILL_BYTE",
    "MAX_TRACK_LENGTH",
    "MAX_BLOCK_LENGTH",
    "DiskGeometry",
    "track_checksum",
    "append_checksum",
    "validate_track",
    "pad_track",
    # Channel
    "Channel",
    "SerialChannel",
    # Drives
    "MAX_DRIVE",
    "NO_DRIVE",
    "DriveState",
    # Serial
    "PortInfo",
    "list_serial_ports",
    "find_serial_port",
    "open_serial_port",
    "close_serial_port",
    "format_port_list",
    # Session
    "SessionState",
    "DriveStatus",
    "TrackReadResult",
    "WriteResult",
    "LinkSession",
]

"""
FDC Link Error Hierarchy
========================

This module defines the exception hierarchy for the whole package.
All exceptions inherit from FDCError, allowing callers to catch every
link-related error with a single except clause if desired.

Exception Hierarchy
-------------------
FDCError (base)
└── CommsError (serial communication)
    ├── ConnectionError - cannot open or configure the serial port
    ├── ChannelError - channel read/write failed outright
    ├── LinkTimeoutError - bounded read gave up before a full frame arrived
    ├── InvalidDriveError - no valid drive selected (nothing transmitted)
    ├── ProtocolError - link protocol violation
    │   ├── TagMismatchError - response tag is not the expected one
    │   └── FrameLengthError - frame is not exactly 10 bytes
    └── TransferError - error during a track exchange
        ├── ChecksumError - 16-bit sum mismatch
        │   ├── FrameChecksumError - command/response frame
        │   └── TrackChecksumError - track payload
        ├── TrackLengthError - track block has the wrong length
        ├── PartialTransferError - track transfer stalled part way
        └── RemoteRefusalError - server answered with a non-OK code

Error Recovery
--------------
The server side of the link ignores commands with an invalid checksum
and the controller ignores responses with an invalid checksum. For that
reason FrameChecksumError is consumed inside the session's receive loop
and never reaches the caller: a corrupt response is treated as if it had
never arrived. Every other error is local to one exchange and is raised
to the caller after the session has returned to idle.
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class FDCError(Exception):
    """
    Base exception for all FDC link errors.

        try:
            session.read_track(12)
        except FDCError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Communication Exceptions
# =============================================================================

class CommsError(FDCError):
    """Base exception for serial communication errors."""
    pass


class ConnectionError(CommsError):
    """
    Cannot establish a connection with the disk server.

    Raised when:
        - Serial port cannot be opened
        - Port permissions are wrong
        - Requested baud rate cannot be set
    """
    pass


class ChannelError(CommsError):
    """
    The byte channel failed outright.

    Raised by channel adapters when a read or write fails at the
    transport level (device unplugged, port closed underneath us).
    It is fatal for the current exchange and never retried internally.
    """
    pass


class LinkTimeoutError(CommsError):
    """
    Timed out waiting for a response frame.

    Raised when a bounded read returns no new bytes before a complete,
    valid 10-byte frame has been collected.

    Attributes:
        expected: Tag of the frame we were waiting for
        received: Number of bytes buffered when the wait gave up
    """

    def __init__(self, expected: str, received: int = 0, message: str = ""):
        self.expected = expected
        self.received = received
        if not message:
            message = (
                f"Timed out waiting for '{expected}' response "
                f"({received} of 10 bytes buffered)"
            )
        super().__init__(message)


class InvalidDriveError(CommsError):
    """
    No valid drive is selected for a READ or WRIT exchange.

    Checked before anything is transmitted.

    Attributes:
        drive: The selected drive (None when no drive is selected)
    """

    def __init__(self, drive: Optional[int], max_drive: int):
        self.drive = drive
        self.max_drive = max_drive
        if drive is None:
            message = "Invalid drive number: no drive selected"
        else:
            message = (
                f"Invalid drive number: {drive} (valid drives are 0-{max_drive - 1})"
            )
        super().__init__(message)


class ProtocolError(CommsError):
    """
    Link protocol violation.

    Raised when:
        - Response tag does not match the issued command
        - Frame has the wrong size
    """
    pass


class TagMismatchError(ProtocolError):
    """
    A valid frame arrived but carried the wrong tag.

    Attributes:
        expected: Tag the session was waiting for
        received: Tag actually received (decoded as ASCII, lossy)
    """

    def __init__(self, expected: str, received: str):
        self.expected = expected
        self.received = received
        super().__init__(f"Did not receive '{expected}' response '{received}'")


class FrameLengthError(ProtocolError):
    """A frame is not exactly 10 bytes long."""

    def __init__(self, length: int):
        self.length = length
        super().__init__(f"Frame must be 10 bytes, got {length}")


class TransferError(CommsError):
    """
    Error during a track transfer.

    Raised when:
        - Checksum mismatch
        - Track block has the wrong size or stalls
        - Server refuses the request
    """
    pass


class ChecksumError(TransferError):
    """
    16-bit checksum mismatch.

    Attributes:
        expected: Checksum carried on the wire
        actual: Checksum recomputed by the receiver
    """

    def __init__(self, expected: int, actual: int, message: str = ""):
        self.expected = expected
        self.actual = actual
        if not message:
            message = f"Checksum mismatch: received 0x{expected:04X}, calculated 0x{actual:04X}"
        super().__init__(message)


class FrameChecksumError(ChecksumError):
    """Command/response frame failed its checksum."""
    pass


class TrackChecksumError(ChecksumError):
    """Track payload failed its checksum."""
    pass


class TrackLengthError(TransferError):
    """
    Track block does not have exactly `expected_length + 2` bytes.

    Attributes:
        expected: Required block length including the checksum
        actual: Length received
    """

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Track block length mismatch: expected {expected} bytes, got {actual}"
        )


class PartialTransferError(TransferError):
    """
    Track transfer stalled before the full block arrived.

    Attributes:
        received: Bytes that did arrive
        expected: Bytes that were expected (track length + checksum)
        data: The bytes that arrived, for diagnostics
    """

    def __init__(self, received: int, expected: int, data: bytes = b""):
        self.received = received
        self.expected = expected
        self.data = data
        super().__init__(f"Received {received} of {expected} bytes")


class RemoteRefusalError(TransferError):
    """
    The server returned a non-OK response code.

    Attributes:
        code: Raw response code from the frame
        description: Human-readable name of the code
    """

    def __init__(self, code: int, description: str, message: str = ""):
        self.code = code
        self.description = description
        if not message:
            message = f"Received {description} response (code 0x{code:04X})"
        super().__init__(message)

"""
Byte Channel Abstraction
========================

The protocol session never touches a serial port directly. It talks to a
`Channel`: a duplex byte stream with bounded-wait reads. Opening,
configuring and closing the underlying device is the transport's job
(see `fdc_sim.comms.serial`); the session assumes an already-open 8-N-1
link.

Contract
--------
- ``write(data)`` sends all of `data` and returns the byte count.
- ``read(max_bytes, timeout)`` waits at most `timeout` seconds and returns
  whatever arrived, up to `max_bytes`. The result may be short or empty;
  an empty result means nothing arrived within the bound.
- ``bytes_available()`` reports how many bytes can be read without waiting.

Every method raises ChannelError when the transport fails outright.
"""

import logging
from typing import Protocol, runtime_checkable

import serial

from fdc_sim.errors import ChannelError

# Configure module logger
logger = logging.getLogger(__name__)


@runtime_checkable
class Channel(Protocol):
    """Duplex byte channel with bounded-wait reads."""

    def write(self, data: bytes) -> int:
        """Write all of `data`; return the number of bytes written."""
        ...

    def read(self, max_bytes: int, timeout: float) -> bytes:
        """Read up to `max_bytes`, waiting at most `timeout` seconds."""
        ...

    def bytes_available(self) -> int:
        """Number of bytes readable without waiting."""
        ...


class SerialChannel:
    """
    Channel backed by a pyserial port.

    The port's own timeout is swapped for the duration of each read so
    the session controls every bound, then restored.

    Usage:
        port = open_serial_port('/dev/ttyUSB0', baud_rate=403200)
        channel = SerialChannel(port)
        session = LinkSession(channel)
    """

    def __init__(self, port: serial.Serial):
        """
        Args:
            port: Open, configured serial port.
        """
        self.port = port

    def write(self, data: bytes) -> int:
        try:
            written = self.port.write(data)
            self.port.flush()
        except serial.SerialException as e:
            raise ChannelError(f"write() error: {e}") from e

        if written is None:
            written = len(data)
        if written != len(data):
            raise ChannelError(f"write() error: wrote {written} of {len(data)} bytes")

        logger.debug("Wrote %d bytes", written)
        return written

    def read(self, max_bytes: int, timeout: float) -> bytes:
        old_timeout = self.port.timeout
        self.port.timeout = timeout
        try:
            data = self.port.read(max_bytes)
        except serial.SerialException as e:
            raise ChannelError(f"read() error: {e}") from e
        finally:
            self.port.timeout = old_timeout

        if data:
            logger.debug("Read %d bytes", len(data))
        return bytes(data)

    def bytes_available(self) -> int:
        try:
            return self.port.in_waiting
        except (serial.SerialException, OSError) as e:
            raise ChannelError(f"Cannot query serial port: {e}") from e

    def __repr__(self) -> str:
        return f"SerialChannel(port={getattr(self.port, 'port', None)!r})"

"""
Tests for the Serial Channel and Port Utilities
===============================================

pyserial is replaced by mocks throughout; no hardware is needed.
"""

from unittest.mock import Mock, patch

import pytest
import serial

from fdc_sim.comms.channel import Channel, SerialChannel
from fdc_sim.comms.serial import (
    DEFAULT_TIMEOUT,
    PortInfo,
    close_serial_port,
    find_serial_port,
    format_port_list,
    open_serial_port,
)
from fdc_sim.config import DEFAULT_BAUD_RATE, VALID_BAUD_RATES
from fdc_sim.errors import ChannelError, CommsError, ConnectionError


def create_mock_port():
    """Create a mock serial port."""
    port = Mock()
    port.timeout = 1.0
    port.is_open = True
    port.port = "/dev/ttyUSB0"
    return port


# =============================================================================
# SerialChannel Tests
# =============================================================================

class TestSerialChannel:
    """Tests for the pyserial-backed channel."""

    def test_is_channel(self):
        assert isinstance(SerialChannel(create_mock_port()), Channel)

    def test_write(self):
        """Writes go straight to the port and are flushed."""
        port = create_mock_port()
        port.write.return_value = 4
        channel = SerialChannel(port)

        assert channel.write(b"STAT") == 4
        port.write.assert_called_once_with(b"STAT")
        port.flush.assert_called_once()

    def test_write_short(self):
        """A short write is a channel error."""
        port = create_mock_port()
        port.write.return_value = 2
        with pytest.raises(ChannelError, match="wrote 2 of 4"):
            SerialChannel(port).write(b"STAT")

    def test_write_serial_exception(self):
        port = create_mock_port()
        port.write.side_effect = serial.SerialException("device gone")
        with pytest.raises(ChannelError, match="write\\(\\) error"):
            SerialChannel(port).write(b"STAT")

    def test_read_swaps_timeout(self):
        """Each read runs with its own timeout and restores the port's."""
        port = create_mock_port()
        seen = []

        def fake_read(size):
            seen.append((size, port.timeout))
            return b"WSTA"

        port.read.side_effect = fake_read
        channel = SerialChannel(port)

        assert channel.read(10, 0.5) == b"WSTA"
        assert seen == [(10, 0.5)]
        assert port.timeout == 1.0

    def test_read_timeout_returns_empty(self):
        port = create_mock_port()
        port.read.return_value = b""
        assert SerialChannel(port).read(10, 0.1) == b""

    def test_read_serial_exception(self):
        """Read failures become channel errors and the timeout is restored."""
        port = create_mock_port()
        port.read.side_effect = serial.SerialException("device gone")

        with pytest.raises(ChannelError, match="read\\(\\) error"):
            SerialChannel(port).read(10, 0.5)
        assert port.timeout == 1.0

    def test_bytes_available(self):
        port = create_mock_port()
        port.in_waiting = 7
        assert SerialChannel(port).bytes_available() == 7


# =============================================================================
# Port Utility Tests
# =============================================================================

class TestSerialPort:
    """Tests for serial port utilities."""

    def test_valid_baud_rates(self):
        """The three rates the FDC+ can generate."""
        assert VALID_BAUD_RATES == (230400, 403200, 460800)

    def test_default_baud_rate(self):
        assert DEFAULT_BAUD_RATE == 403200

    def test_port_info_usb(self):
        port = PortInfo("/dev/ttyUSB0", "USB Serial", "FTDI", "FT232R", "A1", 0x0403, 0x6001)
        assert port.is_usb
        assert port.vendor_name == "FTDI"
        assert str(port) == "/dev/ttyUSB0 - USB Serial (FTDI)"

    def test_port_info_non_usb(self):
        port = PortInfo("/dev/ttyS0", "Serial Port", None, None, None, None, None)
        assert not port.is_usb
        assert port.vendor_name is None

    def test_format_port_list_empty(self):
        assert "No serial ports" in format_port_list([])

    def test_format_port_list_detailed(self):
        ports = [
            PortInfo("/dev/ttyUSB0", "USB Serial", "FTDI", None, "A1", 0x0403, 0x6001),
            PortInfo("/dev/ttyS0", "Serial Port", None, None, None, None, None),
        ]
        result = format_port_list(ports, verbose=True)
        assert "USB VID:PID: 0403:6001 (FTDI)" in result
        assert "Serial: A1" in result
        assert "/dev/ttyS0" in result

    def test_find_prefers_ftdi(self):
        """FTDI adapters win over other USB adapters."""
        ports = [
            PortInfo("/dev/ttyS0", "Serial Port", None, None, None, None, None),
            PortInfo("/dev/ttyUSB1", "CH340", None, None, None, 0x1A86, 0x7523),
            PortInfo("/dev/ttyUSB2", "FT232R", None, None, None, 0x0403, 0x6001),
        ]
        with patch("fdc_sim.comms.serial.list_serial_ports", return_value=ports):
            assert find_serial_port() == "/dev/ttyUSB2"

    def test_find_falls_back_to_first_usb(self):
        ports = [
            PortInfo("/dev/ttyS0", "Serial Port", None, None, None, None, None),
            PortInfo("/dev/ttyUSB1", "CH340", None, None, None, 0x1A86, 0x7523),
        ]
        with patch("fdc_sim.comms.serial.list_serial_ports", return_value=ports):
            assert find_serial_port() == "/dev/ttyUSB1"

    def test_find_no_usb(self):
        with patch("fdc_sim.comms.serial.list_serial_ports", return_value=[]):
            assert find_serial_port() is None


class TestOpenSerialPort:
    """Tests for opening and closing the port (pyserial mocked)."""

    def test_open_configures_port(self):
        """8-N-1, no flow control, DTR and RTS asserted, buffers cleared."""
        with patch("serial.Serial") as serial_class:
            port = open_serial_port("/dev/ttyUSB0")

        kwargs = serial_class.call_args.kwargs
        assert kwargs["port"] == "/dev/ttyUSB0"
        assert kwargs["baudrate"] == 403200
        assert kwargs["bytesize"] == serial.EIGHTBITS
        assert kwargs["parity"] == serial.PARITY_NONE
        assert kwargs["stopbits"] == serial.STOPBITS_ONE
        assert kwargs["timeout"] == DEFAULT_TIMEOUT
        assert not kwargs["rtscts"]
        assert port.dtr is True
        assert port.rts is True
        port.reset_input_buffer.assert_called_once()
        port.reset_output_buffer.assert_called_once()

    def test_open_invalid_baud(self):
        """Only the FDC+ rates are accepted."""
        with patch("serial.Serial") as serial_class:
            with pytest.raises(ValueError, match="Invalid baud rate"):
                open_serial_port("/dev/ttyUSB0", baud_rate=9600)
        serial_class.assert_not_called()

    def test_open_permission_denied(self):
        error = serial.SerialException("[Errno 13] Permission denied: '/dev/ttyUSB0'")
        with patch("serial.Serial", side_effect=error):
            with pytest.raises(ConnectionError, match="dialout"):
                open_serial_port("/dev/ttyUSB0")

    def test_open_not_found(self):
        error = serial.SerialException("[Errno 2] No such file or directory: '/dev/ttyUSB9'")
        with patch("serial.Serial", side_effect=error):
            with pytest.raises(ConnectionError, match="not found"):
                open_serial_port("/dev/ttyUSB9")

    def test_open_unsupported_rate(self):
        """A rate the driver cannot set is reported as a connection error."""
        with patch("serial.Serial", side_effect=ValueError("Invalid baud rate")):
            with pytest.raises(ConnectionError, match="Could not set baudrate to 403200"):
                open_serial_port("/dev/ttyUSB0")

    def test_connection_error_is_comms_error(self):
        assert issubclass(ConnectionError, CommsError)

    def test_close(self):
        port = create_mock_port()
        close_serial_port(port)
        port.close.assert_called_once()

    def test_close_none(self):
        close_serial_port(None)

    def test_close_error_is_logged(self):
        port = create_mock_port()
        port.close.side_effect = OSError("gone")
        close_serial_port(port)

"""
Serial Port Utilities for the FDC+ Serial Drive Link
====================================================

Helpers for finding, opening and closing the serial port that carries
the FDC+ serial drive link.

Serial Port Settings
--------------------
- Baud Rate: 403.2K (preferred), 460.8K or 230.4K
- Framing: 8 data bits, no parity, 1 stop bit
- Flow Control: none
- DTR and RTS asserted

403.2K allows full-speed operation and is the most accurate of the three
rates the FDC+ can generate. 460.8K also runs at full speed but is about
3.5% off. 230.4K is available on almost every serial port and is within
2% of the FDC+ rate, but runs at 80%-90% of real disk speed.

Only adapters that can be programmed for non-standard rates handle
403.2K, so auto-detection prefers FTDI and CP210x parts.
"""

import logging
from dataclasses import dataclass
from typing import Final, Optional

import serial
import serial.tools.list_ports

from fdc_sim.config import DEFAULT_BAUD_RATE, VALID_BAUD_RATES
from fdc_sim.errors import ConnectionError

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Port timeout used between exchanges; the channel sets its own per read
DEFAULT_TIMEOUT: Final[float] = 0.5

# Known USB-serial bridge vendors
USB_VENDOR_IDS: Final[dict[int, str]] = {
    0x0403: "FTDI",
    0x10C4: "Silicon Labs",
    0x067B: "Prolific",
    0x1A86: "QinHeng",
}

# Vendors whose bridges can generate 403.2K, best first
PREFERRED_VENDOR_IDS: Final[tuple[int, ...]] = (0x0403, 0x10C4)

# Substrings of pyserial open errors, and the hint shown for each
_OPEN_FAILURE_HINTS: Final[tuple[tuple[tuple[str, ...], str], ...]] = (
    (("permission denied",),
     "Permission denied opening {device}. Add your user to the 'dialout' "
     "group (sudo usermod -a -G dialout $USER) and log in again."),
    (("no such file", "not found", "cannot find"),
     "Serial port not found: {device}. Run 'fdclink ports' to see what is "
     "available."),
    (("busy", "in use", "access is denied"),
     "Serial port {device} is busy. Another program (a terminal, or the disk "
     "server itself) probably has it open."),
)


# =============================================================================
# Port Information
# =============================================================================

@dataclass(frozen=True)
class PortInfo:
    """
    One serial port as reported by the operating system.

    USB fields are None for built-in and virtual ports.
    """

    device: str
    description: str
    manufacturer: Optional[str]
    product: Optional[str]
    serial_number: Optional[str]
    vid: Optional[int]
    pid: Optional[int]

    @classmethod
    def from_list_port_info(cls, info) -> "PortInfo":
        """Build from a pyserial `ListPortInfo`."""
        return cls(
            device=info.device,
            description=info.description or "",
            manufacturer=info.manufacturer,
            product=info.product,
            serial_number=info.serial_number,
            vid=info.vid,
            pid=info.pid,
        )

    @property
    def is_usb(self) -> bool:
        return self.vid is not None

    @property
    def vendor_name(self) -> Optional[str]:
        """Vendor of a known USB bridge, else None."""
        return USB_VENDOR_IDS.get(self.vid) if self.is_usb else None

    @property
    def usb_id(self) -> str:
        """VID:PID in hex, or an empty string for non-USB ports."""
        if not self.is_usb:
            return ""
        return f"{self.vid:04X}:{self.pid or 0:04X}"

    def __str__(self) -> str:
        text = self.device
        if self.description:
            text += f" - {self.description}"
        if self.vendor_name:
            text += f" ({self.vendor_name})"
        return text


# =============================================================================
# Port Enumeration
# =============================================================================

def list_serial_ports() -> list[PortInfo]:
    """Return every serial port the operating system reports."""
    ports = [PortInfo.from_list_port_info(p) for p in serial.tools.list_ports.comports()]
    for port in ports:
        logger.debug("Found port: %s %s", port.device, port.usb_id or "(not USB)")
    return ports


def find_serial_port() -> Optional[str]:
    """
    Guess which port the link is on.

    A bridge from PREFERRED_VENDOR_IDS wins, in that order. Failing
    that, the first USB port is used. Non-USB ports are never picked.

    Returns:
        Device path, or None when there is no USB serial port.
    """
    candidates = [p for p in list_serial_ports() if p.is_usb]
    if not candidates:
        logger.debug("No USB serial ports found")
        return None

    def rank(port: PortInfo) -> int:
        if port.vid in PREFERRED_VENDOR_IDS:
            return PREFERRED_VENDOR_IDS.index(port.vid)
        return len(PREFERRED_VENDOR_IDS)

    best = min(candidates, key=rank)
    logger.info("Auto-detected port: %s (%s)", best.device, best.vendor_name or best.description)
    return best.device


# =============================================================================
# Opening and Closing
# =============================================================================

def open_serial_port(
    device: str,
    baud_rate: int = DEFAULT_BAUD_RATE,
    timeout: float = DEFAULT_TIMEOUT,
) -> serial.Serial:
    """
    Open `device` configured for the FDC+ link.

    The port is set to 8-N-1 without flow control, DTR and RTS are
    raised, and anything already buffered is thrown away. Closing the
    port is up to the caller (see `close_serial_port()`).

    Args:
        device: Port path, e.g. '/dev/ttyUSB0' or 'COM3'.
        baud_rate: One of VALID_BAUD_RATES.
        timeout: Read timeout left on the port between exchanges.

    Raises:
        ValueError: If `baud_rate` is not an FDC+ rate.
        ConnectionError: If the port cannot be opened or configured.
    """
    if baud_rate not in VALID_BAUD_RATES:
        raise ValueError(
            f"Invalid baud rate: {baud_rate}. "
            f"Valid rates: {', '.join(map(str, VALID_BAUD_RATES))}"
        )

    logger.info("Opening %s at %d baud", device, baud_rate)

    try:
        port = serial.Serial(
            port=device,
            baudrate=baud_rate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=timeout,
            xonxoff=False,
            rtscts=False,
            dsrdtr=False,
        )
    except serial.SerialException as e:
        raise ConnectionError(_describe_open_failure(device, e)) from e
    except ValueError as e:
        # Raised by pyserial for rates the driver cannot program
        raise ConnectionError(f"Could not set baudrate to {baud_rate}: {e}") from e

    try:
        port.dtr = True
        port.rts = True
        port.reset_input_buffer()
        port.reset_output_buffer()
    except serial.SerialException as e:
        port.close()
        raise ConnectionError(f"Could not configure serial port '{device}': {e}") from e

    return port


def _describe_open_failure(device: str, error: Exception) -> str:
    text = str(error).lower()
    for needles, hint in _OPEN_FAILURE_HINTS:
        if any(n in text for n in needles):
            return hint.format(device=device)
    return f"Could not open serial port '{device}': {error}"


def close_serial_port(port: Optional[serial.Serial]) -> None:
    """
    Discard pending data and close `port`.

    Accepts None. Failures are logged rather than raised, so this is
    safe to call from cleanup code.
    """
    if port is None or not port.is_open:
        return

    try:
        port.reset_input_buffer()
        port.reset_output_buffer()
        port.close()
    except (serial.SerialException, OSError) as e:
        logger.warning("Error closing serial port: %s", e)
    else:
        logger.debug("Serial port closed")


# =============================================================================
# Display
# =============================================================================

def format_port_list(ports: list[PortInfo], verbose: bool = False) -> str:
    """
    Render ports for the terminal, one per line.

    With `verbose`, each port is followed by indented detail lines.
    """
    if not ports:
        return "No serial ports found."

    if not verbose:
        return "\n".join(f"  {port}" for port in ports)

    blocks = []
    for port in ports:
        details = [
            ("Description", port.description),
            ("Manufacturer", port.manufacturer),
            ("USB VID:PID", f"{port.usb_id} ({port.vendor_name})"
                if port.vendor_name else port.usb_id),
            ("Serial", port.serial_number),
        ]
        lines = [f"  {port.device}"]
        lines.extend(f"    {label}: {value}" for label, value in details if value)
        blocks.append("\n".join(lines))
    return "\n".join(blocks)

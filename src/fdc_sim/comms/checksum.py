"""
16-bit Sum Checksum for the FDC+ Serial Link
=============================================

Both command/response frames and track data blocks are protected by the
same checksum: the sum of every byte, taken as an unsigned 8-bit value,
accumulated in a 16-bit register that silently wraps.

    checksum = (b[0] + b[1] + ... + b[n-1]) & 0xFFFF

The checksum travels little-endian (low byte first) directly after the
bytes it covers, and is never included in its own sum.

Usage
-----
    from fdc_sim.comms.checksum import sum16, checksum_to_bytes

    value = sum16(b"STAT\\xff\\x00\\x00\\x00")   # 0x023B
    wire = checksum_to_bytes(value)            # b'\\x3b\\x02'
"""

from typing import Final

# =============================================================================
# Constants
# =============================================================================

# Initial value of the accumulator
CHECKSUM_INITIAL: Final[int] = 0x0000

# Mask for 16-bit values
CHECKSUM_MASK: Final[int] = 0xFFFF

# Size of a checksum on the wire
CHECKSUM_SIZE: Final[int] = 2


# =============================================================================
# Checksum Calculation
# =============================================================================

def sum16(data: bytes, initial: int = CHECKSUM_INITIAL) -> int:
    """
    Calculate the 16-bit wrapping byte sum of `data`.

    Args:
        data: Bytes to sum.
        initial: Starting accumulator value. Allows a checksum to be
                 computed incrementally over several chunks.

    Returns:
        16-bit checksum value (0x0000 to 0xFFFF).

    Example:
        >>> hex(sum16(b"\\xff" * 257))
        '0xffff'
        >>> sum16(b"\\x80" * 512)
        0
    """
    return (initial + sum(data)) & CHECKSUM_MASK


def checksum_to_bytes(checksum: int) -> bytes:
    """
    Convert a checksum to its little-endian wire form.

    Args:
        checksum: 16-bit checksum value.

    Returns:
        Two bytes, low byte first.
    """
    return bytes([checksum & 0xFF, (checksum >> 8) & 0xFF])


def checksum_from_bytes(data: bytes) -> int:
    """
    Read a little-endian checksum from the first two bytes of `data`.

    Raises:
        ValueError: If fewer than two bytes are given.
    """
    if len(data) < CHECKSUM_SIZE:
        raise ValueError(f"Checksum needs {CHECKSUM_SIZE} bytes, got {len(data)}")
    return data[0] | (data[1] << 8)


def verify_checksum(data: bytes, expected: int) -> bool:
    """Return True if `data` sums to `expected`."""
    return sum16(data) == (expected & CHECKSUM_MASK)

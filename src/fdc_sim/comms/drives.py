"""
Controller Drive State
======================

The controller keeps a small table of local drive state that it reports
to the server in every STAT command:

- which drive is selected (0 to MAX_DRIVE-1, or none), and
- whether each drive's head is loaded.

STAT param1 packs the two together:

    bits 15-8: head load bitmap, bit d set when drive d's head is loaded
    bits 7-0:  selected drive number, 0xFF when no drive is selected

Whether a drive actually has an image mounted is a fact owned by the
server. It comes back in the STAT response and is never stored here.
"""

import logging
from typing import Final, Optional

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Number of drive slots on the controller
MAX_DRIVE: Final[int] = 4

# Wire value of the selected-drive byte when no drive is selected
NO_DRIVE: Final[int] = 0xFF


class DriveState:
    """
    Selected drive and per-drive head load flags.

    Mutated only by the thread driving the session; it is not locked.

    Example:
        drives = DriveState()
        drives.select(2)
        drives.set_head_loaded(2, True)
        assert drives.stat_param1() == 0x0402
    """

    def __init__(self) -> None:
        self._selected: Optional[int] = None
        self._head_loaded = [False] * MAX_DRIVE

    @property
    def selected(self) -> Optional[int]:
        """Selected drive number, or None when no drive is selected."""
        return self._selected

    @property
    def has_valid_selection(self) -> bool:
        """True when a drive in range is selected."""
        return self._selected is not None and 0 <= self._selected < MAX_DRIVE

    def select(self, drive: Optional[int]) -> None:
        """
        Select a drive, or deselect with None.

        Any number that fits the selected-drive byte is accepted and
        reported by STAT as-is; READ and WRIT refuse drives outside
        0 to MAX_DRIVE-1 before transmitting.

        Raises:
            ValueError: If `drive` does not fit in the byte or collides
                with the NO_DRIVE sentinel.
        """
        if drive is not None and not 0 <= drive < NO_DRIVE:
            raise ValueError(f"Drive number must be 0-{NO_DRIVE - 1}, got {drive}")
        if drive != self._selected:
            logger.debug("Selected drive: %s", "none" if drive is None else drive)
        self._selected = drive

    def set_head_loaded(self, drive: int, loaded: bool) -> None:
        """Record the head load state of `drive`."""
        _check_drive(drive)
        self._head_loaded[drive] = bool(loaded)

    def is_head_loaded(self, drive: int) -> bool:
        _check_drive(drive)
        return self._head_loaded[drive]

    def unload_all(self) -> None:
        """Unload every head."""
        self._head_loaded = [False] * MAX_DRIVE

    def head_load_bitmap(self) -> int:
        """Bitmap with bit d set when drive d's head is loaded."""
        bitmap = 0
        for drive, loaded in enumerate(self._head_loaded):
            if loaded:
                bitmap |= 1 << drive
        return bitmap

    def stat_param1(self) -> int:
        """Param1 of a STAT command: head bitmap high byte, selected drive low byte."""
        selected = NO_DRIVE if self._selected is None else self._selected
        return (self.head_load_bitmap() << 8) | selected

    def snapshot(self) -> tuple[Optional[int], tuple[bool, ...]]:
        """Immutable copy of the current state, for comparisons."""
        return self._selected, tuple(self._head_loaded)

    def __repr__(self) -> str:
        loaded = [d for d, flag in enumerate(self._head_loaded) if flag]
        return f"DriveState(selected={self._selected}, heads_loaded={loaded})"


def _check_drive(drive: int) -> None:
    if not 0 <= drive < MAX_DRIVE:
        raise ValueError(f"Drive must be 0-{MAX_DRIVE - 1}, got {drive}")

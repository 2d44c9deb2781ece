"""
Tests for Track Blocks and Drive State
======================================

Track blocks are a whole track followed by its 16-bit sum. The drive
state table produces the param1 word of every STAT command.
"""

import pytest

from conftest import track_pattern
from fdc_sim.comms.drives import MAX_DRIVE, NO_DRIVE, DriveState
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
from fdc_sim.errors import TrackChecksumError, TrackLengthError, TransferError


# =============================================================================
# Geometry Tests
# =============================================================================

class TestDiskGeometry:
    """Tests for the supported disk geometries."""

    def test_eight_inch(self):
        """77 tracks of 32 sectors of 137 bytes."""
        geometry = DiskGeometry.EIGHT_INCH
        assert geometry.tracks == 77
        assert geometry.sectors == 32
        assert geometry.track_length == 4384
        assert geometry.block_length == 4386

    def test_minidisk(self):
        """35 tracks of 16 sectors of 137 bytes."""
        geometry = DiskGeometry.MINIDISK
        assert geometry.tracks == 35
        assert geometry.track_length == 2192
        assert geometry.block_length == 2194

    def test_receive_buffer_size(self):
        """The receive buffer holds the largest track plus checksum."""
        assert MAX_TRACK_LENGTH == 4384
        assert MAX_BLOCK_LENGTH == 4386

    def test_labels(self):
        """Geometries are named on the command line by label."""
        assert DiskGeometry.from_label("8in") is DiskGeometry.EIGHT_INCH
        assert DiskGeometry.from_label("MiniDisk") is DiskGeometry.MINIDISK
        assert DiskGeometry.MINIDISK.label == "minidisk"

    def test_unknown_label(self):
        """Unknown names are rejected."""
        with pytest.raises(ValueError, match="Unknown disk geometry"):
            DiskGeometry.from_label("5.25in")


# =============================================================================
# Track Block Tests
# =============================================================================

class TestTrackBlock:
    """Tests for building and validating track blocks."""

    def test_append_checksum(self):
        """The block is the payload plus its LE sum."""
        payload = track_pattern(2192)
        block = append_checksum(payload)
        assert len(block) == 2194
        assert block[:2192] == payload
        checksum = track_checksum(payload)
        assert block[2192:] == bytes([checksum & 0xFF, checksum >> 8])

    def test_formatted_track_checksum(self):
        """An 8in track of 0xE5 sums to 4384 * 0xE5 mod 65536."""
        payload = bytes([FORMAT_FILL_BYTE]) * 4384
        assert track_checksum(payload) == (4384 * 0xE5) & 0xFFFF

    def test_validate_returns_payload(self):
        """A good block yields exactly the payload."""
        payload = track_pattern(4384)
        assert validate_track(append_checksum(payload), 4384) == payload

    def test_validate_short_block(self):
        """A short block is a length error."""
        block = append_checksum(track_pattern(4384))
        with pytest.raises(TrackLengthError) as exc_info:
            validate_track(block[:-1], 4384)
        assert exc_info.value.expected == 4386
        assert exc_info.value.actual == 4385

    def test_validate_length_checked_before_checksum(self):
        """A minidisk block is rejected for an 8in track even though it sums correctly."""
        block = append_checksum(track_pattern(2192))
        with pytest.raises(TrackLengthError):
            validate_track(block, 4384)

    def test_validate_bad_checksum(self):
        """A corrupted payload byte fails the checksum."""
        block = bytearray(append_checksum(track_pattern(4384)))
        block[1000] ^= 0x40
        with pytest.raises(TrackChecksumError):
            validate_track(bytes(block), 4384)

    def test_validate_bad_checksum_bytes(self):
        """A corrupted checksum byte fails too."""
        block = bytearray(append_checksum(track_pattern(4384)))
        block[-1] ^= 0x01
        with pytest.raises(TrackChecksumError):
            validate_track(bytes(block), 4384)

    def test_pad_track(self):
        """Short data is filled out with the format byte."""
        padded = pad_track(b"\x01\x02", 8)
        assert padded == b"\x01\x02" + b"\xe5" * 6

    def test_pad_track_custom_fill(self):
        assert pad_track(b"", 3, fill=0) == b"\x00\x00\x00"

    def test_pad_track_too_long(self):
        """Data longer than a track cannot be padded."""
        with pytest.raises(ValueError, match="too large"):
            pad_track(b"\x00" * 9, 8)

    def test_error_hierarchy(self):
        assert issubclass(TrackLengthError, TransferError)
        assert issubclass(TrackChecksumError, TransferError)


# =============================================================================
# Drive State Tests
# =============================================================================

class TestDriveState:
    """Tests for the selected drive and head load table."""

    def test_initial_state(self):
        """Nothing selected, no heads loaded."""
        drives = DriveState()
        assert drives.selected is None
        assert not drives.has_valid_selection
        assert drives.head_load_bitmap() == 0
        assert drives.stat_param1() == NO_DRIVE

    def test_stat_param1_packing(self):
        """Drive 2 selected with its head loaded gives 0x0402."""
        drives = DriveState()
        drives.select(2)
        drives.set_head_loaded(2, True)
        assert drives.stat_param1() == 0x0402

    def test_heads_without_selection(self):
        """Head bits stay in the high byte when nothing is selected."""
        drives = DriveState()
        drives.set_head_loaded(0, True)
        drives.set_head_loaded(3, True)
        assert drives.head_load_bitmap() == 0x09
        assert drives.stat_param1() == 0x09FF

    def test_deselect(self):
        """Selecting None reports 0xFF again."""
        drives = DriveState()
        drives.select(1)
        drives.select(None)
        assert drives.selected is None
        assert drives.stat_param1() & 0xFF == NO_DRIVE

    def test_out_of_range_selection_is_reported(self):
        """Drives above the controller's range can be selected for STAT."""
        drives = DriveState()
        drives.select(9)
        assert drives.selected == 9
        assert not drives.has_valid_selection
        assert drives.stat_param1() == 0x0009

    def test_select_rejects_sentinel(self):
        """0xFF is reserved for 'no drive'."""
        drives = DriveState()
        with pytest.raises(ValueError):
            drives.select(NO_DRIVE)
        with pytest.raises(ValueError):
            drives.select(-1)

    def test_head_load_range(self):
        """Only controller drives have heads."""
        drives = DriveState()
        with pytest.raises(ValueError):
            drives.set_head_loaded(MAX_DRIVE, True)
        with pytest.raises(ValueError):
            drives.is_head_loaded(-1)

    def test_unload_all(self):
        drives = DriveState()
        for drive in range(MAX_DRIVE):
            drives.set_head_loaded(drive, True)
        assert drives.head_load_bitmap() == 0x0F
        drives.unload_all()
        assert drives.head_load_bitmap() == 0

    def test_snapshot(self):
        """Snapshots compare equal until the state changes."""
        drives = DriveState()
        before = drives.snapshot()
        assert drives.snapshot() == before
        drives.set_head_loaded(1, True)
        assert drives.snapshot() != before

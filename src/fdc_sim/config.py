"""
FDC Link Configuration
======================

Settings owned by the caller of the protocol session: which port and
baud rate to use, which disk geometry the session transfers, and the
bounded-wait timings. Configuration can come from:

- Default values (defined here)
- Environment variables (`LinkConfig.from_env()`)
- Command-line options (applied by the CLI on top of the above)

Timing defaults follow the FDC+ firmware: each read attempt for a
command/response frame waits up to 500ms, each read attempt for a chunk
of track data waits up to 100ms, and the FDC issues STAT roughly ten
times per second.
"""

import logging
import os
from dataclasses import dataclass
from typing import Final, Optional

from fdc_sim.comms.track import DiskGeometry

# Configure module logger
logger = logging.getLogger(__name__)


# Valid baud rates for the FDC+ serial drive modes
VALID_BAUD_RATES: Final[tuple[int, ...]] = (230400, 403200, 460800)

# 403.2K is the most accurate rate the FDC+ can generate
DEFAULT_BAUD_RATE: Final[int] = 403200

# Per-read wait while collecting a command/response frame (seconds)
DEFAULT_FRAME_TIMEOUT: Final[float] = 0.5

# Per-read wait while collecting track data (seconds)
DEFAULT_PAYLOAD_TIMEOUT: Final[float] = 0.1

# Overall wait for a valid response while bad frames are being dropped
# (seconds); the FDC treats a message as ignored after one second
DEFAULT_RESPONSE_TIMEOUT: Final[float] = 1.0

# STAT polling interval (seconds); the FDC polls about ten times a second
DEFAULT_POLL_INTERVAL: Final[float] = 0.1

# Shortest polling interval accepted (seconds)
MIN_POLL_INTERVAL: Final[float] = 0.1


@dataclass
class LinkConfig:
    """
    Configuration for one link session.

    Attributes:
        port: Serial device path, or None to auto-detect
        baud_rate: Line speed (one of VALID_BAUD_RATES)
        geometry: Disk geometry; fixes the track length of READ/WRIT
        frame_timeout: Per-read bound while waiting for a 10-byte frame
        payload_timeout: Per-read bound while receiving track data
        response_timeout: Overall wait for a valid frame while dropping
            frames with bad checksums
        poll_interval: Delay between STAT polls when polling
    """

    port: Optional[str] = None
    baud_rate: int = DEFAULT_BAUD_RATE
    geometry: DiskGeometry = DiskGeometry.EIGHT_INCH
    frame_timeout: float = DEFAULT_FRAME_TIMEOUT
    payload_timeout: float = DEFAULT_PAYLOAD_TIMEOUT
    response_timeout: float = DEFAULT_RESPONSE_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self) -> None:
        if self.baud_rate not in VALID_BAUD_RATES:
            valid_str = ", ".join(str(b) for b in VALID_BAUD_RATES)
            raise ValueError(
                f"Invalid baud rate: {self.baud_rate}. Valid rates: {valid_str}"
            )
        if min(self.frame_timeout, self.payload_timeout, self.response_timeout) <= 0:
            raise ValueError("Timeouts must be positive")
        if self.poll_interval < MIN_POLL_INTERVAL:
            raise ValueError(
                f"Poll interval must be at least {MIN_POLL_INTERVAL * 1000:.0f}ms"
            )

    @property
    def track_length(self) -> int:
        """Track length in bytes for the configured geometry."""
        return self.geometry.track_length

    @classmethod
    def from_env(cls) -> "LinkConfig":
        """
        Create a LinkConfig from environment variables.

        Environment variables (all optional):
            FDC_SIM_PORT: Serial device path
            FDC_SIM_BAUD: Baud rate
            FDC_SIM_GEOMETRY: "8in" or "minidisk"
            FDC_SIM_FRAME_TIMEOUT: Frame read bound in seconds
            FDC_SIM_PAYLOAD_TIMEOUT: Track chunk read bound in seconds
            FDC_SIM_RESPONSE_TIMEOUT: Bad-frame response deadline in seconds
            FDC_SIM_POLL_INTERVAL: STAT polling interval in seconds

        Invalid values are logged and ignored.

        Returns:
            LinkConfig with values from environment variables
        """
        config = cls()

        if port := os.environ.get("FDC_SIM_PORT"):
            config.port = port

        if baud := os.environ.get("FDC_SIM_BAUD"):
            try:
                value = int(baud)
            except ValueError:
                value = None
            if value in VALID_BAUD_RATES:
                config.baud_rate = value
            else:
                logger.warning("Ignoring invalid FDC_SIM_BAUD: %s", baud)

        if geometry := os.environ.get("FDC_SIM_GEOMETRY"):
            try:
                config.geometry = DiskGeometry.from_label(geometry)
            except ValueError:
                logger.warning("Ignoring invalid FDC_SIM_GEOMETRY: %s", geometry)

        for name, attr, is_valid in (
            ("FDC_SIM_FRAME_TIMEOUT", "frame_timeout", lambda v: v > 0),
            ("FDC_SIM_PAYLOAD_TIMEOUT", "payload_timeout", lambda v: v > 0),
            ("FDC_SIM_RESPONSE_TIMEOUT", "response_timeout", lambda v: v > 0),
            ("FDC_SIM_POLL_INTERVAL", "poll_interval", lambda v: v >= MIN_POLL_INTERVAL),
        ):
            if raw := os.environ.get(name):
                try:
                    value = float(raw)
                except ValueError:
                    logger.warning("Ignoring invalid %s: %s", name, raw)
                    continue
                if is_valid(value):
                    setattr(config, attr, value)
                else:
                    logger.warning("Ignoring out of range %s: %s", name, raw)

        return config

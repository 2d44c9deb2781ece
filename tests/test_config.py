"""
Tests for Link Configuration
============================
"""

import pytest

from fdc_sim.comms import DiskGeometry
from fdc_sim.config import (
    DEFAULT_BAUD_RATE,
    DEFAULT_FRAME_TIMEOUT,
    DEFAULT_PAYLOAD_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    LinkConfig,
)


ENV_VARS = (
    "FDC_SIM_PORT",
    "FDC_SIM_BAUD",
    "FDC_SIM_GEOMETRY",
    "FDC_SIM_FRAME_TIMEOUT",
    "FDC_SIM_PAYLOAD_TIMEOUT",
    "FDC_SIM_RESPONSE_TIMEOUT",
    "FDC_SIM_POLL_INTERVAL",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Fixture: no FDC_SIM_* variables set."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLinkConfig:
    """Tests for LinkConfig defaults and validation."""

    def test_defaults(self):
        config = LinkConfig()
        assert config.port is None
        assert config.baud_rate == DEFAULT_BAUD_RATE == 403200
        assert config.geometry is DiskGeometry.EIGHT_INCH
        assert config.frame_timeout == DEFAULT_FRAME_TIMEOUT == 0.5
        assert config.payload_timeout == DEFAULT_PAYLOAD_TIMEOUT == 0.1
        assert config.response_timeout == 1.0
        assert config.poll_interval == DEFAULT_POLL_INTERVAL == 0.1
        assert config.track_length == 4384

    def test_minidisk_track_length(self):
        assert LinkConfig(geometry=DiskGeometry.MINIDISK).track_length == 2192

    def test_invalid_baud(self):
        with pytest.raises(ValueError, match="Invalid baud rate"):
            LinkConfig(baud_rate=115200)

    def test_invalid_timeout(self):
        with pytest.raises(ValueError, match="Timeouts must be positive"):
            LinkConfig(frame_timeout=0)

    def test_poll_interval_minimum(self):
        """STAT cannot be polled faster than every 100ms."""
        with pytest.raises(ValueError, match="100ms"):
            LinkConfig(poll_interval=0.05)


class TestLinkConfigFromEnv:
    """Tests for LinkConfig.from_env()."""

    def test_no_env(self, clean_env):
        assert LinkConfig.from_env() == LinkConfig()

    def test_all_values(self, clean_env):
        clean_env.setenv("FDC_SIM_PORT", "/dev/ttyUSB3")
        clean_env.setenv("FDC_SIM_BAUD", "230400")
        clean_env.setenv("FDC_SIM_GEOMETRY", "minidisk")
        clean_env.setenv("FDC_SIM_FRAME_TIMEOUT", "0.75")
        clean_env.setenv("FDC_SIM_PAYLOAD_TIMEOUT", "0.2")
        clean_env.setenv("FDC_SIM_RESPONSE_TIMEOUT", "2")
        clean_env.setenv("FDC_SIM_POLL_INTERVAL", "0.5")

        config = LinkConfig.from_env()

        assert config.port == "/dev/ttyUSB3"
        assert config.baud_rate == 230400
        assert config.geometry is DiskGeometry.MINIDISK
        assert config.frame_timeout == 0.75
        assert config.payload_timeout == 0.2
        assert config.response_timeout == 2.0
        assert config.poll_interval == 0.5

    def test_invalid_values_ignored(self, clean_env):
        """Bad values fall back to the defaults."""
        clean_env.setenv("FDC_SIM_BAUD", "9600")
        clean_env.setenv("FDC_SIM_GEOMETRY", "hard-sector")
        clean_env.setenv("FDC_SIM_FRAME_TIMEOUT", "soon")
        clean_env.setenv("FDC_SIM_PAYLOAD_TIMEOUT", "-1")
        clean_env.setenv("FDC_SIM_POLL_INTERVAL", "0.01")

        assert LinkConfig.from_env() == LinkConfig()

    def test_invalid_baud_logged(self, clean_env, caplog):
        clean_env.setenv("FDC_SIM_BAUD", "fast")
        with caplog.at_level("WARNING", logger="fdc_sim.config"):
            LinkConfig.from_env()
        assert "FDC_SIM_BAUD" in caplog.text

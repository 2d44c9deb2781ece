"""
fdc-sim Test Configuration
==========================

Shared fixtures for the link tests.

The `ScriptedChannel` stands in for the serial line: tests queue the
bytes the disk server would send, run an exchange, then inspect what the
controller wrote.
"""

from collections import deque
from typing import Optional, Union

import pytest

from fdc_sim.comms import LinkSession, encode_frame
from fdc_sim.config import LinkConfig


class ScriptedChannel:
    """
    In-memory channel that replays queued server output.

    Each queued item is either bytes, served across as many reads as it
    takes, or an exception raised by the read that reaches it. An empty
    queue reads as a timeout.
    """

    def __init__(self) -> None:
        self.incoming: deque[Union[bytes, Exception]] = deque()
        self.writes: list[bytes] = []
        self.read_timeouts: list[float] = []
        self.read_states: list = []
        self.write_states: list = []
        self.session: Optional[LinkSession] = None

    def queue(self, *items: Union[bytes, Exception]) -> None:
        self.incoming.extend(items)

    def queue_frame(self, tag: str, param1: int = 0, param2: int = 0) -> None:
        self.incoming.append(encode_frame(tag, param1, param2))

    def write(self, data: bytes) -> int:
        if self.session is not None:
            self.write_states.append(self.session.state)
        self.writes.append(bytes(data))
        return len(data)

    def read(self, max_bytes: int, timeout: float) -> bytes:
        if self.session is not None:
            self.read_states.append(self.session.state)
        self.read_timeouts.append(timeout)

        if not self.incoming:
            return b""
        item = self.incoming.popleft()
        if isinstance(item, Exception):
            raise item

        chunk, rest = item[:max_bytes], item[max_bytes:]
        if rest:
            self.incoming.appendleft(rest)
        return chunk

    def bytes_available(self) -> int:
        return sum(len(i) for i in self.incoming if isinstance(i, bytes))


@pytest.fixture
def channel() -> ScriptedChannel:
    """Fixture: empty scripted channel."""
    return ScriptedChannel()


@pytest.fixture
def session(channel: ScriptedChannel) -> LinkSession:
    """Fixture: 8in session over the scripted channel, short response deadline."""
    link = LinkSession(channel, LinkConfig(response_timeout=0.2))
    channel.session = link
    return link


def track_pattern(length: int) -> bytes:
    """Deterministic non-uniform track contents."""
    return bytes((i * 7 + 3) & 0xFF for i in range(length))

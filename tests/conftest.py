"""
Shared fixtures for the test suite.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from players import Player


class FakeSource:
    """PlayerSource returning canned results and counting calls."""

    def __init__(self, players=None, error=None):
        self.players = list(players or [])
        self.error = error
        self.calls = 0

    def status(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.players)


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, secs):
        self.now += secs


@pytest.fixture
def sample_players():
    return [
        Player(slot=0, name="^1Red^7Baron", guid="ABCDEF0123456789ABCDEF0123456789"),
        Player(slot=3, name="Sniper Wolf^7", guid="00112233445566778899aabbccddeeff"),
        Player(slot=7, name="bot0", guid="0"),
    ]


@pytest.fixture
def fake_source(sample_players):
    return FakeSource(sample_players)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_log_lines():
    return [
        "  0:00 InitGame: \\g_gametype\\war\\mapname\\mp_crash\\sv_hostname\\Test Server",
        "  0:05 J;0123456789abcdef;0;^1Red^7Baron",
        "  0:07 J;bot0;1;bot0",
        "  1:12 K;0123456789abcdef;0;axis;^1Red^7Baron;bot0;1;allies;bot0;ak47_mp;135;MOD_HEAD_SHOT;head",
        "  1:30 say ^1Red^7Baron gg ez",
        "  1:31 Weapon;0123456789abcdef;0;^1Red^7Baron;ak47_mp",
        "  9:59 ExitLevel: executed",
        " 10:00 ShutdownGame:",
    ]

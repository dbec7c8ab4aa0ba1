"""
Tests for the TTL player directory.
"""

import threading
import time

import pytest

from conftest import FakeSource
from players import DEFAULT_TTL, Player, PlayerDirectory, PlayerSourceError, RWLock
from utils import strip_colors


class TestSnapshot:
    def test_cached_within_ttl(self, fake_source, clock):
        d = PlayerDirectory(fake_source, ttl=5, clock=clock)
        first = d.snapshot()
        clock.advance(4.9)
        second = d.snapshot()
        assert fake_source.calls == 1
        assert first == second

    def test_refreshed_after_ttl(self, fake_source, clock):
        d = PlayerDirectory(fake_source, ttl=5, clock=clock)
        d.snapshot()
        clock.advance(5)
        d.snapshot()
        assert fake_source.calls == 2

    def test_empty_result_is_cached(self, clock):
        src = FakeSource([])
        d = PlayerDirectory(src, ttl=5, clock=clock)
        assert d.snapshot() == []
        assert d.snapshot() == []
        assert src.calls == 1

    @pytest.mark.parametrize("ttl", [0, -3, None])
    def test_default_ttl(self, fake_source, ttl):
        assert PlayerDirectory(fake_source, ttl=ttl).ttl == DEFAULT_TTL == 2.0

    def test_defensive_copy(self, fake_source, clock):
        d = PlayerDirectory(fake_source, ttl=5, clock=clock)
        snap = d.snapshot()
        snap[0].name = "changed"
        snap.clear()
        again = d.snapshot()
        assert len(again) == 3
        assert again[0].name == "^1Red^7Baron"

    def test_failure_keeps_stale_cache(self, sample_players, clock):
        src = FakeSource(sample_players)
        d = PlayerDirectory(src, ttl=1, clock=clock)
        d.snapshot()
        clock.advance(2)
        src.error = PlayerSourceError("down")
        with pytest.raises(PlayerSourceError):
            d.snapshot()
        with pytest.raises(PlayerSourceError):
            d.find_by_slot(0)
        src.error = None
        src.players = []
        assert d.snapshot() == []
        assert src.calls == 4

    def test_failure_keeps_unexpired_entries_untouched(self, sample_players, clock):
        src = FakeSource(sample_players)
        d = PlayerDirectory(src, ttl=1, clock=clock)
        d.snapshot()
        clock.advance(2)
        src.error = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            d.snapshot()
        assert d._players == sample_players
        assert d._expires == 101.0

    def test_invalidate_forces_refresh(self, fake_source, clock):
        d = PlayerDirectory(fake_source, ttl=60, clock=clock)
        d.snapshot()
        d.invalidate()
        d.snapshot()
        assert fake_source.calls == 2

    def test_concurrent_misses_each_fetch(self, sample_players):
        gate = threading.Barrier(3)

        class SlowSource(FakeSource):
            def status(self):
                gate.wait(timeout=2)
                return super().status()

        src = SlowSource(sample_players)
        d = PlayerDirectory(src, ttl=60)
        threads = [threading.Thread(target=d.snapshot) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=3)
        assert src.calls == 3


class TestLookups:
    def test_find_by_name_ignores_case_and_colors(self, fake_source):
        d = PlayerDirectory(fake_source)
        assert d.find_by_name("redbaron").slot == 0
        assert d.find_by_name("^3RED^7bar").slot == 0
        assert d.find_by_name("  wolf ").slot == 3

    def test_find_by_name_first_match_wins(self, fake_source):
        d = PlayerDirectory(fake_source)
        assert d.find_by_name("o").slot == 0

    def test_find_by_name_empty_query(self, fake_source):
        d = PlayerDirectory(fake_source)
        assert d.find_by_name("^1^2  ") is None
        assert fake_source.calls == 0

    def test_find_by_name_not_found(self, fake_source):
        assert PlayerDirectory(fake_source).find_by_name("nobody") is None

    def test_find_by_slot(self, fake_source):
        d = PlayerDirectory(fake_source)
        assert d.find_by_slot(7).name == "bot0"
        assert d.find_by_slot(5) is None

    def test_find_by_slot_first_duplicate(self):
        d = PlayerDirectory(FakeSource([Player(1, "a", "x"), Player(1, "b", "y")]))
        assert d.find_by_slot(1).name == "a"

    def test_find_by_guid(self, fake_source):
        d = PlayerDirectory(fake_source)
        assert d.find_by_guid(" abcdef0123456789abcdef0123456789 ").slot == 0
        assert d.find_by_guid("00112233445566778899AABBCCDDEEFF").slot == 3
        assert d.find_by_guid("0011") is None
        assert d.find_by_guid("  ") is None

    def test_lookups_share_cache(self, fake_source):
        d = PlayerDirectory(fake_source, ttl=60)
        d.find_by_name("wolf")
        d.find_by_slot(0)
        d.find_by_guid("0")
        assert fake_source.calls == 1


@pytest.mark.parametrize(
    "raw,clean",
    [
        ("^1Red^7Baron", "RedBaron"),
        ("plain", "plain"),
        ("trail^", "trail"),
        ("^^7x", "7x"),
        ("", ""),
    ],
)
def test_strip_colors(raw, clean):
    assert strip_colors(raw) == clean


class TestRWLock:
    def test_readers_share(self):
        lock = RWLock()
        inside = threading.Barrier(2)

        def reader():
            with lock.read_locked():
                inside.wait(timeout=2)

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=3)
        assert not any(t.is_alive() for t in threads)

    def test_writer_excludes_readers(self):
        lock = RWLock()
        events = []

        def reader():
            with lock.read_locked():
                events.append("read")

        with lock.write_locked():
            t = threading.Thread(target=reader)
            t.start()
            time.sleep(0.05)
            events.append("write done")
        t.join(timeout=2)
        assert events == ["write done", "read"]

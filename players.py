"""Short-lived cache of the players connected to the server.

PlayerDirectory keeps the last status() result of a PlayerSource for a
TTL. The source is called outside the lock, so callers that all see an
expired cache at the same time each pay for a fetch (no single-flight);
wrap the directory if that matters.
"""
from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import List, Optional, Protocol

from utils import strip_colors

logger = logging.getLogger(__name__)

DEFAULT_TTL = 2.0


@dataclass
class Player:
    slot: int
    name: str
    guid: str
    score: int = 0
    ping: int = 0
    address: str = ""


class PlayerSource(Protocol):
    def status(self) -> List[Player]: ...


class PlayerSourceError(RuntimeError):
    pass


class RWLock:
    """Many readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read_locked(self):
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self):
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _copy(players):
    return [replace(p) for p in players]


class PlayerDirectory:
    def __init__(self, source: PlayerSource, ttl: float = DEFAULT_TTL, clock=time.monotonic):
        self.source = source
        self.ttl = float(ttl) if ttl and ttl > 0 else DEFAULT_TTL
        self.clock = clock
        self._lock = RWLock()
        self._players: List[Player] = []
        self._expires: Optional[float] = None

    def snapshot(self) -> List[Player]:
        with self._lock.read_locked():
            if self._expires is not None and self.clock() < self._expires:
                return _copy(self._players)

        players = list(self.source.status())
        logger.debug("player status refreshed: %d players", len(players))

        with self._lock.write_locked():
            self._players = _copy(players)
            self._expires = self.clock() + self.ttl
        return _copy(players)

    def find_by_name(self, query: str) -> Optional[Player]:
        query = strip_colors(query).strip().lower()
        if not query:
            return None
        for p in self.snapshot():
            if query in strip_colors(p.name).lower():
                return p
        return None

    def find_by_slot(self, slot: int) -> Optional[Player]:
        for p in self.snapshot():
            if p.slot == slot:
                return p
        return None

    def find_by_guid(self, guid: str) -> Optional[Player]:
        guid = guid.strip().lower()
        if not guid:
            return None
        for p in self.snapshot():
            if p.guid.strip().lower() == guid:
                return p
        return None

    def invalidate(self):
        with self._lock.write_locked():
            self._players = []
            self._expires = None

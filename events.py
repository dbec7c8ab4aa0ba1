from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import ClassVar, Dict, Optional, Union


class EventKind(Enum):
    BASE = "base"
    PLAYER = "player"
    SERVER = "server"
    KILL = "kill"


# Les quatre formes sont indépendantes : pas d'héritage entre elles.
# Champs communs (command, raw, timestamp) toujours en tête.

@dataclass(frozen=True)
class BaseEvent:
    command: str
    raw: str
    timestamp: Optional[timedelta] = None
    kind: ClassVar[EventKind] = EventKind.BASE


@dataclass(frozen=True)
class PlayerEvent:
    command: str
    raw: str
    timestamp: Optional[timedelta] = None
    xuid: str = ""
    slot: int = 0
    player: str = ""
    message: str = ""
    kind: ClassVar[EventKind] = EventKind.PLAYER


@dataclass(frozen=True)
class ServerEvent:
    command: str
    raw: str
    timestamp: Optional[timedelta] = None
    data: Dict[str, str] = field(default_factory=dict)
    kind: ClassVar[EventKind] = EventKind.SERVER


@dataclass(frozen=True)
class KillEvent:
    command: str
    raw: str
    timestamp: Optional[timedelta] = None
    killer_xuid: str = ""
    killer_slot: int = 0
    killer_team: str = ""
    killer_name: str = ""
    victim_xuid: str = ""
    victim_slot: int = 0
    victim_team: str = ""
    victim_name: str = ""
    weapon: str = ""
    damage: str = ""
    means_of_death: str = ""
    hit_location: str = ""
    kind: ClassVar[EventKind] = EventKind.KILL


Event = Union[BaseEvent, PlayerEvent, ServerEvent, KillEvent]

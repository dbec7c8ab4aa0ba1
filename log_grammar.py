"""Classification of games_mp.log lines into typed events.

classify() is pure: no I/O, no state. Order of the grammars matters,
the first one that matches wins:

    InitGame:      -> ServerEvent (backslash key/value data)
    ShutdownGame:  -> ServerEvent (no data)
    a ';' in line  -> join, then kill, then the generic player form
    say / sayteam  -> chat PlayerEvent
    anything else  -> BaseEvent carrying the whole line
"""
from __future__ import annotations

import re
from datetime import timedelta
from typing import Dict, Optional

from events import BaseEvent, Event, KillEvent, PlayerEvent, ServerEvent

TIMESTAMP = re.compile(r"^([0-9]+):([0-9]+)(?::([0-9]+))?$")
JOIN = re.compile(r"^(J);(-?[A-Fa-f0-9_]{1,32}|bot[0-9]+|0);([0-9]+);(.*)$")
SLOT = re.compile(r"^[0-9]+$")

KILL_FIELDS = 13
PLAYER_MAX_FIELDS = 5
PLAYER_MIN_FIELDS = 4
SLOT_MAX = 2 ** 63 - 1
CHAT_COMMANDS = ("say ", "sayteam ")


class FormatError(ValueError):
    def __init__(self, reason: str, line: str = ""):
        super().__init__(f"{reason}: {line!r}" if line else reason)
        self.reason = reason
        self.line = line


def parse_timestamp(token: str) -> timedelta:
    """`M:S` or `H:M:S`, non-negative integers only."""
    m = TIMESTAMP.match(token)
    if not m:
        raise FormatError("invalid timestamp", token)
    a, b, c = m.groups()
    try:
        if c is None:
            secs = int(a) * 60 + int(b)
        else:
            secs = int(a) * 3600 + int(b) * 60 + int(c)
        return timedelta(seconds=secs)
    except (ValueError, OverflowError) as e:
        raise FormatError(f"timestamp out of range ({e})", token) from e


def parse_key_values(blob: str) -> Dict[str, str]:
    data: Dict[str, str] = {}
    blob = blob.strip()
    if not blob:
        return data
    parts = blob.split("\\")
    # parts[0] = ce qui précède le premier '\', ignoré
    for i in range(1, len(parts) - 1, 2):
        data[parts[i]] = parts[i + 1]
    return data


def format_key_values(data: Dict[str, str]) -> str:
    return "".join(f"\\{k}\\{v}" for k, v in data.items())


def _slot(value: str, line: str) -> int:
    value = value.strip()
    if not SLOT.match(value):
        raise FormatError(f"invalid client slot {value!r}", line)
    try:
        n = int(value)
    except ValueError as e:
        raise FormatError("client slot out of range", line) from e
    if n > SLOT_MAX:
        raise FormatError("client slot out of range", line)
    return n


def _join(line: str, ts: Optional[timedelta], raw: str) -> PlayerEvent:
    m = JOIN.match(line)
    if not m:
        raise FormatError("not a join event", line)
    cmd, xuid, slot, name = m.groups()
    return PlayerEvent(command=cmd, raw=raw, timestamp=ts, xuid=xuid, slot=_slot(slot, line), player=name)


def _kill(line: str, ts: Optional[timedelta], raw: str) -> KillEvent:
    parts = line.split(";")
    if len(parts) != KILL_FIELDS:
        raise FormatError(f"not a kill event, expected {KILL_FIELDS} fields, got {len(parts)}", line)
    if parts[0] != "K":
        raise FormatError("not a kill event", line)
    return KillEvent(
        command="K",
        raw=raw,
        timestamp=ts,
        killer_xuid=parts[1],
        killer_slot=_slot(parts[2], line),
        killer_team=parts[3],
        killer_name=parts[4],
        victim_xuid=parts[5],
        victim_slot=_slot(parts[6], line),
        victim_team=parts[7],
        victim_name=parts[8],
        weapon=parts[9],
        damage=parts[10],
        means_of_death=parts[11],
        hit_location=parts[12],
    )


def _player(line: str, ts: Optional[timedelta], raw: str) -> PlayerEvent:
    parts = [p.strip() for p in line.split(";", PLAYER_MAX_FIELDS - 1)]
    if len(parts) < PLAYER_MIN_FIELDS:
        raise FormatError("invalid player event line", line)
    if not parts[0]:
        raise FormatError("missing command", line)
    message = parts[4] if len(parts) == PLAYER_MAX_FIELDS else ""
    return PlayerEvent(
        command=parts[0],
        raw=raw,
        timestamp=ts,
        xuid=parts[1],
        slot=_slot(parts[2], line),
        player=parts[3],
        message=message,
    )


def _chat(line: str, ts: Optional[timedelta], raw: str) -> PlayerEvent:
    fields = line.split()
    if len(fields) < 3:
        raise FormatError("invalid chat event line", line)
    return PlayerEvent(
        command=fields[0],
        raw=raw,
        timestamp=ts,
        player=fields[1],
        message=" ".join(fields[2:]),
    )


def classify(line: str) -> Event:
    line = line.strip()
    if not line:
        raise FormatError("empty line")
    raw = line
    ts = None

    fields = line.split()
    if len(fields) > 1 and ":" in fields[0]:
        try:
            ts = parse_timestamp(fields[0])
        except FormatError:
            pass
        else:
            line = " ".join(fields[1:])

    if line.startswith("InitGame:"):
        return ServerEvent(command="InitGame", raw=raw, timestamp=ts, data=parse_key_values(line[len("InitGame:"):]))
    if line.startswith("ShutdownGame:"):
        return ServerEvent(command="ShutdownGame", raw=raw, timestamp=ts, data={})

    if ";" in line:
        for grammar in (_join, _kill):
            try:
                return grammar(line, ts, raw)
            except FormatError:
                continue
        return _player(line, ts, raw)

    if line.startswith(CHAT_COMMANDS):
        return _chat(line, ts, raw)

    return BaseEvent(command=line, raw=raw, timestamp=ts)

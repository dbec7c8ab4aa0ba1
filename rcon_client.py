import logging
import re
import socket
from typing import List, Optional

from players import Player, PlayerSourceError

logger = logging.getLogger(__name__)

OOB = b"\xff\xff\xff\xff"
PRINT = OOB + b"print\n"
QUIET = 0.2

STATUS_ROW = re.compile(
    r"^\s*(\d+)\s+(-?\d+)\s+(\d+|CNCT|ZMBI)\s+(\S+)\s+(.*?)\s+(\d+)\s+(\S+)\s+(-?\d+)\s+(\d+)\s*$"
)
REJECTED = ("Bad rcon", "Invalid password", "No rconpassword set")


class RconClient:
    def __init__(self, host: str, port: int, password: str, timeout: float = 1.5, dry_run: bool = False,
                 sock_factory=None):
        self.host = host
        self.port = int(port)
        self.password = password
        self.timeout = float(timeout)
        self.dry_run = dry_run
        self.sock: Optional[socket.socket] = None
        self._sock_factory = sock_factory or (lambda: socket.socket(socket.AF_INET, socket.SOCK_DGRAM))

    def connect(self):
        if self.dry_run:
            return
        self.sock = self._sock_factory()
        self.sock.settimeout(self.timeout)

    def close(self):
        if self.sock is not None:
            try:
                self.sock.close()
            except OSError as e:
                logger.debug("rcon close: %s", e)
            self.sock = None

    def _exchange(self, command: str) -> str:
        assert self.sock is not None
        addr = (self.host, self.port)
        self.sock.settimeout(self.timeout)
        self.sock.sendto(OOB + f"rcon {self.password} {command}".encode("utf-8"), addr)
        data, _ = self.sock.recvfrom(65535)
        chunks = [data]
        # les longues réponses arrivent en plusieurs datagrammes
        self.sock.settimeout(QUIET)
        while True:
            try:
                data, _ = self.sock.recvfrom(65535)
            except socket.timeout:
                break
            chunks.append(data)
        out = []
        for c in chunks:
            if c.startswith(PRINT):
                c = c[len(PRINT):]
            elif c.startswith(OOB):
                raise PlayerSourceError(f"unexpected rcon reply from {self.host}:{self.port}: {c[:32]!r}")
            out.append(c.decode("utf-8", errors="ignore"))
        return "".join(out)

    def cmd(self, command: str) -> str:
        if self.dry_run:
            return f"[DRY-RUN] {command}"
        if not self.sock:
            self.connect()
        try:
            resp = self._exchange(command)
        except OSError as e:
            logger.debug("rcon %r failed (%s), retrying once", command, e)
            self.close()
            self.connect()
            try:
                resp = self._exchange(command)
            except OSError as e2:
                self.close()
                raise PlayerSourceError(f"rcon {self.host}:{self.port} unreachable: {e2}") from e2
        head = resp.lstrip()
        if head.startswith(REJECTED):
            raise PlayerSourceError(f"rcon rejected: {head.splitlines()[0]}")
        return resp


def _ping(v):
    return int(v) if v.isdigit() else -1


def parse_status(text: str) -> List[Player]:
    players = []
    for ln in (text or "").splitlines():
        m = STATUS_ROW.match(ln)
        if not m:
            continue
        num, score, ping, guid, name, _lastmsg, address, _qport, _rate = m.groups()
        players.append(Player(slot=int(num), name=name, guid=guid, score=int(score), ping=_ping(ping), address=address))
    return players


class RconPlayerSource:
    def __init__(self, client: RconClient):
        self.client = client

    def status(self) -> List[Player]:
        return parse_status(self.client.cmd("status"))

#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import queue
import sys
import threading

from rich.box import ROUNDED
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from config import load_config
from events import EventKind
from game_logs import LogTail, TailCancelled
from log_grammar import FormatError, classify, format_key_values
from players import PlayerDirectory, PlayerSourceError
from rcon_client import RconClient, RconPlayerSource
from utils import human_offset, strip_colors

console = Console()

KIND_STYLE = {
    EventKind.BASE: "grey50",
    EventKind.PLAYER: "cyan",
    EventKind.SERVER: "magenta",
    EventKind.KILL: "red",
}


def setup_logging(level):
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def render_event(ev, raw_data=False) -> str:
    style = KIND_STYLE[ev.kind]
    head = f"[dim]{human_offset(ev.timestamp):>8}[/dim] [{style}]{ev.kind.value:<6}[/{style}] [bold]{escape(ev.command)}[/bold]"
    if ev.kind is EventKind.PLAYER:
        who = escape(strip_colors(ev.player))
        body = f"#{ev.slot} {who}"
        if ev.xuid:
            body += f" [dim]({escape(ev.xuid)})[/dim]"
        if ev.message:
            body += f" : {escape(ev.message)}"
        return f"{head} {body}"
    if ev.kind is EventKind.KILL:
        killer = escape(strip_colors(ev.killer_name)) or "world"
        victim = escape(strip_colors(ev.victim_name))
        extra = " ".join(escape(x) for x in (ev.weapon, ev.damage, ev.means_of_death, ev.hit_location))
        return (f"{head} {killer} [dim]({escape(ev.killer_team)})[/dim] → {victim} "
                f"[dim]({escape(ev.victim_team)})[/dim] {extra}")
    if ev.kind is EventKind.SERVER:
        if not ev.data:
            return head
        if raw_data:
            return f"{head} {escape(format_key_values(ev.data))}"
        pairs = ", ".join(f"{k}={v}" for k, v in ev.data.items())
        return f"{head} {escape(pairs)}"
    return head


def cmd_tail(conf, args) -> int:
    lc = conf["log"]
    path = args.path or lc["path"]
    start_at_end = False if args.from_start else bool(lc["start_at_end"])
    q = queue.Queue(maxsize=int(lc["queue_size"]))
    stop = threading.Event()
    tail = LogTail(path, start_at_end=start_at_end, poll_interval=lc["poll_interval"], reopen_retry=lc["reopen_retry"])
    t = tail.start(stop, q)
    console.print(f"[dim]Lecture de {escape(path)}… (Ctrl+C pour quitter)[/dim]")
    try:
        while t.is_alive() or not q.empty():
            try:
                ev = q.get(timeout=0.2)
            except queue.Empty:
                continue
            console.print(render_event(ev, raw_data=args.raw_data))
    except KeyboardInterrupt:
        stop.set()
        t.join()
        console.print(f"\n[yellow]Arrêt demandé[/yellow] : {tail.events} événements, "
                      f"{tail.parse_errors} lignes ignorées, {tail.rotations} rotations")
        return 0
    if isinstance(tail.error, TailCancelled):
        return 0
    if tail.error is None:
        console.print("[red]Lecture interrompue : cause inconnue (voir le journal)[/red]")
        return 1
    console.print(f"[red]Lecture interrompue : {escape(type(tail.error).__name__)}: {escape(str(tail.error))}[/red]")
    return 1


def cmd_parse(conf, args) -> int:
    rc = 0
    for line in args.lines:
        try:
            ev = classify(line)
        except FormatError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            rc = 1
            continue
        console.print(render_event(ev, raw_data=args.raw_data))
    return rc


def player_table(players) -> Table:
    t = Table(title="Joueurs", box=ROUNDED)
    t.add_column("#", justify="right")
    t.add_column("Nom")
    t.add_column("GUID")
    t.add_column("Score", justify="right")
    t.add_column("Ping", justify="right")
    t.add_column("Adresse")
    for p in players:
        t.add_row(str(p.slot), escape(strip_colors(p.name)), p.guid, str(p.score), str(p.ping), p.address)
    return t


def cmd_players(conf, args) -> int:
    r = conf["rcon"]
    rc = RconClient(host=str(r["host"]), port=int(r["port"]), password=str(r["password"]), timeout=float(r["timeout"]))
    directory = PlayerDirectory(RconPlayerSource(rc), ttl=float(conf["players"]["ttl"]))
    try:
        if args.name is not None:
            found = [directory.find_by_name(args.name)]
        elif args.slot is not None:
            found = [directory.find_by_slot(args.slot)]
        elif args.guid is not None:
            found = [directory.find_by_guid(args.guid)]
        else:
            console.print(player_table(directory.snapshot()))
            return 0
    except PlayerSourceError as e:
        console.print(f"[red]Statut RCON impossible : {escape(str(e))}[/red]")
        return 1
    finally:
        rc.close()
    found = [p for p in found if p is not None]
    if not found:
        console.print("[yellow]Aucun joueur correspondant[/yellow]")
        return 1
    console.print(player_table(found))
    return 0


def build_parser():
    p = argparse.ArgumentParser(prog="mp-logfeed", description="Suivi du journal games_mp.log et des joueurs connectés")
    p.add_argument("-c", "--config", default="config.json")
    p.add_argument("-v", "--verbose", action="store_true")
    sub = p.add_subparsers(dest="command", required=True)

    t = sub.add_parser("tail", help="suivre le journal et afficher les événements")
    t.add_argument("path", nargs="?", default=None)
    t.add_argument("--from-start", action="store_true")
    t.add_argument("--raw-data", action="store_true")
    t.set_defaults(func=cmd_tail)

    pa = sub.add_parser("parse", help="classer une ou plusieurs lignes")
    pa.add_argument("lines", nargs="+")
    pa.add_argument("--raw-data", action="store_true")
    pa.set_defaults(func=cmd_parse)

    pl = sub.add_parser("players", help="joueurs connectés via RCON")
    g = pl.add_mutually_exclusive_group()
    g.add_argument("--name")
    g.add_argument("--slot", type=int)
    g.add_argument("--guid")
    pl.set_defaults(func=cmd_players)
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    conf = load_config(args.config)
    level = logging.DEBUG if args.verbose else getattr(logging, str(conf["logging"]["level"]).upper(), logging.INFO)
    setup_logging(level)
    return args.func(conf, args)


if __name__ == "__main__":
    sys.exit(main())

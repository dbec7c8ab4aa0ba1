"""Rotation-aware tail of a game server log.

LogTail reads complete lines, classifies them and pushes the events on a
bounded queue. It stops on a stop event (TailCancelled) or on an I/O
error (OSError). Rotation (new inode at the path, or a file shorter than
the current offset) is best-effort: lines written and rotated away within
one poll interval are lost.
"""
from __future__ import annotations

import logging
import os
import queue
import threading
from typing import Optional

from log_grammar import FormatError, classify

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.15
REOPEN_RETRY = 0.2


class TailCancelled(Exception):
    """The stop event was set. Not a failure."""


class LogTail:
    def __init__(self, path, start_at_end=False, poll_interval=POLL_INTERVAL, reopen_retry=REOPEN_RETRY):
        self.path = path
        self.start_at_end = start_at_end
        self.poll_interval = float(poll_interval)
        self.reopen_retry = float(reopen_retry)
        self.error: Optional[BaseException] = None
        self.lines_read = 0
        self.events = 0
        self.parse_errors = 0
        self.rotations = 0

    def _check_stop(self, stop_event):
        if stop_event.is_set():
            raise TailCancelled(self.path)

    def _reopen(self, stop_event):
        while True:
            self._check_stop(stop_event)
            try:
                f = open(self.path, 'rb')
            except OSError as e:
                logger.debug("reopen of %s failed: %s", self.path, e)
                if stop_event.wait(self.reopen_retry):
                    raise TailCancelled(self.path)
                continue
            logger.info("log rotated, reopened %s", self.path)
            return f

    def _rotated(self, f, offset):
        try:
            st = os.stat(self.path)
        except OSError:
            # chemin absent pendant la rotation : on attend simplement
            return False
        cur = os.fstat(f.fileno())
        return not os.path.samestat(st, cur) or st.st_size < offset

    def _publish(self, ev, stop_event, out_q):
        while True:
            self._check_stop(stop_event)
            try:
                out_q.put(ev, timeout=self.poll_interval)
                self.events += 1
                return
            except queue.Full:
                continue

    def run(self, stop_event, out_q):
        f = open(self.path, 'rb')
        logger.info("tailing %s (start_at_end=%s)", self.path, self.start_at_end)
        try:
            f.seek(0, os.SEEK_END if self.start_at_end else os.SEEK_SET)
            while True:
                self._check_stop(stop_event)
                pos = f.tell()
                data = f.readline()
                if not data.endswith(b'\n'):
                    # ligne incomplète : on la relira quand elle sera terminée
                    f.seek(pos)
                    if self._rotated(f, pos):
                        f.close()
                        self.rotations += 1
                        f = self._reopen(stop_event)
                        continue
                    if stop_event.wait(self.poll_interval):
                        raise TailCancelled(self.path)
                    continue
                self.lines_read += 1
                line = data.decode('utf-8', errors='ignore').rstrip('\r\n')
                if not line:
                    continue
                try:
                    ev = classify(line)
                except FormatError as e:
                    self.parse_errors += 1
                    logger.warning("dropped line: %s", e)
                    continue
                self._publish(ev, stop_event, out_q)
        finally:
            f.close()

    def _run_bg(self, stop_event, out_q):
        try:
            self.run(stop_event, out_q)
        except TailCancelled as e:
            logger.debug("tail of %s stopped", self.path)
            self.error = e
        except OSError as e:
            logger.error("tail of %s failed: %s", self.path, e)
            self.error = e
        except Exception as e:
            logger.exception("tail of %s crashed", self.path)
            self.error = e

    def start(self, stop_event, out_q):
        t = threading.Thread(target=self._run_bg, args=(stop_event, out_q), daemon=True)
        t.start()
        return t


def tail_file(path, start_at_end, stop_event, out_q, **kw):
    return LogTail(path, start_at_end=start_at_end, **kw).run(stop_event, out_q)

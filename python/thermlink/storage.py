"""Text log file write/read.

File format: one record per line, appended in the order it happened.

  HH:MM:SS T.t         report
  HH:MM:SS SHUTDOWN    end of session
  <anything else>      inbound command line, verbatim

Every write is flushed immediately so the file is complete up to the
last record even if the process dies.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, TextIO

import numpy as np

from .errors import ConfigurationError, LogWriteError

logger = logging.getLogger(__name__)

_REPORT_RE = re.compile(r"^(\d{2}):(\d{2}):(\d{2}) (-?(?:\d+\.\d|inf|nan))$")
_SHUTDOWN_RE = re.compile(r"^(\d{2}):(\d{2}):(\d{2}) SHUTDOWN$")


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------

class ReportLog:
    """Append-only log sink.  Writes after close() are dropped."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        try:
            self._f: TextIO | None = open(self.path, "a", encoding="ascii",
                                          errors="replace")
        except OSError as exc:
            raise ConfigurationError(
                f"cannot open log file {str(self.path)!r}: {exc}") from exc
        self.lines_written: int = 0

    @property
    def closed(self) -> bool:
        return self._f is None

    def write_line(self, line: str) -> None:
        if self._f is None:
            logger.debug("log closed, dropping %r", line)
            return
        try:
            self._f.write(line + "\n")
            self._f.flush()
        except OSError as exc:
            raise LogWriteError(
                f"cannot write log file {str(self.path)!r}: {exc}") from exc
        self.lines_written += 1

    def close(self) -> None:
        if self._f is None:
            return
        f, self._f = self._f, None
        try:
            f.close()
        except OSError as exc:
            logger.warning("error closing log file %s: %s", self.path, exc)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------

class RecordKind(enum.Enum):
    REPORT = "report"
    SHUTDOWN = "shutdown"
    COMMAND = "command"


@dataclass
class LogRecord:
    kind: RecordKind
    text: str
    clock: str | None = None
    temperature: float | None = None


def parse_line(line: str) -> LogRecord:
    """Classify one log line."""
    m = _REPORT_RE.match(line)
    if m:
        return LogRecord(RecordKind.REPORT, line,
                         clock=f"{m[1]}:{m[2]}:{m[3]}",
                         temperature=float(m[4]))
    m = _SHUTDOWN_RE.match(line)
    if m:
        return LogRecord(RecordKind.SHUTDOWN, line,
                         clock=f"{m[1]}:{m[2]}:{m[3]}")
    return LogRecord(RecordKind.COMMAND, line)


class LogReader:
    """Iterates the records of a log file."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._f: TextIO | None = None

    def open(self) -> TextIO:
        self._f = open(self._path, "r", encoding="ascii", errors="replace")
        return self._f

    def records(self) -> Iterator[LogRecord]:
        f = self._f if self._f is not None else self.open()
        f.seek(0)
        for raw in f:
            line = raw.rstrip("\r\n")
            if line:
                yield parse_line(line)

    def close(self) -> None:
        if self._f:
            self._f.close()
            self._f = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()


@dataclass
class LogSummary:
    reports: int
    commands: int
    shutdowns: int
    first: str | None
    last: str | None
    t_min: float | None
    t_max: float | None
    t_mean: float | None


def summarize(records: Iterable[LogRecord]) -> LogSummary:
    """Count record kinds and compute temperature statistics."""
    temps: list[float] = []
    commands = 0
    shutdowns = 0
    first: str | None = None
    last: str | None = None

    for rec in records:
        if rec.kind is RecordKind.COMMAND:
            commands += 1
            continue
        if first is None:
            first = rec.clock
        last = rec.clock
        if rec.kind is RecordKind.SHUTDOWN:
            shutdowns += 1
        elif rec.temperature is not None:
            temps.append(rec.temperature)

    if temps:
        arr = np.array(temps, dtype=np.float64)
        finite = arr[np.isfinite(arr)]
        if finite.size:
            t_min = float(finite.min())
            t_max = float(finite.max())
            t_mean = float(finite.mean())
        else:
            t_min = t_max = t_mean = None
    else:
        t_min = t_max = t_mean = None

    return LogSummary(
        reports=len(temps), commands=commands, shutdowns=shutdowns,
        first=first, last=last, t_min=t_min, t_max=t_max, t_mean=t_mean,
    )

"""Periodic report scheduling."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from .config import SessionConfig
from .sensor import ReadingSource, convert


@dataclass
class Report:
    hour: int
    minute: int
    second: int
    temperature: float

    @property
    def clock(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}:{self.second:02d}"

    def format(self) -> str:
        return f"{self.clock} {self.temperature:.1f}"


def clock_string(t: time.struct_time) -> str:
    """``HH:MM:SS`` for a struct_time."""
    return f"{t.tm_hour:02d}:{t.tm_min:02d}:{t.tm_sec:02d}"


class ReportScheduler:
    """Decides once per tick whether a report is due and builds it.

    The baseline only moves when a report is produced.  While reporting
    is stopped the elapsed time keeps growing, so START reports on the
    very next tick if a full period has already passed.
    """

    def __init__(self, config: SessionConfig, source: ReadingSource,
                 clock: Callable[[], float] = time.monotonic,
                 localtime: Callable[[], time.struct_time] = time.localtime):
        self.config = config
        self.source = source
        self._clock = clock
        self._localtime = localtime
        self.last_report = clock()
        self.reports: int = 0

    def elapsed(self) -> float:
        return self._clock() - self.last_report

    def due(self) -> bool:
        return self.config.reporting and self.elapsed() >= self.config.period

    def tick(self) -> Report | None:
        """Return a Report if one is due, else None."""
        if not self.due():
            return None
        now = self._localtime()
        raw = self.source.sample()
        report = Report(now.tm_hour, now.tm_min, now.tm_sec,
                        convert(raw, self.config.scale))
        self.last_report = self._clock()
        self.reports += 1
        return report

    def timestamp(self) -> str:
        return clock_string(self._localtime())

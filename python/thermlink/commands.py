"""Inbound command interpreter."""

from __future__ import annotations

import enum
import logging
import re
from typing import Callable

from .config import SessionConfig
from .sensor import Scale

logger = logging.getLogger(__name__)

PERIOD_PREFIX = "PERIOD="
LOG_PREFIX = "LOG "

_LEADING_INT = re.compile(r"[ \t\n\v\f\r]*([+-]?\d+)")


class Command(enum.Enum):
    SCALE_F = "SCALE=F"
    SCALE_C = "SCALE=C"
    STOP = "STOP"
    START = "START"
    OFF = "OFF"
    PERIOD = "PERIOD"
    LOG = "LOG"
    UNKNOWN = "UNKNOWN"


_EXACT = {
    "SCALE=F": Command.SCALE_F,
    "SCALE=C": Command.SCALE_C,
    "STOP": Command.STOP,
    "START": Command.START,
    "OFF": Command.OFF,
}


def parse_int_prefix(text: str) -> int:
    """Integer value of the leading digits of *text*, 0 if there are none.

    ``"12abc"`` gives 12, ``"abc"`` and ``""`` give 0, ``"-3"`` gives -3.
    """
    m = _LEADING_INT.match(text)
    return int(m.group(1)) if m else 0


class CommandInterpreter:
    """Applies one command line at a time to a SessionConfig.

    Every line is written to the log sink before it is interpreted,
    whether or not it is recognised.  Nothing here raises: unknown lines
    and malformed periods fall through to the defined defaults.
    """

    def __init__(self, config: SessionConfig, shutdown: Callable[[], None]):
        self.config = config
        self._shutdown = shutdown

    def execute(self, line: str) -> Command:
        if self.config.log is not None:
            self.config.log.write_line(line)

        cmd = self.classify(line)
        cfg = self.config

        if cmd is Command.SCALE_F:
            cfg.scale = Scale.FAHRENHEIT
        elif cmd is Command.SCALE_C:
            cfg.scale = Scale.CELSIUS
        elif cmd is Command.STOP:
            cfg.reporting = False
        elif cmd is Command.START:
            cfg.reporting = True
        elif cmd is Command.PERIOD:
            cfg.period = parse_int_prefix(line[len(PERIOD_PREFIX):])
            if cfg.period < 1:
                logger.warning("PERIOD set to %d by %r", cfg.period, line)
        elif cmd is Command.OFF:
            self._shutdown()

        logger.debug("command %r -> %s", line, cmd.name)
        return cmd

    @staticmethod
    def classify(line: str) -> Command:
        cmd = _EXACT.get(line)
        if cmd is not None:
            return cmd
        if line.startswith(PERIOD_PREFIX):
            return Command.PERIOD
        if line.startswith(LOG_PREFIX):
            return Command.LOG
        return Command.UNKNOWN

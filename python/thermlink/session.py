"""Session loop: ties scheduler, transport, lexer and interpreter together."""

from __future__ import annotations

import logging
import signal
import threading
import time
from typing import Callable

from .commands import CommandInterpreter
from .config import SessionConfig
from .errors import LogWriteError, TransportError
from .lexer import LineLexer
from .scheduler import ReportScheduler
from .sensor import ReadingSource
from .transport import Transport

logger = logging.getLogger(__name__)

READ_SIZE = 1023


class Session:
    """One run of the agent, from an open transport to shutdown.

    The session owns the transport and the log sink and closes both in
    shutdown(), which may be called from the OFF command, a signal
    handler or another thread.  Only the first call does anything.
    """

    def __init__(self, config: SessionConfig, transport: Transport,
                 source: ReadingSource, poll_interval: float = 0.05,
                 clock: Callable[[], float] = time.monotonic,
                 localtime: Callable[[], time.struct_time] = time.localtime):
        self.config = config
        self.transport = transport
        self.source = source
        self.poll_interval = poll_interval
        self.scheduler = ReportScheduler(config, source, clock, localtime)
        self.interpreter = CommandInterpreter(config, self.shutdown)
        self.lexer = LineLexer(max_line_size=READ_SIZE)
        self._shutdown_lock = threading.Lock()
        self._done = threading.Event()

    @property
    def closed(self) -> bool:
        return self._done.is_set()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def emit(self, line: str) -> None:
        """Write a line to the log sink, then send it on the transport."""
        if self.config.log is not None:
            self.config.log.write_line(line)
        self.transport.send(line)
        logger.info("%s", line)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def tick(self) -> None:
        report = self.scheduler.tick()
        if report is not None and not self.closed:
            self.emit(report.format())

        if not self.transport.poll_readable(self.poll_interval):
            return
        data = self.transport.read_available(READ_SIZE)
        if not data:
            return
        for line in self.lexer.feed(data):
            if self.closed:
                logger.debug("session closed, ignoring %r", line)
                break
            self.interpreter.execute(line)

    def run(self) -> None:
        """Loop until shutdown.

        TransportError and LogWriteError propagate after cleanup.
        """
        try:
            while not self.closed:
                self.tick()
        except (TransportError, LogWriteError):
            if self.closed:
                # shut down from a signal handler mid-send
                return
            self.close_resources()
            raise

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def shutdown(self) -> bool:
        """Emit the SHUTDOWN record and close everything, exactly once.

        Returns False if another caller already shut the session down.
        """
        if not self._shutdown_lock.acquire(blocking=False):
            return False
        if self.closed:
            return False

        line = f"{self.scheduler.timestamp()} SHUTDOWN"
        try:
            self.emit(line)
        except (TransportError, LogWriteError) as exc:
            logger.warning("could not record shutdown: %s", exc)
        self.close_resources()
        return True

    def close_resources(self) -> None:
        self._done.set()
        if self.config.log is not None:
            self.config.log.close()
        self.transport.close()
        close = getattr(self.source, "close", None)
        if close is not None:
            close()

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to shutdown().  Main thread only."""
        def _on_signal(signum, frame) -> None:
            logger.info("received %s", signal.Signals(signum).name)
            self.shutdown()

        signal.signal(signal.SIGINT, _on_signal)
        signal.signal(signal.SIGTERM, _on_signal)

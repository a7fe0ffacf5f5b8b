"""Startup options and the mutable per-session configuration."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ConfigurationError
from .sensor import Scale
from .storage import ReportLog

ID_LENGTH = 9


@dataclass
class AgentOptions:
    """Validated startup parameters, as collected by the command line."""

    period: int = 1
    scale: Scale = Scale.FAHRENHEIT
    log_path: str | None = None
    host: str | None = None
    port: int | None = None
    ident: str | None = None
    cafile: str | None = None
    verify: bool = True
    debug: bool = False

    def validate(self, network: bool = False) -> None:
        """Raise ConfigurationError for any unusable option."""
        if self.period < 1:
            raise ConfigurationError(
                f"period must be at least 1 second, got {self.period}")
        if not network:
            return
        if not self.host:
            raise ConfigurationError("missing or empty --host")
        if self.port is None or not 0 <= self.port <= 65535:
            raise ConfigurationError(f"invalid port number {self.port}")
        if self.ident is None or len(self.ident) != ID_LENGTH:
            raise ConfigurationError(
                f"--id must be exactly {ID_LENGTH} characters")


@dataclass
class SessionConfig:
    """Reporting state shared by the interpreter and the scheduler.

    Only the command interpreter writes to it.  ``period`` starts at 1 or
    more but a PERIOD= command may set any integer, zero included.
    """

    scale: Scale = Scale.FAHRENHEIT
    reporting: bool = True
    period: int = 1
    log: ReportLog | None = None

    @classmethod
    def from_options(cls, options: AgentOptions) -> "SessionConfig":
        log = ReportLog(options.log_path) if options.log_path else None
        return cls(scale=options.scale, reporting=True,
                   period=options.period, log=log)

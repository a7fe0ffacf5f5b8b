"""thermlink - Temperature telemetry agent with an inline command channel."""

from .errors import (
    ThermlinkError, ConfigurationError, TransportError, LogWriteError,
)
from .sensor import Scale, convert, FixedSource, SerialSource
from .lexer import LineLexer
from .config import AgentOptions, SessionConfig
from .commands import Command, CommandInterpreter
from .storage import ReportLog, LogReader, LogRecord, RecordKind, summarize
from .scheduler import Report, ReportScheduler
from .transport import Transport, StdioTransport, TCPTransport, TLSTransport
from .session import Session

__all__ = [
    "ThermlinkError", "ConfigurationError", "TransportError", "LogWriteError",
    "Scale", "convert", "FixedSource", "SerialSource",
    "LineLexer",
    "AgentOptions", "SessionConfig",
    "Command", "CommandInterpreter",
    "ReportLog", "LogReader", "LogRecord", "RecordKind", "summarize",
    "Report", "ReportScheduler",
    "Transport", "StdioTransport", "TCPTransport", "TLSTransport",
    "Session",
]

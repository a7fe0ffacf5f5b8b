"""Exception types raised by thermlink."""

from __future__ import annotations


class ThermlinkError(Exception):
    """Base class for all thermlink errors."""


class ConfigurationError(ThermlinkError):
    """Bad startup option, unopenable log file or unresolvable host."""


class TransportError(ThermlinkError, ConnectionError):
    """Connect, handshake, send or receive failure.  Fatal to the session."""


class LogWriteError(ThermlinkError):
    """The log sink could not be written.  Fatal to the session."""

"""Transport adapters for the report/command channel.

Each transport carries newline-delimited text both ways: reports go out
through send(), commands come in through read_available().  Reads never
block; poll_readable() is the only call that waits, and only for the
timeout it is given.
"""

from __future__ import annotations

import logging
import os
import select
import socket
import ssl
import sys
import time
from typing import BinaryIO, Protocol

from .errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Abstract transport interface."""

    def send(self, line: str) -> None: ...
    def poll_readable(self, timeout: float) -> bool: ...
    def read_available(self, max_bytes: int) -> bytes: ...
    def close(self) -> None: ...


class StdioTransport:
    """Commands from standard input, reports to standard output.

    End of file on the input only ends the command channel; the session
    keeps reporting and poll_readable() returns False from then on, after
    sleeping out its timeout like a select() that found nothing.
    """

    def __init__(self, stdin: BinaryIO | None = None,
                 stdout: BinaryIO | None = None):
        self._in = stdin if stdin is not None else sys.stdin.buffer
        self._out = stdout if stdout is not None else sys.stdout.buffer
        self._fd = self._in.fileno()
        self._eof = False
        self._closed = False

    @property
    def eof(self) -> bool:
        return self._eof

    def send(self, line: str) -> None:
        if self._closed:
            raise TransportError("stdout transport is closed")
        try:
            self._out.write(line.encode("ascii", "replace") + b"\n")
            self._out.flush()
        except (OSError, ValueError) as exc:
            raise TransportError(f"error writing to stdout: {exc}") from exc

    def poll_readable(self, timeout: float) -> bool:
        if self._closed:
            return False
        if self._eof:
            if timeout > 0:
                time.sleep(timeout)
            return False
        try:
            readable, _, _ = select.select([self._fd], [], [], timeout)
        except (OSError, ValueError) as exc:
            raise TransportError(f"error polling stdin: {exc}") from exc
        return bool(readable)

    def read_available(self, max_bytes: int) -> bytes:
        if self._eof or self._closed:
            return b""
        try:
            data = os.read(self._fd, max_bytes)
        except BlockingIOError:
            return b""
        except OSError as exc:
            raise TransportError(f"error reading stdin: {exc}") from exc
        if not data:
            logger.info("stdin closed, no further commands will be read")
            self._eof = True
        return data

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._out.flush()
        except (OSError, ValueError):
            pass


class TCPTransport:
    """TCP stream transport (client mode).

    After connecting, the identification line ``ID=<id>`` is sent once
    before any report.
    """

    def __init__(self, host: str, port: int, ident: str | None = None,
                 timeout: float = 5.0):
        self.host = host
        self.port = port
        self._timeout = timeout
        self._closed = False
        self._sock = self._connect()
        if ident is not None:
            try:
                self.send(f"ID={ident}")
            except TransportError:
                self.close()
                raise

    def _open_socket(self) -> socket.socket:
        try:
            infos = socket.getaddrinfo(self.host, self.port,
                                       socket.AF_UNSPEC, socket.SOCK_STREAM)
        except socket.gaierror as exc:
            raise ConfigurationError(
                f"cannot resolve host {self.host!r}: {exc}") from exc
        if not infos:
            raise ConfigurationError(f"cannot resolve host {self.host!r}")
        try:
            sock = socket.create_connection((self.host, self.port),
                                            timeout=self._timeout)
        except OSError as exc:
            raise TransportError(
                f"cannot connect to {self.host}:{self.port}: {exc}") from exc
        logger.debug("connected to %s:%d", self.host, self.port)
        return sock

    def _connect(self) -> socket.socket:
        return self._open_socket()

    def send(self, line: str) -> None:
        if self._closed:
            raise TransportError("connection is closed")
        try:
            self._sock.sendall(line.encode("ascii", "replace") + b"\n")
        except OSError as exc:
            raise TransportError(f"error sending to server: {exc}") from exc

    def _pending(self) -> int:
        return 0

    def poll_readable(self, timeout: float) -> bool:
        if self._closed:
            return False
        if self._pending():
            return True
        try:
            readable, _, _ = select.select([self._sock], [], [], timeout)
        except (OSError, ValueError) as exc:
            raise TransportError(f"error polling socket: {exc}") from exc
        return bool(readable)

    def read_available(self, max_bytes: int) -> bytes:
        if self._closed:
            return b""
        self._sock.setblocking(False)
        try:
            data = self._sock.recv(max_bytes)
        except (BlockingIOError, ssl.SSLWantReadError, ssl.SSLWantWriteError):
            return b""
        except OSError as exc:
            raise TransportError(f"error reading from server: {exc}") from exc
        finally:
            if not self._closed:
                self._sock.settimeout(self._timeout)
        if not data:
            raise TransportError(
                f"connection to {self.host}:{self.port} closed by peer")
        return data

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._sock.close()
        except OSError:
            pass


class TLSTransport(TCPTransport):
    """TCP stream wrapped in a TLS client session.

    close() sends close_notify and waits at most ``close_timeout`` for
    the peer to answer; the default of 0 does not wait at all.
    """

    def __init__(self, host: str, port: int, ident: str | None = None,
                 timeout: float = 5.0, cafile: str | None = None,
                 verify: bool = True,
                 context: ssl.SSLContext | None = None,
                 close_timeout: float = 0.0):
        self.close_timeout = close_timeout
        if context is None:
            context = ssl.create_default_context(cafile=cafile)
            if not verify:
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
        self._context = context
        super().__init__(host, port, ident=ident, timeout=timeout)

    def _connect(self) -> socket.socket:
        raw = self._open_socket()
        try:
            sock = self._context.wrap_socket(raw, server_hostname=self.host)
        except OSError as exc:
            raw.close()
            raise TransportError(
                f"TLS handshake with {self.host}:{self.port} failed: {exc}"
            ) from exc
        logger.debug("TLS session established (%s)", sock.version())
        return sock

    def _pending(self) -> int:
        # Decrypted bytes already buffered by the SSL layer are invisible
        # to select().
        return self._sock.pending()

    def close(self) -> None:
        if self._closed:
            return
        try:
            self._sock.settimeout(self.close_timeout)
            self._sock.unwrap()
        except (OSError, ValueError):
            pass
        super().close()

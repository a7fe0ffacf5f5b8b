"""Test stdio and network transports against pipes and a loopback server.

Run from the repo root:
    python3 tests/test_transport.py
"""

import sys
import os
import socket
import ssl
import threading
import time
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "python"))

from thermlink.errors import ConfigurationError, TransportError
from thermlink.transport import StdioTransport, TCPTransport, TLSTransport

DATA_DIR = os.path.join(os.path.dirname(__file__), "data")
CERT_FILE = os.path.join(DATA_DIR, "tls_cert.pem")
KEY_FILE = os.path.join(DATA_DIR, "tls_key.pem")


def recv_line(sock):
    buf = bytearray()
    while not buf.endswith(b"\n"):
        chunk = sock.recv(1)
        if not chunk:
            raise ConnectionError("connection closed before newline")
        buf.extend(chunk)
    return bytes(buf)


def wait_readable(transport, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if transport.poll_readable(0.05):
            return True
    return False


class LoopbackServer:
    """Accepts one connection on 127.0.0.1 in a background thread."""

    def __init__(self, tls=False):
        self._context = None
        if tls:
            self._context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            self._context.load_cert_chain(CERT_FILE, KEY_FILE)
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.port = self.sock.getsockname()[1]
        self.conn = None
        self._accepted = threading.Event()
        self._thread = threading.Thread(target=self._accept, daemon=True)
        self._thread.start()

    def _accept(self):
        conn, _ = self.sock.accept()
        conn.settimeout(5)
        if self._context is not None:
            conn = self._context.wrap_socket(conn, server_side=True)
        self.conn = conn
        self._accepted.set()

    def wait(self):
        assert self._accepted.wait(5), "no connection accepted"
        return self.conn

    def close(self):
        if self.conn is not None:
            self.conn.close()
        self.sock.close()


def test_stdio_send_and_read():
    print("test_stdio_send_and_read...", end="")

    in_r, in_w = os.pipe()
    out_r, out_w = os.pipe()
    with os.fdopen(in_r, "rb", buffering=0) as stdin, \
            os.fdopen(out_w, "wb") as stdout:
        t = StdioTransport(stdin=stdin, stdout=stdout)
        assert t.poll_readable(0) is False

        os.write(in_w, b"SCALE=C\nSTO")
        assert t.poll_readable(1.0) is True
        assert t.read_available(1023) == b"SCALE=C\nSTO"

        t.send("12:00:00 20.5")
        assert os.read(out_r, 100) == b"12:00:00 20.5\n"

        os.close(in_w)
        assert t.poll_readable(1.0) is True
        assert t.read_available(1023) == b""
        assert t.eof
        assert t.poll_readable(0) is False

        t.close()
        t.close()
        try:
            t.send("late")
        except TransportError:
            pass
        else:
            raise AssertionError("expected TransportError")
    os.close(out_r)

    print(" OK")


def test_tcp_sends_id_then_lines():
    print("test_tcp_sends_id_then_lines...", end="")

    server = LoopbackServer()
    try:
        t = TCPTransport("127.0.0.1", server.port, ident="123456789")
        conn = server.wait()
        assert recv_line(conn) == b"ID=123456789\n"

        t.send("12:00:00 70.0")
        assert recv_line(conn) == b"12:00:00 70.0\n"

        assert t.poll_readable(0) is False
        assert t.read_available(1023) == b""

        conn.sendall(b"PERIOD=2\nOFF\n")
        assert wait_readable(t)
        data = b""
        while not data.endswith(b"OFF\n"):
            data += t.read_available(1023)
        assert data == b"PERIOD=2\nOFF\n"

        t.close()
        t.close()
        assert t.poll_readable(0) is False
    finally:
        server.close()

    print(" OK")


def test_tcp_peer_close_is_error():
    print("test_tcp_peer_close_is_error...", end="")

    server = LoopbackServer()
    try:
        t = TCPTransport("127.0.0.1", server.port)
        conn = server.wait()
        conn.close()
        server.conn = None
        assert wait_readable(t)
        try:
            t.read_available(1023)
        except TransportError:
            pass
        else:
            raise AssertionError("expected TransportError")
        t.close()
    finally:
        server.close()

    print(" OK")


def test_tcp_connect_refused():
    print("test_tcp_connect_refused...", end="")

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    # nothing listening on port now
    try:
        TCPTransport("127.0.0.1", port, timeout=1.0)
    except TransportError:
        pass
    else:
        raise AssertionError("expected TransportError")

    print(" OK")


def test_unresolvable_host():
    print("test_unresolvable_host...", end="")

    try:
        TCPTransport("host.invalid", 4040, timeout=1.0)
    except ConfigurationError:
        pass
    else:
        raise AssertionError("expected ConfigurationError")

    print(" OK")


def test_tls_handshake_failure():
    """A plain-text server makes the TLS handshake fail."""
    print("test_tls_handshake_failure...", end="")

    server = LoopbackServer()

    def respond():
        conn = server.wait()
        try:
            conn.recv(4096)
            conn.sendall(b"this is not TLS\n")
        except OSError:
            pass
        conn.close()
        server.conn = None

    responder = threading.Thread(target=respond, daemon=True)
    responder.start()
    try:
        try:
            TLSTransport("127.0.0.1", server.port, ident="123456789",
                         timeout=2.0, verify=False)
        except TransportError:
            pass
        else:
            raise AssertionError("expected TransportError")
    finally:
        responder.join(5)
        server.close()

    print(" OK")


def test_stdio_eof_poll_waits():
    """After end of input, polling still takes its timeout instead of spinning."""
    print("test_stdio_eof_poll_waits...", end="")

    in_r, in_w = os.pipe()
    out_r, out_w = os.pipe()
    os.close(in_w)
    with os.fdopen(in_r, "rb", buffering=0) as stdin, \
            os.fdopen(out_w, "wb") as stdout:
        t = StdioTransport(stdin=stdin, stdout=stdout)
        assert t.poll_readable(1.0) is True
        assert t.read_available(1023) == b""
        assert t.eof

        start = time.monotonic()
        assert t.poll_readable(0.1) is False
        assert time.monotonic() - start >= 0.09

        start = time.monotonic()
        assert t.poll_readable(0) is False
        assert time.monotonic() - start < 0.05
        t.close()
    os.close(out_r)

    print(" OK")


def test_tls_round_trip():
    """ID line, a report and commands over a real TLS session."""
    print("test_tls_round_trip...", end="")

    server = LoopbackServer(tls=True)
    try:
        t = TLSTransport("127.0.0.1", server.port, ident="123456789",
                         verify=False)
        conn = server.wait()
        assert recv_line(conn) == b"ID=123456789\n"

        t.send("12:00:00 70.0")
        assert recv_line(conn) == b"12:00:00 70.0\n"

        # only session tickets, if anything, are waiting: no application data
        assert t.read_available(1023) == b""

        conn.sendall(b"SCALE=C\nOFF\n")
        assert wait_readable(t)
        data = b""
        while len(data) < 4:
            data += t.read_available(4 - len(data))
        assert data == b"SCAL"
        # the rest of the record is decrypted but invisible to select()
        assert t.poll_readable(0) is True
        while not data.endswith(b"OFF\n"):
            data += t.read_available(1023)
        assert data == b"SCALE=C\nOFF\n"

        # the server never answers close_notify; close must not wait for it
        start = time.monotonic()
        t.close()
        assert time.monotonic() - start < 1.0
        t.close()
        assert t.poll_readable(0) is False
    finally:
        server.close()

    print(" OK")


class _RejectingTransport(TCPTransport):
    """Fails the identification send, recording the socket it closes."""

    closed_sockets = []

    def send(self, line):
        raise TransportError("send refused")

    def close(self):
        self.closed_sockets.append(self._sock)
        super().close()


def test_id_send_failure_closes_socket():
    print("test_id_send_failure_closes_socket...", end="")

    server = LoopbackServer()
    try:
        try:
            _RejectingTransport("127.0.0.1", server.port, ident="123456789")
        except TransportError:
            pass
        else:
            raise AssertionError("expected TransportError")
        assert len(_RejectingTransport.closed_sockets) == 1
        assert _RejectingTransport.closed_sockets[0].fileno() == -1
    finally:
        server.close()

    print(" OK")


if __name__ == "__main__":
    print("thermlink transport tests")
    print("=========================\n")

    test_stdio_send_and_read()
    test_tcp_sends_id_then_lines()
    test_tcp_peer_close_is_error()
    test_tcp_connect_refused()
    test_unresolvable_host()
    test_tls_handshake_failure()
    test_stdio_eof_poll_waits()
    test_tls_round_trip()
    test_id_send_failure_closes_socket()

    print("\nAll tests passed.")

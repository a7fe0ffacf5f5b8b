#!/usr/bin/env python3
"""Accept one thermlink agent over TCP, print its reports, forward commands.

Start the server:
    python examples/command_server.py 4040

Then in another terminal:
    thermlink tcp --host localhost --id 123456789 --log /tmp/agent.log 4040

Lines typed into the server (SCALE=C, PERIOD=3, STOP, START, OFF, ...)
are sent to the agent as commands.
"""

import select
import socket
import sys

port = int(sys.argv[1]) if len(sys.argv) > 1 else 4040

with socket.create_server(("localhost", port)) as server:
    print(f"listening on localhost:{port}")
    conn, addr = server.accept()
    print(f"agent connected from {addr[0]}:{addr[1]}")

    with conn:
        buf = bytearray()
        try:
            while True:
                readable, _, _ = select.select([conn, sys.stdin], [], [])
                if sys.stdin in readable:
                    line = sys.stdin.readline()
                    if not line:
                        break
                    conn.sendall(line.encode("ascii"))
                if conn in readable:
                    data = conn.recv(4096)
                    if not data:
                        print("agent disconnected")
                        break
                    buf.extend(data)
                    while b"\n" in buf:
                        line, _, rest = bytes(buf).partition(b"\n")
                        buf[:] = rest
                        print(line.decode("ascii", "replace"))
        except KeyboardInterrupt:
            pass

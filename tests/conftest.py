import os
import sys
import time
import select
import socket
import struct
import threading

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


def pack(pkt_id, pkt_type, body=b''):
    return struct.pack('<3i', len(body) + 10, pkt_id, pkt_type) + body + b'\x00\x00'


def recv_exactly(conn, size):
    data = b''
    while len(data) < size:
        chunk = conn.recv(size - len(data))
        if not chunk:
            return None
        data += chunk
    return data


class FakeRconServer:
    """Minimal RCON server running in a background thread

    Replies to logins like a vanilla server and to commands with
    ``respond(body)``. Setting ``command_reply`` to a callable returning raw
    bytes overrides the whole reply; returning None closes the connection.
    """

    def __init__(self, password='secret'):
        self.password = password
        self.auth_reply = None
        self.command_reply = None
        self.delay = 0
        self.close_after_command = False
        self.received = []
        self.interleaved = False
        self.connections = 0

        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(('127.0.0.1', 0))
        self.sock.listen(5)
        self.port = self.sock.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def respond(self, body):
        if body == b'/list':
            return b'There are 2 of a max of 20 players online: alice, bob'
        return b'ran: ' + body

    def _serve(self):
        while True:
            try:
                conn, _ = self.sock.accept()
            except OSError:
                return
            self.connections += 1
            threading.Thread(
                target=self._handle, args=(conn,), daemon=True).start()

    def _handle(self, conn):
        with conn:
            while True:
                header = recv_exactly(conn, 12)
                if header is None:
                    return
                length, pkt_id, pkt_type = struct.unpack('<3i', header)
                rest = recv_exactly(conn, length - 8)
                if rest is None:
                    return
                body = rest[:-2]
                self.received.append((pkt_id, pkt_type, body))

                if pkt_type == 3:
                    if self.auth_reply is not None:
                        reply = self.auth_reply(pkt_id, body)
                    elif body == self.password.encode():
                        reply = pack(pkt_id, 2)
                    else:
                        reply = pack(-1, 2)
                else:
                    if self.delay:
                        time.sleep(self.delay)
                        # Another request arriving before we answered
                        # means the client didn't wait for the response
                        readable, _, _ = select.select([conn], [], [], 0)
                        if readable:
                            self.interleaved = True
                    if self.command_reply is not None:
                        reply = self.command_reply(pkt_id, body)
                    else:
                        reply = pack(pkt_id, 0, self.respond(body))

                if reply is None:
                    return
                try:
                    conn.sendall(reply)
                except OSError:
                    return
                if pkt_type != 3 and self.close_after_command:
                    return

    def close(self):
        self.sock.close()


@pytest.fixture
def server():
    srv = FakeRconServer()
    yield srv
    srv.close()


@pytest.fixture
def closed_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()
    return port

import socket
import threading

import pytest

from client.config import PeerSettings
from client.p2p_client import PeerAgent
from rendezvous.config import ServerSettings
from rendezvous.server import RendezvousServer


class CountingConnect:
    """Connect function that records every (host, port) it is asked for."""

    def __init__(self, timeout=5.0):
        self.timeout = timeout
        self.calls = []

    def __call__(self, host, port):
        self.calls.append((host, port))
        return socket.create_connection((host, port), timeout=self.timeout)

    def count(self, port):
        return sum(1 for _, p in self.calls if p == port)


class OneShotServer:
    """Accepts a single connection, reads one frame and answers with ``reply``."""

    def __init__(self, reply):
        self.reply = reply
        self.received = None
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.port = self.sock.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        conn, _ = self.sock.accept()
        with conn:
            self.received = conn.recv(128)
            if self.reply:
                conn.sendall(self.reply)

    def close(self):
        self._thread.join(timeout=2)
        self.sock.close()


def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def recv_or_reset(sock):
    try:
        return sock.recv(128)
    except ConnectionResetError:
        return b""


@pytest.fixture
def rendezvous_server():
    server = RendezvousServer(ServerSettings(host="127.0.0.1", port=0))
    server.start()
    yield server
    server.stop()


@pytest.fixture
def make_settings(rendezvous_server):
    def _make(**overrides):
        params = dict(
            rendezvous_host="127.0.0.1",
            rendezvous_port=rendezvous_server.address[1],
            connect_timeout=5.0,
        )
        params.update(overrides)
        return PeerSettings(**params)

    return _make


@pytest.fixture
def make_agent(make_settings):
    agents = []

    def _make(connect=None, on_message=None, start=True, **overrides):
        agent = PeerAgent(make_settings(**overrides), connect=connect, on_message=on_message)
        agents.append(agent)
        if start:
            agent.start()
        return agent

    yield _make
    for agent in agents:
        agent.stop()

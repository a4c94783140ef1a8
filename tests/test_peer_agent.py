"""
Tests for the peer agent: registration, discovery, cache and direct messaging.
"""

import logging
import socket
import threading

import pytest

from client.config import PeerSettings
from client.p2p_client import PeerAgent
from client.rendezvous_connection import RendezvousClient
from client.state import AgentState, ClientRuntimeState
from wire import codec
from wire.errors import (
    AddrNotSetError,
    ConfigError,
    DeliveryFailedError,
    IdNotSetError,
    ListenerNotReadyError,
    NoPortAvailableError,
    PeerLookupError,
    PeerNotFoundError,
    RegistrationFailedError,
    TransportError,
)
from wire.models import Address

from conftest import CountingConnect, OneShotServer, free_port, recv_or_reset


class TestLifecycle:
    def test_start_registers_default_id(self, make_agent, rendezvous_server):
        agent = make_agent()
        assert agent.status is AgentState.REGISTERED
        assert agent.peer_id == f"client:{agent.own_addr.port}"
        assert rendezvous_server.registry.resolve(agent.peer_id) == agent.own_addr

    def test_start_with_explicit_id(self, make_agent, rendezvous_server):
        agent = make_agent(peer_id="alice")
        assert agent.peer_id == "alice"
        assert rendezvous_server.registry.resolve("alice") == agent.own_addr

    def test_listener_port_in_scan_range(self, make_agent):
        agent = make_agent()
        assert 8000 <= agent.own_addr.port <= 8999
        assert agent.own_addr.host == b"127.0.0.1"

    def test_own_address_is_set_once(self, make_agent):
        agent = make_agent(start=False)
        first = agent.setup_listener()
        assert agent.setup_listener() == first
        assert agent.status is AgentState.LISTENING

    def test_register_without_address(self, make_agent):
        agent = make_agent(start=False)
        with pytest.raises(AddrNotSetError):
            agent.register_self("x")
        assert agent.status is AgentState.UNREGISTERED

    def test_default_id_requires_address(self, make_agent):
        agent = make_agent(start=False)
        with pytest.raises(ConfigError):
            agent.set_default_id()

    def test_register_before_listener_is_ready(self, make_agent):
        agent = make_agent(start=False)
        agent.setup_listener()
        with pytest.raises(ListenerNotReadyError):
            agent.register_self("early")

    def test_no_port_available(self, make_agent):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen(1)
            port = busy.getsockname()[1]
            agent = make_agent(start=False, port_range_start=port, port_range_end=port)
            with pytest.raises(NoPortAvailableError):
                agent.setup_listener()
        assert agent.own_addr is None


class TestDiscovery:
    def test_discover_registered_peer(self, make_agent):
        bob = make_agent(peer_id="bob")
        alice = make_agent(peer_id="alice")
        assert alice.discover("bob") == bob.own_addr
        assert alice.cache.lookup("bob") == bob.own_addr

    def test_second_discover_uses_cache(self, make_agent, rendezvous_server):
        make_agent(peer_id="bob")
        connect = CountingConnect()
        alice = make_agent(peer_id="alice", connect=connect)
        server_port = rendezvous_server.address[1]
        after_register = connect.count(server_port)

        first = alice.discover("bob")
        assert connect.count(server_port) == after_register + 1

        second = alice.discover("bob")
        assert second == first
        assert connect.count(server_port) == after_register + 1

    def test_unknown_peer(self, make_agent):
        alice = make_agent(peer_id="alice")
        with pytest.raises(PeerNotFoundError) as excinfo:
            alice.discover("ghost")
        assert isinstance(excinfo.value, PeerLookupError)
        assert isinstance(excinfo.value, LookupError)
        assert "ghost" not in alice.cache
        assert len(alice.cache) == 0

    def test_rendezvous_unreachable(self, make_settings):
        agent = PeerAgent(make_settings(rendezvous_port=free_port()))
        agent.setup_listener()
        agent.start_listener()
        try:
            with pytest.raises(TransportError):
                agent.discover("bob")
            with pytest.raises(RegistrationFailedError) as excinfo:
                agent.register_self("me")
            assert isinstance(excinfo.value, TransportError)
        finally:
            agent.stop()

    def test_registration_rejected(self, make_settings):
        fake = OneShotServer(reply=b"\x07")
        agent = PeerAgent(make_settings(rendezvous_port=fake.port))
        agent.setup_listener()
        agent.start_listener()
        try:
            with pytest.raises(RegistrationFailedError):
                agent.register_self("me")
            assert fake.received[0] == 1
            assert agent.status is AgentState.LISTENING
        finally:
            agent.stop()
            fake.close()

    def test_registration_without_reply(self, make_settings):
        fake = OneShotServer(reply=b"")
        agent = PeerAgent(make_settings(rendezvous_port=fake.port))
        agent.setup_listener()
        agent.start_listener()
        try:
            with pytest.raises(RegistrationFailedError):
                agent.register_self("me")
        finally:
            agent.stop()
            fake.close()

    def test_registration_oversized_reply(self, make_settings):
        fake = OneShotServer(reply=b"\x01" + b"x" * 200)
        agent = PeerAgent(make_settings(rendezvous_port=fake.port))
        agent.setup_listener()
        agent.start_listener()
        try:
            with pytest.raises(RegistrationFailedError):
                agent.register_self("me")
            assert agent.status is AgentState.LISTENING
        finally:
            agent.stop()
            fake.close()

    def test_register_requires_id(self, make_settings):
        connect = CountingConnect()
        client = RendezvousClient(make_settings(), connect)
        addr = Address.from_host("127.0.0.1", 8000)
        with pytest.raises(IdNotSetError):
            client.register(None, addr)
        with pytest.raises(IdNotSetError):
            client.register("", addr)
        assert connect.count(client.settings.rendezvous_port) == 0


class TestMessaging:
    def test_send_message_to_peer(self, make_agent):
        received = []
        got_it = threading.Event()

        def on_message(peer, body):
            received.append(body)
            got_it.set()

        bob = make_agent(peer_id="bob", on_message=on_message)
        alice = make_agent(peer_id="alice")

        alice.send_message("bob", "hello")

        assert alice.status is AgentState.ACTIVE
        assert [r.body for r in bob.state.inbox()] == ["hello"]
        assert got_it.wait(2)
        assert received == ["hello"]
        assert alice.state.outbound_history[-1].delivered

    def test_listener_replies_with_single_byte_ack(self, make_agent):
        bob = make_agent(peer_id="bob")
        with socket.create_connection(bob.own_addr.as_tuple(), timeout=5) as sock:
            sock.sendall(codec.encode_message("hello"))
            assert sock.recv(128) == b"\x04"

    def test_listener_survives_malformed_frame(self, make_agent):
        bob = make_agent(peer_id="bob")
        alice = make_agent(peer_id="alice")

        with socket.create_connection(bob.own_addr.as_tuple(), timeout=5) as sock:
            sock.sendall(bytes([99]))
            assert recv_or_reset(sock) == b""

        with socket.create_connection(bob.own_addr.as_tuple(), timeout=5) as sock:
            sock.sendall(b"\x02\xff\xfe")
            assert recv_or_reset(sock) == b""

        alice.send_message("bob", "still there?")
        assert bob.state.inbox()[-1].body == "still there?"

    def test_send_to_unknown_peer(self, make_agent):
        alice = make_agent(peer_id="alice")
        with pytest.raises(PeerNotFoundError):
            alice.send_message("ghost", "hi")
        assert alice.state.outbound_history[-1].error

    def test_wrong_ack_from_peer(self, make_agent):
        fake_peer = OneShotServer(reply=b"\x01")
        alice = make_agent(peer_id="alice")
        alice.cache.insert("fake", Address.from_host("127.0.0.1", fake_peer.port))
        try:
            with pytest.raises(DeliveryFailedError):
                alice.send_message("fake", "hi")
            assert fake_peer.received == b"\x02hi"
        finally:
            fake_peer.close()

    def test_peer_closes_without_ack(self, make_agent):
        fake_peer = OneShotServer(reply=b"")
        alice = make_agent(peer_id="alice")
        alice.cache.insert("fake", Address.from_host("127.0.0.1", fake_peer.port))
        try:
            with pytest.raises(DeliveryFailedError):
                alice.send_message("fake", "hi")
        finally:
            fake_peer.close()

    def test_peer_gone(self, make_agent):
        alice = make_agent(peer_id="alice")
        alice.cache.insert("gone", Address.from_host("127.0.0.1", free_port()))
        with pytest.raises(TransportError):
            alice.send_message("gone", "hi")

    def test_oversized_ack_from_peer(self, make_agent):
        fake_peer = OneShotServer(reply=b"\x04" + b"x" * 200)
        alice = make_agent(peer_id="alice")
        alice.cache.insert("fake", Address.from_host("127.0.0.1", fake_peer.port))
        try:
            with pytest.raises(DeliveryFailedError):
                alice.send_message("fake", "hi")
            assert not alice.state.outbound_history[-1].delivered
        finally:
            fake_peer.close()

    def test_body_too_large_for_frame(self, make_agent):
        bob = make_agent(peer_id="bob")
        connect = CountingConnect()
        alice = make_agent(peer_id="alice", connect=connect)
        with pytest.raises(DeliveryFailedError):
            alice.send_message("bob", "a" * 300)
        assert "bob" not in alice.cache
        assert connect.count(bob.own_addr.port) == 0
        assert bob.state.inbox() == []
        assert alice.state.outbound_history[-1].error

    def test_body_at_frame_limit(self, make_agent):
        bob = make_agent(peer_id="bob")
        alice = make_agent(peer_id="alice")
        alice.send_message("bob", "a" * (codec.MAX_FRAME_BYTES - 1))
        assert len(bob.state.inbox()[-1].body) == codec.MAX_FRAME_BYTES - 1

    def test_listener_survives_unexpected_error(self, make_agent, caplog, monkeypatch):
        bob = make_agent(peer_id="bob")
        alice = make_agent(peer_id="alice")
        original = ClientRuntimeState.record_inbound
        calls = []

        def flaky(state, record):
            calls.append(record)
            if len(calls) == 1:
                raise RuntimeError("boom")
            original(state, record)

        monkeypatch.setattr(ClientRuntimeState, "record_inbound", flaky)
        with caplog.at_level(logging.ERROR, logger="client.peer_server"):
            with socket.create_connection(bob.own_addr.as_tuple(), timeout=5) as sock:
                sock.sendall(codec.encode_message("first"))
                assert recv_or_reset(sock) == b""
        assert any("Erro inesperado" in r.getMessage() for r in caplog.records)

        alice.send_message("bob", "second")
        assert [r.body for r in bob.state.inbox()] == ["second"]


class TestSettingsIntegration:
    def test_scan_skips_busy_port(self, make_agent):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen(1)
            port = busy.getsockname()[1]
            if port == 65535:
                pytest.skip("no room above the ephemeral port")
            agent = make_agent(start=False, port_range_start=port, port_range_end=port + 1)
            try:
                addr = agent.setup_listener()
            except NoPortAvailableError:
                pytest.skip("neighbouring port also busy")
            assert addr.port == port + 1

    def test_default_settings(self):
        settings = PeerSettings()
        assert (settings.port_range_start, settings.port_range_end) == (8000, 8999)
        assert (settings.rendezvous_host, settings.rendezvous_port) == ("127.0.0.1", 8080)

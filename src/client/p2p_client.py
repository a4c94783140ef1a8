"""High-level orchestrator for the peer agent."""
from __future__ import annotations

import logging
from contextlib import closing
from datetime import datetime, timezone
from typing import Callable, Optional

from wire import codec
from wire.codec import ClientMessageType
from wire.errors import (
    AddrNotSetError,
    DeliveryFailedError,
    ListenerNotReadyError,
    P2PError,
    ProtocolError,
)
from wire.models import Address
from wire.transport import recv_frame, send_frame

from .address_cache import AddressCache
from .config import PeerSettings, validate_peer_id
from .peer_server import PeerServer
from .rendezvous_connection import ConnectFn, RendezvousClient, open_connection
from .state import AgentState, ClientRuntimeState, MessageRecord


logger = logging.getLogger(__name__)


class PeerAgent:
    """Coordena listener, registro no rendezvous, descoberta e envio direto.

    Ciclo de vida: ``UNREGISTERED -> LISTENING -> REGISTERED -> ACTIVE``.
    O rendezvous só é usado para trocar endereços; mensagens vão direto ao
    listener do peer destino.
    """

    def __init__(
        self,
        settings: Optional[PeerSettings] = None,
        connect: Optional[ConnectFn] = None,
        on_message: Optional[Callable[[str, str], None]] = None,
    ) -> None:
        self.settings = settings or PeerSettings()
        self.state = ClientRuntimeState()
        self.cache = AddressCache()
        self.rendezvous = RendezvousClient(self.settings, connect)
        self.connect = self.rendezvous.connect
        self.peer_server = PeerServer(self.settings, self.state, on_message)

    @property
    def own_addr(self) -> Optional[Address]:
        return self.state.own_addr

    @property
    def peer_id(self) -> Optional[str]:
        return self.state.peer_id

    @property
    def status(self) -> AgentState:
        return self.state.status

    def start(self, ready_timeout: float = 5.0) -> None:
        """Listener + thread de escuta + REGISTER, nessa ordem."""

        self.setup_listener()
        self.start_listener(ready_timeout)
        self.register_self(self.settings.peer_id)

    def stop(self) -> None:
        logger.info("Encerrando agente %s", self.peer_id or "(sem id)")
        self.peer_server.stop()

    def setup_listener(self) -> Address:
        if self.state.own_addr is not None:
            logger.debug("Listener já configurado em %s", self.state.own_addr)
            return self.state.own_addr

        addr = self.peer_server.bind_first_available()
        self.state.own_addr = addr
        self.state.status = AgentState.LISTENING
        return addr

    def start_listener(self, ready_timeout: Optional[float] = 5.0) -> None:
        if self.state.own_addr is None:
            raise AddrNotSetError()
        self.peer_server.start()
        if not self.peer_server.wait_ready(ready_timeout):
            raise ListenerNotReadyError()

    def set_id(self, peer_id: str) -> None:
        self.state.peer_id = validate_peer_id(peer_id)
        logger.info("Id do cliente: %s", self.state.peer_id)

    def set_default_id(self) -> str:
        if self.state.own_addr is None:
            raise AddrNotSetError()
        self.set_id(self.settings.default_peer_id(self.state.own_addr.port))
        return self.state.peer_id

    def register_self(self, peer_id: Optional[str] = None) -> None:
        """Anuncia ``peer_id -> endereço próprio`` ao rendezvous."""

        if self.state.own_addr is None:
            raise AddrNotSetError()
        self._require_listener()

        if peer_id is not None:
            self.set_id(peer_id)
        elif self.state.peer_id is None:
            self.set_default_id()

        self.rendezvous.register(self.state.peer_id, self.state.own_addr)
        self.state.status = AgentState.REGISTERED

    def discover(self, target: str) -> Address:
        """Resolve ``target`` pelo cache ou, em caso de miss, pelo rendezvous."""

        cached = self.cache.lookup(target)
        if cached is not None:
            logger.info("  [ Endereço de %s obtido do cache ]", target)
            return cached

        self._require_listener()
        addr = self.rendezvous.get_client_addr(target)
        self.cache.insert(target, addr)
        return addr

    def send_message(self, target: str, body: str) -> None:
        """Entrega ``body`` diretamente ao listener de ``target`` e espera o Ack."""

        record = MessageRecord(peer=target, body=body, timestamp=datetime.now(timezone.utc))
        frame = codec.encode_message(body)
        try:
            if len(frame) > codec.MAX_FRAME_BYTES:
                raise DeliveryFailedError(
                    f"Mensagem ocupa {len(frame)} bytes; o limite do frame é {codec.MAX_FRAME_BYTES}"
                )
            addr = self.discover(target)
            host, port = addr.as_tuple()
            with closing(open_connection(self.connect, host, port)) as sock:
                send_frame(sock, frame)
                try:
                    response = recv_frame(sock, allow_empty=True)
                except ProtocolError as exc:
                    raise DeliveryFailedError(f"Resposta inválida de {target}: {exc}") from exc

            if not response:
                raise DeliveryFailedError(f"{target} fechou a conexão sem Ack")
            if codec.frame_tag(response) != ClientMessageType.ACK:
                raise DeliveryFailedError(f"Resposta inesperada de {target}: tag={response[0]}")
        except P2PError as exc:
            record.error = str(exc)
            self.state.record_outbound(record)
            logger.warning("Falha ao enviar mensagem para %s: %s", target, exc)
            raise

        record.delivered = True
        self.state.record_outbound(record)
        self.state.status = AgentState.ACTIVE
        logger.info("--> Mensagem entregue a %s (%s)", target, addr)

    def _require_listener(self) -> None:
        if not self.peer_server.ready.is_set():
            raise ListenerNotReadyError()

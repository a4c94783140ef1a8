"""Networking helpers for talking to the rendezvous server."""
from __future__ import annotations

import logging
import socket
from contextlib import closing
from typing import Callable, Optional

from wire import codec
from wire.codec import ServerMessageType
from wire.errors import (
    IdNotSetError,
    PeerNotFoundError,
    ProtocolError,
    RegistrationFailedError,
    RegistrationTransportError,
    TransportError,
    UnexpectedFrameError,
)
from wire.models import Address
from wire.transport import recv_frame, send_frame

from .config import PeerSettings


logger = logging.getLogger(__name__)

ConnectFn = Callable[[str, int], socket.socket]


def default_connect(timeout: Optional[float]) -> ConnectFn:
    def _connect(host: str, port: int) -> socket.socket:
        return socket.create_connection((host, port), timeout=timeout)

    return _connect


def open_connection(connect: ConnectFn, host: str, port: int) -> socket.socket:
    try:
        return connect(host, port)
    except OSError as exc:
        raise TransportError(f"Falha ao conectar em {host}:{port}: {exc}") from exc


class RendezvousClient:
    """Encapsula REGISTER (BroadcastId) e GET_ADDR (GetClientAddr).

    Cada chamada abre uma conexão nova, envia um frame e lê uma resposta.
    """

    def __init__(self, settings: PeerSettings, connect: Optional[ConnectFn] = None) -> None:
        self.settings = settings
        self.connect = connect or default_connect(settings.connect_timeout)

    def _exchange(self, frame: bytes) -> bytes:
        with closing(
            open_connection(self.connect, self.settings.rendezvous_host, self.settings.rendezvous_port)
        ) as sock:
            send_frame(sock, frame)
            return recv_frame(sock, allow_empty=True)

    def register(self, peer_id: Optional[str], own_addr: Address) -> None:
        if not peer_id:
            raise IdNotSetError()
        try:
            response = self._exchange(codec.encode_broadcast_id(peer_id, own_addr))
        except TransportError as exc:
            raise RegistrationTransportError(f"REGISTER interrompido: {exc}") from exc
        except ProtocolError as exc:
            raise RegistrationFailedError(f"Resposta inválida ao REGISTER: {exc}") from exc
        if not response:
            raise RegistrationFailedError("Rendezvous fechou a conexão sem Ack")
        if codec.frame_tag(response) != ServerMessageType.ACK:
            raise RegistrationFailedError(f"Resposta inesperada ao REGISTER: tag={response[0]}")
        logger.info("Registrado no rendezvous como %s em %s", peer_id, own_addr)

    def get_client_addr(self, target: str) -> Address:
        """Pergunta ao rendezvous o endereço de ``target``.

        Conexão fechada sem payload significa peer desconhecido.
        """
        logger.info("  [ Buscando endereço de %s no rendezvous ]", target)
        response = self._exchange(codec.encode_get_client_addr(target))
        if not response:
            raise PeerNotFoundError(target)
        if codec.frame_tag(response) != ServerMessageType.ACK:
            raise UnexpectedFrameError(response[0])

        addr = codec.decode_address(response)
        logger.info("  [ Endereço recebido: %s ]", addr)
        return addr

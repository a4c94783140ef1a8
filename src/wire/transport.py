"""Single-frame socket I/O used by both roles."""
from __future__ import annotations

import socket

from .codec import BUFFER_SIZE, MAX_FRAME_BYTES
from .errors import ProtocolError, TransportError


def recv_frame(sock: socket.socket, allow_empty: bool = False) -> bytes:
    """Lê um único frame (uma chamada ``recv`` de até 128 bytes).

    Leitura vazia só é aceita com ``allow_empty``: o rendezvous sinaliza peer
    desconhecido fechando a conexão sem payload.
    """

    try:
        data = sock.recv(BUFFER_SIZE)
    except OSError as exc:
        raise TransportError(f"Erro lendo do socket: {exc}") from exc

    if not data and not allow_empty:
        raise ProtocolError("Conexão fechada sem dados")
    if len(data) > MAX_FRAME_BYTES:
        raise ProtocolError(f"Frame excede {MAX_FRAME_BYTES} bytes")
    return data


def send_frame(sock: socket.socket, frame: bytes) -> None:
    try:
        sock.sendall(frame)
    except OSError as exc:
        raise TransportError(f"Erro enviando frame: {exc}") from exc

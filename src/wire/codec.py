"""Encoding and decoding of rendezvous and peer frames.

Frames carry no length prefix. The first byte is the tag; variable-length
fields end at a sentinel byte (``0x00`` or ``':'``) or at the end of the data
read, which stands in for the zero-filled tail of the 128-byte receive buffer.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from .errors import DecodeError, DecodeReason
from .models import Address


BUFFER_SIZE = 128
MAX_FRAME_BYTES = BUFFER_SIZE - 1

FIELD_END = 0x00
HOST_END = ord(":")
PORT_BYTES = 2


class ClientMessageType(enum.IntEnum):
    BROADCAST_ID = 1
    MESSAGE = 2
    GET_CLIENT_ADDR = 3
    ACK = 4


class ServerMessageType(enum.IntEnum):
    ACK = 1


@dataclass(frozen=True, slots=True)
class Registration:
    """Conteúdo de um frame BroadcastId."""

    peer_id: str
    address: Address


# --- encode -----------------------------------------------------------------


def _address_bytes(addr: Address) -> bytes:
    return addr.host + bytes([HOST_END]) + addr.port.to_bytes(PORT_BYTES, "big")


def encode_broadcast_id(peer_id: str, addr: Address) -> bytes:
    """``[1][id][0x00][host][':'][port BE]``."""

    return (
        bytes([ClientMessageType.BROADCAST_ID])
        + peer_id.encode("utf-8")
        + bytes([FIELD_END])
        + _address_bytes(addr)
    )


def encode_message(body: str) -> bytes:
    return bytes([ClientMessageType.MESSAGE]) + body.encode("utf-8")


def encode_get_client_addr(target_id: str) -> bytes:
    return bytes([ClientMessageType.GET_CLIENT_ADDR]) + target_id.encode("utf-8")


def encode_peer_ack() -> bytes:
    return bytes([ClientMessageType.ACK])


def encode_server_ack(addr: Optional[Address] = None) -> bytes:
    """Ack do servidor; com ``addr`` vira a resposta de um GetClientAddr."""

    frame = bytes([ServerMessageType.ACK])
    if addr is not None:
        frame += _address_bytes(addr)
    return frame


# --- decode -----------------------------------------------------------------


def frame_tag(data: bytes) -> Optional[int]:
    return data[0] if data else None


def read_field(data: bytes, offset: int, stop: int) -> bytes:
    """Lê a partir de ``offset`` até o byte ``stop`` ou o fim dos dados."""

    end = data.find(bytes([stop]), offset)
    if end == -1:
        end = len(data)
    return data[offset:end]


def _text(raw: bytes, field: str) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(DecodeReason.INVALID_UTF8, field) from exc


def _terminated(data: bytes, offset: int, stop: int, field: str) -> bytes:
    raw = read_field(data, offset, stop)
    if offset + len(raw) >= len(data):
        raise DecodeError(DecodeReason.TRUNCATED_FIELD, field)
    return raw


def decode_address(data: bytes, offset: int = 1) -> Address:
    """Decodifica ``[host][':'][port BE]`` a partir de ``offset``."""

    host = _terminated(data, offset, HOST_END, "host")
    _text(host, "host")
    port_at = offset + len(host) + 1
    port = data[port_at:port_at + PORT_BYTES]
    if len(port) < PORT_BYTES:
        raise DecodeError(DecodeReason.TRUNCATED_FIELD, "port")
    return Address(host, int.from_bytes(port, "big"))


def decode_broadcast_id(data: bytes) -> Registration:
    raw_id = _terminated(data, 1, FIELD_END, "id")
    peer_id = _text(raw_id, "id")
    return Registration(peer_id, decode_address(data, len(raw_id) + 2))


def decode_message(data: bytes) -> str:
    return _text(read_field(data, 1, FIELD_END), "body")


def decode_get_client_addr(data: bytes) -> str:
    return _text(read_field(data, 1, FIELD_END), "target")

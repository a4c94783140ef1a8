"""Value types carried by rendezvous frames."""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True, slots=True)
class Address:
    """Par ``(host, port)`` anunciado por um peer.

    O host é mantido como bytes crus, sem interpretação como IP estruturado;
    dois endereços são iguais quando o conteúdo literal coincide.
    """

    host: bytes
    port: int

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"porta fora do intervalo u16: {self.port}")

    @classmethod
    def from_host(cls, host: str, port: int) -> "Address":
        return cls(host.encode("utf-8"), port)

    @classmethod
    def from_sockname(cls, sockname: Tuple[str, int]) -> "Address":
        """Converte o retorno de ``getsockname()``; apenas IPv4 é suportado."""

        host, port = sockname[0], sockname[1]
        if ipaddress.ip_address(host).version != 4:
            raise ValueError(f"IPv6 não suportado: {host}")
        return cls.from_host(host, port)

    @property
    def host_str(self) -> str:
        return self.host.decode("utf-8", errors="replace")

    def as_tuple(self) -> Tuple[str, int]:
        """Formato aceito por ``socket.create_connection``."""

        return self.host_str, self.port

    def __str__(self) -> str:
        return f"{self.host_str}:{self.port}"

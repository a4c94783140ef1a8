"""Configuration helpers for the peer client.

Responsabilidades:
- Carregar ``config.json`` e aplicar defaults para desenvolvimento local.
- Permitir overrides vindos da CLI (identificador, nível de log).
- Validar portas, faixa de varredura do listener e timeout.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from wire.errors import ConfigValidationError


MIN_PORT = 1
MAX_PORT = 65535
MAX_ID_BYTES = 64
DEFAULT_PORT_RANGE = (8000, 8999)


def validate_port(port: int, name: str = "port") -> int:
    """Valida uma porta (1-65535)."""
    if not isinstance(port, int) or isinstance(port, bool):
        raise ConfigValidationError(f"{name} deve ser inteiro, recebido: {type(port).__name__}")
    if port < MIN_PORT or port > MAX_PORT:
        raise ConfigValidationError(f"{name} deve estar entre {MIN_PORT} e {MAX_PORT}, recebido: {port}")
    return port


def validate_peer_id(peer_id: str) -> str:
    """Valida o identificador anunciado ao rendezvous.

    O byte ``0x00`` delimita o id no frame BroadcastId, portanto não pode
    aparecer dentro dele.
    """
    if not isinstance(peer_id, str):
        raise ConfigValidationError(f"peer_id deve ser string, recebido: {type(peer_id).__name__}")
    if not peer_id:
        raise ConfigValidationError("peer_id não pode ser vazio")
    if "\x00" in peer_id:
        raise ConfigValidationError("peer_id não pode conter o byte 0x00")
    if len(peer_id.encode("utf-8")) > MAX_ID_BYTES:
        raise ConfigValidationError(f"peer_id excede {MAX_ID_BYTES} bytes")
    return peer_id


@dataclass(slots=True)
class PeerSettings:
    """Conjunto de parâmetros do agente peer.

    Os defaults reproduzem o ambiente local: rendezvous em ``127.0.0.1:8080``
    e listener na primeira porta livre entre 8000 e 8999.
    """

    rendezvous_host: str = "127.0.0.1"
    rendezvous_port: int = 8080
    listen_host: str = "127.0.0.1"
    port_range_start: int = DEFAULT_PORT_RANGE[0]
    port_range_end: int = DEFAULT_PORT_RANGE[1]
    connect_timeout: Optional[float] = 10.0  # segundos; None = bloqueia até o SO desistir
    peer_id: Optional[str] = None
    id_prefix: str = "client"
    log_level: str = "INFO"
    config_file: Optional[Path] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def default_peer_id(self, port: int) -> str:
        """Identificador derivado da porta do listener, ex. ``client:8001``."""

        return f"{self.id_prefix}:{port}"

    def validate(self) -> None:
        """Valida todos os campos.

        Raises:
            ConfigValidationError: Se algum campo estiver fora dos limites.
        """
        validate_port(self.rendezvous_port, "rendezvous_port")
        validate_port(self.port_range_start, "port_range_start")
        validate_port(self.port_range_end, "port_range_end")
        if self.port_range_start > self.port_range_end:
            raise ConfigValidationError(
                f"faixa de portas inválida: {self.port_range_start}-{self.port_range_end}"
            )
        if ":" in self.listen_host:
            # ':' separa host e porta no frame; IPv6 não é suportado
            raise ConfigValidationError(f"listen_host não pode conter ':': {self.listen_host}")
        if self.connect_timeout is not None and self.connect_timeout <= 0:
            raise ConfigValidationError(f"connect_timeout deve ser positivo, recebido: {self.connect_timeout}")
        if self.peer_id is not None:
            validate_peer_id(self.peer_id)

    @classmethod
    def from_file(cls, path: Optional[Path]) -> "PeerSettings":
        """Carrega configurações de um arquivo JSON, se existir."""

        if path is None or not path.exists():
            return cls(config_file=path)

        with path.open("r", encoding="utf-8") as fp:
            raw_data = json.load(fp)

        known_fields = {f.name for f in fields(cls)}
        init_kwargs: Dict[str, Any] = {
            key: value for key, value in raw_data.items() if key in known_fields
        }
        extra = {key: value for key, value in raw_data.items() if key not in known_fields}
        settings = cls(**init_kwargs, config_file=path)
        settings.extra.update(extra)
        settings.validate()  # Valida após carregar
        return settings

    def to_dict(self) -> Dict[str, Any]:
        """Exporta a configuração atual (útil para logs e debug)."""

        return {
            "rendezvous_host": self.rendezvous_host,
            "rendezvous_port": self.rendezvous_port,
            "listen_host": self.listen_host,
            "port_range_start": self.port_range_start,
            "port_range_end": self.port_range_end,
            "connect_timeout": self.connect_timeout,
            "peer_id": self.peer_id,
            "id_prefix": self.id_prefix,
            "log_level": self.log_level,
            "extra": self.extra,
        }

"""Configuration for the rendezvous server process."""
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from wire.errors import ConfigValidationError


SERVER_ADDRESS = "127.0.0.1"
SERVER_PORT = 8080


@dataclass(slots=True)
class ServerSettings:
    """Parâmetros do servidor rendezvous (endereço fixo conhecido pelos peers)."""

    host: str = SERVER_ADDRESS
    port: int = SERVER_PORT
    backlog: int = 64
    log_level: str = "INFO"
    config_file: Optional[Path] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        if not isinstance(self.port, int) or not 0 <= self.port <= 65535:
            raise ConfigValidationError(f"port deve estar entre 0 e 65535, recebido: {self.port!r}")
        if not isinstance(self.host, str) or not self.host:
            raise ConfigValidationError("host não pode ser vazio")
        if self.backlog < 1:
            raise ConfigValidationError(f"backlog deve ser positivo, recebido: {self.backlog}")

    @classmethod
    def from_file(cls, path: Optional[Path]) -> "ServerSettings":
        """Carrega configurações de um arquivo JSON, se existir."""

        if path is None or not path.exists():
            return cls(config_file=path)

        with path.open("r", encoding="utf-8") as fp:
            raw_data = json.load(fp)

        known_fields = {f.name for f in fields(cls)}
        init_kwargs = {key: value for key, value in raw_data.items() if key in known_fields}
        settings = cls(**init_kwargs, config_file=path)
        settings.extra.update({key: value for key, value in raw_data.items() if key not in known_fields})
        settings.validate()
        return settings

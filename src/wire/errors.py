"""Error taxonomy shared by the rendezvous server and the peer agent."""
from __future__ import annotations

import enum
from typing import Optional


class P2PError(Exception):
    """Base de todos os erros do protocolo rendezvous/peer."""


# --- Configuração -----------------------------------------------------------


class ConfigError(P2PError):
    """Operação exige algo que ainda não foi configurado."""


class AddrNotSetError(ConfigError):
    def __init__(self, message: str = "Endereço próprio ainda não definido") -> None:
        super().__init__(message)


class IdNotSetError(ConfigError):
    def __init__(self, message: str = "Identificador ainda não definido") -> None:
        super().__init__(message)


class ListenerNotReadyError(ConfigError):
    def __init__(self, message: str = "Listener ainda não sinalizou prontidão") -> None:
        super().__init__(message)


class NoPortAvailableError(ConfigError):
    """Nenhuma porta livre na faixa configurada."""

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end
        super().__init__(f"Nenhuma porta disponível entre {start} e {end}")


class ConfigValidationError(ConfigError, ValueError):
    """Erro de validação de configuração."""


# --- Protocolo --------------------------------------------------------------


class DecodeReason(enum.Enum):
    INVALID_UTF8 = "invalid_utf8"
    TRUNCATED_FIELD = "truncated_field"


class ProtocolError(P2PError):
    """Frame inesperado, truncado ou inválido."""


class DecodeError(ProtocolError):
    def __init__(self, reason: DecodeReason, field: str) -> None:
        self.reason = reason
        self.field = field
        super().__init__(f"Falha ao decodificar campo {field!r}: {reason.value}")


class UnexpectedFrameError(ProtocolError):
    def __init__(self, tag: Optional[int], message: str = "") -> None:
        self.tag = tag
        super().__init__(message or f"Tipo de frame inesperado: {tag!r}")


class RegistrationFailedError(ProtocolError):
    """Servidor não confirmou o REGISTER com um Ack."""


class DeliveryFailedError(ProtocolError):
    """Peer destino não confirmou a mensagem com um Ack."""


# --- Transporte -------------------------------------------------------------


class TransportError(P2PError):
    """Falha de connect/read/write no socket subjacente."""


class RegistrationTransportError(RegistrationFailedError, TransportError):
    """REGISTER interrompido por falha de rede; pode ser repetido."""


# --- Lookup -----------------------------------------------------------------


class PeerLookupError(P2PError, LookupError):
    """Identificador de peer desconhecido."""


class PeerNotFoundError(PeerLookupError):
    def __init__(self, peer_id: str) -> None:
        self.peer_id = peer_id
        super().__init__(f"Peer {peer_id!r} não registrado no rendezvous")

"""Shared state models for the peer client runtime."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import List, Optional

from wire.models import Address


class AgentState(enum.Enum):
    UNREGISTERED = "UNREGISTERED"
    LISTENING = "LISTENING"
    REGISTERED = "REGISTERED"
    ACTIVE = "ACTIVE"


@dataclass(slots=True)
class MessageRecord:
    """Mensagem direta enviada ou recebida."""

    peer: str
    body: str
    timestamp: datetime
    delivered: bool = False
    error: Optional[str] = None


@dataclass(slots=True)
class ClientRuntimeState:
    """Estado compartilhado entre a thread principal e o listener."""

    status: AgentState = AgentState.UNREGISTERED
    peer_id: Optional[str] = None
    own_addr: Optional[Address] = None
    outbound_history: List[MessageRecord] = field(default_factory=list)
    inbound_history: List[MessageRecord] = field(default_factory=list)
    lock: Lock = field(default_factory=Lock, repr=False)

    def record_inbound(self, record: MessageRecord) -> None:
        with self.lock:
            self.inbound_history.append(record)

    def record_outbound(self, record: MessageRecord) -> None:
        with self.lock:
            self.outbound_history.append(record)

    def inbox(self) -> List[MessageRecord]:
        with self.lock:
            return list(self.inbound_history)

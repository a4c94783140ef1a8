"""Thread-safe cache of peer addresses already resolved by the client."""
from __future__ import annotations

import logging
from threading import RLock
from typing import Dict, Optional

from wire.models import Address


logger = logging.getLogger(__name__)


class AddressCache:
    """Evita consultar o rendezvous de novo para peers já resolvidos.

    Entradas só vêm de respostas do servidor e nunca expiram; um endereço
    antigo continua valendo até o processo terminar.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Address] = {}
        self._lock = RLock()

    def lookup(self, peer_id: str) -> Optional[Address]:
        with self._lock:
            return self._entries.get(peer_id)

    def insert(self, peer_id: str, addr: Address) -> None:
        with self._lock:
            self._entries[peer_id] = addr
        logger.debug("Cache: %s -> %s", peer_id, addr)

    def snapshot(self) -> Dict[str, Address]:
        with self._lock:
            return dict(self._entries)

    def __contains__(self, peer_id: object) -> bool:
        with self._lock:
            return peer_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

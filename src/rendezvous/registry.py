import threading
import logging
from typing import Dict, Optional

from wire.models import Address

log = logging.getLogger("registry")

class AddressRegistry:
    """Mapa identificador -> endereço mantido pelo rendezvous.

    Não há expiração nem autenticação: qualquer chamador pode reivindicar
    qualquer identificador e o último REGISTER vence.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._index: Dict[str, Address] = {}

    def register(self, peer_id: str, addr: Address):
        with self._lock:
            previous = self._index.get(peer_id)
            self._index[peer_id] = addr

        if previous is not None and previous != addr:
            log.info("Endereço de %s substituído: %s -> %s", peer_id, previous, addr)
        else:
            log.info("Registrado %s em %s", peer_id, addr)

    def resolve(self, peer_id: str) -> Optional[Address]:
        with self._lock:
            return self._index.get(peer_id)

    def snapshot(self) -> Dict[str, Address]:
        with self._lock:
            return dict(self._index)

    def __len__(self):
        with self._lock:
            return len(self._index)

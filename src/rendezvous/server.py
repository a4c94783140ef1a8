"""TCP accept loop for the rendezvous role."""
from __future__ import annotations

import logging
import socket
import threading
from typing import Optional, Tuple

from wire.errors import P2PError, ProtocolError
from wire.transport import recv_frame, send_frame

from .config import ServerSettings
from .registry import AddressRegistry
from .request_handler import RequestHandler


logger = logging.getLogger(__name__)


class RendezvousServer:
    """Aceita conexões, lê um frame, responde uma vez e fecha.

    Cada conexão é atendida numa thread própria; um frame inválido encerra
    apenas aquela conexão e o servidor continua aceitando as próximas.
    """

    def __init__(self, settings: Optional[ServerSettings] = None, registry: Optional[AddressRegistry] = None) -> None:
        self.settings = settings or ServerSettings()
        self.registry = registry if registry is not None else AddressRegistry()
        self.handler = RequestHandler(self.registry)
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._server_socket: Optional[socket.socket] = None

    @property
    def address(self) -> Tuple[str, int]:
        """Endereço efetivamente ligado (útil quando ``port=0``)."""

        if self._server_socket is None:
            return self.settings.host, self.settings.port
        return self._server_socket.getsockname()[:2]

    def bind(self) -> None:
        if self._server_socket is not None:
            return
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            server.bind((self.settings.host, self.settings.port))
            server.listen(self.settings.backlog)
        except OSError:
            server.close()
            raise
        self._server_socket = server
        logger.info("Rendezvous escutando em %s:%s", *self.address)

    def start(self) -> None:
        """Sobe o loop de accept numa thread de fundo."""

        if self._thread and self._thread.is_alive():
            return
        self.bind()
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._accept_loop, name="rendezvous-accept", daemon=True)
        self._thread.start()

    def serve_forever(self) -> None:
        """Bloqueia a thread atual atendendo conexões até ``stop()``."""

        self.bind()
        self._stop_event.clear()
        self._accept_loop()

    def stop(self) -> None:
        self._stop_event.set()
        if self._server_socket:
            try:
                self._server_socket.close()
            except OSError:
                pass
            self._server_socket = None
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=2)
        self._thread = None

    def _accept_loop(self) -> None:
        server = self._server_socket
        if server is None:
            return
        server.settimeout(1.0)
        while not self._stop_event.is_set():
            try:
                conn, addr = server.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            threading.Thread(
                target=self._handle_connection,
                args=(conn, addr),
                name=f"rendezvous-conn-{addr[0]}:{addr[1]}",
                daemon=True,
            ).start()
        logger.info("Loop de accept do rendezvous encerrado")

    def _handle_connection(self, conn: socket.socket, addr: Tuple[str, int]) -> None:
        peer = f"{addr[0]}:{addr[1]}"
        try:
            conn.settimeout(self.settings.extra.get("request_timeout", 5.0))
            frame = recv_frame(conn)
            response = self.handler.handle(frame, addr[0])
            if response is not None:
                send_frame(conn, response)
        except ProtocolError as exc:
            logger.warning("[%s] Violação de protocolo; fechando conexão: %s", peer, exc)
        except P2PError as exc:
            logger.warning("[%s] Erro atendendo requisição: %s", peer, exc)
        except Exception:
            logger.exception("[%s] Erro inesperado atendendo requisição", peer)
        finally:
            conn.close()

"""TCP listener responsible for inbound peer connections."""
from __future__ import annotations

import logging
import socket
import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from wire import codec
from wire.codec import ClientMessageType
from wire.errors import NoPortAvailableError, P2PError, ProtocolError, UnexpectedFrameError
from wire.models import Address
from wire.transport import recv_frame, send_frame

from .config import PeerSettings
from .state import ClientRuntimeState, MessageRecord


logger = logging.getLogger(__name__)


class PeerServer:
    """Aceita conexões diretas de outros peers e responde Message com Ack.

    O loop roda numa thread dedicada e sinaliza ``ready`` assim que começa a
    aceitar conexões; o agente só se registra depois desse sinal.
    """

    def __init__(
        self,
        settings: PeerSettings,
        state: ClientRuntimeState,
        on_message: Optional[Callable[[str, str], None]] = None,
    ) -> None:
        self.settings = settings
        self.state = state
        self.on_message = on_message
        self.ready = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._server_socket: Optional[socket.socket] = None

    def bind_first_available(self) -> Address:
        """Liga o socket na primeira porta livre da faixa, em ordem crescente."""

        start, end = self.settings.port_range_start, self.settings.port_range_end
        for port in range(start, end + 1):
            logger.debug("Verificando disponibilidade da porta %d", port)
            server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                server.bind((self.settings.listen_host, port))
                server.listen(self.settings.extra.get("inbound_backlog", 64))
            except OSError:
                server.close()
                continue
            self._server_socket = server
            addr = Address.from_sockname(server.getsockname())
            logger.info("Listener preparado em %s", addr)
            return addr
        raise NoPortAvailableError(start, end)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        if self._server_socket is None:
            raise RuntimeError("bind_first_available() precisa ser chamado antes de start()")

        self._stop_event.clear()
        self.ready.clear()
        self._thread = threading.Thread(target=self.run, name="peer-listener", daemon=True)
        self._thread.start()

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        return self.ready.wait(timeout)

    def run(self) -> None:
        server = self._server_socket
        if server is None:
            return
        server.settimeout(1.0)
        logger.info("Escutando conexões de peers em %s:%s", *server.getsockname()[:2])
        self.ready.set()
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
                name=f"peer-inbound-{addr[0]}:{addr[1]}",
                daemon=True,
            ).start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._server_socket:
            try:
                self._server_socket.close()
            except OSError:
                pass
            self._server_socket = None
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2)
        self._thread = None
        self.ready.clear()

    def _handle_connection(self, conn: socket.socket, addr: Tuple[str, int]) -> None:
        peer = f"{addr[0]}:{addr[1]}"
        try:
            conn.settimeout(self.settings.extra.get("peer_read_timeout", 5.0))
            frame = recv_frame(conn)
            tag = codec.frame_tag(frame)
            if tag != ClientMessageType.MESSAGE:
                raise UnexpectedFrameError(tag)

            body = codec.decode_message(frame)
            logger.info("<-- Mensagem recebida de %s: %s", peer, body)
            self.state.record_inbound(
                MessageRecord(peer=peer, body=body, timestamp=datetime.now(timezone.utc), delivered=True)
            )
            send_frame(conn, codec.encode_peer_ack())
        except ProtocolError as exc:
            logger.warning("[%s] Frame inválido; fechando conexão: %s", peer, exc)
            return
        except P2PError as exc:
            logger.warning("[%s] Erro atendendo peer: %s", peer, exc)
            return
        except Exception:
            logger.exception("[%s] Erro inesperado atendendo peer", peer)
            return
        finally:
            conn.close()

        if self.on_message:
            try:
                self.on_message(peer, body)
            except Exception:
                logger.exception("[%s] Erro no callback de mensagem", peer)

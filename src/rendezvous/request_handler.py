import logging
from typing import Optional

from wire import codec
from wire.codec import ClientMessageType
from wire.errors import UnexpectedFrameError

log = logging.getLogger("Handler")

class RequestHandler:
    def __init__(self, registry):
        self.registry = registry

    def handle(self, frame: bytes, client_ip: str) -> Optional[bytes]:
        """Processa um frame e devolve a resposta, ou ``None`` para fechar sem payload.

        Levanta ``ProtocolError`` para frames desconhecidos ou malformados;
        quem chama decide fechar apenas aquela conexão.
        """
        tag = codec.frame_tag(frame)

        if tag == ClientMessageType.BROADCAST_ID:
            registration = codec.decode_broadcast_id(frame)

            log.info(
                "<-- REGISTER de ip=%s id=%r addr=%s",
                client_ip, registration.peer_id, registration.address
            )

            self.registry.register(registration.peer_id, registration.address)
            return codec.encode_server_ack()

        elif tag == ClientMessageType.GET_CLIENT_ADDR:
            target = codec.decode_get_client_addr(frame)
            addr = self.registry.resolve(target)

            if addr is None:
                log.info("GET_ADDR ip=%s id=%r -> desconhecido", client_ip, target)
                return None

            log.info("--> GET_ADDR ip=%s id=%r -> %s", client_ip, target, addr)
            return codec.encode_server_ack(addr)

        raise UnexpectedFrameError(tag)

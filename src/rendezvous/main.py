"""Entry-point helper for running the rendezvous server."""
from __future__ import annotations

import argparse
import logging
import signal
import threading
from pathlib import Path

from .config import ServerSettings
from .server import RendezvousServer


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Servidor rendezvous P2P")
    parser.add_argument("--config", type=Path, help="Caminho para arquivo de configuração", default=None)
    parser.add_argument("--host", help="Endereço de escuta", default=None)
    parser.add_argument("--port", type=int, help="Porta de escuta", default=None)
    parser.add_argument("--log-level", help="Override de nível de log", default=None)
    return parser


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def main() -> None:
    args = build_arg_parser().parse_args()

    settings = ServerSettings.from_file(args.config)
    if args.host:
        settings.host = args.host
    if args.port is not None:
        settings.port = args.port
    if args.log_level:
        settings.log_level = args.log_level.upper()
    settings.validate()

    configure_logging(settings.log_level)
    server = RendezvousServer(settings)

    def signal_handler(sig, frame):
        logging.getLogger(__name__).info("Sinal %s recebido; encerrando rendezvous", sig)
        # stop() fecha o socket e faz o loop de accept sair
        threading.Thread(target=server.stop, daemon=True).start()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    server.serve_forever()


if __name__ == "__main__":
    main()

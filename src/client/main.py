"""Entry-point helper for running the peer client."""
from __future__ import annotations

import argparse
import logging
import signal
import threading
from pathlib import Path

from wire.errors import P2PError

from .cli import CommandLineInterface
from .config import PeerSettings
from .p2p_client import PeerAgent


def find_default_config() -> Path | None:
    """Procura config.json no diretório do módulo ou diretório atual."""
    module_dir = Path(__file__).parent
    config_in_module = module_dir / "config.json"
    if config_in_module.exists():
        return config_in_module

    config_in_cwd = Path.cwd() / "config.json"
    if config_in_cwd.exists():
        return config_in_cwd

    return None


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cliente P2P com descoberta via rendezvous")
    parser.add_argument("--config", type=Path, help="Caminho para arquivo de configuração", default=None)
    parser.add_argument("--log-level", help="Override de nível de log", default=None)
    parser.add_argument("--id", dest="peer_id", help="Identificador anunciado (padrão: client:<porta>)", default=None)
    parser.add_argument("--no-cli", action="store_true", help="Apenas escuta, sem prompt interativo")
    return parser


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def main() -> None:
    parser = build_arg_parser()
    args = parser.parse_args()

    config_path = args.config if args.config else find_default_config()
    settings = PeerSettings.from_file(config_path)

    if args.log_level:
        settings.log_level = args.log_level.upper()
    if args.peer_id:
        settings.peer_id = args.peer_id
    settings.validate()

    configure_logging(settings.log_level)
    logger = logging.getLogger(__name__)
    if config_path:
        logger.info("Configuração carregada de: %s", config_path)

    shutdown_event = threading.Event()
    agent = PeerAgent(settings, on_message=lambda peer, body: print(f"\n<-- [{peer}] {body}"))
    cli = CommandLineInterface(agent, on_quit=shutdown_event.set)

    def signal_handler(sig, frame):
        print("\nRecebido sinal de interrupção. Encerrando...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        agent.start()
    except P2PError as exc:
        logger.error("Falha ao iniciar agente: %s", exc)
        agent.stop()
        raise SystemExit(1) from exc

    print(f"\nCliente P2P iniciado como {agent.peer_id} em {agent.own_addr}")
    try:
        if not args.no_cli:
            print("Digite /help para ver os comandos disponíveis.\n")
            cli.start()

        while not shutdown_event.is_set():
            if not args.no_cli and not cli.is_running():
                break
            shutdown_event.wait(timeout=0.5)
    except KeyboardInterrupt:
        pass
    finally:
        cli.stop()
        agent.stop()


if __name__ == "__main__":
    main()

"""Command-line interface for the peer client."""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Optional

from wire.errors import ConfigError, PeerLookupError, ProtocolError, TransportError

if TYPE_CHECKING:
    from .p2p_client import PeerAgent

logger = logging.getLogger(__name__)

class CommandLineInterface:
    """Responsável pelos comandos `/msg`, `/whois`, `/cache`, etc."""

    def __init__(
        self,
        agent: "PeerAgent",
        prompt: str = "p2p> ",
        on_quit: Optional[Callable[[], None]] = None,
    ) -> None:
        self.agent = agent
        self.prompt = prompt
        self.on_quit = on_quit
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._output_callback: Optional[Callable[[str], None]] = None

    def attach_output(self, callback: Callable[[str], None]) -> None:
        """Permite redirecionar mensagens da CLI para testes/UI."""

        self._output_callback = callback

    def start(self) -> None:
        """Inicia o loop interativo em uma thread dedicada."""
        if self._thread and self._thread.is_alive():
            return

        def _loop() -> None:
            while not self._stop_event.is_set():
                try:
                    user_input = input(self.prompt)
                except (EOFError, KeyboardInterrupt):
                    break
                self._handle_command(user_input.strip())

        self._stop_event.clear()
        self._thread = threading.Thread(target=_loop, name="cli", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=2)
        self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _handle_command(self, raw_command: str) -> None:
        if not raw_command or not raw_command.startswith("/"):
            return

        parts = raw_command.split()
        command = parts[0].lower()

        try:
            if command == "/msg":
                self._cmd_msg(parts[1:])
            elif command == "/whois":
                self._cmd_whois(parts[1:])
            elif command == "/cache":
                self._cmd_cache()
            elif command == "/inbox":
                self._cmd_inbox()
            elif command == "/status":
                self._cmd_status()
            elif command == "/log":
                self._cmd_log(parts[1:])
            elif command == "/quit":
                self._cmd_quit()
            elif command == "/help":
                self._cmd_help()
            else:
                self._emit(f"Comando desconhecido: {command}")

        except PeerLookupError as exc:
            self._emit(f"Peer desconhecido: {exc}")
        except TransportError as exc:
            self._emit(f"Erro de rede (tente novamente): {exc}")
        except ConfigError as exc:
            self._emit(f"Agente não configurado: {exc}")
        except ProtocolError as exc:
            self._emit(f"Erro de protocolo: {exc}")

    def _cmd_msg(self, args: list) -> None:
        if len(args) < 2:
            self._emit("Uso: /msg <peer_id> <mensagem>")
            self._emit("Exemplo: /msg client:8001 Olá, como vai?")
            return

        peer_id = args[0]
        message_text = " ".join(args[1:])
        self.agent.send_message(peer_id, message_text)
        self._emit(f"-> [{peer_id}] {message_text}")

    def _cmd_whois(self, args: list) -> None:
        if not args:
            self._emit("Uso: /whois <peer_id>")
            return

        addr = self.agent.discover(args[0])
        self._emit(f"{args[0]} está em {addr}")

    def _cmd_cache(self) -> None:
        entries = self.agent.cache.snapshot()
        if not entries:
            self._emit("Cache de endereços vazio")
            return

        for peer_id, addr in sorted(entries.items()):
            self._emit(f"  {peer_id:20} {addr}")
        self._emit(f"\nTotal: {len(entries)} endereços em cache")

    def _cmd_inbox(self) -> None:
        inbox = self.agent.state.inbox()
        if not inbox:
            self._emit("Nenhuma mensagem recebida")
            return

        for record in inbox:
            self._emit(f"[{record.timestamp:%H:%M:%S}] {record.peer}: {record.body}")

    def _cmd_log(self, args: list) -> None:
        if not args:
            current_level = logging.getLevelName(logging.getLogger().getEffectiveLevel())
            self._emit(f"Nível de log atual: {current_level}")
            self._emit("Uso: /log <DEBUG|INFO|WARNING|ERROR>")
            return

        level_name = args[0].upper()
        level_map = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR
        }

        if level_name not in level_map:
            self._emit(f"Nível inválido: {level_name}. Use: {', '.join(level_map.keys())}")
            return

        logging.getLogger().setLevel(level_map[level_name])
        self._emit(f"Nível de log alterado para: {level_name}")

    def _cmd_quit(self) -> None:
        self._emit("Encerrando cliente P2P...")
        self._stop_event.set()
        if self.on_quit:
            self.on_quit()

    def _cmd_status(self) -> None:
        """Exibe estado do agente e configurações atuais."""
        settings = self.agent.settings
        config_file = settings.config_file if settings.config_file else "(padrão)"

        self._emit(f"Estado:            {self.agent.status.value}")
        self._emit(f"Peer ID:           {self.agent.peer_id or '(não definido)'}")
        self._emit(f"Endereço próprio:  {self.agent.own_addr or '(não definido)'}")
        self._emit(f"Rendezvous:        {settings.rendezvous_host}:{settings.rendezvous_port}")
        self._emit(f"Faixa de portas:   {settings.port_range_start}-{settings.port_range_end}")
        self._emit(f"Arquivo de config: {config_file}")

    def _cmd_help(self) -> None:
        help_text = """
MENSAGENS:
  /msg <peer> <msg> - Mensagem direta para peer
  /inbox            - Mensagens recebidas

ENDEREÇOS:
  /whois <peer>     - Resolver endereço (cache ou rendezvous)
  /cache            - Listar endereços em cache

SISTEMA:
  /status           - Mostrar estado e configurações
  /log <nível>      - Ajustar nível de log
  /help             - Mostrar esta ajuda
  /quit             - Encerrar aplicação
        """
        self._emit(help_text)

    def _emit(self, message: str) -> None:
        if self._output_callback:
            self._output_callback(message)
        else:
            print(message)

"""CLI interface for SamChat."""

import asyncio
import logging
import signal

from .config import AppConfig, load_config
from .llm import CompletionClient
from .logging import JSONLLogger, configure_logger, get_logger
from .memory import MemoryStore
from .personas import PersonaError, PersonaRegistry
from .proactive import (
    FrequencyTier,
    LogNotifier,
    NotificationSink,
    ProactiveEvent,
    ProactiveScheduler,
    TelegramNotifier,
)
from .session import (
    GenerationState,
    Message,
    Session,
    SessionError,
    SessionManager,
    SessionNotFoundError,
)

logger = logging.getLogger(__name__)

BANNER = """
╔══════════════════════════════════════════╗
║              SamChat v0.1.0              ║
║     Personality-switchable AI chat       ║
╚══════════════════════════════════════════╝

Type your message and press Enter. /help lists the commands.
"""

HELP = """
Commands:
  /new [persona]        - Start a new chat
  /chats                - List chats
  /open <id>            - Switch to a chat (id prefix is enough)
  /title <text>         - Rename the current chat
  /delete               - Delete the current chat
  /persona [id]         - Show or switch the current chat's persona
  /personas             - List personas
  /regen [message-id]   - Regenerate the last reply, or from a message
  /stop                 - Stop a reply (Ctrl-C while it streams)
  /remember <text>      - Remember something about you
  /memories             - Show what is remembered
  /forget <n|all>       - Forget memory number n, or everything
  /proactive [on|off|<frequency>|quiet HH:MM HH:MM]
                        - Show or change proactive check-ins
  /help                 - Show this help
  /exit, /quit          - Exit the CLI
"""


def create_session_manager(
    config: AppConfig,
    event_log: JSONLLogger | None = None,
) -> SessionManager:
    """Wire personas, memory and the completion client into a SessionManager."""
    personas = PersonaRegistry(personas_dir=config.personas_dir)
    memory = MemoryStore.from_config(config.memory)
    client = CompletionClient(config.completion, event_log=event_log)
    return SessionManager(personas, memory, client, config.sessions, event_log=event_log)


def create_notifiers(config: AppConfig) -> list[NotificationSink]:
    """Log every proactive message, and push it to Telegram when configured."""
    notifiers: list[NotificationSink] = [LogNotifier()]
    if config.telegram_token and config.telegram_chat_id:
        notifiers.append(TelegramNotifier(config.telegram_token, config.telegram_chat_id))
    return notifiers


class CLI:
    """Interactive command-line interface for SamChat."""

    def __init__(
        self,
        config: AppConfig | None = None,
        sessions: SessionManager | None = None,
        scheduler: ProactiveScheduler | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        self.config = config or load_config()
        self.logger = event_log or get_logger()
        self.sessions = sessions or create_session_manager(self.config, self.logger)
        self.scheduler = scheduler or ProactiveScheduler(
            self.config.proactive,
            personas=self.sessions.personas,
            event_log=self.logger,
        )
        self.user_id = self.config.user_id
        self.session: Session | None = None

    @property
    def personas(self) -> PersonaRegistry:
        return self.sessions.personas

    @property
    def memory(self) -> MemoryStore:
        return self.sessions.memory

    def _current(self) -> Session:
        if self.session is not None:
            try:
                return self.sessions.get(self.session.id)
            except SessionNotFoundError:
                pass

        self.session = self.sessions.create(self.config.default_persona)
        self.logger.log("session_start", session_id=self.session.id)
        return self.session

    def _print_reply_end(self, message: Message) -> None:
        if message.state is GenerationState.ERROR:
            print(f"\n❌ {message.error}")
        elif message.state is GenerationState.ABORTED:
            print("\n⏹ Response generation stopped")
        else:
            print()

    def _on_chunk(self, text: str) -> None:
        print(text, end="", flush=True)

    async def _stream(self, coro) -> Message:
        """Await a generation, turning Ctrl-C into a stop instead of an exit."""
        session = self._current()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self.sessions.stop_generation, session.id)
            installed = True
        except (NotImplementedError, RuntimeError):
            installed = False

        persona = self.personas.resolve(session.persona_id)
        print(f"\n{persona.name.lower()}> ", end="", flush=True)
        try:
            return await coro
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)

    async def _process_message(self, text: str) -> None:
        """Send a user message and stream the reply."""
        session = self._current()
        self.logger.set_session_id(session.id)
        try:
            message = await self._stream(
                self.sessions.send_message(session.id, text, self.user_id, self._on_chunk)
            )
        except SessionError as e:
            print(f"\n❌ {e}")
            return
        self._print_reply_end(message)

    async def _regenerate(self, anchor: str) -> None:
        session = self._current()
        try:
            message = await self._stream(
                self.sessions.regenerate_from(session.id, self.user_id, anchor, self._on_chunk)
            )
        except SessionError as e:
            print(f"\n❌ {e}")
            return
        self._print_reply_end(message)

    def _show_chats(self) -> None:
        chats = self.sessions.list_sessions()
        if not chats:
            print("\nNo chats yet.")
            return
        print()
        for chat in chats:
            marker = "*" if self.session and chat.id == self.session.id else " "
            print(f"{marker} {chat.id}  {chat.title}  [{chat.persona_id}, {len(chat.messages)} msgs]")

    def _open(self, prefix: str) -> None:
        matches = [s for s in self.sessions.list_sessions() if s.id.startswith(prefix)]
        if len(matches) != 1:
            print(f"\n❌ {'No' if not matches else 'Ambiguous'} chat id: {prefix}")
            return
        self.session = matches[0]
        print(f"\n✓ Opened: {self.session.title}")
        for message in self.session.messages[-6:]:
            speaker = "you" if message.is_user else self.session.persona_id
            print(f"  {speaker}> {message.content}")

    def _show_personas(self) -> None:
        current = self._current().persona_id
        print()
        for persona in self.personas.list_personas():
            marker = "*" if persona.id == current else " "
            print(f"{marker} {persona.id:<20} {persona.name}: {persona.description}")

    def _switch_persona(self, persona_id: str) -> None:
        session = self._current()
        if not persona_id:
            persona = self.personas.resolve(session.persona_id)
            print(f"\nPersona: {persona.name} ({persona.id})")
            return
        try:
            self.sessions.set_persona(session.id, persona_id)
        except PersonaError as e:
            print(f"\n❌ {e}")
            return
        print(f"\n✓ Persona: {self.personas.resolve(persona_id).name}")

    def _show_memories(self) -> None:
        facts = self.memory.facts(self.user_id)
        if not facts:
            print("\nNothing remembered yet.")
            return
        print()
        for number, fact in enumerate(facts, start=1):
            print(f"{number:>2}. {fact.encode()}")

    def _forget(self, arg: str) -> None:
        if arg == "all":
            self.memory.clear_all(self.user_id)
            print("\n✓ Forgot everything.")
            return
        try:
            index = int(arg) - 1
        except ValueError:
            print("\n❌ Usage: /forget <n|all>")
            return
        if self.memory.remove_fact(self.user_id, index):
            print(f"\n✓ Forgot memory {arg}.")
        else:
            print(f"\n❌ No memory number {arg}.")

    def _proactive(self, arg: str) -> None:
        parts = arg.split()
        try:
            if not parts:
                pass
            elif parts[0] in ("on", "off"):
                self.scheduler.update_settings(enabled=parts[0] == "on")
            elif parts[0] == "quiet" and len(parts) == 3:
                self.scheduler.update_settings(quiet_start=parts[1], quiet_end=parts[2])
            else:
                self.scheduler.update_settings(frequency=FrequencyTier(parts[0]))
        except ValueError:
            tiers = ", ".join(t.value for t in FrequencyTier)
            print(f"\n❌ Usage: /proactive [on|off|quiet HH:MM HH:MM|{tiers}]")
            return

        state = self.scheduler.state
        print(
            f"\nProactive: {'on' if state.enabled else 'off'}, {state.frequency.label.lower()}, "
            f"quiet {state.quiet_hours.start}-{state.quiet_hours.end}, sent {state.total_sent}"
        )

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        name, _, arg = command.strip().partition(" ")
        name = name.lower()
        arg = arg.strip()

        if name in ("/exit", "/quit", "exit", "quit"):
            print("\n👋 Goodbye!")
            if self.session:
                self.logger.log("session_end", session_id=self.session.id)
            return False

        if name == "/new":
            self.session = self.sessions.create(arg or self.config.default_persona)
            self.logger.log("session_start", session_id=self.session.id)
            print(f"\n✓ New chat with {self.personas.resolve(self.session.persona_id).name}")
        elif name == "/chats":
            self._show_chats()
        elif name == "/open" and arg:
            self._open(arg)
        elif name == "/title" and arg:
            self.sessions.rename(self._current().id, arg)
            print(f"\n✓ Renamed to: {arg}")
        elif name == "/delete":
            self.sessions.delete(self._current().id)
            self.session = None
            print("\n✓ Chat deleted.")
        elif name == "/persona":
            self._switch_persona(arg)
        elif name == "/personas":
            self._show_personas()
        elif name == "/regen":
            await self._regenerate(arg or "last")
        elif name == "/stop":
            if not self.sessions.stop_generation(self._current().id):
                print("\nNothing to stop.")
        elif name == "/remember" and arg:
            fact = self.memory.remember(self.user_id, arg)
            print("\n✓ Got it, I'll remember that." if fact else "\nAlready remembered.")
        elif name == "/memories":
            self._show_memories()
        elif name == "/forget" and arg:
            self._forget(arg)
        elif name == "/proactive":
            self._proactive(arg)
        elif name == "/help":
            print(HELP)
        else:
            print(f"\nUnknown command: {command.strip()}. Try /help")

        return True

    async def run(self) -> None:
        """Run the interactive CLI."""
        print(BANNER)
        session = self._current()
        print(f"Chat: {session.id} ({self.personas.resolve(session.persona_id).name})\n")

        try:
            while True:
                try:
                    user_input = input("you> ").strip()

                    if not user_input:
                        continue

                    if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                        if not await self._handle_command(user_input):
                            break
                        continue

                    await self._process_message(user_input)

                except KeyboardInterrupt:
                    print("\n\n⚡ Interrupted")
                    try:
                        confirm = input("Exit? (y/n): ").strip().lower()
                        if confirm in ("y", "yes"):
                            print("👋 Goodbye!")
                            self.logger.log("session_interrupt", session_id=self._current().id)
                            break
                    except (KeyboardInterrupt, EOFError):
                        print("\n👋 Goodbye!")
                        break

                except EOFError:
                    print("\n👋 Goodbye!")
                    break
        finally:
            await self.sessions.client.aclose()
            self.memory.unload(self.user_id)


async def run_cli() -> None:
    """Run the CLI with default configuration."""
    config = load_config()
    configure_logger(config.logs_dir)

    if not config.completion.api_key:
        print("❌ Error: OPENROUTER_API_KEY environment variable not set")
        print("Please set it in your .env file or environment")
        return

    cli = CLI(config=config)
    await cli.run()


async def run_proactive(config: AppConfig | None = None) -> None:
    """Run the proactive scheduler headless until interrupted.

    Each message lands in the most recent chat (or a new one) and is
    pushed to every configured notification sink.
    """
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    config = config or load_config()
    event_log = configure_logger(config.logs_dir)
    sessions = create_session_manager(config, event_log)

    def deliver(event: ProactiveEvent) -> None:
        recent = sessions.list_sessions()
        session = sessions.deliver_proactive(event, recent[0].id if recent else None)
        logger.info("Delivered proactive message to %s", session.id)

    notifiers = create_notifiers(config)
    scheduler = ProactiveScheduler(
        config.proactive,
        notifiers=notifiers,
        personas=sessions.personas,
        event_log=event_log,
    )
    scheduler.add_listener(deliver)

    if not scheduler.state.enabled:
        logger.warning("Proactive messages are disabled; enable them with /proactive on")

    try:
        await scheduler.run()
    finally:
        for sink in notifiers:
            if isinstance(sink, TelegramNotifier):
                await sink.close()
        await sessions.client.aclose()

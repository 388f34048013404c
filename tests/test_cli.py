"""Tests for CLI."""

import asyncio
from pathlib import Path

import pytest

from samchat.cli import CLI, create_notifiers
from samchat.config import AppConfig
from samchat.llm import RateLimitError
from samchat.logging import JSONLLogger
from samchat.memory import MemoryStore
from samchat.personas import PersonaRegistry
from samchat.proactive import FrequencyTier, LogNotifier, ProactiveScheduler, TelegramNotifier
from samchat.session import GenerationState, SessionManager


class FakeClient:
    def __init__(self, chunks=("Hello", " there"), error=None):
        self.chunks = list(chunks)
        self.error = error
        self.closed = False

    async def stream(self, system_prompt, history, cancel=None, *, session_id=None):
        for chunk in self.chunks:
            yield chunk
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error

    async def aclose(self):
        self.closed = True


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(home=tmp_path)


@pytest.fixture
def cli(config: AppConfig, tmp_path: Path) -> CLI:
    sessions = SessionManager(PersonaRegistry(), MemoryStore(), FakeClient())
    return CLI(
        config=config,
        sessions=sessions,
        scheduler=ProactiveScheduler(),
        event_log=JSONLLogger(log_dir=tmp_path / "logs"),
    )


@pytest.mark.asyncio
async def test_handle_command_exit(cli: CLI) -> None:
    """Test exit commands return False."""
    assert await cli._handle_command("/exit") is False
    assert await cli._handle_command("/quit") is False


@pytest.mark.asyncio
async def test_handle_command_help(cli: CLI, capsys) -> None:
    """Test help command returns True."""
    assert await cli._handle_command("/help") is True
    assert "/regen" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_unknown_command(cli: CLI, capsys) -> None:
    assert await cli._handle_command("/dance") is True
    assert "Unknown command: /dance" in capsys.readouterr().out


def test_first_session_uses_default_persona(cli: CLI) -> None:
    """Test that a chat is created on demand."""
    session = cli._current()
    assert session.persona_id == "corporate"
    assert cli._current() is session


@pytest.mark.asyncio
async def test_new_chat(cli: CLI) -> None:
    old = cli._current()
    await cli._handle_command("/new sam")
    assert cli.session is not old
    assert cli.session.persona_id == "sam"


@pytest.mark.asyncio
async def test_process_message(cli: CLI, capsys) -> None:
    """Test that a message streams its reply."""
    await cli._process_message("hello")

    out = capsys.readouterr().out
    assert "Hello there" in out
    session = cli._current()
    assert session.title == "hello"
    assert len(session.messages) == 2


@pytest.mark.asyncio
async def test_process_message_error(cli: CLI, capsys) -> None:
    cli.sessions.client.error = RateLimitError("slow")

    await cli._process_message("hello")

    assert "Rate limit exceeded" in capsys.readouterr().out
    assert cli._current().messages[-1].state is GenerationState.ERROR


@pytest.mark.asyncio
async def test_regen(cli: CLI) -> None:
    await cli._process_message("hello")
    first_reply = cli._current().messages[-1]

    assert await cli._handle_command("/regen") is True

    messages = cli._current().messages
    assert len(messages) == 2
    assert messages[-1] is not first_reply


@pytest.mark.asyncio
async def test_regen_empty_chat(cli: CLI, capsys) -> None:
    await cli._handle_command("/regen")
    assert "❌" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_memory_commands(cli: CLI, capsys) -> None:
    """Test remember, memories and forget."""
    await cli._handle_command("/remember my locker is 42")
    await cli._handle_command("/memories")
    assert "EXPLICIT: my locker is 42" in capsys.readouterr().out

    await cli._handle_command("/forget 1")
    assert cli.memory.facts(cli.user_id) == []

    await cli._handle_command("/forget x")
    assert "Usage: /forget" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_forget_all(cli: CLI) -> None:
    cli.memory.remember(cli.user_id, "first thing")
    cli.memory.remember(cli.user_id, "second thing")
    await cli._handle_command("/forget all")
    assert cli.memory.facts(cli.user_id) == []


@pytest.mark.asyncio
async def test_persona_commands(cli: CLI, capsys) -> None:
    await cli._handle_command("/persona sam")
    assert cli._current().persona_id == "sam"

    await cli._handle_command("/persona nope")
    assert "Unknown persona" in capsys.readouterr().out
    assert cli._current().persona_id == "sam"

    await cli._handle_command("/personas")
    out = capsys.readouterr().out
    assert "* sam" in out
    assert "corporate" in out


@pytest.mark.asyncio
async def test_chat_commands(cli: CLI, capsys) -> None:
    first = cli._current()
    await cli._handle_command("/title Trip planning")
    assert first.title == "Trip planning"

    await cli._handle_command("/new")
    await cli._handle_command("/chats")
    assert "Trip planning" in capsys.readouterr().out

    await cli._handle_command(f"/open {first.id}")
    assert cli.session is first

    await cli._handle_command("/delete")
    assert cli.session is None
    assert cli._current() is not first


@pytest.mark.asyncio
async def test_open_unknown(cli: CLI, capsys) -> None:
    await cli._handle_command("/open chat_nothing")
    assert "No chat id" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_stop_when_idle(cli: CLI, capsys) -> None:
    await cli._handle_command("/stop")
    assert "Nothing to stop." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_proactive_commands(cli: CLI, capsys) -> None:
    await cli._handle_command("/proactive on")
    await cli._handle_command("/proactive daily")
    await cli._handle_command("/proactive quiet 23:00 07:00")

    state = cli.scheduler.state
    assert state.enabled
    assert state.frequency is FrequencyTier.DAILY
    assert (state.quiet_hours.start, state.quiet_hours.end) == ("23:00", "07:00")
    assert "Proactive: on, once daily" in capsys.readouterr().out

    await cli._handle_command("/proactive sometimes")
    assert "Usage: /proactive" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_run_loop(cli: CLI, monkeypatch, capsys) -> None:
    """Test the input loop until /exit."""
    inputs = iter(["", "hello", "/exit"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(inputs))

    await cli.run()

    assert "Hello there" in capsys.readouterr().out
    assert cli.sessions.client.closed


@pytest.mark.asyncio
async def test_run_loop_eof(cli: CLI, monkeypatch, capsys) -> None:
    def raise_eof(prompt=""):
        raise EOFError

    monkeypatch.setattr("builtins.input", raise_eof)

    await cli.run()

    assert "Goodbye" in capsys.readouterr().out


def test_create_notifiers(config: AppConfig) -> None:
    """Test Telegram is only added when fully configured."""
    notifiers = create_notifiers(config)
    assert [type(n) for n in notifiers] == [LogNotifier]

    config.telegram_token = "123:abc"
    config.telegram_chat_id = "42"
    notifiers = create_notifiers(config)
    assert isinstance(notifiers[-1], TelegramNotifier)

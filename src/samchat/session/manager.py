"""Session manager: message state machine, generation flow and persistence."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from ..llm import CancelToken, CompletionClient, CompletionError
from ..memory import MemoryStore
from ..personas import DEFAULT_PERSONA_ID, PersonaError, PersonaRegistry
from .errors import (
    MessageNotFoundError,
    NothingToRegenerateError,
    SessionBusyError,
    SessionError,
    SessionNotFoundError,
)
from .models import GenerationState, Message, MessageRole, Session, derive_title

if TYPE_CHECKING:
    from ..logging import JSONLLogger
    from ..proactive import ProactiveEvent

logger = logging.getLogger(__name__)

ERROR_MARKER = "⚠️"

ChunkCallback = Callable[[str], Any]


@dataclass
class SessionConfig:
    """Configuration for session manager.

    Attributes:
        sessions_dir: Directory for one JSON file per session. Sessions
            live only in memory if None.
    """

    sessions_dir: Path | None = None


class SessionManager:
    """Owns every session's message log and drives generations.

    One assistant message may be in flight per session. Its state moves
    pending -> streaming -> complete/aborted/error and nothing mutates it
    after it reaches a terminal state.

    Example:
        manager = SessionManager(registry, memory, client, SessionConfig(dir))
        session = manager.create("sam")
        reply = await manager.send_message(session.id, "hey", user_id="alice")
    """

    def __init__(
        self,
        personas: PersonaRegistry,
        memory: MemoryStore,
        client: CompletionClient,
        config: SessionConfig | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        self.personas = personas
        self.memory = memory
        self.client = client
        self.config = config or SessionConfig()
        self.event_log = event_log
        self._sessions: dict[str, Session] = {}
        self._cancel_tokens: dict[str, CancelToken] = {}

        if self.config.sessions_dir is not None:
            self.config.sessions_dir.mkdir(parents=True, exist_ok=True)
            self._load_all()

    # Persistence

    def _session_file(self, session_id: str) -> Path:
        """Get the file path for a session."""
        assert self.config.sessions_dir is not None
        return self.config.sessions_dir / f"{session_id}.json"

    def _load_all(self) -> None:
        """Load every session file from disk."""
        assert self.config.sessions_dir is not None
        for path in self.config.sessions_dir.glob("*.json"):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    session = Session.from_dict(json.load(f))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning("Skipping unreadable session file %s: %s", path, e)
                continue
            self._sessions[session.id] = session

    def _save(self, session: Session) -> None:
        """Save session to disk."""
        if self.config.sessions_dir is None or session.id not in self._sessions:
            return
        with open(self._session_file(session.id), "w", encoding="utf-8") as f:
            json.dump(session.to_dict(), f, indent=2, ensure_ascii=False)

    def _delete_file(self, session_id: str) -> None:
        if self.config.sessions_dir is None:
            return
        path = self._session_file(session_id)
        if path.exists():
            path.unlink()

    # Session lifecycle

    def create(self, persona_id: str | None = None) -> Session:
        """Create an empty session titled "New Chat"."""
        if persona_id is None or persona_id not in self.personas:
            persona_id = DEFAULT_PERSONA_ID
        session = Session(persona_id=persona_id)
        self._sessions[session.id] = session
        self._save(session)
        return session

    def get(self, session_id: str) -> Session:
        """Get a session.

        Raises:
            SessionNotFoundError: If there is no such session.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(self) -> list[Session]:
        """All sessions, most recently modified first."""
        return sorted(self._sessions.values(), key=lambda s: s.last_modified, reverse=True)

    def rename(self, session_id: str, title: str) -> Session:
        """Set a session's title. It is never derived again afterwards."""
        title = title.strip()
        if not title:
            raise SessionError("Title cannot be empty")

        session = self.get(session_id)
        session.title = title
        session.title_locked = True
        session.touch()
        self._save(session)
        return session

    def delete(self, session_id: str) -> None:
        """Delete a session, stopping any generation in flight."""
        self.get(session_id)
        self.stop_generation(session_id)
        del self._sessions[session_id]
        self._delete_file(session_id)

    def set_persona(self, session_id: str, persona_id: str) -> Session:
        """Switch the persona a session runs under.

        Raises:
            PersonaError: If the persona id is unknown.
        """
        if persona_id not in self.personas:
            raise PersonaError(f"Unknown persona: {persona_id}")

        session = self.get(session_id)
        session.persona_id = persona_id
        session.touch()
        self._save(session)
        return session

    def delete_persona(self, persona_id: str) -> int:
        """Delete a custom persona and re-point its sessions to the default.

        Returns:
            Number of sessions that were re-pointed.
        """
        self.personas.delete_custom(persona_id)

        count = 0
        for session in self._sessions.values():
            if session.persona_id == persona_id:
                session.persona_id = DEFAULT_PERSONA_ID
                session.touch()
                self._save(session)
                count += 1
        return count

    def is_busy(self, session_id: str) -> bool:
        """Check if a session has a generation in flight."""
        return self.get(session_id).in_flight is not None

    # Message state machine

    def append_user_message(self, session_id: str, text: str) -> Message:
        """Append a complete user message.

        The first user message names the session (first five words).

        Raises:
            SessionBusyError: If a generation is in flight.
        """
        session = self.get(session_id)
        if session.in_flight is not None:
            raise SessionBusyError(session_id)

        text = text.strip()
        if not text:
            raise SessionError("Message cannot be empty")

        message = Message(role=MessageRole.USER, content=text)
        if not session.title_locked:
            session.title = derive_title(text)
            session.title_locked = True

        session.messages.append(message)
        session.touch()
        self._save(session)
        return message

    def begin_assistant_response(self, session_id: str) -> str:
        """Append a pending assistant message and return its id.

        Raises:
            SessionBusyError: If a generation is already in flight.
        """
        session = self.get(session_id)
        if session.in_flight is not None:
            raise SessionBusyError(session_id)

        message = Message(role=MessageRole.ASSISTANT, state=GenerationState.PENDING)
        session.messages.append(message)
        session.touch()
        return message.id

    def _message(self, session: Session, message_id: str) -> Message:
        index = session.find(message_id)
        if index is None:
            raise MessageNotFoundError(session.id, message_id)
        return session.messages[index]

    def apply_chunk(self, session_id: str, message_id: str, text: str) -> bool:
        """Append streamed text to an in-flight assistant message.

        Returns:
            False if the message already reached a terminal state, in which
            case nothing changes.
        """
        session = self.get(session_id)
        message = self._message(session, message_id)
        if message.state.terminal:
            return False

        message.content += text
        message.state = GenerationState.STREAMING
        return True

    def finalize(
        self,
        session_id: str,
        message_id: str,
        outcome: GenerationState,
        error_detail: str | None = None,
    ) -> Message:
        """Move an assistant message to its terminal state.

        On error the user-facing description is written into the content,
        after any text that already streamed. Finalizing an already
        terminal message is a no-op.
        """
        session = self.get(session_id)
        return self._finish(session, self._message(session, message_id), outcome, error_detail)

    def _finish(
        self,
        session: Session,
        message: Message,
        outcome: GenerationState,
        error_detail: str | None = None,
    ) -> Message:
        if outcome.in_flight:
            raise ValueError(f"Not a terminal state: {outcome.value}")
        if message.state.terminal:
            return message

        if outcome is GenerationState.ERROR:
            detail = error_detail or "Something went wrong while generating a response."
            notice = f"{ERROR_MARKER} {detail}"
            message.content = f"{message.content}\n\n{notice}" if message.content else notice
            message.error = detail

        message.state = outcome
        session.touch()
        self._save(session)
        return message

    # Generation flow

    async def send_message(
        self,
        session_id: str,
        text: str,
        user_id: str,
        on_chunk: ChunkCallback | None = None,
    ) -> Message:
        """Send a user message and stream the reply into the session.

        Facts are extracted from the message before the prompt is composed,
        so the reply can already use them.

        Args:
            session_id: Target session.
            text: The user's message.
            user_id: Whose memory to read and update.
            on_chunk: Called with each streamed piece of text; may be async.

        Returns:
            The finished assistant message (complete, aborted or error).
        """
        self.append_user_message(session_id, text)
        self._remember(user_id, text)
        return await self._generate(session_id, user_id, on_chunk)

    async def regenerate_from(
        self,
        session_id: str,
        user_id: str,
        anchor: str = "last",
        on_chunk: ChunkCallback | None = None,
    ) -> Message:
        """Drop part of the log and generate a fresh reply.

        Args:
            session_id: Target session.
            user_id: Whose memory to read.
            anchor: ``"last"`` drops only a trailing assistant message; a
                message id drops that message and everything after it.
            on_chunk: Called with each streamed piece of text.

        Raises:
            NothingToRegenerateError: Fewer than two messages, or nothing
                would be left to answer.
            MessageNotFoundError: The anchor id is not in the session.
            SessionBusyError: A generation is in flight.
        """
        session = self.get(session_id)
        if session.in_flight is not None:
            raise SessionBusyError(session_id)
        if len(session.messages) < 2:
            raise NothingToRegenerateError("Need at least two messages to regenerate")

        if anchor == "last":
            cut = len(session.messages)
            if session.messages[-1].role is MessageRole.ASSISTANT:
                cut -= 1
        else:
            cut = session.find(anchor)
            if cut is None:
                raise MessageNotFoundError(session_id, anchor)

        if cut == 0:
            raise NothingToRegenerateError("Nothing left to answer after truncation")

        del session.messages[cut:]
        session.touch()
        self._save(session)
        return await self._generate(session_id, user_id, on_chunk)

    def stop_generation(self, session_id: str) -> bool:
        """Stop the generation in flight, keeping any text already streamed.

        Returns:
            True if there was something to stop.
        """
        token = self._cancel_tokens.get(session_id)
        if token is not None:
            token.cancel()
            return True

        session = self.get(session_id)
        message = session.in_flight
        if message is None:
            return False
        self._finish(session, message, GenerationState.ABORTED)
        return True

    def _remember(self, user_id: str, text: str) -> None:
        try:
            self.memory.add_facts(user_id, self.memory.extract(text))
        except Exception:
            logger.warning("Memory update failed for user %s", user_id, exc_info=True)

    async def _generate(
        self,
        session_id: str,
        user_id: str,
        on_chunk: ChunkCallback | None,
    ) -> Message:
        session = self.get(session_id)
        persona = self.personas.resolve(session.persona_id)
        prompt = self.personas.compose_prompt(persona, self.memory.facts(user_id))
        history = [m.to_dict() for m in session.messages]

        message_id = self.begin_assistant_response(session_id)
        message = self._message(session, message_id)
        token = CancelToken()
        self._cancel_tokens[session_id] = token

        started = time.monotonic()
        chunks = 0
        failed = False
        error_detail: str | None = None
        try:
            stream = self.client.stream(prompt, history, token, session_id=session_id)
            async with aclosing(stream):
                async for text in stream:
                    if token.cancelled or not self.apply_chunk(session_id, message_id, text):
                        break
                    chunks += 1
                    if on_chunk is not None:
                        result = on_chunk(text)
                        if inspect.isawaitable(result):
                            await result
        except CompletionError as e:
            logger.warning("Generation failed in session %s: %s", session_id, e)
            failed, error_detail = True, e.user_message()
        except asyncio.CancelledError:
            self._finish(session, message, GenerationState.ABORTED)
            raise
        except Exception:
            logger.exception("Unexpected error while generating in session %s", session_id)
            failed = True
        finally:
            self._cancel_tokens.pop(session_id, None)

        if failed:
            self._finish(session, message, GenerationState.ERROR, error_detail)
        elif token.cancelled:
            self._finish(session, message, GenerationState.ABORTED)
        else:
            self._finish(session, message, GenerationState.COMPLETE)

        if self.event_log:
            self.event_log.log_completion_end(
                message.state.value,
                session_id=session_id,
                duration_ms=(time.monotonic() - started) * 1000,
                chunks=chunks,
                error=message.error,
            )
        return message

    # Proactive delivery

    def deliver_proactive(
        self,
        event: ProactiveEvent,
        session_id: str | None = None,
    ) -> Session:
        """Materialize a proactive message as a complete assistant message.

        Uses the given session when it exists and is idle, otherwise starts
        a new session under the event's persona. The message does not name
        the session.
        """
        session = self._sessions.get(session_id) if session_id else None
        if session is None or session.in_flight is not None:
            session = self.create(event.persona_id)

        session.messages.append(
            Message(role=MessageRole.ASSISTANT, content=event.message, proactive=True)
        )
        session.touch()
        self._save(session)
        return session

"""Streaming chat completion client with a model fallback ladder.

Talks to an OpenAI-compatible ``/chat/completions`` endpoint (OpenRouter by
default) over httpx and yields the reply as it arrives.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator, Mapping, Sequence

import httpx

from .errors import (
    AuthenticationError,
    CompletionError,
    ModelNotFoundError,
    StreamTimeoutError,
    TransportError,
    error_for_status,
)
from .stream import SSEDecoder

if TYPE_CHECKING:
    from ..logging import JSONLLogger

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "nvidia/llama-3.1-nemotron-70b-instruct"
FALLBACK_MODELS = (
    "meta-llama/llama-3.1-8b-instruct:free",
    "microsoft/phi-3-medium-128k-instruct:free",
    "google/gemma-2-9b-it:free",
)

# Assistant placeholders that are still being generated never go to the model.
TRANSIENT_STATES = frozenset({"pending", "streaming"})


@dataclass
class CompletionConfig:
    """Configuration for the completion client.

    Attributes:
        api_key: Provider API key (sent as a bearer token).
        base_url: Full URL of the chat completions endpoint.
        model: Primary model, tried first.
        fallback_models: Models tried in order when the previous one is not found.
        temperature: Sampling temperature.
        max_tokens: Cap on generated tokens.
        connect_timeout: Seconds to wait for a connection.
        idle_timeout: Seconds the stream may stay silent before failing.
        referer: Value for the HTTP-Referer header.
        app_title: Value for the X-Title header.
    """

    api_key: str | None = None
    base_url: str = OPENROUTER_URL
    model: str = DEFAULT_MODEL
    fallback_models: list[str] = field(default_factory=lambda: list(FALLBACK_MODELS))
    temperature: float = 0.8
    max_tokens: int = 1000
    connect_timeout: float = 10.0
    idle_timeout: float = 60.0
    referer: str = "http://localhost"
    app_title: str = "SAM.exe"

    @property
    def models(self) -> list[str]:
        """The full ladder: primary model, then fallbacks."""
        return [self.model, *self.fallback_models]


class CancelToken:
    """Cooperative cancellation for one generation."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


def build_messages(
    system_prompt: str,
    history: Sequence[Mapping[str, Any]],
) -> list[dict[str, str]]:
    """Build the request message list.

    Args:
        system_prompt: The composed persona and memory prompt.
        history: Session messages as dicts with ``role``, ``content`` and
            optionally ``state``.

    Returns:
        One system entry followed by the user/assistant history, skipping
        assistant messages that are still being generated.
    """
    messages = [{"role": "system", "content": system_prompt}]
    for item in history:
        if item.get("state") in TRANSIENT_STATES:
            continue
        role = item.get("role")
        if role not in ("user", "assistant"):
            continue
        messages.append({"role": role, "content": str(item.get("content", ""))})
    return messages


def _error_message(body: bytes, status_code: int) -> str:
    """Read the human-readable message from an error response body."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        data = None

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if data.get("detail"):
            return str(data["detail"])
    return f"API Error ({status_code})"


async def _next_chunk(iterator: AsyncIterator[str]) -> str | None:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


class CompletionClient:
    """Streams completions, walking the fallback ladder on "model not found".

    Example:
        client = CompletionClient(CompletionConfig(api_key="..."))
        token = CancelToken()
        async for text in client.stream(prompt, history, token):
            print(text, end="")
    """

    def __init__(
        self,
        config: CompletionConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Provider configuration. Uses defaults if None.
            http_client: Shared httpx client. One is created (and owned) if None.
            event_log: Optional structured event logger.
        """
        self.config = config or CompletionConfig()
        self._http = http_client
        self._owns_http = http_client is None
        self.event_log = event_log

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            timeout = httpx.Timeout(
                self.config.idle_timeout, connect=self.config.connect_timeout
            )
            self._http = httpx.AsyncClient(timeout=timeout)
        return self._http

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> CompletionClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.config.referer,
            "X-Title": self.config.app_title,
        }

    def _payload(self, model: str, messages: list[dict[str, str]]) -> dict[str, Any]:
        return {
            "model": model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "stream": True,
        }

    async def stream(
        self,
        system_prompt: str,
        history: Sequence[Mapping[str, Any]],
        cancel: CancelToken | None = None,
        *,
        session_id: str | None = None,
    ) -> AsyncIterator[str]:
        """Stream one completion.

        Tries the primary model, then each fallback in order while the
        provider answers 404. Cancellation ends the iteration early without
        raising; text already yielded stays with the caller.

        Args:
            system_prompt: The composed system prompt.
            history: Prior session messages (see :func:`build_messages`).
            cancel: Optional cancellation token.
            session_id: Session the request belongs to, for logging.

        Yields:
            Incremental reply text.

        Raises:
            AuthenticationError: 401, or no API key configured.
            RateLimitError: 429.
            BadRequestError: 400.
            ModelNotFoundError: Every model in the ladder returned 404.
            ProviderError: Any other error status.
            TransportError: The request failed below HTTP.
            StreamTimeoutError: The stream stayed silent past the idle timeout.
        """
        if not self.config.api_key:
            raise AuthenticationError("No API key configured")

        messages = build_messages(system_prompt, history)
        models = self.config.models
        tried: list[str] = []

        for attempt, model in enumerate(models, start=1):
            if cancel is not None and cancel.cancelled:
                return

            tried.append(model)
            if self.event_log:
                self.event_log.log_completion_attempt(
                    model, attempt, session_id=session_id, messages_count=len(messages)
                )

            try:
                response = await self._send(model, messages, cancel)
                if response is None:
                    return
                try:
                    if not response.is_success:
                        body = await response.aread()
                        error = error_for_status(
                            response.status_code,
                            _error_message(body, response.status_code),
                            model=model,
                        )
                        if isinstance(error, ModelNotFoundError):
                            if attempt < len(models):
                                self._on_fallback(model, models[attempt], session_id)
                                continue
                            error.models_tried = tried
                        raise error

                    async for delta in self._iter_deltas(response, cancel):
                        yield delta
                    return
                finally:
                    await response.aclose()
            except CompletionError:
                raise
            except httpx.ReadTimeout as e:
                raise StreamTimeoutError(
                    f"No data for {self.config.idle_timeout:g}s", model=model
                ) from e
            except httpx.RequestError as e:
                raise TransportError(str(e) or type(e).__name__, model=model) from e

    async def _send(
        self,
        model: str,
        messages: list[dict[str, str]],
        cancel: CancelToken | None,
    ) -> httpx.Response | None:
        """Dispatch the request and wait for headers.

        Returns None if the cancel token fires first; the pending request is
        cancelled so the transport is released.
        """
        http = self._client()
        request = http.build_request(
            "POST",
            self.config.base_url,
            json=self._payload(model, messages),
            headers=self._headers(),
        )
        sending = asyncio.ensure_future(http.send(request, stream=True))
        if cancel is None:
            return await sending

        cancelled = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {sending, cancelled}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            sending.cancel()
            cancelled.cancel()
            raise
        cancelled.cancel()

        if sending not in done:
            sending.cancel()
            await asyncio.gather(sending, return_exceptions=True)
            return None
        return sending.result()

    def _on_fallback(self, model: str, next_model: str, session_id: str | None) -> None:
        logger.info("Model %s not found, trying fallback %s", model, next_model)
        if self.event_log:
            self.event_log.log_fallback(
                model, next_model, session_id=session_id, status_code=404
            )

    async def _iter_deltas(
        self,
        response: httpx.Response,
        cancel: CancelToken | None,
    ) -> AsyncIterator[str]:
        """Decode the body, racing every read against the cancel token."""
        decoder = SSEDecoder()
        chunks = response.aiter_text().__aiter__()

        while True:
            if cancel is not None and cancel.cancelled:
                return

            read = asyncio.ensure_future(_next_chunk(chunks))
            if cancel is not None:
                cancelled = asyncio.ensure_future(cancel.wait())
                done, _ = await asyncio.wait(
                    {read, cancelled}, return_when=asyncio.FIRST_COMPLETED
                )
                if read not in done:
                    read.cancel()
                    await asyncio.gather(read, return_exceptions=True)
                    return
                cancelled.cancel()

            chunk = await read
            if chunk is None:
                break

            for delta in decoder.feed(chunk):
                yield delta
            if decoder.done:
                return

        for delta in decoder.flush():
            yield delta

"""Decoder for OpenAI-style server-sent event streams.

Each event line looks like ``data: {...}`` where the JSON payload carries
the incremental text at ``choices[0].delta.content``. The literal
``data: [DONE]`` ends the stream.
"""

import json
from typing import Any

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def extract_delta(payload: Any) -> str | None:
    """Pull the incremental text out of one decoded chunk payload."""
    if not isinstance(payload, dict):
        return None

    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None

    choice = choices[0]
    if not isinstance(choice, dict):
        return None

    delta = choice.get("delta")
    if isinstance(delta, dict):
        content = delta.get("content")
        if isinstance(content, str) and content:
            return content
    return None


class SSEDecoder:
    """Incrementally turns raw body text into content deltas.

    Network chunks can end mid-line, so the unterminated tail of each chunk
    is held back until the next one arrives.

    Example:
        decoder = SSEDecoder()
        async for text in response.aiter_text():
            for delta in decoder.feed(text):
                ...
        for delta in decoder.flush():
            ...
    """

    def __init__(self) -> None:
        self._buffer = ""
        self.done = False

    def feed(self, chunk: str) -> list[str]:
        """Decode a chunk of body text.

        Args:
            chunk: Text as received from the transport.

        Returns:
            Content deltas found in the complete lines, in order. Empty once
            the end sentinel has been seen.
        """
        if self.done:
            return []

        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return self._decode_lines(lines)

    def flush(self) -> list[str]:
        """Decode whatever is left in the buffer at end of body."""
        if self.done or not self._buffer:
            return []
        tail, self._buffer = self._buffer, ""
        return self._decode_lines([tail])

    def _decode_lines(self, lines: list[str]) -> list[str]:
        deltas: list[str] = []
        for line in lines:
            line = line.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue

            data = line[len(DATA_PREFIX):].strip()
            if data == DONE_SENTINEL:
                self.done = True
                self._buffer = ""
                break

            try:
                payload = json.loads(data)
            except json.JSONDecodeError:
                continue

            delta = extract_delta(payload)
            if delta:
                deltas.append(delta)
        return deltas

"""LLM module for streaming chat completions."""

from .client import (
    DEFAULT_MODEL,
    FALLBACK_MODELS,
    OPENROUTER_URL,
    CancelToken,
    CompletionClient,
    CompletionConfig,
    build_messages,
)
from .errors import (
    AuthenticationError,
    BadRequestError,
    CompletionError,
    ModelNotFoundError,
    ProviderError,
    RateLimitError,
    StreamTimeoutError,
    TransportError,
    error_for_status,
)
from .stream import SSEDecoder, extract_delta

__all__ = [
    "AuthenticationError",
    "BadRequestError",
    "CancelToken",
    "CompletionClient",
    "CompletionConfig",
    "CompletionError",
    "DEFAULT_MODEL",
    "FALLBACK_MODELS",
    "ModelNotFoundError",
    "OPENROUTER_URL",
    "ProviderError",
    "RateLimitError",
    "SSEDecoder",
    "StreamTimeoutError",
    "TransportError",
    "build_messages",
    "error_for_status",
    "extract_delta",
]

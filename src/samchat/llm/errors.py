"""Completion errors, one class per failure the provider can report."""


class CompletionError(Exception):
    """Base class for completion failures.

    Attributes:
        message: Provider (or transport) description of the failure.
        status_code: HTTP status, if the failure came from a response.
        model: The model the failing request was made against.
    """

    status_code: int | None = None

    def __init__(
        self,
        message: str = "",
        *,
        status_code: int | None = None,
        model: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.model = model

    def user_message(self) -> str:
        """Text shown to the user in place of the assistant's reply."""
        return self.message or "Something went wrong while generating a response."


class AuthenticationError(CompletionError):
    status_code = 401

    def user_message(self) -> str:
        return "Invalid API key. Please check your OpenRouter API key."


class RateLimitError(CompletionError):
    status_code = 429

    def user_message(self) -> str:
        return "Rate limit exceeded. Please wait a moment and try again."


class BadRequestError(CompletionError):
    status_code = 400

    def user_message(self) -> str:
        return f"Bad request: {self.message}"


class ModelNotFoundError(CompletionError):
    """Raised once every model in the fallback ladder returned 404."""

    status_code = 404

    def __init__(
        self,
        message: str = "",
        *,
        status_code: int | None = None,
        model: str | None = None,
        models_tried: list[str] | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, model=model)
        self.models_tried = list(models_tried or [])

    def user_message(self) -> str:
        return f"Model not found: {self.message}. Please check if the model is available."


class ProviderError(CompletionError):
    """Any other non-success response from the provider."""

    def user_message(self) -> str:
        if self.message:
            return self.message
        return f"API Error ({self.status_code})"


class TransportError(CompletionError):
    """The request never got a usable response (DNS, connect, reset)."""

    def user_message(self) -> str:
        return f"Connection to the AI service failed: {self.message}"


class StreamTimeoutError(TransportError):
    """The response stream went silent for longer than the idle timeout."""

    def user_message(self) -> str:
        return "The AI service stopped responding. Please try again."


def error_for_status(
    status_code: int,
    message: str,
    model: str | None = None,
) -> CompletionError:
    """Map an HTTP status to the matching completion error."""
    classes: dict[int, type[CompletionError]] = {
        401: AuthenticationError,
        429: RateLimitError,
        400: BadRequestError,
        404: ModelNotFoundError,
    }
    cls = classes.get(status_code, ProviderError)
    return cls(message, status_code=status_code, model=model)

"""Session errors."""


class SessionError(Exception):
    """Base class for session failures."""

    pass


class SessionNotFoundError(SessionError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class MessageNotFoundError(SessionError):
    def __init__(self, session_id: str, message_id: str) -> None:
        super().__init__(f"Message {message_id} not found in session {session_id}")
        self.session_id = session_id
        self.message_id = message_id


class SessionBusyError(SessionError):
    """Raised when a session already has a generation in flight."""

    BUSY_MESSAGE = "Still working on the last reply. Wait for it to finish or stop it."

    def __init__(self, session_id: str) -> None:
        super().__init__(self.BUSY_MESSAGE)
        self.session_id = session_id


class NothingToRegenerateError(SessionError):
    """Raised when regenerating a session with fewer than two messages."""

    pass

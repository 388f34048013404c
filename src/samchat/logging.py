"""JSONL logging for observability."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    session_id: str | None = None
    model: str | None = None
    attempt: int | None = None
    persona_id: str | None = None
    duration_ms: float | None = None
    outcome: str | None = None
    status_code: int | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Logger that writes structured logs in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "events.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".samchat" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self._current_session_id: str | None = None

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def set_session_id(self, session_id: str | None) -> None:
        """Set the current session for all subsequent logs."""
        self._current_session_id = session_id

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        """Write a log entry to the file."""
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

    def log(
        self,
        event: str,
        *,
        session_id: str | None = None,
        model: str | None = None,
        attempt: int | None = None,
        persona_id: str | None = None,
        duration_ms: float | None = None,
        outcome: str | None = None,
        status_code: int | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        extra = {k: v for k, v in extra.items() if v is not None}
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            session_id=session_id or self._current_session_id,
            model=model,
            attempt=attempt,
            persona_id=persona_id,
            duration_ms=duration_ms,
            outcome=outcome,
            status_code=status_code,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_completion_attempt(
        self,
        model: str,
        attempt: int,
        *,
        session_id: str | None = None,
        messages_count: int | None = None,
    ) -> None:
        """Log one request to the completion provider."""
        self.log(
            "completion_attempt",
            session_id=session_id,
            model=model,
            attempt=attempt,
            messages_count=messages_count,
        )

    def log_fallback(
        self,
        from_model: str,
        to_model: str,
        *,
        session_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """Log a switch to the next model in the fallback ladder."""
        self.log(
            "completion_fallback",
            session_id=session_id,
            model=to_model,
            status_code=status_code,
            from_model=from_model,
        )

    def log_completion_end(
        self,
        outcome: str,
        *,
        session_id: str | None = None,
        model: str | None = None,
        duration_ms: float | None = None,
        chunks: int | None = None,
        error: str | None = None,
    ) -> None:
        """Log the terminal state of a generation (complete, aborted, error)."""
        self.log(
            "completion_end",
            session_id=session_id,
            model=model,
            duration_ms=duration_ms,
            outcome=outcome,
            error=error,
            chunks=chunks,
        )

    def log_proactive(
        self,
        persona_id: str,
        *,
        total_sent: int | None = None,
        delivered: int | None = None,
    ) -> None:
        """Log a proactive message being fired."""
        self.log(
            "proactive_fire",
            persona_id=persona_id,
            total_sent=total_sent,
            delivered=delivered,
        )


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
